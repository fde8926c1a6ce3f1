"""
Abstract Storage Interface

DESIGN DECISION: We define an abstract interface for storage operations.
This allows us to:
1. Swap Google Sheets for a real database later
2. Use in-memory storage for testing
3. Keep business logic decoupled from storage implementation

The interface is intentionally simple - we're not building a full ORM.
Every household collection is reached through the same five owner-scoped
operations (list, get, insert, delete-all, profile patch), which is all the
dashboard, the importer and the backup subsystem need.
"""

from abc import ABC, abstractmethod
from enum import Enum
from typing import Any, Optional, Type
from uuid import UUID

from pydantic import BaseModel

from src.models.audit import AuditEvent
from src.models.finance import (
    Account,
    Budget,
    Category,
    Goal,
    Investment,
    Transaction,
    UserProfile,
)


class Resource(str, Enum):
    """
    Owner-scoped collections, keyed by their wire name.

    The values are the collection names used in backup files and as
    worksheet titles.
    """
    ACCOUNTS = "contas"
    CATEGORIES = "categorias"
    TRANSACTIONS = "transacoes"
    INVESTMENTS = "investimentos"
    GOALS = "metas"
    BUDGETS = "orcamentos"

    @property
    def model(self) -> Type[BaseModel]:
        return RESOURCE_MODELS[self]


RESOURCE_MODELS: dict[Resource, Type[BaseModel]] = {
    Resource.ACCOUNTS: Account,
    Resource.CATEGORIES: Category,
    Resource.TRANSACTIONS: Transaction,
    Resource.INVESTMENTS: Investment,
    Resource.GOALS: Goal,
    Resource.BUDGETS: Budget,
}

PROFILE_COLLECTION = "usuarios"

# Fields a profile patch may touch
PATCHABLE_PROFILE_FIELDS = ("name", "monthly_income")


class FinanceStorageInterface(ABC):
    """
    Abstract interface for household data storage.

    Any storage implementation (Google Sheets, PostgreSQL, etc.)
    must implement these methods. Every operation is scoped to one owner:
    a record that belongs to someone else behaves exactly like a record
    that does not exist.
    """

    @abstractmethod
    async def get_profile(self, owner_id: str) -> Optional[UserProfile]:
        """
        Retrieve the profile of a user.

        Returns:
            The profile if found, None otherwise
        """
        pass

    @abstractmethod
    async def update_profile(self, owner_id: str, fields: dict[str, Any]) -> UserProfile:
        """
        Patch a user's profile with the given fields only.

        Fields outside `PATCHABLE_PROFILE_FIELDS` are ignored; fields not
        given are left untouched.

        Raises:
            NotFoundError: If the user has no profile
        """
        pass

    @abstractmethod
    async def list_records(
        self,
        resource: Resource,
        owner_id: str,
        order_by: Optional[str] = None,
        descending: bool = False,
    ) -> list[BaseModel]:
        """
        List every record of a collection owned by `owner_id`.

        Args:
            resource: Collection to read
            owner_id: Owner to filter by
            order_by: Field to sort on; insertion order when None
            descending: Sort newest/largest first

        Returns:
            List of model instances of `resource.model`
        """
        pass

    @abstractmethod
    async def get_record(
        self,
        resource: Resource,
        record_id: UUID,
        owner_id: str,
    ) -> Optional[BaseModel]:
        """
        Retrieve one record.

        Returns:
            The record if it exists and belongs to `owner_id`, None otherwise
        """
        pass

    @abstractmethod
    async def insert_records(
        self,
        resource: Resource,
        records: list[BaseModel],
    ) -> list[BaseModel]:
        """
        Insert records, assigning each a new identifier.

        Any id already set on a record is discarded. Transactions whose
        category or account belongs to a different owner are rejected.

        Returns:
            The inserted records with their new ids

        Raises:
            StorageError: If the insert fails or a link crosses owners
        """
        pass

    @abstractmethod
    async def delete_records(self, resource: Resource, owner_id: str) -> int:
        """
        Delete every record of a collection owned by `owner_id`.

        Returns:
            Number of records deleted
        """
        pass

    async def close(self) -> None:
        """Release connections held by the backend."""
        return None


class AuditStorageInterface(ABC):
    """
    Abstract interface for audit log storage.

    Audit logs are append-only - we never delete or modify them.
    """

    @abstractmethod
    async def append_event(self, event: AuditEvent) -> bool:
        """
        Append an audit event to the log.

        Args:
            event: The audit event to log

        Returns:
            True if logged successfully
        """
        pass

    @abstractmethod
    async def get_events_by_correlation_id(
        self,
        correlation_id: UUID,
    ) -> list[AuditEvent]:
        """
        Get all events for a correlation ID (e.g., one restore).

        Args:
            correlation_id: The correlation identifier

        Returns:
            List of related events in chronological order
        """
        pass

    @abstractmethod
    async def get_events_by_owner(
        self,
        owner_id: str,
    ) -> list[AuditEvent]:
        """
        Get all events raised on behalf of one user.

        Returns:
            List of events in chronological order
        """
        pass

    @abstractmethod
    async def get_recent_events(
        self,
        limit: int = 100,
    ) -> list[AuditEvent]:
        """
        Get the most recent audit events.

        Args:
            limit: Maximum number of events to return

        Returns:
            List of recent events (newest first)
        """
        pass


class StorageError(Exception):
    """Base exception for storage operations."""
    pass


class NotFoundError(StorageError):
    """Entity not found in storage."""
    pass


class ConnectionError(StorageError):
    """Could not connect to storage backend."""
    pass
