"""
In-memory storage.

Dict-backed implementations of both storage interfaces. Used by the tests
and as the fallback when no spreadsheet is configured, in which case data
lives only as long as the process.
"""

from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel

from src.models.audit import AuditEvent
from src.models.finance import Transaction, UserProfile
from src.services.storage.interface import (
    PATCHABLE_PROFILE_FIELDS,
    AuditStorageInterface,
    FinanceStorageInterface,
    NotFoundError,
    Resource,
    StorageError,
)


class InMemoryFinanceStorage(FinanceStorageInterface):
    """Household data kept in per-resource lists, in insertion order."""

    def __init__(self):
        self._records: dict[Resource, list[BaseModel]] = {r: [] for r in Resource}
        self._profiles: dict[str, UserProfile] = {}

    def add_profile(self, profile: UserProfile) -> None:
        """Seed a profile (profiles are created at sign-up, not by this API)."""
        self._profiles[profile.id] = profile

    async def get_profile(self, owner_id: str) -> Optional[UserProfile]:
        return self._profiles.get(owner_id)

    async def update_profile(self, owner_id: str, fields: dict[str, Any]) -> UserProfile:
        profile = self._profiles.get(owner_id)
        if profile is None:
            raise NotFoundError(f"Profile not found: {owner_id}")
        patch = {k: v for k, v in fields.items() if k in PATCHABLE_PROFILE_FIELDS}
        updated = UserProfile.model_validate({**profile.model_dump(), **patch})
        self._profiles[owner_id] = updated
        return updated

    async def list_records(
        self,
        resource: Resource,
        owner_id: str,
        order_by: Optional[str] = None,
        descending: bool = False,
    ) -> list[BaseModel]:
        records = [r for r in self._records[resource] if r.owner_id == owner_id]
        if order_by:
            records.sort(key=lambda r: getattr(r, order_by), reverse=descending)
        return records

    async def get_record(
        self,
        resource: Resource,
        record_id: UUID,
        owner_id: str,
    ) -> Optional[BaseModel]:
        for record in self._records[resource]:
            if record.id == record_id and record.owner_id == owner_id:
                return record
        return None

    async def insert_records(
        self,
        resource: Resource,
        records: list[BaseModel],
    ) -> list[BaseModel]:
        if resource == Resource.TRANSACTIONS:
            for t in records:
                await self._check_links(t)

        inserted = [r.model_copy(update={"id": uuid4()}) for r in records]
        self._records[resource].extend(inserted)
        return inserted

    async def _check_links(self, transaction: Transaction) -> None:
        if transaction.category_id:
            found = await self.get_record(
                Resource.CATEGORIES, transaction.category_id, transaction.owner_id
            )
            if found is None:
                raise StorageError(f"Category not found: {transaction.category_id}")
        if transaction.account_id:
            found = await self.get_record(
                Resource.ACCOUNTS, transaction.account_id, transaction.owner_id
            )
            if found is None:
                raise StorageError(f"Account not found: {transaction.account_id}")

    async def delete_records(self, resource: Resource, owner_id: str) -> int:
        kept = [r for r in self._records[resource] if r.owner_id != owner_id]
        deleted = len(self._records[resource]) - len(kept)
        self._records[resource] = kept
        return deleted


class InMemoryAuditStorage(AuditStorageInterface):
    """Append-only list of audit events."""

    def __init__(self):
        self.events: list[AuditEvent] = []

    async def append_event(self, event: AuditEvent) -> bool:
        self.events.append(event)
        return True

    async def get_events_by_correlation_id(
        self,
        correlation_id: UUID,
    ) -> list[AuditEvent]:
        events = [e for e in self.events if e.correlation_id == correlation_id]
        return sorted(events, key=lambda e: e.timestamp)

    async def get_events_by_owner(
        self,
        owner_id: str,
    ) -> list[AuditEvent]:
        events = [e for e in self.events if e.owner_id == owner_id]
        return sorted(events, key=lambda e: e.timestamp)

    async def get_recent_events(
        self,
        limit: int = 100,
    ) -> list[AuditEvent]:
        events = sorted(self.events, key=lambda e: e.timestamp, reverse=True)
        return events[:limit]
