"""Shared fixtures: an in-memory household for two users."""

import asyncio
from datetime import date
from decimal import Decimal

import pytest

from src.audit import AuditLogger
from src.models.finance import (
    Account,
    AccountType,
    AuthenticatedUser,
    Category,
    CategoryGroup,
    Goal,
    Investment,
    InvestmentType,
    Transaction,
    TransactionKind,
    UserProfile,
)
from src.services.storage import InMemoryAuditStorage, InMemoryFinanceStorage, Resource


@pytest.fixture
def user():
    return AuthenticatedUser(id="user-1", email="ana@example.com")


@pytest.fixture
def other_user():
    return AuthenticatedUser(id="user-2", email="bia@example.com")


@pytest.fixture
def audit_storage():
    return InMemoryAuditStorage()


@pytest.fixture
def audit_logger(audit_storage):
    return AuditLogger(audit_storage)


@pytest.fixture
def storage():
    return InMemoryFinanceStorage()


async def seed_household(storage: InMemoryFinanceStorage, owner_id: str) -> None:
    """One of everything, linked the way the app links them."""
    storage.add_profile(UserProfile(
        id=owner_id,
        email=f"{owner_id}@example.com",
        name="Ana",
        monthly_income=Decimal("10000"),
    ))
    checking, _ = await storage.insert_records(Resource.ACCOUNTS, [
        Account(owner_id=owner_id, name="Conta Corrente", opening_balance=Decimal("1000.00")),
        Account(owner_id=owner_id, name="Cartão", type=AccountType.CREDIT_CARD),
    ])
    [groceries] = await storage.insert_records(Resource.CATEGORIES, [
        Category(owner_id=owner_id, name="Mercado", group=CategoryGroup.ESSENTIAL),
    ])
    await storage.insert_records(Resource.TRANSACTIONS, [
        Transaction(
            owner_id=owner_id,
            description="Supermercado",
            amount=Decimal("250.00"),
            kind=TransactionKind.EXPENSE,
            date=date(2024, 5, 3),
            category_id=groceries.id,
            account_id=checking.id,
            tags=["casa"],
        ),
        Transaction(
            owner_id=owner_id,
            description="Salário",
            amount=Decimal("10000.00"),
            kind=TransactionKind.INCOME,
            date=date(2024, 5, 5),
            account_id=checking.id,
        ),
    ])
    await storage.insert_records(Resource.INVESTMENTS, [
        Investment(
            owner_id=owner_id,
            name="Tesouro IPCA",
            type=InvestmentType.BONDS,
            purchase_price=Decimal("5000.00"),
            current_price=Decimal("5400.00"),
            purchase_date=date(2023, 2, 1),
        ),
    ])
    await storage.insert_records(Resource.GOALS, [
        Goal(
            owner_id=owner_id,
            name="Reserva de emergência",
            target_amount=Decimal("30000.00"),
            current_amount=Decimal("12000.00"),
        ),
    ])


@pytest.fixture
def household(storage):
    """Storage holding a full household for user-1 and another for user-2."""
    asyncio.run(seed_household(storage, "user-1"))
    asyncio.run(seed_household(storage, "user-2"))
    return storage
