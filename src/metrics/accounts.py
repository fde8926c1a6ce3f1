"""
Account balances.

DESIGN DECISION: Only income and expense rows move an account's cash
balance. Transfers are excluded because a transfer row names a single
account, so there is no counterpart to net against. Investment rows are
excluded because the money they move is tracked as `Investment` records.

Every account type uses the same sign, so a credit card with purchases on
it has a negative balance. `account_totals` turns that into the amount owed.
"""

from decimal import Decimal
from typing import Iterable

from pydantic import BaseModel

from src.models.finance import Account, AccountType, Transaction, TransactionKind


class AccountTotals(BaseModel):
    available: Decimal
    credit: Decimal
    net: Decimal


def account_balance(account: Account, transactions: Iterable[Transaction]) -> Decimal:
    """Opening balance plus the signed sum of the account's income and expenses."""
    balance = account.opening_balance
    for t in transactions:
        if account.id is None or t.account_id != account.id:
            continue
        if t.kind == TransactionKind.INCOME:
            balance += t.amount
        elif t.kind == TransactionKind.EXPENSE:
            balance -= t.amount
    return balance


def account_totals(
    accounts: Iterable[Account],
    transactions: Iterable[Transaction],
) -> AccountTotals:
    """
    Totals over active accounts.

    `credit` is what is owed on cards: the negated card balance, so a card
    with 300 of purchases adds 300 of debt and `net` drops by 300.
    """
    transactions = list(transactions)
    available = Decimal("0")
    credit = Decimal("0")

    for account in accounts:
        if not account.active:
            continue
        balance = account_balance(account, transactions)
        if account.type == AccountType.CREDIT_CARD:
            credit -= balance
        else:
            available += balance

    return AccountTotals(available=available, credit=credit, net=available - credit)
