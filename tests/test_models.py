"""
Tests for DinDin

Test strategy:
1. Unit tests for individual components (models, metrics, codecs)
2. Integration tests for flows (with in-memory storage and fake services)
3. No real API calls in tests (use fakes)
"""

import pytest
from datetime import date, datetime
from decimal import Decimal
from uuid import uuid4

from src.metrics import analyze_budget_rule
from src.models.finance import (
    Account,
    AccountType,
    Budget,
    Category,
    CategoryGroup,
    Goal,
    Investment,
    InvestmentType,
    Transaction,
    TransactionKind,
    UserProfile,
)
from src.models.extraction import DocumentKind, ExtractedTransaction, ExtractionResult
from src.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)


class TestLedgerModels:
    """Tests for account, category and transaction models."""

    def test_account_creation(self):
        """Test Account model creation with defaults."""
        account = Account(owner_id="user-1", name="Nubank")
        assert account.id is None
        assert account.type == AccountType.CHECKING
        assert account.opening_balance == Decimal("0")
        assert account.active is True

    def test_account_strips_whitespace(self):
        """Test that whitespace is stripped from account name."""
        account = Account(owner_id="user-1", name="  Itaú  ")
        assert account.name == "Itaú"

    def test_category_group_is_optional(self):
        """Test that a category may have no budget group."""
        category = Category(owner_id="user-1", name="Lazer")
        assert category.group is None

    def test_transaction_rejects_negative_amount(self):
        """Test that negative amounts are rejected."""
        with pytest.raises(ValueError):
            Transaction(
                owner_id="user-1",
                description="Mercado",
                amount=Decimal("-10"),
                kind=TransactionKind.EXPENSE,
                date=date(2024, 5, 1),
            )

    def test_transaction_installment_validation(self):
        """Test that the current installment cannot exceed the count."""
        with pytest.raises(ValueError, match="Current installment cannot exceed installments"):
            Transaction(
                owner_id="user-1",
                description="Geladeira",
                amount=Decimal("300.00"),
                kind=TransactionKind.EXPENSE,
                date=date(2024, 5, 1),
                installments=3,
                current_installment=4,
            )

    def test_transaction_is_installment(self):
        """Test installment detection needs at least two installments."""
        single = Transaction(
            owner_id="user-1",
            description="Livro",
            amount=Decimal("50"),
            kind=TransactionKind.EXPENSE,
            date=date(2024, 5, 1),
            installments=1,
            current_installment=1,
        )
        split = single.model_copy(update={"installments": 10, "current_installment": 2})
        assert single.is_installment is False
        assert split.is_installment is True

    def test_owner_is_required(self):
        """Test that every owned record needs an owner."""
        with pytest.raises(ValueError):
            Category(owner_id="", name="Mercado")


class TestLongTermModels:
    """Tests for investment and goal models."""

    def test_investment_profitability(self):
        """Test percent gain over purchase price."""
        inv = Investment(
            owner_id="user-1",
            name="Tesouro Selic",
            type=InvestmentType.BONDS,
            purchase_price=Decimal("1000.00"),
            current_price=Decimal("1100.00"),
            purchase_date=date(2023, 1, 10),
        )
        assert inv.profitability == pytest.approx(10.0)

    def test_investment_profitability_zero_purchase(self):
        """Test profitability is 0 when nothing was paid."""
        inv = Investment(
            owner_id="user-1",
            name="Bonificação",
            purchase_price=Decimal("0"),
            current_price=Decimal("50"),
            purchase_date=date(2023, 1, 10),
        )
        assert inv.profitability == 0.0

    def test_investment_maturity_validation(self):
        """Test maturity cannot be before purchase."""
        with pytest.raises(ValueError, match="Maturity date cannot be before purchase date"):
            Investment(
                owner_id="user-1",
                name="CDB",
                purchase_price=Decimal("100"),
                current_price=Decimal("100"),
                purchase_date=date(2024, 1, 10),
                maturity_date=date(2023, 1, 10),
            )

    @pytest.mark.parametrize(
        "target,current,remaining,completed",
        [
            ("1000", "250", "750", False),
            ("1000", "1000", "0", True),
            ("1000", "1500", "0", True),
            ("0", "0", "0", True),
            ("0", "30", "0", True),
        ],
    )
    def test_goal_clamp(self, target, current, remaining, completed):
        """Test remaining never goes negative and completion is current >= target."""
        goal = Goal(
            owner_id="user-1",
            name="Viagem",
            target_amount=Decimal(target),
            current_amount=Decimal(current),
        )
        assert goal.remaining == Decimal(remaining)
        assert goal.remaining >= 0
        assert goal.completed is completed

    def test_goal_progress_zero_target(self):
        """Test progress is 0 rather than a division error for a zero target."""
        goal = Goal(owner_id="user-1", name="Nada", target_amount=Decimal("0"))
        assert goal.progress == 0.0


class TestBudgetAndProfile:
    """Tests for the monthly budget and profile models."""

    def test_budget_month_format(self):
        """Test that the month must be YYYY-MM."""
        with pytest.raises(ValueError):
            Budget(owner_id="user-1", month="05/2024")

    def test_budget_from_analysis(self):
        """Test freezing a budget rule analysis."""
        analysis = analyze_budget_rule(10000, {
            CategoryGroup.ESSENTIAL: 6000,
            CategoryGroup.LIFESTYLE: 2500,
            CategoryGroup.INVESTMENT: 1000,
        })
        budget = Budget.from_analysis("user-1", "2024-05", analysis)
        assert budget.essentials_projected == Decimal("5000.0")
        assert budget.essentials_realized == Decimal("6000")
        assert budget.investments_projected == Decimal("2000.0")

    def test_profile_normalizes_email(self):
        """Test profile emails are stored lowercase."""
        profile = UserProfile(id="user-1", email="  Ana@Example.COM ")
        assert profile.email == "ana@example.com"


class TestExtractionModels:
    """Tests for document extraction models."""

    def test_extracted_transaction_defaults(self):
        """Test default kind and category of an extracted row."""
        row = ExtractedTransaction(amount=Decimal("99.90"), date=date(2024, 1, 15))
        assert row.description == "Transação importada"
        assert row.kind == TransactionKind.EXPENSE
        assert row.category == "Outros"

    def test_extraction_result_count(self):
        """Test the row count of an extraction."""
        rows = [
            ExtractedTransaction(amount=Decimal("10"), date=date(2024, 1, 15)),
            ExtractedTransaction(amount=Decimal("20"), date=date(2024, 1, 16)),
        ]
        result = ExtractionResult(kind=DocumentKind.FATURA, transactions=rows)
        assert result.count == 2


class TestAuditModels:
    """Tests for audit-related models."""

    def test_audit_event_creation(self):
        """Test AuditEvent model creation."""
        event = AuditEvent(
            event_type=AuditEventType.BACKUP_EXPORTED,
            description="Backup exported",
        )
        assert event.event_type == AuditEventType.BACKUP_EXPORTED
        assert event.severity == AuditSeverity.INFO

    def test_audit_event_to_log_dict(self):
        """Test conversion to log dictionary."""
        event = AuditEvent(
            event_type=AuditEventType.RESOURCE_DELETED,
            description="Deleted transacoes",
            details={"resource": "transacoes", "count": 3},
        )
        log_dict = event.to_log_dict()
        assert "event_id" in log_dict
        assert log_dict["event_type"] == "resource_deleted"
        assert log_dict["details"]["count"] == 3

    def test_audit_event_to_sheets_row(self):
        """Test conversion to sheets row."""
        event = AuditEvent(
            event_type=AuditEventType.RESTORE_STARTED,
            description="Restore started",
            owner_id="user-1",
            is_user_action=True,
        )
        row = event.to_sheets_row()
        assert len(row) == 11  # Expected number of columns
        assert row[2] == "restore_started"  # event_type
        assert row[4] == "user-1"  # owner_id
        assert row[10] == "True"  # is_user_action

    def test_audit_event_builder_restore_rejected(self):
        """Test AuditEventBuilder.restore_rejected."""
        correlation_id = uuid4()

        event = AuditEventBuilder.restore_rejected(
            owner_id="user-1",
            stage="received",
            reason="Backup corrompido - checksum inválido",
            correlation_id=correlation_id,
        )

        assert event.event_type == AuditEventType.RESTORE_REJECTED
        assert event.severity == AuditSeverity.WARNING
        assert event.correlation_id == correlation_id
        assert event.details["stage"] == "received"
        assert event.is_user_action is True

    def test_audit_event_builder_authentication_failed(self):
        """Test AuditEventBuilder.authentication_failed has no owner."""
        event = AuditEventBuilder.authentication_failed("expired")
        assert event.event_type == AuditEventType.AUTHENTICATION_FAILED
        assert event.owner_id is None
        assert event.error_message == "expired"
