"""
Tests for FinLedger models

Test strategy:
1. Unit tests for individual components (models, validators)
2. Illegal combinations must fail at construction time
3. No I/O in tests
"""

import pytest
from datetime import date
from decimal import Decimal
from uuid import uuid4

from pydantic import ValidationError

from finledger.models import (
    Account,
    AccountType,
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
    Expense,
    Frequency,
    Income,
    InstallmentInfo,
    RecurrenceInfo,
    SharedSplit,
    Transfer,
    ValidationIssue,
    ValidationResult,
    active,
    parse_transaction,
    parse_transactions,
)


class TestTransactionUnion:
    """Tests for the tagged transaction union."""

    def test_parse_dispatches_on_type(self):
        """Test that the type field selects the variant."""
        tx = parse_transaction({
            "type": "TRANSFER",
            "date": "2024-03-01",
            "amount": "200.00",
            "description": "Move to savings",
            "account_id": "checking",
            "destination_account_id": "savings",
        })
        assert isinstance(tx, Transfer)
        assert tx.date == date(2024, 3, 1)
        assert tx.amount == Decimal("200.00")

    def test_parse_transactions_mixed_list(self):
        """Test parsing a list with every variant."""
        rows = parse_transactions([
            {"type": "INCOME", "date": "2024-03-01", "amount": "10", "description": "a", "account_id": "x"},
            {"type": "EXPENSE", "date": "2024-03-01", "amount": "10", "description": "b", "account_id": "x"},
        ])
        assert [type(r) for r in rows] == [Income, Expense]

    def test_unknown_type_rejected(self):
        """Test that an unknown discriminator is rejected."""
        with pytest.raises(ValidationError):
            parse_transaction({"type": "LOAN", "date": "2024-03-01", "amount": "1", "description": "x"})

    def test_amount_must_be_positive(self):
        """Test that zero amounts are rejected."""
        with pytest.raises(ValueError):
            Income(date=date(2024, 3, 1), amount=Decimal("0"), description="x", account_id="a")

    def test_amount_limited_to_cents(self):
        """Test that sub-cent amounts are rejected."""
        with pytest.raises(ValueError):
            Income(date=date(2024, 3, 1), amount=Decimal("1.005"), description="x", account_id="a")

    def test_description_strips_whitespace(self):
        """Test that whitespace is stripped from descriptions."""
        tx = Income(date=date(2024, 3, 1), amount=Decimal("1"), description="  Salary  ", account_id="a")
        assert tx.description == "Salary"

    def test_fields_of_other_variants_forbidden(self):
        """Test that an income cannot carry sharing fields."""
        with pytest.raises(ValidationError):
            Income(
                date=date(2024, 3, 1),
                amount=Decimal("10"),
                description="x",
                account_id="a",
                shared_with=[],
            )

    def test_models_are_frozen(self):
        """Test that records cannot be edited in place."""
        tx = Income(date=date(2024, 3, 1), amount=Decimal("1"), description="x", account_id="a")
        with pytest.raises(ValidationError):
            tx.amount = Decimal("2")

    def test_installment_and_recurrence_exclusive(self):
        """Test that a row cannot be both installment and recurring."""
        with pytest.raises(ValueError, match="both installment and recurring"):
            Expense(
                date=date(2024, 3, 1),
                amount=Decimal("10"),
                description="x",
                account_id="a",
                recurrence=RecurrenceInfo(frequency=Frequency.MONTHLY),
                installment=InstallmentInfo(
                    series_id="s",
                    current=1,
                    total=2,
                    original_amount=Decimal("20"),
                    anchor_date=date(2024, 3, 1),
                ),
            )

    def test_active_filters_deleted(self):
        """Test that active() drops soft-deleted rows."""
        live = Income(date=date(2024, 3, 1), amount=Decimal("1"), description="x", account_id="a")
        gone = live.model_copy(update={"id": "other", "deleted": True})
        assert active([live, gone]) == [live]


class TestExpense:
    """Tests for expense rules."""

    def test_user_paid_expense_requires_account(self):
        """Test that the user's own expenses need an account."""
        with pytest.raises(ValueError, match="requires an account_id"):
            Expense(date=date(2024, 3, 1), amount=Decimal("10"), description="x")

    def test_third_party_expense_without_account(self):
        """Test that an expense paid by someone else may omit the account."""
        tx = Expense(date=date(2024, 3, 1), amount=Decimal("10"), description="x", payer_id="alice")
        assert not tx.paid_by_user
        assert tx.account_id is None

    def test_shares_cannot_exceed_amount(self):
        """Test that assigned shares are capped by the amount."""
        with pytest.raises(ValueError, match="exceed the expense amount"):
            Expense(
                date=date(2024, 3, 1),
                amount=Decimal("100"),
                description="Dinner",
                account_id="a",
                shared_with=[SharedSplit(member_id="alice", assigned_amount=Decimal("100.01"))],
            )

    def test_member_appears_once(self):
        """Test that duplicate members are rejected."""
        with pytest.raises(ValueError, match="only once"):
            Expense(
                date=date(2024, 3, 1),
                amount=Decimal("100"),
                description="Dinner",
                account_id="a",
                shared_with=[
                    SharedSplit(member_id="alice", assigned_amount=Decimal("10")),
                    SharedSplit(member_id="alice", assigned_amount=Decimal("10")),
                ],
            )

    def test_assigned_total(self):
        """Test the sum of assigned shares."""
        tx = Expense(
            date=date(2024, 3, 1),
            amount=Decimal("100"),
            description="Dinner",
            account_id="a",
            shared_with=[
                SharedSplit(member_id="alice", assigned_amount=Decimal("25.50")),
                SharedSplit(member_id="bob", assigned_amount=Decimal("14.50")),
            ],
        )
        assert tx.is_shared
        assert tx.assigned_total == Decimal("40.00")


class TestTransfer:
    """Tests for transfer rules."""

    def test_source_and_destination_differ(self):
        """Test that a transfer to itself is rejected."""
        with pytest.raises(ValueError, match="must differ"):
            Transfer(
                date=date(2024, 3, 1),
                amount=Decimal("10"),
                description="x",
                account_id="a",
                destination_account_id="a",
            )

    def test_refund_flag_rejected(self):
        """Test that a truthy is_refund is illegal on transfers."""
        with pytest.raises(ValueError, match="not applicable"):
            parse_transaction({
                "type": "TRANSFER",
                "date": "2024-03-01",
                "amount": "10",
                "description": "x",
                "account_id": "a",
                "destination_account_id": "b",
                "is_refund": True,
            })

    def test_false_refund_flag_tolerated(self):
        """Test that stored rows carrying is_refund=False still load."""
        tx = parse_transaction({
            "type": "TRANSFER",
            "date": "2024-03-01",
            "amount": "10",
            "description": "x",
            "account_id": "a",
            "destination_account_id": "b",
            "is_refund": False,
        })
        assert tx.is_refund is False

    def test_credited_amount_defaults_to_amount(self):
        """Test destination_amount fallback."""
        tx = Transfer(
            date=date(2024, 3, 1),
            amount=Decimal("10"),
            description="x",
            account_id="a",
            destination_account_id="b",
        )
        assert tx.credited_amount == Decimal("10")
        assert tx.model_copy(update={"destination_amount": Decimal("52.10")}).credited_amount == Decimal("52.10")


class TestInstallmentInfo:
    """Tests for installment position."""

    def test_current_not_beyond_total(self):
        """Test that the position is within the series."""
        with pytest.raises(ValueError, match="beyond series length"):
            InstallmentInfo(
                series_id="s",
                current=4,
                total=3,
                original_amount=Decimal("30"),
                anchor_date=date(2024, 1, 1),
            )


class TestAccountModel:
    """Tests for accounts."""

    def test_card_fields_only_on_cards(self):
        """Test that a checking account cannot have a closing day."""
        with pytest.raises(ValueError, match="only allowed on CREDIT_CARD"):
            Account(name="Checking", type=AccountType.CHECKING, closing_day=5)

    def test_liquidity(self, checking, card, investment):
        """Test which account types count as liquid."""
        assert checking.is_liquid
        assert not card.is_liquid
        assert not investment.is_liquid
        assert card.is_credit_card


class TestAuditModels:
    """Tests for audit models."""

    def test_audit_event_creation(self):
        """Test AuditEvent creation."""
        event = AuditEvent(
            event_type=AuditEventType.TRANSACTION_CREATED,
            description="Test event",
        )
        assert event.event_id is not None
        assert event.timestamp.tzinfo is not None
        assert event.severity == AuditSeverity.INFO

    def test_audit_event_to_log_dict(self):
        """Test conversion to log dictionary."""
        correlation_id = uuid4()
        event = AuditEvent(
            event_type=AuditEventType.SERIES_GENERATED,
            entity_id="series-1",
            correlation_id=correlation_id,
            description="Test event",
        )
        log_dict = event.to_log_dict()
        assert log_dict["event_type"] == "series_generated"
        assert log_dict["entity_id"] == "series-1"
        assert log_dict["correlation_id"] == str(correlation_id)

    def test_builder_series_resized(self):
        """Test the resize event keeps both series ids."""
        event = AuditEventBuilder.series_resized(
            old_series_id="old",
            new_series_id="new",
            old_count=6,
            new_count=3,
        )
        assert event.event_type == AuditEventType.SERIES_RESIZED
        assert event.entity_id == "new"
        assert event.details["old_series_id"] == "old"
        assert event.is_user_action

    def test_builder_resize_refused_is_warning(self):
        """Test that refusals are recorded as warnings with the reason."""
        event = AuditEventBuilder.series_resize_refused("s", "settled")
        assert event.severity == AuditSeverity.WARNING
        assert event.error_message == "settled"


class TestValidationResult:
    """Tests for ValidationResult model."""

    def test_validation_result_has_errors(self):
        """Test has_errors property."""
        result = ValidationResult(
            schema_valid=True,
            semantic_valid=False,
            issues=[
                ValidationIssue(field="amount", issue_type="missing", message="Amount is missing", severity="error"),
                ValidationIssue(field="date", issue_type="suspicious_date", message="Old date", severity="warning"),
            ],
        )
        assert result.has_errors
        assert result.error_count == 1
        assert result.warnings == ["Old date"]
        assert not result.is_valid

    def test_validation_result_warnings_only(self):
        """Test result with only warnings."""
        result = ValidationResult(
            schema_valid=True,
            semantic_valid=True,
            issues=[
                ValidationIssue(field="amount", issue_type="suspicious_value", message="High", severity="warning"),
            ],
        )
        assert not result.has_errors
        assert result.is_valid


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
