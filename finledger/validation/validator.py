"""
Two-Stage Validation Pipeline

DESIGN DECISION: Validation happens in two distinct stages:

STAGE 1 - SCHEMA VALIDATION:
- Variant selection (INCOME / EXPENSE / TRANSFER)
- Required fields, positive amount, non-empty description, date present
- Transfer source and destination present and distinct
- This is the pydantic model itself; its errors are translated into
  readable issues

STAGE 2 - SEMANTIC VALIDATION:
- Referenced accounts exist
- Suspiciously large amounts, dates far from today
- Likely duplicates of existing rows
- Installment counts, credit limits, split percentages
- Mostly warnings: the user may proceed after reviewing them

IMPORTANT: Validation NEVER silently fixes issues.
Errors block persistence; warnings are reported for review.
"""

from decimal import Decimal
from typing import Any, Iterable, Optional

from pydantic import ValidationError

from finledger.config import Clock, EngineSettings, SystemClock, get_settings
from finledger.models.account import Account, AccountType
from finledger.models.reports import ValidationIssue, ValidationResult
from finledger.models.transaction import (
    Expense,
    Income,
    Transaction,
    Transfer,
    parse_transaction,
)
from finledger.utils.money import format_money, to_cents


class TransactionValidationError(ValueError):
    """Raised when a transaction fails validation. Carries the issues found."""

    def __init__(self, issues: list[ValidationIssue]):
        self.issues = issues
        super().__init__("; ".join(issue.message for issue in issues))


# Readable messages for fields pydantic reports as missing or invalid.
_FIELD_MESSAGES = {
    "amount": "Amount must be greater than zero",
    "description": "Description is required",
    "date": "A valid date is required",
    "account_id": "A source account is required",
    "destination_account_id": "Transfer requires a destination account",
    "type": "Transaction type must be INCOME, EXPENSE or TRANSFER",
}


def _issues_from_pydantic(error: ValidationError) -> list[ValidationIssue]:
    issues = []
    for err in error.errors():
        names = [part for part in err["loc"] if isinstance(part, str)]
        # The first loc element is the union tag; the field follows it.
        field = names[-1] if len(names) > 1 else (names[0] if names else "transaction")
        if err["type"] == "union_tag_invalid" or err["type"] == "union_tag_not_found":
            field = "type"
        message = err["msg"].removeprefix("Value error, ")
        if err["type"] != "value_error" and field in _FIELD_MESSAGES:
            message = _FIELD_MESSAGES[field]
        elif err["type"] == "value_error":
            field = "transaction"
        issues.append(ValidationIssue(
            field=field,
            issue_type="missing" if err["type"] == "missing" else "invalid_value",
            message=message,
            severity="error",
        ))
    return issues


class TransactionValidator:
    """
    Validates transactions through a two-stage pipeline.

    Stage 1: Schema validation (no context needed)
    Stage 2: Semantic validation (uses accounts and existing rows when given)
    """

    def __init__(
        self,
        settings: Optional[EngineSettings] = None,
        clock: Optional[Clock] = None,
    ):
        self._settings = settings or get_settings().engine
        self._clock = clock or SystemClock()

    def _validate_schema(self, data: Any) -> tuple[Optional[Transaction], list[ValidationIssue]]:
        """
        Stage 1: parse into a transaction variant.

        Returns: (transaction_or_none, list_of_issues)
        """
        if isinstance(data, (Income, Expense, Transfer)):
            return data, []
        try:
            return parse_transaction(data), []
        except ValidationError as e:
            return None, _issues_from_pydantic(e)

    def _validate_semantic(
        self,
        tx: Transaction,
        accounts: list[Account],
        existing: list[Transaction],
        installments: Optional[int],
    ) -> list[ValidationIssue]:
        """
        Stage 2: checks that need context.

        Returns: list_of_issues
        """
        issues = []
        today = self._clock.today()
        by_id = {a.id: a for a in accounts if not a.deleted}

        if accounts:
            if tx.account_id and tx.account_id not in by_id:
                issues.append(ValidationIssue(
                    field="account_id",
                    issue_type="not_found",
                    message=f"Account {tx.account_id} does not exist",
                    severity="error",
                    suggested_fix="Pick one of your active accounts",
                ))
            if isinstance(tx, Transfer) and tx.destination_account_id not in by_id:
                issues.append(ValidationIssue(
                    field="destination_account_id",
                    issue_type="not_found",
                    message=f"Destination account {tx.destination_account_id} does not exist",
                    severity="error",
                ))

        if tx.amount > self._settings.large_amount_warning:
            issues.append(ValidationIssue(
                field="amount",
                issue_type="suspicious_value",
                message=f"Amount ({format_money(tx.amount, tx.currency)}) seems unusually high",
                severity="warning",
                suggested_fix="Please verify this amount is correct",
            ))

        distance = abs((tx.date - today).days)
        if distance > self._settings.date_distance_warning_days:
            when = "future" if tx.date > today else "past"
            issues.append(ValidationIssue(
                field="date",
                issue_type="suspicious_date",
                message=f"Date ({tx.date}) is more than a year in the {when}",
                severity="warning",
                suggested_fix="Please verify the date is correct",
            ))

        if any(self._looks_duplicate(tx, other) for other in existing):
            issues.append(ValidationIssue(
                field="duplicate",
                issue_type="potential_duplicate",
                message=f"A transaction '{tx.description}' of {tx.amount} on {tx.date} already exists",
                severity="warning",
                suggested_fix="Please verify this isn't a duplicate entry",
            ))

        account = by_id.get(tx.account_id) if tx.account_id else None

        if installments is not None:
            issues.extend(self._check_installments(tx, installments, account))

        if (
            isinstance(tx, Expense)
            and not tx.is_refund
            and account is not None
            and account.is_credit_card
            and account.credit_limit
        ):
            # Card balances are negative while there is debt.
            available = account.credit_limit + account.balance
            if tx.amount > available:
                issues.append(ValidationIssue(
                    field="amount",
                    issue_type="over_limit",
                    message=f"Amount exceeds the available credit of {format_money(available, account.currency)}",
                    severity="warning",
                ))

        if isinstance(tx, Expense) and tx.is_shared:
            percentages = sum((s.percentage for s in tx.shared_with), Decimal("0"))
            if percentages > 100:
                issues.append(ValidationIssue(
                    field="shared_with",
                    issue_type="invalid_value",
                    message=f"Shared percentages add up to {percentages}%, more than 100%",
                    severity="error",
                ))

        return issues

    def _check_installments(
        self,
        tx: Transaction,
        installments: int,
        account: Optional[Account],
    ) -> list[ValidationIssue]:
        issues = []
        if isinstance(tx, Transfer):
            issues.append(ValidationIssue(
                field="installments",
                issue_type="invalid_value",
                message="Transfers cannot be split into installments",
                severity="error",
            ))
        elif tx.is_recurring:
            issues.append(ValidationIssue(
                field="installments",
                issue_type="invalid_value",
                message="A recurring transaction cannot also be split into installments",
                severity="error",
            ))
        elif installments < self._settings.min_installments:
            issues.append(ValidationIssue(
                field="installments",
                issue_type="invalid_value",
                message=f"At least {self._settings.min_installments} installments are required",
                severity="error",
            ))
        elif installments > self._settings.max_installments:
            issues.append(ValidationIssue(
                field="installments",
                issue_type="invalid_value",
                message=f"At most {self._settings.max_installments} installments are allowed",
                severity="error",
            ))
        elif to_cents(tx.amount) < installments:
            issues.append(ValidationIssue(
                field="installments",
                issue_type="invalid_value",
                message=f"Amount is too small to split into {installments} installments",
                severity="error",
            ))
        elif installments > self._settings.installment_warning_threshold:
            issues.append(ValidationIssue(
                field="installments",
                issue_type="suspicious_value",
                message=f"{installments} installments is an unusually long series",
                severity="warning",
            ))
        if account is not None and not account.is_credit_card:
            issues.append(ValidationIssue(
                field="installments",
                issue_type="unusual",
                message="Installments are usually charged to a credit card",
                severity="info",
            ))
        return issues

    @staticmethod
    def _looks_duplicate(tx: Transaction, other: Transaction) -> bool:
        return (
            not other.deleted
            and other.id != tx.id
            and other.type == tx.type
            and other.date == tx.date
            and other.amount == tx.amount
            and other.account_id == tx.account_id
            and other.description.casefold() == tx.description.casefold()
        )

    def validate(
        self,
        data: Any,
        accounts: Iterable[Account] = (),
        existing: Iterable[Transaction] = (),
        installments: Optional[int] = None,
    ) -> ValidationResult:
        """
        Run the full two-stage pipeline.

        Args:
            data: Raw mapping or transaction model
            accounts: Known accounts; enables reference checks
            existing: Stored transactions; enables duplicate detection
            installments: Requested installment count, if the row is to be split
        """
        tx, issues = self._validate_schema(data)
        if tx is None:
            return ValidationResult(schema_valid=False, semantic_valid=False, issues=issues)

        # Only run stage 2 if stage 1 passes
        issues.extend(self._validate_semantic(tx, list(accounts), list(existing), installments))
        semantic_valid = not any(issue.severity == "error" for issue in issues)
        return ValidationResult(
            schema_valid=True,
            semantic_valid=semantic_valid,
            issues=issues,
            transaction=tx,
        )

    def validate_or_raise(
        self,
        data: Any,
        accounts: Iterable[Account] = (),
        existing: Iterable[Transaction] = (),
        installments: Optional[int] = None,
    ) -> tuple[Transaction, list[str]]:
        """
        Parse and check a transaction, raising on any error.

        Returns:
            (transaction, warnings)

        Raises:
            TransactionValidationError: If any error-level issue was found
        """
        result = self.validate(data, accounts, existing, installments)
        if result.has_errors:
            raise TransactionValidationError(
                [issue for issue in result.issues if issue.severity == "error"]
            )
        return result.transaction, result.warnings

    def get_user_friendly_summary(self, result: ValidationResult) -> str:
        """
        Generate a user-friendly summary of validation results.
        """
        if result.is_valid and not result.warnings:
            return "All checks passed."

        lines = []
        errors = [issue for issue in result.issues if issue.severity == "error"]
        if errors:
            lines.append("Please fix the following:")
            for issue in errors:
                lines.append(f"   - {issue.message}")
                if issue.suggested_fix:
                    lines.append(f"     ({issue.suggested_fix})")

        if result.warnings:
            if lines:
                lines.append("")
            lines.append("Please verify the following:")
            for warning in result.warnings:
                lines.append(f"   - {warning}")

        return "\n".join(lines)


def validate_account(account: Account) -> list[ValidationIssue]:
    """Business checks on an account beyond its schema."""
    issues = []
    if not account.name.strip():
        issues.append(ValidationIssue(
            field="name",
            issue_type="missing",
            message="Account name is required",
            severity="error",
        ))
    if account.type == AccountType.CREDIT_CARD:
        if not account.credit_limit or account.credit_limit <= 0:
            issues.append(ValidationIssue(
                field="credit_limit",
                issue_type="invalid_value",
                message="Credit cards need a credit limit greater than zero",
                severity="error",
            ))
        for field in ("closing_day", "due_day"):
            if getattr(account, field) is None:
                issues.append(ValidationIssue(
                    field=field,
                    issue_type="missing",
                    message=f"Credit cards need a {field.replace('_', ' ')} between 1 and 31",
                    severity="error",
                ))
    return issues


def validate_transaction(data: Any, clock: Optional[Clock] = None) -> Transaction:
    """Parse a transaction or raise TransactionValidationError."""
    tx, _ = TransactionValidator(clock=clock).validate_or_raise(data)
    return tx
