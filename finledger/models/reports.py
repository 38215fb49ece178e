"""
Derived views and generator results.

Everything here is produced by the engine and never persisted by it.
"""

import datetime as dt
from decimal import Decimal
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from finledger.models.account import Account
from finledger.models.transaction import Transaction


# =============================================================================
# LEDGER
# =============================================================================

class LedgerEntry(BaseModel):
    """A synthesized double-entry record for one transaction."""

    model_config = ConfigDict(frozen=True)

    transaction_id: str
    date: dt.date
    description: str
    debit: str = Field(..., description="Label of the debited account or category")
    credit: str = Field(..., description="Label of the credited account or category")
    amount: Decimal


class TrialBalanceItem(BaseModel):
    """Totals for one ledger label."""

    model_config = ConfigDict(frozen=True)

    label: str
    debit: Decimal
    credit: Decimal
    balance: Decimal = Field(..., description="debit - credit")


class LedgerReport(BaseModel):
    """Ledger entries plus the transactions that were left out."""

    entries: list[LedgerEntry] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)


# =============================================================================
# INVOICES AND CASH FLOW
# =============================================================================

class InvoiceStatus(str, Enum):
    OPEN = "OPEN"
    CLOSED = "CLOSED"


class Invoice(BaseModel):
    """A credit-card bill for one reference month."""

    account_id: str
    year: int
    month: int = Field(..., ge=1, le=12)
    window_start: dt.date = Field(..., description="First day of the cycle (inclusive)")
    closing_date: dt.date = Field(..., description="Last day of the cycle (inclusive)")
    due_date: dt.date
    total: Decimal
    window_transactions: list[Transaction] = Field(default_factory=list)
    status: InvoiceStatus
    days_to_close: int = Field(
        ...,
        ge=0,
        description="Days until the cycle closes; 0 once closed"
    )


class CashFlowRow(BaseModel):
    """Accrual versus cash view of one month."""

    month: str = Field(..., pattern=r"^\d{4}-\d{2}$")
    accrual: Decimal = Field(..., description="Personal cost of purchases made this month")
    cash: Decimal = Field(..., description="Money that actually left liquid accounts this month")

    @property
    def difference(self) -> Decimal:
        return self.accrual - self.cash


class ProjectedBalance(BaseModel):
    """Liquid funds now and at the end of the month."""

    current: Decimal
    pending_income: Decimal
    pending_expenses: Decimal
    projected: Decimal
    currency: str


class HealthStatus(str, Enum):
    POSITIVE = "POSITIVE"
    WARNING = "WARNING"
    CRITICAL = "CRITICAL"


class FinancialHealth(BaseModel):
    status: HealthStatus
    income: Decimal
    expenses: Decimal
    savings_rate: Decimal = Field(..., description="(income - expenses) / income")
    message: str


# =============================================================================
# SHARED EXPENSES
# =============================================================================

class SettlementInstruction(BaseModel):
    """One payment that settles part of a group's debts."""

    model_config = ConfigDict(frozen=True)

    debtor: str
    creditor: str
    amount: Decimal = Field(..., gt=0)


# =============================================================================
# GENERATOR RESULTS
# =============================================================================

class SeriesReplacement(BaseModel):
    """
    Result of resizing an installment series.

    `retired` holds every old row marked deleted, `created` holds the new
    series. Both lists must be persisted together or not at all.
    """

    old_series_id: str
    new_series_id: str
    retired: list[Transaction]
    created: list[Transaction]

    @property
    def records(self) -> list[Transaction]:
        return [*self.retired, *self.created]


class RecurrenceCatchUp(BaseModel):
    """New occurrences plus templates whose last_generated moved."""

    new_transactions: list[Transaction] = Field(default_factory=list)
    template_updates: list[Transaction] = Field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return not self.new_transactions and not self.template_updates


# =============================================================================
# VALIDATION MODELS
# =============================================================================

class ValidationIssue(BaseModel):
    """A single validation issue found."""

    field: str = Field(
        ...,
        description="Field with the issue"
    )
    issue_type: str = Field(
        ...,
        description="Type of issue (e.g., 'missing', 'invalid_value', 'suspicious_value')"
    )
    message: str = Field(
        ...,
        description="Human-readable description of the issue"
    )
    severity: str = Field(
        ...,
        pattern="^(error|warning|info)$",
        description="Issue severity"
    )
    suggested_fix: Optional[str] = Field(
        default=None,
        description="Suggested fix if available"
    )


class ValidationResult(BaseModel):
    """
    Result of the two-stage validation.

    Stage 1: Schema validation (types, required fields, variant rules)
    Stage 2: Semantic validation (suspicious values, duplicates, limits)
    """

    schema_valid: bool
    semantic_valid: bool
    issues: list[ValidationIssue] = Field(default_factory=list)
    transaction: Optional[Transaction] = Field(
        default=None,
        description="The parsed transaction when the schema stage passed"
    )

    @property
    def is_valid(self) -> bool:
        return self.schema_valid and self.semantic_valid

    @property
    def warnings(self) -> list[str]:
        return [i.message for i in self.issues if i.severity == "warning"]

    @property
    def has_errors(self) -> bool:
        """Check if there are any error-level issues."""
        return any(issue.severity == "error" for issue in self.issues)

    @property
    def error_count(self) -> int:
        """Count error-level issues."""
        return sum(1 for issue in self.issues if issue.severity == "error")


# =============================================================================
# SESSION SNAPSHOT
# =============================================================================

class SessionSnapshot(BaseModel):
    """Every derived view of the current data, computed in one pass."""

    as_of: dt.date
    accounts: list[Account]
    liquid_funds: Decimal
    projection: ProjectedBalance
    ledger: list[LedgerEntry]
    ledger_warnings: list[str] = Field(default_factory=list)
    trial_balance: list[TrialBalanceItem]
    consistency_issues: list[str] = Field(default_factory=list)
    receivables: Decimal
    payables: Decimal
