"""
Transaction Models

A transaction is a tagged union of three variants, discriminated by `type`:

    Income    money entering an account
    Expense   money leaving an account (may be split with other people)
    Transfer  money moving between two of the user's accounts

DESIGN DECISION: Illegal combinations are unrepresentable. A Transfer has no
installment, sharing or refund fields; installment and recurrence info are
mutually exclusive; shared splits can never exceed the expense amount. All of
this is checked when the model is constructed, so the engine never has to
defend against half-valid records.

Models are frozen. Generators and mutations produce new instances with
model_copy(update=...) and hand them back to the caller for persistence.
"""

import datetime as dt
from decimal import Decimal
from enum import Enum
from typing import Annotated, Any, Literal, Optional, Union
from uuid import uuid4

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    TypeAdapter,
    model_validator,
)

# Payer id meaning "the user paid". Any other payer id is a third party.
SELF_PAYER_ID = "me"


def new_id() -> str:
    return str(uuid4())


# =============================================================================
# ENUMS
# =============================================================================

class TransactionType(str, Enum):
    """Discriminator values for the transaction union."""
    INCOME = "INCOME"
    EXPENSE = "EXPENSE"
    TRANSFER = "TRANSFER"


class Frequency(str, Enum):
    """How often a recurring template repeats."""
    DAILY = "DAILY"
    WEEKLY = "WEEKLY"
    MONTHLY = "MONTHLY"
    YEARLY = "YEARLY"


# =============================================================================
# NESTED INFO BLOCKS
# =============================================================================

class InstallmentInfo(BaseModel):
    """Position of a row inside an installment series."""

    model_config = ConfigDict(frozen=True)

    series_id: str = Field(
        ...,
        min_length=1,
        description="Shared by every installment of one purchase"
    )
    current: int = Field(..., ge=1, description="1-based installment number")
    total: int = Field(..., ge=2, description="Number of installments in the series")
    original_amount: Decimal = Field(
        ...,
        gt=0,
        decimal_places=2,
        description="Purchase total before splitting"
    )
    anchor_date: dt.date = Field(
        ...,
        description="Date of the first installment; later ones keep its day-of-month"
    )

    @model_validator(mode='after')
    def validate_position(self) -> 'InstallmentInfo':
        if self.current > self.total:
            raise ValueError(
                f"Installment {self.current} is beyond series length {self.total}"
            )
        return self


class RecurrenceInfo(BaseModel):
    """Marks a transaction as a template for recurring occurrences."""

    model_config = ConfigDict(frozen=True)

    frequency: Frequency
    recurrence_day: Optional[int] = Field(
        default=None,
        ge=1,
        le=31,
        description="Anchor day-of-month for MONTHLY (defaults to the template's day)"
    )
    last_generated: Optional[dt.date] = Field(
        default=None,
        description="Date of the most recently materialized occurrence"
    )


class SharedSplit(BaseModel):
    """One other person's share of an expense."""

    model_config = ConfigDict(frozen=True, str_strip_whitespace=True)

    member_id: str = Field(..., min_length=1)
    percentage: Decimal = Field(
        default=Decimal("0"),
        ge=0,
        le=100,
        description="Share of the expense as a percentage"
    )
    assigned_amount: Decimal = Field(
        ...,
        ge=0,
        decimal_places=2,
        description="Amount this member owes"
    )
    is_settled: bool = Field(
        default=False,
        description="Whether this member's share has been paid back"
    )


# =============================================================================
# TRANSACTION VARIANTS
# =============================================================================

class TransactionBase(BaseModel):
    """Fields shared by every transaction variant."""

    model_config = ConfigDict(
        frozen=True,
        extra="forbid",
        str_strip_whitespace=True,
    )

    id: str = Field(default_factory=new_id)
    date: dt.date = Field(
        ...,
        description="Calendar date; no time-of-day semantics"
    )
    amount: Decimal = Field(
        ...,
        gt=0,
        decimal_places=2,
        description="Positive amount in the currency of the account"
    )
    description: str = Field(..., min_length=1, max_length=500)
    category: str = Field(default="Other", min_length=1)
    account_id: Optional[str] = Field(
        default=None,
        description="Source account"
    )
    currency: str = Field(default="BRL", min_length=3, max_length=3)
    deleted: bool = Field(
        default=False,
        description="Soft-delete flag; deleted rows are excluded from every view"
    )
    is_settled: bool = False
    recurrence: Optional[RecurrenceInfo] = None

    @property
    def is_recurring(self) -> bool:
        return self.recurrence is not None

    @property
    def is_installment(self) -> bool:
        return getattr(self, "installment", None) is not None

    @property
    def series_id(self) -> Optional[str]:
        installment = getattr(self, "installment", None)
        return installment.series_id if installment else None

    def _require_account(self) -> None:
        if not self.account_id:
            raise ValueError(f"{self.type} requires an account_id")


class Income(TransactionBase):
    type: Literal["INCOME"] = "INCOME"
    is_refund: bool = Field(
        default=False,
        description="A reversal of income: subtracts instead of adds"
    )
    installment: Optional[InstallmentInfo] = None

    @model_validator(mode='after')
    def validate_income(self) -> 'Income':
        self._require_account()
        if self.installment and self.recurrence:
            raise ValueError("A transaction cannot be both installment and recurring")
        return self


class Expense(TransactionBase):
    type: Literal["EXPENSE"] = "EXPENSE"
    is_refund: bool = Field(
        default=False,
        description="A refund: adds back instead of subtracting"
    )
    installment: Optional[InstallmentInfo] = None
    shared_with: list[SharedSplit] = Field(
        default_factory=list,
        description="Ordered shares of other people"
    )
    payer_id: Optional[str] = Field(
        default=None,
        description="Who paid; None or 'me' means the user"
    )

    @property
    def is_shared(self) -> bool:
        return bool(self.shared_with)

    @property
    def paid_by_user(self) -> bool:
        return self.payer_id in (None, "", SELF_PAYER_ID)

    @property
    def assigned_total(self) -> Decimal:
        return sum((s.assigned_amount for s in self.shared_with), Decimal("0.00"))

    @model_validator(mode='after')
    def validate_expense(self) -> 'Expense':
        # A third party may have paid without the user picking an account yet.
        if self.paid_by_user:
            self._require_account()
        if self.installment and self.recurrence:
            raise ValueError("A transaction cannot be both installment and recurring")
        if self.assigned_total > self.amount:
            raise ValueError(
                f"Shared amounts ({self.assigned_total}) exceed the expense amount ({self.amount})"
            )
        members = [s.member_id for s in self.shared_with]
        if len(members) != len(set(members)):
            raise ValueError("A member can appear only once in shared_with")
        return self


class Transfer(TransactionBase):
    type: Literal["TRANSFER"] = "TRANSFER"
    destination_account_id: str = Field(..., min_length=1)
    destination_amount: Optional[Decimal] = Field(
        default=None,
        gt=0,
        decimal_places=2,
        description="Amount credited to the destination when currencies differ"
    )

    @model_validator(mode='before')
    @classmethod
    def reject_refund_flag(cls, data: Any) -> Any:
        # Stored rows may carry is_refund=False; only a true flag is illegal.
        if isinstance(data, dict) and "is_refund" in data:
            if data["is_refund"]:
                raise ValueError("is_refund is not applicable to TRANSFER")
            data = {k: v for k, v in data.items() if k != "is_refund"}
        return data

    @model_validator(mode='after')
    def validate_transfer(self) -> 'Transfer':
        self._require_account()
        if self.destination_account_id == self.account_id:
            raise ValueError("Transfer source and destination must differ")
        return self

    @property
    def is_refund(self) -> bool:
        return False

    @property
    def credited_amount(self) -> Decimal:
        return self.destination_amount or self.amount


Transaction = Annotated[
    Union[Income, Expense, Transfer],
    Field(discriminator="type"),
]

_transaction_adapter: TypeAdapter[Transaction] = TypeAdapter(Transaction)
_transaction_list_adapter: TypeAdapter[list[Transaction]] = TypeAdapter(list[Transaction])


def parse_transaction(data: Any) -> Transaction:
    """Validate a raw mapping into the matching transaction variant."""
    return _transaction_adapter.validate_python(data)


def parse_transactions(data: Any) -> list[Transaction]:
    return _transaction_list_adapter.validate_python(data)


def active(transactions: list[Transaction]) -> list[Transaction]:
    """Transactions that are not soft-deleted."""
    return [tx for tx in transactions if not tx.deleted]
