"""
Account model.

DESIGN DECISION: Credit-card cycle fields (closing day, due day, limit) only
exist on CREDIT_CARD accounts. Setting them on any other account type is a
construction error rather than silently ignored data.
"""

from decimal import Decimal
from enum import Enum
from typing import Optional
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field, model_validator


class AccountType(str, Enum):
    """Kinds of accounts a transaction can move money through."""
    CHECKING = "CHECKING"
    SAVINGS = "SAVINGS"
    CREDIT_CARD = "CREDIT_CARD"
    CASH = "CASH"
    INVESTMENT = "INVESTMENT"


# Only these count as money the user can spend right now.
LIQUID_ACCOUNT_TYPES = frozenset({
    AccountType.CHECKING,
    AccountType.SAVINGS,
    AccountType.CASH,
})


class Account(BaseModel):
    """A bank account, wallet, investment or credit card."""

    model_config = ConfigDict(frozen=True, str_strip_whitespace=True)

    id: str = Field(
        default_factory=lambda: str(uuid4()),
        description="Unique account identifier"
    )
    name: str = Field(
        ...,
        min_length=1,
        max_length=120,
        description="Display name, also used as the ledger label"
    )
    type: AccountType = Field(
        ...,
        description="Account type"
    )
    initial_balance: Decimal = Field(
        default=Decimal("0.00"),
        decimal_places=2,
        description="Balance before the first recorded transaction"
    )
    balance: Decimal = Field(
        default=Decimal("0.00"),
        decimal_places=2,
        description="Current balance (derived; overwritten by calculate_balances)"
    )
    currency: str = Field(
        default="BRL",
        min_length=3,
        max_length=3
    )
    deleted: bool = False

    # Credit card only
    credit_limit: Optional[Decimal] = Field(
        default=None,
        ge=0,
        decimal_places=2
    )
    closing_day: Optional[int] = Field(
        default=None,
        ge=1,
        le=31,
        description="Day of month the invoice closes"
    )
    due_day: Optional[int] = Field(
        default=None,
        ge=1,
        le=31,
        description="Day of month the invoice is due"
    )

    @model_validator(mode='after')
    def validate_card_fields(self) -> 'Account':
        if self.type != AccountType.CREDIT_CARD:
            for field in ("credit_limit", "closing_day", "due_day"):
                if getattr(self, field) is not None:
                    raise ValueError(
                        f"{field} is only allowed on CREDIT_CARD accounts"
                    )
        return self

    @property
    def is_credit_card(self) -> bool:
        return self.type == AccountType.CREDIT_CARD

    @property
    def is_liquid(self) -> bool:
        return self.type in LIQUID_ACCOUNT_TYPES

    @property
    def is_active(self) -> bool:
        return not self.deleted
