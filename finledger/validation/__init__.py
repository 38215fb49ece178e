"""Validation package."""

from finledger.validation.validator import (
    TransactionValidationError,
    TransactionValidator,
    validate_account,
    validate_transaction,
)

__all__ = [
    "TransactionValidationError",
    "TransactionValidator",
    "validate_account",
    "validate_transaction",
]
