"""
Data Models Package

This package contains all Pydantic models used by FinLedger.
All data flowing through the engine must conform to these schemas.
"""

from finledger.models.account import LIQUID_ACCOUNT_TYPES, Account, AccountType
from finledger.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)
from finledger.models.reports import (
    CashFlowRow,
    FinancialHealth,
    HealthStatus,
    Invoice,
    InvoiceStatus,
    LedgerEntry,
    LedgerReport,
    ProjectedBalance,
    RecurrenceCatchUp,
    SeriesReplacement,
    SessionSnapshot,
    SettlementInstruction,
    TrialBalanceItem,
    ValidationIssue,
    ValidationResult,
)
from finledger.models.transaction import (
    SELF_PAYER_ID,
    Expense,
    Frequency,
    Income,
    InstallmentInfo,
    RecurrenceInfo,
    SharedSplit,
    Transaction,
    TransactionType,
    Transfer,
    active,
    new_id,
    parse_transaction,
    parse_transactions,
)

__all__ = [
    # Accounts
    "LIQUID_ACCOUNT_TYPES",
    "Account",
    "AccountType",
    # Transactions
    "SELF_PAYER_ID",
    "Expense",
    "Frequency",
    "Income",
    "InstallmentInfo",
    "RecurrenceInfo",
    "SharedSplit",
    "Transaction",
    "TransactionType",
    "Transfer",
    "active",
    "new_id",
    "parse_transaction",
    "parse_transactions",
    # Reports
    "CashFlowRow",
    "FinancialHealth",
    "HealthStatus",
    "Invoice",
    "InvoiceStatus",
    "LedgerEntry",
    "LedgerReport",
    "ProjectedBalance",
    "RecurrenceCatchUp",
    "SeriesReplacement",
    "SessionSnapshot",
    "SettlementInstruction",
    "TrialBalanceItem",
    "ValidationIssue",
    "ValidationResult",
    # Audit models
    "AuditEvent",
    "AuditEventBuilder",
    "AuditEventType",
    "AuditSeverity",
]
