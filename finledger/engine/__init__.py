"""
Derivation and generation engine.

Pure, synchronous functions and classes. Nothing in this package performs
I/O; generators return records for the caller to persist.
"""

from finledger.engine.balances import (
    BalanceEngine,
    CurrencyConversionError,
    calculate_balances,
)
from finledger.engine.cashflow import CashFlowReporter, cash_flow_report
from finledger.engine.consistency import ConsistencyChecker, check_consistency
from finledger.engine.installments import (
    AnticipationError,
    InstallmentError,
    InstallmentSeriesGenerator,
    SeriesResizeRefusedError,
    TransactionNotFoundError,
    anticipate_installments,
    delete_series,
    delete_transaction,
    generate_installments,
    resize_series,
)
from finledger.engine.invoices import InvoiceCycleCalculator, InvoiceError, compute_invoice
from finledger.engine.ledger import (
    LedgerGenerator,
    TrialBalanceAggregator,
    generate_ledger,
    get_trial_balance,
)
from finledger.engine.recurrence import RecurrenceEngine, advance, run_recurrence_catchup
from finledger.engine.shared import (
    SharedExpenseCalculator,
    calculate_effective_personal_cost,
    compute_net_settlement,
)

__all__ = [
    # Components
    "BalanceEngine",
    "CashFlowReporter",
    "ConsistencyChecker",
    "InstallmentSeriesGenerator",
    "InvoiceCycleCalculator",
    "LedgerGenerator",
    "RecurrenceEngine",
    "SharedExpenseCalculator",
    "TrialBalanceAggregator",
    # Functions
    "advance",
    "anticipate_installments",
    "calculate_balances",
    "calculate_effective_personal_cost",
    "cash_flow_report",
    "check_consistency",
    "compute_invoice",
    "compute_net_settlement",
    "delete_series",
    "delete_transaction",
    "generate_installments",
    "generate_ledger",
    "get_trial_balance",
    "resize_series",
    "run_recurrence_catchup",
    # Exceptions
    "AnticipationError",
    "CurrencyConversionError",
    "InstallmentError",
    "InvoiceError",
    "SeriesResizeRefusedError",
    "TransactionNotFoundError",
]
