"""
FinLedger - Financial Transaction & Accounting Engine

Turns a flat, single-entry transaction log into account balances,
credit-card invoices, installment and recurring series, shared-expense
settlements and a synthesized double-entry ledger.

DESIGN PRINCIPLES:
1. Derivations are pure: same inputs, same outputs, no I/O
2. Generators return records; the caller persists them
3. Money is exact (Decimal, integer cents for splitting)
4. Nothing is physically deleted
5. Time and configuration are injected, never ambient
"""

__version__ = "1.0.0"
__author__ = "FinLedger Team"
