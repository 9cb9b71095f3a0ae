"""
Module: billing_engines
Responsibility:
    Package entrypoint re-exporting the pure calculation engines.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    May only import billing_kernel.domain and billing_kernel.logging_config.
    MUST NOT import billing_modules.

Invariants enforced:
    - Engines never read the clock; times are passed in.
    - Decimal-only arithmetic, half-up rounding through round_money().
    - Identical inputs always produce identical outputs.
"""

from billing_engines.amounts import ItemAmounts, calculate_item_amounts
from billing_engines.statement import (
    AccountStatement,
    EntryType,
    StatementCredit,
    StatementEntry,
    StatementInvoice,
    StatementPayment,
    build_statement,
)
from billing_engines.totals import (
    InvoiceTotals,
    calculate_balance_due,
    calculate_invoice_totals,
)

__all__ = [
    "ItemAmounts",
    "calculate_item_amounts",
    "InvoiceTotals",
    "calculate_invoice_totals",
    "calculate_balance_due",
    "AccountStatement",
    "EntryType",
    "StatementCredit",
    "StatementEntry",
    "StatementInvoice",
    "StatementPayment",
    "build_statement",
]
