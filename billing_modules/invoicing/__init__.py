"""
Invoicing Module.

Handles invoices and their line items, payment recording, and customer
account statements.

Services:
    - InvoiceService: create, approve, mark overdue, cancel, delete, query
    - InvoiceItemService: draft-only line item create/update/delete
    - PaymentRecorder: atomic payment application
    - StatementService: running-balance account statement
"""

from billing_modules.invoicing.config import InvoicingConfig
from billing_modules.invoicing.invoices import InvoiceService
from billing_modules.invoicing.items import InvoiceItemService
from billing_modules.invoicing.models import (
    Invoice,
    InvoiceItem,
    InvoiceStatus,
    LedgerTransaction,
    LedgerTransactionKind,
    NewInvoiceItem,
    Payment,
    PaymentMethod,
    TransactionStatus,
    TransactionType,
)
from billing_modules.invoicing.payments import PaymentRecorder, PaymentResult
from billing_modules.invoicing.statements import StatementService
from billing_modules.invoicing.workflows import INVOICE_WORKFLOW, assert_transition

__all__ = [
    "InvoicingConfig",
    "InvoiceService",
    "InvoiceItemService",
    "PaymentRecorder",
    "PaymentResult",
    "StatementService",
    "Invoice",
    "InvoiceItem",
    "InvoiceStatus",
    "LedgerTransaction",
    "LedgerTransactionKind",
    "NewInvoiceItem",
    "Payment",
    "PaymentMethod",
    "TransactionStatus",
    "TransactionType",
    "INVOICE_WORKFLOW",
    "assert_transition",
]
