"""
Invoicing Domain Models (``billing_modules.invoicing.models``).

Responsibility
--------------
Frozen dataclass value objects for the nouns of invoicing: invoices, line
items, payments and ledger transactions, plus the inputs callers hand to
the services.

Architecture position
---------------------
**Modules layer** -- pure data definitions with ZERO I/O.  ORM rows are
converted into these (``to_dto()``) before any domain logic runs.

Invariants enforced
-------------------
* All models are ``frozen=True``.
* All monetary fields are ``Decimal`` at 2 dp -- NEVER ``float``.
"""

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Any
from uuid import UUID


class InvoiceStatus(Enum):
    """Invoice lifecycle states."""
    DRAFT = "draft"
    PENDING = "pending"
    OVERDUE = "overdue"
    PAID = "paid"
    CANCELLED = "cancelled"
    REFUNDED = "refunded"


class PaymentMethod(Enum):
    """How a payment was made."""
    CASH = "cash"
    CREDIT_CARD = "credit_card"
    DEBIT_CARD = "debit_card"
    BANK_TRANSFER = "bank_transfer"
    CHECK = "check"
    ONLINE_PAYMENT = "online_payment"
    OTHER = "other"


class TransactionType(Enum):
    """Ledger transaction direction."""
    DEBIT = "debit"
    CREDIT = "credit"
    ADJUSTMENT = "adjustment"


class TransactionStatus(Enum):
    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"


class LedgerTransactionKind(Enum):
    """Value of ``metadata["transaction_type"]`` on a ledger transaction."""
    INVOICE_CREATED = "invoice_created"
    INVOICE_DEBIT = "invoice_debit"
    INVOICE_PAYMENT = "invoice_payment"
    PAYMENT_CREDIT = "payment_credit"


# Statuses that appear on a customer statement (issued invoices).
STATEMENT_STATUSES = (
    InvoiceStatus.PENDING,
    InvoiceStatus.OVERDUE,
    InvoiceStatus.PAID,
    InvoiceStatus.REFUNDED,
)

# Statuses whose balance_due counts towards the outstanding balance.
OPEN_STATUSES = (InvoiceStatus.PENDING, InvoiceStatus.OVERDUE)

# Ledger transactions that represent money received from the customer.
PAYMENT_CREDIT_KINDS = (
    LedgerTransactionKind.PAYMENT_CREDIT,
    LedgerTransactionKind.INVOICE_PAYMENT,
)


@dataclass(frozen=True)
class InvoiceItem:
    """A line on an invoice with its derived amounts."""
    id: UUID
    invoice_id: UUID
    line_number: int
    description: str
    quantity: Decimal
    unit_price: Decimal
    tax_rate: Decimal
    amount: Decimal
    tax_amount: Decimal
    rate_inclusive: Decimal
    line_total: Decimal
    created_at: datetime
    chargeable_id: UUID | None = None
    notes: str | None = None
    updated_at: datetime | None = None
    deleted_at: datetime | None = None
    deleted_by: UUID | None = None

    @property
    def is_deleted(self) -> bool:
        return self.deleted_at is not None


@dataclass(frozen=True)
class Invoice:
    """A customer invoice and its running totals."""
    id: UUID
    customer_id: UUID
    invoice_number: str
    status: InvoiceStatus
    issue_date: datetime
    due_date: datetime
    tax_rate: Decimal
    subtotal: Decimal
    tax_total: Decimal
    total_amount: Decimal
    total_paid: Decimal
    balance_due: Decimal
    created_at: datetime
    paid_date: datetime | None = None
    payment_method: PaymentMethod | None = None
    payment_reference: str | None = None
    reference: str | None = None
    notes: str | None = None
    updated_at: datetime | None = None
    deleted_at: datetime | None = None
    deleted_by: UUID | None = None
    deletion_reason: str | None = None

    @property
    def is_deleted(self) -> bool:
        return self.deleted_at is not None


@dataclass(frozen=True)
class Payment:
    """A payment applied to one invoice.  Immutable once recorded."""
    id: UUID
    invoice_id: UUID
    customer_id: UUID
    amount: Decimal
    method: PaymentMethod
    paid_at: datetime
    reference: str | None = None
    notes: str | None = None
    transaction_id: UUID | None = None
    created_by: UUID | None = None


@dataclass(frozen=True)
class LedgerTransaction:
    """Audit ledger row; also the store of historical payment credits."""
    id: UUID
    customer_id: UUID
    type: TransactionType
    status: TransactionStatus
    amount: Decimal
    description: str | None = None
    metadata: dict[str, Any] = field(default_factory=dict)
    completed_at: datetime | None = None
    created_at: datetime | None = None

    @property
    def kind(self) -> LedgerTransactionKind | None:
        """The ``transaction_type`` tag, or None when absent or unrecognised."""
        try:
            return LedgerTransactionKind(self.metadata.get("transaction_type"))
        except ValueError:
            return None


@dataclass(frozen=True)
class NewInvoiceItem:
    """Caller input for one line of a new invoice or a new item."""
    description: str
    quantity: Decimal
    unit_price: Decimal
    tax_rate: Decimal | None = None
    chargeable_id: UUID | None = None
    notes: str | None = None
