"""
Invoicing ORM Models (``billing_modules.invoicing.orm``).

Responsibility
--------------
SQLAlchemy persistence models for the invoicing module.  Maps frozen
domain dataclasses from ``models.py`` to database tables.  Every money
column goes through ``MoneyType`` so loaded values are 2-dp ``Decimal``
whatever the driver returns.

Architecture position
---------------------
**Modules layer** -- persistence.  Imports from ``billing_kernel.db`` and
sibling ``models.py``.  MUST NOT be imported by ``billing_kernel``.
"""

from datetime import datetime
from decimal import Decimal
from typing import Any
from uuid import UUID

from sqlalchemy import JSON, ForeignKey, Index, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from billing_kernel.db.base import Base, TrackedBase
from billing_kernel.db.types import MoneyType
from billing_modules.invoicing.models import (
    Invoice,
    InvoiceItem,
    InvoiceStatus,
    LedgerTransaction,
    Payment,
    PaymentMethod,
    TransactionStatus,
    TransactionType,
)


# ---------------------------------------------------------------------------
# 1. InvoiceModel
# ---------------------------------------------------------------------------


class InvoiceModel(TrackedBase):
    """
    ORM model for invoices.

    Guarantees:
        - invoice_number is unique (uq_invoices_invoice_number).
        - balance_due == total_amount - total_paid after every service write.
        - status stored as string enum value.
    """

    __tablename__ = "invoices"

    __table_args__ = (
        UniqueConstraint("invoice_number", name="uq_invoices_invoice_number"),
        Index("idx_invoices_customer_id", "customer_id"),
        Index("idx_invoices_status", "status"),
        Index("idx_invoices_issue_date", "issue_date"),
    )

    customer_id: Mapped[UUID] = mapped_column(nullable=False)
    invoice_number: Mapped[str] = mapped_column(String(50), nullable=False)
    status: Mapped[str] = mapped_column(String(20), default="draft", nullable=False)
    issue_date: Mapped[datetime] = mapped_column(nullable=False)
    due_date: Mapped[datetime] = mapped_column(nullable=False)
    paid_date: Mapped[datetime | None] = mapped_column(nullable=True)
    tax_rate: Mapped[Decimal] = mapped_column(nullable=False)
    subtotal: Mapped[Decimal] = mapped_column(MoneyType(), nullable=False, default=Decimal("0"))
    tax_total: Mapped[Decimal] = mapped_column(MoneyType(), nullable=False, default=Decimal("0"))
    total_amount: Mapped[Decimal] = mapped_column(MoneyType(), nullable=False, default=Decimal("0"))
    total_paid: Mapped[Decimal] = mapped_column(MoneyType(), nullable=False, default=Decimal("0"))
    balance_due: Mapped[Decimal] = mapped_column(MoneyType(), nullable=False, default=Decimal("0"))
    payment_method: Mapped[str | None] = mapped_column(String(30), nullable=True)
    payment_reference: Mapped[str | None] = mapped_column(String(255), nullable=True)
    reference: Mapped[str | None] = mapped_column(String(255), nullable=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    deleted_at: Mapped[datetime | None] = mapped_column(nullable=True)
    deleted_by: Mapped[UUID | None] = mapped_column(nullable=True)
    deletion_reason: Mapped[str | None] = mapped_column(Text, nullable=True)

    items: Mapped[list["InvoiceItemModel"]] = relationship(
        back_populates="invoice",
        order_by="InvoiceItemModel.line_number",
        lazy="select",
    )

    def to_dto(self) -> Invoice:
        """Convert ORM model to frozen dataclass."""
        return Invoice(
            id=self.id,
            customer_id=self.customer_id,
            invoice_number=self.invoice_number,
            status=InvoiceStatus(self.status),
            issue_date=self.issue_date,
            due_date=self.due_date,
            tax_rate=self.tax_rate,
            subtotal=self.subtotal,
            tax_total=self.tax_total,
            total_amount=self.total_amount,
            total_paid=self.total_paid,
            balance_due=self.balance_due,
            created_at=self.created_at,
            paid_date=self.paid_date,
            payment_method=PaymentMethod(self.payment_method) if self.payment_method else None,
            payment_reference=self.payment_reference,
            reference=self.reference,
            notes=self.notes,
            updated_at=self.updated_at,
            deleted_at=self.deleted_at,
            deleted_by=self.deleted_by,
            deletion_reason=self.deletion_reason,
        )

    def __repr__(self) -> str:
        return f"<InvoiceModel {self.invoice_number}: {self.status}>"


# ---------------------------------------------------------------------------
# 2. InvoiceItemModel
# ---------------------------------------------------------------------------


class InvoiceItemModel(TrackedBase):
    """
    ORM model for invoice line items.

    Derived columns (amount, tax_amount, rate_inclusive, line_total) are
    written only from ``calculate_item_amounts`` results.  Items are
    soft-deleted; ``deleted_at IS NULL`` marks the live set.  ``line_number``
    is assigned under the invoice row lock and gives creation order.
    """

    __tablename__ = "invoice_items"

    __table_args__ = (
        Index("idx_invoice_items_invoice_id", "invoice_id"),
    )

    invoice_id: Mapped[UUID] = mapped_column(ForeignKey("invoices.id"), nullable=False)
    line_number: Mapped[int] = mapped_column(nullable=False)
    chargeable_id: Mapped[UUID | None] = mapped_column(nullable=True)
    description: Mapped[str] = mapped_column(String(500), nullable=False)
    quantity: Mapped[Decimal] = mapped_column(nullable=False)
    unit_price: Mapped[Decimal] = mapped_column(MoneyType(), nullable=False)
    tax_rate: Mapped[Decimal] = mapped_column(nullable=False)
    amount: Mapped[Decimal] = mapped_column(MoneyType(), nullable=False)
    tax_amount: Mapped[Decimal] = mapped_column(MoneyType(), nullable=False)
    rate_inclusive: Mapped[Decimal] = mapped_column(MoneyType(), nullable=False)
    line_total: Mapped[Decimal] = mapped_column(MoneyType(), nullable=False)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    deleted_at: Mapped[datetime | None] = mapped_column(nullable=True)
    deleted_by: Mapped[UUID | None] = mapped_column(nullable=True)

    invoice: Mapped["InvoiceModel"] = relationship(back_populates="items")

    def to_dto(self) -> InvoiceItem:
        """Convert ORM model to frozen dataclass."""
        return InvoiceItem(
            id=self.id,
            invoice_id=self.invoice_id,
            line_number=self.line_number,
            description=self.description,
            quantity=self.quantity,
            unit_price=self.unit_price,
            tax_rate=self.tax_rate,
            amount=self.amount,
            tax_amount=self.tax_amount,
            rate_inclusive=self.rate_inclusive,
            line_total=self.line_total,
            created_at=self.created_at,
            chargeable_id=self.chargeable_id,
            notes=self.notes,
            updated_at=self.updated_at,
            deleted_at=self.deleted_at,
            deleted_by=self.deleted_by,
        )

    def __repr__(self) -> str:
        return f"<InvoiceItemModel {self.description}: {self.line_total}>"


# ---------------------------------------------------------------------------
# 3. PaymentModel
# ---------------------------------------------------------------------------


class PaymentModel(TrackedBase):
    """
    ORM model for payments applied to invoices.

    ``customer_id`` is copied from the invoice at insert time so statement
    queries can filter payments by customer directly.  ``transaction_id``
    points at the ledger transaction written in the same database
    transaction.
    """

    __tablename__ = "invoice_payments"

    __table_args__ = (
        Index("idx_invoice_payments_invoice_id", "invoice_id"),
        Index("idx_invoice_payments_customer_id", "customer_id"),
        Index("idx_invoice_payments_paid_at", "paid_at"),
    )

    invoice_id: Mapped[UUID] = mapped_column(ForeignKey("invoices.id"), nullable=False)
    customer_id: Mapped[UUID] = mapped_column(nullable=False)
    amount: Mapped[Decimal] = mapped_column(MoneyType(), nullable=False)
    payment_method: Mapped[str] = mapped_column(String(30), nullable=False)
    payment_reference: Mapped[str | None] = mapped_column(String(255), nullable=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    paid_at: Mapped[datetime] = mapped_column(nullable=False)
    transaction_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("ledger_transactions.id"), nullable=True
    )

    invoice: Mapped["InvoiceModel"] = relationship(lazy="joined")

    def to_dto(self) -> Payment:
        """Convert ORM model to frozen dataclass."""
        return Payment(
            id=self.id,
            invoice_id=self.invoice_id,
            customer_id=self.customer_id,
            amount=self.amount,
            method=PaymentMethod(self.payment_method),
            paid_at=self.paid_at,
            reference=self.payment_reference,
            notes=self.notes,
            transaction_id=self.transaction_id,
            created_by=self.created_by_id,
        )

    def __repr__(self) -> str:
        return f"<PaymentModel {self.amount} ({self.payment_method})>"


# ---------------------------------------------------------------------------
# 4. LedgerTransactionModel
# ---------------------------------------------------------------------------


class LedgerTransactionModel(TrackedBase):
    """
    ORM model for the customer ledger transactions.

    Serves two purposes: the audit trail written alongside invoice creation,
    approval and payment, and the store of historical payment credits that
    were recorded without an ``invoice_payments`` row.  The JSON column is
    named ``metadata`` in the table; the attribute is ``tx_metadata`` since
    ``metadata`` is reserved on declarative classes.
    """

    __tablename__ = "ledger_transactions"

    __table_args__ = (
        Index("idx_ledger_transactions_customer_id", "customer_id"),
        Index("idx_ledger_transactions_completed_at", "completed_at"),
    )

    customer_id: Mapped[UUID] = mapped_column(nullable=False)
    type: Mapped[str] = mapped_column(String(20), nullable=False)
    status: Mapped[str] = mapped_column(String(20), nullable=False)
    amount: Mapped[Decimal] = mapped_column(MoneyType(), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    tx_metadata: Mapped[dict[str, Any]] = mapped_column(
        "metadata", JSON, nullable=False, default=dict
    )
    completed_at: Mapped[datetime | None] = mapped_column(nullable=True)

    def to_dto(self) -> LedgerTransaction:
        """Convert ORM model to frozen dataclass."""
        return LedgerTransaction(
            id=self.id,
            customer_id=self.customer_id,
            type=TransactionType(self.type),
            status=TransactionStatus(self.status),
            amount=self.amount,
            description=self.description,
            metadata=dict(self.tx_metadata or {}),
            completed_at=self.completed_at,
            created_at=self.created_at,
        )

    def __repr__(self) -> str:
        return f"<LedgerTransactionModel {self.type} {self.amount}>"


# ---------------------------------------------------------------------------
# 5. SequenceCounterModel
# ---------------------------------------------------------------------------


class SequenceCounterModel(Base):
    """
    Named counter row.  Row-level locking serializes allocations.
    """

    __tablename__ = "sequence_counters"

    name: Mapped[str] = mapped_column(String(50), nullable=False, unique=True)
    current_value: Mapped[int] = mapped_column(nullable=False, default=0)
