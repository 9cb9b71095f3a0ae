"""
Invoicing selectors -- read-only queries.

Selectors accept a Session from the caller, never add/flush/commit, and
return frozen DTOs (or engine input records) rather than ORM rows.  The
statement queries live here so the statement service is pure
orchestration.

Date bounds are inclusive on both ends.
"""

from datetime import datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from billing_engines.statement import (
    StatementCredit,
    StatementInvoice,
    StatementPayment,
)
from billing_kernel.domain.money import ZERO, round_money
from billing_modules.invoicing.models import (
    OPEN_STATUSES,
    PAYMENT_CREDIT_KINDS,
    STATEMENT_STATUSES,
    Invoice,
    InvoiceItem,
    InvoiceStatus,
    LedgerTransaction,
    Payment,
    TransactionStatus,
    TransactionType,
)
from billing_modules.invoicing.orm import (
    InvoiceItemModel,
    InvoiceModel,
    LedgerTransactionModel,
    PaymentModel,
)


def _status_values(statuses) -> list[str]:
    return [s.value for s in statuses]


class InvoiceSelector:
    """Read access to invoices, items, payments and payment credits."""

    def __init__(self, session: Session):
        self.session = session

    # -------------------------------------------------------------------------
    # Invoices and items
    # -------------------------------------------------------------------------

    def get_invoice(self, invoice_id: UUID) -> Invoice | None:
        """Non-deleted invoice by id."""
        row = self.session.execute(
            select(InvoiceModel).where(
                InvoiceModel.id == invoice_id,
                InvoiceModel.deleted_at.is_(None),
            )
        ).scalar_one_or_none()
        return row.to_dto() if row is not None else None

    def list_invoices(
        self,
        customer_id: UUID,
        statuses: tuple[InvoiceStatus, ...] | None = None,
    ) -> list[Invoice]:
        stmt = select(InvoiceModel).where(
            InvoiceModel.customer_id == customer_id,
            InvoiceModel.deleted_at.is_(None),
        )
        if statuses:
            stmt = stmt.where(InvoiceModel.status.in_(_status_values(statuses)))
        stmt = stmt.order_by(InvoiceModel.issue_date, InvoiceModel.invoice_number)
        return [row.to_dto() for row in self.session.execute(stmt).scalars()]

    def active_items(self, invoice_id: UUID) -> list[InvoiceItem]:
        """Non-deleted items in creation order."""
        rows = self.session.execute(
            select(InvoiceItemModel)
            .where(
                InvoiceItemModel.invoice_id == invoice_id,
                InvoiceItemModel.deleted_at.is_(None),
            )
            .order_by(InvoiceItemModel.line_number)
        ).scalars()
        return [row.to_dto() for row in rows]

    def payments_for_invoice(self, invoice_id: UUID) -> list[Payment]:
        rows = self.session.execute(
            select(PaymentModel)
            .where(PaymentModel.invoice_id == invoice_id)
            .order_by(PaymentModel.paid_at, PaymentModel.created_at)
        ).scalars()
        return [row.to_dto() for row in rows]

    def ledger_transactions(self, customer_id: UUID) -> list[LedgerTransaction]:
        rows = self.session.execute(
            select(LedgerTransactionModel)
            .where(LedgerTransactionModel.customer_id == customer_id)
            .order_by(LedgerTransactionModel.created_at)
        ).scalars()
        return [row.to_dto() for row in rows]

    # -------------------------------------------------------------------------
    # Statement inputs
    # -------------------------------------------------------------------------

    def statement_invoices(
        self,
        customer_id: UUID,
        start: datetime | None = None,
        end: datetime | None = None,
    ) -> list[StatementInvoice]:
        """Issued, non-deleted invoices of the customer in the window."""
        stmt = select(InvoiceModel).where(
            InvoiceModel.customer_id == customer_id,
            InvoiceModel.deleted_at.is_(None),
            InvoiceModel.status.in_(_status_values(STATEMENT_STATUSES)),
        )
        if start is not None:
            stmt = stmt.where(InvoiceModel.issue_date >= start)
        if end is not None:
            stmt = stmt.where(InvoiceModel.issue_date <= end)
        stmt = stmt.order_by(InvoiceModel.issue_date)

        return [
            StatementInvoice(
                id=row.id,
                invoice_number=row.invoice_number,
                reference=row.reference,
                issue_date=row.issue_date,
                total_amount=row.total_amount,
            )
            for row in self.session.execute(stmt).scalars()
        ]

    def statement_payments(
        self,
        customer_id: UUID,
        start: datetime | None = None,
        end: datetime | None = None,
    ) -> list[StatementPayment]:
        """All payments of the customer in the window, with invoice numbers."""
        stmt = (
            select(PaymentModel, InvoiceModel.invoice_number)
            .outerjoin(InvoiceModel, InvoiceModel.id == PaymentModel.invoice_id)
            .where(PaymentModel.customer_id == customer_id)
        )
        if start is not None:
            stmt = stmt.where(PaymentModel.paid_at >= start)
        if end is not None:
            stmt = stmt.where(PaymentModel.paid_at <= end)
        stmt = stmt.order_by(PaymentModel.paid_at, PaymentModel.created_at)

        return [
            StatementPayment(
                id=payment.id,
                amount=payment.amount,
                method=payment.payment_method,
                paid_at=payment.paid_at,
                reference=payment.payment_reference,
                invoice_number=invoice_number,
                transaction_id=payment.transaction_id,
            )
            for payment, invoice_number in self.session.execute(stmt).all()
        ]

    def payment_credits(
        self,
        customer_id: UUID,
        start: datetime | None = None,
        end: datetime | None = None,
    ) -> list[StatementCredit]:
        """Completed credit/adjustment transactions tagged as payment credits."""
        kind = LedgerTransactionModel.tx_metadata["transaction_type"].as_string()
        stmt = select(LedgerTransactionModel).where(
            LedgerTransactionModel.customer_id == customer_id,
            LedgerTransactionModel.status == TransactionStatus.COMPLETED.value,
            LedgerTransactionModel.type.in_(
                [TransactionType.CREDIT.value, TransactionType.ADJUSTMENT.value]
            ),
            kind.in_([k.value for k in PAYMENT_CREDIT_KINDS]),
        )
        if start is not None:
            stmt = stmt.where(LedgerTransactionModel.completed_at >= start)
        if end is not None:
            stmt = stmt.where(LedgerTransactionModel.completed_at <= end)
        stmt = stmt.order_by(LedgerTransactionModel.completed_at)

        return [
            StatementCredit(
                id=row.id,
                amount=row.amount,
                completed_at=row.completed_at,
                description=row.description,
                metadata=dict(row.tx_metadata or {}),
            )
            for row in self.session.execute(stmt).scalars()
        ]

    def outstanding_balance(self, customer_id: UUID) -> Decimal:
        """Sum of balance_due over the customer's open, non-deleted invoices."""
        balances = self.session.execute(
            select(InvoiceModel.balance_due).where(
                InvoiceModel.customer_id == customer_id,
                InvoiceModel.deleted_at.is_(None),
                InvoiceModel.status.in_(_status_values(OPEN_STATUSES)),
            )
        ).scalars()
        total = sum(balances, ZERO)
        return round_money(total)
