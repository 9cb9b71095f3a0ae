"""
InvoiceService -- invoice lifecycle: create, approve, overdue, cancel, delete.

Every status change is checked against ``INVOICE_WORKFLOW`` through
``assert_transition``.  Creation is atomic: the invoice, its items, the
totals and the audit ledger transaction commit together or not at all.

Usage:
    service = InvoiceService(session, config, clock)
    invoice = service.create_invoice(
        auth,
        customer_id=customer_id,
        items=[NewInvoiceItem("Flight training", Decimal("1.5"), Decimal("200"))],
        status=InvoiceStatus.PENDING,
    )
"""

from __future__ import annotations

from collections.abc import Sequence
from datetime import datetime, timedelta
from uuid import UUID

from sqlalchemy import select

from billing_engines.amounts import calculate_item_amounts
from billing_kernel.domain.auth import AuthContext
from billing_kernel.domain.clock import as_utc
from billing_kernel.domain.money import ZERO
from billing_kernel.exceptions import (
    InvalidStateError,
    InvoiceNotFoundError,
    ValidationError,
)
from billing_kernel.logging_config import LogContext, get_logger
from billing_modules.invoicing.base import InvoicingServiceBase
from billing_modules.invoicing.models import (
    Invoice,
    InvoiceStatus,
    LedgerTransaction,
    LedgerTransactionKind,
    NewInvoiceItem,
    Payment,
    TransactionType,
)
from billing_modules.invoicing.orm import InvoiceItemModel, InvoiceModel
from billing_modules.invoicing.sequence import InvoiceNumberAllocator
from billing_modules.invoicing.validation import (
    validate_item_inputs,
    validate_optional_text,
    validate_tax_rate,
)
from billing_modules.invoicing.workflows import assert_transition

logger = get_logger("modules.invoicing.invoices")

_CREATABLE_STATUSES = (InvoiceStatus.DRAFT, InvoiceStatus.PENDING)


class InvoiceService(InvoicingServiceBase):
    """Invoice lifecycle and invoice queries."""

    # =========================================================================
    # Creation
    # =========================================================================

    def create_invoice(
        self,
        auth: AuthContext,
        *,
        customer_id: UUID,
        items: Sequence[NewInvoiceItem],
        status: InvoiceStatus = InvoiceStatus.DRAFT,
        invoice_number: str | None = None,
        issue_date: datetime | None = None,
        due_date: datetime | None = None,
        tax_rate=None,
        reference: str | None = None,
        notes: str | None = None,
    ) -> Invoice:
        """
        Create an invoice with its items in one transaction.

        Staff only.  ``status`` may be draft or pending; a pending invoice
        is approved on creation and gets an ``invoice_debit`` ledger
        transaction, a draft one an ``invoice_created`` audit transaction.
        """
        actor_id = self._with_roles(auth).require_staff("create invoices")

        try:
            status = InvoiceStatus(status)
        except ValueError as exc:
            raise ValidationError("status", f"unknown invoice status {status!r}") from exc
        if status not in _CREATABLE_STATUSES:
            raise ValidationError("status", "only draft or pending is allowed at creation")
        if not items:
            raise ValidationError("items", "invoice must include at least one item")

        rate = (
            validate_tax_rate(tax_rate)
            if tax_rate is not None
            else self._config.default_tax_rate
        )
        reference = validate_optional_text(
            "reference", reference, self._config.max_reference_length
        )
        notes = validate_optional_text("notes", notes, self._config.max_notes_length)
        if invoice_number is not None and not invoice_number.strip():
            raise ValidationError("invoice_number", "cannot be blank")

        lines = []
        for item in items:
            description, quantity, unit_price, item_rate, item_notes = validate_item_inputs(
                description=item.description,
                quantity=item.quantity,
                unit_price=item.unit_price,
                tax_rate=item.tax_rate,
                notes=item.notes,
                config=self._config,
            )
            lines.append(
                (item, description, quantity, unit_price, rate if item_rate is None else item_rate, item_notes)
            )

        now = self._clock.now()
        issued = as_utc(issue_date) if issue_date else now
        due = (
            as_utc(due_date)
            if due_date
            else issued + timedelta(days=self._config.payment_terms_days)
        )

        with LogContext.bind(actor_id=actor_id, customer_id=customer_id):
            with self._unit_of_work("create_invoice"):
                number = invoice_number.strip() if invoice_number else (
                    InvoiceNumberAllocator(
                        self._session,
                        prefix=self._config.invoice_number_prefix,
                        width=self._config.invoice_number_width,
                    ).allocate(issued.year)
                )

                invoice = InvoiceModel(
                    customer_id=customer_id,
                    invoice_number=number,
                    status=InvoiceStatus.DRAFT.value,
                    issue_date=issued,
                    due_date=due,
                    tax_rate=rate,
                    subtotal=ZERO,
                    tax_total=ZERO,
                    total_amount=ZERO,
                    total_paid=ZERO,
                    balance_due=ZERO,
                    reference=reference,
                    notes=notes,
                    created_at=now,
                    created_by_id=actor_id,
                )
                self._session.add(invoice)
                self._session.flush()

                for line_number, (item, description, quantity, unit_price, item_rate, item_notes) in enumerate(
                    lines, start=1
                ):
                    amounts = calculate_item_amounts(
                        quantity=quantity, unit_price=unit_price, tax_rate=item_rate
                    )
                    self._session.add(
                        InvoiceItemModel(
                            invoice_id=invoice.id,
                            line_number=line_number,
                            chargeable_id=item.chargeable_id,
                            description=description,
                            quantity=quantity,
                            unit_price=unit_price,
                            tax_rate=item_rate,
                            amount=amounts.amount,
                            tax_amount=amounts.tax_amount,
                            rate_inclusive=amounts.rate_inclusive,
                            line_total=amounts.line_total,
                            notes=item_notes,
                            created_at=now,
                            created_by_id=actor_id,
                        )
                    )

                totals = self._recompute_totals(invoice)
                if totals.total_amount <= 0:
                    raise ValidationError("items", "invoice total must be greater than zero")

                if status == InvoiceStatus.PENDING:
                    self._approve(invoice, actor_id)
                else:
                    self._add_ledger_transaction(
                        customer_id=customer_id,
                        type=TransactionType.ADJUSTMENT,
                        kind=LedgerTransactionKind.INVOICE_CREATED,
                        amount=totals.total_amount,
                        description=f"Draft invoice created: {number}",
                        actor_id=actor_id,
                        completed_at=now,
                        metadata={
                            "invoice_id": str(invoice.id),
                            "invoice_number": number,
                        },
                    )

                result = invoice.to_dto()

            logger.info(
                "invoice_created",
                extra={
                    "invoice_id": str(result.id),
                    "invoice_number": result.invoice_number,
                    "status": result.status.value,
                    "item_count": len(lines),
                    "total_amount": result.total_amount,
                },
            )
        return result

    # =========================================================================
    # Status changes
    # =========================================================================

    def approve_invoice(self, auth: AuthContext, invoice_id: UUID) -> Invoice:
        """Draft -> pending.  Writes the ``invoice_debit`` ledger transaction."""
        actor_id = self._with_roles(auth).require_staff("approve invoices")
        with LogContext.bind(actor_id=actor_id, invoice_id=invoice_id):
            with self._unit_of_work("approve_invoice"):
                invoice = self._lock_invoice(invoice_id)
                self._approve(invoice, actor_id)
                result = invoice.to_dto()
            logger.info(
                "invoice_approved",
                extra={"invoice_number": result.invoice_number, "total_amount": result.total_amount},
            )
        return result

    def _approve(self, invoice: InvoiceModel, actor_id: UUID) -> None:
        assert_transition(invoice.id, invoice.status, "approve")
        if invoice.total_amount <= 0:
            raise InvalidStateError(
                f"Cannot approve invoice {invoice.id}: total must be greater than zero"
            )
        now = self._clock.now()
        invoice.status = InvoiceStatus.PENDING.value
        invoice.updated_at = now
        invoice.updated_by_id = actor_id
        self._add_ledger_transaction(
            customer_id=invoice.customer_id,
            type=TransactionType.DEBIT,
            kind=LedgerTransactionKind.INVOICE_DEBIT,
            amount=invoice.total_amount,
            description=f"Invoice issued: {invoice.invoice_number}",
            actor_id=actor_id,
            completed_at=now,
            metadata={
                "invoice_id": str(invoice.id),
                "invoice_number": invoice.invoice_number,
            },
        )
        self._session.flush()

    def mark_overdue(self, auth: AuthContext, as_of: datetime | None = None) -> list[Invoice]:
        """Move every pending invoice whose due date has passed to overdue."""
        actor_id = self._with_roles(auth).require_staff("mark invoices overdue")
        cutoff = as_utc(as_of) if as_of else self._clock.now()
        with self._unit_of_work("mark_overdue"):
            rows = self._session.execute(
                select(InvoiceModel)
                .where(
                    InvoiceModel.status == InvoiceStatus.PENDING.value,
                    InvoiceModel.deleted_at.is_(None),
                    InvoiceModel.due_date < cutoff,
                )
                .with_for_update()
            ).scalars().all()
            updated = []
            for row in rows:
                assert_transition(row.id, row.status, "mark_overdue")
                row.status = InvoiceStatus.OVERDUE.value
                row.updated_at = self._clock.now()
                row.updated_by_id = actor_id
                updated.append(row)
            self._session.flush()
            result = [row.to_dto() for row in updated]

        logger.info(
            "invoices_marked_overdue",
            extra={"count": len(result), "as_of": cutoff},
        )
        return result

    def cancel_invoice(self, auth: AuthContext, invoice_id: UUID) -> Invoice:
        """Cancel an unpaid draft, pending or overdue invoice."""
        actor_id = self._with_roles(auth).require_staff("cancel invoices")
        with LogContext.bind(actor_id=actor_id, invoice_id=invoice_id):
            with self._unit_of_work("cancel_invoice"):
                invoice = self._lock_invoice(invoice_id)
                assert_transition(invoice.id, invoice.status, "cancel")
                if invoice.total_paid != 0:
                    raise InvalidStateError(
                        f"Cannot cancel invoice {invoice.id}: payments have been applied"
                    )
                invoice.status = InvoiceStatus.CANCELLED.value
                invoice.updated_at = self._clock.now()
                invoice.updated_by_id = actor_id
                self._session.flush()
                result = invoice.to_dto()
            logger.info("invoice_cancelled", extra={"invoice_number": result.invoice_number})
        return result

    def delete_invoice(
        self,
        auth: AuthContext,
        invoice_id: UUID,
        reason: str | None = None,
    ) -> Invoice:
        """Soft-delete a draft or cancelled invoice."""
        actor_id = self._with_roles(auth).require_staff("delete invoices")
        reason = validate_optional_text("reason", reason, self._config.max_notes_length)
        with LogContext.bind(actor_id=actor_id, invoice_id=invoice_id):
            with self._unit_of_work("delete_invoice"):
                invoice = self._lock_invoice(invoice_id)
                assert_transition(invoice.id, invoice.status, "delete")
                now = self._clock.now()
                invoice.deleted_at = now
                invoice.deleted_by = actor_id
                invoice.deletion_reason = reason
                invoice.updated_at = now
                invoice.updated_by_id = actor_id
                self._session.flush()
                result = invoice.to_dto()
            logger.info("invoice_deleted", extra={"invoice_number": result.invoice_number})
        return result

    # =========================================================================
    # Queries
    # =========================================================================

    def get_invoice(self, auth: AuthContext, invoice_id: UUID) -> Invoice:
        """Staff, or the invoice's own customer."""
        ctx = self._with_roles(auth)
        ctx.require_authenticated()
        with self._unit_of_work("get_invoice"):
            invoice = self._selector.get_invoice(invoice_id)
        if invoice is None:
            raise InvoiceNotFoundError(str(invoice_id))
        ctx.require_staff_or_self(invoice.customer_id, "view this invoice")
        return invoice

    def list_invoices(
        self,
        auth: AuthContext,
        customer_id: UUID,
        statuses: tuple[InvoiceStatus, ...] | None = None,
    ) -> list[Invoice]:
        self._with_roles(auth).require_staff_or_self(customer_id, "list invoices")
        with self._unit_of_work("list_invoices"):
            return self._selector.list_invoices(customer_id, statuses)

    def list_payments(self, auth: AuthContext, invoice_id: UUID) -> list[Payment]:
        invoice = self.get_invoice(auth, invoice_id)
        with self._unit_of_work("list_payments"):
            return self._selector.payments_for_invoice(invoice.id)

    def list_transactions(self, auth: AuthContext, customer_id: UUID) -> list[LedgerTransaction]:
        """The customer's ledger transactions, oldest first."""
        self._with_roles(auth).require_staff_or_self(customer_id, "list ledger transactions")
        with self._unit_of_work("list_transactions"):
            return self._selector.ledger_transactions(customer_id)
