"""
InvoiceItemService -- create, update and soft-delete invoice line items.

Gating:
    Every mutation locks the parent invoice row and requires it to be a
    draft; anything else raises ``InvoiceNotDraftError``.  The caller must
    be staff or the invoice's own customer.

Atomicity:
    The item write and the invoice totals recomputation commit together.
    A failure at any step rolls back both, so totals always match the
    live item set.
"""

from __future__ import annotations

from decimal import Decimal
from uuid import UUID

from sqlalchemy import select

from billing_engines.amounts import calculate_item_amounts
from billing_kernel.domain.auth import AuthContext
from billing_kernel.exceptions import (
    InvoiceItemNotFoundError,
    InvoiceNotDraftError,
    InvoiceNotFoundError,
)
from billing_kernel.logging_config import LogContext, get_logger
from billing_modules.invoicing.base import InvoicingServiceBase
from billing_modules.invoicing.models import InvoiceItem, InvoiceStatus
from billing_modules.invoicing.orm import InvoiceItemModel, InvoiceModel
from billing_modules.invoicing.validation import (
    validate_description,
    validate_item_inputs,
    validate_optional_text,
    validate_quantity,
    validate_tax_rate,
    validate_unit_price,
)

logger = get_logger("modules.invoicing.items")


class InvoiceItemService(InvoicingServiceBase):
    """Line-item lifecycle for draft invoices."""

    def get_items(self, auth: AuthContext, invoice_id: UUID) -> list[InvoiceItem]:
        """Non-deleted items of the invoice, in creation order."""
        ctx = self._with_roles(auth)
        ctx.require_authenticated()
        with self._unit_of_work("get_items"):
            invoice = self._selector.get_invoice(invoice_id)
            if invoice is None:
                raise InvoiceNotFoundError(str(invoice_id))
            ctx.require_staff_or_self(invoice.customer_id, "view invoice items")
            return self._selector.active_items(invoice_id)

    def create_item(
        self,
        auth: AuthContext,
        invoice_id: UUID,
        *,
        description: str,
        quantity: Decimal,
        unit_price: Decimal,
        tax_rate: Decimal | None = None,
        chargeable_id: UUID | None = None,
        notes: str | None = None,
    ) -> InvoiceItem:
        """
        Add a line to a draft invoice.

        The item's tax rate defaults to the invoice's rate.
        """
        ctx = self._with_roles(auth)
        actor_id = ctx.require_authenticated()
        description, quantity, unit_price, tax_rate, notes = validate_item_inputs(
            description=description,
            quantity=quantity,
            unit_price=unit_price,
            tax_rate=tax_rate,
            notes=notes,
            config=self._config,
        )

        with LogContext.bind(actor_id=actor_id, invoice_id=invoice_id):
            with self._unit_of_work("create_item"):
                invoice = self._lock_invoice(invoice_id)
                ctx.require_staff_or_self(invoice.customer_id, "modify invoice items")
                self._require_draft(invoice, "add")

                rate = tax_rate
                if rate is None:
                    rate = invoice.tax_rate if invoice.tax_rate is not None else self._config.default_tax_rate
                amounts = calculate_item_amounts(
                    quantity=quantity, unit_price=unit_price, tax_rate=rate
                )
                item = InvoiceItemModel(
                    invoice_id=invoice.id,
                    line_number=self._next_line_number(invoice.id),
                    chargeable_id=chargeable_id,
                    description=description,
                    quantity=quantity,
                    unit_price=unit_price,
                    tax_rate=rate,
                    amount=amounts.amount,
                    tax_amount=amounts.tax_amount,
                    rate_inclusive=amounts.rate_inclusive,
                    line_total=amounts.line_total,
                    notes=notes,
                    created_at=self._clock.now(),
                    created_by_id=actor_id,
                )
                self._session.add(item)
                self._session.flush()
                self._recompute_totals(invoice)
                result = item.to_dto()

            logger.info(
                "invoice_item_created",
                extra={
                    "item_id": str(result.id),
                    "line_total": result.line_total,
                },
            )
        return result

    def update_item(
        self,
        auth: AuthContext,
        item_id: UUID,
        *,
        description: str | None = None,
        quantity: Decimal | None = None,
        unit_price: Decimal | None = None,
        tax_rate: Decimal | None = None,
        chargeable_id: UUID | None = None,
        notes: str | None = None,
    ) -> InvoiceItem:
        """
        Apply the given (non-None) fields to an item.

        Amounts are recomputed when quantity, unit price or tax rate changes.
        """
        ctx = self._with_roles(auth)
        actor_id = ctx.require_authenticated()
        if description is not None:
            description = validate_description(description, self._config)
        if quantity is not None:
            quantity = validate_quantity(quantity, self._config)
        if unit_price is not None:
            unit_price = validate_unit_price(unit_price, self._config)
        if tax_rate is not None:
            tax_rate = validate_tax_rate(tax_rate)
        notes = validate_optional_text("notes", notes, self._config.max_notes_length)

        with LogContext.bind(actor_id=actor_id):
            with self._unit_of_work("update_item"):
                invoice, item = self._lock_item(item_id)
                ctx.require_staff_or_self(invoice.customer_id, "modify invoice items")
                self._require_draft(invoice, "update")

                changed: list[str] = []
                for field, value in (
                    ("description", description),
                    ("quantity", quantity),
                    ("unit_price", unit_price),
                    ("tax_rate", tax_rate),
                    ("chargeable_id", chargeable_id),
                    ("notes", notes),
                ):
                    if value is not None and getattr(item, field) != value:
                        setattr(item, field, value)
                        changed.append(field)

                if {"quantity", "unit_price", "tax_rate"} & set(changed):
                    amounts = calculate_item_amounts(
                        quantity=item.quantity,
                        unit_price=item.unit_price,
                        tax_rate=item.tax_rate,
                    )
                    item.amount = amounts.amount
                    item.tax_amount = amounts.tax_amount
                    item.rate_inclusive = amounts.rate_inclusive
                    item.line_total = amounts.line_total

                item.updated_at = self._clock.now()
                item.updated_by_id = actor_id
                self._session.flush()
                self._recompute_totals(invoice)
                result = item.to_dto()

            logger.info(
                "invoice_item_updated",
                extra={
                    "item_id": str(result.id),
                    "invoice_id": str(result.invoice_id),
                    "changed_fields": changed,
                    "line_total": result.line_total,
                },
            )
        return result

    def delete_item(self, auth: AuthContext, item_id: UUID) -> InvoiceItem:
        """Soft-delete an item; an invoice left with no items has zero totals."""
        ctx = self._with_roles(auth)
        actor_id = ctx.require_authenticated()

        with LogContext.bind(actor_id=actor_id):
            with self._unit_of_work("delete_item"):
                invoice, item = self._lock_item(item_id)
                ctx.require_staff_or_self(invoice.customer_id, "modify invoice items")
                self._require_draft(invoice, "delete")

                now = self._clock.now()
                item.deleted_at = now
                item.deleted_by = actor_id
                item.updated_at = now
                item.updated_by_id = actor_id
                self._session.flush()
                self._recompute_totals(invoice)
                result = item.to_dto()

            logger.info(
                "invoice_item_deleted",
                extra={"item_id": str(result.id), "invoice_id": str(result.invoice_id)},
            )
        return result

    # -------------------------------------------------------------------------
    # Helpers
    # -------------------------------------------------------------------------

    def _lock_item(self, item_id: UUID) -> tuple[InvoiceModel, InvoiceItemModel]:
        """Lock the parent invoice, then load the live item."""
        invoice_id = self._session.execute(
            select(InvoiceItemModel.invoice_id).where(
                InvoiceItemModel.id == item_id,
                InvoiceItemModel.deleted_at.is_(None),
            )
        ).scalar_one_or_none()
        if invoice_id is None:
            raise InvoiceItemNotFoundError(str(item_id))

        invoice = self._lock_invoice(invoice_id)
        item = self._session.execute(
            select(InvoiceItemModel)
            .where(
                InvoiceItemModel.id == item_id,
                InvoiceItemModel.deleted_at.is_(None),
            )
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()
        if item is None:
            raise InvoiceItemNotFoundError(str(item_id))
        return invoice, item

    def _require_draft(self, invoice: InvoiceModel, action: str) -> None:
        if invoice.status != InvoiceStatus.DRAFT.value:
            logger.warning(
                "invoice_item_rejected_not_draft",
                extra={
                    "invoice_id": str(invoice.id),
                    "status": invoice.status,
                    "action": action,
                },
            )
            raise InvoiceNotDraftError(str(invoice.id), invoice.status, action)
