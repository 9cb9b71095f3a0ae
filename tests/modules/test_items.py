"""
Tests for InvoiceItemService.

Items can only be added, changed or removed while the invoice is a draft,
and every change leaves the invoice totals equal to the sum of its live
items.
"""

from decimal import Decimal
from uuid import uuid4

import pytest

from billing_kernel.exceptions import (
    ForbiddenError,
    InvoiceItemNotFoundError,
    InvoiceNotDraftError,
    InvoiceNotFoundError,
    UnauthorizedError,
    ValidationError,
)
from billing_modules.invoicing.models import InvoiceStatus


@pytest.fixture
def draft(create_invoice):
    """Draft invoice with one 1 x 100.00 line at 15%."""
    return create_invoice(status=InvoiceStatus.DRAFT)


class TestCreateItem:

    def test_adds_line_and_recomputes_totals(self, draft, item_service, invoice_service, staff_auth):
        item = item_service.create_item(
            staff_auth,
            draft.id,
            description="Ground school",
            quantity=Decimal("1.5"),
            unit_price=Decimal("200"),
        )

        assert item.amount == Decimal("300.00")
        assert item.tax_amount == Decimal("45.00")
        assert item.rate_inclusive == Decimal("230.00")
        assert item.line_total == Decimal("345.00")
        assert item.line_number == 2

        invoice = invoice_service.get_invoice(staff_auth, draft.id)
        assert invoice.subtotal == Decimal("400.00")
        assert invoice.tax_total == Decimal("60.00")
        assert invoice.total_amount == Decimal("460.00")
        assert invoice.balance_due == Decimal("460.00")

    def test_tax_rate_defaults_to_invoice_rate(self, create_invoice, item_service, staff_auth):
        draft = create_invoice(status=InvoiceStatus.DRAFT, tax_rate="0.10")
        item = item_service.create_item(
            staff_auth, draft.id, description="Fuel", quantity=Decimal("1"), unit_price=Decimal("50")
        )
        assert item.tax_rate == Decimal("0.10")
        assert item.tax_amount == Decimal("5.00")

    def test_explicit_tax_rate(self, draft, item_service, staff_auth):
        item = item_service.create_item(
            staff_auth,
            draft.id,
            description="Exempt",
            quantity=Decimal("1"),
            unit_price=Decimal("50"),
            tax_rate=Decimal("0"),
        )
        assert item.tax_amount == Decimal("0.00")
        assert item.line_total == Decimal("50.00")

    def test_description_stripped(self, draft, item_service, staff_auth):
        item = item_service.create_item(
            staff_auth, draft.id, description="  Briefing  ", quantity=Decimal("1"), unit_price=Decimal("1")
        )
        assert item.description == "Briefing"

    def test_owner_customer_may_add(self, draft, item_service, customer_auth):
        item = item_service.create_item(
            customer_auth, draft.id, description="Extra", quantity=Decimal("1"), unit_price=Decimal("5")
        )
        assert item.invoice_id == draft.id

    def test_other_customer_forbidden(self, draft, item_service, other_customer_auth):
        with pytest.raises(ForbiddenError):
            item_service.create_item(
                other_customer_auth, draft.id, description="X", quantity=Decimal("1"), unit_price=Decimal("5")
            )

    def test_anonymous_rejected(self, draft, item_service, anonymous_auth):
        with pytest.raises(UnauthorizedError):
            item_service.create_item(
                anonymous_auth, draft.id, description="X", quantity=Decimal("1"), unit_price=Decimal("5")
            )

    @pytest.mark.parametrize(
        "field, kwargs",
        [
            ("description", {"description": "   "}),
            ("description", {"description": "x" * 501}),
            ("quantity", {"quantity": Decimal("0")}),
            ("quantity", {"quantity": Decimal("10000")}),
            ("quantity", {"quantity": "abc"}),
            ("unit_price", {"unit_price": Decimal("-0.01")}),
            ("tax_rate", {"tax_rate": Decimal("1.01")}),
        ],
    )
    def test_validation(self, draft, item_service, staff_auth, field, kwargs):
        values = {"description": "Line", "quantity": Decimal("1"), "unit_price": Decimal("10")}
        values.update(kwargs)
        with pytest.raises(ValidationError) as exc_info:
            item_service.create_item(staff_auth, draft.id, **values)
        assert exc_info.value.field == field

    def test_unknown_invoice(self, item_service, staff_auth):
        with pytest.raises(InvoiceNotFoundError):
            item_service.create_item(
                staff_auth, uuid4(), description="X", quantity=Decimal("1"), unit_price=Decimal("5")
            )


class TestUpdateItem:

    def test_quantity_change_recomputes(self, draft, item_service, invoice_service, staff_auth):
        [item] = item_service.get_items(staff_auth, draft.id)
        updated = item_service.update_item(staff_auth, item.id, quantity=Decimal("2"))

        assert updated.amount == Decimal("200.00")
        assert updated.line_total == Decimal("230.00")
        assert invoice_service.get_invoice(staff_auth, draft.id).total_amount == Decimal("230.00")

    def test_description_only_keeps_amounts(self, draft, item_service, staff_auth):
        [item] = item_service.get_items(staff_auth, draft.id)
        updated = item_service.update_item(staff_auth, item.id, description="Renamed")
        assert updated.description == "Renamed"
        assert updated.line_total == item.line_total

    def test_update_logs_changed_fields(self, draft, item_service, staff_auth, captured_logs):
        [item] = item_service.get_items(staff_auth, draft.id)
        item_service.update_item(staff_auth, item.id, unit_price=Decimal("80"), notes="discount")

        logged = [r for r in captured_logs() if r["message"] == "invoice_item_updated"]
        assert logged[0]["changed_fields"] == ["unit_price", "notes"]

    def test_unknown_item(self, item_service, staff_auth):
        with pytest.raises(InvoiceItemNotFoundError):
            item_service.update_item(staff_auth, uuid4(), quantity=Decimal("1"))


class TestDeleteItem:

    def test_soft_delete_recomputes(self, create_invoice, item_service, invoice_service, staff_auth):
        draft = create_invoice(("1", "100.00"), ("1", "40.00"), status=InvoiceStatus.DRAFT)
        first, second = item_service.get_items(staff_auth, draft.id)

        deleted = item_service.delete_item(staff_auth, second.id)

        assert deleted.deleted_at is not None
        assert [i.id for i in item_service.get_items(staff_auth, draft.id)] == [first.id]
        assert invoice_service.get_invoice(staff_auth, draft.id).total_amount == Decimal("115.00")

    def test_deleting_last_item_zeroes_totals(self, draft, item_service, invoice_service, staff_auth):
        [item] = item_service.get_items(staff_auth, draft.id)
        item_service.delete_item(staff_auth, item.id)

        invoice = invoice_service.get_invoice(staff_auth, draft.id)
        assert invoice.subtotal == Decimal("0.00")
        assert invoice.tax_total == Decimal("0.00")
        assert invoice.total_amount == Decimal("0.00")

    def test_deleted_item_cannot_be_deleted_again(self, draft, item_service, staff_auth):
        [item] = item_service.get_items(staff_auth, draft.id)
        item_service.delete_item(staff_auth, item.id)
        with pytest.raises(InvoiceItemNotFoundError):
            item_service.delete_item(staff_auth, item.id)

    def test_line_numbers_not_reused(self, draft, item_service, staff_auth):
        [item] = item_service.get_items(staff_auth, draft.id)
        item_service.delete_item(staff_auth, item.id)
        added = item_service.create_item(
            staff_auth, draft.id, description="New", quantity=Decimal("1"), unit_price=Decimal("1")
        )
        assert added.line_number == 2


class TestNonDraftInvoice:

    @pytest.fixture
    def paid(self, create_invoice, payment_recorder, staff_auth):
        invoice = create_invoice()
        result = payment_recorder.record_payment(
            staff_auth, invoice.id, amount=Decimal("115.00"), method="cash"
        )
        assert result.success
        return result.invoice

    def test_add_rejected(self, paid, item_service, staff_auth):
        with pytest.raises(InvoiceNotDraftError) as exc_info:
            item_service.create_item(
                staff_auth, paid.id, description="Late", quantity=Decimal("1"), unit_price=Decimal("5")
            )
        assert exc_info.value.status == "paid"
        assert exc_info.value.reason == "invalid_state"

    def test_update_rejected_and_totals_unchanged(self, paid, item_service, invoice_service, staff_auth):
        [item] = item_service.get_items(staff_auth, paid.id)
        with pytest.raises(InvoiceNotDraftError):
            item_service.update_item(staff_auth, item.id, quantity=Decimal("5"))

        invoice = invoice_service.get_invoice(staff_auth, paid.id)
        assert invoice.total_amount == Decimal("115.00")
        assert invoice.balance_due == Decimal("0.00")
        assert item_service.get_items(staff_auth, paid.id)[0].quantity == Decimal("1")

    def test_delete_rejected(self, paid, item_service, staff_auth, captured_logs):
        [item] = item_service.get_items(staff_auth, paid.id)
        with pytest.raises(InvoiceNotDraftError):
            item_service.delete_item(staff_auth, item.id)

        rejected = [
            r for r in captured_logs() if r["message"] == "invoice_item_rejected_not_draft"
        ]
        assert rejected[0]["action"] == "delete"
        assert rejected[0]["level"] == "WARNING"

    def test_pending_invoice_rejected(self, create_invoice, item_service, staff_auth):
        pending = create_invoice()
        with pytest.raises(InvoiceNotDraftError):
            item_service.create_item(
                staff_auth, pending.id, description="X", quantity=Decimal("1"), unit_price=Decimal("5")
            )
