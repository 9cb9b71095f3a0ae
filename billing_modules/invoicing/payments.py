"""
PaymentRecorder -- atomic application of a payment to an invoice.

Contract (one database transaction):
    1. Lock the invoice row (SELECT ... FOR UPDATE; BEGIN IMMEDIATE on SQLite).
    2. Check, against the locked row:
         - invoice exists and is not soft-deleted          -> not_found
         - status is pending or overdue                    -> invalid_state
         - balance_due > 0                                 -> invalid_state (already paid)
         - amount <= balance_due                           -> invalid_state (overpayment)
    3. Insert the ledger transaction (adjustment, completed,
       transaction_type=invoice_payment).
    4. Insert the payment row linked to that transaction.
    5. Update total_paid, balance_due, payment method/reference, and
       status/paid_date once the balance reaches zero.

All writes commit together or none do.  Because the balance is read under
the lock, two concurrent payments on one invoice serialize and can never
jointly overpay.

Expected failures are returned as ``PaymentResult.failure(...)`` with a
reason category rather than raised, so callers can render them directly.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from uuid import UUID

from billing_engines.totals import calculate_balance_due
from billing_kernel.domain.auth import AuthContext
from billing_kernel.domain.clock import as_utc
from billing_kernel.exceptions import (
    AlreadyPaidError,
    BillingError,
    InvalidStateError,
    OverpaymentError,
)
from billing_kernel.logging_config import LogContext, get_logger
from billing_modules.invoicing.base import InvoicingServiceBase
from billing_modules.invoicing.models import (
    Invoice,
    InvoiceStatus,
    LedgerTransactionKind,
    PaymentMethod,
    TransactionType,
)
from billing_modules.invoicing.orm import InvoiceModel, PaymentModel
from billing_modules.invoicing.validation import validate_payment_inputs
from billing_modules.invoicing.workflows import assert_transition

logger = get_logger("modules.invoicing.payments")

_UNPAYABLE_STATUSES = (
    InvoiceStatus.DRAFT.value,
    InvoiceStatus.CANCELLED.value,
    InvoiceStatus.REFUNDED.value,
)


@dataclass(frozen=True)
class PaymentResult:
    """
    Outcome of a payment attempt.

    On success ``payment_id``, ``transaction_id`` and ``invoice`` (the
    updated snapshot) are set.  On failure ``reason`` is one of
    unauthorized, forbidden, not_found, invalid_state, validation or
    internal, and ``error_code`` is the specific exception code
    (e.g. ``OVERPAYMENT``).
    """

    success: bool
    payment_id: UUID | None = None
    transaction_id: UUID | None = None
    invoice: Invoice | None = None
    reason: str | None = None
    error_code: str | None = None
    message: str | None = None

    @property
    def is_success(self) -> bool:
        return self.success

    @classmethod
    def ok(cls, payment_id: UUID, transaction_id: UUID, invoice: Invoice) -> PaymentResult:
        return cls(
            success=True,
            payment_id=payment_id,
            transaction_id=transaction_id,
            invoice=invoice,
        )

    @classmethod
    def failure(cls, reason: str, message: str, error_code: str | None = None) -> PaymentResult:
        return cls(success=False, reason=reason, error_code=error_code, message=message)

    @classmethod
    def from_error(cls, error: BillingError) -> PaymentResult:
        return cls.failure(error.reason, str(error), error.code)


class PaymentRecorder(InvoicingServiceBase):
    """Records payments against pending/overdue invoices.  Staff only."""

    def record_payment(
        self,
        auth: AuthContext,
        invoice_id: UUID,
        *,
        amount: Decimal,
        method: PaymentMethod | str,
        reference: str | None = None,
        notes: str | None = None,
        paid_at: datetime | None = None,
    ) -> PaymentResult:
        try:
            return self._record(
                auth,
                invoice_id,
                amount=amount,
                method=method,
                reference=reference,
                notes=notes,
                paid_at=paid_at,
            )
        except BillingError as exc:
            logger.warning(
                f"payment_rejected_{exc.code.lower()}",
                extra={
                    "invoice_id": str(invoice_id),
                    "reason": exc.reason,
                    "error_code": exc.code,
                },
            )
            return PaymentResult.from_error(exc)

    def _record(
        self,
        auth: AuthContext,
        invoice_id: UUID,
        *,
        amount,
        method,
        reference,
        notes,
        paid_at,
    ) -> PaymentResult:
        actor_id = self._with_roles(auth).require_staff("record payments")
        amount, method, reference, notes = validate_payment_inputs(
            amount=amount,
            method=method,
            reference=reference,
            notes=notes,
            config=self._config,
        )
        paid_at = as_utc(paid_at) if paid_at else self._clock.now()

        with LogContext.bind(actor_id=actor_id, invoice_id=invoice_id):
            with self._unit_of_work("record_payment"):
                invoice = self._lock_invoice(invoice_id)
                self._check_payable(invoice, amount)

                tx = self._add_ledger_transaction(
                    customer_id=invoice.customer_id,
                    type=TransactionType.ADJUSTMENT,
                    kind=LedgerTransactionKind.INVOICE_PAYMENT,
                    amount=amount,
                    description=f"Invoice payment received: {invoice.invoice_number}",
                    actor_id=actor_id,
                    completed_at=paid_at,
                    metadata={
                        "invoice_id": str(invoice.id),
                        "invoice_number": invoice.invoice_number,
                        "payment_method": method.value,
                        "payment_reference": reference,
                    },
                )

                payment = PaymentModel(
                    invoice_id=invoice.id,
                    customer_id=invoice.customer_id,
                    amount=amount,
                    payment_method=method.value,
                    payment_reference=reference,
                    notes=notes,
                    paid_at=paid_at,
                    transaction_id=tx.id,
                    created_at=self._clock.now(),
                    created_by_id=actor_id,
                )
                self._session.add(payment)

                invoice.total_paid = invoice.total_paid + amount
                invoice.balance_due = calculate_balance_due(
                    invoice.total_amount, invoice.total_paid
                )
                invoice.payment_method = method.value
                invoice.payment_reference = reference
                settled = invoice.balance_due <= 0
                transition = assert_transition(
                    invoice.id,
                    invoice.status,
                    "apply_payment" if settled else "apply_partial_payment",
                )
                invoice.status = transition.to_state
                if settled:
                    invoice.paid_date = paid_at
                invoice.updated_at = self._clock.now()
                invoice.updated_by_id = actor_id
                self._session.flush()

                result = PaymentResult.ok(payment.id, tx.id, invoice.to_dto())

            logger.info(
                "payment_recorded",
                extra={
                    "payment_id": str(result.payment_id),
                    "transaction_id": str(result.transaction_id),
                    "amount": amount,
                    "method": method.value,
                    "balance_due": result.invoice.balance_due,
                    "status": result.invoice.status.value,
                },
            )
        return result

    def _check_payable(self, invoice: InvoiceModel, amount: Decimal) -> None:
        if invoice.status in _UNPAYABLE_STATUSES:
            raise InvalidStateError(
                f"Invalid status: cannot record a payment on a {invoice.status} invoice"
            )
        if invoice.balance_due <= 0:
            raise AlreadyPaidError(str(invoice.id))
        if amount > invoice.balance_due:
            raise OverpaymentError(str(invoice.id), amount, invoice.balance_due)
