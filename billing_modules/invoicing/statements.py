"""
StatementService -- customer account statement.

Fetches the customer's issued invoices, payments and historical payment
credits in the requested window and hands them to the pure
``build_statement`` engine, which deduplicates, sorts and walks the
running balance.

Date bounds:
    A ``date`` is promoted to 00:00:00 UTC of that day; a ``datetime`` is
    normalised to UTC.  Both bounds are inclusive.

Balances:
    opening_balance is always 0; pre-window history is not carried in.
    outstanding_balance reflects the live open invoices and ignores the
    window, so under a narrow filter it can differ from closing_balance.
"""

from __future__ import annotations

from datetime import date, datetime
from uuid import UUID

from billing_engines.statement import AccountStatement, build_statement
from billing_kernel.domain.auth import AuthContext
from billing_kernel.domain.clock import as_utc, start_of_day
from billing_kernel.exceptions import ValidationError
from billing_kernel.logging_config import LogContext, get_logger
from billing_modules.invoicing.base import InvoicingServiceBase

logger = get_logger("modules.invoicing.statements")


def _to_bound(value: date | datetime | None) -> datetime | None:
    if value is None:
        return None
    if isinstance(value, datetime):
        return as_utc(value)
    return start_of_day(value)


class StatementService(InvoicingServiceBase):
    """Builds account statements.  Non-staff may only see their own."""

    def get_statement(
        self,
        auth: AuthContext,
        customer_id: UUID,
        start_date: date | datetime | None = None,
        end_date: date | datetime | None = None,
    ) -> AccountStatement:
        actor_id = self._with_roles(auth).require_staff_or_self(
            customer_id, "query other customers' statements"
        )
        start = _to_bound(start_date)
        end = _to_bound(end_date)
        if start is not None and end is not None and start > end:
            raise ValidationError("start_date", "must not be after end_date")

        with LogContext.bind(actor_id=actor_id, customer_id=customer_id):
            with self._unit_of_work("get_statement"):
                invoices = self._selector.statement_invoices(customer_id, start, end)
                payments = self._selector.statement_payments(customer_id, start, end)
                credits = self._selector.payment_credits(customer_id, start, end)
                outstanding = self._selector.outstanding_balance(customer_id)

            statement = build_statement(
                invoices=invoices,
                payments=payments,
                credits=credits,
                outstanding_balance=outstanding,
                as_of=self._clock.now(),
            )

            logger.info(
                "account_statement_generated",
                extra={
                    "invoice_count": len(invoices),
                    "payment_count": len(payments),
                    "credit_count": len(credits),
                    "entry_count": len(statement.statement),
                    "closing_balance": statement.closing_balance,
                    "outstanding_balance": statement.outstanding_balance,
                    "start": start,
                    "end": end,
                },
            )
        return statement
