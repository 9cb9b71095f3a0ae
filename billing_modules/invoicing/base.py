"""
InvoicingServiceBase -- shared plumbing for the invoicing services.

Responsibility:
    Constructor contract (session, config, clock), the unit-of-work
    context that owns commit/rollback, invoice row locking, the totals
    write-back and audit ledger inserts.

Transaction boundary:
    Invoicing services own their transaction.  Every public operation runs
    inside ``_unit_of_work``: commit on success, rollback on any exception.
    Read operations also end their transaction, so no lock outlives a call.

Failure modes:
    - BillingError subclasses propagate unchanged after rollback.
    - Any SQLAlchemyError is rolled back and re-raised as InternalError.
"""

from collections.abc import Iterator
from contextlib import contextmanager
from datetime import datetime
from decimal import Decimal
from typing import Any
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from billing_engines.totals import InvoiceTotals, calculate_invoice_totals
from billing_kernel.domain.auth import AuthContext
from billing_kernel.domain.clock import Clock, SystemClock
from billing_kernel.exceptions import InternalError, InvoiceNotFoundError
from billing_kernel.logging_config import get_logger
from billing_modules.invoicing.config import InvoicingConfig
from billing_modules.invoicing.models import (
    LedgerTransactionKind,
    TransactionStatus,
    TransactionType,
)
from billing_modules.invoicing.orm import (
    InvoiceItemModel,
    InvoiceModel,
    LedgerTransactionModel,
)
from billing_modules.invoicing.selectors import InvoiceSelector

logger = get_logger("modules.invoicing.base")


class InvoicingServiceBase:
    """Common constructor and helpers; not used directly."""

    def __init__(
        self,
        session: Session,
        config: InvoicingConfig | None = None,
        clock: Clock | None = None,
    ):
        self._session = session
        self._config = config or InvoicingConfig.with_defaults()
        self._clock = clock or SystemClock()
        self._selector = InvoiceSelector(session)

    # -------------------------------------------------------------------------
    # Transactions and access
    # -------------------------------------------------------------------------

    @contextmanager
    def _unit_of_work(self, operation: str) -> Iterator[Session]:
        try:
            yield self._session
            self._session.commit()
        except SQLAlchemyError as exc:
            self._session.rollback()
            logger.error(
                "invoicing_store_failure",
                extra={"operation": operation},
                exc_info=True,
            )
            raise InternalError(operation, str(exc)) from exc
        except Exception:
            self._session.rollback()
            raise

    def _with_roles(self, auth: AuthContext) -> AuthContext:
        """Apply the configured staff roles to the caller context."""
        return auth.with_staff_roles(self._config.staff_role_set)

    # -------------------------------------------------------------------------
    # Invoice rows
    # -------------------------------------------------------------------------

    def _lock_invoice(self, invoice_id: UUID) -> InvoiceModel:
        """
        Load a non-deleted invoice row with ``SELECT ... FOR UPDATE``.

        ``populate_existing`` discards any stale identity-map copy so the
        checks that follow see the committed values.
        """
        row = self._session.execute(
            select(InvoiceModel)
            .where(
                InvoiceModel.id == invoice_id,
                InvoiceModel.deleted_at.is_(None),
            )
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()
        if row is None:
            raise InvoiceNotFoundError(str(invoice_id))
        return row

    def _next_line_number(self, invoice_id: UUID) -> int:
        numbers = self._session.execute(
            select(InvoiceItemModel.line_number).where(
                InvoiceItemModel.invoice_id == invoice_id
            )
        ).scalars()
        return max(numbers, default=0) + 1

    def _recompute_totals(self, invoice: InvoiceModel) -> InvoiceTotals:
        """Re-derive subtotal/tax/total/balance from the live item set."""
        self._session.flush()
        items = self._selector.active_items(invoice.id)
        totals = calculate_invoice_totals(items)

        invoice.subtotal = totals.subtotal
        invoice.tax_total = totals.tax_total
        invoice.total_amount = totals.total_amount
        invoice.balance_due = totals.balance_due(invoice.total_paid)
        invoice.updated_at = self._clock.now()
        self._session.flush()

        logger.info(
            "invoice_totals_recomputed",
            extra={
                "invoice_id": str(invoice.id),
                "item_count": len(items),
                "subtotal": totals.subtotal,
                "tax_total": totals.tax_total,
                "total_amount": totals.total_amount,
                "balance_due": invoice.balance_due,
            },
        )
        return totals

    def _add_ledger_transaction(
        self,
        *,
        customer_id: UUID,
        type: TransactionType,
        kind: LedgerTransactionKind,
        amount: Decimal,
        description: str,
        actor_id: UUID | None,
        completed_at: datetime,
        metadata: dict[str, Any],
    ) -> LedgerTransactionModel:
        tx = LedgerTransactionModel(
            customer_id=customer_id,
            type=type.value,
            status=TransactionStatus.COMPLETED.value,
            amount=amount,
            description=description,
            tx_metadata={
                **metadata,
                "transaction_type": kind.value,
                "created_by": str(actor_id) if actor_id else None,
            },
            completed_at=completed_at,
            created_at=self._clock.now(),
            created_by_id=actor_id,
        )
        self._session.add(tx)
        self._session.flush()
        return tx
