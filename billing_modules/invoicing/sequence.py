"""
InvoiceNumberAllocator -- invoice numbers from a locked counter row.

Numbers look like ``INV-2024-000042``: prefix, issue year, and a
zero-padded value from one counter per prefix and year.  The counter is
read ``FOR UPDATE`` (on SQLite the enclosing BEGIN IMMEDIATE holds the
database write lock), so two concurrent allocations never return the
same number.  The max-plus-one query is never used.

The allocation is transactional: it only becomes visible when the
caller's transaction commits, and a rollback returns the value.  This
class never commits.
"""

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from billing_kernel.logging_config import get_logger
from billing_modules.invoicing.orm import SequenceCounterModel

logger = get_logger("modules.invoicing.sequence")


class InvoiceNumberAllocator:
    """Allocates ``<prefix>-<year>-<n>`` invoice numbers."""

    def __init__(self, session: Session, prefix: str = "INV", width: int = 6):
        self._session = session
        self._prefix = prefix
        self._width = width

    def next_value(self, sequence_name: str) -> int:
        """Lock (or create) the named counter row and increment it."""
        counter = self._locked_counter(sequence_name)

        if counter is None:
            savepoint = self._session.begin_nested()
            try:
                counter = SequenceCounterModel(name=sequence_name, current_value=1)
                self._session.add(counter)
                self._session.flush()
                savepoint.commit()
                logger.debug(
                    "sequence_allocated",
                    extra={"sequence_name": sequence_name, "value": 1},
                )
                return 1
            except IntegrityError:
                logger.debug(
                    "sequence_counter_race_retry",
                    extra={"sequence_name": sequence_name},
                )
                savepoint.rollback()
                counter = self._locked_counter(sequence_name)
                if counter is None:
                    raise

        counter.current_value += 1
        self._session.flush()
        logger.debug(
            "sequence_allocated",
            extra={"sequence_name": sequence_name, "value": counter.current_value},
        )
        return counter.current_value

    def allocate(self, year: int) -> str:
        """Next invoice number for ``year``."""
        value = self.next_value(f"invoice_number:{self._prefix}:{year}")
        return f"{self._prefix}-{year}-{value:0{self._width}d}"

    def _locked_counter(self, sequence_name: str) -> SequenceCounterModel | None:
        return self._session.execute(
            select(SequenceCounterModel)
            .where(SequenceCounterModel.name == sequence_name)
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()
