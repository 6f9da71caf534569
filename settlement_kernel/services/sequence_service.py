"""
SequenceService -- monotonic sequence allocation via locked counter rows.

Responsibility:
    Allocates invoice numbers, payment numbers and per-partner cycle
    numbers.  Each named sequence is one row in ``sequence_counters``,
    incremented under ``SELECT ... FOR UPDATE``.

Architecture position:
    Kernel > Services -- imperative shell infrastructure.
    Called by InvoiceService (INV/PAY numbers) and BillingCycleService
    (cycle numbers).

Invariants enforced:
    - The locked counter row is the sole source of truth for the next
      value.  Numbers are never derived by parsing the last issued document
      or by SELECT MAX(...) + 1.
    - Allocation is transactional: a rolled-back caller returns its value.

Failure modes:
    - IntegrityError on a concurrent first use of a sequence name; handled
      with a savepoint rollback and a locked re-read.
"""

from uuid import UUID

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from settlement_engines.invoicing import format_document_number
from settlement_kernel.logging_config import get_logger
from settlement_kernel.models.sequence import SequenceCounter

logger = get_logger("services.sequence")


def document_sequence_name(prefix: str, year: int) -> str:
    """Counter key for one document type in one calendar year, e.g. ``INV:2024``."""
    return f"{prefix}:{year}"


def cycle_sequence_name(partner_id: UUID) -> str:
    return f"CYCLE:{partner_id}"


class SequenceService:
    """
    Service for transactional sequence numbers.

    Usage:
        with session_scope() as session:
            number = SequenceService(session).next_document_number("INV", 2024, 3)
            # "INV-2024-001"; released again if the transaction rolls back
    """

    def __init__(self, session: Session):
        self._session = session

    def _locked_counter(self, sequence_name: str) -> SequenceCounter | None:
        return self._session.execute(
            select(SequenceCounter)
            .where(SequenceCounter.name == sequence_name)
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()

    def next_value(self, sequence_name: str) -> int:
        """
        Lock (or create) the named counter, increment it and return the new value.

        Postconditions:
            - The returned value is > 0 and strictly greater than any value
              previously returned for ``sequence_name``.
            - The counter row stays locked until the caller's transaction ends.
        """
        counter = self._locked_counter(sequence_name)

        if counter is None:
            # First use. A savepoint keeps the caller's other work intact if
            # another transaction creates the row first.
            savepoint = self._session.begin_nested()
            try:
                counter = SequenceCounter(name=sequence_name, current_value=1)
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

    def current_value(self, sequence_name: str) -> int | None:
        counter = self._session.execute(
            select(SequenceCounter).where(SequenceCounter.name == sequence_name)
        ).scalar_one_or_none()
        return counter.current_value if counter else None

    def next_document_number(self, prefix: str, year: int, width: int) -> str:
        """Allocate the next ``<prefix>-<year>-<seq>`` number for the year."""
        value = self.next_value(document_sequence_name(prefix, year))
        return format_document_number(prefix, year, value, width)

    def next_cycle_number(self, partner_id: UUID) -> int:
        return self.next_value(cycle_sequence_name(partner_id))

    def reset(self, sequence_name: str, value: int = 0) -> None:
        """
        Reset a sequence to ``value``.

        Only for tests and data migrations; resetting a live sequence can
        re-issue document numbers.
        """
        counter = self._locked_counter(sequence_name)
        if counter is None:
            self._session.add(SequenceCounter(name=sequence_name, current_value=value))
        else:
            counter.current_value = value
        self._session.flush()
