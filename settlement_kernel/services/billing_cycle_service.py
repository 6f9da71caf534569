"""
BillingCycleService -- billing cycle creation and lifecycle.

Responsibility:
    Creates billing cycles (singly, or monthly for every active partner),
    closes them by aggregating their rated usage, resets cycles stuck in
    PROCESSING, and marks cycles INVOICED when an invoice is generated.

Architecture position:
    Kernel > Services -- imperative shell.
    Totals are computed by ``settlement_engines.cycle_aggregation``; this
    service only loads the records and moves the cycle through its states.

Invariants enforced:
    - Lifecycle: OPEN -> PROCESSING -> CLOSED -> INVOICED, PROCESSING ->
      OPEN on reset or failed aggregation.  No other transition is issued.
    - Every transition is a conditional UPDATE on (id, status, version)
      that increments ``version``.  Zero affected rows means another writer
      moved the cycle first: of two concurrent closes, exactly one observes
      OPEN and proceeds.
    - A failed aggregation reverts the cycle to OPEN before the error is
      raised, so a cycle is never left stuck in PROCESSING by this service.
    - Cycle numbers come from the per-partner sequence, never MAX() + 1.
    - Flush-only: never commits or rolls back the session.

Failure modes:
    - BillingCycleNotFoundError / PartnerNotFoundError.
    - CycleAlreadyClosedError: close on a cycle that is not OPEN.
    - CycleCloseConflictError: another writer transitioned the cycle first.
    - AggregationFailedError: aggregation raised; the cycle is OPEN again.
    - CycleNotProcessingError: reset on a cycle that is not PROCESSING.
    - CycleAlreadyExistsError: partner already has a cycle on that start date.

Audit relevance:
    Every transition logs at INFO with cycle_id, partner_id and actor_id in
    the log context; rejected and conflicting closes log at WARNING.
"""

import calendar
from dataclasses import dataclass
from datetime import date, timedelta
from typing import Any
from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, selectinload

from settlement_config.schema import SettlementConfig
from settlement_engines.cycle_aggregation import CycleTotals, aggregate_cycle
from settlement_kernel.domain.clock import Clock
from settlement_kernel.domain.currency import CurrencyRegistry
from settlement_kernel.domain.dtos import (
    AgreementStatus,
    BillingCycleInfo,
    CycleStatus,
    PartnerStatus,
    ProcessingStatus,
)
from settlement_kernel.domain.lifecycle import validate_cycle_transition
from settlement_kernel.exceptions import (
    AggregationFailedError,
    BillingCycleNotFoundError,
    CycleAlreadyClosedError,
    CycleAlreadyExistsError,
    CycleCloseConflictError,
    CycleNotClosedError,
    CycleNotProcessingError,
    InvalidTransitionError,
    OptimisticLockError,
    PartnerNotFoundError,
    SettlementKernelError,
)
from settlement_kernel.logging_config import LogContext, get_logger
from settlement_kernel.models.billing_cycle import BillingCycle
from settlement_kernel.models.partner import Partner
from settlement_kernel.selectors.usage_selector import UsageSelector
from settlement_kernel.services.base import BaseService
from settlement_kernel.services.sequence_service import SequenceService

logger = get_logger("services.billing_cycle")


@dataclass(frozen=True)
class PlannedCycle:
    """A cycle the creation job created (or, in preview, would create)."""

    partner_id: UUID
    partner_code: str
    period_start: date
    period_end: date
    currency: str
    cycle_id: UUID | None = None
    cycle_number: int | None = None


@dataclass(frozen=True)
class SkippedPartner:
    partner_id: UUID
    partner_code: str
    reason: str


@dataclass(frozen=True)
class FailedPartner:
    partner_id: UUID
    partner_code: str
    error: str


@dataclass(frozen=True)
class CycleCreationReport:
    period_start: date
    period_end: date
    preview: bool
    total_partners: int = 0
    created: tuple[PlannedCycle, ...] = ()
    skipped: tuple[SkippedPartner, ...] = ()
    errors: tuple[FailedPartner, ...] = ()


def month_bounds(year: int, month: int) -> tuple[date, date]:
    """First and last day of a calendar month."""
    last_day = calendar.monthrange(year, month)[1]
    return date(year, month, 1), date(year, month, last_day)


class BillingCycleService(BaseService[BillingCycle]):
    """
    Drives billing cycles through their lifecycle.

    Contract:
        Lifecycle methods return frozen ``BillingCycleInfo`` views of the
        cycle after the transition.  Rejected operations raise typed
        exceptions carrying the cycle's current status.

    Non-goals:
        - Does NOT generate invoices (InvoiceService does, and calls
          ``mark_invoiced``).
        - Does NOT rate usage; only RATED records are aggregated.
    """

    def __init__(
        self,
        session: Session,
        config: SettlementConfig,
        clock: Clock | None = None,
    ):
        super().__init__(session, clock)
        self._config = config
        self._usage = UsageSelector(session)
        self._sequences = SequenceService(session)

    # ------------------------------------------------------------------
    # Creation
    # ------------------------------------------------------------------

    def create_cycle(
        self,
        partner_id: UUID,
        period_start: date,
        period_end: date,
        actor_id: UUID,
        currency: str | None = None,
        cut_off_date: date | None = None,
        due_date: date | None = None,
    ) -> BillingCycleInfo:
        """
        Open a new billing cycle for a partner.

        Cut-off and due dates default to the period end plus the configured
        ``cycles.cut_off_days`` / ``cycles.due_days``.

        Raises:
            ValueError: If period_end precedes period_start.
            PartnerNotFoundError: If the partner does not exist.
            CycleAlreadyExistsError: If a cycle already starts on period_start.
            InvalidCurrencyError: If the currency is not a known ISO code.
        """
        if period_end < period_start:
            raise ValueError(
                f"period_start ({period_start}) cannot be after period_end ({period_end})"
            )
        if self.session.get(Partner, partner_id) is None:
            raise PartnerNotFoundError(str(partner_id))

        if self._existing_cycle(partner_id, period_start) is not None:
            raise CycleAlreadyExistsError(str(partner_id), str(period_start))

        cycles = self._config.cycles
        cycle = BillingCycle(
            partner_id=partner_id,
            cycle_number=self._sequences.next_cycle_number(partner_id),
            period_start=period_start,
            period_end=period_end,
            cut_off_date=cut_off_date or period_end + timedelta(days=cycles.cut_off_days),
            due_date=due_date or period_end + timedelta(days=cycles.due_days),
            currency=CurrencyRegistry.validate(currency or cycles.default_currency),
            status=CycleStatus.OPEN,
            version=0,
            created_by_id=actor_id,
        )
        self.session.add(cycle)
        self.session.flush()

        logger.info(
            "cycle_created",
            extra={
                "cycle_id": str(cycle.id),
                "partner_id": str(partner_id),
                "cycle_number": cycle.cycle_number,
                "period_start": str(period_start),
                "period_end": str(period_end),
            },
        )
        return BillingCycleInfo.from_model(cycle)

    def run_creation_job(
        self,
        year: int,
        month: int,
        actor_id: UUID,
        preview: bool = False,
    ) -> CycleCreationReport:
        """
        Create the monthly cycle for every ACTIVE partner with an ACTIVE agreement.

        Partners without an active agreement, or that already have a cycle
        for the month, are skipped with a reason.  A failure for one partner
        is reported and does not stop the others.  With ``preview`` nothing
        is written.
        """
        period_start, period_end = month_bounds(year, month)
        partners = self.session.scalars(
            select(Partner)
            .where(Partner.status == PartnerStatus.ACTIVE.value)
            .options(selectinload(Partner.agreements))
            .order_by(Partner.partner_code)
        ).all()

        created: list[PlannedCycle] = []
        skipped: list[SkippedPartner] = []
        errors: list[FailedPartner] = []

        for partner in partners:
            agreements = sorted(
                (a for a in partner.agreements if a.status == AgreementStatus.ACTIVE),
                key=lambda a: a.start_date,
                reverse=True,
            )
            if not agreements:
                skipped.append(
                    SkippedPartner(partner.id, partner.partner_code, "No active agreement")
                )
                continue
            if self._existing_cycle(partner.id, period_start) is not None:
                skipped.append(
                    SkippedPartner(partner.id, partner.partner_code, "Cycle already exists")
                )
                continue

            currency = agreements[0].currency or self._config.cycles.default_currency
            if preview:
                created.append(
                    PlannedCycle(
                        partner_id=partner.id,
                        partner_code=partner.partner_code,
                        period_start=period_start,
                        period_end=period_end,
                        currency=currency,
                    )
                )
                continue

            try:
                with self.session.begin_nested():
                    cycle = self.create_cycle(
                        partner.id, period_start, period_end, actor_id, currency=currency
                    )
            except (SettlementKernelError, IntegrityError) as exc:
                logger.warning(
                    "cycle_creation_failed",
                    extra={"partner_code": partner.partner_code, "error": str(exc)},
                )
                errors.append(FailedPartner(partner.id, partner.partner_code, str(exc)))
                continue

            created.append(
                PlannedCycle(
                    partner_id=partner.id,
                    partner_code=partner.partner_code,
                    period_start=period_start,
                    period_end=period_end,
                    currency=cycle.currency,
                    cycle_id=cycle.cycle_id,
                    cycle_number=cycle.cycle_number,
                )
            )

        report = CycleCreationReport(
            period_start=period_start,
            period_end=period_end,
            preview=preview,
            total_partners=len(partners),
            created=tuple(created),
            skipped=tuple(skipped),
            errors=tuple(errors),
        )
        logger.info(
            "cycle_creation_job_completed",
            extra={
                "period_start": str(period_start),
                "preview": preview,
                "total_partners": report.total_partners,
                "cycles_created": len(report.created),
                "partners_skipped": len(report.skipped),
                "errors": len(report.errors),
            },
        )
        return report

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def close_cycle(self, cycle_id: UUID, actor_id: UUID) -> BillingCycleInfo:
        """
        Close an OPEN cycle: OPEN -> PROCESSING, aggregate, PROCESSING -> CLOSED.

        Closing a cycle with no rated usage in its period yields all-zero
        totals.

        Raises:
            BillingCycleNotFoundError: If the cycle does not exist.
            CycleAlreadyClosedError: If the cycle is not OPEN; totals untouched.
            CycleCloseConflictError: If another writer moved the cycle first.
            AggregationFailedError: If aggregation failed; the cycle is OPEN.
        """
        cycle = self._get(cycle_id)
        status = CycleStatus(cycle.status)
        version = cycle.version

        with LogContext.bind(
            cycle_id=str(cycle_id), partner_id=str(cycle.partner_id), actor_id=str(actor_id)
        ):
            if status != CycleStatus.OPEN:
                logger.warning("cycle_close_rejected", extra={"current_status": status.value})
                raise CycleAlreadyClosedError(str(cycle_id), status.value)

            if not self._transition(
                cycle_id, CycleStatus.OPEN, version, CycleStatus.PROCESSING, actor_id
            ):
                logger.warning("cycle_close_conflict", extra={"expected_version": version})
                raise CycleCloseConflictError(str(cycle_id), version)
            logger.info("cycle_close_started", extra={"version": version + 1})

            try:
                records = self._usage.records_in_period(
                    cycle.partner_id,
                    cycle.period_start,
                    cycle.period_end,
                    status=ProcessingStatus.RATED,
                )
                totals = aggregate_cycle(
                    records, cycle.period_start, cycle.period_end, self._config.cycles
                )
            except Exception as exc:
                reverted = self._transition(
                    cycle_id,
                    CycleStatus.PROCESSING,
                    version + 1,
                    CycleStatus.OPEN,
                    actor_id,
                )
                logger.error(
                    "cycle_close_failed",
                    extra={"cause": str(exc), "reverted_to_open": reverted},
                )
                raise AggregationFailedError(str(cycle_id), str(exc)) from exc

            if not self._transition(
                cycle_id,
                CycleStatus.PROCESSING,
                version + 1,
                CycleStatus.CLOSED,
                actor_id,
                **self._totals_values(totals),
                closed_at=self._clock.now(),
                closed_by_id=actor_id,
            ):
                logger.warning("cycle_close_conflict", extra={"expected_version": version + 1})
                raise CycleCloseConflictError(str(cycle_id), version + 1)

            logger.info(
                "cycle_closed",
                extra={
                    "record_count": totals.record_count,
                    "total_charges": str(totals.total_charges),
                    "total_cost": str(totals.total_cost),
                },
            )
        return BillingCycleInfo.from_model(self._get(cycle_id))

    def reset_cycle(self, cycle_id: UUID, actor_id: UUID) -> BillingCycleInfo:
        """
        Force a cycle stuck in PROCESSING back to OPEN, clearing its totals.

        Raises:
            CycleNotProcessingError: If the cycle is not PROCESSING.
            OptimisticLockError: If the cycle changed concurrently.
        """
        cycle = self._get(cycle_id)
        status = CycleStatus(cycle.status)
        with LogContext.bind(cycle_id=str(cycle_id), actor_id=str(actor_id)):
            if status != CycleStatus.PROCESSING:
                logger.warning("cycle_reset_rejected", extra={"current_status": status.value})
                raise CycleNotProcessingError(str(cycle_id), status.value)
            if not self._transition(
                cycle_id,
                CycleStatus.PROCESSING,
                cycle.version,
                CycleStatus.OPEN,
                actor_id,
                **self._totals_values(None),
                closed_at=None,
                closed_by_id=None,
            ):
                raise OptimisticLockError("BillingCycle", str(cycle_id))
            logger.info("cycle_reset")
        return BillingCycleInfo.from_model(self._get(cycle_id))

    def mark_invoiced(
        self, cycle_id: UUID, invoice_id: UUID, actor_id: UUID
    ) -> BillingCycleInfo:
        """CLOSED -> INVOICED, linking the generated invoice."""
        cycle = self._get(cycle_id)
        status = CycleStatus(cycle.status)
        if status != CycleStatus.CLOSED:
            raise CycleNotClosedError(str(cycle_id), status.value)
        if not self._transition(
            cycle_id,
            CycleStatus.CLOSED,
            cycle.version,
            CycleStatus.INVOICED,
            actor_id,
            invoice_id=invoice_id,
        ):
            raise OptimisticLockError("BillingCycle", str(cycle_id))
        logger.info(
            "cycle_invoiced",
            extra={"cycle_id": str(cycle_id), "invoice_id": str(invoice_id)},
        )
        return BillingCycleInfo.from_model(self._get(cycle_id))

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _get(self, cycle_id: UUID) -> BillingCycle:
        cycle = self.session.execute(
            select(BillingCycle)
            .where(BillingCycle.id == cycle_id)
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()
        if cycle is None:
            raise BillingCycleNotFoundError(str(cycle_id))
        return cycle

    def _existing_cycle(self, partner_id: UUID, period_start: date) -> BillingCycle | None:
        return self.session.scalars(
            select(BillingCycle).where(
                BillingCycle.partner_id == partner_id,
                BillingCycle.period_start == period_start,
            )
        ).first()

    def _transition(
        self,
        cycle_id: UUID,
        expected_status: CycleStatus,
        expected_version: int,
        target_status: CycleStatus,
        actor_id: UUID,
        **values: Any,
    ) -> bool:
        """
        Conditional status change.  Returns False when no row matched the
        expected (status, version), i.e. another writer got there first.

        Raises:
            InvalidTransitionError: If the cycle lifecycle does not allow
                ``expected_status -> target_status``.
        """
        if not validate_cycle_transition(expected_status, target_status):
            raise InvalidTransitionError(
                "BillingCycle", str(cycle_id), expected_status.value, target_status.value
            )
        result = self.session.execute(
            update(BillingCycle)
            .where(
                BillingCycle.id == cycle_id,
                BillingCycle.status == expected_status.value,
                BillingCycle.version == expected_version,
            )
            .values(
                status=target_status.value,
                version=expected_version + 1,
                updated_by_id=actor_id,
                **values,
            )
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    @staticmethod
    def _totals_values(totals: CycleTotals | None) -> dict[str, Any]:
        if totals is None:
            return {
                "total_voice_minutes": None,
                "total_sms_count": None,
                "total_data_mb": None,
                "total_charges": None,
                "total_cost": None,
                "margin": None,
            }
        return {
            "total_voice_minutes": totals.total_voice_minutes,
            "total_sms_count": totals.total_sms_count,
            "total_data_mb": totals.total_data_mb,
            "total_charges": totals.total_charges,
            "total_cost": totals.total_cost,
            "margin": totals.margin,
        }
