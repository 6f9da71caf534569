"""
RatingService -- the usage rating pipeline.

Responsibility:
    Drives usage records through the rating pipeline and persists the
    outcome on each record:

        partner lookup -> partner ACTIVE check -> effective rate sheet
        -> rate selection -> charge computation -> RATED / FAILED

    and returns batch statistics for the run.

Architecture position:
    Kernel > Services -- imperative shell.
    Calculation is delegated to ``settlement_engines.rating``; this service
    only loads inputs and writes results.

Invariants enforced:
    - A batch above ``rating.max_batch_size`` is rejected before any record
      is touched.
    - Per-record failures (inactive partner, no applicable rate, malformed
      record) mark that record FAILED with a message; they never abort the
      batch.  Whole-operation failures (unknown partner) abort before any
      mutation.
    - Only PENDING records are rated.  A RATED record is never re-rated
      here.
    - Flush-only: never commits or rolls back the session.

Failure modes:
    - BatchSizeExceededError: batch larger than the configured maximum.
    - PartnerNotFoundError: the partner does not exist.
"""

from collections.abc import Sequence
from datetime import date, timezone
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from settlement_config.schema import SettlementConfig
from settlement_engines.rating import (
    BatchStatistics,
    RatingResult,
    check_batch_size,
    rate_usage_record,
    summarize_batch,
)
from settlement_kernel.domain.clock import Clock
from settlement_kernel.domain.dtos import (
    PartnerInfo,
    ProcessingStatus,
    RateInfo,
    UsageRecordInfo,
)
from settlement_kernel.exceptions import PartnerInactiveError, UsageRecordNotFoundError
from settlement_kernel.logging_config import LogContext, get_logger
from settlement_kernel.models.usage import UsageRecord
from settlement_kernel.selectors.usage_selector import UsageSelector
from settlement_kernel.services.base import BaseService

logger = get_logger("services.rating")


class RatingService(BaseService[UsageRecord]):
    """
    Rates PENDING usage records and records the outcome.

    Usage:
        service = RatingService(session, config, clock)
        stats = service.rate_pending(partner_id, actor_id)
        session.commit()
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

    def rate_pending(
        self,
        partner_id: UUID,
        actor_id: UUID,
        limit: int | None = None,
    ) -> BatchStatistics:
        """
        Rate the partner's PENDING records, oldest first.

        At most ``limit`` records are attempted (``rating.max_batch_size``
        when omitted); the rest are reported as pending.
        """
        partner = self._usage.get_partner(partner_id)
        batch_limit = limit or self._config.rating.max_batch_size
        check_batch_size(batch_limit, self._config.rating)

        records = self._usage.pending_records(partner_id, limit=batch_limit)
        remaining = self._usage.count_pending(partner_id) - len(records)

        with LogContext.bind(partner_id=str(partner_id), actor_id=str(actor_id)):
            results = self._rate_for_partner(partner, records, actor_id)
            stats = summarize_batch(results, pending=max(0, remaining))
            self._log_batch(stats)
        return stats

    def rate_batch(self, record_ids: Sequence[UUID], actor_id: UUID) -> BatchStatistics:
        """
        Rate an explicit batch of records.

        Records that are missing or not PENDING are skipped and reported
        as pending.  Records may belong to different partners.
        """
        check_batch_size(len(record_ids), self._config.rating)

        rows = self.session.scalars(
            select(UsageRecord).where(UsageRecord.id.in_(list(record_ids)))
        ).all()
        candidates = [
            UsageRecordInfo.from_model(r)
            for r in rows
            if r.processing_status == ProcessingStatus.PENDING
        ]

        by_partner: dict[UUID, list[UsageRecordInfo]] = {}
        for record in candidates:
            by_partner.setdefault(record.partner_id, []).append(record)

        partners = {pid: self._usage.get_partner(pid) for pid in by_partner}

        results: list[RatingResult] = []
        with LogContext.bind(actor_id=str(actor_id)):
            for partner_id, records in by_partner.items():
                results.extend(
                    self._rate_for_partner(partners[partner_id], records, actor_id)
                )
            stats = summarize_batch(results, pending=len(record_ids) - len(candidates))
            self._log_batch(stats)
        return stats

    def rate_record(self, record_id: UUID, actor_id: UUID) -> RatingResult:
        """Rate one PENDING record; a record already rated is returned unchanged."""
        row = self.session.get(UsageRecord, record_id)
        if row is None:
            raise UsageRecordNotFoundError(str(record_id))
        record = UsageRecordInfo.from_model(row)
        if record.processing_status != ProcessingStatus.PENDING:
            return RatingResult(
                record_id=record.record_id,
                service_type=record.service_type,
                status=record.processing_status,
                charged_amount=record.charged_amount,
                currency=record.currency,
                error_message=row.error_message,
            )
        partner = self._usage.get_partner(record.partner_id)
        (result,) = self._rate_for_partner(partner, [record], actor_id)
        return result

    # ------------------------------------------------------------------

    def _rate_for_partner(
        self,
        partner: PartnerInfo,
        records: Sequence[UsageRecordInfo],
        actor_id: UUID,
    ) -> list[RatingResult]:
        if not records:
            return []

        if not partner.is_active:
            error = PartnerInactiveError(partner.partner_code, partner.status.value)
            logger.warning(
                "partner_inactive_rating_skipped",
                extra={
                    "partner_code": partner.partner_code,
                    "status": partner.status.value,
                    "record_count": len(records),
                },
            )
            results = [RatingResult.failed(r, str(error)) for r in records]
        else:
            rates_by_day: dict[date, list[RateInfo]] = {}
            results = []
            for record in records:
                day = record.event_time.astimezone(timezone.utc).date()
                if day not in rates_by_day:
                    rates_by_day[day] = self._usage.effective_rates(partner.partner_id, day)
                results.append(
                    rate_usage_record(record, rates_by_day[day], self._config.rating)
                )

        self._persist(results, actor_id)
        return results

    def _persist(self, results: Sequence[RatingResult], actor_id: UUID) -> None:
        now = self._clock.now()
        rows = {
            r.id: r
            for r in self.session.scalars(
                select(UsageRecord).where(
                    UsageRecord.id.in_([res.record_id for res in results])
                )
            )
        }
        for result in results:
            row = rows[result.record_id]
            row.processing_status = result.status
            row.updated_by_id = actor_id
            if result.is_rated:
                row.charged_amount = result.charged_amount
                row.currency = result.currency
                row.rate_applied = result.rate_applied
                row.error_message = None
                row.rated_at = now
            else:
                row.charged_amount = None
                row.rate_applied = None
                row.error_message = result.error_message
        self.session.flush()

    def _log_batch(self, stats: BatchStatistics) -> None:
        logger.info(
            "rating_batch_completed",
            extra={
                "total": stats.total,
                "rated": stats.rated,
                "failed": stats.failed,
                "pending": stats.pending,
                "success_rate": str(stats.success_rate),
            },
        )
