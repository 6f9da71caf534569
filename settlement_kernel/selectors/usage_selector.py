"""
UsageSelector -- read access to usage files, usage records and rate sheets.

Provides the record sets the rating pipeline, the cycle aggregator and the
invoice builder consume: a partner's records in a period (optionally by
processing status), its pending records, its files in a period, and the
rates of the rate sheet effective on a given day.
"""

from datetime import date
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.orm import selectinload

from settlement_kernel.domain.dtos import (
    FileStatus,
    PartnerInfo,
    ProcessingStatus,
    RateInfo,
    UsageFileInfo,
    UsageRecordInfo,
)
from settlement_kernel.exceptions import PartnerNotFoundError
from settlement_kernel.models.partner import Partner
from settlement_kernel.models.rate_sheet import RateSheet
from settlement_kernel.models.usage import UsageFile, UsageRecord
from settlement_kernel.selectors.base import BaseSelector, day_bounds


class UsageSelector(BaseSelector[UsageRecord]):
    """Read-side queries over usage and the rates that price it."""

    def get_partner(self, partner_id: UUID) -> PartnerInfo:
        partner = self.session.get(Partner, partner_id)
        if partner is None:
            raise PartnerNotFoundError(str(partner_id))
        return PartnerInfo.from_model(partner)

    def records_in_period(
        self,
        partner_id: UUID,
        period_start: date,
        period_end: date,
        status: ProcessingStatus | None = None,
    ) -> list[UsageRecordInfo]:
        """Records whose event date falls on ``period_start`` .. ``period_end``."""
        lower, upper = day_bounds(period_start, period_end)
        stmt = select(UsageRecord).where(
            UsageRecord.partner_id == partner_id,
            UsageRecord.event_time >= lower,
            UsageRecord.event_time < upper,
        )
        if status is not None:
            stmt = stmt.where(UsageRecord.processing_status == status.value)
        stmt = stmt.order_by(UsageRecord.event_time, UsageRecord.id)
        return [UsageRecordInfo.from_model(r) for r in self.session.scalars(stmt)]

    def pending_records(
        self, partner_id: UUID, limit: int | None = None
    ) -> list[UsageRecordInfo]:
        stmt = (
            select(UsageRecord)
            .where(
                UsageRecord.partner_id == partner_id,
                UsageRecord.processing_status == ProcessingStatus.PENDING.value,
            )
            .order_by(UsageRecord.event_time, UsageRecord.id)
        )
        if limit is not None:
            stmt = stmt.limit(limit)
        return [UsageRecordInfo.from_model(r) for r in self.session.scalars(stmt)]

    def count_pending(self, partner_id: UUID) -> int:
        return self.session.scalar(
            select(func.count(UsageRecord.id)).where(
                UsageRecord.partner_id == partner_id,
                UsageRecord.processing_status == ProcessingStatus.PENDING.value,
            )
        ) or 0

    def files_in_period(
        self, partner_id: UUID, period_start: date, period_end: date
    ) -> list[UsageFileInfo]:
        """Files uploaded on ``period_start`` .. ``period_end``, newest first."""
        lower, upper = day_bounds(period_start, period_end)
        stmt = (
            select(UsageFile)
            .where(
                UsageFile.partner_id == partner_id,
                UsageFile.uploaded_at >= lower,
                UsageFile.uploaded_at < upper,
            )
            .order_by(UsageFile.uploaded_at.desc())
        )
        return [
            UsageFileInfo(
                file_id=f.id,
                file_name=f.file_name,
                status=FileStatus(f.status),
                record_count=f.record_count,
                error_message=f.error_message,
            )
            for f in self.session.scalars(stmt)
        ]

    def effective_rates(self, partner_id: UUID, on: date) -> list[RateInfo]:
        """
        Rates of the partner's rate sheet in force on ``on``.

        A sheet is in force when it is active, effective on or before ``on``
        and not yet expired.  When several are, the most recently effective
        one wins.  No sheet means no rates.
        """
        sheets = self.session.scalars(
            select(RateSheet)
            .where(
                RateSheet.partner_id == partner_id,
                RateSheet.is_active.is_(True),
                RateSheet.effective_date <= on,
            )
            .options(selectinload(RateSheet.rates))
            .order_by(RateSheet.effective_date.desc(), RateSheet.id)
        ).all()
        for sheet in sheets:
            if sheet.is_effective_on(on):
                return [RateInfo.from_model(rate) for rate in sheet.rates]
        return []
