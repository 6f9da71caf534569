"""
BillingCycle model.

Lifecycle: OPEN -> PROCESSING -> CLOSED -> INVOICED, with PROCESSING ->
OPEN on reset or failed aggregation.  Every status change is a conditional
UPDATE guarded by ``version`` (see BillingCycleService), never a plain
attribute assignment followed by flush.
"""

from datetime import date, datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy import Date, ForeignKey, Index, Numeric, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from settlement_kernel.db.base import TrackedBase
from settlement_kernel.db.types import UUIDString
from settlement_kernel.domain.dtos import CycleStatus


class BillingCycle(TrackedBase):
    """
    One settlement period for one partner.

    Guarantees:
        - (partner_id, cycle_number) is unique; cycle numbers increase
          monotonically per partner.
        - Aggregate totals are NULL until the cycle is CLOSED.
        - ``invoice_id`` is the back-reference to the single invoice generated
          from this cycle.  It is a plain column: the Invoice row owns the FK.
    """

    __tablename__ = "billing_cycles"

    __table_args__ = (
        UniqueConstraint("partner_id", "cycle_number", name="uq_cycle_partner_number"),
        UniqueConstraint("partner_id", "period_start", name="uq_cycle_partner_period"),
        Index("idx_cycle_status", "status"),
    )

    partner_id: Mapped[UUID] = mapped_column(ForeignKey("partners.id"), nullable=False)
    cycle_number: Mapped[int] = mapped_column(nullable=False)
    period_start: Mapped[date] = mapped_column(Date, nullable=False)
    period_end: Mapped[date] = mapped_column(Date, nullable=False)
    cut_off_date: Mapped[date] = mapped_column(Date, nullable=False)
    due_date: Mapped[date] = mapped_column(Date, nullable=False)
    currency: Mapped[str] = mapped_column(String(3), default="USD", nullable=False)

    status: Mapped[CycleStatus] = mapped_column(
        String(20), default=CycleStatus.OPEN, nullable=False
    )
    version: Mapped[int] = mapped_column(default=0, nullable=False)

    total_voice_minutes: Mapped[int | None] = mapped_column(nullable=True)
    total_sms_count: Mapped[int | None] = mapped_column(nullable=True)
    total_data_mb: Mapped[Decimal | None] = mapped_column(Numeric(38, 9), nullable=True)
    total_charges: Mapped[Decimal | None] = mapped_column(nullable=True)
    total_cost: Mapped[Decimal | None] = mapped_column(nullable=True)
    margin: Mapped[Decimal | None] = mapped_column(nullable=True)

    closed_at: Mapped[datetime | None] = mapped_column(nullable=True)
    closed_by_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)
    invoice_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)

    def __repr__(self) -> str:
        return f"<BillingCycle #{self.cycle_number} {self.period_start}: {self.status}>"

    def contains_date(self, check_date: date) -> bool:
        return self.period_start <= check_date <= self.period_end
