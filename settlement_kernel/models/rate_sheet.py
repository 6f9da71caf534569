"""
RateSheet and Rate models.

A rate sheet is a versioned, partner-specific tariff.  The sheet effective
at an event's time is the active one with the latest effective_date that
is <= the event date and has not expired.
"""

from datetime import date
from decimal import Decimal
from uuid import UUID

from sqlalchemy import Boolean, Date, ForeignKey, Index, Numeric, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from settlement_kernel.db.base import TrackedBase
from settlement_kernel.domain.dtos import Direction, RoundingRule, ServiceType


class RateSheet(TrackedBase):
    __tablename__ = "rate_sheets"

    __table_args__ = (
        Index("idx_rate_sheet_partner_effective", "partner_id", "effective_date"),
    )

    partner_id: Mapped[UUID] = mapped_column(ForeignKey("partners.id"), nullable=False)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    effective_date: Mapped[date] = mapped_column(Date, nullable=False)
    expiry_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    rates: Mapped[list["Rate"]] = relationship(
        back_populates="rate_sheet",
        cascade="all, delete-orphan",
    )

    def __repr__(self) -> str:
        return f"<RateSheet {self.name} from {self.effective_date}>"

    def is_effective_on(self, on: date) -> bool:
        if not self.is_active or self.effective_date > on:
            return False
        return self.expiry_date is None or self.expiry_date >= on


class Rate(TrackedBase):
    """
    One tariff line: service type, direction and destination prefix.

    An empty ``destination_prefix`` is the catch-all for its service type and
    direction.  The optional tier [tier_start, tier_end) is evaluated against
    the record's billable units.
    """

    __tablename__ = "rates"

    __table_args__ = (
        Index("idx_rate_lookup", "rate_sheet_id", "service_type", "direction"),
    )

    rate_sheet_id: Mapped[UUID] = mapped_column(ForeignKey("rate_sheets.id"), nullable=False)
    service_type: Mapped[ServiceType] = mapped_column(String(10), nullable=False)
    direction: Mapped[Direction | None] = mapped_column(String(10), nullable=True)
    destination_prefix: Mapped[str] = mapped_column(String(50), default="", nullable=False)
    rate_per_unit: Mapped[Decimal] = mapped_column(Numeric(38, 12), nullable=False)
    currency: Mapped[str] = mapped_column(String(3), nullable=False)
    minimum_charge: Mapped[Decimal | None] = mapped_column(nullable=True)
    rounding_rule: Mapped[RoundingRule | None] = mapped_column(String(10), nullable=True)
    tier_start: Mapped[Decimal | None] = mapped_column(nullable=True)
    tier_end: Mapped[Decimal | None] = mapped_column(nullable=True)

    rate_sheet: Mapped[RateSheet] = relationship(back_populates="rates")

    def __repr__(self) -> str:
        return (
            f"<Rate {self.service_type} {self.direction or 'ANY'} "
            f"'{self.destination_prefix}' @ {self.rate_per_unit}>"
        )
