"""
CarrierPricelist and CarrierRate models (outbound least-cost routing).
"""

from datetime import date
from decimal import Decimal
from uuid import UUID

from sqlalchemy import Date, ForeignKey, Index, Integer, Numeric, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from settlement_kernel.db.base import TrackedBase
from settlement_kernel.domain.dtos import PricelistStatus
from settlement_kernel.models.partner import Partner


class CarrierPricelist(TrackedBase):
    """
    A carrier's published price list.

    Eligible for routing when ACTIVE, effective_date <= as-of and
    (expiry_date is null or expiry_date >= as-of).
    """

    __tablename__ = "carrier_pricelists"

    __table_args__ = (
        Index("idx_pricelist_carrier_status", "carrier_id", "status"),
    )

    carrier_id: Mapped[UUID] = mapped_column(ForeignKey("partners.id"), nullable=False)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    currency: Mapped[str] = mapped_column(String(3), default="USD", nullable=False)
    effective_date: Mapped[date] = mapped_column(Date, nullable=False)
    expiry_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    status: Mapped[PricelistStatus] = mapped_column(
        String(20), default=PricelistStatus.PENDING, nullable=False
    )

    carrier: Mapped[Partner] = relationship()
    rates: Mapped[list["CarrierRate"]] = relationship(
        back_populates="pricelist",
        cascade="all, delete-orphan",
    )

    def __repr__(self) -> str:
        return f"<CarrierPricelist {self.name}: {self.status}>"


class CarrierRate(TrackedBase):
    __tablename__ = "carrier_rates"

    __table_args__ = (
        Index("idx_carrier_rate_destination", "destination_code"),
    )

    pricelist_id: Mapped[UUID] = mapped_column(
        ForeignKey("carrier_pricelists.id"), nullable=False
    )
    destination_code: Mapped[str] = mapped_column(String(30), nullable=False)
    destination_name: Mapped[str | None] = mapped_column(String(200), nullable=True)
    rate_per_minute: Mapped[Decimal] = mapped_column(Numeric(38, 12), nullable=False)
    billing_increment: Mapped[int] = mapped_column(Integer, default=60, nullable=False)
    # QoS hints published with the rate
    asr: Mapped[Decimal | None] = mapped_column(Numeric(9, 4), nullable=True)
    acd: Mapped[Decimal | None] = mapped_column(Numeric(12, 4), nullable=True)
    peak_rate: Mapped[Decimal | None] = mapped_column(Numeric(38, 12), nullable=True)
    off_peak_rate: Mapped[Decimal | None] = mapped_column(Numeric(38, 12), nullable=True)

    pricelist: Mapped[CarrierPricelist] = relationship(back_populates="rates")

    def __repr__(self) -> str:
        return f"<CarrierRate {self.destination_code} @ {self.rate_per_minute}>"
