"""
VolumeCommitment, DiscountScheme and DiscountTier models.
"""

from datetime import date
from decimal import Decimal
from uuid import UUID

from sqlalchemy import Date, ForeignKey, Integer, Numeric, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from settlement_kernel.db.base import TrackedBase
from settlement_kernel.domain.dtos import CommitmentType, DiscountAppliesTo


class DiscountScheme(TrackedBase):
    __tablename__ = "discount_schemes"

    name: Mapped[str] = mapped_column(String(200), nullable=False)
    applies_to: Mapped[DiscountAppliesTo] = mapped_column(
        String(20), default=DiscountAppliesTo.VOLUME, nullable=False
    )

    tiers: Mapped[list["DiscountTier"]] = relationship(
        back_populates="scheme",
        cascade="all, delete-orphan",
        order_by="DiscountTier.tier_order",
    )


class DiscountTier(TrackedBase):
    """Band [from_volume, to_volume); a NULL bound is open on that side."""

    __tablename__ = "discount_tiers"

    scheme_id: Mapped[UUID] = mapped_column(ForeignKey("discount_schemes.id"), nullable=False)
    tier_order: Mapped[int] = mapped_column(Integer, nullable=False)
    from_volume: Mapped[Decimal | None] = mapped_column(nullable=True)
    to_volume: Mapped[Decimal | None] = mapped_column(nullable=True)
    discount_percentage: Mapped[Decimal | None] = mapped_column(Numeric(9, 4), nullable=True)
    rate_adjustment: Mapped[Decimal | None] = mapped_column(Numeric(38, 12), nullable=True)

    scheme: Mapped[DiscountScheme] = relationship(back_populates="tiers")


class VolumeCommitment(TrackedBase):
    """
    Minimum volume and/or revenue a partner commits to over a period.

    ``destination_prefixes`` is a comma-separated list; when set, only usage
    to matching called numbers counts toward the commitment.
    """

    __tablename__ = "volume_commitments"

    partner_id: Mapped[UUID] = mapped_column(ForeignKey("partners.id"), nullable=False)
    commitment_type: Mapped[CommitmentType] = mapped_column(
        String(30), default=CommitmentType.VOLUME, nullable=False
    )
    destination_group: Mapped[str | None] = mapped_column(String(100), nullable=True)
    destination_prefixes: Mapped[str | None] = mapped_column(String(4000), nullable=True)
    committed_volume_minutes: Mapped[Decimal | None] = mapped_column(nullable=True)
    committed_revenue: Mapped[Decimal | None] = mapped_column(nullable=True)
    currency: Mapped[str] = mapped_column(String(3), default="USD", nullable=False)
    start_date: Mapped[date] = mapped_column(Date, nullable=False)
    end_date: Mapped[date] = mapped_column(Date, nullable=False)
    penalty_rate: Mapped[Decimal | None] = mapped_column(Numeric(38, 12), nullable=True)
    discount_scheme_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("discount_schemes.id"), nullable=True
    )

    discount_scheme: Mapped[DiscountScheme | None] = relationship()
