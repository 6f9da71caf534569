"""
Partner and Agreement models.

A Partner is the root of almost every settlement relation: rate sheets,
usage, billing cycles, invoices, credit profile and commitments all hang
off it.  Carriers in least-cost routing are Partners too.
"""

from datetime import date
from uuid import UUID

from sqlalchemy import Date, ForeignKey, Index, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from settlement_kernel.db.base import TrackedBase
from settlement_kernel.domain.dtos import (
    AgreementStatus,
    CycleCadence,
    PartnerStatus,
    PartnerType,
    PolicyStatus,
)


class Partner(TrackedBase):
    """
    Interconnect or roaming partner.

    Guarantees:
        - partner_code is unique (uq_partner_code).
        - Only ACTIVE partners have usage rated or cycles created.
    """

    __tablename__ = "partners"

    __table_args__ = (
        UniqueConstraint("partner_code", name="uq_partner_code"),
        Index("idx_partner_status", "status"),
    )

    partner_code: Mapped[str] = mapped_column(String(50), nullable=False)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    partner_type: Mapped[PartnerType] = mapped_column(
        String(20), default=PartnerType.RECIPROCAL, nullable=False
    )
    country: Mapped[str | None] = mapped_column(String(100), nullable=True)
    status: Mapped[PartnerStatus] = mapped_column(
        String(20), default=PartnerStatus.PENDING, nullable=False
    )

    agreements: Mapped[list["Agreement"]] = relationship(
        back_populates="partner",
        order_by="Agreement.start_date",
    )

    def __repr__(self) -> str:
        return f"<Partner {self.partner_code}: {self.status}>"

    @property
    def is_active(self) -> bool:
        return self.status == PartnerStatus.ACTIVE


class Agreement(TrackedBase):
    """
    Commercial agreement with a partner.

    Carries the settlement currency and cycle cadence.  ``status`` and
    ``policy_status`` evolve independently (contractual vs. policy review).
    """

    __tablename__ = "agreements"

    __table_args__ = (
        Index("idx_agreement_partner_status", "partner_id", "status"),
    )

    partner_id: Mapped[UUID] = mapped_column(ForeignKey("partners.id"), nullable=False)
    agreement_name: Mapped[str] = mapped_column(String(200), nullable=False)
    agreement_type: Mapped[str] = mapped_column(String(20), default="INTERCONNECT", nullable=False)
    currency: Mapped[str] = mapped_column(String(3), default="USD", nullable=False)
    billing_cycle: Mapped[CycleCadence] = mapped_column(
        String(20), default=CycleCadence.MONTHLY, nullable=False
    )
    start_date: Mapped[date] = mapped_column(Date, nullable=False)
    end_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    status: Mapped[AgreementStatus] = mapped_column(
        String(20), default=AgreementStatus.DRAFT, nullable=False
    )
    policy_status: Mapped[PolicyStatus] = mapped_column(
        String(20), default=PolicyStatus.DRAFT, nullable=False
    )

    partner: Mapped[Partner] = relationship(back_populates="agreements")

    def __repr__(self) -> str:
        return f"<Agreement {self.agreement_name}: {self.status}>"
