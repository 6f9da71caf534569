"""CreditProfile model: one per partner."""

from datetime import date
from decimal import Decimal
from uuid import UUID

from sqlalchemy import Date, ForeignKey, Numeric, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from settlement_kernel.db.base import TrackedBase


class CreditProfile(TrackedBase):
    """
    Credit terms granted to a partner.

    ``surcharge_rate`` is a percentage applied to each invoice overdue by
    more than ``surcharge_trigger_days``.
    """

    __tablename__ = "credit_profiles"

    __table_args__ = (
        UniqueConstraint("partner_id", name="uq_credit_profile_partner"),
    )

    partner_id: Mapped[UUID] = mapped_column(ForeignKey("partners.id"), nullable=False)
    credit_limit: Mapped[Decimal] = mapped_column(nullable=False)
    currency: Mapped[str] = mapped_column(String(3), default="USD", nullable=False)
    payment_terms_days: Mapped[int] = mapped_column(default=30, nullable=False)
    surcharge_category: Mapped[str | None] = mapped_column(String(50), nullable=True)
    surcharge_rate: Mapped[Decimal] = mapped_column(
        Numeric(9, 4), default=Decimal("0"), nullable=False
    )
    surcharge_trigger_days: Mapped[int] = mapped_column(default=0, nullable=False)
    bank_guarantee_amount: Mapped[Decimal | None] = mapped_column(nullable=True)
    bank_guarantee_expiry: Mapped[date | None] = mapped_column(Date, nullable=True)
    status: Mapped[str] = mapped_column(String(20), default="ACTIVE", nullable=False)

    def __repr__(self) -> str:
        return f"<CreditProfile partner={self.partner_id} limit={self.credit_limit}>"
