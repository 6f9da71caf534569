"""QoSMetric model: daily call-quality aggregates per destination."""

from datetime import date
from decimal import Decimal
from uuid import UUID

from sqlalchemy import Date, ForeignKey, Index, Numeric, String
from sqlalchemy.orm import Mapped, mapped_column

from settlement_kernel.db.base import TrackedBase


class QoSMetric(TrackedBase):
    __tablename__ = "qos_metrics"

    __table_args__ = (
        Index("idx_qos_destination_date", "destination", "metric_date"),
    )

    carrier_id: Mapped[UUID | None] = mapped_column(ForeignKey("partners.id"), nullable=True)
    destination: Mapped[str] = mapped_column(String(100), nullable=False)
    metric_date: Mapped[date] = mapped_column(Date, nullable=False)
    asr: Mapped[Decimal] = mapped_column(Numeric(9, 4), nullable=False)
    acd: Mapped[Decimal] = mapped_column(Numeric(12, 4), nullable=False)
    ner: Mapped[Decimal | None] = mapped_column(Numeric(9, 4), nullable=True)
    pdd: Mapped[Decimal | None] = mapped_column(Numeric(12, 4), nullable=True)
    # Carrier-wide aggregates can be large
    total_calls: Mapped[int] = mapped_column(default=0, nullable=False)
