"""
UsageFile and UsageRecord models.

Usage arrives as TAP files (roaming) or CDR batches (interconnect).  A
record is immutable once RATED; FAILED records keep their error message
and are never discarded.
"""

from datetime import datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy import ForeignKey, Index, Numeric, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from settlement_kernel.db.base import TrackedBase
from settlement_kernel.domain.dtos import (
    Direction,
    FileStatus,
    ProcessingStatus,
    ServiceType,
)


class UsageFile(TrackedBase):
    __tablename__ = "usage_files"

    __table_args__ = (
        Index("idx_usage_file_partner_status", "partner_id", "status"),
    )

    partner_id: Mapped[UUID] = mapped_column(ForeignKey("partners.id"), nullable=False)
    file_name: Mapped[str] = mapped_column(String(255), nullable=False)
    status: Mapped[FileStatus] = mapped_column(
        String(20), default=FileStatus.UPLOADED, nullable=False
    )
    record_count: Mapped[int] = mapped_column(default=0, nullable=False)
    error_message: Mapped[str | None] = mapped_column(String(4000), nullable=True)
    uploaded_at: Mapped[datetime | None] = mapped_column(nullable=True)

    records: Mapped[list["UsageRecord"]] = relationship(back_populates="file")

    def __repr__(self) -> str:
        return f"<UsageFile {self.file_name}: {self.status}>"


class UsageRecord(TrackedBase):
    """
    A single TAP record or CDR.

    Only the quantity column matching service_type is meaningful:
    duration_seconds (VOICE), message_count (SMS), data_volume_mb (DATA).
    """

    __tablename__ = "usage_records"

    __table_args__ = (
        Index("idx_usage_partner_time", "partner_id", "event_time"),
        Index("idx_usage_partner_status", "partner_id", "processing_status"),
    )

    partner_id: Mapped[UUID] = mapped_column(ForeignKey("partners.id"), nullable=False)
    file_id: Mapped[UUID | None] = mapped_column(ForeignKey("usage_files.id"), nullable=True)
    service_type: Mapped[ServiceType] = mapped_column(String(10), nullable=False)
    direction: Mapped[Direction | None] = mapped_column(String(10), nullable=True)
    event_time: Mapped[datetime] = mapped_column(nullable=False)
    calling_number: Mapped[str | None] = mapped_column(String(50), nullable=True)
    called_number: Mapped[str | None] = mapped_column(String(50), nullable=True)
    duration_seconds: Mapped[int | None] = mapped_column(nullable=True)
    message_count: Mapped[int | None] = mapped_column(nullable=True)
    data_volume_mb: Mapped[Decimal | None] = mapped_column(Numeric(38, 9), nullable=True)

    processing_status: Mapped[ProcessingStatus] = mapped_column(
        String(10), default=ProcessingStatus.PENDING, nullable=False
    )
    charged_amount: Mapped[Decimal | None] = mapped_column(nullable=True)
    currency: Mapped[str | None] = mapped_column(String(3), nullable=True)
    rate_applied: Mapped[Decimal | None] = mapped_column(Numeric(38, 12), nullable=True)
    error_message: Mapped[str | None] = mapped_column(String(4000), nullable=True)
    rated_at: Mapped[datetime | None] = mapped_column(nullable=True)

    file: Mapped[UsageFile | None] = relationship(back_populates="records")

    def __repr__(self) -> str:
        return f"<UsageRecord {self.service_type} {self.event_time}: {self.processing_status}>"
