"""
Invoice, InvoiceLineItem and Payment models.

Lifecycle: DRAFT -> ISSUED -> PARTIALLY_PAID -> PAID, CANCELLED from DRAFT
or ISSUED.  ``amount_paid`` is maintained by InvoiceService under a row
lock; the sum of payments never exceeds ``total_amount``.
"""

from datetime import date
from decimal import Decimal
from uuid import UUID

from sqlalchemy import Date, ForeignKey, Index, Integer, Numeric, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from settlement_kernel.db.base import TrackedBase
from settlement_kernel.domain.dtos import (
    Direction,
    InvoiceStatus,
    PaymentMethod,
    PaymentStatus,
    ServiceType,
)


class Invoice(TrackedBase):
    __tablename__ = "invoices"

    __table_args__ = (
        UniqueConstraint("invoice_number", name="uq_invoice_number"),
        UniqueConstraint("cycle_id", name="uq_invoice_cycle"),
        Index("idx_invoice_partner_status", "partner_id", "status"),
    )

    invoice_number: Mapped[str] = mapped_column(String(50), nullable=False)
    partner_id: Mapped[UUID] = mapped_column(ForeignKey("partners.id"), nullable=False)
    cycle_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("billing_cycles.id"), nullable=True
    )
    status: Mapped[InvoiceStatus] = mapped_column(
        String(20), default=InvoiceStatus.DRAFT, nullable=False
    )
    currency: Mapped[str] = mapped_column(String(3), nullable=False)
    subtotal: Mapped[Decimal] = mapped_column(nullable=False)
    tax_amount: Mapped[Decimal] = mapped_column(nullable=False)
    total_amount: Mapped[Decimal] = mapped_column(nullable=False)
    amount_paid: Mapped[Decimal] = mapped_column(default=Decimal("0"), nullable=False)
    issue_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    due_date: Mapped[date] = mapped_column(Date, nullable=False)
    paid_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    notes: Mapped[str | None] = mapped_column(String(4000), nullable=True)

    line_items: Mapped[list["InvoiceLineItem"]] = relationship(
        back_populates="invoice",
        cascade="all, delete-orphan",
        order_by="InvoiceLineItem.line_number",
    )
    payments: Mapped[list["Payment"]] = relationship(
        back_populates="invoice",
        order_by="Payment.payment_date",
    )

    def __repr__(self) -> str:
        return f"<Invoice {self.invoice_number}: {self.status}>"


class InvoiceLineItem(TrackedBase):
    """One service-type group of an invoice. ``direction`` NULL means not tracked."""

    __tablename__ = "invoice_line_items"

    invoice_id: Mapped[UUID] = mapped_column(ForeignKey("invoices.id"), nullable=False)
    line_number: Mapped[int] = mapped_column(Integer, nullable=False)
    service_type: Mapped[ServiceType] = mapped_column(String(10), nullable=False)
    direction: Mapped[Direction | None] = mapped_column(String(10), nullable=True)
    description: Mapped[str] = mapped_column(String(500), nullable=False)
    quantity: Mapped[Decimal] = mapped_column(nullable=False)
    unit_rate: Mapped[Decimal] = mapped_column(Numeric(38, 12), nullable=False)
    amount: Mapped[Decimal] = mapped_column(nullable=False)

    invoice: Mapped[Invoice] = relationship(back_populates="line_items")


class Payment(TrackedBase):
    __tablename__ = "payments"

    __table_args__ = (
        UniqueConstraint("payment_number", name="uq_payment_number"),
        Index("idx_payment_invoice", "invoice_id"),
    )

    payment_number: Mapped[str] = mapped_column(String(50), nullable=False)
    invoice_id: Mapped[UUID] = mapped_column(ForeignKey("invoices.id"), nullable=False)
    amount: Mapped[Decimal] = mapped_column(nullable=False)
    currency: Mapped[str] = mapped_column(String(3), nullable=False)
    payment_date: Mapped[date] = mapped_column(Date, nullable=False)
    payment_method: Mapped[PaymentMethod] = mapped_column(String(20), nullable=False)
    reference: Mapped[str | None] = mapped_column(String(200), nullable=True)
    status: Mapped[PaymentStatus] = mapped_column(
        String(20), default=PaymentStatus.COMPLETED, nullable=False
    )

    invoice: Mapped[Invoice] = relationship(back_populates="payments")

    def __repr__(self) -> str:
        return f"<Payment {self.payment_number} {self.amount} {self.currency}>"
