"""
Module: settlement_kernel.selectors.invoice_selector
Responsibility: Read-only access to invoices and their line items.
Architecture position: Kernel > Selectors.

Invariants enforced:
    - Read-only.
    - Line items are returned in line_number order.
"""

from dataclasses import dataclass
from decimal import Decimal
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import selectinload

from settlement_kernel.domain.dtos import (
    Direction,
    InvoiceInfo,
    InvoiceStatus,
    ServiceType,
)
from settlement_kernel.models.invoice import Invoice
from settlement_kernel.selectors.base import BaseSelector


@dataclass(frozen=True)
class InvoiceLineInfo:
    line_number: int
    service_type: ServiceType
    direction: Direction | None
    description: str
    quantity: Decimal
    unit_rate: Decimal
    amount: Decimal


@dataclass(frozen=True)
class InvoiceDetail:
    """An invoice with its line items."""

    invoice: InvoiceInfo
    line_items: tuple[InvoiceLineInfo, ...]
    notes: str | None = None


class InvoiceSelector(BaseSelector[Invoice]):

    def get_invoice(self, invoice_id: UUID) -> InvoiceDetail | None:
        invoice = self.session.scalars(
            select(Invoice)
            .where(Invoice.id == invoice_id)
            .options(selectinload(Invoice.line_items))
        ).one_or_none()
        if invoice is None:
            return None
        return InvoiceDetail(
            invoice=InvoiceInfo.from_model(invoice),
            line_items=tuple(
                InvoiceLineInfo(
                    line_number=line.line_number,
                    service_type=ServiceType(line.service_type),
                    direction=Direction(line.direction) if line.direction else None,
                    description=line.description,
                    quantity=line.quantity,
                    unit_rate=line.unit_rate,
                    amount=line.amount,
                )
                for line in invoice.line_items
            ),
            notes=invoice.notes,
        )

    def get_by_number(self, invoice_number: str) -> InvoiceInfo | None:
        invoice = self.session.scalars(
            select(Invoice).where(Invoice.invoice_number == invoice_number)
        ).one_or_none()
        return InvoiceInfo.from_model(invoice) if invoice is not None else None

    def invoices_for_partner(
        self,
        partner_id: UUID,
        statuses: frozenset[InvoiceStatus] | None = None,
    ) -> list[InvoiceInfo]:
        """The partner's invoices, oldest due date first."""
        stmt = select(Invoice).where(Invoice.partner_id == partner_id)
        if statuses:
            stmt = stmt.where(Invoice.status.in_([s.value for s in statuses]))
        stmt = stmt.order_by(Invoice.due_date, Invoice.invoice_number)
        return [InvoiceInfo.from_model(i) for i in self.session.scalars(stmt)]
