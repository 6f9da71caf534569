"""
Invoice Line-Item Builder.

Pure functions with deterministic behavior. No I/O.

Groups a closed cycle's rated records into invoice lines and computes the
invoice totals.

Lines:
    One line per (service type, direction).  Direction stays None when the
    records do not carry one, so "unspecified" is never reported as
    INBOUND.  quantity uses the same unit conversion as rating; unit_rate
    is the effective rate amount / quantity (0 when quantity is 0), not the
    contractual rate.

Totals:
    subtotal is the cycle's total charges (authoritative even if it
    differs from the sum of line amounts); tax = subtotal x tax_rate,
    rounded half-up to 4 places; total = subtotal + tax.

Usage:
    from settlement_engines.invoicing import build_invoice

    draft = build_invoice(records, cycle_totals.total_charges, "USD",
                          config.invoicing, config.rating)
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
from typing import Iterable

from settlement_config.schema import InvoicingConfig, RatingConfig
from settlement_engines.rating import billable_units
from settlement_engines.tracer import traced_engine
from settlement_kernel.domain.dtos import Direction, ServiceType, UsageRecordInfo
from settlement_kernel.logging_config import get_logger

logger = get_logger("engines.invoicing")

_FOUR_PLACES = Decimal("0.0001")
_RATE_PLACES = Decimal("0.000001")

_SERVICE_ORDER = {ServiceType.VOICE: 0, ServiceType.SMS: 1, ServiceType.DATA: 2}
_SERVICE_LABEL = {
    ServiceType.VOICE: "Voice usage (minutes)",
    ServiceType.SMS: "SMS usage (messages)",
    ServiceType.DATA: "Data usage (MB)",
}


@dataclass(frozen=True)
class InvoiceLine:
    line_number: int
    service_type: ServiceType
    direction: Direction | None
    description: str
    quantity: Decimal
    unit_rate: Decimal
    amount: Decimal
    record_count: int


@dataclass(frozen=True)
class InvoiceDraft:
    currency: str
    subtotal: Decimal
    tax_rate: Decimal
    tax_amount: Decimal
    total_amount: Decimal
    line_items: tuple[InvoiceLine, ...]

    @property
    def line_total(self) -> Decimal:
        return sum((li.amount for li in self.line_items), Decimal("0"))


def format_document_number(prefix: str, year: int, sequence: int, width: int) -> str:
    """``INV-2024-007`` style document number."""
    return f"{prefix}-{year}-{sequence:0{width}d}"


def _direction_key(direction: Direction | None) -> str:
    return direction.value if direction is not None else ""


def build_line_items(
    records: Iterable[UsageRecordInfo],
    rating: RatingConfig,
) -> tuple[InvoiceLine, ...]:
    """Group rated records into lines ordered by service type, then direction."""
    groups: dict[tuple[ServiceType, Direction | None], list[Decimal]] = {}
    counts: dict[tuple[ServiceType, Direction | None], int] = {}

    for record in records:
        if not record.is_rated:
            continue
        key = (record.service_type, record.direction)
        units, amount = groups.setdefault(key, [Decimal("0"), Decimal("0")])
        groups[key] = [
            units + billable_units(record, rating.rounding_rule),
            amount + (record.charged_amount or Decimal("0")),
        ]
        counts[key] = counts.get(key, 0) + 1

    ordered = sorted(
        groups.items(),
        key=lambda kv: (_SERVICE_ORDER[kv[0][0]], _direction_key(kv[0][1])),
    )

    lines: list[InvoiceLine] = []
    for number, ((service, direction), (units, amount)) in enumerate(ordered, start=1):
        unit_rate = Decimal("0")
        if units > 0:
            unit_rate = (amount / units).quantize(_RATE_PLACES, rounding=ROUND_HALF_UP)
        description = _SERVICE_LABEL[service]
        if direction is not None:
            description = f"{description} - {direction.value.lower()}"
        lines.append(
            InvoiceLine(
                line_number=number,
                service_type=service,
                direction=direction,
                description=description,
                quantity=units,
                unit_rate=unit_rate,
                amount=amount,
                record_count=counts[(service, direction)],
            )
        )
    return tuple(lines)


@traced_engine("invoice_builder", "1.0", fingerprint_fields=("subtotal", "currency"))
def build_invoice(
    records: Iterable[UsageRecordInfo],
    subtotal: Decimal,
    currency: str,
    invoicing: InvoicingConfig,
    rating: RatingConfig,
) -> InvoiceDraft:
    """Build line items and totals for one closed cycle."""
    lines = build_line_items(records, rating)
    tax = (subtotal * invoicing.tax_rate).quantize(_FOUR_PLACES, rounding=ROUND_HALF_UP)
    draft = InvoiceDraft(
        currency=currency,
        subtotal=subtotal,
        tax_rate=invoicing.tax_rate,
        tax_amount=tax,
        total_amount=subtotal + tax,
        line_items=lines,
    )
    if draft.line_total != subtotal:
        logger.warning(
            "invoice_line_total_mismatch",
            extra={"subtotal": str(subtotal), "line_total": str(draft.line_total)},
        )
    return draft
