"""
Credit Exposure Calculator.

Pure functions with deterministic behavior. No I/O.

Computes a partner's current exposure from its credit profile and
invoices, evaluated once per call at an explicit ``as_of`` instant.

Formulas:
    total_outstanding  = sum(total_amount) over invoices PENDING or OVERDUE
    total_overdue      = the part of those due strictly before as_of, where
                         an invoice falls due at 00:00 UTC of its due date.
                         An invoice due on the as_of day is therefore
                         overdue here (0 days) although mark_overdue,
                         which compares whole dates, leaves it alone.
    credit_utilization = total_outstanding / credit_limit x 100
                         (0 when credit_limit <= 0)
    available_credit   = max(0, credit_limit - total_outstanding)
    surcharge          = sum(total_amount x surcharge_rate / 100) over
                         overdue invoices whose whole days overdue exceed
                         surcharge_trigger_days
    risk_level         = HIGH above the high threshold, MEDIUM above the
                         medium threshold, else LOW

Usage:
    from settlement_engines.credit import calculate_exposure

    exposure = calculate_exposure(profile, invoices, clock.now(), config.credit)
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, time, timezone
from decimal import ROUND_HALF_UP, Decimal
from typing import Sequence
from uuid import UUID

from settlement_config.schema import CreditConfig
from settlement_engines.tracer import traced_engine
from settlement_kernel.domain.dtos import (
    OUTSTANDING_INVOICE_STATUSES,
    CreditProfileInfo,
    InvoiceInfo,
    RiskLevel,
)
from settlement_kernel.logging_config import get_logger

logger = get_logger("engines.credit")

_TWO_PLACES = Decimal("0.01")
_SECONDS_PER_DAY = 86400


@dataclass(frozen=True)
class OverdueInvoice:
    invoice_id: UUID
    invoice_number: str
    total_amount: Decimal
    days_overdue: int
    surcharge: Decimal


@dataclass(frozen=True)
class CreditExposure:
    partner_id: UUID
    currency: str
    credit_limit: Decimal
    total_outstanding: Decimal
    total_overdue: Decimal
    credit_utilization: Decimal
    available_credit: Decimal
    surcharge_amount: Decimal
    risk_level: RiskLevel
    outstanding_invoice_count: int
    overdue_invoice_count: int
    overdue_invoices: tuple[OverdueInvoice, ...] = ()


def _start_of(day: date) -> datetime:
    return datetime.combine(day, time.min, tzinfo=timezone.utc)


def days_overdue(due_date: date, as_of: datetime) -> int:
    """Whole days elapsed since the start of the due date (floored)."""
    return int((as_of - _start_of(due_date)).total_seconds() // _SECONDS_PER_DAY)


def risk_level_for(utilization: Decimal, config: CreditConfig) -> RiskLevel:
    if utilization > config.high_risk_utilization:
        return RiskLevel.HIGH
    if utilization > config.medium_risk_utilization:
        return RiskLevel.MEDIUM
    return RiskLevel.LOW


@traced_engine("credit_exposure", "1.0", fingerprint_fields=("profile", "as_of"))
def calculate_exposure(
    profile: CreditProfileInfo,
    invoices: Sequence[InvoiceInfo],
    as_of: datetime,
    config: CreditConfig,
) -> CreditExposure:
    """Compute credit exposure for one partner at ``as_of``."""
    if as_of.tzinfo is None:
        raise ValueError("as_of must be timezone-aware")

    outstanding = [
        inv
        for inv in invoices
        if inv.partner_id == profile.partner_id
        and inv.status in OUTSTANDING_INVOICE_STATUSES
    ]
    total_outstanding = sum((inv.total_amount for inv in outstanding), Decimal("0"))

    now = as_of.astimezone(timezone.utc)
    overdue: list[OverdueInvoice] = []
    surcharge_total = Decimal("0")
    for inv in outstanding:
        if _start_of(inv.due_date) >= now:
            continue
        days = days_overdue(inv.due_date, now)
        surcharge = Decimal("0")
        if days > profile.surcharge_trigger_days:
            surcharge = inv.total_amount * profile.surcharge_rate / Decimal("100")
            surcharge_total += surcharge
        overdue.append(
            OverdueInvoice(
                invoice_id=inv.invoice_id,
                invoice_number=inv.invoice_number,
                total_amount=inv.total_amount,
                days_overdue=days,
                surcharge=surcharge.quantize(_TWO_PLACES, rounding=ROUND_HALF_UP),
            )
        )
    total_overdue = sum((o.total_amount for o in overdue), Decimal("0"))

    utilization = Decimal("0")
    if profile.credit_limit > 0:
        utilization = (total_outstanding / profile.credit_limit * 100).quantize(
            _TWO_PLACES, rounding=ROUND_HALF_UP
        )

    risk = risk_level_for(utilization, config)
    if risk != RiskLevel.LOW:
        logger.info(
            "credit_risk_elevated",
            extra={
                "partner_id": str(profile.partner_id),
                "risk_level": risk.value,
                "credit_utilization": str(utilization),
            },
        )

    return CreditExposure(
        partner_id=profile.partner_id,
        currency=profile.currency,
        credit_limit=profile.credit_limit,
        total_outstanding=total_outstanding,
        total_overdue=total_overdue,
        credit_utilization=utilization,
        available_credit=max(Decimal("0"), profile.credit_limit - total_outstanding),
        surcharge_amount=surcharge_total.quantize(_TWO_PLACES, rounding=ROUND_HALF_UP),
        risk_level=risk,
        outstanding_invoice_count=len(outstanding),
        overdue_invoice_count=len(overdue),
        overdue_invoices=tuple(overdue),
    )
