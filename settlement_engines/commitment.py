"""
Commitment & Discount Evaluator.

Pure functions with deterministic behavior. No I/O.

Tracks a partner's progress against a volume and/or revenue commitment
over the commitment period and resolves the discount tier the actual
usage falls in.

Actuals:
    Usage whose event date lies in [start_date, end_date] (both inclusive)
    and, for a destination-scoped commitment, whose called number starts
    with one of the commitment's prefixes.
    actual_minutes = floor(total voice seconds / 60);
    actual_revenue = sum of charged amounts.

Progress:
    volume_progress  = actual_minutes / committed_volume_minutes x 100
    revenue_progress = actual_revenue / committed_revenue x 100
    each shortfall   = max(0, committed - actual)

Penalty:
    One formula for both dimensions:
        penalty = max(volume_shortfall, revenue_shortfall) x penalty_rate
    The rate is applied per unit of whichever shortfall is numerically
    larger.  The comparison is unit-blind: minutes are compared directly
    against currency, so the driving shortfall depends on the units in use
    rather than on business weight.  Pending product sign-off.

Discount tier:
    Scan the scheme's tiers in order, check value = actual_revenue when the
    scheme applies to REVENUE, else actual_minutes; the first half-open
    [from, to) band containing it wins.  No match means no discount.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, time, timezone
from decimal import ROUND_FLOOR, ROUND_HALF_UP, Decimal
from typing import Iterable

from settlement_engines.tracer import traced_engine
from settlement_kernel.domain.dtos import (
    CommitmentInfo,
    DiscountAppliesTo,
    DiscountSchemeInfo,
    DiscountTierInfo,
    ServiceType,
    UsageRecordInfo,
)
from settlement_kernel.logging_config import get_logger

logger = get_logger("engines.commitment")

_TWO_PLACES = Decimal("0.01")
_SECONDS_PER_DAY = 86400


@dataclass(frozen=True)
class CommitmentProgress:
    commitment_id: object
    actual_minutes: Decimal
    actual_revenue: Decimal
    volume_progress: Decimal | None
    revenue_progress: Decimal | None
    volume_shortfall: Decimal
    revenue_shortfall: Decimal
    penalty_amount: Decimal
    days_remaining: int
    applicable_tier: DiscountTierInfo | None = None

    @property
    def is_met(self) -> bool:
        return self.volume_shortfall == 0 and self.revenue_shortfall == 0


def counts_toward(record: UsageRecordInfo, commitment: CommitmentInfo) -> bool:
    event_day = record.event_time.astimezone(timezone.utc).date()
    if not (commitment.start_date <= event_day <= commitment.end_date):
        return False
    if not commitment.destination_prefixes:
        return True
    number = record.called_number or ""
    return any(number.startswith(p) for p in commitment.destination_prefixes)


def find_discount_tier(
    scheme: DiscountSchemeInfo | None,
    actual_minutes: Decimal,
    actual_revenue: Decimal,
) -> DiscountTierInfo | None:
    """First tier (in scheme order) whose band contains the check value."""
    if scheme is None or not scheme.tiers:
        return None
    value = actual_revenue if scheme.applies_to == DiscountAppliesTo.REVENUE else actual_minutes
    for tier in scheme.tiers:
        if tier.contains(value):
            return tier
    return None


def _progress(actual: Decimal, committed: Decimal | None) -> Decimal | None:
    if not committed:
        return None
    return (actual / committed * 100).quantize(_TWO_PLACES, rounding=ROUND_HALF_UP)


def _shortfall(actual: Decimal, committed: Decimal | None) -> Decimal:
    if not committed:
        return Decimal("0")
    return max(Decimal("0"), committed - actual)


def days_remaining(end_date: date, as_of: datetime) -> int:
    end = datetime.combine(end_date, time.min, tzinfo=timezone.utc)
    return max(0, int((end - as_of).total_seconds() // _SECONDS_PER_DAY))


@traced_engine("commitment_progress", "1.0", fingerprint_fields=("commitment", "as_of"))
def evaluate_commitment(
    commitment: CommitmentInfo,
    records: Iterable[UsageRecordInfo],
    as_of: datetime,
) -> CommitmentProgress:
    """Compute progress, shortfalls, penalty and discount tier for a commitment."""
    seconds = 0
    revenue = Decimal("0")
    for record in records:
        if record.partner_id != commitment.partner_id or not counts_toward(record, commitment):
            continue
        if record.service_type == ServiceType.VOICE:
            seconds += record.duration_seconds or 0
        revenue += record.charged_amount or Decimal("0")

    minutes = (Decimal(seconds) / 60).to_integral_value(rounding=ROUND_FLOOR)

    volume_shortfall = _shortfall(minutes, commitment.committed_volume_minutes)
    revenue_shortfall = _shortfall(revenue, commitment.committed_revenue)

    penalty = Decimal("0")
    if commitment.penalty_rate:
        penalty = (max(volume_shortfall, revenue_shortfall) * commitment.penalty_rate).quantize(
            _TWO_PLACES, rounding=ROUND_HALF_UP
        )

    tier = find_discount_tier(commitment.discount_scheme, minutes, revenue)

    progress = CommitmentProgress(
        commitment_id=commitment.commitment_id,
        actual_minutes=minutes,
        actual_revenue=revenue,
        volume_progress=_progress(minutes, commitment.committed_volume_minutes),
        revenue_progress=_progress(revenue, commitment.committed_revenue),
        volume_shortfall=volume_shortfall,
        revenue_shortfall=revenue_shortfall,
        penalty_amount=penalty,
        days_remaining=days_remaining(commitment.end_date, as_of),
        applicable_tier=tier,
    )
    logger.debug(
        "commitment_evaluated",
        extra={
            "commitment_id": str(commitment.commitment_id),
            "actual_minutes": str(minutes),
            "penalty_amount": str(penalty),
        },
    )
    return progress
