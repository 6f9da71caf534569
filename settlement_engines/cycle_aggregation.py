"""
Billing Cycle Aggregator.

Pure functions with deterministic behavior. No I/O.

Sums a partner's rated usage over a billing period into cycle totals.
The lifecycle (OPEN -> PROCESSING -> CLOSED -> INVOICED) is driven by
BillingCycleService; this module only computes the numbers.

Window:
    A record belongs to the period when its event date (UTC) lies in
    [period_start, period_end], both days inclusive.

Totals (RATED records only):
    - total_voice_minutes: sum of ceil(duration / 60) per voice record
    - total_sms_count: sum of message counts (1 when absent)
    - total_data_mb: sum of data volumes
    - total_charges: sum of each record's own charged_amount (no re-rating)
    - total_cost: total_charges x cost_ratio
    - margin: total_charges - total_cost

An empty window yields all-zero totals, never an error.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, timezone
from decimal import ROUND_HALF_UP, Decimal
from typing import Iterable

from settlement_config.schema import CycleConfig
from settlement_engines.rating import voice_minutes
from settlement_engines.tracer import traced_engine
from settlement_kernel.domain.dtos import RoundingRule, ServiceType, UsageRecordInfo
from settlement_kernel.logging_config import get_logger

logger = get_logger("engines.cycle_aggregation")

_FOUR_PLACES = Decimal("0.0001")


@dataclass(frozen=True)
class CycleTotals:
    total_voice_minutes: int
    total_sms_count: int
    total_data_mb: Decimal
    total_charges: Decimal
    total_cost: Decimal
    margin: Decimal
    record_count: int

    @classmethod
    def zero(cls) -> CycleTotals:
        return cls(
            total_voice_minutes=0,
            total_sms_count=0,
            total_data_mb=Decimal("0"),
            total_charges=Decimal("0"),
            total_cost=Decimal("0"),
            margin=Decimal("0"),
            record_count=0,
        )


def in_period(record: UsageRecordInfo, period_start: date, period_end: date) -> bool:
    event_day = record.event_time.astimezone(timezone.utc).date()
    return period_start <= event_day <= period_end


@traced_engine(
    "cycle_aggregation", "1.0", fingerprint_fields=("period_start", "period_end")
)
def aggregate_cycle(
    records: Iterable[UsageRecordInfo],
    period_start: date,
    period_end: date,
    config: CycleConfig,
) -> CycleTotals:
    """Compute cycle totals over the RATED records that fall in the period."""
    if period_end < period_start:
        raise ValueError(
            f"period_end ({period_end}) precedes period_start ({period_start})"
        )

    voice = 0
    sms = 0
    data_mb = Decimal("0")
    charges = Decimal("0")
    count = 0

    for record in records:
        if not record.is_rated or not in_period(record, period_start, period_end):
            continue
        count += 1
        if record.service_type == ServiceType.VOICE:
            voice += int(voice_minutes(record.duration_seconds, RoundingRule.UP))
        elif record.service_type == ServiceType.SMS:
            sms += record.message_count or 1
        elif record.service_type == ServiceType.DATA:
            data_mb += record.data_volume_mb or Decimal("0")
        charges += record.charged_amount or Decimal("0")

    cost = (charges * config.cost_ratio).quantize(_FOUR_PLACES, rounding=ROUND_HALF_UP)

    logger.debug(
        "cycle_totals_computed",
        extra={
            "record_count": count,
            "total_charges": str(charges),
            "total_cost": str(cost),
        },
    )
    return CycleTotals(
        total_voice_minutes=voice,
        total_sms_count=sms,
        total_data_mb=data_mb,
        total_charges=charges,
        total_cost=cost,
        margin=charges - cost,
        record_count=count,
    )
