"""
Usage Rating Engine.

Pure functions with deterministic behavior. No I/O.

Converts a usage record plus the rate that applies to it into a charge.
Resolving *which* rate applies (longest destination prefix, tier on
billable units) is also here, so that a service only has to supply the
candidate rates of the partner's effective rate sheet.

Units:
- VOICE: duration seconds -> minutes under the rounding rule
  (UP ceil, DOWN floor, NEAREST half-up, NONE fractional).
- SMS: message count, 1 when absent.
- DATA: megabytes, raw decimal value.

Amount = units x rate_per_unit, raised to minimum_charge when below it,
then rounded half-up to the configured charge precision (4 places by
default).

Failures never raise out of ``rate_usage_record``: they come back as a
FAILED result carrying a human-readable message, so one bad record never
aborts a batch.

Usage:
    from settlement_engines.rating import rate_usage_record

    result = rate_usage_record(record, rates, config.rating)
    if result.is_rated:
        persist(result.charged_amount, result.currency)
"""

from __future__ import annotations

from collections import Counter
from dataclasses import dataclass, field
from decimal import ROUND_CEILING, ROUND_FLOOR, ROUND_HALF_UP, Decimal
from typing import Sequence
from uuid import UUID

from settlement_config.schema import RatingConfig
from settlement_engines.tracer import traced_engine
from settlement_kernel.domain.dtos import (
    Direction,
    ProcessingStatus,
    RateInfo,
    RoundingRule,
    ServiceType,
    UsageRecordInfo,
)
from settlement_kernel.exceptions import BatchSizeExceededError, RateNotFoundError
from settlement_kernel.logging_config import get_logger

logger = get_logger("engines.rating")

_SIXTY = Decimal("60")
_ONE = Decimal("1")


@dataclass(frozen=True)
class RatingResult:
    """Outcome of rating one usage record."""

    record_id: UUID
    service_type: ServiceType
    status: ProcessingStatus
    units: Decimal | None = None
    charged_amount: Decimal | None = None
    currency: str | None = None
    rate_applied: Decimal | None = None
    rate_id: UUID | None = None
    error_message: str | None = None

    @property
    def is_rated(self) -> bool:
        return self.status == ProcessingStatus.RATED

    @classmethod
    def failed(cls, record: UsageRecordInfo, message: str) -> RatingResult:
        return cls(
            record_id=record.record_id,
            service_type=record.service_type,
            status=ProcessingStatus.FAILED,
            error_message=message,
        )


@dataclass(frozen=True)
class CurrencyRevenue:
    currency: str
    amount: Decimal


@dataclass(frozen=True)
class ErrorCount:
    message: str
    count: int


@dataclass(frozen=True)
class BatchStatistics:
    """Aggregate view of a rated batch."""

    total: int
    rated: int
    failed: int
    pending: int
    success_rate: Decimal
    by_service_type: dict[str, int] = field(default_factory=dict)
    total_revenue: Decimal = Decimal("0")
    revenue_by_currency: tuple[CurrencyRevenue, ...] = ()
    errors: tuple[ErrorCount, ...] = ()


# ============================================================================
# Units
# ============================================================================


def voice_minutes(duration_seconds: int | None, rule: RoundingRule) -> Decimal:
    """Billable minutes for a voice duration under ``rule``."""
    seconds = Decimal(duration_seconds or 0)
    minutes = seconds / _SIXTY
    if rule == RoundingRule.UP:
        return minutes.to_integral_value(rounding=ROUND_CEILING)
    if rule == RoundingRule.DOWN:
        return minutes.to_integral_value(rounding=ROUND_FLOOR)
    if rule == RoundingRule.NEAREST:
        return minutes.to_integral_value(rounding=ROUND_HALF_UP)
    return minutes


def billable_units(record: UsageRecordInfo, rule: RoundingRule) -> Decimal:
    """
    Billable units of a record in its service type's unit.

    The same conversion is used for rating and for invoice line quantities.
    """
    if record.service_type == ServiceType.VOICE:
        return voice_minutes(record.duration_seconds, rule)
    if record.service_type == ServiceType.SMS:
        return Decimal(record.message_count) if record.message_count else _ONE
    return record.data_volume_mb if record.data_volume_mb is not None else Decimal("0")


# ============================================================================
# Validation
# ============================================================================


def validate_usage_record(record: UsageRecordInfo) -> str | None:
    """
    Check the fields rating depends on.

    Returns a human-readable message for the first problem found, or None.
    """
    if record.service_type in (ServiceType.VOICE, ServiceType.SMS):
        if not record.calling_number:
            return "Missing calling_number"
        if not record.called_number:
            return "Missing called_number"
    if record.event_time is None:
        return "Missing event_time"
    if record.service_type == ServiceType.VOICE:
        if record.duration_seconds is None or record.duration_seconds < 0:
            return "Missing or invalid duration for VOICE call"
    if record.service_type == ServiceType.SMS:
        if record.message_count is not None and record.message_count < 1:
            return "Missing or invalid number_of_events for SMS"
    if record.service_type == ServiceType.DATA:
        if record.data_volume_mb is None or record.data_volume_mb < 0:
            return "Missing or invalid data volume for DATA session"
    return None


# ============================================================================
# Rate resolution
# ============================================================================


def _tier_contains(rate: RateInfo, units: Decimal) -> bool:
    if rate.tier_start is not None and units < rate.tier_start:
        return False
    return rate.tier_end is None or units < rate.tier_end


def _direction_matches(rate: RateInfo, direction: Direction | None) -> bool:
    # A rate without direction applies to both; a record without direction
    # only matches such rates.
    return rate.direction is None or rate.direction == direction


def select_rate(
    rates: Sequence[RateInfo],
    service_type: ServiceType,
    direction: Direction | None,
    called_number: str | None,
    units: Decimal,
) -> RateInfo | None:
    """
    Pick the rate that applies to a record.

    Among rates for the service type and direction whose tier contains
    ``units``, the one whose destination prefix is the longest prefix of
    ``called_number`` wins.  An empty prefix is the catch-all.  Ties go to
    a direction-specific rate over a direction-less one, then to the
    lowest tier_start, then to rate_id so the choice is deterministic.
    """
    number = called_number or ""
    candidates = [
        r
        for r in rates
        if r.service_type == service_type
        and _direction_matches(r, direction)
        and number.startswith(r.destination_prefix)
        and _tier_contains(r, units)
    ]
    if not candidates:
        return None

    def key(r: RateInfo) -> tuple:
        return (
            -len(r.destination_prefix),
            0 if r.direction is not None else 1,
            r.tier_start if r.tier_start is not None else Decimal("-Infinity"),
            str(r.rate_id),
        )

    return min(candidates, key=key)


# ============================================================================
# Charge
# ============================================================================


def calculate_charge(units: Decimal, rate: RateInfo, decimal_places: int) -> Decimal:
    """units x rate, clamped up to minimum_charge, rounded half-up."""
    amount = units * rate.rate_per_unit
    if rate.minimum_charge is not None and amount < rate.minimum_charge:
        amount = rate.minimum_charge
    quantum = Decimal(1).scaleb(-decimal_places)
    return amount.quantize(quantum, rounding=ROUND_HALF_UP)


@traced_engine("rating", "1.0", fingerprint_fields=("record", "rates"))
def rate_usage_record(
    record: UsageRecordInfo,
    rates: Sequence[RateInfo],
    config: RatingConfig,
) -> RatingResult:
    """
    Rate one usage record against the candidate rates of its rate sheet.

    Tier matching uses units under the configured rounding rule; when the
    selected rate carries its own rounding rule, the charged units are
    recomputed under that rule.

    Never raises for bad data: returns a FAILED result instead.
    """
    problem = validate_usage_record(record)
    if problem is not None:
        logger.warning(
            "usage_record_rating_failed",
            extra={"record_id": str(record.record_id), "reason": problem},
        )
        return RatingResult.failed(record, problem)

    default_rule = config.rounding_rule
    lookup_units = billable_units(record, default_rule)
    rate = select_rate(
        rates,
        record.service_type,
        record.direction,
        record.called_number,
        lookup_units,
    )
    if rate is None:
        error = RateNotFoundError(
            record.service_type.value,
            record.direction.value if record.direction else None,
            record.called_number,
        )
        logger.warning(
            "usage_record_rating_failed",
            extra={
                "record_id": str(record.record_id),
                "reason": str(error),
                "error_code": error.code,
            },
        )
        return RatingResult.failed(record, str(error))

    rule = rate.rounding_rule or default_rule
    units = lookup_units if rule == default_rule else billable_units(record, rule)
    charge = calculate_charge(units, rate, config.charge_decimal_places)

    logger.debug(
        "usage_record_rated",
        extra={
            "record_id": str(record.record_id),
            "service_type": record.service_type.value,
            "units": str(units),
            "rate_id": str(rate.rate_id),
            "charge": str(charge),
        },
    )
    return RatingResult(
        record_id=record.record_id,
        service_type=record.service_type,
        status=ProcessingStatus.RATED,
        units=units,
        charged_amount=charge,
        currency=rate.currency,
        rate_applied=rate.rate_per_unit,
        rate_id=rate.rate_id,
    )


# ============================================================================
# Batch
# ============================================================================


def check_batch_size(count: int, config: RatingConfig) -> None:
    """
    Reject a batch larger than the configured maximum.

    Raises:
        BatchSizeExceededError: Nothing in the batch is processed.
    """
    if count > config.max_batch_size:
        raise BatchSizeExceededError(count, config.max_batch_size)


@traced_engine("rating_batch_statistics", "1.0")
def summarize_batch(
    results: Sequence[RatingResult],
    pending: int = 0,
) -> BatchStatistics:
    """
    Aggregate rating results into batch statistics.

    ``pending`` counts records of the batch that were not attempted.
    success_rate is the rated share of all records, in percent, 2 places.
    """
    rated = [r for r in results if r.is_rated]
    failed = [r for r in results if r.status == ProcessingStatus.FAILED]
    total = len(results) + pending

    success_rate = Decimal("0")
    if total:
        success_rate = (Decimal(len(rated)) * 100 / Decimal(total)).quantize(
            Decimal("0.01"), rounding=ROUND_HALF_UP
        )

    by_service = Counter(r.service_type.value for r in results)

    revenue: dict[str, Decimal] = {}
    for r in rated:
        if r.charged_amount is None:
            continue
        cur = r.currency or "USD"
        revenue[cur] = revenue.get(cur, Decimal("0")) + r.charged_amount

    errors = Counter(r.error_message or "Unknown error" for r in failed)

    return BatchStatistics(
        total=total,
        rated=len(rated),
        failed=len(failed),
        pending=pending,
        success_rate=success_rate,
        by_service_type=dict(sorted(by_service.items())),
        total_revenue=sum(revenue.values(), Decimal("0")),
        revenue_by_currency=tuple(
            CurrencyRevenue(currency=c, amount=a) for c, a in sorted(revenue.items())
        ),
        errors=tuple(ErrorCount(message=m, count=n) for m, n in errors.most_common()),
    )
