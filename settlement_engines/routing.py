"""
Least-Cost Route Selector.

Pure functions with deterministic behavior. No I/O.

Given a dialled destination code and an as-of time, ranks the carrier
rates that can carry the call:

Eligibility:
    - the destination code starts with the rate's destination_code prefix;
    - the owning pricelist is ACTIVE, effective_date <= as-of and
      (expiry_date is null or expiry_date >= as-of).

Quality score (no clamp):
    base (100), minus (50 - ASR) when ASR < 50, plus (ASR - 80) when
    ASR > 80, minus 50 when the carrier partner is not ACTIVE.

Ranking:
    rate_per_minute ascending, then quality score descending, then prefix
    length descending, then carrier_rate_id for a total order.  The first
    route is recommended; the next ``max_alternatives`` are alternatives.

Usage:
    from settlement_engines.routing import select_routes

    selection = select_routes(rates, "447911", as_of, config.routing)
    if selection.success:
        use(selection.recommended)
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal
from typing import Sequence
from uuid import UUID

from settlement_config.schema import RoutingConfig
from settlement_engines.tracer import traced_engine
from settlement_kernel.domain.dtos import CarrierRateInfo, PartnerStatus, PricelistStatus
from settlement_kernel.logging_config import get_logger

logger = get_logger("engines.routing")


@dataclass(frozen=True)
class RankedRoute:
    carrier_rate_id: UUID
    carrier_id: UUID
    carrier_name: str
    pricelist_id: UUID
    destination_code: str
    rate_per_minute: Decimal
    currency: str
    quality_score: Decimal
    billing_increment: int
    destination_name: str | None = None
    asr: Decimal | None = None
    acd: Decimal | None = None
    peak_rate: Decimal | None = None
    off_peak_rate: Decimal | None = None


@dataclass(frozen=True)
class RouteSelection:
    """Ranked routes for one destination.  ``success`` is False when none match."""

    destination_code: str
    success: bool
    total_routes: int = 0
    recommended: RankedRoute | None = None
    alternatives: tuple[RankedRoute, ...] = ()
    message: str | None = None

    @property
    def ranked(self) -> tuple[RankedRoute, ...]:
        if self.recommended is None:
            return ()
        return (self.recommended, *self.alternatives)


def _as_date(value: date | datetime) -> date:
    return value.date() if isinstance(value, datetime) else value


def is_eligible(rate: CarrierRateInfo, destination_code: str, as_of: date | datetime) -> bool:
    """Prefix and pricelist-validity check for one carrier rate."""
    on = _as_date(as_of)
    if not destination_code.startswith(rate.destination_code):
        return False
    if rate.pricelist_status != PricelistStatus.ACTIVE:
        return False
    if rate.effective_date > on:
        return False
    return rate.expiry_date is None or rate.expiry_date >= on


def quality_score(rate: CarrierRateInfo, config: RoutingConfig) -> Decimal:
    score = config.base_quality_score
    if rate.asr is not None:
        if rate.asr < config.asr_low_threshold:
            score -= config.asr_low_threshold - rate.asr
        if rate.asr > config.asr_high_threshold:
            score += rate.asr - config.asr_high_threshold
    if rate.carrier_status != PartnerStatus.ACTIVE:
        score -= config.inactive_carrier_penalty
    return score


def _to_route(rate: CarrierRateInfo, score: Decimal) -> RankedRoute:
    return RankedRoute(
        carrier_rate_id=rate.carrier_rate_id,
        carrier_id=rate.carrier_id,
        carrier_name=rate.carrier_name,
        pricelist_id=rate.pricelist_id,
        destination_code=rate.destination_code,
        destination_name=rate.destination_name,
        rate_per_minute=rate.rate_per_minute,
        currency=rate.currency,
        quality_score=score,
        billing_increment=rate.billing_increment,
        asr=rate.asr,
        acd=rate.acd,
        peak_rate=rate.peak_rate,
        off_peak_rate=rate.off_peak_rate,
    )


def _rank_key(route: RankedRoute) -> tuple:
    return (
        route.rate_per_minute,
        -route.quality_score,
        -len(route.destination_code),
        str(route.carrier_rate_id),
    )


@traced_engine(
    "least_cost_routing", "1.0", fingerprint_fields=("destination_code", "as_of")
)
def select_routes(
    rates: Sequence[CarrierRateInfo],
    destination_code: str,
    as_of: date | datetime,
    config: RoutingConfig,
) -> RouteSelection:
    """
    Rank eligible carrier routes for ``destination_code``.

    No eligible route is not an error: the selection comes back with
    success=False and the destination echoed.
    """
    eligible = [r for r in rates if is_eligible(r, destination_code, as_of)]

    if config.longest_prefix_only and eligible:
        longest = max(len(r.destination_code) for r in eligible)
        eligible = [r for r in eligible if len(r.destination_code) == longest]

    if not eligible:
        logger.info(
            "no_routes_found",
            extra={"destination_code": destination_code},
        )
        return RouteSelection(
            destination_code=destination_code,
            success=False,
            message="No routes found for destination",
        )

    ranked = sorted(
        (_to_route(r, quality_score(r, config)) for r in eligible),
        key=_rank_key,
    )
    return RouteSelection(
        destination_code=destination_code,
        success=True,
        total_routes=len(ranked),
        recommended=ranked[0],
        alternatives=tuple(ranked[1 : 1 + config.max_alternatives]),
    )
