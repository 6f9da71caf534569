"""
QoS Summary.

Pure functions with deterministic behavior. No I/O.

Summarises a carrier's quality-of-service metrics per destination and
overall, and grades the carrier on the configured rating ladder.

Averages:
    ASR and ACD are averaged over every metric; NER and PDD only over the
    metrics that carry them (0 when none do).  Averages are rounded
    half-up to 2 places.  Call counts are summed as Python ints, so
    carrier-wide totals never overflow.

Rating (overall averages, first match wins):
    POOR  if ASR < poor.asr_below or ACD < poor.acd_below
    FAIR  if ASR < fair.asr_below or ACD < fair.acd_below
    GOOD  if ASR < good.asr_below or ACD < good.acd_below
    else EXCELLENT
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
from typing import Sequence

from settlement_config.schema import QoSConfig
from settlement_engines.tracer import traced_engine
from settlement_kernel.domain.dtos import QoSMetricInfo, QualityRating
from settlement_kernel.logging_config import get_logger

logger = get_logger("engines.qos")

_TWO_PLACES = Decimal("0.01")
_ZERO = Decimal("0")


@dataclass(frozen=True)
class DestinationQoS:
    destination: str
    avg_asr: Decimal
    avg_acd: Decimal
    avg_ner: Decimal
    avg_pdd: Decimal
    total_calls: int
    sample_count: int


@dataclass(frozen=True)
class QoSSummary:
    overall_asr: Decimal
    overall_acd: Decimal
    overall_ner: Decimal
    overall_pdd: Decimal
    total_calls: int
    quality_rating: QualityRating
    by_destination: tuple[DestinationQoS, ...] = ()

    @property
    def destination_count(self) -> int:
        return len(self.by_destination)


def _mean(values: list[Decimal]) -> Decimal:
    if not values:
        return _ZERO
    return (sum(values, _ZERO) / len(values)).quantize(_TWO_PLACES, rounding=ROUND_HALF_UP)


def _averages(metrics: Sequence[QoSMetricInfo]) -> tuple[Decimal, Decimal, Decimal, Decimal, int]:
    return (
        _mean([m.asr for m in metrics]),
        _mean([m.acd for m in metrics]),
        _mean([m.ner for m in metrics if m.ner is not None]),
        _mean([m.pdd for m in metrics if m.pdd is not None]),
        sum(m.total_calls for m in metrics),
    )


def quality_rating(asr: Decimal, acd: Decimal, config: QoSConfig) -> QualityRating:
    for band, rating in (
        (config.poor, QualityRating.POOR),
        (config.fair, QualityRating.FAIR),
        (config.good, QualityRating.GOOD),
    ):
        if asr < band.asr_below or acd < band.acd_below:
            return rating
    return QualityRating.EXCELLENT


@traced_engine("qos_summary", "1.0", fingerprint_fields=("metrics",))
def summarize_qos(metrics: Sequence[QoSMetricInfo], config: QoSConfig) -> QoSSummary:
    """Per-destination and overall QoS averages with a quality rating."""
    grouped: dict[str, list[QoSMetricInfo]] = {}
    for metric in metrics:
        grouped.setdefault(metric.destination, []).append(metric)

    destinations = []
    for destination in sorted(grouped):
        asr, acd, ner, pdd, calls = _averages(grouped[destination])
        destinations.append(
            DestinationQoS(
                destination=destination,
                avg_asr=asr,
                avg_acd=acd,
                avg_ner=ner,
                avg_pdd=pdd,
                total_calls=calls,
                sample_count=len(grouped[destination]),
            )
        )

    asr, acd, ner, pdd, calls = _averages(metrics)
    rating = quality_rating(asr, acd, config)
    if rating == QualityRating.POOR and metrics:
        logger.warning(
            "carrier_quality_poor",
            extra={"overall_asr": str(asr), "overall_acd": str(acd)},
        )

    return QoSSummary(
        overall_asr=asr,
        overall_acd=acd,
        overall_ner=ner,
        overall_pdd=pdd,
        total_calls=calls,
        quality_rating=rating,
        by_destination=tuple(destinations),
    )
