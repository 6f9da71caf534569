"""
SettlementConfig schema.

The human-authored configuration set (YAML) is parsed into these frozen
dataclasses.  Every business parameter an engine needs lives here: engines
receive the section they use as an argument and contain no literals for
ratios, rates or thresholds.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from enum import Enum, unique

from settlement_kernel.domain.dtos import RoundingRule


@unique
class ConfigStatus(str, Enum):
    """Lifecycle status for a configuration set."""

    DRAFT = "draft"
    PUBLISHED = "published"
    SUPERSEDED = "superseded"


@dataclass(frozen=True)
class RatingConfig:
    """Parameters for the rating calculator and pipeline."""

    rounding_rule: RoundingRule = RoundingRule.UP
    max_batch_size: int = 10_000
    charge_decimal_places: int = 4


@dataclass(frozen=True)
class CycleConfig:
    """Billing cycle aggregation and creation parameters."""

    # Cost modeled as a flat share of charges; a business parameter
    cost_ratio: Decimal = Decimal("0.20")
    cut_off_days: int = 5
    due_days: int = 30
    default_currency: str = "USD"


@dataclass(frozen=True)
class InvoicingConfig:
    tax_rate: Decimal = Decimal("0.10")
    invoice_prefix: str = "INV"
    invoice_number_width: int = 3
    payment_prefix: str = "PAY"
    payment_number_width: int = 4


@dataclass(frozen=True)
class CreditConfig:
    """Utilization thresholds (percent) for the risk ladder."""

    high_risk_utilization: Decimal = Decimal("90")
    medium_risk_utilization: Decimal = Decimal("70")


@dataclass(frozen=True)
class RoutingConfig:
    """Least-cost routing quality score parameters."""

    asr_low_threshold: Decimal = Decimal("50")
    asr_high_threshold: Decimal = Decimal("80")
    base_quality_score: Decimal = Decimal("100")
    inactive_carrier_penalty: Decimal = Decimal("50")
    max_alternatives: int = 4
    # When true, only routes on the longest matching prefix are ranked
    longest_prefix_only: bool = False


@dataclass(frozen=True)
class QoSBand:
    """Upper bounds (exclusive) below which a destination falls into a rating."""

    asr_below: Decimal
    acd_below: Decimal


@dataclass(frozen=True)
class QoSConfig:
    """Quality rating ladder: POOR, then FAIR, then GOOD; else EXCELLENT."""

    poor: QoSBand = QoSBand(Decimal("50"), Decimal("60"))
    fair: QoSBand = QoSBand(Decimal("70"), Decimal("120"))
    good: QoSBand = QoSBand(Decimal("85"), Decimal("180"))


@dataclass(frozen=True)
class SettlementConfig:
    """
    A complete, validated configuration set.

    ``checksum`` is the SHA-256 of the canonical source content and
    identifies the exact parameters that governed a calculation.
    """

    config_id: str
    version: int
    effective_from: date
    effective_to: date | None = None
    status: ConfigStatus = ConfigStatus.DRAFT
    rating: RatingConfig = field(default_factory=RatingConfig)
    cycles: CycleConfig = field(default_factory=CycleConfig)
    invoicing: InvoicingConfig = field(default_factory=InvoicingConfig)
    credit: CreditConfig = field(default_factory=CreditConfig)
    routing: RoutingConfig = field(default_factory=RoutingConfig)
    qos: QoSConfig = field(default_factory=QoSConfig)
    checksum: str = ""

    def is_effective_on(self, as_of: date) -> bool:
        if self.effective_from > as_of:
            return False
        return self.effective_to is None or self.effective_to >= as_of
