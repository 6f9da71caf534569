"""
Configuration Validator (``settlement_config.validator``).

Responsibility
--------------
Validates a raw configuration set (the YAML mapping) before it is parsed
into a ``SettlementConfig``, so structurally invalid parameters never reach
an engine.

Invariants enforced
-------------------
* Required identity keys are present (config_id, version, effective_from).
* Rounding rule is one of the recognised options.
* Ratios are in range: cost_ratio in [0, 1], tax_rate >= 0.
* Batch size >= 1; day offsets >= 0; numbering widths >= 1.
* Credit thresholds are ordered: medium <= high.
* Routing ASR thresholds are ordered: low <= high.
* QoS bands are ordered: poor <= fair <= good on both ASR and ACD.

Failure modes
-------------
* Errors (``ConfigValidationResult.errors``)  -> configuration MUST NOT be
  used.
* Warnings  -> usable, but should be reviewed.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation
from typing import Any

from settlement_kernel.domain.dtos import RoundingRule


@dataclass
class ConfigValidationResult:
    """
    Result of configuration validation.

    ``is_valid`` returns ``True`` only when ``errors`` is empty.
    """

    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    @property
    def is_valid(self) -> bool:
        return len(self.errors) == 0

    def add_error(self, msg: str) -> None:
        self.errors.append(msg)

    def add_warning(self, msg: str) -> None:
        self.warnings.append(msg)


def _decimal(value: Any) -> Decimal | None:
    if value is None or isinstance(value, bool):
        return None
    try:
        return Decimal(str(value))
    except InvalidOperation:
        return None


def _int(value: Any) -> int | None:
    if isinstance(value, bool):
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def validate_configuration(data: dict[str, Any]) -> ConfigValidationResult:
    """
    Validate a raw configuration mapping.

    Returns a result with all errors found; never raises on bad content.
    """
    result = ConfigValidationResult()

    for key in ("config_id", "version", "effective_from"):
        if key not in data:
            result.add_error(f"Missing required key '{key}'")

    _validate_rating(data.get("rating") or {}, result)
    _validate_cycles(data.get("cycles") or {}, result)
    _validate_invoicing(data.get("invoicing") or {}, result)
    _validate_credit(data.get("credit") or {}, result)
    _validate_routing(data.get("routing") or {}, result)
    _validate_qos(data.get("qos") or {}, result)

    return result


def _validate_rating(rating: dict[str, Any], result: ConfigValidationResult) -> None:
    if "rounding_rule" in rating:
        rule = str(rating["rounding_rule"]).upper()
        if rule not in {r.value for r in RoundingRule}:
            result.add_error(
                f"rating.rounding_rule '{rating['rounding_rule']}' is not one of "
                f"{sorted(r.value for r in RoundingRule)}"
            )
    if "max_batch_size" in rating:
        size = _int(rating["max_batch_size"])
        if size is None or size < 1:
            result.add_error("rating.max_batch_size must be an integer >= 1")
    if "charge_decimal_places" in rating:
        places = _int(rating["charge_decimal_places"])
        if places is None or places < 0:
            result.add_error("rating.charge_decimal_places must be an integer >= 0")


def _validate_cycles(cycles: dict[str, Any], result: ConfigValidationResult) -> None:
    if "cost_ratio" in cycles:
        ratio = _decimal(cycles["cost_ratio"])
        if ratio is None or not (Decimal("0") <= ratio <= Decimal("1")):
            result.add_error("cycles.cost_ratio must be a number in [0, 1]")
    for key in ("cut_off_days", "due_days"):
        if key in cycles:
            days = _int(cycles[key])
            if days is None or days < 0:
                result.add_error(f"cycles.{key} must be an integer >= 0")
    cut_off = _int(cycles.get("cut_off_days"))
    due = _int(cycles.get("due_days"))
    if cut_off is not None and due is not None and due < cut_off:
        result.add_warning("cycles.due_days is earlier than cycles.cut_off_days")


def _validate_invoicing(invoicing: dict[str, Any], result: ConfigValidationResult) -> None:
    if "tax_rate" in invoicing:
        tax = _decimal(invoicing["tax_rate"])
        if tax is None or tax < 0:
            result.add_error("invoicing.tax_rate must be a non-negative number")
        elif tax > 1:
            result.add_warning(
                "invoicing.tax_rate above 1 looks like a percentage; expected a fraction"
            )
    for key in ("invoice_number_width", "payment_number_width"):
        if key in invoicing:
            width = _int(invoicing[key])
            if width is None or width < 1:
                result.add_error(f"invoicing.{key} must be an integer >= 1")
    for key in ("invoice_prefix", "payment_prefix"):
        if key in invoicing and not str(invoicing[key]).strip():
            result.add_error(f"invoicing.{key} must not be empty")


def _validate_credit(credit: dict[str, Any], result: ConfigValidationResult) -> None:
    high = _decimal(credit.get("high_risk_utilization"))
    medium = _decimal(credit.get("medium_risk_utilization"))
    if "high_risk_utilization" in credit and high is None:
        result.add_error("credit.high_risk_utilization must be a number")
    if "medium_risk_utilization" in credit and medium is None:
        result.add_error("credit.medium_risk_utilization must be a number")
    if high is not None and medium is not None and medium > high:
        result.add_error(
            f"credit.medium_risk_utilization ({medium}) is above "
            f"credit.high_risk_utilization ({high})"
        )


def _validate_routing(routing: dict[str, Any], result: ConfigValidationResult) -> None:
    low = _decimal(routing.get("asr_low_threshold"))
    high = _decimal(routing.get("asr_high_threshold"))
    if low is not None and high is not None and low > high:
        result.add_error(
            f"routing.asr_low_threshold ({low}) is above "
            f"routing.asr_high_threshold ({high})"
        )
    if "max_alternatives" in routing:
        count = _int(routing["max_alternatives"])
        if count is None or count < 0:
            result.add_error("routing.max_alternatives must be an integer >= 0")


def _validate_qos(qos: dict[str, Any], result: ConfigValidationResult) -> None:
    bands = [(name, qos.get(name) or {}) for name in ("poor", "fair", "good")]
    for metric in ("asr_below", "acd_below"):
        previous: tuple[str, Decimal] | None = None
        for name, band in bands:
            if metric not in band:
                continue
            value = _decimal(band[metric])
            if value is None or value < 0:
                result.add_error(f"qos.{name}.{metric} must be a non-negative number")
                continue
            if previous is not None and value < previous[1]:
                result.add_error(
                    f"qos.{name}.{metric} ({value}) is below "
                    f"qos.{previous[0]}.{metric} ({previous[1]})"
                )
            previous = (name, value)
