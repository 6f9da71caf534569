"""
Configuration Loader (``settlement_config.loader``).

Responsibility
--------------
Loads a YAML configuration set and parses it into the frozen dataclasses
of ``settlement_config.schema``.  Build/test tooling: runtime callers go
through ``settlement_config.get_active_config()``.

Invariants enforced
-------------------
* Numeric business parameters are parsed to ``Decimal`` via ``str`` so a
  YAML float never leaks binary rounding error into a ratio.
* ``compute_checksum`` produces a deterministic SHA-256 of the canonical
  source, used as the configuration identity in trace logs.

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* Missing ``config_id``/``version``/``effective_from``  -> ``KeyError``.
* Unparseable values  -> ``ValueError``.
"""

from __future__ import annotations

import hashlib
import json
from datetime import date
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Any

import yaml

from settlement_config.schema import (
    ConfigStatus,
    CreditConfig,
    CycleConfig,
    InvoicingConfig,
    QoSBand,
    QoSConfig,
    RatingConfig,
    RoutingConfig,
    SettlementConfig,
)
from settlement_kernel.domain.dtos import RoundingRule


def load_yaml_file(path: Path) -> dict[str, Any]:
    """
    Load a single YAML file and return its contents as a dict.

    Raises:
        FileNotFoundError: if the file does not exist.
        yaml.YAMLError: if the file contains invalid YAML.
    """
    with open(path) as f:
        return yaml.safe_load(f) or {}


def parse_date(value: Any) -> date:
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        return date.fromisoformat(value)
    raise ValueError(f"Cannot parse date from {value!r}")


def parse_decimal(value: Any) -> Decimal:
    if isinstance(value, bool):
        raise ValueError(f"Cannot parse decimal from {value!r}")
    try:
        return Decimal(str(value))
    except InvalidOperation as e:
        raise ValueError(f"Cannot parse decimal from {value!r}") from e


def parse_rating(data: dict[str, Any]) -> RatingConfig:
    defaults = RatingConfig()
    return RatingConfig(
        rounding_rule=RoundingRule(
            str(data.get("rounding_rule", defaults.rounding_rule.value)).upper()
        ),
        max_batch_size=int(data.get("max_batch_size", defaults.max_batch_size)),
        charge_decimal_places=int(
            data.get("charge_decimal_places", defaults.charge_decimal_places)
        ),
    )


def parse_cycles(data: dict[str, Any]) -> CycleConfig:
    defaults = CycleConfig()
    return CycleConfig(
        cost_ratio=parse_decimal(data.get("cost_ratio", defaults.cost_ratio)),
        cut_off_days=int(data.get("cut_off_days", defaults.cut_off_days)),
        due_days=int(data.get("due_days", defaults.due_days)),
        default_currency=str(data.get("default_currency", defaults.default_currency)),
    )


def parse_invoicing(data: dict[str, Any]) -> InvoicingConfig:
    defaults = InvoicingConfig()
    return InvoicingConfig(
        tax_rate=parse_decimal(data.get("tax_rate", defaults.tax_rate)),
        invoice_prefix=str(data.get("invoice_prefix", defaults.invoice_prefix)),
        invoice_number_width=int(
            data.get("invoice_number_width", defaults.invoice_number_width)
        ),
        payment_prefix=str(data.get("payment_prefix", defaults.payment_prefix)),
        payment_number_width=int(
            data.get("payment_number_width", defaults.payment_number_width)
        ),
    )


def parse_credit(data: dict[str, Any]) -> CreditConfig:
    defaults = CreditConfig()
    return CreditConfig(
        high_risk_utilization=parse_decimal(
            data.get("high_risk_utilization", defaults.high_risk_utilization)
        ),
        medium_risk_utilization=parse_decimal(
            data.get("medium_risk_utilization", defaults.medium_risk_utilization)
        ),
    )


def parse_routing(data: dict[str, Any]) -> RoutingConfig:
    defaults = RoutingConfig()
    return RoutingConfig(
        asr_low_threshold=parse_decimal(
            data.get("asr_low_threshold", defaults.asr_low_threshold)
        ),
        asr_high_threshold=parse_decimal(
            data.get("asr_high_threshold", defaults.asr_high_threshold)
        ),
        base_quality_score=parse_decimal(
            data.get("base_quality_score", defaults.base_quality_score)
        ),
        inactive_carrier_penalty=parse_decimal(
            data.get("inactive_carrier_penalty", defaults.inactive_carrier_penalty)
        ),
        max_alternatives=int(data.get("max_alternatives", defaults.max_alternatives)),
        longest_prefix_only=bool(
            data.get("longest_prefix_only", defaults.longest_prefix_only)
        ),
    )


def _parse_band(data: dict[str, Any] | None, default: QoSBand) -> QoSBand:
    if not data:
        return default
    return QoSBand(
        asr_below=parse_decimal(data.get("asr_below", default.asr_below)),
        acd_below=parse_decimal(data.get("acd_below", default.acd_below)),
    )


def parse_qos(data: dict[str, Any]) -> QoSConfig:
    defaults = QoSConfig()
    return QoSConfig(
        poor=_parse_band(data.get("poor"), defaults.poor),
        fair=_parse_band(data.get("fair"), defaults.fair),
        good=_parse_band(data.get("good"), defaults.good),
    )


def parse_config(data: dict[str, Any]) -> SettlementConfig:
    """
    Parse a raw configuration mapping into a ``SettlementConfig``.

    The checksum is computed over ``data`` exactly as loaded, so two files
    with the same content always carry the same checksum.
    """
    effective_to = data.get("effective_to")
    return SettlementConfig(
        config_id=data["config_id"],
        version=int(data["version"]),
        effective_from=parse_date(data["effective_from"]),
        effective_to=parse_date(effective_to) if effective_to else None,
        status=ConfigStatus(str(data.get("status", "draft")).lower()),
        rating=parse_rating(data.get("rating") or {}),
        cycles=parse_cycles(data.get("cycles") or {}),
        invoicing=parse_invoicing(data.get("invoicing") or {}),
        credit=parse_credit(data.get("credit") or {}),
        routing=parse_routing(data.get("routing") or {}),
        qos=parse_qos(data.get("qos") or {}),
        checksum=compute_checksum(data),
    )


def load_config_set(path: Path) -> SettlementConfig:
    """Load and parse one YAML configuration set file."""
    return parse_config(load_yaml_file(path))


def compute_checksum(data: dict[str, Any]) -> str:
    """
    Compute SHA-256 checksum of canonical JSON serialization.

    Identical ``data`` always produces identical checksums.
    """
    canonical = json.dumps(data, sort_keys=True, default=str)
    return hashlib.sha256(canonical.encode()).hexdigest()
