"""
settlement_config -- single public entrypoint for settlement parameters.

Responsibility:
    Provides the ONLY way to obtain configuration at runtime through
    ``get_active_config()``.  Engines never read files or environment
    variables; services pass them the relevant section of the returned
    ``SettlementConfig``.

Architecture position:
    Configuration -- sits beside ``settlement_kernel`` and below the
    services that consume it.  The pure engines import only the schema
    dataclasses, never this loader.

Invariants enforced:
    - Single entrypoint: all runtime config flows through ``get_active_config()``.
    - Validation before use: a set with validation errors is never returned.
    - Deterministic identity: same YAML content always yields the same
      checksum.

Failure modes:
    - ``FileNotFoundError`` -- no configuration set matches the requested
      id / date.
    - ``ValueError`` -- validation failures (all errors listed).

Audit relevance:
    Every successful ``get_active_config()`` call emits a
    ``SETTLEMENT_CONFIG_TRACE`` log entry with the config id, version and
    checksum, tying every cycle close and invoice to the parameters that
    produced it.
"""

from __future__ import annotations

from datetime import date
from pathlib import Path

from settlement_config.loader import load_yaml_file, parse_config
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
from settlement_config.validator import ConfigValidationResult, validate_configuration
from settlement_kernel.logging_config import get_logger

_logger = get_logger("config")

_DEFAULT_CONFIG_DIR = Path(__file__).parent / "sets"

__all__ = [
    "ConfigStatus",
    "ConfigValidationResult",
    "CreditConfig",
    "CycleConfig",
    "InvoicingConfig",
    "QoSBand",
    "QoSConfig",
    "RatingConfig",
    "RoutingConfig",
    "SettlementConfig",
    "get_active_config",
    "validate_configuration",
]


def get_active_config(
    as_of_date: date | None = None,
    config_id: str | None = None,
    config_dir: Path | None = None,
) -> SettlementConfig:
    """The ONLY public configuration entrypoint.

    Scans ``config_dir`` (default: ``settlement_config/sets``) for YAML sets,
    validates each, and returns the one matching ``config_id`` (if given)
    that is effective on ``as_of_date`` (if given).  Among several matches a
    PUBLISHED set wins, then the highest version.

    Raises:
        FileNotFoundError: If no configuration set matches.
        ValueError: If the selected set fails validation.
    """
    sets_dir = config_dir or _DEFAULT_CONFIG_DIR
    config = _find_matching_config(sets_dir, as_of_date, config_id)

    _logger.info(
        "SETTLEMENT_CONFIG_TRACE",
        extra={
            "trace_type": "SETTLEMENT_CONFIG_TRACE",
            "config_set_id": config.config_id,
            "config_set_version": config.version,
            "checksum": config.checksum,
            "status": config.status.value,
            "rounding_rule": config.rating.rounding_rule.value,
            "cost_ratio": str(config.cycles.cost_ratio),
            "tax_rate": str(config.invoicing.tax_rate),
        },
    )
    return config


def _load_validated(path: Path) -> SettlementConfig:
    data = load_yaml_file(path)
    validation = validate_configuration(data)
    if not validation.is_valid:
        raise ValueError(
            f"Configuration validation failed for {path.name}:\n"
            + "\n".join(f"  - {e}" for e in validation.errors)
        )
    for warning in validation.warnings:
        _logger.warning(
            "config_validation_warning",
            extra={"config_file": path.name, "warning": warning},
        )
    return parse_config(data)


def _find_matching_config(
    sets_dir: Path, as_of_date: date | None, config_id: str | None
) -> SettlementConfig:
    if not sets_dir.is_dir():
        raise FileNotFoundError(f"Configuration sets directory not found: {sets_dir}")

    candidates: list[SettlementConfig] = []
    for path in sorted(sets_dir.glob("*.yaml")):
        config = _load_validated(path)
        if config_id is not None and config.config_id != config_id:
            continue
        if as_of_date is not None and not config.is_effective_on(as_of_date):
            continue
        candidates.append(config)

    if not candidates:
        raise FileNotFoundError(
            f"No configuration set found for config_id={config_id!r} "
            f"as_of_date={as_of_date} in {sets_dir}"
        )

    published = [c for c in candidates if c.status == ConfigStatus.PUBLISHED]
    return max(published or candidates, key=lambda c: c.version)
