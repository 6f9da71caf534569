"""
Module: settlement_engines
Responsibility:
    Package entrypoint that re-exports the public symbols of the pure
    calculation engines.  This is the import surface for the service layer
    in ``settlement_kernel.services`` and for the selectors.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    May only import settlement_kernel.domain, settlement_kernel.exceptions,
    settlement_kernel.logging_config and settlement_config.schema.
    MUST NOT import settlement_kernel.services, selectors or models.

Invariants enforced:
    - Purity: engines never read the clock.  Every "as of" instant is an
      explicit parameter supplied by the caller.
    - Decimal-only arithmetic for amounts, rates and quantities.
    - Determinism: identical inputs always produce identical outputs.

Audit relevance:
    Every engine entry point is wrapped in ``@traced_engine`` (see
    ``settlement_engines.tracer``), emitting a SETTLEMENT_ENGINE_TRACE
    record with the engine name, version, input fingerprint and duration.

Usage:
    from settlement_engines import rate_usage_record, select_routes
    from settlement_engines import aggregate_cycle, build_invoice
    from settlement_engines import calculate_exposure, evaluate_commitment
"""

from settlement_engines.commitment import (
    CommitmentProgress,
    evaluate_commitment,
    find_discount_tier,
)
from settlement_engines.credit import (
    CreditExposure,
    OverdueInvoice,
    calculate_exposure,
    days_overdue,
    risk_level_for,
)
from settlement_engines.cycle_aggregation import CycleTotals, aggregate_cycle, in_period
from settlement_engines.diagnostics import CycleDiagnosis, diagnose_cycle
from settlement_engines.invoicing import (
    InvoiceDraft,
    InvoiceLine,
    build_invoice,
    build_line_items,
    format_document_number,
)
from settlement_engines.qos import DestinationQoS, QoSSummary, quality_rating, summarize_qos
from settlement_engines.rating import (
    BatchStatistics,
    CurrencyRevenue,
    ErrorCount,
    RatingResult,
    billable_units,
    calculate_charge,
    check_batch_size,
    rate_usage_record,
    select_rate,
    summarize_batch,
    validate_usage_record,
    voice_minutes,
)
from settlement_engines.routing import (
    RankedRoute,
    RouteSelection,
    is_eligible,
    quality_score,
    select_routes,
)
from settlement_engines.tracer import compute_input_fingerprint, traced_engine

__all__ = [
    # Rating
    "BatchStatistics",
    "CurrencyRevenue",
    "ErrorCount",
    "RatingResult",
    "billable_units",
    "calculate_charge",
    "check_batch_size",
    "rate_usage_record",
    "select_rate",
    "summarize_batch",
    "validate_usage_record",
    "voice_minutes",
    # Routing
    "RankedRoute",
    "RouteSelection",
    "is_eligible",
    "quality_score",
    "select_routes",
    # Cycles
    "CycleTotals",
    "aggregate_cycle",
    "in_period",
    "CycleDiagnosis",
    "diagnose_cycle",
    # Invoicing
    "InvoiceDraft",
    "InvoiceLine",
    "build_invoice",
    "build_line_items",
    "format_document_number",
    # Credit
    "CreditExposure",
    "OverdueInvoice",
    "calculate_exposure",
    "days_overdue",
    "risk_level_for",
    # Commitments
    "CommitmentProgress",
    "evaluate_commitment",
    "find_discount_tier",
    # QoS
    "DestinationQoS",
    "QoSSummary",
    "quality_rating",
    "summarize_qos",
    # Tracing
    "compute_input_fingerprint",
    "traced_engine",
]
