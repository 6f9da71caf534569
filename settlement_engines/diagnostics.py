"""
Billing Cycle Diagnostics.

Pure functions with deterministic behavior. No I/O.

Explains why a cycle cannot be closed (or looks wrong) from the usage
files and records that fall in its period.  Advisory only: nothing is
corrected here; the recommendations name the operation that would.

Issues (in this order):
    - no usage files in the period
    - N file(s) in ERROR
    - N file(s) still UPLOADED or PARSING
    - records exist but none is RATED
    - cycle stuck in PROCESSING

With no issues the report carries a single "can close" recommendation.
"""

from __future__ import annotations

from collections import Counter
from dataclasses import dataclass, field
from decimal import ROUND_HALF_UP, Decimal
from typing import Sequence

from settlement_engines.cycle_aggregation import in_period
from settlement_engines.tracer import traced_engine
from settlement_kernel.domain.dtos import (
    BillingCycleInfo,
    CycleStatus,
    FileStatus,
    UsageFileInfo,
    UsageRecordInfo,
)

NO_ISSUES = "No issues found"
CAN_CLOSE = "You can close this billing cycle"

_IN_FLIGHT_FILE_STATUSES = frozenset({FileStatus.UPLOADED, FileStatus.PARSING})


@dataclass(frozen=True)
class CycleDiagnosis:
    cycle: BillingCycleInfo
    file_count: int
    files_by_status: dict[str, int] = field(default_factory=dict)
    record_count: int = 0
    records_by_status: dict[str, int] = field(default_factory=dict)
    records_by_service: dict[str, int] = field(default_factory=dict)
    rated_count: int = 0
    calculated_charges: Decimal = Decimal("0.00")
    issues: tuple[str, ...] = ()
    recommendations: tuple[str, ...] = ()

    @property
    def has_issues(self) -> bool:
        return bool(self.issues) and self.issues != (NO_ISSUES,)


@traced_engine("cycle_diagnostics", "1.0", fingerprint_fields=("cycle",))
def diagnose_cycle(
    cycle: BillingCycleInfo,
    files: Sequence[UsageFileInfo],
    records: Sequence[UsageRecordInfo],
) -> CycleDiagnosis:
    """
    Build the diagnostic report for ``cycle``.

    ``files`` should already be limited to the partner's files uploaded in
    the cycle period; ``records`` are filtered to the period here.
    """
    in_window = [
        r
        for r in records
        if r.partner_id == cycle.partner_id
        and in_period(r, cycle.period_start, cycle.period_end)
    ]
    rated = [r for r in in_window if r.is_rated]
    charges = sum((r.charged_amount or Decimal("0") for r in rated), Decimal("0"))

    file_statuses = Counter(f.status for f in files)
    errored = file_statuses[FileStatus.ERROR]
    in_flight = sum(file_statuses[s] for s in _IN_FLIGHT_FILE_STATUSES)

    issues: list[str] = []
    if not files:
        issues.append("No usage files found in this billing period")
    if errored:
        issues.append(f"{errored} usage file(s) have errors")
    if in_flight:
        issues.append(f"{in_flight} usage file(s) still processing")
    if in_window and not rated:
        issues.append("No records have been rated yet")
    if cycle.status == CycleStatus.PROCESSING:
        issues.append(
            "Billing cycle is stuck in PROCESSING status - reset the cycle to reopen it"
        )

    recommendations: list[str] = []
    if issues:
        if cycle.status == CycleStatus.PROCESSING:
            recommendations.append("Reset the billing cycle to OPEN")
        if errored:
            recommendations.append("Check usage file errors and re-upload if needed")
        if not rated:
            recommendations.append("Wait for usage files to be rated before closing the cycle")
    else:
        issues.append(NO_ISSUES)
        recommendations.append(CAN_CLOSE)

    return CycleDiagnosis(
        cycle=cycle,
        file_count=len(files),
        files_by_status={s.value: n for s, n in sorted(file_statuses.items())},
        record_count=len(in_window),
        records_by_status=dict(
            sorted(Counter(r.processing_status.value for r in in_window).items())
        ),
        records_by_service=dict(
            sorted(Counter(r.service_type.value for r in in_window).items())
        ),
        rated_count=len(rated),
        calculated_charges=charges.quantize(Decimal("0.01"), rounding=ROUND_HALF_UP),
        issues=tuple(issues),
        recommendations=tuple(recommendations),
    )
