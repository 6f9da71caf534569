"""
Module: settlement_kernel.selectors.cycle_selector
Responsibility: Read-only access to billing cycles and the cycle diagnostic
    report.
Architecture position: Kernel > Selectors.  Delegates the diagnosis to
    ``settlement_engines.diagnostics``.

Invariants enforced:
    - Read-only: never mutates the cycle, its files or its records.
    - Cycles are listed newest period first.

Failure modes:
    - get_cycle() returns None for an unknown id; diagnose() raises
      BillingCycleNotFoundError.
"""

from uuid import UUID

from sqlalchemy import select

from settlement_engines.diagnostics import CycleDiagnosis, diagnose_cycle
from settlement_kernel.domain.dtos import BillingCycleInfo, CycleStatus
from settlement_kernel.exceptions import BillingCycleNotFoundError
from settlement_kernel.models.billing_cycle import BillingCycle
from settlement_kernel.selectors.base import BaseSelector
from settlement_kernel.selectors.usage_selector import UsageSelector


class CycleSelector(BaseSelector[BillingCycle]):
    """Queries over billing cycles."""

    def get_cycle(self, cycle_id: UUID) -> BillingCycleInfo | None:
        cycle = self.session.get(BillingCycle, cycle_id)
        return BillingCycleInfo.from_model(cycle) if cycle is not None else None

    def list_cycles(
        self,
        partner_id: UUID | None = None,
        status: CycleStatus | None = None,
        limit: int | None = None,
    ) -> list[BillingCycleInfo]:
        """Cycles, optionally for one partner and/or in one status."""
        stmt = select(BillingCycle)
        if partner_id is not None:
            stmt = stmt.where(BillingCycle.partner_id == partner_id)
        if status is not None:
            stmt = stmt.where(BillingCycle.status == CycleStatus(status).value)
        stmt = stmt.order_by(BillingCycle.period_start.desc(), BillingCycle.cycle_number.desc())
        if limit is not None:
            stmt = stmt.limit(limit)
        return [BillingCycleInfo.from_model(c) for c in self.session.scalars(stmt)]

    def diagnose(self, cycle_id: UUID) -> CycleDiagnosis:
        """
        Diagnostic report for a cycle: its files and records in the period,
        the issues blocking a close and what to do about them.
        """
        cycle = self.get_cycle(cycle_id)
        if cycle is None:
            raise BillingCycleNotFoundError(str(cycle_id))
        usage = UsageSelector(self.session)
        files = usage.files_in_period(cycle.partner_id, cycle.period_start, cycle.period_end)
        records = usage.records_in_period(
            cycle.partner_id, cycle.period_start, cycle.period_end
        )
        return diagnose_cycle(cycle, files, records)
