"""
Module: settlement_kernel.selectors.routing_selector
Responsibility: Least-cost route lookup.  Loads the carrier rates whose
    destination code is a prefix of the requested destination and hands
    them to ``settlement_engines.routing.select_routes`` for eligibility
    and ranking.
Architecture position: Kernel > Selectors.

Invariants enforced:
    - Read-only.  Calling twice with the same destination and as-of on
      unchanged data yields the same ranked order.
    - Candidates are matched on every prefix of the destination, so the
      engine sees all rates a longest-prefix match could choose from.
"""

from datetime import date, datetime
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import joinedload

from settlement_config.schema import RoutingConfig
from settlement_engines.routing import RouteSelection, select_routes
from settlement_kernel.domain.dtos import CarrierRateInfo
from settlement_kernel.models.pricelist import CarrierPricelist, CarrierRate
from settlement_kernel.selectors.base import BaseSelector


def destination_prefixes(destination_code: str) -> list[str]:
    """Every leading substring of ``destination_code``, shortest first."""
    code = destination_code.strip()
    return [code[:i] for i in range(1, len(code) + 1)]


class RoutingSelector(BaseSelector[CarrierRate]):

    def candidate_rates(
        self, destination_code: str, carrier_id: UUID | None = None
    ) -> list[CarrierRateInfo]:
        prefixes = destination_prefixes(destination_code)
        if not prefixes:
            return []
        stmt = (
            select(CarrierRate)
            .join(CarrierRate.pricelist)
            .where(CarrierRate.destination_code.in_(prefixes))
            .options(joinedload(CarrierRate.pricelist).joinedload(CarrierPricelist.carrier))
            .order_by(CarrierRate.id)
        )
        if carrier_id is not None:
            stmt = stmt.where(CarrierPricelist.carrier_id == carrier_id)
        return [CarrierRateInfo.from_model(r) for r in self.session.scalars(stmt).unique()]

    def find_routes(
        self,
        destination_code: str,
        as_of: date | datetime,
        config: RoutingConfig,
    ) -> RouteSelection:
        """Ranked routes for ``destination_code``; success=False when none qualify."""
        return select_routes(
            self.candidate_rates(destination_code), destination_code.strip(), as_of, config
        )
