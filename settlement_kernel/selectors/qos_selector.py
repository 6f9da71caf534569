"""
Module: settlement_kernel.selectors.qos_selector
Responsibility: Carrier call-quality summaries over daily QoS metrics.
Architecture position: Kernel > Selectors.  Averaging and rating live in
    ``settlement_engines.qos``.

Failure modes:
    - CarrierNotFoundError when the carrier partner does not exist.
"""

from datetime import date
from uuid import UUID

from sqlalchemy import select

from settlement_config.schema import QoSConfig
from settlement_engines.qos import QoSSummary, summarize_qos
from settlement_kernel.domain.dtos import QoSMetricInfo
from settlement_kernel.exceptions import CarrierNotFoundError
from settlement_kernel.models.partner import Partner
from settlement_kernel.models.qos import QoSMetric
from settlement_kernel.selectors.base import BaseSelector


class QoSSelector(BaseSelector[QoSMetric]):

    def metrics(
        self,
        carrier_id: UUID,
        start: date | None = None,
        end: date | None = None,
        destination: str | None = None,
    ) -> list[QoSMetricInfo]:
        """Daily metrics for a carrier, optionally within [start, end] and for one destination."""
        stmt = select(QoSMetric).where(QoSMetric.carrier_id == carrier_id)
        if start is not None:
            stmt = stmt.where(QoSMetric.metric_date >= start)
        if end is not None:
            stmt = stmt.where(QoSMetric.metric_date <= end)
        if destination is not None:
            stmt = stmt.where(QoSMetric.destination == destination)
        stmt = stmt.order_by(QoSMetric.destination, QoSMetric.metric_date)
        return [
            QoSMetricInfo(
                destination=m.destination,
                metric_date=m.metric_date,
                asr=m.asr,
                acd=m.acd,
                total_calls=m.total_calls,
                carrier_id=m.carrier_id,
                ner=m.ner,
                pdd=m.pdd,
            )
            for m in self.session.scalars(stmt)
        ]

    def carrier_summary(
        self,
        carrier_id: UUID,
        config: QoSConfig,
        start: date | None = None,
        end: date | None = None,
    ) -> QoSSummary:
        if self.session.get(Partner, carrier_id) is None:
            raise CarrierNotFoundError(str(carrier_id))
        return summarize_qos(self.metrics(carrier_id, start, end), config)
