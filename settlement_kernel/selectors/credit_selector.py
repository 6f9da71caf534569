"""
Module: settlement_kernel.selectors.credit_selector
Responsibility: Partner credit exposure.  Loads the partner's credit profile
    and outstanding invoices and computes exposure with
    ``settlement_engines.credit.calculate_exposure``.
Architecture position: Kernel > Selectors.

Failure modes:
    - CreditProfileNotFoundError when the partner has no credit profile.
"""

from datetime import datetime
from uuid import UUID

from sqlalchemy import select

from settlement_config.schema import CreditConfig
from settlement_engines.credit import CreditExposure, calculate_exposure
from settlement_kernel.domain.dtos import OUTSTANDING_INVOICE_STATUSES, CreditProfileInfo
from settlement_kernel.exceptions import CreditProfileNotFoundError
from settlement_kernel.models.credit import CreditProfile
from settlement_kernel.selectors.base import BaseSelector
from settlement_kernel.selectors.invoice_selector import InvoiceSelector


class CreditSelector(BaseSelector[CreditProfile]):

    def get_profile(self, partner_id: UUID) -> CreditProfileInfo | None:
        profile = self.session.scalars(
            select(CreditProfile).where(CreditProfile.partner_id == partner_id)
        ).one_or_none()
        return CreditProfileInfo.from_model(profile) if profile is not None else None

    def exposure(
        self, partner_id: UUID, as_of: datetime, config: CreditConfig
    ) -> CreditExposure:
        profile = self.get_profile(partner_id)
        if profile is None:
            raise CreditProfileNotFoundError(str(partner_id))
        invoices = InvoiceSelector(self.session).invoices_for_partner(
            partner_id, statuses=OUTSTANDING_INVOICE_STATUSES
        )
        return calculate_exposure(profile, invoices, as_of, config)
