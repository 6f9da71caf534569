"""
Module: settlement_kernel.selectors.commitment_selector
Responsibility: Volume/revenue commitment progress.  Loads a commitment with
    its discount scheme and the partner's usage in the commitment period,
    and evaluates it with ``settlement_engines.commitment``.
Architecture position: Kernel > Selectors.

Failure modes:
    - CommitmentNotFoundError for an unknown commitment id.
"""

from datetime import datetime
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import selectinload

from settlement_engines.commitment import CommitmentProgress, evaluate_commitment
from settlement_kernel.domain.dtos import CommitmentInfo
from settlement_kernel.exceptions import CommitmentNotFoundError
from settlement_kernel.models.commitment import DiscountScheme, VolumeCommitment
from settlement_kernel.selectors.base import BaseSelector
from settlement_kernel.selectors.usage_selector import UsageSelector


class CommitmentSelector(BaseSelector[VolumeCommitment]):

    def get_commitment(self, commitment_id: UUID) -> CommitmentInfo | None:
        commitment = self.session.scalars(
            select(VolumeCommitment)
            .where(VolumeCommitment.id == commitment_id)
            .options(
                selectinload(VolumeCommitment.discount_scheme).selectinload(
                    DiscountScheme.tiers
                )
            )
        ).one_or_none()
        return CommitmentInfo.from_model(commitment) if commitment is not None else None

    def commitments_for_partner(self, partner_id: UUID) -> list[CommitmentInfo]:
        stmt = (
            select(VolumeCommitment)
            .where(VolumeCommitment.partner_id == partner_id)
            .options(
                selectinload(VolumeCommitment.discount_scheme).selectinload(
                    DiscountScheme.tiers
                )
            )
            .order_by(VolumeCommitment.start_date)
        )
        return [CommitmentInfo.from_model(c) for c in self.session.scalars(stmt)]

    def progress(self, commitment_id: UUID, as_of: datetime) -> CommitmentProgress:
        """Progress of a commitment against the partner's usage in its period."""
        commitment = self.get_commitment(commitment_id)
        if commitment is None:
            raise CommitmentNotFoundError(str(commitment_id))
        records = UsageSelector(self.session).records_in_period(
            commitment.partner_id, commitment.start_date, commitment.end_date
        )
        return evaluate_commitment(commitment, records, as_of)
