"""ORM models for the settlement kernel."""

from settlement_kernel.models.billing_cycle import BillingCycle
from settlement_kernel.models.commitment import (
    DiscountScheme,
    DiscountTier,
    VolumeCommitment,
)
from settlement_kernel.models.credit import CreditProfile
from settlement_kernel.models.invoice import Invoice, InvoiceLineItem, Payment
from settlement_kernel.models.partner import Agreement, Partner
from settlement_kernel.models.pricelist import CarrierPricelist, CarrierRate
from settlement_kernel.models.qos import QoSMetric
from settlement_kernel.models.rate_sheet import Rate, RateSheet
from settlement_kernel.models.sequence import SequenceCounter
from settlement_kernel.models.usage import UsageFile, UsageRecord

__all__ = [
    "Agreement",
    "BillingCycle",
    "CarrierPricelist",
    "CarrierRate",
    "CreditProfile",
    "DiscountScheme",
    "DiscountTier",
    "Invoice",
    "InvoiceLineItem",
    "Partner",
    "Payment",
    "QoSMetric",
    "Rate",
    "RateSheet",
    "SequenceCounter",
    "UsageFile",
    "UsageRecord",
    "VolumeCommitment",
]
