"""Services for the settlement kernel (write side)."""

from settlement_kernel.services.billing_cycle_service import (
    BillingCycleService,
    CycleCreationReport,
    FailedPartner,
    PlannedCycle,
    SkippedPartner,
    month_bounds,
)
from settlement_kernel.services.invoice_service import (
    InvoiceService,
    PaymentHistory,
    PaymentInfo,
    PaymentReceipt,
)
from settlement_kernel.services.rating_service import RatingService
from settlement_kernel.services.sequence_service import SequenceService

__all__ = [
    "BillingCycleService",
    "CycleCreationReport",
    "FailedPartner",
    "InvoiceService",
    "PaymentHistory",
    "PaymentInfo",
    "PaymentReceipt",
    "PlannedCycle",
    "RatingService",
    "SequenceService",
    "SkippedPartner",
    "month_bounds",
]
