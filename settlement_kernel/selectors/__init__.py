"""Selectors for the settlement kernel (read side)."""

from settlement_kernel.selectors.commitment_selector import CommitmentSelector
from settlement_kernel.selectors.credit_selector import CreditSelector
from settlement_kernel.selectors.cycle_selector import CycleSelector
from settlement_kernel.selectors.invoice_selector import (
    InvoiceDetail,
    InvoiceLineInfo,
    InvoiceSelector,
)
from settlement_kernel.selectors.qos_selector import QoSSelector
from settlement_kernel.selectors.routing_selector import RoutingSelector, destination_prefixes
from settlement_kernel.selectors.usage_selector import UsageSelector

__all__ = [
    "CommitmentSelector",
    "CreditSelector",
    "CycleSelector",
    "InvoiceDetail",
    "InvoiceLineInfo",
    "InvoiceSelector",
    "QoSSelector",
    "RoutingSelector",
    "UsageSelector",
    "destination_prefixes",
]
