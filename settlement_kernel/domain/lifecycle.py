"""
Lifecycle transition tables for billing cycles and invoices.

Services consult these before every status change and raise
InvalidTransitionError for anything not listed.
"""

from settlement_kernel.domain.dtos import CycleStatus, InvoiceStatus

# Allowed status transitions (from -> set of valid next states)
CYCLE_TRANSITIONS: dict[CycleStatus, frozenset[CycleStatus]] = {
    CycleStatus.OPEN: frozenset({CycleStatus.PROCESSING}),
    # PROCESSING -> OPEN covers both explicit reset and failed aggregation
    CycleStatus.PROCESSING: frozenset({CycleStatus.CLOSED, CycleStatus.OPEN}),
    CycleStatus.CLOSED: frozenset({CycleStatus.INVOICED}),
    CycleStatus.INVOICED: frozenset(),  # Terminal
}

INVOICE_TRANSITIONS: dict[InvoiceStatus, frozenset[InvoiceStatus]] = {
    InvoiceStatus.DRAFT: frozenset({InvoiceStatus.ISSUED, InvoiceStatus.CANCELLED}),
    InvoiceStatus.PENDING: frozenset(
        {
            InvoiceStatus.ISSUED,
            InvoiceStatus.PARTIALLY_PAID,
            InvoiceStatus.PAID,
            InvoiceStatus.OVERDUE,
            InvoiceStatus.CANCELLED,
        }
    ),
    InvoiceStatus.ISSUED: frozenset(
        {
            InvoiceStatus.PARTIALLY_PAID,
            InvoiceStatus.PAID,
            InvoiceStatus.OVERDUE,
            InvoiceStatus.CANCELLED,
        }
    ),
    InvoiceStatus.OVERDUE: frozenset(
        {InvoiceStatus.PARTIALLY_PAID, InvoiceStatus.PAID}
    ),
    InvoiceStatus.PARTIALLY_PAID: frozenset(
        {InvoiceStatus.PAID, InvoiceStatus.OVERDUE}
    ),
    InvoiceStatus.PAID: frozenset(),  # Terminal
    InvoiceStatus.CANCELLED: frozenset(),  # Terminal
}


def validate_cycle_transition(current: CycleStatus, target: CycleStatus) -> bool:
    """Check if a billing cycle status transition is valid."""
    return target in CYCLE_TRANSITIONS.get(CycleStatus(current), frozenset())


def validate_invoice_transition(current: InvoiceStatus, target: InvoiceStatus) -> bool:
    """Check if an invoice status transition is valid."""
    return target in INVOICE_TRANSITIONS.get(InvoiceStatus(current), frozenset())
