"""
Typed Exception Hierarchy for the Settlement Kernel.

===============================================================================
WHY TYPED EXCEPTIONS
===============================================================================

Callers of the settlement engine (the API layer, batch jobs, tests) must be
able to decide remediation without parsing message strings:

  1. Every error has a TYPED exception class (catch by type, not message)
  2. Every exception has a CODE attribute (machine-readable, API-safe)
  3. Exceptions carry structured DATA (current status, counts, amounts)

Example:
    try:
        cycle_service.close_cycle(cycle_id, actor_id)
    except CycleAlreadyClosedError as e:
        api_response(code=e.code, status=e.current_status)
    except CycleCloseConflictError as e:
        api_response(code=e.code, cycle=e.entity_id)   # someone else won

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

All exceptions inherit from SettlementKernelError:

    SettlementKernelError (base)
    |
    +-- NotFoundError
    |   +-- PartnerNotFoundError
    |   +-- CarrierNotFoundError
    |   +-- BillingCycleNotFoundError
    |   +-- InvoiceNotFoundError
    |   +-- CreditProfileNotFoundError
    |   +-- CommitmentNotFoundError
    |   +-- UsageRecordNotFoundError
    |
    +-- InvalidStateError
    |   +-- CycleAlreadyClosedError
    |   +-- CycleNotProcessingError
    |   +-- CycleNotClosedError
    |   +-- InvoiceAlreadyGeneratedError
    |   +-- InvoiceNotPayableError
    |   +-- InvalidTransitionError
    |
    +-- ValidationError
    |   +-- MissingFieldError
    |   +-- BatchSizeExceededError
    |   +-- CycleAlreadyExistsError
    |   +-- PaymentExceedsBalanceError
    |   +-- CurrencyMismatchError
    |   +-- InvalidCurrencyError
    |
    +-- ComputationError
    |   +-- RateNotFoundError
    |   +-- PartnerInactiveError
    |   +-- AggregationFailedError
    |
    +-- ConcurrencyError
        +-- CycleCloseConflictError
        +-- OptimisticLockError

===============================================================================
ERROR CODES - QUICK REFERENCE
===============================================================================

Category        | Code                        | When Raised
----------------|-----------------------------|-----------------------------------------
NotFound        | PARTNER_NOT_FOUND           | Partner ID doesn't exist
                | CARRIER_NOT_FOUND           | Carrier partner ID doesn't exist
                | BILLING_CYCLE_NOT_FOUND     | Cycle ID doesn't exist
                | INVOICE_NOT_FOUND           | Invoice ID doesn't exist
                | CREDIT_PROFILE_NOT_FOUND    | Partner has no credit profile
                | COMMITMENT_NOT_FOUND        | Commitment ID doesn't exist
                | USAGE_RECORD_NOT_FOUND      | Usage record ID doesn't exist
----------------|-----------------------------|-----------------------------------------
InvalidState    | CYCLE_ALREADY_CLOSED        | Close on CLOSED/INVOICED/PROCESSING cycle
                | CYCLE_NOT_PROCESSING        | Reset on a cycle not in PROCESSING
                | CYCLE_NOT_CLOSED            | Invoice generation on non-CLOSED cycle
                | INVOICE_ALREADY_GENERATED   | Cycle already linked to an invoice
                | INVOICE_NOT_PAYABLE         | Payment against DRAFT/PAID/CANCELLED
                | INVALID_TRANSITION          | Lifecycle table forbids the transition
----------------|-----------------------------|-----------------------------------------
Validation      | MISSING_FIELD               | Required input absent or malformed
                | BATCH_SIZE_EXCEEDED         | Rating batch above the configured max
                | CYCLE_ALREADY_EXISTS        | Partner already has a cycle for the period
                | PAYMENT_EXCEEDS_BALANCE     | Payment would overpay the invoice
                | CURRENCY_MISMATCH           | Mixed currencies in one operation
                | INVALID_CURRENCY            | Not a recognised ISO 4217 code
----------------|-----------------------------|-----------------------------------------
Computation     | RATE_NOT_FOUND              | No rate matches a usage record
                | PARTNER_INACTIVE            | Usage for a partner that is not ACTIVE
                | AGGREGATION_FAILED          | Cycle close failed; cycle reverted
----------------|-----------------------------|-----------------------------------------
Concurrency     | CYCLE_CLOSE_CONFLICT        | Another writer moved the cycle first
                | OPTIMISTIC_LOCK_CONFLICT    | Version check failed on update

===============================================================================
PROPAGATION
===============================================================================

- Per-record ComputationErrors are caught by the rating pipeline and stored
  on the record (FAILED + error message); a batch is never aborted by them.
- Whole-operation errors (NotFound, InvalidState, Validation) are raised
  before any mutation.
- CycleCloseConflictError is raised only after any partial state change has
  been undone.

===============================================================================
"""


class SettlementKernelError(Exception):
    """
    Base exception for all settlement kernel errors.

    All subclasses must have a `code` class attribute for machine-readable
    error identification.
    """

    code: str = "SETTLEMENT_KERNEL_ERROR"


# Not-found exceptions


class NotFoundError(SettlementKernelError):
    """Base exception for missing referenced entities."""

    code: str = "NOT_FOUND"
    entity_type: str = "entity"

    def __init__(self, entity_id: str):
        self.entity_id = str(entity_id)
        super().__init__(f"{self.entity_type} not found: {entity_id}")


class PartnerNotFoundError(NotFoundError):
    code: str = "PARTNER_NOT_FOUND"
    entity_type: str = "Partner"


class CarrierNotFoundError(NotFoundError):
    code: str = "CARRIER_NOT_FOUND"
    entity_type: str = "Carrier"


class BillingCycleNotFoundError(NotFoundError):
    code: str = "BILLING_CYCLE_NOT_FOUND"
    entity_type: str = "Billing cycle"


class InvoiceNotFoundError(NotFoundError):
    code: str = "INVOICE_NOT_FOUND"
    entity_type: str = "Invoice"


class CreditProfileNotFoundError(NotFoundError):
    """Partner has no credit profile."""

    code: str = "CREDIT_PROFILE_NOT_FOUND"
    entity_type: str = "Credit profile for partner"


class CommitmentNotFoundError(NotFoundError):
    code: str = "COMMITMENT_NOT_FOUND"
    entity_type: str = "Volume commitment"


class UsageRecordNotFoundError(NotFoundError):
    code: str = "USAGE_RECORD_NOT_FOUND"
    entity_type: str = "Usage record"


# Lifecycle-state exceptions


class InvalidStateError(SettlementKernelError):
    """
    Operation attempted against an entity in the wrong lifecycle state.

    Always carries the current status so the caller can decide remediation
    without re-querying.
    """

    code: str = "INVALID_STATE"

    def __init__(
        self,
        entity_type: str,
        entity_id: str,
        current_status: str,
        message: str | None = None,
    ):
        self.entity_type = entity_type
        self.entity_id = str(entity_id)
        self.current_status = current_status
        super().__init__(
            message
            or f"{entity_type} {entity_id} is in status {current_status}"
        )


class CycleAlreadyClosedError(InvalidStateError):
    """Close attempted on a cycle that is not OPEN."""

    code: str = "CYCLE_ALREADY_CLOSED"

    def __init__(self, cycle_id: str, current_status: str):
        super().__init__(
            "BillingCycle",
            cycle_id,
            current_status,
            f"Billing cycle {cycle_id} cannot be closed: "
            f"already {current_status.lower()}",
        )


class CycleNotProcessingError(InvalidStateError):
    """Reset attempted on a cycle that is not stuck in PROCESSING."""

    code: str = "CYCLE_NOT_PROCESSING"

    def __init__(self, cycle_id: str, current_status: str):
        super().__init__(
            "BillingCycle",
            cycle_id,
            current_status,
            f"Cannot reset billing cycle with status {current_status}. "
            "Only PROCESSING cycles can be reset.",
        )


class CycleNotClosedError(InvalidStateError):
    """Invoice generation attempted on a cycle that is not CLOSED."""

    code: str = "CYCLE_NOT_CLOSED"

    def __init__(self, cycle_id: str, current_status: str):
        super().__init__(
            "BillingCycle",
            cycle_id,
            current_status,
            f"Billing cycle {cycle_id} must be CLOSED before generating an "
            f"invoice (current: {current_status})",
        )


class InvoiceAlreadyGeneratedError(InvalidStateError):
    """Cycle is already linked to an invoice."""

    code: str = "INVOICE_ALREADY_GENERATED"

    def __init__(self, cycle_id: str, current_status: str, invoice_id: str):
        self.invoice_id = str(invoice_id)
        super().__init__(
            "BillingCycle",
            cycle_id,
            current_status,
            f"Invoice {invoice_id} already generated for billing cycle {cycle_id}",
        )


class InvoiceNotPayableError(InvalidStateError):
    code: str = "INVOICE_NOT_PAYABLE"

    def __init__(self, invoice_id: str, current_status: str):
        super().__init__(
            "Invoice",
            invoice_id,
            current_status,
            f"Invoice {invoice_id} does not accept payments in status "
            f"{current_status}",
        )


class InvalidTransitionError(InvalidStateError):
    """Requested status change is not in the lifecycle's transition table."""

    code: str = "INVALID_TRANSITION"

    def __init__(
        self, entity_type: str, entity_id: str, current_status: str, target_status: str
    ):
        self.target_status = target_status
        super().__init__(
            entity_type,
            entity_id,
            current_status,
            f"{entity_type} {entity_id}: transition "
            f"{current_status} -> {target_status} is not allowed",
        )


# Validation exceptions


class ValidationError(SettlementKernelError):
    """Base exception for rejected input. Raised before any mutation."""

    code: str = "VALIDATION_ERROR"


class MissingFieldError(ValidationError):
    """Required input field missing or malformed."""

    code: str = "MISSING_FIELD"

    def __init__(self, field_name: str, reason: str | None = None):
        self.field_name = field_name
        self.reason = reason or "required"
        super().__init__(f"Missing or invalid {field_name}: {self.reason}")


class BatchSizeExceededError(ValidationError):
    """Batch larger than the configured maximum. Nothing is processed."""

    code: str = "BATCH_SIZE_EXCEEDED"

    def __init__(self, provided: int, max_batch_size: int):
        self.provided = provided
        self.max_batch_size = max_batch_size
        super().__init__(
            f"Batch size exceeds maximum limit of {max_batch_size:,} records "
            f"(provided: {provided:,})"
        )


class PaymentExceedsBalanceError(ValidationError):
    """Payment would make total payments exceed the invoice total."""

    code: str = "PAYMENT_EXCEEDS_BALANCE"

    def __init__(
        self, invoice_id: str, outstanding_balance: str, attempted_payment: str
    ):
        self.invoice_id = str(invoice_id)
        self.outstanding_balance = outstanding_balance
        self.attempted_payment = attempted_payment
        super().__init__(
            f"Payment amount {attempted_payment} exceeds outstanding balance "
            f"{outstanding_balance} on invoice {invoice_id}"
        )


class CycleAlreadyExistsError(ValidationError):
    """A cycle for the partner already starts on this date."""

    code: str = "CYCLE_ALREADY_EXISTS"

    def __init__(self, partner_id: str, period_start: str):
        self.partner_id = str(partner_id)
        self.period_start = str(period_start)
        super().__init__(
            f"Billing cycle already exists for partner {partner_id} "
            f"starting {period_start}"
        )


class CurrencyMismatchError(ValidationError):
    code: str = "CURRENCY_MISMATCH"

    def __init__(self, expected: str, received: str):
        self.expected = expected
        self.received = received
        super().__init__(f"Currency mismatch: expected {expected}, got {received}")


class InvalidCurrencyError(ValidationError):
    code: str = "INVALID_CURRENCY"

    def __init__(self, currency: str):
        self.currency = currency
        super().__init__(f"Invalid ISO 4217 currency code: '{currency}'")


# Computation exceptions


class ComputationError(SettlementKernelError):
    """A rating or aggregation step could not complete."""

    code: str = "COMPUTATION_ERROR"


class RateNotFoundError(ComputationError):
    """No rate definition applies to a usage record."""

    code: str = "RATE_NOT_FOUND"

    def __init__(self, service_type: str, direction: str | None, called_number: str | None):
        self.service_type = service_type
        self.direction = direction
        self.called_number = called_number
        super().__init__(
            f"No rate found for {service_type} {direction or 'ANY'} "
            f"to {called_number or 'unknown destination'}"
        )


class PartnerInactiveError(ComputationError):
    code: str = "PARTNER_INACTIVE"

    def __init__(self, partner_code: str, current_status: str):
        self.partner_code = partner_code
        self.current_status = current_status
        super().__init__(
            f"Partner {partner_code} is not ACTIVE. Current status: {current_status}"
        )


class AggregationFailedError(ComputationError):
    """Cycle aggregation failed; the cycle has been reverted to OPEN."""

    code: str = "AGGREGATION_FAILED"

    def __init__(self, cycle_id: str, cause: str):
        self.cycle_id = str(cycle_id)
        self.cause = cause
        super().__init__(f"Failed to close billing cycle {cycle_id}: {cause}")


# Concurrency exceptions


class ConcurrencyError(SettlementKernelError):
    code: str = "CONCURRENCY_ERROR"


class CycleCloseConflictError(ConcurrencyError):
    """Another writer transitioned the cycle first; this close lost the race."""

    code: str = "CYCLE_CLOSE_CONFLICT"

    def __init__(self, cycle_id: str, expected_version: int):
        self.entity_id = str(cycle_id)
        self.expected_version = expected_version
        super().__init__(
            f"Billing cycle {cycle_id} was modified concurrently "
            f"(expected version {expected_version}); close aborted"
        )


class OptimisticLockError(ConcurrencyError):
    """Optimistic locking conflict detected."""

    code: str = "OPTIMISTIC_LOCK_CONFLICT"

    def __init__(self, entity_type: str, entity_id: str):
        self.entity_type = entity_type
        self.entity_id = str(entity_id)
        super().__init__(
            f"Optimistic lock conflict on {entity_type} {entity_id}: "
            "entity was modified by another transaction"
        )
