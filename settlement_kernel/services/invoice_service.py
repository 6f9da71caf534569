"""
InvoiceService -- invoice generation, lifecycle and payments.

Responsibility:
    Generates the invoice of a CLOSED billing cycle, moves invoices
    through their lifecycle (issue, cancel, overdue), and records payments
    against them.

Architecture position:
    Kernel > Services -- imperative shell.
    Line items and totals come from ``settlement_engines.invoicing``;
    document numbers from SequenceService; the cycle transition from
    BillingCycleService.

Invariants enforced:
    - One invoice per cycle: a cycle already linked to an invoice, or not
      CLOSED, rejects generation.  Generation moves the cycle to INVOICED.
    - Invoice and payment numbers are allocated from locked counters keyed
      by (document type, year), never by parsing the last issued number.
    - The sum of payments never exceeds the invoice total.  An overpaying
      payment is rejected and the invoice is left unchanged.
    - Status changes follow INVOICE_TRANSITIONS.
    - Flush-only: never commits or rolls back the session.

Failure modes:
    - BillingCycleNotFoundError / InvoiceNotFoundError.
    - CycleNotClosedError / InvoiceAlreadyGeneratedError.
    - InvoiceNotPayableError: payment on a DRAFT, PAID or CANCELLED invoice.
    - PaymentExceedsBalanceError: payment larger than the outstanding balance.
    - CurrencyMismatchError: payment currency differs from the invoice's.
    - MissingFieldError: non-positive payment amount.
    - InvalidTransitionError: lifecycle table forbids the requested change.
"""

from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from settlement_config.schema import SettlementConfig
from settlement_engines.invoicing import build_invoice
from settlement_kernel.domain.clock import Clock
from settlement_kernel.domain.dtos import (
    PAYABLE_INVOICE_STATUSES,
    CycleStatus,
    InvoiceInfo,
    InvoiceStatus,
    PaymentMethod,
    PaymentStatus,
    ProcessingStatus,
)
from settlement_kernel.domain.lifecycle import validate_invoice_transition
from settlement_kernel.domain.values import Money
from settlement_kernel.exceptions import (
    BillingCycleNotFoundError,
    CycleNotClosedError,
    InvalidStateError,
    InvalidTransitionError,
    InvoiceAlreadyGeneratedError,
    InvoiceNotFoundError,
    InvoiceNotPayableError,
    MissingFieldError,
    PaymentExceedsBalanceError,
)
from settlement_kernel.logging_config import LogContext, get_logger
from settlement_kernel.models.billing_cycle import BillingCycle
from settlement_kernel.models.invoice import Invoice, InvoiceLineItem, Payment
from settlement_kernel.selectors.usage_selector import UsageSelector
from settlement_kernel.services.base import BaseService
from settlement_kernel.services.billing_cycle_service import BillingCycleService
from settlement_kernel.services.sequence_service import SequenceService

logger = get_logger("services.invoice")


@dataclass(frozen=True)
class PaymentInfo:
    payment_id: UUID
    payment_number: str
    invoice_id: UUID
    amount: Decimal
    currency: str
    payment_date: date
    payment_method: PaymentMethod
    status: PaymentStatus
    reference: str | None = None


@dataclass(frozen=True)
class PaymentReceipt:
    """A recorded payment and the invoice position after it."""

    payment: PaymentInfo
    invoice_status: InvoiceStatus
    total_paid: Decimal
    outstanding_balance: Decimal


@dataclass(frozen=True)
class PaymentHistory:
    invoice_id: UUID
    invoice_status: InvoiceStatus
    invoice_total: Decimal
    total_paid: Decimal
    outstanding_balance: Decimal
    payments: tuple[PaymentInfo, ...] = ()


def _payment_info(payment: Payment) -> PaymentInfo:
    return PaymentInfo(
        payment_id=payment.id,
        payment_number=payment.payment_number,
        invoice_id=payment.invoice_id,
        amount=payment.amount,
        currency=payment.currency,
        payment_date=payment.payment_date,
        payment_method=PaymentMethod(payment.payment_method),
        status=PaymentStatus(payment.status),
        reference=payment.reference,
    )


class InvoiceService(BaseService[Invoice]):
    """
    Invoice generation and settlement.

    Usage:
        service = InvoiceService(session, config, clock)
        invoice = service.generate_invoice(cycle_id, actor_id)
        service.issue_invoice(invoice.invoice_id, actor_id)
        receipt = service.record_payment(
            invoice.invoice_id, Decimal("100.00"), date(2024, 2, 15),
            PaymentMethod.WIRE, actor_id,
        )
    """

    def __init__(
        self,
        session: Session,
        config: SettlementConfig,
        clock: Clock | None = None,
    ):
        super().__init__(session, clock)
        self._config = config
        self._usage = UsageSelector(session)
        self._sequences = SequenceService(session)
        self._cycles = BillingCycleService(session, config, clock)

    # ------------------------------------------------------------------
    # Generation
    # ------------------------------------------------------------------

    def generate_invoice(
        self, cycle_id: UUID, actor_id: UUID, notes: str | None = None
    ) -> InvoiceInfo:
        """
        Generate the DRAFT invoice of a CLOSED cycle and mark the cycle INVOICED.

        The subtotal is the cycle's total charges; line items group the
        cycle's rated records by service type and direction.

        Raises:
            BillingCycleNotFoundError: If the cycle does not exist.
            InvoiceAlreadyGeneratedError: If the cycle already has an invoice.
            CycleNotClosedError: If the cycle is not CLOSED.
        """
        cycle = self.session.execute(
            select(BillingCycle)
            .where(BillingCycle.id == cycle_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()
        if cycle is None:
            raise BillingCycleNotFoundError(str(cycle_id))

        status = CycleStatus(cycle.status)
        with LogContext.bind(
            cycle_id=str(cycle_id), partner_id=str(cycle.partner_id), actor_id=str(actor_id)
        ):
            if cycle.invoice_id is not None:
                logger.warning("invoice_generation_rejected", extra={"reason": "already_generated"})
                raise InvoiceAlreadyGeneratedError(
                    str(cycle_id), status.value, str(cycle.invoice_id)
                )
            if status != CycleStatus.CLOSED:
                logger.warning(
                    "invoice_generation_rejected", extra={"current_status": status.value}
                )
                raise CycleNotClosedError(str(cycle_id), status.value)

            records = self._usage.records_in_period(
                cycle.partner_id,
                cycle.period_start,
                cycle.period_end,
                status=ProcessingStatus.RATED,
            )
            draft = build_invoice(
                records,
                cycle.total_charges or Decimal("0"),
                cycle.currency,
                self._config.invoicing,
                self._config.rating,
            )

            today = self._clock.today()
            invoicing = self._config.invoicing
            invoice = Invoice(
                invoice_number=self._sequences.next_document_number(
                    invoicing.invoice_prefix, today.year, invoicing.invoice_number_width
                ),
                partner_id=cycle.partner_id,
                cycle_id=cycle.id,
                status=InvoiceStatus.DRAFT,
                currency=draft.currency,
                subtotal=draft.subtotal,
                tax_amount=draft.tax_amount,
                total_amount=draft.total_amount,
                amount_paid=Decimal("0"),
                issue_date=today,
                due_date=cycle.due_date,
                notes=notes,
                created_by_id=actor_id,
            )
            invoice.line_items = [
                InvoiceLineItem(
                    line_number=line.line_number,
                    service_type=line.service_type,
                    direction=line.direction,
                    description=line.description,
                    quantity=line.quantity,
                    unit_rate=line.unit_rate,
                    amount=line.amount,
                    created_by_id=actor_id,
                )
                for line in draft.line_items
            ]
            self.session.add(invoice)
            self.session.flush()

            self._cycles.mark_invoiced(cycle.id, invoice.id, actor_id)

            logger.info(
                "invoice_generated",
                extra={
                    "invoice_id": str(invoice.id),
                    "invoice_number": invoice.invoice_number,
                    "subtotal": str(draft.subtotal),
                    "tax_amount": str(draft.tax_amount),
                    "total_amount": str(draft.total_amount),
                    "line_count": len(draft.line_items),
                },
            )
        return InvoiceInfo.from_model(invoice)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def issue_invoice(self, invoice_id: UUID, actor_id: UUID) -> InvoiceInfo:
        invoice = self._get_for_update(invoice_id)
        self._move(invoice, InvoiceStatus.ISSUED, actor_id)
        if invoice.issue_date is None:
            invoice.issue_date = self._clock.today()
        self.session.flush()
        return InvoiceInfo.from_model(invoice)

    def cancel_invoice(self, invoice_id: UUID, actor_id: UUID) -> InvoiceInfo:
        """
        Cancel an invoice that has no payments.

        Raises:
            InvalidStateError: If payments were recorded against it.
            InvalidTransitionError: If its status cannot move to CANCELLED.
        """
        invoice = self._get_for_update(invoice_id)
        if invoice.payments:
            raise InvalidStateError(
                "Invoice",
                str(invoice_id),
                InvoiceStatus(invoice.status).value,
                "Cannot cancel invoice with payments",
            )
        self._move(invoice, InvoiceStatus.CANCELLED, actor_id)
        self.session.flush()
        return InvoiceInfo.from_model(invoice)

    def mark_overdue(self, as_of: date, actor_id: UUID) -> list[InvoiceInfo]:
        """
        Move ISSUED, PENDING and PARTIALLY_PAID invoices whose due date is
        before ``as_of`` to OVERDUE.  An invoice due on ``as_of`` is not moved.
        """
        invoices = self.session.scalars(
            select(Invoice)
            .where(
                Invoice.status.in_(
                    [
                        InvoiceStatus.ISSUED.value,
                        InvoiceStatus.PENDING.value,
                        InvoiceStatus.PARTIALLY_PAID.value,
                    ]
                ),
                Invoice.due_date < as_of,
            )
            .order_by(Invoice.invoice_number)
            .with_for_update()
        ).all()
        for invoice in invoices:
            self._move(invoice, InvoiceStatus.OVERDUE, actor_id)
        self.session.flush()
        return [InvoiceInfo.from_model(i) for i in invoices]

    # ------------------------------------------------------------------
    # Payments
    # ------------------------------------------------------------------

    def record_payment(
        self,
        invoice_id: UUID,
        amount: Decimal,
        payment_date: date,
        payment_method: PaymentMethod,
        actor_id: UUID,
        currency: str | None = None,
        reference: str | None = None,
    ) -> PaymentReceipt:
        """
        Record a payment and update the invoice position.

        A payment that settles the balance moves the invoice to PAID and
        sets its paid date; a partial payment on an ISSUED invoice moves it
        to PARTIALLY_PAID.  Other statuses are kept on partial payment.

        Raises:
            MissingFieldError: If amount is not positive.
            InvoiceNotPayableError: If the invoice does not accept payments.
            CurrencyMismatchError: If currency differs from the invoice's.
            PaymentExceedsBalanceError: If the payment would overpay.
        """
        if amount is None or Decimal(amount) <= 0:
            raise MissingFieldError("amount", "must be greater than zero")
        if payment_date is None:
            raise MissingFieldError("payment_date")
        if payment_method is None:
            raise MissingFieldError("payment_method")

        invoice = self._get_for_update(invoice_id)
        status = InvoiceStatus(invoice.status)

        with LogContext.bind(invoice_id=str(invoice_id), actor_id=str(actor_id)):
            if status not in PAYABLE_INVOICE_STATUSES:
                logger.warning("payment_rejected", extra={"current_status": status.value})
                raise InvoiceNotPayableError(str(invoice_id), status.value)

            total = Money.of(invoice.total_amount, invoice.currency)
            paid = Money.of(invoice.amount_paid, invoice.currency)
            payment = Money.of(amount, currency or invoice.currency)
            new_paid = paid + payment

            if new_paid > total:
                outstanding = total - paid
                logger.warning(
                    "payment_rejected",
                    extra={
                        "reason": "exceeds_balance",
                        "outstanding_balance": str(outstanding.amount),
                        "attempted_payment": str(payment.amount),
                    },
                )
                raise PaymentExceedsBalanceError(
                    str(invoice_id), str(outstanding.amount), str(payment.amount)
                )

            record = Payment(
                payment_number=self._sequences.next_document_number(
                    self._config.invoicing.payment_prefix,
                    self._clock.today().year,
                    self._config.invoicing.payment_number_width,
                ),
                invoice_id=invoice.id,
                amount=payment.amount,
                currency=payment.currency.code,
                payment_date=payment_date,
                payment_method=PaymentMethod(payment_method),
                reference=reference,
                status=PaymentStatus.COMPLETED,
                created_by_id=actor_id,
            )
            self.session.add(record)

            invoice.amount_paid = new_paid.amount
            if new_paid >= total:
                self._move(invoice, InvoiceStatus.PAID, actor_id)
                invoice.paid_date = payment_date
            elif status == InvoiceStatus.ISSUED:
                self._move(invoice, InvoiceStatus.PARTIALLY_PAID, actor_id)
            self.session.flush()

            outstanding = total - new_paid
            logger.info(
                "payment_recorded",
                extra={
                    "payment_number": record.payment_number,
                    "amount": str(payment.amount),
                    "invoice_status": InvoiceStatus(invoice.status).value,
                    "outstanding_balance": str(outstanding.amount),
                },
            )
        return PaymentReceipt(
            payment=_payment_info(record),
            invoice_status=InvoiceStatus(invoice.status),
            total_paid=new_paid.amount,
            outstanding_balance=outstanding.amount,
        )

    def list_payments(self, invoice_id: UUID) -> PaymentHistory:
        """Payments of an invoice, newest first, with totals."""
        invoice = self.session.get(Invoice, invoice_id)
        if invoice is None:
            raise InvoiceNotFoundError(str(invoice_id))
        payments = self.session.scalars(
            select(Payment)
            .where(Payment.invoice_id == invoice_id)
            .order_by(Payment.payment_date.desc(), Payment.payment_number.desc())
        ).all()
        total_paid = sum((p.amount for p in payments), Decimal("0"))
        return PaymentHistory(
            invoice_id=invoice.id,
            invoice_status=InvoiceStatus(invoice.status),
            invoice_total=invoice.total_amount,
            total_paid=total_paid,
            outstanding_balance=invoice.total_amount - total_paid,
            payments=tuple(_payment_info(p) for p in payments),
        )

    # ------------------------------------------------------------------

    def _get_for_update(self, invoice_id: UUID) -> Invoice:
        invoice = self.session.execute(
            select(Invoice)
            .where(Invoice.id == invoice_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()
        if invoice is None:
            raise InvoiceNotFoundError(str(invoice_id))
        return invoice

    def _move(self, invoice: Invoice, target: InvoiceStatus, actor_id: UUID) -> None:
        current = InvoiceStatus(invoice.status)
        if not validate_invoice_transition(current, target):
            raise InvalidTransitionError(
                "Invoice", str(invoice.id), current.value, target.value
            )
        invoice.status = target
        invoice.updated_by_id = actor_id
        logger.info(
            "invoice_status_changed",
            extra={
                "invoice_id": str(invoice.id),
                "from_status": current.value,
                "to_status": target.value,
            },
        )
