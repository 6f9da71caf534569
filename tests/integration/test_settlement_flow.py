"""
End-to-end settlement flow.

Covers:
- Usage rated through the service against the partner's rate sheet
- The billing cycle closed with totals from the rated usage
- Invoice generated, issued and settled by a partial then a final payment
- An overdue invoice feeding credit exposure
"""

from datetime import date, datetime, timezone
from decimal import Decimal

from settlement_kernel.domain.dtos import (
    CycleStatus,
    InvoiceStatus,
    PaymentMethod,
    ProcessingStatus,
    RiskLevel,
    ServiceType,
)
from settlement_kernel.models.credit import CreditProfile
from settlement_kernel.selectors import CreditSelector, CycleSelector, InvoiceSelector


class TestSettlementFlow:

    def test_usage_to_paid_invoice(
        self,
        session,
        rating_service,
        cycle_service,
        invoice_service,
        create_partner,
        create_rate_sheet,
        standard_rates,
        create_usage_file,
        create_usage_record,
        test_actor_id,
    ):
        partner = create_partner()
        create_rate_sheet(partner, standard_rates)
        usage_file = create_usage_file(partner)
        create_usage_record(partner, duration_seconds=125, usage_file=usage_file)
        create_usage_record(partner, ServiceType.SMS, usage_file=usage_file)
        cycle = cycle_service.create_cycle(
            partner.id, date(2024, 1, 1), date(2024, 1, 31), test_actor_id
        )

        # Rate
        stats = rating_service.rate_pending(partner.id, test_actor_id)
        assert stats.rated == 2
        assert stats.total_revenue == Decimal("0.1700")

        diagnosis = CycleSelector(session).diagnose(cycle.cycle_id)
        assert not diagnosis.has_issues
        assert diagnosis.records_by_status == {ProcessingStatus.RATED.value: 2}

        # Close
        closed = cycle_service.close_cycle(cycle.cycle_id, test_actor_id)
        assert closed.status == CycleStatus.CLOSED
        assert closed.total_voice_minutes == 3
        assert closed.total_sms_count == 1
        assert closed.total_charges == Decimal("0.17")
        assert closed.total_cost == Decimal("0.034")
        assert closed.margin == Decimal("0.136")

        # Invoice
        invoice = invoice_service.generate_invoice(cycle.cycle_id, test_actor_id)
        assert invoice.invoice_number == "INV-2024-001"
        assert invoice.subtotal == Decimal("0.17")
        assert invoice.tax_amount == Decimal("0.017")
        assert invoice.total_amount == Decimal("0.187")

        detail = InvoiceSelector(session).get_invoice(invoice.invoice_id)
        assert [li.service_type for li in detail.line_items] == [ServiceType.VOICE, ServiceType.SMS]
        assert detail.line_items[0].quantity == Decimal("3")
        assert detail.line_items[0].unit_rate == Decimal("0.05")
        assert sum(li.amount for li in detail.line_items) == invoice.subtotal

        assert CycleSelector(session).get_cycle(cycle.cycle_id).status == CycleStatus.INVOICED

        # Settle
        invoice_service.issue_invoice(invoice.invoice_id, test_actor_id)
        partial = invoice_service.record_payment(
            invoice.invoice_id, Decimal("0.10"), date(2024, 2, 20), PaymentMethod.WIRE, test_actor_id
        )
        assert partial.invoice_status == InvoiceStatus.PARTIALLY_PAID
        assert partial.outstanding_balance == Decimal("0.087")

        final = invoice_service.record_payment(
            invoice.invoice_id,
            Decimal("0.087"),
            date(2024, 2, 27),
            PaymentMethod.BANK_TRANSFER,
            test_actor_id,
        )
        assert final.invoice_status == InvoiceStatus.PAID
        assert final.outstanding_balance == Decimal("0")

        history = invoice_service.list_payments(invoice.invoice_id)
        assert [p.payment_number for p in history.payments] == ["PAY-2024-0002", "PAY-2024-0001"]
        assert history.total_paid == Decimal("0.187")

    def test_overdue_invoice_raises_credit_risk(
        self,
        session,
        cycle_service,
        invoice_service,
        create_partner,
        create_usage_record,
        settlement_config,
        test_actor_id,
    ):
        partner = create_partner()
        session.add(
            CreditProfile(
                partner_id=partner.id,
                credit_limit=Decimal("100"),
                currency="USD",
                surcharge_rate=Decimal("1.5"),
                surcharge_trigger_days=0,
                created_by_id=test_actor_id,
            )
        )
        create_usage_record(
            partner, status=ProcessingStatus.RATED, charged_amount=Decimal("80.00")
        )
        cycle = cycle_service.create_cycle(
            partner.id, date(2024, 1, 1), date(2024, 1, 31), test_actor_id
        )
        cycle_service.close_cycle(cycle.cycle_id, test_actor_id)
        invoice = invoice_service.generate_invoice(cycle.cycle_id, test_actor_id)
        invoice_service.issue_invoice(invoice.invoice_id, test_actor_id)

        overdue = invoice_service.mark_overdue(date(2024, 3, 11), test_actor_id)
        assert [i.invoice_id for i in overdue] == [invoice.invoice_id]

        exposure = CreditSelector(session).exposure(
            partner.id,
            datetime(2024, 3, 11, 0, 0, tzinfo=timezone.utc),
            settlement_config.credit,
        )

        assert exposure.total_outstanding == Decimal("88")
        assert exposure.total_overdue == Decimal("88")
        assert exposure.credit_utilization == Decimal("88.00")
        assert exposure.risk_level == RiskLevel.MEDIUM
        assert exposure.overdue_invoices[0].days_overdue == 10
        assert exposure.surcharge_amount == Decimal("1.32")
