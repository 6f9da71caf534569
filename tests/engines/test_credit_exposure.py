"""
Tests for the Credit Exposure Calculator.

Covers:
- Outstanding and overdue totals over PENDING/OVERDUE invoices
- Utilization, available credit and the risk ladder
- Late-payment surcharge after the trigger days
- Single as-of evaluation; naive as-of rejected
"""

from datetime import date, datetime, timezone
from decimal import Decimal
from uuid import uuid4

import pytest

from settlement_config.schema import CreditConfig
from settlement_engines.credit import calculate_exposure, days_overdue, risk_level_for
from settlement_kernel.domain.dtos import (
    CreditProfileInfo,
    InvoiceInfo,
    InvoiceStatus,
    RiskLevel,
)

AS_OF = datetime(2024, 3, 15, 12, 0, tzinfo=timezone.utc)
PARTNER_ID = uuid4()


def make_invoice(total, due, status=InvoiceStatus.PENDING, partner_id=PARTNER_ID, number="INV-2024-001"):
    return InvoiceInfo(
        invoice_id=uuid4(),
        invoice_number=number,
        partner_id=partner_id,
        status=status,
        subtotal=Decimal(total),
        tax_amount=Decimal("0"),
        total_amount=Decimal(total),
        currency="USD",
        due_date=due,
    )


def make_profile(limit="1000", surcharge_rate="2", trigger_days=10) -> CreditProfileInfo:
    return CreditProfileInfo(
        partner_id=PARTNER_ID,
        credit_limit=Decimal(limit),
        currency="USD",
        surcharge_rate=Decimal(surcharge_rate),
        surcharge_trigger_days=trigger_days,
    )


class TestDaysOverdue:

    def test_whole_days_floored(self):
        """14.5 days after the start of the due date is 14 days."""
        assert days_overdue(date(2024, 3, 1), AS_OF) == 14

    def test_due_today(self):
        assert days_overdue(date(2024, 3, 15), AS_OF) == 0


class TestRiskLevel:
    """HIGH above 90, MEDIUM above 70, else LOW (thresholds exclusive)."""

    @pytest.mark.parametrize(
        "utilization, expected",
        [
            ("0", RiskLevel.LOW),
            ("70", RiskLevel.LOW),
            ("70.01", RiskLevel.MEDIUM),
            ("90", RiskLevel.MEDIUM),
            ("90.01", RiskLevel.HIGH),
            ("250", RiskLevel.HIGH),
        ],
    )
    def test_ladder(self, utilization, expected):
        assert risk_level_for(Decimal(utilization), CreditConfig()) == expected

    def test_configured_thresholds(self):
        config = CreditConfig(high_risk_utilization=Decimal("50"), medium_risk_utilization=Decimal("25"))
        assert risk_level_for(Decimal("30"), config) == RiskLevel.MEDIUM


class TestCalculateExposure:
    """Exposure for one partner at one instant."""

    def setup_method(self):
        self.config = CreditConfig()

    def test_outstanding_overdue_and_surcharge(self):
        invoices = [
            make_invoice("500", date(2024, 4, 1)),
            make_invoice("300", date(2024, 3, 1), InvoiceStatus.OVERDUE, number="INV-2024-002"),
        ]

        exposure = calculate_exposure(make_profile(), invoices, AS_OF, self.config)

        assert exposure.total_outstanding == Decimal("800")
        assert exposure.total_overdue == Decimal("300")
        assert exposure.credit_utilization == Decimal("80.00")
        assert exposure.available_credit == Decimal("200")
        assert exposure.surcharge_amount == Decimal("6.00")
        assert exposure.risk_level == RiskLevel.MEDIUM
        assert exposure.outstanding_invoice_count == 2
        assert exposure.overdue_invoice_count == 1
        (overdue,) = exposure.overdue_invoices
        assert overdue.invoice_number == "INV-2024-002"
        assert overdue.days_overdue == 14
        assert overdue.surcharge == Decimal("6.00")

    def test_no_surcharge_within_trigger_days(self):
        invoices = [make_invoice("300", date(2024, 3, 10), InvoiceStatus.OVERDUE)]

        exposure = calculate_exposure(make_profile(trigger_days=10), invoices, AS_OF, self.config)

        assert exposure.total_overdue == Decimal("300")
        assert exposure.surcharge_amount == Decimal("0.00")

    def test_only_outstanding_statuses_count(self):
        invoices = [
            make_invoice("100", date(2024, 3, 1), InvoiceStatus.ISSUED),
            make_invoice("100", date(2024, 3, 1), InvoiceStatus.PAID),
            make_invoice("100", date(2024, 3, 1), InvoiceStatus.PARTIALLY_PAID),
            make_invoice("100", date(2024, 3, 1), InvoiceStatus.CANCELLED),
        ]

        exposure = calculate_exposure(make_profile(), invoices, AS_OF, self.config)

        assert exposure.total_outstanding == Decimal("0")
        assert exposure.outstanding_invoice_count == 0
        assert exposure.risk_level == RiskLevel.LOW

    def test_other_partner_invoices_ignored(self):
        invoices = [make_invoice("900", date(2024, 4, 1), partner_id=uuid4())]
        exposure = calculate_exposure(make_profile(), invoices, AS_OF, self.config)
        assert exposure.total_outstanding == Decimal("0")

    def test_invoice_due_in_future_not_overdue(self):
        invoices = [make_invoice("950", date(2024, 3, 16))]

        exposure = calculate_exposure(make_profile(), invoices, AS_OF, self.config)

        assert exposure.total_overdue == Decimal("0")
        assert exposure.overdue_invoice_count == 0
        assert exposure.risk_level == RiskLevel.HIGH

    def test_invoice_due_today_counts_as_overdue(self):
        """Due from 00:00 UTC of the due date, so on that day it is 0 days overdue."""
        invoices = [make_invoice("300", date(2024, 3, 15))]

        exposure = calculate_exposure(make_profile(), invoices, AS_OF, self.config)

        assert exposure.total_overdue == Decimal("300")
        assert exposure.overdue_invoices[0].days_overdue == 0

    def test_not_overdue_at_midnight_of_due_date(self):
        invoices = [make_invoice("300", date(2024, 3, 15))]
        midnight = datetime(2024, 3, 15, 0, 0, tzinfo=timezone.utc)

        exposure = calculate_exposure(make_profile(), invoices, midnight, self.config)

        assert exposure.total_overdue == Decimal("0")

    def test_zero_credit_limit(self):
        """No limit means zero utilization and no available credit."""
        invoices = [make_invoice("100", date(2024, 4, 1))]

        exposure = calculate_exposure(make_profile(limit="0"), invoices, AS_OF, self.config)

        assert exposure.credit_utilization == Decimal("0")
        assert exposure.available_credit == Decimal("0")
        assert exposure.risk_level == RiskLevel.LOW

    def test_over_limit_available_credit_floored(self):
        invoices = [make_invoice("1500", date(2024, 4, 1))]

        exposure = calculate_exposure(make_profile(), invoices, AS_OF, self.config)

        assert exposure.credit_utilization == Decimal("150.00")
        assert exposure.available_credit == Decimal("0")

    def test_naive_as_of_rejected(self):
        with pytest.raises(ValueError):
            calculate_exposure(make_profile(), [], datetime(2024, 3, 15, 12, 0), self.config)
