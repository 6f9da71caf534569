"""
Property-based tests for the settlement engines.

Properties checked over generated inputs:
- Voice minute rounding: DOWN <= NEAREST <= UP, and UP covers the duration
- Rated voice charges equal billable minutes times the rate, never negative
- Cycle totals: charges are the sum of in-period rated charges and
  cost + margin == charges
- Invoice drafts: total == subtotal + tax and lines sum to the rated charges
- Least-cost routing: the recommendation is never dearer than an alternative
- Credit exposure: available credit never negative, overdue within outstanding
- Money: addition and subtraction are inverse
"""

from datetime import date, datetime, timedelta, timezone
from decimal import Decimal
from uuid import uuid4

from hypothesis import given, settings
from hypothesis import strategies as st

from settlement_config.schema import (
    CreditConfig,
    CycleConfig,
    InvoicingConfig,
    RatingConfig,
    RoutingConfig,
)
from settlement_engines.credit import calculate_exposure
from settlement_engines.cycle_aggregation import aggregate_cycle
from settlement_engines.invoicing import build_invoice
from settlement_engines.rating import rate_usage_record, voice_minutes
from settlement_engines.routing import select_routes
from settlement_kernel.domain.dtos import (
    CarrierRateInfo,
    CreditProfileInfo,
    InvoiceInfo,
    InvoiceStatus,
    PartnerStatus,
    PricelistStatus,
    ProcessingStatus,
    RateInfo,
    RoundingRule,
    ServiceType,
    UsageRecordInfo,
)
from settlement_kernel.domain.values import Money

PARTNER_ID = uuid4()
PERIOD_START = date(2024, 1, 1)
PERIOD_END = date(2024, 1, 31)

amounts = st.decimals(
    min_value=Decimal("0"),
    max_value=Decimal("100000"),
    places=4,
    allow_nan=False,
    allow_infinity=False,
)
rates = st.decimals(
    min_value=Decimal("0.0001"),
    max_value=Decimal("5"),
    places=4,
    allow_nan=False,
    allow_infinity=False,
)
durations = st.integers(min_value=0, max_value=86_400)


@st.composite
def rated_records(draw):
    """A rated record somewhere between mid-December and mid-February."""
    service = draw(st.sampled_from(list(ServiceType)))
    offset = draw(st.integers(min_value=-15 * 24, max_value=45 * 24))
    quantity = {
        ServiceType.VOICE: {"duration_seconds": draw(st.integers(1, 7200))},
        ServiceType.SMS: {"message_count": draw(st.integers(1, 10))},
        ServiceType.DATA: {
            "data_volume_mb": draw(
                st.decimals(min_value=Decimal("0.001"), max_value=Decimal("5000"), places=3)
            )
        },
    }[service]
    return UsageRecordInfo(
        record_id=uuid4(),
        partner_id=PARTNER_ID,
        service_type=service,
        event_time=datetime(2024, 1, 1, tzinfo=timezone.utc) + timedelta(hours=offset),
        processing_status=draw(
            st.sampled_from([ProcessingStatus.RATED, ProcessingStatus.RATED, ProcessingStatus.FAILED])
        ),
        charged_amount=draw(amounts),
        currency="USD",
        **quantity,
    )


@st.composite
def carrier_rates(draw):
    destination = "33123"
    return CarrierRateInfo(
        carrier_rate_id=uuid4(),
        carrier_id=uuid4(),
        carrier_name=draw(st.text(min_size=1, max_size=12)),
        carrier_status=draw(st.sampled_from(list(PartnerStatus))),
        pricelist_id=uuid4(),
        pricelist_status=PricelistStatus.ACTIVE,
        effective_date=date(2024, 1, 1),
        destination_code=destination[: draw(st.integers(1, len(destination)))],
        rate_per_minute=draw(rates),
        currency="USD",
        asr=draw(
            st.one_of(
                st.none(),
                st.decimals(min_value=Decimal("0"), max_value=Decimal("100"), places=2),
            )
        ),
    )


@st.composite
def outstanding_invoices(draw):
    return InvoiceInfo(
        invoice_id=uuid4(),
        invoice_number=f"INV-2024-{draw(st.integers(1, 999)):03d}",
        partner_id=PARTNER_ID,
        status=draw(st.sampled_from(list(InvoiceStatus))),
        subtotal=Decimal("0"),
        tax_amount=Decimal("0"),
        total_amount=draw(amounts),
        currency="USD",
        due_date=date(2024, 1, 1) + timedelta(days=draw(st.integers(0, 120))),
    )


class TestRatingProperties:

    @given(seconds=durations)
    def test_rounding_order(self, seconds):
        down = voice_minutes(seconds, RoundingRule.DOWN)
        nearest = voice_minutes(seconds, RoundingRule.NEAREST)
        up = voice_minutes(seconds, RoundingRule.UP)

        assert down <= nearest <= up
        assert up - down <= 1
        assert up * 60 >= seconds

    @given(seconds=st.integers(min_value=1, max_value=86_400), rate=rates)
    @settings(max_examples=50)
    def test_voice_charge_is_minutes_times_rate(self, seconds, rate):
        record = UsageRecordInfo(
            record_id=uuid4(),
            partner_id=PARTNER_ID,
            service_type=ServiceType.VOICE,
            event_time=datetime(2024, 1, 15, tzinfo=timezone.utc),
            calling_number="447700900001",
            called_number="33123456789",
            duration_seconds=seconds,
        )
        catch_all = RateInfo(
            rate_id=uuid4(), service_type=ServiceType.VOICE, rate_per_unit=rate, currency="USD"
        )

        result = rate_usage_record(record, [catch_all], RatingConfig())

        expected = (voice_minutes(seconds, RoundingRule.UP) * rate).quantize(Decimal("0.0001"))
        assert result.is_rated
        assert result.charged_amount == expected
        assert result.charged_amount >= 0


class TestCycleProperties:

    @given(records=st.lists(rated_records(), max_size=25))
    @settings(max_examples=50)
    def test_totals_balance(self, records):
        totals = aggregate_cycle(records, PERIOD_START, PERIOD_END, CycleConfig())

        included = [
            r
            for r in records
            if r.is_rated
            and PERIOD_START <= r.event_time.astimezone(timezone.utc).date() <= PERIOD_END
        ]
        assert totals.record_count == len(included)
        assert totals.total_charges == sum((r.charged_amount for r in included), Decimal("0"))
        assert totals.total_cost + totals.margin == totals.total_charges
        assert totals.margin >= 0

    @given(records=st.lists(rated_records(), max_size=25))
    @settings(max_examples=50)
    def test_invoice_lines_match_charges(self, records):
        included = [r for r in records if r.is_rated]
        subtotal = sum((r.charged_amount for r in included), Decimal("0"))

        draft = build_invoice(records, subtotal, "USD", InvoicingConfig(), RatingConfig())

        assert draft.total_amount == draft.subtotal + draft.tax_amount
        assert draft.tax_amount >= 0
        assert draft.line_total == subtotal
        assert [li.line_number for li in draft.line_items] == list(
            range(1, len(draft.line_items) + 1)
        )


class TestRoutingProperties:

    @given(candidates=st.lists(carrier_rates(), min_size=1, max_size=10))
    @settings(max_examples=50)
    def test_recommendation_is_cheapest(self, candidates):
        config = RoutingConfig()

        selection = select_routes(candidates, "33123", date(2024, 6, 1), config)

        assert selection.success
        assert selection.total_routes == len(candidates)
        assert len(selection.alternatives) <= config.max_alternatives
        cheapest = min(c.rate_per_minute for c in candidates)
        assert selection.recommended.rate_per_minute == cheapest
        for alternative in selection.alternatives:
            assert selection.recommended.rate_per_minute <= alternative.rate_per_minute


class TestCreditProperties:

    @given(
        invoices=st.lists(outstanding_invoices(), max_size=15),
        limit=amounts,
        surcharge_rate=st.decimals(min_value=Decimal("0"), max_value=Decimal("10"), places=2),
        days_after=st.integers(min_value=0, max_value=150),
    )
    @settings(max_examples=50)
    def test_exposure_bounds(self, invoices, limit, surcharge_rate, days_after):
        profile = CreditProfileInfo(
            partner_id=PARTNER_ID,
            credit_limit=limit,
            currency="USD",
            surcharge_rate=surcharge_rate,
        )
        as_of = datetime(2024, 1, 1, tzinfo=timezone.utc) + timedelta(days=days_after)

        exposure = calculate_exposure(profile, invoices, as_of, CreditConfig())

        assert exposure.available_credit >= 0
        assert exposure.total_overdue <= exposure.total_outstanding
        assert exposure.surcharge_amount >= 0
        assert exposure.overdue_invoice_count <= exposure.outstanding_invoice_count


class TestMoneyProperties:

    @given(a=amounts, b=amounts)
    def test_add_then_subtract(self, a, b):
        x = Money.of(a, "USD")
        y = Money.of(b, "USD")

        assert (x + y) - y == x
        assert x + y == y + x
