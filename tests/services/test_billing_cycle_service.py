"""
Tests for BillingCycleService.

Covers:
- Cycle creation: defaults, sequence-backed cycle numbers, duplicates,
  invalid input
- The monthly creation job: eligibility, skip reasons, preview mode
- Closing: totals from RATED records in the period only, version bumps,
  rejection of a second close, revert to OPEN on aggregation failure
- Reset of a cycle stuck in PROCESSING
- CLOSED -> INVOICED
"""

from datetime import date, datetime, timezone
from decimal import Decimal
from uuid import uuid4

import pytest
from sqlalchemy import func, select, update

from settlement_kernel.domain.dtos import (
    CycleStatus,
    PartnerStatus,
    ProcessingStatus,
    ServiceType,
)
from settlement_kernel.exceptions import (
    AggregationFailedError,
    BillingCycleNotFoundError,
    CycleAlreadyClosedError,
    CycleAlreadyExistsError,
    CycleNotClosedError,
    CycleNotProcessingError,
    InvalidCurrencyError,
    InvalidTransitionError,
    PartnerNotFoundError,
)
from settlement_kernel.models.billing_cycle import BillingCycle
from settlement_kernel.services.billing_cycle_service import month_bounds


def rated(create_usage_record, partner, service_type=ServiceType.VOICE, amount="0.15", **kw):
    return create_usage_record(
        partner,
        service_type,
        status=ProcessingStatus.RATED,
        charged_amount=Decimal(amount),
        **kw,
    )


def force_status(session, cycle_id, status: CycleStatus) -> None:
    session.execute(
        update(BillingCycle).where(BillingCycle.id == cycle_id).values(status=status.value)
    )


class TestMonthBounds:

    def test_leap_february(self):
        assert month_bounds(2024, 2) == (date(2024, 2, 1), date(2024, 2, 29))

    def test_december(self):
        assert month_bounds(2023, 12) == (date(2023, 12, 1), date(2023, 12, 31))


class TestCreateCycle:

    def test_defaults(self, january_cycle):
        _, cycle = january_cycle

        assert cycle.status == CycleStatus.OPEN
        assert cycle.cycle_number == 1
        assert cycle.version == 0
        assert cycle.cut_off_date == date(2024, 2, 5)
        assert cycle.due_date == date(2024, 3, 1)
        assert cycle.currency == "USD"
        assert cycle.total_charges is None

    def test_numbers_increase_per_partner(self, cycle_service, january_cycle, test_actor_id):
        partner, _ = january_cycle

        february = cycle_service.create_cycle(
            partner.id, date(2024, 2, 1), date(2024, 2, 29), test_actor_id
        )

        assert february.cycle_number == 2

    def test_numbers_independent_across_partners(
        self, cycle_service, create_partner, test_actor_id
    ):
        a, b = create_partner(), create_partner()
        first = cycle_service.create_cycle(a.id, date(2024, 1, 1), date(2024, 1, 31), test_actor_id)
        second = cycle_service.create_cycle(b.id, date(2024, 1, 1), date(2024, 1, 31), test_actor_id)

        assert first.cycle_number == second.cycle_number == 1

    def test_explicit_dates_and_currency(self, cycle_service, create_partner, test_actor_id):
        partner = create_partner()

        cycle = cycle_service.create_cycle(
            partner.id,
            date(2024, 1, 1),
            date(2024, 1, 31),
            test_actor_id,
            currency="eur",
            cut_off_date=date(2024, 2, 2),
            due_date=date(2024, 2, 15),
        )

        assert cycle.currency == "EUR"
        assert cycle.cut_off_date == date(2024, 2, 2)
        assert cycle.due_date == date(2024, 2, 15)

    def test_duplicate_period_rejected(self, cycle_service, january_cycle, test_actor_id):
        partner, _ = january_cycle

        with pytest.raises(CycleAlreadyExistsError):
            cycle_service.create_cycle(
                partner.id, date(2024, 1, 1), date(2024, 1, 31), test_actor_id
            )

    def test_inverted_period_rejected(self, cycle_service, create_partner, test_actor_id):
        partner = create_partner()
        with pytest.raises(ValueError):
            cycle_service.create_cycle(
                partner.id, date(2024, 1, 31), date(2024, 1, 1), test_actor_id
            )

    def test_unknown_partner(self, cycle_service, test_actor_id):
        with pytest.raises(PartnerNotFoundError):
            cycle_service.create_cycle(
                uuid4(), date(2024, 1, 1), date(2024, 1, 31), test_actor_id
            )

    def test_unknown_currency(self, cycle_service, create_partner, test_actor_id):
        partner = create_partner()
        with pytest.raises(InvalidCurrencyError):
            cycle_service.create_cycle(
                partner.id, date(2024, 1, 1), date(2024, 1, 31), test_actor_id, currency="ZZZ"
            )


class TestCreationJob:
    """Monthly cycle creation across partners."""

    def test_eligible_partners_get_cycles(
        self, session, cycle_service, create_partner, test_actor_id
    ):
        eligible = create_partner("ALPHA", currency="EUR")
        create_partner("BRAVO", agreement_status=None)
        create_partner("CHARLIE", status=PartnerStatus.SUSPENDED)
        existing = create_partner("DELTA")
        cycle_service.create_cycle(
            existing.id, date(2024, 2, 1), date(2024, 2, 29), test_actor_id
        )

        report = cycle_service.run_creation_job(2024, 2, test_actor_id)

        assert report.period_start == date(2024, 2, 1)
        assert report.period_end == date(2024, 2, 29)
        assert report.total_partners == 3
        assert [c.partner_code for c in report.created] == ["ALPHA"]
        assert report.created[0].currency == "EUR"
        assert report.created[0].cycle_number == 1
        assert [(s.partner_code, s.reason) for s in report.skipped] == [
            ("BRAVO", "No active agreement"),
            ("DELTA", "Cycle already exists"),
        ]
        assert report.errors == ()

        count = session.scalar(
            select(func.count(BillingCycle.id)).where(BillingCycle.partner_id == eligible.id)
        )
        assert count == 1

    def test_preview_writes_nothing(self, session, cycle_service, create_partner, test_actor_id):
        partner = create_partner()

        report = cycle_service.run_creation_job(2024, 3, test_actor_id, preview=True)

        assert report.preview
        assert len(report.created) == 1
        assert report.created[0].cycle_id is None
        count = session.scalar(
            select(func.count(BillingCycle.id)).where(BillingCycle.partner_id == partner.id)
        )
        assert count == 0

    def test_rerun_skips_created_cycles(self, cycle_service, create_partner, test_actor_id):
        create_partner()
        cycle_service.run_creation_job(2024, 4, test_actor_id)

        second = cycle_service.run_creation_job(2024, 4, test_actor_id)

        assert second.created == ()
        assert [s.reason for s in second.skipped] == ["Cycle already exists"]


class TestCloseCycle:

    def test_totals_from_rated_records_in_period(
        self, cycle_service, january_cycle, create_usage_record, test_actor_id,
        deterministic_clock,
    ):
        partner, cycle = january_cycle
        rated(create_usage_record, partner, duration_seconds=125)
        rated(create_usage_record, partner, ServiceType.SMS, amount="0.02")
        create_usage_record(partner)
        rated(
            create_usage_record,
            partner,
            amount="5.00",
            event_time=datetime(2024, 2, 1, 0, 0, tzinfo=timezone.utc),
        )

        closed = cycle_service.close_cycle(cycle.cycle_id, test_actor_id)

        assert closed.status == CycleStatus.CLOSED
        assert closed.version == 2
        assert closed.total_voice_minutes == 3
        assert closed.total_sms_count == 1
        assert closed.total_data_mb == Decimal("0")
        assert closed.total_charges == Decimal("0.17")
        assert closed.total_cost == Decimal("0.034")
        assert closed.margin == Decimal("0.136")
        assert closed.closed_at == deterministic_clock.now()

    def test_last_day_of_period_included(
        self, cycle_service, january_cycle, create_usage_record, test_actor_id
    ):
        partner, cycle = january_cycle
        rated(
            create_usage_record,
            partner,
            amount="1.00",
            event_time=datetime(2024, 1, 31, 23, 59, 59, tzinfo=timezone.utc),
        )

        closed = cycle_service.close_cycle(cycle.cycle_id, test_actor_id)

        assert closed.total_charges == Decimal("1.00")

    def test_empty_cycle_closes_with_zero_totals(
        self, cycle_service, january_cycle, test_actor_id
    ):
        _, cycle = january_cycle

        closed = cycle_service.close_cycle(cycle.cycle_id, test_actor_id)

        assert closed.status == CycleStatus.CLOSED
        assert closed.total_voice_minutes == 0
        assert closed.total_charges == Decimal("0")
        assert closed.margin == Decimal("0")

    def test_second_close_rejected_totals_unchanged(
        self, cycle_service, january_cycle, create_usage_record, test_actor_id
    ):
        partner, cycle = january_cycle
        rated(create_usage_record, partner)
        first = cycle_service.close_cycle(cycle.cycle_id, test_actor_id)
        rated(create_usage_record, partner, amount="9.00")

        with pytest.raises(CycleAlreadyClosedError) as exc_info:
            cycle_service.close_cycle(cycle.cycle_id, test_actor_id)

        assert exc_info.value.current_status == "CLOSED"
        again = cycle_service._get(cycle.cycle_id)
        assert again.total_charges == first.total_charges
        assert again.version == first.version

    def test_aggregation_failure_reverts_to_open(
        self, monkeypatch, cycle_service, january_cycle, test_actor_id
    ):
        """A failed close never leaves the cycle in PROCESSING."""
        _, cycle = january_cycle

        def explode(*args, **kwargs):
            raise RuntimeError("aggregation exploded")

        monkeypatch.setattr(
            "settlement_kernel.services.billing_cycle_service.aggregate_cycle", explode
        )

        with pytest.raises(AggregationFailedError) as exc_info:
            cycle_service.close_cycle(cycle.cycle_id, test_actor_id)

        assert exc_info.value.cause == "aggregation exploded"
        reloaded = cycle_service._get(cycle.cycle_id)
        assert reloaded.status == CycleStatus.OPEN.value
        assert reloaded.version == 2
        assert reloaded.total_charges is None

    def test_unknown_cycle(self, cycle_service, test_actor_id):
        with pytest.raises(BillingCycleNotFoundError):
            cycle_service.close_cycle(uuid4(), test_actor_id)

    def test_close_logged_with_context(
        self, cycle_service, january_cycle, test_actor_id, captured_logs
    ):
        partner, cycle = january_cycle

        cycle_service.close_cycle(cycle.cycle_id, test_actor_id)

        (entry,) = [r for r in captured_logs() if r["message"] == "cycle_closed"]
        assert entry["cycle_id"] == str(cycle.cycle_id)
        assert entry["partner_id"] == str(partner.id)
        assert entry["record_count"] == 0


class TestResetCycle:

    def test_processing_cycle_reset(self, session, cycle_service, january_cycle, test_actor_id):
        _, cycle = january_cycle
        force_status(session, cycle.cycle_id, CycleStatus.PROCESSING)

        reset = cycle_service.reset_cycle(cycle.cycle_id, test_actor_id)

        assert reset.status == CycleStatus.OPEN
        assert reset.version == 1
        assert reset.total_charges is None
        assert reset.closed_at is None

    def test_reset_cycle_can_be_closed(self, session, cycle_service, january_cycle, test_actor_id):
        _, cycle = january_cycle
        force_status(session, cycle.cycle_id, CycleStatus.PROCESSING)
        cycle_service.reset_cycle(cycle.cycle_id, test_actor_id)

        closed = cycle_service.close_cycle(cycle.cycle_id, test_actor_id)

        assert closed.status == CycleStatus.CLOSED

    def test_open_cycle_cannot_be_reset(self, cycle_service, january_cycle, test_actor_id):
        _, cycle = january_cycle

        with pytest.raises(CycleNotProcessingError) as exc_info:
            cycle_service.reset_cycle(cycle.cycle_id, test_actor_id)

        assert exc_info.value.current_status == "OPEN"


class TestMarkInvoiced:

    def test_closed_cycle_marked(self, cycle_service, january_cycle, test_actor_id):
        _, cycle = january_cycle
        cycle_service.close_cycle(cycle.cycle_id, test_actor_id)
        invoice_id = uuid4()

        invoiced = cycle_service.mark_invoiced(cycle.cycle_id, invoice_id, test_actor_id)

        assert invoiced.status == CycleStatus.INVOICED
        assert invoiced.invoice_id == invoice_id
        assert invoiced.version == 3

    def test_open_cycle_rejected(self, cycle_service, january_cycle, test_actor_id):
        _, cycle = january_cycle

        with pytest.raises(CycleNotClosedError):
            cycle_service.mark_invoiced(cycle.cycle_id, uuid4(), test_actor_id)


class TestTransitionTable:
    """Every status change goes through the cycle lifecycle table."""

    def test_transition_outside_lifecycle_rejected(
        self, cycle_service, january_cycle, test_actor_id
    ):
        _, cycle = january_cycle

        with pytest.raises(InvalidTransitionError) as exc_info:
            cycle_service._transition(
                cycle.cycle_id, CycleStatus.OPEN, 0, CycleStatus.INVOICED, test_actor_id
            )

        assert exc_info.value.current_status == "OPEN"
        assert exc_info.value.target_status == "INVOICED"
        stored = cycle_service._get(cycle.cycle_id)
        assert stored.status == CycleStatus.OPEN.value
        assert stored.version == 0

    def test_allowed_transition_applied(self, cycle_service, january_cycle, test_actor_id):
        _, cycle = january_cycle

        assert cycle_service._transition(
            cycle.cycle_id, CycleStatus.OPEN, 0, CycleStatus.PROCESSING, test_actor_id
        )
        assert cycle_service._get(cycle.cycle_id).version == 1
