"""
Tests for SequenceService.

Covers:
- Monotonic allocation per sequence name
- Independent sequences per document type, year and partner
- Document number formatting
- Rollback returns allocated numbers
"""

from uuid import uuid4

from settlement_kernel.services.sequence_service import (
    SequenceService,
    cycle_sequence_name,
    document_sequence_name,
)


class TestNextValue:

    def test_starts_at_one_and_increments(self, session):
        sequences = SequenceService(session)

        assert [sequences.next_value("TEST:A") for _ in range(3)] == [1, 2, 3]
        assert sequences.current_value("TEST:A") == 3

    def test_unknown_sequence_has_no_value(self, session):
        assert SequenceService(session).current_value("TEST:NONE") is None

    def test_sequences_independent(self, session):
        sequences = SequenceService(session)
        sequences.next_value("TEST:A")
        sequences.next_value("TEST:A")

        assert sequences.next_value("TEST:B") == 1

    def test_rolled_back_allocation_released(self, session):
        sequences = SequenceService(session)
        sequences.next_value("TEST:R")

        savepoint = session.begin_nested()
        sequences.next_value("TEST:R")
        savepoint.rollback()

        assert sequences.next_value("TEST:R") == 2

    def test_reset(self, session):
        sequences = SequenceService(session)
        for _ in range(5):
            sequences.next_value("TEST:X")

        sequences.reset("TEST:X")

        assert sequences.next_value("TEST:X") == 1


class TestDocumentNumbers:

    def test_invoice_numbers(self, session):
        sequences = SequenceService(session)

        assert sequences.next_document_number("INV", 2024, 3) == "INV-2024-001"
        assert sequences.next_document_number("INV", 2024, 3) == "INV-2024-002"

    def test_year_starts_fresh(self, session):
        sequences = SequenceService(session)
        sequences.next_document_number("INV", 2024, 3)

        assert sequences.next_document_number("INV", 2025, 3) == "INV-2025-001"

    def test_width_overflow_keeps_all_digits(self, session):
        sequences = SequenceService(session)
        sequences.reset(document_sequence_name("PAY", 2024), 9999)

        assert sequences.next_document_number("PAY", 2024, 4) == "PAY-2024-10000"

    def test_cycle_numbers_per_partner(self, session):
        sequences = SequenceService(session)
        a, b = uuid4(), uuid4()

        assert sequences.next_cycle_number(a) == 1
        assert sequences.next_cycle_number(a) == 2
        assert sequences.next_cycle_number(b) == 1
        assert sequences.current_value(cycle_sequence_name(a)) == 2
