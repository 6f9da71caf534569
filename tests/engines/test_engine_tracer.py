"""
Tests for settlement_engines.tracer.

Covers:
- Fingerprint determinism and sensitivity
- Fingerprints bound by parameter name, positional or keyword
- SETTLEMENT_ENGINE_TRACE log emission with engine metadata
"""

from datetime import date
from decimal import Decimal

from settlement_engines.tracer import compute_input_fingerprint, traced_engine


@traced_engine("test_engine", "2.1", fingerprint_fields=("amount", "as_of"))
def _double(amount: Decimal, as_of: date) -> Decimal:
    return amount * 2


class TestFingerprint:

    def test_deterministic(self):
        args = {"amount": Decimal("1.50"), "as_of": date(2024, 1, 1)}
        assert compute_input_fingerprint(("amount", "as_of"), args) == compute_input_fingerprint(
            ("amount", "as_of"), dict(args)
        )

    def test_changes_with_input(self):
        a = compute_input_fingerprint(("amount",), {"amount": Decimal("1.50")})
        b = compute_input_fingerprint(("amount",), {"amount": Decimal("1.51")})
        assert a != b

    def test_dict_key_order_irrelevant(self):
        a = compute_input_fingerprint(("m",), {"m": {"x": 1, "y": 2}})
        b = compute_input_fingerprint(("m",), {"m": {"y": 2, "x": 1}})
        assert a == b

    def test_sixteen_hex_chars(self):
        fp = compute_input_fingerprint(("amount",), {"amount": None})
        assert len(fp) == 16
        int(fp, 16)


class TestTracedEngine:

    def test_result_passed_through(self):
        assert _double(Decimal("2"), date(2024, 1, 1)) == Decimal("4")

    def test_trace_emitted(self, captured_logs):
        _double(Decimal("2"), as_of=date(2024, 1, 1))

        traces = [r for r in captured_logs() if r["message"] == "SETTLEMENT_ENGINE_TRACE"]
        assert len(traces) == 1
        trace = traces[0]
        assert trace["engine_name"] == "test_engine"
        assert trace["engine_version"] == "2.1"
        assert trace["logger"] == "settlement_kernel.engines.tracer"
        assert len(trace["input_fingerprint"]) == 16

    def test_positional_and_keyword_calls_fingerprint_alike(self, captured_logs):
        _double(Decimal("3"), date(2024, 1, 1))
        _double(amount=Decimal("3"), as_of=date(2024, 1, 1))

        fps = [
            r["input_fingerprint"]
            for r in captured_logs()
            if r["message"] == "SETTLEMENT_ENGINE_TRACE"
        ]
        assert len(fps) == 2
        assert fps[0] == fps[1]
