"""
Tests for structured logging.

Validates:
- JSON records carry the event name and extra fields
- LogContext.bind adds context fields and restores them on exit
- Engine tracing emits SHOP_ENGINE_TRACE records
"""

from decimal import Decimal

from shop_engines.line_calculator import compute_line_totals
from shop_kernel.logging_config import LogContext, get_logger


class TestStructuredLogging:

    def test_event_and_extra_fields(self, captured_logs):
        get_logger("test").info("something_happened", extra={"run_id": "r1"})
        records = [r for r in captured_logs() if r["message"] == "something_happened"]
        assert records
        assert records[0]["run_id"] == "r1"

    def test_context_bound_and_restored(self, captured_logs):
        log = get_logger("test")
        with LogContext.bind(run_id="r2", attempt=3):
            log.info("inside")
        log.info("outside")
        by_name = {r["message"]: r for r in captured_logs()}
        assert by_name["inside"]["run_id"] == "r2"
        assert by_name["inside"]["attempt"] == "3"
        assert "run_id" not in by_name["outside"]
        assert LogContext.get_all() == {}

    def test_engine_trace_emitted(self, captured_logs):
        compute_line_totals(Decimal("50"), [])
        assert any(r["message"] == "SHOP_ENGINE_TRACE" for r in captured_logs())
