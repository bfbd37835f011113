"""Unit tests for the instrumentation module.

Tests use unittest.mock for OTel interactions.  ``opentelemetry-api``
is a test dependency so we can import ``StatusCode`` directly for
assertion accuracy.
"""

import logging
from unittest.mock import MagicMock, patch

import pytest
from opentelemetry.trace import StatusCode

import tagcall.instrumentation as inst
from tagcall.instrumentation import (
    interception_span,
    record_cancelled,
    record_error,
    record_tool_call,
    uninstrument,
)
from tagcall.intercept import intercept_xml_tool_calls

from tests.conftest import drain, text_stream


@pytest.fixture(autouse=True)
def _reset_tracer():
    """Ensure _tracer is reset to None before and after each test."""
    inst._tracer = None
    yield
    inst._tracer = None


# -------------------------------------------------------------------
# instrument()
# -------------------------------------------------------------------


class TestInstrument:
    def test_raises_without_otel_installed(self):
        with patch(
            "importlib.util.find_spec", return_value=None
        ):
            with pytest.raises(
                ImportError, match="pip install"
            ):
                inst.instrument()

    def _mock_otel(self, mock_trace):
        """Patch find_spec + sys.modules for a mock OTel env."""
        return (
            patch(
                "importlib.util.find_spec",
                return_value=MagicMock(),
            ),
            patch.dict(
                "sys.modules",
                {
                    "opentelemetry": MagicMock(
                        trace=mock_trace
                    ),
                    "opentelemetry.trace": mock_trace,
                },
            ),
        )

    def test_sets_global_tracer(self):
        mock_tracer = MagicMock()
        mock_trace = MagicMock()
        mock_trace.get_tracer.return_value = mock_tracer
        mock_trace.NoOpTracer = type("NoOpTracer", (), {})

        p1, p2 = self._mock_otel(mock_trace)
        with p1, p2:
            inst.instrument()

        assert inst._tracer is mock_tracer
        mock_trace.get_tracer.assert_called_once_with(
            "tagcall"
        )

    def test_logs_message_for_noop_tracer(self, caplog):
        NoOpTracer = type("NoOpTracer", (), {})
        mock_trace = MagicMock()
        mock_trace.get_tracer.return_value = NoOpTracer()
        mock_trace.NoOpTracer = NoOpTracer

        p1, p2 = self._mock_otel(mock_trace)
        with p1, p2, caplog.at_level(logging.INFO, logger="tagcall.instrumentation"):
            inst.instrument()

        assert "No TracerProvider configured" in caplog.text


class TestUninstrument:
    def test_clears_tracer(self):
        inst._tracer = MagicMock()
        uninstrument()
        assert inst._tracer is None


# -------------------------------------------------------------------
# interception_span
# -------------------------------------------------------------------


class TestInterceptionSpan:
    def test_yields_none_without_tracer(self):
        with interception_span("tool_call") as span:
            assert span is None

    def test_creates_and_ends_span(self):
        tracer = MagicMock()
        inst._tracer = tracer

        with interception_span("tool_call") as span:
            assert span is tracer.start_span.return_value

        tracer.start_span.assert_called_once_with(
            "intercept_tool_calls tool_call",
            attributes={"tagcall.markup.call_tag": "tool_call"},
        )
        span.end.assert_called_once_with()

    def test_records_error_and_reraises(self):
        tracer = MagicMock()
        inst._tracer = tracer

        with pytest.raises(RuntimeError):
            with interception_span("tool_call"):
                raise RuntimeError("upstream broke")

        span = tracer.start_span.return_value
        span.set_status.assert_called_once_with(StatusCode.ERROR, "upstream broke")
        span.end.assert_called_once_with()

    @pytest.mark.asyncio
    async def test_interception_run_records_tool_call(self):
        tracer = MagicMock()
        inst._tracer = tracer

        await drain(intercept_xml_tool_calls(
            text_stream("<tool_call><tool_name>ls</tool_name></tool_call>"),
            new_tool_call_id=lambda: "call_x",
        ))

        span = tracer.start_span.return_value
        span.add_event.assert_called_once_with(
            "tool_call",
            attributes={"gen_ai.tool.name": "ls", "gen_ai.tool.call.id": "call_x"},
        )
        span.end.assert_called_once_with()


# -------------------------------------------------------------------
# record helpers
# -------------------------------------------------------------------


class TestRecordHelpers:
    def test_noop_on_none_span(self):
        record_tool_call(None, "c", "n")
        record_cancelled(None)
        record_error(None, RuntimeError("boom"))

    def test_record_cancelled(self):
        span = MagicMock()
        record_cancelled(span)
        span.set_attribute.assert_called_once_with("tagcall.cancelled", True)

    def test_record_error(self):
        span = MagicMock()
        exc = RuntimeError("boom")
        record_error(span, exc)

        span.set_status.assert_called_once_with(
            StatusCode.ERROR, "boom"
        )
        span.record_exception.assert_called_once_with(exc)
        span.set_attribute.assert_called_once_with(
            "error.type", "RuntimeError"
        )
