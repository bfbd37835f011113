"""Optional OpenTelemetry instrumentation for tagcall.

Call ``tagcall.instrument()`` once at startup to enable tracing.
Requires ``opentelemetry-api`` to be installed; the library works
identically without it.
"""

import importlib.util
import logging
from contextlib import contextmanager

logger = logging.getLogger(__name__)

_tracer = None


def instrument(*, tracer_name: str = "tagcall") -> None:
    """Enable OpenTelemetry tracing for every interception run.

    Call once at startup, after configuring your TracerProvider.
    Requires ``opentelemetry-api``: ``pip install tagcall[otel]``

    Example::

        from opentelemetry import trace
        from opentelemetry.sdk.trace import TracerProvider

        trace.set_tracer_provider(TracerProvider())

        import tagcall
        tagcall.instrument()

    Args:
        tracer_name: Name passed to ``trace.get_tracer()``.

    Raises:
        ImportError: If ``opentelemetry-api`` is not installed.
    """
    global _tracer
    if importlib.util.find_spec("opentelemetry.trace") is None:
        raise ImportError(
            "opentelemetry-api is required for instrumentation. "
            "Install it with: pip install tagcall[otel]"
        )
    from opentelemetry import trace
    _tracer = trace.get_tracer(tracer_name)
    if isinstance(_tracer, trace.NoOpTracer):
        logger.info(
            "No TracerProvider configured, spans will be "
            "discarded. Set up a TracerProvider to export "
            "traces."
        )
    else:
        logger.info("tagcall instrumentation enabled")


def uninstrument() -> None:
    """Disable OpenTelemetry tracing.

    Subsequent interception runs will not emit spans.
    """
    global _tracer
    _tracer = None


@contextmanager
def interception_span(call_tag: str):
    """Wrap one interception run in an ``intercept_tool_calls`` span.

    The span is not made current: the run is an async generator and
    may be resumed from different contexts.
    """
    if _tracer is None:
        yield None
        return
    span = _tracer.start_span(
        f"intercept_tool_calls {call_tag}",
        attributes={
            "tagcall.markup.call_tag": call_tag,
        },
    )
    try:
        yield span
    except Exception as exc:
        record_error(span, exc)
        raise
    finally:
        span.end()


def record_tool_call(span, call_id: str, name: str) -> None:
    """Add a ``tool_call`` event for a call that has been closed."""
    if span is None:
        return
    span.add_event(
        "tool_call",
        attributes={
            "gen_ai.tool.name": name,
            "gen_ai.tool.call.id": call_id,
        },
    )


def record_cancelled(span) -> None:
    if span is None:
        return
    span.set_attribute("tagcall.cancelled", True)


def record_error(span, exception: BaseException) -> None:
    """Record an exception and set ERROR status on a span.

    No-ops when *span* is ``None`` (tracing disabled).
    """
    if span is None:
        return
    from opentelemetry.trace import StatusCode

    span.set_status(StatusCode.ERROR, str(exception))
    span.record_exception(exception)
    span.set_attribute(
        "error.type", type(exception).__qualname__
    )
