"""Optional OpenTelemetry tracing for model rounds and tool dispatch.

Call ``stepchat.instrument()`` once at startup, after configuring a
TracerProvider. Requires ``opentelemetry-api``
(``pip install stepchat[otel]``); without it every helper here is a
no-op.
"""

import importlib.util
import logging
from contextlib import asynccontextmanager

logger = logging.getLogger(__name__)

_tracer = None


def instrument(*, tracer_name: str = "stepchat") -> None:
    """Enable tracing of chat rounds and tool calls.

    Raises:
        ImportError: If ``opentelemetry-api`` is not installed.
    """
    global _tracer
    if importlib.util.find_spec("opentelemetry.trace") is None:
        raise ImportError(
            "opentelemetry-api is required for instrumentation. "
            "Install it with: pip install stepchat[otel]"
        )
    from opentelemetry import trace
    _tracer = trace.get_tracer(tracer_name)
    if isinstance(_tracer, trace.NoOpTracer):
        logger.info(
            "No TracerProvider configured; spans will be discarded"
        )
    else:
        logger.info("stepchat instrumentation enabled")


def uninstrument() -> None:
    global _tracer
    _tracer = None


@asynccontextmanager
async def chat_span(model: str | None, stream: bool, round_number: int):
    """Wrap one model round in a ``chat`` span."""
    if _tracer is None:
        yield None
        return
    from opentelemetry.trace import SpanKind

    with _tracer.start_as_current_span(
        f"chat {model}",
        kind=SpanKind.CLIENT,
        attributes={
            "gen_ai.operation.name": "chat",
            "gen_ai.provider.name": "stepfun",
            "gen_ai.request.model": model or "",
            "stepchat.stream": stream,
            "stepchat.round": round_number,
        },
    ) as span:
        yield span


@asynccontextmanager
async def tool_span(tool_name: str, call_id: str | None):
    """Wrap one tool dispatch in an ``execute_tool`` span."""
    if _tracer is None:
        yield None
        return
    with _tracer.start_as_current_span(
        f"execute_tool {tool_name}",
        attributes={
            "gen_ai.operation.name": "execute_tool",
            "gen_ai.tool.name": tool_name,
            "gen_ai.tool.call.id": call_id or "",
        },
    ) as span:
        yield span


def record_usage(span, completion) -> None:
    """Set token usage and response model attributes on a span."""
    if span is None or completion is None:
        return
    usage = completion.usage
    if usage is not None:
        if usage.prompt_tokens is not None:
            span.set_attribute("gen_ai.usage.input_tokens", usage.prompt_tokens)
        if usage.completion_tokens is not None:
            span.set_attribute(
                "gen_ai.usage.output_tokens", usage.completion_tokens
            )
    if completion.model:
        span.set_attribute("gen_ai.response.model", completion.model)
    if completion.finish_reason is not None:
        span.set_attribute(
            "gen_ai.response.finish_reasons", [completion.finish_reason.value]
        )


def record_error(span, exception: BaseException) -> None:
    if span is None:
        return
    from opentelemetry.trace import StatusCode

    span.set_status(StatusCode.ERROR, str(exception))
    span.record_exception(exception)
    span.set_attribute("error.type", type(exception).__qualname__)
