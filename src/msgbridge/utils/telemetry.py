"""Tracing for the proxy.

Modules grab a tracer with ``get_tracer(__name__)`` at import time. Until
:func:`configure_telemetry` installs an SDK provider, the OpenTelemetry API
hands back no-op tracers, so spans cost nothing in a default install.

``msgbridge serve --telemetry`` calls :func:`configure_telemetry`; the SDK
and exporters ship in the ``otel`` extra.
"""

from __future__ import annotations

from typing import Any

from opentelemetry import trace

_INSTRUMENTATION_NAME = "msgbridge"
_OTEL_EXTRA_HINT = "pip install 'msgbridge[otel]'"

# Span attribute keys
ATTR_MODEL = "msgbridge.model"
ATTR_BACKEND = "msgbridge.backend"
ATTR_BACKEND_MODEL = "msgbridge.backend.model"
ATTR_STREAM = "msgbridge.stream"
ATTR_MESSAGE_COUNT = "msgbridge.messages"
ATTR_TOOL_COUNT = "msgbridge.tools"
ATTR_TOKENS_INPUT = "msgbridge.tokens.input"
ATTR_TOKENS_OUTPUT = "msgbridge.tokens.output"
ATTR_FINISH_REASON = "msgbridge.finish_reason"
ATTR_STATUS_CODE = "msgbridge.status_code"
ATTR_EVENT_COUNT = "msgbridge.stream.events"


def get_tracer(name: str | None = None) -> trace.Tracer:
    return trace.get_tracer(name or _INSTRUMENTATION_NAME)


def configure_telemetry(*, service_name: str = "msgbridge", otlp_endpoint: str | None = None) -> None:
    """Install a global tracer provider.

    Spans go to the OTLP/gRPC collector at *otlp_endpoint* in batches when
    one is given, otherwise they are printed to stdout as they end.

    Raises :class:`ImportError` naming the ``otel`` extra when the SDK or
    the OTLP exporter is missing.
    """
    try:
        from opentelemetry.sdk.resources import Resource  # pyright: ignore[reportMissingImports,reportUnknownVariableType]
        from opentelemetry.sdk.trace import TracerProvider  # pyright: ignore[reportMissingImports,reportUnknownVariableType]
    except ImportError as exc:
        raise ImportError(f"Tracing needs opentelemetry-sdk: {_OTEL_EXTRA_HINT}") from exc

    provider = TracerProvider(resource=Resource.create({"service.name": service_name}))  # pyright: ignore[reportUnknownVariableType,reportUnknownMemberType]
    provider.add_span_processor(_span_processor(otlp_endpoint))  # pyright: ignore[reportUnknownMemberType]
    trace.set_tracer_provider(provider)  # pyright: ignore[reportUnknownArgumentType]


def _span_processor(otlp_endpoint: str | None) -> Any:
    from opentelemetry.sdk.trace.export import (  # pyright: ignore[reportMissingImports,reportUnknownVariableType]
        BatchSpanProcessor,
        ConsoleSpanExporter,
        SimpleSpanProcessor,
    )

    if otlp_endpoint is None:
        return SimpleSpanProcessor(ConsoleSpanExporter())

    try:
        from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import OTLPSpanExporter  # pyright: ignore[reportMissingImports,reportUnknownVariableType]
    except ImportError as exc:
        raise ImportError(f"OTLP export needs opentelemetry-exporter-otlp: {_OTEL_EXTRA_HINT}") from exc
    return BatchSpanProcessor(OTLPSpanExporter(endpoint=otlp_endpoint))
