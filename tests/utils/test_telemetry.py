"""Tests for OpenTelemetry tracing helpers."""

from __future__ import annotations

from unittest.mock import patch

import pytest
from opentelemetry import trace

from msgbridge.utils import telemetry
from msgbridge.utils.telemetry import ATTR_BACKEND, ATTR_MODEL, configure_telemetry, get_tracer


class TestGetTracer:
    def test_named_and_default(self) -> None:
        assert isinstance(get_tracer("msgbridge.server.dispatcher"), trace.Tracer)
        assert isinstance(get_tracer(), trace.Tracer)

    def test_unconfigured_span_accepts_attributes(self) -> None:
        with get_tracer("test.noop").start_as_current_span("proxy.messages") as span:
            span.set_attributes({ATTR_BACKEND: "openai", ATTR_MODEL: "openai/gpt-4o"})


class TestConfigureTelemetry:
    def test_missing_sdk_names_extra(self) -> None:
        with patch.dict("sys.modules", {"opentelemetry.sdk.resources": None}):
            with pytest.raises(ImportError, match=r"msgbridge\[otel\]"):
                configure_telemetry()

    def test_installs_provider_with_service_name(self) -> None:
        pytest.importorskip("opentelemetry.sdk.trace")

        with patch.object(telemetry.trace, "set_tracer_provider") as mock_set:
            configure_telemetry(service_name="msgbridge-test")

        provider = mock_set.call_args.args[0]
        assert provider.resource.attributes["service.name"] == "msgbridge-test"

    def test_console_processor_without_endpoint(self) -> None:
        export = pytest.importorskip("opentelemetry.sdk.trace.export")

        processor = telemetry._span_processor(None)

        assert isinstance(processor, export.SimpleSpanProcessor)
        processor.shutdown()

    def test_missing_otlp_exporter_names_package(self) -> None:
        pytest.importorskip("opentelemetry.sdk.trace")

        with patch.dict(
            "sys.modules",
            {"opentelemetry.exporter.otlp.proto.grpc.trace_exporter": None},
        ):
            with pytest.raises(ImportError, match="opentelemetry-exporter-otlp"):
                configure_telemetry(otlp_endpoint="http://localhost:4317")
