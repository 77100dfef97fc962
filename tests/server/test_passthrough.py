"""Tests for forwarding untranslated requests upstream."""

from __future__ import annotations

import httpx
from fastapi import FastAPI, Request, Response
from fastapi.testclient import TestClient

from msgbridge.server.diagnostics import DiagnosticRecord, DiagnosticSink
from msgbridge.server.passthrough import UpstreamPassthrough, decode_body


class RecordingSink:
    def __init__(self) -> None:
        self.records: list[DiagnosticRecord] = []

    def capture(self, record: DiagnosticRecord) -> str | None:
        self.records.append(record)
        return None


def _app(passthrough: UpstreamPassthrough) -> FastAPI:
    app = FastAPI()

    @app.api_route("/{path:path}", methods=["GET", "POST"])
    async def forward(path: str, request: Request) -> Response:
        return await passthrough.forward(request)

    return app


def _passthrough(handler, sink: DiagnosticSink | None = None) -> UpstreamPassthrough:  # noqa: ANN001
    client = httpx.AsyncClient(base_url="https://upstream.test", transport=httpx.MockTransport(handler))
    return UpstreamPassthrough("https://upstream.test/", sink=sink, client=client)


class BrokenSink:
    def capture(self, record: DiagnosticRecord) -> str | None:
        raise ValueError("disk on fire")


class TestDecodeBody:
    def test_json(self) -> None:
        assert decode_body(b'{"a": 1}') == {"a": 1}

    def test_text(self) -> None:
        assert decode_body(b"plain") == "plain"


class TestUpstreamPassthrough:
    def test_status_and_body_relayed(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(201, content=b"event: ping\n\n", headers={"x-upstream": "yes"})

        response = TestClient(_app(_passthrough(handler))).post("/v1/anything", content=b"{}")

        assert response.status_code == 201
        assert response.text == "event: ping\n\n"
        assert response.headers["x-upstream"] == "yes"

    def test_host_header_dropped(self) -> None:
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200)

        TestClient(_app(_passthrough(handler))).get("/v1/models")

        assert seen[0].headers["host"] == "upstream.test"

    def test_client_error_captured(self) -> None:
        sink = RecordingSink()

        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(400, json={"type": "error", "error": {"type": "invalid_request_error", "message": "bad"}})

        response = TestClient(_app(_passthrough(handler, sink))).post(
            "/v1/messages", json={"model": "claude"}, headers={"x-api-key": "secret"}
        )

        assert response.status_code == 400
        assert len(sink.records) == 1
        record = sink.records[0]
        assert record.request.url == "https://upstream.test/v1/messages"
        assert record.request.headers["x-api-key"] == "<redacted>"
        assert record.request.body == {"model": "claude"}
        assert record.response is not None
        assert record.response.body["error"]["message"] == "bad"

    def test_rate_limit_not_captured(self) -> None:
        sink = RecordingSink()

        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(429, json={"type": "error"})

        response = TestClient(_app(_passthrough(handler, sink))).post("/v1/messages", json={})

        assert response.status_code == 429
        assert sink.records == []

    def test_unreachable_upstream(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        response = TestClient(_app(_passthrough(handler))).post("/v1/messages", json={})

        assert response.status_code == 502
        assert response.json()["error"]["type"] == "api_error"

    def test_failing_sink_does_not_change_response(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(404, json={"type": "error", "error": {"type": "not_found_error", "message": "nope"}})

        response = TestClient(_app(_passthrough(handler, BrokenSink()))).get("/v1/missing")

        assert response.status_code == 404
        assert response.json()["error"]["message"] == "nope"
