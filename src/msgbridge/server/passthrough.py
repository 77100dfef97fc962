"""UpstreamPassthrough — forwards untranslated requests to the vendor endpoint.

Used for every path the proxy does not handle itself and for model ids
without a backend prefix when no default backend is configured. Responses
are relayed chunk by chunk, so streamed responses reach the client as they
arrive.
"""

from __future__ import annotations

import json
import logging
import time
from collections.abc import AsyncIterator
from typing import Any

import httpx
from fastapi import Request, Response
from fastapi.responses import StreamingResponse

from msgbridge.server.diagnostics import (
    DiagnosticRecord,
    DiagnosticSink,
    NullDiagnosticSink,
    RequestInfo,
    ResponseInfo,
    capture_quietly,
    elapsed_ms,
    redact_headers,
    should_capture,
)
from msgbridge.server.dispatcher import error_response

logger = logging.getLogger(__name__)

# Request headers httpx must compute itself for the upstream connection.
_DROPPED_REQUEST_HEADERS = frozenset({"host", "content-length", "connection", "transfer-encoding"})
# The relayed body is decoded, so length and encoding no longer apply.
_DROPPED_RESPONSE_HEADERS = frozenset(
    {"connection", "keep-alive", "transfer-encoding", "content-encoding", "content-length"}
)


def decode_body(raw: bytes) -> Any:
    """Decode a captured body as JSON when possible, otherwise as text."""
    text = raw.decode("utf-8", errors="replace")
    try:
        return json.loads(text)
    except json.JSONDecodeError:
        return text


class UpstreamPassthrough:
    """Relays requests to ``upstream_url`` through a shared httpx client.

    Usage::

        passthrough = UpstreamPassthrough("https://api.anthropic.com")
        response = await passthrough.forward(request)
        ...
        await passthrough.aclose()
    """

    def __init__(
        self,
        upstream_url: str,
        *,
        sink: DiagnosticSink | None = None,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self.upstream_url = upstream_url.rstrip("/")
        self.sink = sink or NullDiagnosticSink()
        self._client = client or httpx.AsyncClient(base_url=self.upstream_url, timeout=None)

    async def aclose(self) -> None:
        await self._client.aclose()

    async def forward(self, request: Request, body: bytes | None = None) -> Response:
        """Forward *request*; *body* overrides the request body if already read."""
        started = time.monotonic()
        content = body if body is not None else await request.body()
        headers = {
            key: value
            for key, value in request.headers.items()
            if key.lower() not in _DROPPED_REQUEST_HEADERS
        }
        path = request.url.path
        if request.url.query:
            path = f"{path}?{request.url.query}"

        upstream_request = self._client.build_request(
            request.method, path, headers=headers, content=content
        )
        try:
            upstream = await self._client.send(upstream_request, stream=True)
        except httpx.HTTPError as exc:
            logger.error("Upstream %s unreachable: %s", self.upstream_url, exc)
            return error_response(502, "api_error", f"Upstream request failed: {exc}")

        logger.debug("Passthrough %s %s -> %s", request.method, path, upstream.status_code)
        origin = RequestInfo(
            method=request.method,
            url=f"{self.upstream_url}{path}",
            headers=redact_headers(headers),
            body=decode_body(content),
        )
        response_headers = {
            key: value
            for key, value in upstream.headers.items()
            if key.lower() not in _DROPPED_RESPONSE_HEADERS
        }
        return StreamingResponse(
            self._relay(upstream, origin, started),
            status_code=upstream.status_code,
            headers=response_headers,
        )

    async def _relay(
        self, upstream: httpx.Response, origin: RequestInfo, started: float
    ) -> AsyncIterator[bytes]:
        capture = should_capture(upstream.status_code)
        received = bytearray()
        try:
            async for chunk in upstream.aiter_bytes():
                if capture:
                    received.extend(chunk)
                yield chunk
        finally:
            await upstream.aclose()
            if capture:
                capture_quietly(
                    self.sink,
                    DiagnosticRecord(
                        request=origin,
                        response=ResponseInfo(
                            status_code=upstream.status_code,
                            headers=dict(upstream.headers),
                            body=decode_body(bytes(received)),
                        ),
                        duration_ms=elapsed_ms(started),
                        context={"passthrough": True},
                    )
                )
