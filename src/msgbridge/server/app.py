"""FastAPI application — the proxy's HTTP surface."""

from __future__ import annotations

import json
import logging
import time
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, Response
from pydantic import ValidationError

from msgbridge import __version__
from msgbridge.protocols.errors import UnknownBackendError
from msgbridge.protocols.messages.models import MessagesRequest
from msgbridge.server.diagnostics import RequestInfo, redact_headers
from msgbridge.server.dispatcher import Dispatcher
from msgbridge.server.passthrough import UpstreamPassthrough, decode_body
from msgbridge.settings.models import ProxySettings

logger = logging.getLogger(__name__)

_PASSTHROUGH_METHODS = ["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS", "HEAD"]


def create_app(
    settings: ProxySettings | None = None,
    *,
    dispatcher: Dispatcher | None = None,
    passthrough: UpstreamPassthrough | None = None,
) -> FastAPI:
    """Build the proxy application.

    *dispatcher* and *passthrough* default to instances built from
    *settings*; both can be supplied to substitute fakes in tests.
    """
    settings = settings or ProxySettings()
    dispatcher = dispatcher or Dispatcher(settings)
    passthrough = passthrough or UpstreamPassthrough(settings.upstream_url, sink=dispatcher.sink)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        logger.info(
            "msgbridge %s routing to backends: %s",
            __version__,
            ", ".join(dispatcher.backends) or "(none)",
        )
        yield
        await passthrough.aclose()

    app = FastAPI(
        title="msgbridge",
        description="Messages API proxy that routes requests to other model backends.",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.dispatcher = dispatcher
    app.state.passthrough = passthrough

    @app.get("/healthz")
    async def healthz() -> dict[str, str]:
        return {"status": "ok"}

    @app.post("/v1/messages")
    async def messages(request: Request) -> Response:
        started = time.monotonic()
        raw = await request.body()
        origin = RequestInfo(
            method=request.method,
            url=str(request.url),
            headers=redact_headers(dict(request.headers)),
            body=decode_body(raw),
        )

        try:
            payload = json.loads(raw)
            wire_request = MessagesRequest.model_validate(payload)
        except json.JSONDecodeError as exc:
            return dispatcher.fail(origin, 400, "invalid_request_error", f"Invalid JSON body: {exc}", started)
        except ValidationError as exc:
            message = "; ".join(
                f"{'.'.join(str(part) for part in err['loc'])}: {err['msg']}" for err in exc.errors()
            )
            return dispatcher.fail(origin, 400, "invalid_request_error", message, started)

        try:
            route = dispatcher.resolve(wire_request.model)
        except UnknownBackendError as exc:
            logger.warning("%s (model %r)", exc, wire_request.model)
            return dispatcher.fail(origin, 400, "invalid_request_error", str(exc), started)

        if route is None:
            return await passthrough.forward(request, body=raw)
        return await dispatcher.dispatch(wire_request, route, origin)

    @app.api_route("/{path:path}", methods=_PASSTHROUGH_METHODS)
    async def forward(path: str, request: Request) -> Response:
        return await passthrough.forward(request)

    return app
