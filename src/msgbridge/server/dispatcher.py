"""Dispatcher — routes messages API requests to a configured backend.

The model identifier selects the route: ``"<backend>/<model id>"`` goes to
that backend, a bare identifier goes to the default backend (or to the
upstream passthrough when there is none). The dispatcher then runs the
request through the translators and turns every failure into a wire error.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Mapping
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from fastapi.responses import JSONResponse, StreamingResponse

from msgbridge.core.interface.client import ModelClient
from msgbridge.core.interface.stream import StreamTranslator, rate_limit_error
from msgbridge.core.interface.transpilers.messages import MessagesTranspiler
from msgbridge.protocols.errors import (
    BackendError,
    MissingResultError,
    ProtocolViolationError,
    StructuralDefectError,
    UnknownBackendError,
)
from msgbridge.protocols.messages.models import ErrorEvent, ErrorResponse, WireError
from msgbridge.protocols.messages.sse import SSE_MEDIA_TYPE, encode_event
from msgbridge.server.diagnostics import (
    DiagnosticRecord,
    NullDiagnosticSink,
    ResponseInfo,
    TempFileDiagnosticSink,
    capture_quietly,
    elapsed_ms,
    should_capture,
)
from msgbridge.utils.telemetry import (
    ATTR_BACKEND,
    ATTR_BACKEND_MODEL,
    ATTR_MESSAGE_COUNT,
    ATTR_MODEL,
    ATTR_STATUS_CODE,
    ATTR_STREAM,
    ATTR_TOOL_COUNT,
    get_tracer,
)

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

    from fastapi import Response

    from msgbridge.core.interface.backend import BackendClient
    from msgbridge.core.interface.models import NeutralRequest
    from msgbridge.protocols.messages.models import MessagesRequest
    from msgbridge.server.diagnostics import DiagnosticSink, RequestInfo
    from msgbridge.settings.models import ProxySettings

logger = logging.getLogger(__name__)

_tracer = get_tracer(__name__)

# Status used when recording a stream that failed after headers were sent.
_STREAM_ERROR_STATUS = 400


@dataclass(frozen=True)
class Route:
    """Where a request goes: a configured backend and its model id."""

    backend: str
    model_id: str


def error_body(error_type: str, message: str) -> dict[str, Any]:
    """Serialize a messages API error body."""
    body = ErrorResponse(error=WireError(type=error_type, message=message))
    return body.model_dump(mode="json", exclude_none=True)


def error_response(status_code: int, error_type: str, message: str) -> JSONResponse:
    """Build a JSON response carrying a messages API error body."""
    return JSONResponse(error_body(error_type, message), status_code=status_code)


class Dispatcher:
    """Maps model identifiers to backend clients and runs requests.

    Usage::

        dispatcher = Dispatcher(settings)
        route = dispatcher.resolve(request.model)
        if route is not None:
            response = await dispatcher.dispatch(request, route, origin)
    """

    def __init__(
        self,
        settings: ProxySettings,
        *,
        clients: Mapping[str, BackendClient] | None = None,
        sink: DiagnosticSink | None = None,
    ) -> None:
        self.settings = settings
        if clients is None:
            clients = {name: ModelClient(name, config) for name, config in settings.backends.items()}
        self._clients: dict[str, BackendClient] = dict(clients)
        if sink is None:
            sink = (
                TempFileDiagnosticSink(settings.diagnostics.directory)
                if settings.diagnostics_enabled
                else NullDiagnosticSink()
            )
        self.sink = sink
        self.transpiler = MessagesTranspiler(verbose=settings.verbose)

    @property
    def backends(self) -> list[str]:
        """Names of the backends requests can be routed to."""
        return sorted(self._clients)

    def resolve(self, model: str) -> Route | None:
        """Pick the route for *model*, or ``None`` to use the passthrough.

        Raises:
            UnknownBackendError: If the prefix names no configured backend.
        """
        if "/" not in model:
            if self.settings.default_backend is None:
                return None
            return Route(backend=self.settings.default_backend, model_id=model)

        backend, model_id = model.split("/", 1)
        if backend not in self._clients:
            raise UnknownBackendError(backend)
        return Route(backend=backend, model_id=model_id)

    async def dispatch(self, request: MessagesRequest, route: Route, origin: RequestInfo) -> Response:
        """Run *request* against *route* and return the HTTP response.

        Streaming requests get an SSE response whose body is produced lazily;
        failures that happen before the stream starts still come back as
        plain JSON errors.
        """
        started = time.monotonic()
        with _tracer.start_as_current_span("proxy.messages") as span:
            span.set_attributes(
                {
                    ATTR_MODEL: request.model,
                    ATTR_BACKEND: route.backend,
                    ATTR_BACKEND_MODEL: route.model_id,
                    ATTR_STREAM: request.stream,
                    ATTR_MESSAGE_COUNT: len(request.messages),
                    ATTR_TOOL_COUNT: len(request.tools or []),
                }
            )

            try:
                neutral = self.transpiler.to_neutral(request, route.backend)
            except StructuralDefectError as exc:
                span.set_attribute(ATTR_STATUS_CODE, 500)
                return self.fail(origin, 500, "api_error", str(exc), started, route=route)

            if request.stream:
                span.set_attribute(ATTR_STATUS_CODE, 200)
                return StreamingResponse(
                    self.stream(request, route, neutral, origin),
                    media_type=SSE_MEDIA_TYPE,
                )

            response = await self._complete(request, route, neutral, origin, started)
            span.set_attribute(ATTR_STATUS_CODE, response.status_code)
            return response

    async def _complete(
        self,
        request: MessagesRequest,
        route: Route,
        neutral: NeutralRequest,
        origin: RequestInfo,
        started: float,
    ) -> Response:
        client = self._clients[route.backend]
        try:
            completion = await client.complete(route.model_id, neutral)
            result = self.transpiler.from_neutral(completion, request.model)
        except BackendError as exc:
            remapped = rate_limit_error(route.backend, exc.failure)
            if remapped is not None:
                logger.warning("Transient %s error; answering with a rate limit", route.backend)
                return error_response(429, remapped.type, remapped.message)
            logger.error("Backend %s failed: %s", route.backend, exc.failure.message)
            return self.fail(origin, 400, "api_error", exc.failure.message, started, route=route)
        except MissingResultError as exc:
            logger.error("Backend %s returned no result", route.backend)
            return self.fail(origin, 500, "api_error", str(exc), started, route=route)
        except Exception as exc:
            logger.error("Request to %s failed", route.backend, exc_info=True)
            return self.fail(origin, 500, "api_error", str(exc) or type(exc).__name__, started, route=route)

        return JSONResponse(result.model_dump(mode="json"))

    async def stream(
        self,
        request: MessagesRequest,
        route: Route,
        neutral: NeutralRequest,
        origin: RequestInfo,
    ) -> AsyncIterator[str]:
        """Yield SSE frames for a streaming request.

        Closing this generator (the client went away) closes the backend
        stream too. A stream that breaks off is not finished with a
        synthetic ``message_stop``.
        """
        started = time.monotonic()
        translator = StreamTranslator(model=request.model, backend=route.backend)
        events = self._clients[route.backend].stream(route.model_id, neutral)
        trail: list[dict[str, Any]] = []
        try:
            try:
                async for event in events:
                    for wire_event in translator.translate(event):
                        if self.settings.verbose:
                            trail.append(
                                {"elapsed_ms": elapsed_ms(started), "event": wire_event.model_dump(mode="json")}
                            )
                        if isinstance(wire_event, ErrorEvent):
                            self._capture_stream_error(origin, translator, trail, started, route)
                        yield encode_event(wire_event)
            except ProtocolViolationError as exc:
                logger.error("Aborting stream from %s: %s", route.backend, exc)
                yield self._abort_stream(origin, exc, trail, started, route)
            except Exception as exc:
                logger.error("Stream from %s failed", route.backend, exc_info=True)
                yield self._abort_stream(origin, exc, trail, started, route)
        finally:
            close = getattr(events, "aclose", None)
            if close is not None:
                await close()

    def fail(
        self,
        origin: RequestInfo,
        status_code: int,
        error_type: str,
        message: str,
        started: float,
        *,
        route: Route | None = None,
    ) -> JSONResponse:
        """Build an error response, recording client errors for diagnosis."""
        body = error_body(error_type, message)
        if should_capture(status_code):
            context: dict[str, Any] = {"backend": route.backend} if route is not None else {}
            self.capture(origin, ResponseInfo(status_code=status_code, body=body), started, context=context)
        return JSONResponse(body, status_code=status_code)

    def capture(
        self,
        origin: RequestInfo,
        response: ResponseInfo,
        started: float,
        *,
        context: dict[str, Any] | None = None,
    ) -> str | None:
        """Hand one exchange to the diagnostic sink."""
        record = DiagnosticRecord(
            request=origin,
            response=response,
            duration_ms=elapsed_ms(started),
            context=context or {},
        )
        return capture_quietly(self.sink, record)

    def _abort_stream(
        self,
        origin: RequestInfo,
        exc: Exception,
        trail: list[dict[str, Any]],
        started: float,
        route: Route,
    ) -> str:
        """Record a stream that broke off and return its terminal error frame."""
        error = WireError(type="api_error", message=str(exc) or type(exc).__name__)
        self.capture(
            origin,
            ResponseInfo(status_code=_STREAM_ERROR_STATUS, body={"error": error.model_dump()}),
            started,
            context={"backend": route.backend, "streaming": True, "events": trail},
        )
        return encode_event(ErrorEvent(error=error))

    def _capture_stream_error(
        self,
        origin: RequestInfo,
        translator: StreamTranslator,
        trail: list[dict[str, Any]],
        started: float,
        route: Route,
    ) -> None:
        record = translator.errors[-1]
        self.capture(
            origin,
            ResponseInfo(
                status_code=_STREAM_ERROR_STATUS,
                body={"error": record.emitted.model_dump()},
            ),
            started,
            context={
                "backend": route.backend,
                "streaming": True,
                "original_error": repr(record.original),
                "transformed": record.transformed,
                "events": list(trail),
            },
        )
