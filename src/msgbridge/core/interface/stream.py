"""Stream translation — generation events to messages API stream events.

:class:`StreamTranslator` is a single-pass transcoder scoped to one request.
Each generation event produces zero, one or a short fixed burst of wire
events, emitted in arrival order. The only state is the index of the next
content block and the errors seen so far.

Usage::

    translator = StreamTranslator(model="openai/gpt-4o", backend="openai")
    async for wire_event in translator.run(client.stream(request)):
        send(encode_event(wire_event))
"""

from __future__ import annotations

import logging
from collections.abc import AsyncIterable, AsyncIterator, Callable
from dataclasses import dataclass
from typing import Any

from msgbridge.core.interface.models import BackendFailure
from msgbridge.protocols.errors import ProtocolViolationError
from msgbridge.protocols.messages.models import (
    ContentBlockDeltaEvent,
    ContentBlockStartEvent,
    ContentBlockStopEvent,
    ErrorEvent,
    InputJsonDelta,
    MessageDelta,
    MessageDeltaEvent,
    MessagesResponse,
    MessageStartEvent,
    MessageStopEvent,
    TextBlock,
    TextDelta,
    ToolUseBlock,
    WireError,
    WireEvent,
    WireUsage,
)

logger = logging.getLogger(__name__)

# Bookkeeping events with no wire counterpart.
IGNORED_EVENT_TYPES = frozenset(
    {
        "start",
        "abort",
        "raw",
        "source",
        "file",
        "reasoning-start",
        "reasoning-delta",
        "reasoning-end",
    }
)

_STOP_REASONS = {
    "stop": "end_turn",
    "length": "max_tokens",
    "tool-calls": "tool_use",
    "content-filter": "refusal",
}

# Error codes that mean "transient upstream overload" for a given backend,
# with the message shown to the client instead.
TRANSIENT_OVERLOAD_CODES: dict[str, tuple[str, str]] = {
    "openai": (
        "server_error",
        "OpenAI server temporarily unavailable. Please retry your request.",
    ),
}


def map_stop_reason(finish_reason: str | None) -> str:
    """Map a neutral finish reason to a messages API ``stop_reason``."""
    return _STOP_REASONS.get(finish_reason or "", "end_turn")


def error_message(error: Any) -> str:
    """Reduce an error payload to its human-readable message."""
    if isinstance(error, BackendFailure):
        return error.message
    if isinstance(error, BaseException):
        return str(error)
    if isinstance(error, dict):
        nested = error.get("error")
        if isinstance(nested, dict) and nested.get("message"):
            return str(nested["message"])
        if error.get("message"):
            return str(error["message"])
    return str(error)


def error_code(error: Any) -> str | None:
    """Extract a structured error code, if the payload carries one."""
    code: Any = None
    if isinstance(error, BackendFailure):
        code = error.code
    elif isinstance(error, dict):
        nested = error.get("error")
        code = nested.get("code") if isinstance(nested, dict) else error.get("code")
    elif isinstance(error, BaseException):
        code = getattr(error, "code", None)
    return str(code) if code is not None else None


def rate_limit_error(backend: str, error: Any) -> WireError | None:
    """Return the rate-limit error that replaces *error*, or ``None``.

    Only known overload signatures are rewritten, so the client's own
    rate-limit retry takes over. The replacement carries no retry-after.
    """
    signature = TRANSIENT_OVERLOAD_CODES.get(backend)
    if signature is None:
        return None
    code, message = signature
    if error_code(error) != code:
        return None
    return WireError(type="rate_limit_error", code="rate_limit_error", message=message)


@dataclass
class StreamErrorRecord:
    """An error seen on the stream, kept for diagnostic capture."""

    original: Any
    emitted: WireError
    transformed: bool


class StreamTranslator:
    """Converts one request's generation events into wire events."""

    def __init__(self, model: str, backend: str) -> None:
        self.model = model
        self.backend = backend
        self.block_index = 0
        # True between message_start and message_stop.
        self.open = False
        self.errors: list[StreamErrorRecord] = []
        self._handlers: dict[str, Callable[[Any], list[WireEvent]]] = {
            "start-step": self._on_step_start,
            "finish-step": self._on_step_finish,
            "finish": self._on_finish,
            "text-start": self._on_text_start,
            "text-delta": self._on_text_delta,
            "text-end": self._on_block_end,
            "tool-input-start": self._on_tool_input_start,
            "tool-input-delta": self._on_tool_input_delta,
            "tool-input-end": self._on_block_end,
            "tool-call": self._on_tool_call,
            "error": self._on_error,
        }

    def translate(self, event: Any) -> list[WireEvent]:
        """Translate a single generation event.

        Raises:
            ProtocolViolationError: For an event type that is neither mapped
                nor explicitly ignorable.
        """
        event_type = getattr(event, "type", None)
        handler = self._handlers.get(event_type) if isinstance(event_type, str) else None
        if handler is not None:
            return handler(event)
        if event_type in IGNORED_EVENT_TYPES:
            return []
        raise ProtocolViolationError(str(event_type))

    async def run(self, events: AsyncIterable[Any]) -> AsyncIterator[WireEvent]:
        """Translate *events* lazily, one event at a time."""
        async for event in events:
            for wire_event in self.translate(event):
                yield wire_event

    # -- handlers ----------------------------------------------------------

    def _on_step_start(self, event: Any) -> list[WireEvent]:
        self.open = True
        return [MessageStartEvent(message=MessagesResponse(model=self.model))]

    def _on_step_finish(self, event: Any) -> list[WireEvent]:
        return [
            MessageDeltaEvent(
                delta=MessageDelta(stop_reason=map_stop_reason(event.finish_reason)),
                usage=WireUsage(
                    input_tokens=event.usage.input_tokens,
                    output_tokens=event.usage.output_tokens,
                ),
            )
        ]

    def _on_finish(self, event: Any) -> list[WireEvent]:
        self.block_index = 0
        self.open = False
        return [MessageStopEvent()]

    def _on_text_start(self, event: Any) -> list[WireEvent]:
        return [ContentBlockStartEvent(index=self.block_index, content_block=TextBlock(text=""))]

    def _on_text_delta(self, event: Any) -> list[WireEvent]:
        return [ContentBlockDeltaEvent(index=self.block_index, delta=TextDelta(text=event.text))]

    def _on_tool_input_start(self, event: Any) -> list[WireEvent]:
        block = ToolUseBlock(id=event.id, name=event.tool_name, input={})
        return [ContentBlockStartEvent(index=self.block_index, content_block=block)]

    def _on_tool_input_delta(self, event: Any) -> list[WireEvent]:
        delta = InputJsonDelta(partial_json=event.delta)
        return [ContentBlockDeltaEvent(index=self.block_index, delta=delta)]

    def _on_block_end(self, event: Any) -> list[WireEvent]:
        stop = ContentBlockStopEvent(index=self.block_index)
        self.block_index += 1
        return [stop]

    def _on_tool_call(self, event: Any) -> list[WireEvent]:
        block = ToolUseBlock(id=event.tool_call_id, name=event.tool_name, input=event.input)
        index = self.block_index
        self.block_index += 1
        return [
            ContentBlockStartEvent(index=index, content_block=block),
            ContentBlockStopEvent(index=index),
        ]

    def _on_error(self, event: Any) -> list[WireEvent]:
        remapped = rate_limit_error(self.backend, event.error)
        if remapped is not None:
            logger.warning(
                "Transient %s error; reporting it as a rate limit so the client retries",
                self.backend,
            )
            emitted = remapped
        else:
            emitted = WireError(type="api_error", message=error_message(event.error))
            logger.error("Streaming error from %s: %s", self.backend, emitted.message)
        self.errors.append(
            StreamErrorRecord(original=event.error, emitted=emitted, transformed=remapped is not None)
        )
        return [ErrorEvent(error=emitted)]
