"""ModelClient — LiteLLM-backed implementation of the backend contract.

Wraps LiteLLM behind a neutral interface so the rest of the system only
ever works with :class:`NeutralRequest`, :class:`Completion` and generation
events.
"""

import json
import logging
from collections.abc import AsyncIterator
from typing import Any
from uuid import uuid4

import litellm
import openai

from msgbridge.core.interface.config import BackendConfig
from msgbridge.core.interface.events import (
    ErrorEvent,
    FinishEvent,
    GenerationEvent,
    StartEvent,
    StepFinishEvent,
    StepStartEvent,
    TextDeltaEvent,
    TextEndEvent,
    TextStartEvent,
    ToolInputDeltaEvent,
    ToolInputEndEvent,
    ToolInputStartEvent,
)
from msgbridge.core.interface.models import (
    BackendFailure,
    CanonicalMessage,
    Completion,
    ContentPart,
    FinishReason,
    NeutralRequest,
    TextContent,
    ToolCall,
    Usage,
)
from msgbridge.core.interface.transpilers.openai import OpenAITranspiler
from msgbridge.protocols.errors import BackendError
from msgbridge.utils.telemetry import (
    ATTR_BACKEND,
    ATTR_BACKEND_MODEL,
    ATTR_EVENT_COUNT,
    ATTR_FINISH_REASON,
    ATTR_TOKENS_INPUT,
    ATTR_TOKENS_OUTPUT,
    get_tracer,
)

logger = logging.getLogger(__name__)

_tracer = get_tracer(__name__)

_FINISH_REASONS: dict[str, FinishReason] = {
    "stop": "stop",
    "length": "length",
    "tool_calls": "tool-calls",
    "function_call": "tool-calls",
    "content_filter": "content-filter",
}


def map_finish_reason(reason: str | None) -> FinishReason:
    """Map an OpenAI-style finish reason to the neutral set."""
    if reason is None:
        return "unknown"
    return _FINISH_REASONS.get(reason, "other")


class ModelClient:
    """Async client for one configured backend.

    Usage::

        client = ModelClient("openai", BackendConfig(api_key="sk-..."))
        completion = await client.complete("gpt-4o", request)
        async for event in client.stream("gpt-4o", request):
            ...
    """

    def __init__(self, name: str, config: BackendConfig) -> None:
        self.name = name
        self.config = config
        self.transpiler = OpenAITranspiler()

    async def complete(self, model_id: str, request: NeutralRequest) -> Completion:
        """Run a non-streaming completion and return it in neutral form."""
        call_kwargs = self._call_kwargs(model_id, request)
        with _tracer.start_as_current_span("model.complete") as span:
            span.set_attributes({ATTR_BACKEND: self.name, ATTR_BACKEND_MODEL: call_kwargs["model"]})
            try:
                response = await litellm.acompletion(**call_kwargs)  # pyright: ignore[reportUnknownMemberType]
            except openai.APIError as exc:
                raise BackendError(failure_from_exception(exc)) from exc

            completion = self._parse_response(response)
            span.set_attributes(
                {
                    ATTR_FINISH_REASON: completion.finish_reason,
                    ATTR_TOKENS_INPUT: completion.usage.input_tokens,
                    ATTR_TOKENS_OUTPUT: completion.usage.output_tokens,
                }
            )
            return completion

    async def stream(self, model_id: str, request: NeutralRequest) -> AsyncIterator[GenerationEvent]:
        """Stream generation events for *request*.

        Emits ``start`` and ``start-step`` up front, content events as
        deltas arrive, then ``finish-step`` and ``finish``. A backend failure
        ends the stream with a single ``error`` event instead.
        """
        call_kwargs = self._call_kwargs(model_id, request)
        call_kwargs["stream"] = True
        call_kwargs["stream_options"] = {"include_usage": True}

        # Not a current span: the generator may be resumed from other contexts.
        span = _tracer.start_span(
            "model.stream",
            attributes={ATTR_BACKEND: self.name, ATTR_BACKEND_MODEL: call_kwargs["model"]},
        )
        assembler = DeltaAssembler()
        try:
            yield StartEvent()
            yield StepStartEvent()

            response: Any = None
            try:
                response = await litellm.acompletion(**call_kwargs)  # pyright: ignore[reportUnknownMemberType]
                async for chunk in response:
                    for event in assembler.feed(chunk):
                        yield event
            except openai.APIError as exc:
                logger.debug("Backend %s failed mid-stream", self.name, exc_info=True)
                yield ErrorEvent(error=failure_from_exception(exc))
                return
            finally:
                close = getattr(response, "aclose", None)
                if close is not None:
                    await close()

            for event in assembler.close():
                yield event

            span.set_attribute(ATTR_FINISH_REASON, assembler.finish_reason)
            yield StepFinishEvent(finish_reason=assembler.finish_reason, usage=assembler.usage)
            yield FinishEvent(finish_reason=assembler.finish_reason, usage=assembler.usage)
        finally:
            span.set_attribute(ATTR_EVENT_COUNT, assembler.event_count)
            span.end()

    def _call_kwargs(self, model_id: str, request: NeutralRequest) -> dict[str, Any]:
        """Build LiteLLM call parameters."""
        payload = self.transpiler.to_provider(request)
        call_kwargs: dict[str, Any] = {
            "model": self.config.litellm_model(self.name, model_id),
            **payload,
            **self.config.extra,
        }
        if request.max_tokens is not None:
            call_kwargs["max_tokens"] = request.max_tokens
        if request.temperature is not None:
            call_kwargs["temperature"] = request.temperature
        if self.config.api_key:
            call_kwargs["api_key"] = self.config.api_key
        if self.config.api_base:
            call_kwargs["api_base"] = self.config.api_base
        return call_kwargs

    def _parse_response(self, response: Any) -> Completion:
        """Convert a LiteLLM response to a Completion.

        LiteLLM returns OpenAI-compatible response objects regardless of
        the underlying provider.
        """
        usage = _parse_usage(getattr(response, "usage", None))
        if not response.choices:
            return Completion(usage=usage)

        choice = response.choices[0]
        message = choice.message

        content: list[ContentPart] = []
        if message.content:
            content = [TextContent(text=message.content)]

        tool_calls: list[ToolCall] | None = None
        if message.tool_calls:
            tool_calls = [
                ToolCall(
                    id=tc.id,
                    name=tc.function.name,
                    arguments=_parse_arguments(tc.function.arguments),
                )
                for tc in message.tool_calls
            ]

        return Completion(
            messages=[CanonicalMessage(role="assistant", content=content, tool_calls=tool_calls)],
            finish_reason=map_finish_reason(choice.finish_reason),
            usage=usage,
        )


class DeltaAssembler:
    """Turns OpenAI-style streaming chunks into ordered generation events.

    Exactly one content unit is open at a time: text arriving while a tool
    call is open closes the call first, and a new tool call index closes
    whatever was open before it.
    """

    def __init__(self) -> None:
        self.finish_reason: FinishReason = "unknown"
        self.usage = Usage()
        self.event_count = 0
        self._text_open = False
        self._tool_ids: dict[int, str] = {}
        self._open_tool: int | None = None

    def feed(self, chunk: Any) -> list[GenerationEvent]:
        """Consume one chunk and return the events it produces."""
        events: list[GenerationEvent] = []

        usage = getattr(chunk, "usage", None)
        if usage:
            self.usage = _parse_usage(usage)

        choices = getattr(chunk, "choices", None) or []
        if not choices:
            return events
        choice = choices[0]
        delta = choice.delta

        text = getattr(delta, "content", None)
        if text:
            events.extend(self._close_tool())
            if not self._text_open:
                self._text_open = True
                events.append(TextStartEvent())
            events.append(TextDeltaEvent(text=text))

        for tool_delta in getattr(delta, "tool_calls", None) or []:
            events.extend(self._feed_tool_call(tool_delta))

        if choice.finish_reason:
            self.finish_reason = map_finish_reason(choice.finish_reason)

        self.event_count += len(events)
        return events

    def close(self) -> list[GenerationEvent]:
        """Close whichever content unit is still open."""
        events = self._close_text() + self._close_tool()
        self.event_count += len(events)
        return events

    def _feed_tool_call(self, tool_delta: Any) -> list[GenerationEvent]:
        events: list[GenerationEvent] = []
        index = tool_delta.index or 0
        function = tool_delta.function

        if index not in self._tool_ids:
            events.extend(self._close_text())
            events.extend(self._close_tool())
            call_id = tool_delta.id or f"call_{uuid4().hex[:24]}"
            self._tool_ids[index] = call_id
            self._open_tool = index
            events.append(ToolInputStartEvent(id=call_id, tool_name=function.name or ""))

        arguments = getattr(function, "arguments", None)
        if arguments:
            if index == self._open_tool:
                events.append(ToolInputDeltaEvent(id=self._tool_ids[index], delta=arguments))
            else:
                logger.warning(
                    "Dropping late argument fragment for closed tool call %s",
                    self._tool_ids[index],
                )
        return events

    def _close_text(self) -> list[GenerationEvent]:
        if not self._text_open:
            return []
        self._text_open = False
        return [TextEndEvent()]

    def _close_tool(self) -> list[GenerationEvent]:
        if self._open_tool is None:
            return []
        call_id = self._tool_ids[self._open_tool]
        self._open_tool = None
        return [ToolInputEndEvent(id=call_id)]


def failure_from_exception(exc: openai.APIError) -> BackendFailure:
    """Reduce a LiteLLM/OpenAI exception to the fields callers may see."""
    code: Any = getattr(exc, "code", None)
    body = getattr(exc, "body", None)
    if code is None and isinstance(body, dict):
        nested = body.get("error")
        code = nested.get("code") if isinstance(nested, dict) else body.get("code")
    return BackendFailure(
        message=getattr(exc, "message", None) or str(exc),
        code=str(code) if code is not None else None,
        type=getattr(exc, "type", None),
        status_code=getattr(exc, "status_code", None),
    )


def _parse_usage(usage: Any) -> Usage:
    if not usage:
        return Usage()
    return Usage(
        input_tokens=getattr(usage, "prompt_tokens", None) or 0,
        output_tokens=getattr(usage, "completion_tokens", None) or 0,
    )


def _parse_arguments(raw: str | None) -> dict[str, Any]:
    """Decode tool call arguments into an object.

    Zero-argument calls arrive as an empty string. Anything that does not
    decode to a JSON object is kept under ``"raw"``.
    """
    if raw is None or not raw.strip():
        return {}
    try:
        parsed = json.loads(raw)
    except json.JSONDecodeError:
        return {"raw": raw}
    if not isinstance(parsed, dict):
        return {"raw": raw}
    return parsed
