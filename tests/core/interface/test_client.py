"""Tests for ModelClient — unit tests with mocked LiteLLM."""

from types import SimpleNamespace
from typing import Any
from unittest.mock import AsyncMock, MagicMock, patch

import httpx
import openai
import pytest

from msgbridge.core.interface.client import DeltaAssembler, ModelClient, failure_from_exception, map_finish_reason
from msgbridge.core.interface.config import BackendConfig
from msgbridge.core.interface.models import (
    CanonicalMessage,
    ConversationHistory,
    NeutralRequest,
    ToolSpec,
)
from msgbridge.protocols.errors import BackendError


def _make_mock_response(
    content: str | None = "Hello!",
    tool_calls: list[Any] | None = None,
    finish_reason: str = "stop",
) -> MagicMock:
    """Create a mock LiteLLM response object."""
    message = MagicMock()
    message.content = content
    message.tool_calls = tool_calls

    choice = MagicMock()
    choice.message = message
    choice.finish_reason = finish_reason

    usage = MagicMock()
    usage.prompt_tokens = 10
    usage.completion_tokens = 5

    response = MagicMock()
    response.choices = [choice]
    response.usage = usage
    return response


def _chunk(
    content: str | None = None,
    tool_calls: list[Any] | None = None,
    finish_reason: str | None = None,
    usage: Any = None,
) -> SimpleNamespace:
    delta = SimpleNamespace(content=content, tool_calls=tool_calls)
    return SimpleNamespace(
        choices=[SimpleNamespace(delta=delta, finish_reason=finish_reason)],
        usage=usage,
    )


def _tool_delta(index: int, call_id: str | None = None, name: str | None = None, arguments: str = "") -> SimpleNamespace:
    return SimpleNamespace(
        index=index,
        id=call_id,
        function=SimpleNamespace(name=name, arguments=arguments),
    )


def _api_error(message: str, code: str | None = None) -> openai.APIError:
    request = httpx.Request("POST", "https://api.openai.com/v1/chat/completions")
    return openai.APIError(message, request, body={"code": code} if code else None)


class FakeStream:
    """Async iterator over chunks that records whether it was closed."""

    def __init__(self, chunks: list[Any], error: Exception | None = None) -> None:
        self._chunks = iter(chunks)
        self._error = error
        self.closed = False

    def __aiter__(self) -> "FakeStream":
        return self

    async def __anext__(self) -> Any:
        try:
            return next(self._chunks)
        except StopIteration:
            if self._error is not None:
                raise self._error from None
            raise StopAsyncIteration from None

    async def aclose(self) -> None:
        self.closed = True


class TestMapFinishReason:
    @pytest.mark.parametrize(
        ("raw", "expected"),
        [
            ("stop", "stop"),
            ("length", "length"),
            ("tool_calls", "tool-calls"),
            ("function_call", "tool-calls"),
            ("content_filter", "content-filter"),
            ("something_new", "other"),
            (None, "unknown"),
        ],
    )
    def test_mapping(self, raw: str | None, expected: str) -> None:
        assert map_finish_reason(raw) == expected


class TestModelClient:
    @pytest.fixture
    def client(self) -> ModelClient:
        return ModelClient("openai", BackendConfig(api_key="test-key"))

    @pytest.fixture
    def request_(self) -> NeutralRequest:
        return NeutralRequest(
            system="You are helpful.",
            history=ConversationHistory(messages=[CanonicalMessage.user("Hello")]),
            max_tokens=100,
            temperature=0.7,
        )

    @patch("msgbridge.core.interface.client.litellm")
    async def test_complete_text(
        self, mock_litellm: MagicMock, client: ModelClient, request_: NeutralRequest
    ) -> None:
        mock_litellm.acompletion = AsyncMock(return_value=_make_mock_response())

        completion = await client.complete("gpt-4o", request_)

        assert completion.messages[0].role == "assistant"
        assert completion.messages[0].text == "Hello!"
        assert completion.finish_reason == "stop"
        assert completion.usage.input_tokens == 10
        assert completion.usage.output_tokens == 5

    @patch("msgbridge.core.interface.client.litellm")
    async def test_complete_passes_call_kwargs(
        self, mock_litellm: MagicMock, client: ModelClient, request_: NeutralRequest
    ) -> None:
        mock_litellm.acompletion = AsyncMock(return_value=_make_mock_response())

        await client.complete("gpt-4o", request_)

        kwargs = mock_litellm.acompletion.call_args.kwargs
        assert kwargs["model"] == "openai/gpt-4o"
        assert kwargs["api_key"] == "test-key"
        assert kwargs["max_tokens"] == 100
        assert kwargs["temperature"] == 0.7
        assert kwargs["messages"][0] == {"role": "system", "content": "You are helpful."}
        assert "api_base" not in kwargs

    @patch("msgbridge.core.interface.client.litellm")
    async def test_complete_with_api_base_and_tools(self, mock_litellm: MagicMock) -> None:
        client = ModelClient("google", BackendConfig(api_base="http://localhost:8000"))
        mock_litellm.acompletion = AsyncMock(return_value=_make_mock_response())
        request = NeutralRequest(tools=[ToolSpec(name="t", description="t")])

        await client.complete("gemini-2.0-flash", request)

        kwargs = mock_litellm.acompletion.call_args.kwargs
        assert kwargs["model"] == "gemini/gemini-2.0-flash"
        assert kwargs["api_base"] == "http://localhost:8000"
        assert kwargs["tools"][0]["function"]["name"] == "t"

    @patch("msgbridge.core.interface.client.litellm")
    async def test_complete_tool_call(
        self, mock_litellm: MagicMock, client: ModelClient, request_: NeutralRequest
    ) -> None:
        tc_mock = MagicMock()
        tc_mock.id = "call-1"
        tc_mock.function.name = "calculator"
        tc_mock.function.arguments = '{"expression": "2+2"}'
        mock_litellm.acompletion = AsyncMock(
            return_value=_make_mock_response(content=None, tool_calls=[tc_mock], finish_reason="tool_calls")
        )

        completion = await client.complete("gpt-4o", request_)

        message = completion.messages[0]
        assert message.content == []
        assert message.tool_calls is not None
        assert message.tool_calls[0].arguments == {"expression": "2+2"}
        assert completion.finish_reason == "tool-calls"

    @pytest.mark.parametrize(
        ("raw", "expected"),
        [
            ("", {}),
            ("  ", {}),
            ("null", {"raw": "null"}),
            ("[]", {"raw": "[]"}),
            ("{not json", {"raw": "{not json"}),
        ],
    )
    @patch("msgbridge.core.interface.client.litellm")
    async def test_complete_tool_call_odd_arguments(
        self,
        mock_litellm: MagicMock,
        client: ModelClient,
        request_: NeutralRequest,
        raw: str,
        expected: dict[str, Any],
    ) -> None:
        tc_mock = MagicMock()
        tc_mock.id = "call-1"
        tc_mock.function.name = "list_files"
        tc_mock.function.arguments = raw
        mock_litellm.acompletion = AsyncMock(
            return_value=_make_mock_response(content=None, tool_calls=[tc_mock], finish_reason="tool_calls")
        )

        completion = await client.complete("gpt-4o", request_)

        tool_calls = completion.messages[0].tool_calls
        assert tool_calls is not None
        assert tool_calls[0].arguments == expected

    @patch("msgbridge.core.interface.client.litellm")
    async def test_complete_no_choices(
        self, mock_litellm: MagicMock, client: ModelClient, request_: NeutralRequest
    ) -> None:
        response = _make_mock_response()
        response.choices = []
        mock_litellm.acompletion = AsyncMock(return_value=response)

        completion = await client.complete("gpt-4o", request_)

        assert completion.messages == []

    @patch("msgbridge.core.interface.client.litellm")
    async def test_complete_backend_error(
        self, mock_litellm: MagicMock, client: ModelClient, request_: NeutralRequest
    ) -> None:
        mock_litellm.acompletion = AsyncMock(side_effect=_api_error("overloaded", "server_error"))

        with pytest.raises(BackendError) as exc_info:
            await client.complete("gpt-4o", request_)

        assert exc_info.value.failure.message == "overloaded"
        assert exc_info.value.failure.code == "server_error"

    @patch("msgbridge.core.interface.client.litellm")
    async def test_stream_text(
        self, mock_litellm: MagicMock, client: ModelClient, request_: NeutralRequest
    ) -> None:
        stream = FakeStream(
            [
                _chunk(content="Hel"),
                _chunk(content="lo"),
                _chunk(finish_reason="stop"),
                SimpleNamespace(choices=[], usage=SimpleNamespace(prompt_tokens=4, completion_tokens=2)),
            ]
        )
        mock_litellm.acompletion = AsyncMock(return_value=stream)

        events = [e async for e in client.stream("gpt-4o", request_)]

        assert [e.type for e in events] == [
            "start",
            "start-step",
            "text-start",
            "text-delta",
            "text-delta",
            "text-end",
            "finish-step",
            "finish",
        ]
        assert events[-1].finish_reason == "stop"
        assert events[-1].usage.input_tokens == 4
        assert mock_litellm.acompletion.call_args.kwargs["stream"] is True
        assert stream.closed

    @patch("msgbridge.core.interface.client.litellm")
    async def test_stream_tool_calls(
        self, mock_litellm: MagicMock, client: ModelClient, request_: NeutralRequest
    ) -> None:
        stream = FakeStream(
            [
                _chunk(content="Checking."),
                _chunk(tool_calls=[_tool_delta(0, "call_a", "read_file", '{"path":')]),
                _chunk(tool_calls=[_tool_delta(0, arguments='"a"}')]),
                _chunk(tool_calls=[_tool_delta(1, "call_b", "list_dir", "{}")]),
                _chunk(finish_reason="tool_calls"),
            ]
        )
        mock_litellm.acompletion = AsyncMock(return_value=stream)

        events = [e async for e in client.stream("gpt-4o", request_)]

        assert [e.type for e in events[2:]] == [
            "text-start",
            "text-delta",
            "text-end",
            "tool-input-start",
            "tool-input-delta",
            "tool-input-delta",
            "tool-input-end",
            "tool-input-start",
            "tool-input-delta",
            "tool-input-end",
            "finish-step",
            "finish",
        ]
        assert events[5].id == "call_a"
        assert events[5].tool_name == "read_file"
        assert events[-1].finish_reason == "tool-calls"

    @patch("msgbridge.core.interface.client.litellm")
    async def test_stream_error_becomes_event(
        self, mock_litellm: MagicMock, client: ModelClient, request_: NeutralRequest
    ) -> None:
        stream = FakeStream([_chunk(content="Hi")], error=_api_error("upstream broke", "server_error"))
        mock_litellm.acompletion = AsyncMock(return_value=stream)

        events = [e async for e in client.stream("gpt-4o", request_)]

        assert events[-1].type == "error"
        assert events[-1].error.code == "server_error"
        assert "finish" not in [e.type for e in events]
        assert stream.closed

    @patch("msgbridge.core.interface.client.litellm")
    async def test_stream_closed_early_closes_backend(
        self, mock_litellm: MagicMock, client: ModelClient, request_: NeutralRequest
    ) -> None:
        stream = FakeStream([_chunk(content="a"), _chunk(content="b")])
        mock_litellm.acompletion = AsyncMock(return_value=stream)

        events = client.stream("gpt-4o", request_)
        async for event in events:
            if event.type == "text-delta":
                break
        await events.aclose()

        assert stream.closed


class TestDeltaAssembler:
    def test_missing_tool_id_generated(self) -> None:
        assembler = DeltaAssembler()
        events = assembler.feed(_chunk(tool_calls=[_tool_delta(0, None, "t")]))
        assert events[0].type == "tool-input-start"
        assert events[0].id.startswith("call_")

    def test_late_fragment_dropped(self) -> None:
        assembler = DeltaAssembler()
        assembler.feed(_chunk(tool_calls=[_tool_delta(0, "a", "t")]))
        assembler.feed(_chunk(tool_calls=[_tool_delta(1, "b", "t")]))
        events = assembler.feed(_chunk(tool_calls=[_tool_delta(0, arguments="{}")]))
        assert events == []

    def test_close_is_noop_when_nothing_open(self) -> None:
        assert DeltaAssembler().close() == []


class TestFailureFromException:
    def test_reads_code_from_body(self) -> None:
        failure = failure_from_exception(_api_error("nope", "invalid_api_key"))
        assert failure.message == "nope"
        assert failure.code == "invalid_api_key"

    def test_without_code(self) -> None:
        assert failure_from_exception(_api_error("nope")).code is None
