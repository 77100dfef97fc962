"""Tests for messages API wire models and SSE framing."""

from __future__ import annotations

import json

import pytest
from pydantic import ValidationError

from msgbridge.protocols.messages import (
    SSE_MEDIA_TYPE,
    ErrorEvent,
    ErrorResponse,
    MessagesRequest,
    MessagesResponse,
    WireError,
    encode_event,
)
from msgbridge.protocols.messages.models import (
    ContentBlockDeltaEvent,
    TextBlock,
    TextDelta,
    ToolResultBlock,
    ToolUseBlock,
)


class TestMessagesRequest:
    def test_minimal(self) -> None:
        request = MessagesRequest.model_validate(
            {"model": "openai/gpt-4o", "messages": [{"role": "user", "content": "hi"}]}
        )
        assert request.stream is False
        assert request.tools is None

    def test_blocks_discriminated(self) -> None:
        request = MessagesRequest.model_validate(
            {
                "model": "m",
                "messages": [
                    {
                        "role": "assistant",
                        "content": [
                            {"type": "text", "text": "a"},
                            {"type": "tool_use", "id": "c", "name": "t", "input": {"k": 1}},
                        ],
                    },
                    {
                        "role": "user",
                        "content": [{"type": "tool_result", "tool_use_id": "c", "content": "r"}],
                    },
                ],
            }
        )
        assistant, user = request.messages
        assert isinstance(assistant.content[0], TextBlock)
        assert isinstance(assistant.content[1], ToolUseBlock)
        assert isinstance(user.content[0], ToolResultBlock)

    def test_missing_messages_rejected(self) -> None:
        with pytest.raises(ValidationError):
            MessagesRequest.model_validate({"model": "m"})

    def test_unknown_block_type_rejected(self) -> None:
        with pytest.raises(ValidationError):
            MessagesRequest.model_validate(
                {"model": "m", "messages": [{"role": "user", "content": [{"type": "video"}]}]}
            )


class TestMessagesResponse:
    def test_defaults(self) -> None:
        response = MessagesResponse(model="m")
        data = response.model_dump(mode="json")
        assert data["type"] == "message"
        assert data["role"] == "assistant"
        assert data["content"] == []
        assert data["stop_sequence"] is None
        assert data["usage"] == {"input_tokens": 0, "output_tokens": 0}

    def test_ids_unique(self) -> None:
        assert MessagesResponse(model="m").id != MessagesResponse(model="m").id


class TestErrorResponse:
    def test_shape(self) -> None:
        body = ErrorResponse(error=WireError(type="invalid_request_error", message="bad"))
        assert body.model_dump(exclude_none=True) == {
            "type": "error",
            "error": {"type": "invalid_request_error", "message": "bad"},
        }


class TestEncodeEvent:
    def test_frame_format(self) -> None:
        frame = encode_event(ContentBlockDeltaEvent(index=2, delta=TextDelta(text="hi")))
        assert frame.startswith("event: content_block_delta\ndata: ")
        assert frame.endswith("\n\n")
        payload = json.loads(frame.split("data: ", 1)[1])
        assert payload == {
            "type": "content_block_delta",
            "index": 2,
            "delta": {"type": "text_delta", "text": "hi"},
        }

    def test_error_frame(self) -> None:
        frame = encode_event(ErrorEvent(error=WireError(type="rate_limit_error", message="slow down")))
        assert frame.startswith("event: error\n")
        assert '"rate_limit_error"' in frame

    def test_media_type(self) -> None:
        assert SSE_MEDIA_TYPE == "text/event-stream"
