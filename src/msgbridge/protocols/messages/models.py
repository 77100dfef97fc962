"""Pydantic models for the messages API wire format.

Covers the inbound request body, the single-response body and the
server-sent events of a streamed response. Unknown request fields are
ignored so newer clients keep working.
"""

from __future__ import annotations

from typing import Annotated, Any, Literal
from uuid import uuid4

from pydantic import BaseModel, Field

# ---------------------------------------------------------------------------
# Content blocks
# ---------------------------------------------------------------------------


class TextBlock(BaseModel):
    """Plain text content block."""

    type: Literal["text"] = "text"
    text: str


class ImageSource(BaseModel):
    """Inline base64 or URL image source."""

    type: Literal["base64", "url"] = "base64"
    media_type: str | None = None
    data: str | None = None
    url: str | None = None


class ImageBlock(BaseModel):
    """Image content block."""

    type: Literal["image"] = "image"
    source: ImageSource


class ToolUseBlock(BaseModel):
    """A tool invocation issued by the assistant."""

    type: Literal["tool_use"] = "tool_use"
    id: str
    name: str
    input: dict[str, Any] = Field(default_factory=dict)


class ToolResultBlock(BaseModel):
    """A user-role record carrying the output of a tool invocation."""

    type: Literal["tool_result"] = "tool_result"
    tool_use_id: str
    content: str | list[TextBlock | ImageBlock] = ""
    is_error: bool | None = None


ContentBlock = Annotated[
    TextBlock | ImageBlock | ToolUseBlock | ToolResultBlock,
    Field(discriminator="type"),
]


# ---------------------------------------------------------------------------
# Request
# ---------------------------------------------------------------------------


class WireMessage(BaseModel):
    """One message of the conversation as sent by the client."""

    role: Literal["user", "assistant"]
    content: str | list[ContentBlock]


class SystemBlock(BaseModel):
    """One fragment of a structured system prompt."""

    type: Literal["text"] = "text"
    text: str


class ToolDeclaration(BaseModel):
    """A tool the client makes available to the model."""

    name: str
    description: str | None = None
    input_schema: dict[str, Any] = Field(default_factory=dict)


class MessagesRequest(BaseModel):
    """Body of ``POST /v1/messages``."""

    model: str
    system: str | list[SystemBlock] | None = None
    messages: list[WireMessage]
    tools: list[ToolDeclaration] | None = None
    max_tokens: int | None = None
    temperature: float | None = None
    stream: bool = False


# ---------------------------------------------------------------------------
# Response
# ---------------------------------------------------------------------------


class WireUsage(BaseModel):
    """Token usage counters."""

    input_tokens: int = 0
    output_tokens: int = 0


def new_message_id() -> str:
    """Return a fresh message identifier."""
    return f"msg_{uuid4().hex[:24]}"


class MessagesResponse(BaseModel):
    """A complete assistant message, also used as the ``message_start`` payload."""

    id: str = Field(default_factory=new_message_id)
    type: Literal["message"] = "message"
    role: Literal["assistant"] = "assistant"
    content: list[TextBlock | ToolUseBlock] = []
    model: str
    stop_reason: str | None = None
    stop_sequence: str | None = None
    usage: WireUsage = Field(default_factory=WireUsage)


class WireError(BaseModel):
    """The ``error`` object of error responses and error stream events."""

    type: str = "api_error"
    message: str
    code: str | None = None
    param: str | None = None


class ErrorResponse(BaseModel):
    """Top-level error body returned with non-2xx statuses."""

    type: Literal["error"] = "error"
    error: WireError


# ---------------------------------------------------------------------------
# Stream events
# ---------------------------------------------------------------------------


class TextDelta(BaseModel):
    type: Literal["text_delta"] = "text_delta"
    text: str


class InputJsonDelta(BaseModel):
    type: Literal["input_json_delta"] = "input_json_delta"
    partial_json: str


class MessageDelta(BaseModel):
    stop_reason: str | None = None
    stop_sequence: str | None = None


class MessageStartEvent(BaseModel):
    type: Literal["message_start"] = "message_start"
    message: MessagesResponse


class ContentBlockStartEvent(BaseModel):
    type: Literal["content_block_start"] = "content_block_start"
    index: int
    content_block: TextBlock | ToolUseBlock


class ContentBlockDeltaEvent(BaseModel):
    type: Literal["content_block_delta"] = "content_block_delta"
    index: int
    delta: TextDelta | InputJsonDelta


class ContentBlockStopEvent(BaseModel):
    type: Literal["content_block_stop"] = "content_block_stop"
    index: int


class MessageDeltaEvent(BaseModel):
    type: Literal["message_delta"] = "message_delta"
    delta: MessageDelta
    usage: WireUsage


class MessageStopEvent(BaseModel):
    type: Literal["message_stop"] = "message_stop"


class ErrorEvent(BaseModel):
    type: Literal["error"] = "error"
    error: WireError


WireEvent = (
    MessageStartEvent
    | ContentBlockStartEvent
    | ContentBlockDeltaEvent
    | ContentBlockStopEvent
    | MessageDeltaEvent
    | MessageStopEvent
    | ErrorEvent
)
