"""Neutral message representation shared by every backend.

Wire requests are translated into these models before a backend sees them,
and backend results are translated back from them. Nothing here knows about
the messages API or any provider payload.
"""

from typing import Any, Literal
from uuid import uuid4

from pydantic import BaseModel, Field

Role = Literal["user", "assistant", "tool"]
FinishReason = Literal["stop", "length", "tool-calls", "content-filter", "error", "other", "unknown"]


# -- content ----------------------------------------------------------------


class TextContent(BaseModel):
    type: Literal["text"] = "text"
    text: str


class ImageContent(BaseModel):
    """An image, either by ``url`` or as base64 ``data`` with its ``media_type``."""

    type: Literal["image"] = "image"
    url: str | None = None
    data: str | None = None
    media_type: str | None = None


ContentPart = TextContent | ImageContent


def _text_parts(text: str) -> list[ContentPart]:
    return [TextContent(text=text)] if text else []


# -- tools ------------------------------------------------------------------


class ToolCall(BaseModel):
    """One tool invocation requested by the assistant."""

    id: str = Field(default_factory=lambda: f"call_{uuid4().hex[:12]}")
    name: str
    arguments: dict[str, Any] = {}


class ToolResult(BaseModel):
    """Output of a tool, keyed by the id of the call that produced it."""

    tool_call_id: str
    content: list[ContentPart] = []
    is_error: bool = False

    @classmethod
    def from_text(cls, tool_call_id: str, text: str, *, is_error: bool = False) -> "ToolResult":
        return cls(tool_call_id=tool_call_id, content=[TextContent(text=text)], is_error=is_error)


class ToolSpec(BaseModel):
    """A tool declaration as handed to a backend."""

    name: str
    description: str = ""
    parameters: dict[str, Any] = {}


# -- messages ---------------------------------------------------------------


class CanonicalMessage(BaseModel):
    """A single turn of the neutral conversation.

    Assistant turns may carry ``tool_calls``; ``tool`` turns answer exactly
    one of them through ``tool_call_id``. System text lives on
    :class:`NeutralRequest` rather than in the history.
    """

    role: Role
    content: list[ContentPart] = []
    tool_calls: list[ToolCall] | None = None
    tool_call_id: str | None = None
    is_error: bool = False

    @property
    def text(self) -> str:
        """All text parts joined, images skipped."""
        return "".join(p.text for p in self.content if isinstance(p, TextContent))

    @classmethod
    def user(cls, text: str) -> "CanonicalMessage":
        return cls(role="user", content=[TextContent(text=text)])

    @classmethod
    def assistant(cls, text: str = "", tool_calls: list[ToolCall] | None = None) -> "CanonicalMessage":
        return cls(role="assistant", content=_text_parts(text), tool_calls=tool_calls)

    @classmethod
    def tool(cls, result: ToolResult) -> "CanonicalMessage":
        return cls(
            role="tool",
            content=list(result.content),
            tool_call_id=result.tool_call_id,
            is_error=result.is_error,
        )


class ConversationHistory(BaseModel):
    """Ordered turns of a conversation; iterable and sized."""

    messages: list[CanonicalMessage] = []

    def append(self, message: CanonicalMessage) -> None:
        self.messages.append(message)

    def __len__(self) -> int:
        return len(self.messages)

    def __iter__(self):  # type: ignore[override]
        yield from self.messages


# -- requests and results ---------------------------------------------------


class Usage(BaseModel):
    """Token usage counters reported by a backend."""

    input_tokens: int = 0
    output_tokens: int = 0


class NeutralRequest(BaseModel):
    """Everything a backend needs to produce a completion."""

    system: str | None = None
    history: ConversationHistory = Field(default_factory=ConversationHistory)
    tools: list[ToolSpec] = []
    max_tokens: int | None = None
    temperature: float | None = None


class Completion(BaseModel):
    """The outcome of a non-streaming backend call."""

    messages: list[CanonicalMessage] = []
    finish_reason: FinishReason = "unknown"
    usage: Usage = Field(default_factory=Usage)


class BackendFailure(BaseModel):
    """A backend-reported failure reduced to the fields callers may see."""

    message: str
    code: str | None = None
    type: str | None = None
    status_code: int | None = None
