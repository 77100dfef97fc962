"""Generation events — the neutral streaming unit produced by a backend.

A backend emits one ordered sequence of these per request. Content units
(a text run or one tool invocation) open, receive deltas and close before
the next unit opens, which is what lets the stream translator assign block
indexes without lookahead.
"""

from typing import Annotated, Any, Literal

from pydantic import BaseModel, Field

from msgbridge.core.interface.models import FinishReason, Usage

# ---------------------------------------------------------------------------
# Message framing
# ---------------------------------------------------------------------------


class StartEvent(BaseModel):
    """Start-of-connection marker."""

    type: Literal["start"] = "start"


class StepStartEvent(BaseModel):
    type: Literal["start-step"] = "start-step"


class StepFinishEvent(BaseModel):
    type: Literal["finish-step"] = "finish-step"
    finish_reason: FinishReason = "unknown"
    usage: Usage = Field(default_factory=Usage)


class FinishEvent(BaseModel):
    type: Literal["finish"] = "finish"
    finish_reason: FinishReason = "unknown"
    usage: Usage = Field(default_factory=Usage)


# ---------------------------------------------------------------------------
# Text
# ---------------------------------------------------------------------------


class TextStartEvent(BaseModel):
    type: Literal["text-start"] = "text-start"
    id: str = "0"


class TextDeltaEvent(BaseModel):
    type: Literal["text-delta"] = "text-delta"
    id: str = "0"
    text: str


class TextEndEvent(BaseModel):
    type: Literal["text-end"] = "text-end"
    id: str = "0"


# ---------------------------------------------------------------------------
# Tool calls
# ---------------------------------------------------------------------------


class ToolInputStartEvent(BaseModel):
    """Opens a streamed tool invocation; ``id`` is the tool call id."""

    type: Literal["tool-input-start"] = "tool-input-start"
    id: str
    tool_name: str


class ToolInputDeltaEvent(BaseModel):
    """A fragment of the JSON-encoded tool input."""

    type: Literal["tool-input-delta"] = "tool-input-delta"
    id: str
    delta: str


class ToolInputEndEvent(BaseModel):
    type: Literal["tool-input-end"] = "tool-input-end"
    id: str


class ToolCallEvent(BaseModel):
    """A complete tool invocation from a backend that does not stream fragments."""

    type: Literal["tool-call"] = "tool-call"
    tool_call_id: str
    tool_name: str
    input: dict[str, Any] = {}


# ---------------------------------------------------------------------------
# Errors and bookkeeping
# ---------------------------------------------------------------------------


class ErrorEvent(BaseModel):
    """A backend failure reported in-band.

    ``error`` is a :class:`~msgbridge.core.interface.models.BackendFailure`,
    a mapping in the backend's native error shape, an exception or text.
    """

    type: Literal["error"] = "error"
    error: Any


class AbortEvent(BaseModel):
    type: Literal["abort"] = "abort"


class RawEvent(BaseModel):
    type: Literal["raw"] = "raw"
    raw_value: Any = None


class SourceEvent(BaseModel):
    type: Literal["source"] = "source"
    url: str | None = None
    title: str | None = None


class FileEvent(BaseModel):
    type: Literal["file"] = "file"
    media_type: str | None = None
    data: str | None = None


class ReasoningStartEvent(BaseModel):
    type: Literal["reasoning-start"] = "reasoning-start"
    id: str = "0"


class ReasoningDeltaEvent(BaseModel):
    type: Literal["reasoning-delta"] = "reasoning-delta"
    id: str = "0"
    text: str


class ReasoningEndEvent(BaseModel):
    type: Literal["reasoning-end"] = "reasoning-end"
    id: str = "0"


GenerationEvent = Annotated[
    StartEvent
    | StepStartEvent
    | StepFinishEvent
    | FinishEvent
    | TextStartEvent
    | TextDeltaEvent
    | TextEndEvent
    | ToolInputStartEvent
    | ToolInputDeltaEvent
    | ToolInputEndEvent
    | ToolCallEvent
    | ErrorEvent
    | AbortEvent
    | RawEvent
    | SourceEvent
    | FileEvent
    | ReasoningStartEvent
    | ReasoningDeltaEvent
    | ReasoningEndEvent,
    Field(discriminator="type"),
]
