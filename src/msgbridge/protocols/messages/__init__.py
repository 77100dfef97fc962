"""Messages API wire format — request, response and stream event models."""

from msgbridge.protocols.messages.models import (
    ContentBlock,
    ErrorEvent,
    ErrorResponse,
    MessagesRequest,
    MessagesResponse,
    ToolDeclaration,
    WireError,
    WireEvent,
    WireMessage,
    WireUsage,
)
from msgbridge.protocols.messages.sse import SSE_MEDIA_TYPE, encode_event

__all__ = [
    "SSE_MEDIA_TYPE",
    "ContentBlock",
    "ErrorEvent",
    "ErrorResponse",
    "MessagesRequest",
    "MessagesResponse",
    "ToolDeclaration",
    "WireError",
    "WireEvent",
    "WireMessage",
    "WireUsage",
    "encode_event",
]
