"""Neutral model interface, backend client and format translation."""

from msgbridge.core.interface.backend import BackendClient
from msgbridge.core.interface.client import ModelClient
from msgbridge.core.interface.config import BackendConfig
from msgbridge.core.interface.history import HistoryNormalizer, normalize_history
from msgbridge.core.interface.models import (
    BackendFailure,
    CanonicalMessage,
    Completion,
    ContentPart,
    ConversationHistory,
    ImageContent,
    NeutralRequest,
    TextContent,
    ToolCall,
    ToolResult,
    ToolSpec,
    Usage,
)
from msgbridge.core.interface.schema import adapt_schema
from msgbridge.core.interface.stream import StreamTranslator

__all__ = [
    "BackendClient",
    "BackendConfig",
    "BackendFailure",
    "CanonicalMessage",
    "Completion",
    "ContentPart",
    "ConversationHistory",
    "HistoryNormalizer",
    "ImageContent",
    "ModelClient",
    "NeutralRequest",
    "StreamTranslator",
    "TextContent",
    "ToolCall",
    "ToolResult",
    "ToolSpec",
    "Usage",
    "adapt_schema",
    "normalize_history",
]
