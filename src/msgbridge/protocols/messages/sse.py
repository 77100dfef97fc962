"""Server-sent-event framing for streamed messages responses."""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from msgbridge.protocols.messages.models import WireEvent

SSE_MEDIA_TYPE = "text/event-stream"


def encode_event(event: WireEvent) -> str:
    """Render one wire event as an ``event:``/``data:`` frame."""
    return f"event: {event.type}\ndata: {event.model_dump_json()}\n\n"
