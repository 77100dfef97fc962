"""Outbound transpiler: neutral request to chat completion payload.

LiteLLM accepts OpenAI-style messages for every provider and does the
provider-specific adaptation itself, so this is the only outbound format.
"""

import json
from typing import Any

from msgbridge.core.interface.models import (
    CanonicalMessage,
    ContentPart,
    NeutralRequest,
    TextContent,
    ToolCall,
    ToolSpec,
)


class OpenAITranspiler:
    """Renders :class:`NeutralRequest` for ``litellm.acompletion``."""

    def to_provider(self, request: NeutralRequest) -> dict[str, Any]:
        """Return ``{"messages": [...], "tools": [...]}`` for *request*.

        The system prompt becomes a leading system message; ``tools`` is
        omitted when the request declares none.
        """
        messages: list[dict[str, Any]] = []
        if request.system:
            messages.append({"role": "system", "content": request.system})
        messages.extend(_render_message(msg) for msg in request.history)

        payload: dict[str, Any] = {"messages": messages}
        if request.tools:
            payload["tools"] = [_render_tool(tool) for tool in request.tools]
        return payload


def _render_message(msg: CanonicalMessage) -> dict[str, Any]:
    if msg.role == "tool":
        return {"role": "tool", "tool_call_id": msg.tool_call_id, "content": msg.text}

    rendered: dict[str, Any] = {"role": msg.role, "content": _render_content(msg.content)}
    if msg.tool_calls:
        rendered["tool_calls"] = [_render_call(call) for call in msg.tool_calls]
    return rendered


def _render_content(parts: list[ContentPart]) -> str | list[dict[str, Any]] | None:
    # A lone text part collapses to a plain string.
    if not parts:
        return None
    if len(parts) == 1 and isinstance(parts[0], TextContent):
        return parts[0].text
    return [_render_part(part) for part in parts]


def _render_part(part: ContentPart) -> dict[str, Any]:
    if isinstance(part, TextContent):
        return {"type": "text", "text": part.text}
    url = f"data:{part.media_type};base64,{part.data}" if part.data and part.media_type else part.url
    return {"type": "image_url", "image_url": {"url": url}}


def _render_call(call: ToolCall) -> dict[str, Any]:
    return {
        "id": call.id,
        "type": "function",
        "function": {"name": call.name, "arguments": json.dumps(call.arguments)},
    }


def _render_tool(tool: ToolSpec) -> dict[str, Any]:
    return {
        "type": "function",
        "function": {
            "name": tool.name,
            "description": tool.description,
            "parameters": tool.parameters,
        },
    }
