"""Messages API transpiler — wire requests in, wire responses out.

Key differences from the neutral format:
- The system prompt is a top-level list of text fragments.
- Tool results are ``tool_result`` blocks inside user messages; the neutral
  format gives each one its own tool-role message.
- Tool calls are ``tool_use`` blocks interleaved with assistant text.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from msgbridge.core.interface.history import HistoryNormalizer
from msgbridge.core.interface.models import (
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
)
from msgbridge.core.interface.schema import adapt_schema
from msgbridge.core.interface.stream import map_stop_reason
from msgbridge.protocols.errors import MissingResultError
from msgbridge.protocols.messages.models import (
    ImageBlock,
    MessagesResponse,
    TextBlock,
    ToolResultBlock,
    ToolUseBlock,
    WireUsage,
)

if TYPE_CHECKING:
    from msgbridge.protocols.messages.models import (
        MessagesRequest,
        SystemBlock,
        ToolDeclaration,
        WireMessage,
    )


class MessagesTranspiler:
    """Converts between the messages API and the neutral format."""

    def __init__(self, *, verbose: bool = False) -> None:
        self.normalizer = HistoryNormalizer(verbose=verbose)

    def to_neutral(self, request: MessagesRequest, backend: str) -> NeutralRequest:
        """Convert a wire request into a :class:`NeutralRequest` for *backend*.

        The message history is de-duplicated first, so this raises
        :class:`~msgbridge.protocols.errors.StructuralDefectError` when the
        conversation cannot be repaired.
        """
        messages = self.normalizer.normalize(request.messages)

        history = ConversationHistory()
        for msg in messages:
            for converted in self._message_to_neutral(msg):
                history.append(converted)

        return NeutralRequest(
            system=_join_system(request.system),
            history=history,
            tools=[_tool_to_neutral(tool, backend) for tool in request.tools or []],
            max_tokens=request.max_tokens,
            temperature=request.temperature,
        )

    def from_neutral(self, completion: Completion, model: str) -> MessagesResponse:
        """Convert a neutral completion into a single wire response.

        *model* is the identifier the client asked for and is echoed back
        verbatim.
        """
        if not completion.messages:
            raise MissingResultError("backend returned no messages")
        message = completion.messages[0]

        content: list[TextBlock | ToolUseBlock] = [
            TextBlock(text=part.text) for part in message.content if isinstance(part, TextContent)
        ]
        for tc in message.tool_calls or []:
            content.append(ToolUseBlock(id=tc.id, name=tc.name, input=tc.arguments))

        return MessagesResponse(
            content=content,
            model=model,
            stop_reason=map_stop_reason(completion.finish_reason),
            stop_sequence=None,
            usage=WireUsage(
                input_tokens=completion.usage.input_tokens,
                output_tokens=completion.usage.output_tokens,
            ),
        )

    def _message_to_neutral(self, msg: WireMessage) -> list[CanonicalMessage]:
        """Convert one wire message; a user message may fan out into several."""
        if isinstance(msg.content, str):
            if msg.role == "assistant":
                return [CanonicalMessage.assistant(msg.content)]
            return [CanonicalMessage.user(msg.content)]

        if msg.role == "assistant":
            parts: list[ContentPart] = []
            tool_calls: list[ToolCall] = []
            for block in msg.content:
                if isinstance(block, TextBlock):
                    parts.append(TextContent(text=block.text))
                elif isinstance(block, ToolUseBlock):
                    tool_calls.append(ToolCall(id=block.id, name=block.name, arguments=block.input))
            return [
                CanonicalMessage(role="assistant", content=parts, tool_calls=tool_calls or None)
            ]

        # User messages: tool results become tool-role messages in place
        result: list[CanonicalMessage] = []
        pending: list[ContentPart] = []
        for block in msg.content:
            if isinstance(block, ToolResultBlock):
                if pending:
                    result.append(CanonicalMessage(role="user", content=pending))
                    pending = []
                result.append(CanonicalMessage.tool(_tool_result_to_neutral(block)))
            elif isinstance(block, (TextBlock, ImageBlock)):
                pending.append(_part_to_neutral(block))
        if pending:
            result.append(CanonicalMessage(role="user", content=pending))
        return result


def _join_system(system: str | list[SystemBlock] | None) -> str | None:
    if not system:
        return None
    if isinstance(system, str):
        return system
    return "\n".join(block.text for block in system)


def _tool_to_neutral(tool: ToolDeclaration, backend: str) -> ToolSpec:
    # The neutral declaration has no room for a separate description.
    return ToolSpec(
        name=tool.name,
        description=tool.name,
        parameters=adapt_schema(backend, tool.input_schema),
    )


def _tool_result_to_neutral(block: ToolResultBlock) -> ToolResult:
    if isinstance(block.content, str):
        return ToolResult.from_text(block.tool_use_id, block.content, is_error=bool(block.is_error))
    return ToolResult(
        tool_call_id=block.tool_use_id,
        content=[_part_to_neutral(part) for part in block.content],
        is_error=bool(block.is_error),
    )


def _part_to_neutral(block: TextBlock | ImageBlock) -> ContentPart:
    if isinstance(block, TextBlock):
        return TextContent(text=block.text)
    source = block.source
    if source.type == "url":
        return ImageContent(url=source.url, media_type=source.media_type)
    return ImageContent(data=source.data, media_type=source.media_type)
