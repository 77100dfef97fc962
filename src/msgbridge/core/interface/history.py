"""History normalization — removes duplicated tool calls and tool results.

Clients (or their retries) can resend overlapping history, so the same
``tool_use`` id or the same ``tool_result`` reference may show up more than
once. Backends reject such conversations. The first occurrence is kept
because it is the one any already-observed side effect corresponds to.

The pass never reorders or inserts items, and messages that lose nothing
are shared with the input rather than copied.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from msgbridge.protocols.errors import StructuralDefectError
from msgbridge.protocols.messages.models import ToolResultBlock, ToolUseBlock

if TYPE_CHECKING:
    from collections.abc import Sequence

    from msgbridge.protocols.messages.models import WireMessage

logger = logging.getLogger(__name__)

Position = tuple[int, int]


@dataclass
class ToolPairingReport:
    """Tool call / tool result bookkeeping for one conversation."""

    call_order: list[str] = field(default_factory=list)
    result_order: list[str] = field(default_factory=list)

    @property
    def tool_calls(self) -> set[str]:
        return set(self.call_order)

    @property
    def tool_results(self) -> set[str]:
        return set(self.result_order)

    @property
    def orphaned_results(self) -> list[str]:
        """Result references with no matching call, in first-seen order."""
        calls = self.tool_calls
        return list(dict.fromkeys(rid for rid in self.result_order if rid not in calls))

    @property
    def calls_without_results(self) -> list[str]:
        """Calls with no result yet; allowed while a call is in flight."""
        results = self.tool_results
        return [cid for cid in self.call_order if cid not in results]

    @property
    def order_preserved(self) -> bool:
        """Whether paired ids appear in the same order among calls and results."""
        calls, results = self.tool_calls, self.tool_results
        common_calls = [cid for cid in self.call_order if cid in results]
        common_results = [rid for rid in self.result_order if rid in calls]
        return common_calls == common_results


def validate_tool_pairing(messages: Sequence[WireMessage]) -> ToolPairingReport:
    """Collect tool call and tool result ids in conversation order."""
    report = ToolPairingReport()
    for msg in messages:
        if isinstance(msg.content, str):
            continue
        for item in msg.content:
            if msg.role == "assistant" and isinstance(item, ToolUseBlock):
                report.call_order.append(item.id)
            elif msg.role == "user" and isinstance(item, ToolResultBlock):
                report.result_order.append(item.tool_use_id)
    return report


class HistoryNormalizer:
    """De-duplicates tool records and checks the result is consistent.

    ``verbose`` turns on per-item logging of every duplicate found and of
    the final pairing state; the orphan and order checks are always logged.
    """

    def __init__(self, *, verbose: bool = False) -> None:
        self.verbose = verbose

    def normalize(self, messages: Sequence[WireMessage]) -> list[WireMessage]:
        """Return a de-duplicated copy of *messages*.

        Raises:
            StructuralDefectError: If a surviving tool result references a
                tool call id that does not exist in the conversation.
        """
        duplicate_calls = self._find_duplicates(messages, "assistant", ToolUseBlock)
        duplicate_results = self._find_duplicates(messages, "user", ToolResultBlock)

        if duplicate_calls or duplicate_results:
            logger.info(
                "Removing %d duplicate tool calls and %d duplicate tool results",
                len(duplicate_calls),
                len(duplicate_results),
            )

        removed = duplicate_calls | duplicate_results
        filtered: list[WireMessage] = []
        for msg_index, msg in enumerate(messages):
            if isinstance(msg.content, str):
                filtered.append(msg)
                continue
            kept = [
                item
                for content_index, item in enumerate(msg.content)
                if (msg_index, content_index) not in removed
            ]
            if len(kept) == len(msg.content):
                filtered.append(msg)
            else:
                filtered.append(msg.model_copy(update={"content": kept}))

        self._check(filtered)
        return filtered

    def _find_duplicates(
        self,
        messages: Sequence[WireMessage],
        role: str,
        block_type: type[ToolUseBlock] | type[ToolResultBlock],
    ) -> set[Position]:
        first_seen: dict[str, Position] = {}
        duplicates: set[Position] = set()
        for msg_index, msg in enumerate(messages):
            if msg.role != role or isinstance(msg.content, str):
                continue
            for content_index, item in enumerate(msg.content):
                if not isinstance(item, block_type):
                    continue
                key = item.id if isinstance(item, ToolUseBlock) else item.tool_use_id
                first = first_seen.get(key)
                if first is None:
                    first_seen[key] = (msg_index, content_index)
                    continue
                duplicates.add((msg_index, content_index))
                if self.verbose:
                    logger.info(
                        "Duplicate %s '%s' at %d:%d (first at %d:%d)",
                        item.type,
                        key,
                        msg_index,
                        content_index,
                        *first,
                    )
        return duplicates

    def _check(self, messages: Sequence[WireMessage]) -> None:
        report = validate_tool_pairing(messages)

        if self.verbose:
            logger.info(
                "Final state: %d tool calls, %d tool results",
                len(report.tool_calls),
                len(report.tool_results),
            )
            for call_id in report.calls_without_results:
                logger.info("Tool call '%s' has no result (may be in progress)", call_id)

        if not report.order_preserved:
            logger.log(
                logging.WARNING if self.verbose else logging.DEBUG,
                "Tool calls and tool results are not in the same relative order",
            )

        orphaned = report.orphaned_results
        if orphaned:
            logger.error("%d orphaned tool results: %s", len(orphaned), ", ".join(orphaned))
            raise StructuralDefectError(orphaned)


def normalize_history(
    messages: Sequence[WireMessage], *, verbose: bool = False
) -> list[WireMessage]:
    """Shortcut for ``HistoryNormalizer(verbose=verbose).normalize(messages)``."""
    return HistoryNormalizer(verbose=verbose).normalize(messages)
