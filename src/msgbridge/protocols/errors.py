"""Shared error types for the translation layer."""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from msgbridge.core.interface.models import BackendFailure


class TranslationError(Exception):
    """Base error for all translation-layer failures."""


class StructuralDefectError(TranslationError):
    """De-duplicated history still contains tool results without a matching call."""

    def __init__(self, orphaned_ids: list[str]) -> None:
        self.orphaned_ids = orphaned_ids
        super().__init__(
            "Orphaned tool results without corresponding calls: "
            + ", ".join(orphaned_ids)
        )


class UnknownBackendError(TranslationError):
    """The requested model prefix names no configured backend."""

    def __init__(self, name: str) -> None:
        self.name = name
        super().__init__(f"Unknown backend: {name}")


class MissingResultError(TranslationError):
    """A backend finished a non-streaming completion without producing a message."""

    def __init__(self, detail: str = "") -> None:
        self.detail = detail
        super().__init__("No message found" + (f": {detail}" if detail else ""))


class ProtocolViolationError(TranslationError):
    """The stream translator received a generation event it cannot map."""

    def __init__(self, event_type: str) -> None:
        self.event_type = event_type
        super().__init__(f"Unhandled generation event type: {event_type}")


class BackendError(TranslationError):
    """A backend reported a failure while serving a request."""

    def __init__(self, failure: BackendFailure) -> None:
        self.failure = failure
        super().__init__(failure.message)
