"""BackendClient protocol — what the dispatcher needs from a model backend.

:class:`~msgbridge.core.interface.client.ModelClient` is the LiteLLM-backed
implementation; anything with the same two coroutines can replace it.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

    from msgbridge.core.interface.events import GenerationEvent
    from msgbridge.core.interface.models import Completion, NeutralRequest


@runtime_checkable
class BackendClient(Protocol):
    """Produces neutral completions and generation event streams."""

    async def complete(self, model_id: str, request: NeutralRequest) -> Completion:
        """Run a non-streaming completion.

        Raises :class:`~msgbridge.protocols.errors.BackendError` when the
        backend reports a failure.
        """
        ...

    def stream(self, model_id: str, request: NeutralRequest) -> AsyncIterator[GenerationEvent]:
        """Stream generation events.

        Backend failures are reported in-band as an ``error`` event. The
        iterator must release backend resources when closed early.
        """
        ...
