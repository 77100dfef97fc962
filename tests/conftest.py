"""Shared fixtures: an in-memory backend and proxy settings."""

from __future__ import annotations

from collections.abc import AsyncIterator
from typing import Any

import pytest

from msgbridge.core.interface.config import BackendConfig
from msgbridge.core.interface.models import Completion, NeutralRequest
from msgbridge.settings.models import ProxySettings


class FakeBackend:
    """A :class:`BackendClient` that replays canned results.

    Set ``completion`` (or ``error``) for non-streaming calls and ``events``
    for streaming ones; an exception in ``events`` is raised at that point
    of the stream. Every call is recorded in ``requests``.
    """

    def __init__(self) -> None:
        self.completion: Completion = Completion()
        self.error: Exception | None = None
        self.events: list[Any] = []
        self.requests: list[tuple[str, NeutralRequest]] = []
        self.closed = False

    async def complete(self, model_id: str, request: NeutralRequest) -> Completion:
        self.requests.append((model_id, request))
        if self.error is not None:
            raise self.error
        return self.completion

    async def stream(self, model_id: str, request: NeutralRequest) -> AsyncIterator[Any]:
        self.requests.append((model_id, request))
        try:
            for event in self.events:
                if isinstance(event, Exception):
                    raise event
                yield event
        finally:
            self.closed = True


@pytest.fixture
def fake_backend() -> FakeBackend:
    return FakeBackend()


@pytest.fixture
def settings() -> ProxySettings:
    return ProxySettings(
        backends={
            "openai": BackendConfig(api_key="sk-test"),
            "google": BackendConfig(api_key="g-test"),
        }
    )
