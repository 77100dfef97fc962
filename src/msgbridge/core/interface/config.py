"""Backend configuration — LiteLLM provider, credentials, endpoint."""

from typing import Any

from pydantic import BaseModel, Field

# Backend names whose LiteLLM provider prefix differs from the name.
_PROVIDER_ALIASES = {"google": "gemini"}


class BackendConfig(BaseModel):
    """Configuration for one backend, selected by the ``<backend>/`` model prefix.

    ``provider`` is LiteLLM's provider prefix; it defaults to the backend
    name (``google`` maps to LiteLLM's ``gemini``). Credentials left unset
    fall back to LiteLLM's own environment lookup.
    """

    provider: str | None = None
    api_key: str | None = None
    api_base: str | None = None
    extra: dict[str, Any] = Field(default_factory=lambda: dict[str, Any]())

    def litellm_provider(self, name: str) -> str:
        """Return the LiteLLM provider prefix for the backend called *name*."""
        return self.provider or _PROVIDER_ALIASES.get(name, name)

    def litellm_model(self, name: str, model_id: str) -> str:
        """Return the LiteLLM model string, e.g. ``openai/gpt-4o``."""
        return f"{self.litellm_provider(name)}/{model_id}"
