"""msgbridge — serve a messages-API client from any LiteLLM-supported backend."""

from __future__ import annotations

__version__ = "0.1.0"
