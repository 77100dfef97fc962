"""Pydantic models for proxy configuration."""

from __future__ import annotations

from collections.abc import Mapping

from pydantic import BaseModel, Field, model_validator

from msgbridge.core.interface.config import BackendConfig

DEFAULT_UPSTREAM_URL = "https://api.anthropic.com"

# Backends registered from the environment whether or not a key is set;
# LiteLLM falls back to its own environment lookup for missing keys.
_ENV_BACKENDS = ("openai", "azure", "google", "xai")


class TelemetrySettings(BaseModel):
    """Optional telemetry configuration."""

    enabled: bool = False
    otlp_endpoint: str | None = None


class DiagnosticsSettings(BaseModel):
    """Where diagnostic records go when debugging is on.

    ``directory`` defaults to the system temp directory.
    """

    enabled: bool = False
    directory: str | None = None


class ProxySettings(BaseModel):
    """Top-level proxy configuration."""

    host: str = "127.0.0.1"
    port: int = 8787
    debug: int = Field(default=0, ge=0, le=2)
    default_backend: str | None = None
    upstream_url: str = DEFAULT_UPSTREAM_URL
    backends: dict[str, BackendConfig] = {}
    diagnostics: DiagnosticsSettings = Field(default_factory=DiagnosticsSettings)
    telemetry: TelemetrySettings = Field(default_factory=TelemetrySettings)

    @model_validator(mode="after")
    def _validate_default_backend(self) -> ProxySettings:
        if self.default_backend is not None and self.default_backend not in self.backends:
            msg = f"default_backend '{self.default_backend}' is not a configured backend"
            raise ValueError(msg)
        return self

    @property
    def verbose(self) -> bool:
        return self.debug >= 2

    @property
    def diagnostics_enabled(self) -> bool:
        return self.diagnostics.enabled or self.debug >= 1

    @classmethod
    def from_env(cls, environ: Mapping[str, str]) -> ProxySettings:
        """Build settings from ``<BACKEND>_API_KEY`` / ``<BACKEND>_API_URL`` variables.

        ``openai``, ``azure``, ``google`` and ``xai`` are always registered.
        ``anthropic`` is registered only when ``ANTHROPIC_API_KEY`` is set,
        and then also serves model ids without a backend prefix.
        """
        backends: dict[str, BackendConfig] = {}
        for name in _ENV_BACKENDS:
            prefix = name.upper()
            backends[name] = BackendConfig(
                api_key=environ.get(f"{prefix}_API_KEY") or None,
                api_base=environ.get(f"{prefix}_API_URL") or None,
            )

        default_backend: str | None = None
        if environ.get("ANTHROPIC_API_KEY"):
            backends["anthropic"] = BackendConfig(
                api_key=environ["ANTHROPIC_API_KEY"],
                api_base=environ.get("ANTHROPIC_API_URL") or None,
            )
            default_backend = "anthropic"

        data: dict[str, object] = {"backends": backends, "default_backend": default_backend}
        if environ.get("MSGBRIDGE_HOST"):
            data["host"] = environ["MSGBRIDGE_HOST"]
        if environ.get("MSGBRIDGE_PORT"):
            data["port"] = environ["MSGBRIDGE_PORT"]
        if environ.get("MSGBRIDGE_DEBUG"):
            data["debug"] = environ["MSGBRIDGE_DEBUG"]
        if environ.get("MSGBRIDGE_UPSTREAM_URL"):
            data["upstream_url"] = environ["MSGBRIDGE_UPSTREAM_URL"]
        return cls.model_validate(data)
