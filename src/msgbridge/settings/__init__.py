"""Proxy settings — models, loading and errors."""

from msgbridge.settings.errors import SettingsValidationError
from msgbridge.settings.loader import SettingsLoader, load_settings
from msgbridge.settings.models import DiagnosticsSettings, ProxySettings, TelemetrySettings

__all__ = [
    "DiagnosticsSettings",
    "ProxySettings",
    "SettingsLoader",
    "SettingsValidationError",
    "TelemetrySettings",
    "load_settings",
]
