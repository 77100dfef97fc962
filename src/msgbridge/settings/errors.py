"""Settings error types."""

from __future__ import annotations


class SettingsValidationError(Exception):
    """Raised when proxy settings fail parsing or validation."""
