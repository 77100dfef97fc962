"""Settings loading from YAML files or the process environment."""

from __future__ import annotations

import os
from collections.abc import Mapping
from pathlib import Path
from typing import Any

import yaml
from pydantic import ValidationError

from msgbridge.settings.errors import SettingsValidationError
from msgbridge.settings.models import ProxySettings


class SettingsLoader:
    """Load and validate a settings YAML file into :class:`ProxySettings`."""

    def __init__(self, path: Path) -> None:
        self._path = path

    def load(self) -> ProxySettings:
        """Read YAML, interpolate env vars, and validate.

        Environment variables in the form ``${VAR}`` or ``$VAR`` are expanded
        using :func:`os.path.expandvars` before YAML parsing, so keys need not
        be written into the file.

        Raises:
            SettingsValidationError: On YAML parse errors or schema validation failures.
        """
        try:
            raw = self._path.read_text(encoding="utf-8")
        except OSError as exc:
            raise SettingsValidationError(f"Cannot read {self._path}: {exc}") from exc

        expanded = os.path.expandvars(raw)

        try:
            data: Any = yaml.safe_load(expanded)
        except yaml.YAMLError as exc:
            raise SettingsValidationError(f"YAML parse error: {exc}") from exc

        if data is None:
            data = {}
        if not isinstance(data, dict):
            raise SettingsValidationError("Settings YAML must be a mapping")

        try:
            return ProxySettings.model_validate(data)
        except ValidationError as exc:
            raise SettingsValidationError(str(exc)) from exc


def load_settings(
    path: str | Path | None = None,
    environ: Mapping[str, str] | None = None,
) -> ProxySettings:
    """Load settings from *path* if given, otherwise from the environment."""
    if path is not None:
        return SettingsLoader(Path(path)).load()
    try:
        return ProxySettings.from_env(os.environ if environ is None else environ)
    except ValidationError as exc:
        raise SettingsValidationError(str(exc)) from exc
