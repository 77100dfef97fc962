"""Diagnostic capture — request/response records for failed exchanges.

The proxy hands a completed :class:`DiagnosticRecord` to a
:class:`DiagnosticSink`; where and how it is stored is up to the sink.
Capture must never change what the client sees, so sinks report failure by
returning ``None`` rather than raising.
"""

from __future__ import annotations

import logging
import secrets
import tempfile
import time
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Protocol, runtime_checkable

from pydantic import BaseModel, Field

logger = logging.getLogger(__name__)

_REDACTED_HEADERS = frozenset({"authorization", "x-api-key", "proxy-authorization", "cookie"})

ERROR_LOG_NAME = "msgbridge-errors.log"


class RequestInfo(BaseModel):
    """The inbound request as the proxy received it."""

    method: str = "POST"
    url: str = ""
    headers: dict[str, str] = {}
    body: Any = None


class ResponseInfo(BaseModel):
    """The response (or stream outcome) the proxy produced."""

    status_code: int
    headers: dict[str, str] = {}
    body: Any = None


class DiagnosticRecord(BaseModel):
    """One captured exchange."""

    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    request: RequestInfo
    response: ResponseInfo | None = None
    duration_ms: float | None = None
    context: dict[str, Any] = {}


def should_capture(status_code: int) -> bool:
    """Client errors are captured, except rate limits the client retries anyway."""
    return 400 <= status_code < 500 and status_code != 429


def redact_headers(headers: dict[str, str]) -> dict[str, str]:
    """Return *headers* with credential values masked."""
    return {
        key: ("<redacted>" if key.lower() in _REDACTED_HEADERS else value)
        for key, value in headers.items()
    }


def elapsed_ms(started: float) -> float:
    """Milliseconds since *started*, a :func:`time.monotonic` reading."""
    return round((time.monotonic() - started) * 1000, 1)


@runtime_checkable
class DiagnosticSink(Protocol):
    """Receives completed diagnostic records."""

    def capture(self, record: DiagnosticRecord) -> str | None:
        """Store *record*; return a locator (e.g. a path) or ``None`` on failure."""
        ...


def capture_quietly(sink: DiagnosticSink, record: DiagnosticRecord) -> str | None:
    """Hand *record* to *sink*; a failing sink is logged and yields ``None``."""
    try:
        return sink.capture(record)
    except Exception:
        logger.warning("Diagnostic capture failed", exc_info=True)
        return None


class NullDiagnosticSink:
    """Discards every record; used when diagnostics are disabled."""

    def capture(self, record: DiagnosticRecord) -> str | None:
        return None


class TempFileDiagnosticSink:
    """Writes each record as pretty JSON into a directory.

    Every write also appends one line to ``msgbridge-errors.log`` in the
    same directory, which is easier to tail than the JSON files.
    """

    def __init__(self, directory: str | Path | None = None) -> None:
        self.directory = Path(directory) if directory else Path(tempfile.gettempdir())

    @property
    def error_log(self) -> Path:
        return self.directory / ERROR_LOG_NAME

    def capture(self, record: DiagnosticRecord) -> str | None:
        stamp = int(record.timestamp.timestamp() * 1000)
        path = self.directory / f"msgbridge-debug-{stamp}-{secrets.token_hex(3)}.json"
        status = record.response.status_code if record.response else "-"
        try:
            self.directory.mkdir(parents=True, exist_ok=True)
            path.write_text(record.model_dump_json(indent=2), encoding="utf-8")
            with self.error_log.open("a", encoding="utf-8") as log:
                log.write(f"[{record.timestamp.isoformat()}] HTTP {status} - Debug: {path}\n")
        except OSError:
            logger.warning("Failed to write diagnostic record to %s", self.directory, exc_info=True)
            return None

        logger.warning("Error (HTTP %s) - debug info written to: %s", status, path)
        return str(path)
