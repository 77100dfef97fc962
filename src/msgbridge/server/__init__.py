"""HTTP server — routing, upstream passthrough and diagnostic capture."""

from msgbridge.server.app import create_app
from msgbridge.server.diagnostics import (
    DiagnosticRecord,
    DiagnosticSink,
    NullDiagnosticSink,
    TempFileDiagnosticSink,
)
from msgbridge.server.dispatcher import Dispatcher, Route
from msgbridge.server.passthrough import UpstreamPassthrough

__all__ = [
    "DiagnosticRecord",
    "DiagnosticSink",
    "Dispatcher",
    "NullDiagnosticSink",
    "Route",
    "TempFileDiagnosticSink",
    "UpstreamPassthrough",
    "create_app",
]
