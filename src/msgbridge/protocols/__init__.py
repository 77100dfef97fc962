"""Protocol layer — messages API wire format and translation errors."""

from msgbridge.protocols.errors import (
    BackendError,
    MissingResultError,
    ProtocolViolationError,
    StructuralDefectError,
    TranslationError,
    UnknownBackendError,
)

__all__ = [
    "BackendError",
    "MissingResultError",
    "ProtocolViolationError",
    "StructuralDefectError",
    "TranslationError",
    "UnknownBackendError",
]
