"""Core module exports."""

from contextdex.core.errors import (
    ConfigError,
    ContextdexError,
    ErrorCode,
    ExtractionFailed,
    FallbackUnavailable,
    InternalError,
    RecordMalformed,
    SchemaMissing,
    StoreUnavailable,
)
from contextdex.core.logging import (
    clear_request_id,
    configure_logging,
    get_request_id,
    set_request_id,
)

__all__ = [
    # Errors
    "ContextdexError",
    "ConfigError",
    "ErrorCode",
    "ExtractionFailed",
    "FallbackUnavailable",
    "InternalError",
    "RecordMalformed",
    "SchemaMissing",
    "StoreUnavailable",
    # Logging
    "clear_request_id",
    "configure_logging",
    "get_request_id",
    "set_request_id",
]
