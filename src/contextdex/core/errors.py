"""contextdex error types with typed error codes.

Error code ranges:
- 2xxx: Config
- 3xxx: Index (store, extraction, fallback search)
- 9xxx: Internal
"""

from dataclasses import dataclass, field
from enum import IntEnum
from typing import Any


class ErrorCode(IntEnum):
    """Typed error codes for programmatic handling."""

    # Config (2xxx)
    CONFIG_PARSE_ERROR = 2001
    CONFIG_INVALID_VALUE = 2002

    # Index (3xxx)
    STORE_UNAVAILABLE = 3001
    SCHEMA_MISSING = 3002
    RECORD_MALFORMED = 3003
    EXTRACTION_FAILED = 3004
    FALLBACK_UNAVAILABLE = 3005

    # Internal (9xxx)
    INTERNAL_ERROR = 9001


# No slots: contextlib assigns __traceback__ on errors leaving a generator
@dataclass(frozen=True)
class ContextdexError(Exception):
    """Base error with structured context for tool responses."""

    code: ErrorCode
    message: str
    retryable: bool = False
    details: dict[str, Any] = field(default_factory=dict)

    @property
    def error_name(self) -> str:
        """String identifier for logging (e.g., 'SCHEMA_MISSING')."""
        return self.code.name

    def to_dict(self) -> dict[str, Any]:
        """Serialize for JSON/MCP responses."""
        return {
            "code": self.code.value,
            "error": self.error_name,
            "message": self.message,
            "retryable": self.retryable,
            "details": self.details,
        }

    def __str__(self) -> str:
        return f"[{self.code.value}] {self.error_name}: {self.message}"


class ConfigError(ContextdexError):
    """Configuration-related errors."""

    @classmethod
    def parse_error(cls, path: str, reason: str) -> "ConfigError":
        return cls(
            code=ErrorCode.CONFIG_PARSE_ERROR,
            message=f"Failed to parse config at {path}: {reason}",
            details={"path": path, "reason": reason},
        )

    @classmethod
    def invalid_value(cls, field: str, value: Any, reason: str) -> "ConfigError":
        return cls(
            code=ErrorCode.CONFIG_INVALID_VALUE,
            message=f"Invalid value for '{field}': {reason}",
            details={"field": field, "value": str(value), "reason": reason},
        )


class StoreUnavailable(ContextdexError):
    """The persisted store cannot be opened or written."""

    @classmethod
    def at(cls, db_path: str, reason: str) -> "StoreUnavailable":
        return cls(
            code=ErrorCode.STORE_UNAVAILABLE,
            message=f"Index store unavailable at {db_path}: {reason}",
            retryable=True,
            details={"db_path": db_path, "reason": reason, "rebuild_required": False},
        )


class SchemaMissing(ContextdexError):
    """An incremental operation ran before any full rebuild."""

    @classmethod
    def at(cls, db_path: str) -> "SchemaMissing":
        return cls(
            code=ErrorCode.SCHEMA_MISSING,
            message=f"Index schema missing in {db_path}. Run a full rebuild first.",
            details={"db_path": db_path, "rebuild_required": True},
        )


class RecordMalformed(ContextdexError):
    """A single extractor record is unparseable or incomplete."""

    @classmethod
    def at_line(cls, line_number: int | None, reason: str, source: str | None = None) -> "RecordMalformed":
        where = f"line {line_number}" if line_number is not None else "record"
        if source:
            where = f"{source}:{where}"
        return cls(
            code=ErrorCode.RECORD_MALFORMED,
            message=f"Malformed record at {where}: {reason}",
            details={"line": line_number, "source": source, "reason": reason},
        )


class ExtractionFailed(ContextdexError):
    """The extractor could not produce records for a batch."""

    @classmethod
    def command_failed(
        cls, command: list[str], reason: str, exit_code: int | None = None
    ) -> "ExtractionFailed":
        return cls(
            code=ErrorCode.EXTRACTION_FAILED,
            message=f"Extractor failed: {reason}",
            retryable=True,
            details={"command": command, "exit_code": exit_code, "reason": reason},
        )

    @classmethod
    def unreadable(cls, path: str, reason: str) -> "ExtractionFailed":
        return cls(
            code=ErrorCode.EXTRACTION_FAILED,
            message=f"Cannot read {path}: {reason}",
            retryable=True,
            details={"path": path, "reason": reason},
        )


class FallbackUnavailable(ContextdexError):
    """The fallback search utility cannot run or errored."""

    @classmethod
    def because(cls, reason: str, exit_code: int | None = None) -> "FallbackUnavailable":
        return cls(
            code=ErrorCode.FALLBACK_UNAVAILABLE,
            message=f"Fallback search unavailable: {reason}",
            retryable=True,
            details={"reason": reason, "exit_code": exit_code},
        )


class InternalError(ContextdexError):
    """Internal/unexpected errors."""

    @classmethod
    def unexpected(cls, reason: str, **details: Any) -> "InternalError":
        return cls(
            code=ErrorCode.INTERNAL_ERROR,
            message=f"Internal error: {reason}",
            details=details,
        )
