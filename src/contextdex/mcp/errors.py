"""Structured errors for MCP tools.

Core errors are translated into MCPError with a machine-readable code and a
remediation hint, which tells the caller whether a rebuild is required.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any

from fastmcp.exceptions import ToolError

from contextdex.core.errors import ContextdexError, ErrorCode


class MCPErrorCode(StrEnum):
    """Machine-readable error codes for MCP tool failures."""

    # Validation errors - caller should fix input
    INVALID_PARAMS = "INVALID_PARAMS"

    # Index errors
    STORE_UNAVAILABLE = "STORE_UNAVAILABLE"
    SCHEMA_MISSING = "SCHEMA_MISSING"
    EXTRACTION_FAILED = "EXTRACTION_FAILED"

    # System errors
    INTERNAL_ERROR = "INTERNAL_ERROR"


_REMEDIATION: dict[MCPErrorCode, str] = {
    MCPErrorCode.INVALID_PARAMS: "Fix the request parameters and retry.",
    MCPErrorCode.STORE_UNAVAILABLE: (
        "Check that the index directory is writable, then call refresh with no paths "
        "to rebuild the index."
    ),
    MCPErrorCode.SCHEMA_MISSING: "The index has never been built. Call refresh with no paths.",
    MCPErrorCode.EXTRACTION_FAILED: (
        "Check the extractor command in .contextdex/config.yaml. Queued changes are kept."
    ),
    MCPErrorCode.INTERNAL_ERROR: "Retry; if it persists, check the server log.",
}

_CODE_MAP: dict[ErrorCode, MCPErrorCode] = {
    ErrorCode.STORE_UNAVAILABLE: MCPErrorCode.STORE_UNAVAILABLE,
    ErrorCode.SCHEMA_MISSING: MCPErrorCode.SCHEMA_MISSING,
    ErrorCode.EXTRACTION_FAILED: MCPErrorCode.EXTRACTION_FAILED,
    ErrorCode.CONFIG_PARSE_ERROR: MCPErrorCode.INVALID_PARAMS,
    ErrorCode.CONFIG_INVALID_VALUE: MCPErrorCode.INVALID_PARAMS,
}


def remediation_for(code: MCPErrorCode) -> str:
    return _REMEDIATION[code]


@dataclass
class ErrorResponse:
    """Structured error response for MCP tools."""

    code: MCPErrorCode
    message: str
    remediation: str
    rebuild_required: bool = False
    context: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "code": self.code.value,
            "message": self.message,
            "remediation": self.remediation,
            "rebuild_required": self.rebuild_required,
            "context": self.context,
        }


class MCPError(ToolError):
    """Tool failure with a structured response.

    Extends FastMCP's ToolError so FastMCP passes it through unchanged.
    """

    def __init__(
        self,
        code: MCPErrorCode,
        message: str,
        remediation: str | None = None,
        rebuild_required: bool = False,
        **context: Any,
    ) -> None:
        super().__init__(message)
        self.code = code
        self.message = message
        self.remediation = remediation or _REMEDIATION[code]
        self.rebuild_required = rebuild_required
        self.context = context

    @classmethod
    def from_core(cls, error: ContextdexError) -> MCPError:
        """Translate a core error, carrying its details as context."""
        code = _CODE_MAP.get(error.code, MCPErrorCode.INTERNAL_ERROR)
        context = {k: v for k, v in error.details.items() if k != "rebuild_required"}
        return cls(
            code=code,
            message=error.message,
            rebuild_required=bool(error.details.get("rebuild_required", False)),
            **context,
        )

    def to_response(self) -> ErrorResponse:
        return ErrorResponse(
            code=self.code,
            message=self.message,
            remediation=self.remediation,
            rebuild_required=self.rebuild_required,
            context=self.context,
        )
