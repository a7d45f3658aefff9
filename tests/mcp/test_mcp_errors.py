"""Tests for mcp/errors.py and the server factory."""

from __future__ import annotations

from pathlib import Path

import pytest
from fastmcp.exceptions import ToolError

from contextdex.config.models import ContextdexConfig
from contextdex.core.errors import (
    ConfigError,
    ExtractionFailed,
    InternalError,
    SchemaMissing,
    StoreUnavailable,
)
from contextdex.mcp.context import AppContext
from contextdex.mcp.errors import MCPError, MCPErrorCode, remediation_for
from contextdex.mcp.server import ToolResponse, create_mcp_server


class TestMCPError:
    def test_is_tool_error(self) -> None:
        assert isinstance(MCPError(MCPErrorCode.INTERNAL_ERROR, "x"), ToolError)

    def test_default_remediation(self) -> None:
        error = MCPError(MCPErrorCode.INVALID_PARAMS, "bad k")
        assert error.remediation == remediation_for(MCPErrorCode.INVALID_PARAMS)

    @pytest.mark.parametrize(
        ("core", "code", "rebuild"),
        [
            (SchemaMissing.at("/x.db"), MCPErrorCode.SCHEMA_MISSING, True),
            (StoreUnavailable.at("/x.db", "locked"), MCPErrorCode.STORE_UNAVAILABLE, False),
            (ExtractionFailed.command_failed(["mix"], "boom"), MCPErrorCode.EXTRACTION_FAILED, False),
            (ConfigError.parse_error("/c.yaml", "bad"), MCPErrorCode.INVALID_PARAMS, False),
            (InternalError.unexpected("oops"), MCPErrorCode.INTERNAL_ERROR, False),
        ],
    )
    def test_from_core(self, core, code: MCPErrorCode, rebuild: bool) -> None:
        error = MCPError.from_core(core)
        assert error.code == code
        assert error.rebuild_required is rebuild
        assert "rebuild_required" not in error.context

    def test_to_response_dict(self) -> None:
        response = MCPError.from_core(SchemaMissing.at("/x.db")).to_response().to_dict()
        assert response["code"] == "SCHEMA_MISSING"
        assert response["rebuild_required"] is True
        assert response["context"] == {"db_path": "/x.db"}


class TestToolResponse:
    def test_envelope_fields(self) -> None:
        data = ToolResponse(success=True, result={"count": 0}).model_dump()
        assert data == {"result": {"count": 0}, "meta": {}, "success": True, "error": None}


class TestCreateMcpServer:
    def test_named_server(self, tmp_path: Path) -> None:
        config = ContextdexConfig.model_validate({"index": {"index_path": str(tmp_path / "state")}})
        context = AppContext.create(tmp_path, config)
        try:
            mcp = create_mcp_server(context)
            assert mcp.name == "contextdex"
        finally:
            context.store.close()
