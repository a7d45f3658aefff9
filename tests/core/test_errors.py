"""Tests for error types and codes."""

from collections.abc import Iterator
from contextlib import contextmanager

import pytest

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


class TestErrorCode:
    """Error code value tests."""

    @pytest.mark.parametrize(
        ("code", "expected_range"),
        [
            (ErrorCode.CONFIG_PARSE_ERROR, 2000),
            (ErrorCode.CONFIG_INVALID_VALUE, 2000),
            (ErrorCode.STORE_UNAVAILABLE, 3000),
            (ErrorCode.SCHEMA_MISSING, 3000),
            (ErrorCode.RECORD_MALFORMED, 3000),
            (ErrorCode.EXTRACTION_FAILED, 3000),
            (ErrorCode.FALLBACK_UNAVAILABLE, 3000),
            (ErrorCode.INTERNAL_ERROR, 9000),
        ],
    )
    def test_given_error_code_when_checked_then_in_correct_range(
        self, code: ErrorCode, expected_range: int
    ) -> None:
        """Error codes fall within their designated numeric range."""
        # Given
        error_code = code

        # When
        value = error_code.value

        # Then
        assert expected_range <= value < expected_range + 1000


class TestContextdexError:
    """Base error behavior tests."""

    @pytest.mark.parametrize(
        "error",
        [
            SchemaMissing.at("/x/index.db"),
            StoreUnavailable.at("/x/index.db", "locked"),
            ExtractionFailed.command_failed(["mix"], "boom"),
        ],
    )
    def test_given_error_when_raised_through_context_manager_then_type_kept(
        self, error: ContextdexError
    ) -> None:
        """Typed errors survive generator context managers unchanged."""

        # Given
        @contextmanager
        def transaction() -> Iterator[None]:
            try:
                yield
            except Exception:
                raise

        # When / Then
        with pytest.raises(type(error)) as exc_info:
            with transaction():
                raise error
        assert exc_info.value is error
        assert exc_info.value.__traceback__ is not None

    def test_given_error_when_to_dict_then_serializes_all_fields(self) -> None:
        """Error serializes to dict with all required fields."""
        # Given
        error = ContextdexError(
            code=ErrorCode.CONFIG_PARSE_ERROR,
            message="Test message",
            retryable=True,
            details={"key": "value"},
        )

        # When
        result = error.to_dict()

        # Then
        assert result == {
            "code": 2001,
            "error": "CONFIG_PARSE_ERROR",
            "message": "Test message",
            "retryable": True,
            "details": {"key": "value"},
        }

    def test_given_error_when_str_then_human_readable(self) -> None:
        """Error string representation is human readable."""
        # Given
        error = ContextdexError(code=ErrorCode.INTERNAL_ERROR, message="Something broke")

        # When
        result = str(error)

        # Then
        assert result == "[9001] INTERNAL_ERROR: Something broke"

    def test_given_error_when_raised_then_catchable_as_exception(self) -> None:
        """Errors are raisable and keep their code."""
        with pytest.raises(ContextdexError) as exc_info:
            raise SchemaMissing.at("/tmp/index.db")
        assert exc_info.value.code == ErrorCode.SCHEMA_MISSING


class TestConfigError:
    """ConfigError factory method tests."""

    def test_given_parse_failure_when_created_then_has_path_and_reason(self) -> None:
        # Given
        path = "/etc/config.yaml"
        reason = "invalid YAML syntax"

        # When
        error = ConfigError.parse_error(path, reason)

        # Then
        assert error.code == ErrorCode.CONFIG_PARSE_ERROR
        assert path in error.message
        assert error.details == {"path": path, "reason": reason}

    def test_given_invalid_value_when_created_then_value_stringified(self) -> None:
        # When
        error = ConfigError.invalid_value("server.port", 99999, "out of range")

        # Then
        assert error.code == ErrorCode.CONFIG_INVALID_VALUE
        assert error.details["value"] == "99999"
        assert "server.port" in error.message


class TestIndexErrors:
    """Index error factories carry the rebuild hint and retryability."""

    def test_given_store_unavailable_then_retryable_without_rebuild(self) -> None:
        # When
        error = StoreUnavailable.at("/x/index.db", "disk I/O error")

        # Then
        assert error.retryable is True
        assert error.details["rebuild_required"] is False
        assert "disk I/O error" in error.message

    def test_given_schema_missing_then_rebuild_required(self) -> None:
        # When
        error = SchemaMissing.at("/x/index.db")

        # Then
        assert error.retryable is False
        assert error.details["rebuild_required"] is True

    def test_given_malformed_record_with_source_then_location_in_message(self) -> None:
        # When
        error = RecordMalformed.at_line(7, "invalid JSON", source="export.ndjson")

        # Then
        assert "export.ndjson:line 7" in error.message
        assert error.details["line"] == 7

    def test_given_malformed_record_without_line_then_generic_location(self) -> None:
        # When
        error = RecordMalformed.at_line(None, "missing name")

        # Then
        assert "Malformed record at record" in error.message

    def test_given_extractor_exit_code_then_kept_in_details(self) -> None:
        # When
        error = ExtractionFailed.command_failed(["mix", "export"], "boom", exit_code=2)

        # Then
        assert error.details["exit_code"] == 2
        assert error.details["command"] == ["mix", "export"]

    def test_given_unreadable_file_then_path_in_details(self) -> None:
        # When
        error = ExtractionFailed.unreadable("lib/a.heex", "permission denied")

        # Then
        assert error.code == ErrorCode.EXTRACTION_FAILED
        assert error.details["path"] == "lib/a.heex"

    def test_given_fallback_failure_then_reason_in_message(self) -> None:
        # When
        error = FallbackUnavailable.because("executable not found: rg")

        # Then
        assert error.code == ErrorCode.FALLBACK_UNAVAILABLE
        assert "executable not found" in error.message


class TestInternalError:
    """InternalError factory method tests."""

    def test_given_details_when_unexpected_then_kept(self) -> None:
        # When
        error = InternalError.unexpected("null pointer", component="store")

        # Then
        assert error.code == ErrorCode.INTERNAL_ERROR
        assert error.details == {"component": "store"}
