"""Tests for ErrorCode, ConversionIssue and the raisable error types."""

from __future__ import annotations

import pytest

from marketflat.errors import (
    ConversionError,
    ConversionIssue,
    ErrorCode,
    ParseError,
    StructuralInvalidError,
)


class TestErrorCode:
    def test_values_equal_names(self) -> None:
        for code in ErrorCode:
            assert code.value == code.name

    def test_prefixes(self) -> None:
        for code in ErrorCode:
            assert code.value.startswith(("E_", "W_"))

    def test_is_str(self) -> None:
        assert ErrorCode.E_PARSE_CORRUPT == "E_PARSE_CORRUPT"


class TestConversionIssue:
    def test_defaults(self) -> None:
        issue = ConversionIssue(code=ErrorCode.W_ROW_UNLABELED, message="no label")
        assert issue.sheet_name is None
        assert issue.row is None
        assert issue.stage is None
        assert issue.recoverable is False

    def test_serializes_code_as_string(self) -> None:
        issue = ConversionIssue(
            code=ErrorCode.W_NUMERIC_COERCION, message="text kept", sheet_name="S", row=4
        )
        dumped = issue.model_dump(mode="json")
        assert dumped["code"] == "W_NUMERIC_COERCION"
        assert dumped["row"] == 4


class TestRaisableErrors:
    def test_parse_error_wraps_issue(self) -> None:
        exc = ParseError(code=ErrorCode.E_PARSE_EMPTY, message="empty", stage="parse")
        assert isinstance(exc, ConversionError)
        assert isinstance(exc.error, ConversionIssue)
        assert exc.code == ErrorCode.E_PARSE_EMPTY
        assert exc.message == "empty"
        assert str(exc) == "empty"
        assert exc.error.stage == "parse"

    def test_structural_error_is_raisable(self) -> None:
        with pytest.raises(StructuralInvalidError) as info:
            raise StructuralInvalidError(
                code=ErrorCode.E_STRUCTURE_NO_SHEETS, message="no sheets"
            )
        assert info.value.code == ErrorCode.E_STRUCTURE_NO_SHEETS

    def test_parse_and_structural_are_distinct(self) -> None:
        assert not issubclass(ParseError, StructuralInvalidError)
        assert not issubclass(StructuralInvalidError, ParseError)
