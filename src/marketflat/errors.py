"""Normalized error codes, structured issue model and raisable errors.

Per-sheet and per-row problems are recorded as :class:`ConversionIssue`
objects and never abort a conversion.  Only failures that leave nothing to
convert are raised, as :class:`ParseError` (stage 1) or
:class:`StructuralInvalidError` (stage 2).
"""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel


class ErrorCode(str, Enum):
    """Normalized error codes for the marketflat pipeline.

    Codes prefixed with ``E_`` are errors; codes prefixed with ``W_`` are
    non-fatal warnings.  Values equal their names so they are stable strings
    suitable for logs and programmatic handling.
    """

    # Parse errors
    E_PARSE_CORRUPT = "E_PARSE_CORRUPT"
    E_PARSE_EMPTY = "E_PARSE_EMPTY"
    E_PARSE_TOO_LARGE = "E_PARSE_TOO_LARGE"
    E_PARSE_NO_HEADER = "E_PARSE_NO_HEADER"

    # Structural errors (flattener input)
    E_STRUCTURE_NO_SHEETS = "E_STRUCTURE_NO_SHEETS"
    E_STRUCTURE_NO_COLUMNS = "E_STRUCTURE_NO_COLUMNS"

    # Warnings (non-fatal)
    W_PARSER_FALLBACK = "W_PARSER_FALLBACK"
    W_SHEET_SKIPPED_CHART = "W_SHEET_SKIPPED_CHART"
    W_ROWS_TRUNCATED = "W_ROWS_TRUNCATED"
    W_CLASSIFY_FAILED = "W_CLASSIFY_FAILED"
    W_CLASSIFY_AMBIGUOUS = "W_CLASSIFY_AMBIGUOUS"
    W_NO_YEAR_COLUMNS = "W_NO_YEAR_COLUMNS"
    W_NUMERIC_COERCION = "W_NUMERIC_COERCION"
    W_ROW_UNLABELED = "W_ROW_UNLABELED"


class ConversionIssue(BaseModel):
    """Structured error or warning with code, message, and location.

    Each issue carries an :class:`ErrorCode`, a human-readable message, and
    optional context about which sheet, row and stage produced it.
    """

    code: ErrorCode
    message: str
    sheet_name: str | None = None
    row: int | None = None
    stage: str | None = None
    recoverable: bool = False


class ConversionError(Exception):
    """Raisable exception wrapping a :class:`ConversionIssue`.

    The structured issue is available as ``.error`` for inspection and
    serialization; ``code`` and ``message`` delegate to it.
    """

    def __init__(self, **kwargs: object) -> None:
        self.error = ConversionIssue(**kwargs)  # type: ignore[arg-type]
        super().__init__(self.error.message)

    @property
    def code(self) -> ErrorCode:
        return self.error.code

    @property
    def message(self) -> str:
        return self.error.message


class ParseError(ConversionError):
    """The workbook could not be turned into any usable sheet."""


class StructuralInvalidError(ConversionError):
    """The parsed workbook handed to the flattener is malformed."""
