"""Fallback parser chain for reading workbook bytes into raw cell grids.

Implements a two-tier strategy:

1. **openpyxl** (primary) -- opens ``.xlsx`` workbooks with cached formula
   values, skips chart-only sheets and oversized sheets.
2. **pandas** (fallback) -- used per sheet when openpyxl cannot read a
   single worksheet, and for the whole file when openpyxl cannot open the
   workbook at all (legacy ``.xls`` files are read through xlrd this way).

The chain only produces raw grids.  Header detection and table splitting
live in :mod:`marketflat.table_detector`.
"""

from __future__ import annotations

import io
import logging
from typing import Any

import openpyxl
import pandas as pd
from openpyxl.chartsheet import Chartsheet
from openpyxl.worksheet.worksheet import Worksheet
from pydantic import BaseModel

from marketflat.config import ConverterConfig
from marketflat.errors import ConversionIssue, ErrorCode, ParseError
from marketflat.models import ParserUsed

logger = logging.getLogger("marketflat")


class RawSheet(BaseModel):
    """Cell values of one worksheet, in sheet order, before any analysis."""

    name: str
    rows: list[list[Any]]
    parser_used: ParserUsed = ParserUsed.OPENPYXL


def _to_python(val: object) -> object:
    """Convert pandas/numpy scalars to plain Python values; NaN becomes None."""
    if val is None:
        return None
    if isinstance(val, (str, bool, int, float)):
        if isinstance(val, float) and pd.isna(val):
            return None
        return val
    if pd.isna(val):
        return None
    if pd.api.types.is_bool(val):
        return bool(val)
    if pd.api.types.is_integer(val):
        return int(val)
    if pd.api.types.is_float(val):
        return float(val)
    if isinstance(val, pd.Timestamp):
        return val.to_pydatetime()
    return val


def _frame_to_rows(df: pd.DataFrame) -> list[list[Any]]:
    return [
        [_to_python(v) for v in row]
        for row in df.itertuples(index=False, name=None)
    ]


class ParserChain:
    """Reads workbook bytes into :class:`RawSheet` grids.

    Returns recoverable problems as :class:`ConversionIssue` warnings and
    raises :class:`ParseError` only when the workbook cannot be opened by
    any parser.
    """

    def __init__(self, config: ConverterConfig) -> None:
        self._config = config

    def read(
        self, data: bytes, file_name: str
    ) -> tuple[list[RawSheet], list[ConversionIssue]]:
        """Read every worksheet of the workbook in *data*.

        Args:
            data: Raw workbook bytes.
            file_name: Display name, used in messages only.

        Returns:
            The readable sheets in workbook order and the issues raised
            while reading them.

        Raises:
            ParseError: If neither openpyxl nor pandas can open the bytes.
        """
        issues: list[ConversionIssue] = []

        try:
            wb = self._open_workbook(data)
        except Exception as exc:
            logger.warning("openpyxl could not open %s: %s", file_name, exc)
            fallback_sheets = self._read_all_via_pandas(data, file_name, issues)
            if fallback_sheets is None:
                logger.error("Parse failed: corrupt workbook %s", file_name)
                raise ParseError(
                    code=ErrorCode.E_PARSE_CORRUPT,
                    message=f"Workbook '{file_name}' could not be read: {exc}",
                    stage="parse",
                ) from exc
            return fallback_sheets, issues

        sheets: list[RawSheet] = []
        try:
            for sheet_name in wb.sheetnames:
                ws = wb[sheet_name]

                if isinstance(ws, Chartsheet):
                    issues.append(
                        ConversionIssue(
                            code=ErrorCode.W_SHEET_SKIPPED_CHART,
                            message=f"Sheet '{sheet_name}' is chart-only; skipped.",
                            sheet_name=sheet_name,
                            stage="parse",
                            recoverable=True,
                        )
                    )
                    logger.info("Skipped chart-only sheet '%s'", sheet_name)
                    continue

                if not isinstance(ws, Worksheet):
                    continue

                max_row = ws.max_row or 0
                if max_row > self._config.max_rows_in_memory:
                    issues.append(self._too_many_rows(sheet_name, max_row))
                    continue

                try:
                    rows = self._read_worksheet(ws)
                    sheets.append(RawSheet(name=sheet_name, rows=rows))
                    continue
                except Exception:
                    logger.warning(
                        "openpyxl failed for sheet '%s'; trying pandas fallback",
                        sheet_name,
                        exc_info=True,
                    )

                raw = self._read_sheet_via_pandas(data, sheet_name)
                if raw is not None:
                    issues.append(self._fallback_issue(sheet_name))
                    sheets.append(raw)
                    continue

                issues.append(
                    ConversionIssue(
                        code=ErrorCode.E_PARSE_CORRUPT,
                        message=f"All parsers failed for sheet '{sheet_name}'.",
                        sheet_name=sheet_name,
                        stage="parse",
                        recoverable=True,
                    )
                )
                logger.error("All parsers failed for sheet '%s'", sheet_name)
        finally:
            wb.close()

        return sheets, issues

    # ------------------------------------------------------------------
    # openpyxl primary
    # ------------------------------------------------------------------

    @staticmethod
    def _open_workbook(data: bytes) -> openpyxl.Workbook:
        return openpyxl.load_workbook(io.BytesIO(data), data_only=True)

    @staticmethod
    def _read_worksheet(ws: Worksheet) -> list[list[Any]]:
        return [list(r) for r in ws.iter_rows(values_only=True)]

    # ------------------------------------------------------------------
    # pandas fallback
    # ------------------------------------------------------------------

    def _read_sheet_via_pandas(self, data: bytes, sheet_name: str) -> RawSheet | None:
        try:
            df = pd.read_excel(io.BytesIO(data), sheet_name=sheet_name, header=None)
        except Exception:
            logger.debug(
                "pandas fallback failed for sheet '%s'", sheet_name, exc_info=True
            )
            return None
        return RawSheet(
            name=sheet_name,
            rows=_frame_to_rows(df),
            parser_used=ParserUsed.PANDAS_FALLBACK,
        )

    def _read_all_via_pandas(
        self, data: bytes, file_name: str, issues: list[ConversionIssue]
    ) -> list[RawSheet] | None:
        """Read every sheet through pandas; ``None`` when pandas fails too."""
        try:
            all_dfs = pd.read_excel(io.BytesIO(data), sheet_name=None, header=None)
        except Exception:
            logger.debug(
                "pandas file-level fallback failed for %s", file_name, exc_info=True
            )
            return None

        sheets: list[RawSheet] = []
        for sname, df in all_dfs.items():
            sheet_name = str(sname)
            if len(df) > self._config.max_rows_in_memory:
                issues.append(self._too_many_rows(sheet_name, len(df)))
                continue
            issues.append(self._fallback_issue(sheet_name))
            sheets.append(
                RawSheet(
                    name=sheet_name,
                    rows=_frame_to_rows(df),
                    parser_used=ParserUsed.PANDAS_FALLBACK,
                )
            )
        return sheets

    # ------------------------------------------------------------------
    # Issue builders
    # ------------------------------------------------------------------

    def _too_many_rows(self, sheet_name: str, row_count: int) -> ConversionIssue:
        logger.warning(
            "Sheet '%s' exceeds max_rows_in_memory (%d > %d); skipped",
            sheet_name,
            row_count,
            self._config.max_rows_in_memory,
        )
        return ConversionIssue(
            code=ErrorCode.W_ROWS_TRUNCATED,
            message=(
                f"Sheet '{sheet_name}' has {row_count} rows, exceeding "
                f"max_rows_in_memory ({self._config.max_rows_in_memory}). "
                "Sheet skipped."
            ),
            sheet_name=sheet_name,
            stage="parse",
            recoverable=True,
        )

    @staticmethod
    def _fallback_issue(sheet_name: str) -> ConversionIssue:
        return ConversionIssue(
            code=ErrorCode.W_PARSER_FALLBACK,
            message=f"Sheet '{sheet_name}' parsed via pandas fallback.",
            sheet_name=sheet_name,
            stage="parse",
            recoverable=True,
        )
