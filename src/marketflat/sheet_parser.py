"""Stage 1: workbook bytes -> :class:`~marketflat.models.ParsedExcelData`.

Each sheet is read by the :class:`~marketflat.parser_chain.ParserChain`,
trimmed, split into stacked tables, scanned for titles and units, and
classified.  Sheets are independently recoverable: a sheet without a header
is recorded in ``skipped_sheets`` and a classifier failure downgrades the
sheet to ``other``.  Only a workbook with no usable sheet raises.
"""

from __future__ import annotations

import hashlib
import logging
import time
from collections.abc import Callable
from datetime import datetime, timezone
from typing import Any

from marketflat.classifier import KeywordClassifier, SheetClassification
from marketflat.config import ConverterConfig
from marketflat.errors import ConversionIssue, ErrorCode, ParseError
from marketflat.models import (
    DetectedTable,
    ExcelSheetData,
    ParsedExcelData,
    ProcessingMethod,
    SheetMetadata,
    SheetType,
)
from marketflat.parser_chain import ParserChain, RawSheet
from marketflat.protocols import LabelClassifier
from marketflat.table_detector import (
    TableDetector,
    cell_text,
    is_year_like,
    row_text,
    trim_to_data_bounds,
)
from marketflat.units import detect_units

logger = logging.getLogger("marketflat")

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class SheetParser:
    """Turns raw workbook bytes into structured, classified sheets."""

    def __init__(
        self,
        config: ConverterConfig,
        classifier: LabelClassifier | None = None,
        clock: Clock | None = None,
    ) -> None:
        self._config = config
        self._classifier = classifier or KeywordClassifier(config)
        self._clock = clock or utc_now
        self._chain = ParserChain(config)
        self._detector = TableDetector(config)

    def parse(
        self, data: bytes, file_name: str, file_size: int | None = None
    ) -> ParsedExcelData:
        """Parse a workbook.

        Args:
            data: Raw workbook bytes (``.xlsx`` or ``.xls``).
            file_name: Declared file name, used for reporting only.
            file_size: Declared byte size; defaults to ``len(data)``.

        Raises:
            ParseError: The bytes are empty, too large, unreadable, or no
                sheet with an identifiable header remains.
        """
        start = time.monotonic()
        uploaded_at = self._clock().isoformat()

        if not data:
            raise ParseError(
                code=ErrorCode.E_PARSE_EMPTY,
                message="Workbook is empty (0 bytes).",
                stage="parse",
            )
        if len(data) > self._config.max_file_size_bytes:
            raise ParseError(
                code=ErrorCode.E_PARSE_TOO_LARGE,
                message=(
                    f"Workbook is {len(data)} bytes, exceeding "
                    f"max_file_size_bytes ({self._config.max_file_size_bytes})."
                ),
                stage="parse",
            )

        raw_sheets, issues = self._chain.read(data, file_name)

        sheets: list[ExcelSheetData] = []
        skipped: dict[str, str] = {
            issue.sheet_name: issue.message
            for issue in issues
            if issue.sheet_name and issue.code != ErrorCode.W_PARSER_FALLBACK
        }
        for raw in raw_sheets:
            try:
                sheets.append(self._build_sheet(raw, issues))
            except ParseError as exc:
                skipped[raw.name] = exc.message
                issues.append(exc.error)
                logger.warning("Skipped sheet '%s': %s", raw.name, exc.message)

        if not sheets:
            no_header = any(i.code == ErrorCode.E_PARSE_NO_HEADER for i in issues)
            logger.error("Parse failed: no usable sheets in %s", file_name)
            raise ParseError(
                code=ErrorCode.E_PARSE_NO_HEADER if no_header else ErrorCode.E_PARSE_EMPTY,
                message=(
                    "No sheet with an identifiable header row."
                    if no_header
                    else "No data sheets found in workbook."
                ),
                stage="parse",
            )

        parsed = ParsedExcelData(
            file_name=file_name,
            file_size=file_size if file_size is not None else len(data),
            sheets=sheets,
            uploaded_at=uploaded_at,
            parsed_at=self._clock().isoformat(),
            content_hash=hashlib.sha256(data).hexdigest(),
            parser_version=self._config.parser_version,
            skipped_sheets=skipped,
            issues=issues,
        )
        logger.info(
            "Parsed %s: %d sheets (%d skipped) in %.3fs",
            file_name,
            len(sheets),
            len(skipped),
            time.monotonic() - start,
        )
        return parsed

    # ------------------------------------------------------------------
    # Per-sheet
    # ------------------------------------------------------------------

    def _build_sheet(
        self, raw: RawSheet, issues: list[ConversionIssue]
    ) -> ExcelSheetData:
        grid, first_row, _first_col = trim_to_data_bounds(raw.rows)
        if not grid:
            raise ParseError(
                code=ErrorCode.E_PARSE_EMPTY,
                message=f"Sheet '{raw.name}' is empty.",
                sheet_name=raw.name,
                stage="parse",
                recoverable=True,
            )

        tables = self._detector.detect(grid)
        if not tables:
            raise ParseError(
                code=ErrorCode.E_PARSE_NO_HEADER,
                message=f"Sheet '{raw.name}' has no identifiable header row.",
                sheet_name=raw.name,
                stage="parse",
                recoverable=True,
            )

        # Parent headers: ordered union of every table's headers.
        headers: list[str] = []
        for table in tables:
            for name in table.headers:
                if name not in headers:
                    headers.append(name)
        positions = {name: i for i, name in enumerate(headers)}

        data: list[list[Any]] = []
        row_numbers: list[int] = []
        detected: list[DetectedTable] = []
        labels: list[str] = []
        for table in tables:
            data_start = len(data)
            label_name = next(
                (h for h in table.headers if not is_year_like(h)), table.headers[0]
            )
            for r in table.rows:
                source = grid[r]
                out: list[Any] = [None] * len(headers)
                for offset, name in enumerate(table.headers):
                    out[positions[name]] = source[table.start_col + offset]
                data.append(out)
                row_numbers.append(first_row + r + 1)
                label = cell_text(out[positions[label_name]])
                if label:
                    labels.append(label)
            detected.append(
                DetectedTable(
                    title=table.title,
                    headers=table.headers,
                    header_row=first_row + table.header_index + 1,
                    data_start=data_start,
                    data_end=len(data),
                    row_count=len(table.rows),
                )
            )

        titles: list[str] = []
        for title in [t.title for t in tables if t.title] + self._detector.scan_titles(grid):
            if title.lower() not in {t.lower() for t in titles}:
                titles.append(title)

        scan_rows = grid[: self._config.units_scan_rows]
        units = detect_units(
            headers + titles + [text for text in map(row_text, scan_rows) if text]
        )

        classification = self._classify(raw.name, headers, labels, issues)

        metadata = SheetMetadata(
            original_row_count=len(raw.rows),
            tables_detected=len(tables),
            processing_method=(
                ProcessingMethod.MULTI_TABLE if len(tables) > 1 else ProcessingMethod.SINGLE_TABLE
            ),
            table_titles=titles,
            units_from_data=units,
            parser_used=raw.parser_used,
            tables=detected,
            classification_confidence=classification.confidence,
        )
        logger.debug(
            "Sheet '%s': %d table(s), %d rows, type=%s (%s)",
            raw.name,
            len(tables),
            len(data),
            classification.sheet_type.value,
            classification.reasoning,
        )
        return ExcelSheetData(
            sheet_name=raw.name,
            headers=headers,
            data=data,
            row_count=len(data),
            column_count=len(headers),
            sheet_type=classification.sheet_type,
            table_count=len(tables) if len(tables) > 1 else None,
            metadata=metadata,
            row_numbers=row_numbers,
        )

    def _classify(
        self,
        sheet_name: str,
        headers: list[str],
        labels: list[str],
        issues: list[ConversionIssue],
    ) -> SheetClassification:
        try:
            result = self._classifier.classify_sheet(sheet_name, headers, labels)
        except Exception as exc:
            logger.warning(
                "Classification failed for sheet '%s'; using 'other'",
                sheet_name,
                exc_info=True,
            )
            issues.append(
                ConversionIssue(
                    code=ErrorCode.W_CLASSIFY_FAILED,
                    message=f"Sheet '{sheet_name}' could not be classified: {exc}",
                    sheet_name=sheet_name,
                    stage="classify",
                    recoverable=True,
                )
            )
            return SheetClassification(
                sheet_type=SheetType.OTHER,
                confidence=0.0,
                reasoning=f"classifier error: {exc}",
            )

        if result.sheet_type == SheetType.OTHER:
            issues.append(
                ConversionIssue(
                    code=ErrorCode.W_CLASSIFY_AMBIGUOUS,
                    message=f"Sheet '{sheet_name}': no type match ({result.reasoning}).",
                    sheet_name=sheet_name,
                    stage="classify",
                    recoverable=True,
                )
            )
        return result
