"""Stage 2: :class:`ParsedExcelData` -> :class:`ConvertedExcelData`.

Rows are walked top to bottom per table.  Each label is classified; a match
is a grouping row that is emitted at its own level and updates the running
:class:`HierarchyContext`, anything else is a leaf emitted at the level the
sheet type implies.  Every row is emitted; nothing is dropped for being
unclassifiable or unparseable.

Output is a pure function of the input: ids come from one counter per
workbook, columns are collected in first-seen order, and no wall-clock or
random state is read here.
"""

from __future__ import annotations

import itertools
import logging
import math
import time
from collections.abc import Iterator, Mapping
from types import MappingProxyType
from typing import Any

from pydantic import BaseModel, ConfigDict

from marketflat.classifier import KeywordClassifier, LabelContext
from marketflat.config import ConverterConfig
from marketflat.errors import ConversionIssue, ErrorCode, StructuralInvalidError
from marketflat.models import (
    PROVENANCE_COLUMNS,
    STANDARD_COLUMNS,
    ConversionSummary,
    ConvertedExcelData,
    DetectedTable,
    ExcelSheetData,
    FlatDataRow,
    ParsedExcelData,
    ParserUsed,
    RowLevel,
    SheetType,
)
from marketflat.protocols import LabelClassifier
from marketflat.table_detector import cell_text, is_empty_cell, is_year_like
from marketflat.units import extract_by_segment, strip_unit_text, units_from_text

logger = logging.getLogger("marketflat")

LEAF_LEVELS: dict[SheetType, RowLevel] = {
    SheetType.GLOBAL: RowLevel.SEGMENT,
    SheetType.REGIONAL: RowLevel.REGIONAL,
    SheetType.COUNTRY: RowLevel.COUNTRY,
    SheetType.PRODUCT: RowLevel.PRODUCT,
    SheetType.SEGMENT: RowLevel.SEGMENT,
    SheetType.OTHER: RowLevel.SEGMENT,
}

# Source column headers that name a hierarchy field rather than extra data.
FIELD_COLUMNS: dict[str, RowLevel] = {
    "region": RowLevel.REGIONAL,
    "regions": RowLevel.REGIONAL,
    "country": RowLevel.COUNTRY,
    "countries": RowLevel.COUNTRY,
    "product": RowLevel.PRODUCT,
    "products": RowLevel.PRODUCT,
    "segment": RowLevel.SEGMENT,
    "segments": RowLevel.SEGMENT,
}

_CONTEXT_FIELDS = ("title", "regions", "country", "product", "segment")


# ---------------------------------------------------------------------------
# CAGR
# ---------------------------------------------------------------------------


def compute_cagr(
    years: Mapping[str, float | str], decimals: int = 6, placeholder: str = ""
) -> float | str:
    """Compound annual growth between the first and last numeric year values.

    ``n`` is the number of years spanned, not the number of values.  Returns
    *placeholder* when fewer than two numeric values exist, the start is not
    positive, the end is negative, or the result is not finite.
    """
    points: list[tuple[int, float]] = []
    for year, value in years.items():
        if isinstance(value, float) and math.isfinite(value):
            try:
                points.append((int(year), value))
            except ValueError:
                continue
    if len(points) < 2:
        return placeholder

    points.sort()
    (first_year, start), (last_year, end) = points[0], points[-1]
    periods = last_year - first_year
    if periods <= 0 or start <= 0 or end < 0:
        return placeholder

    try:
        result = (end / start) ** (1.0 / periods) - 1.0
    except (OverflowError, ZeroDivisionError):
        return placeholder
    if isinstance(result, complex) or not math.isfinite(result):
        return placeholder
    return round(result, decimals)


# ---------------------------------------------------------------------------
# Column map and context
# ---------------------------------------------------------------------------


class ColumnMap:
    """Read-only header lookup for one sheet, built before its rows are walked."""

    def __init__(self, headers: list[str], year_columns: list[str]) -> None:
        self.positions: Mapping[str, int] = MappingProxyType(
            {name: i for i, name in enumerate(headers)}
        )
        self.year_positions: Mapping[str, int] = MappingProxyType(
            {year: self.positions[year] for year in year_columns if year in self.positions}
        )
        self.headers: tuple[str, ...] = tuple(headers)

    def label_index(self, table_headers: list[str], rows: list[list[Any]]) -> int:
        """First non-year column of the table whose values are mostly text."""
        candidates = [
            self.positions[name]
            for name in table_headers
            if name in self.positions and not is_year_like(name)
        ]
        for idx in candidates:
            values = [row[idx] for row in rows if not is_empty_cell(row[idx])]
            if values and sum(isinstance(v, str) for v in values) * 2 >= len(values):
                return idx
        return candidates[0] if candidates else 0

    def field_positions(self, label_idx: int) -> list[tuple[RowLevel, int]]:
        """Non-label columns whose header names a hierarchy field, shallowest first."""
        found = [
            (FIELD_COLUMNS[name.strip().lower()], idx)
            for name, idx in self.positions.items()
            if idx != label_idx and name.strip().lower() in FIELD_COLUMNS
        ]
        return sorted(found, key=lambda item: (item[0].depth, item[1]))

    def extra_positions(self, label_idx: int, reserved: set[str]) -> list[tuple[str, int]]:
        skip = set(self.year_positions.values())
        skip.update(idx for _, idx in self.field_positions(label_idx))
        return [
            (name, idx)
            for name, idx in self.positions.items()
            if idx != label_idx and idx not in skip and name not in reserved
        ]


class HierarchyContext(BaseModel):
    """Running Title/Regions/Country/Product/Segment values for one table.

    Immutable: :meth:`enter` returns a new context.  ``category`` is the
    ``By <segment>`` default taken from the table title and is never reset.
    """

    model_config = ConfigDict(frozen=True)

    title: str = ""
    regions: str = ""
    country: str = ""
    product: str = ""
    segment: str = ""
    category: str = ""

    def enter(self, level: RowLevel, value: str) -> HierarchyContext:
        """Set *level* to *value* and clear every strictly lower level."""
        update = {name: "" for name in _CONTEXT_FIELDS[level.depth + 1 :]}
        update[_CONTEXT_FIELDS[level.depth]] = value
        return self.model_copy(update=update)

    def fill(self, level: RowLevel, value: str) -> HierarchyContext:
        """Set *level* to *value*, leaving every other level as it is."""
        return self.model_copy(update={_CONTEXT_FIELDS[level.depth]: value})

    @property
    def segments(self) -> str:
        return self.segment or self.category


# ---------------------------------------------------------------------------
# Flattener
# ---------------------------------------------------------------------------


class Flattener:
    """Flattens parsed sheets into :class:`FlatDataRow` records."""

    def __init__(
        self, config: ConverterConfig, classifier: LabelClassifier | None = None
    ) -> None:
        self._config = config
        self._classifier = classifier or KeywordClassifier(config)
        self._reserved = {
            *STANDARD_COLUMNS,
            *PROVENANCE_COLUMNS,
            *config.year_columns,
            "CAGR",
        }

    def flatten(self, parsed: ParsedExcelData) -> ConvertedExcelData:
        """Convert *parsed* into flat rows, a summary and a conversion log.

        Raises:
            StructuralInvalidError: *parsed* has no sheets, or a sheet has no
                header columns.  Nothing is returned in that case.
        """
        self._validate(parsed)
        start = time.monotonic()

        log = [
            f"Starting conversion of {len(parsed.sheets)} sheet(s) from {parsed.file_name}"
        ]
        for name, reason in parsed.skipped_sheets.items():
            log.append(f"Sheet '{name}': skipped during parse ({reason})")

        issues: list[ConversionIssue] = list(parsed.issues)
        rows: list[FlatDataRow] = []
        counter = itertools.count(1)

        for sheet in parsed.sheets:
            sheet_rows, notes = self._flatten_sheet(sheet, counter, issues)
            rows.extend(sheet_rows)
            entry = (
                f"Sheet '{sheet.sheet_name}': type={sheet.sheet_type.value}, "
                f"tables={sheet.table_count or 1}, rows processed={sheet.row_count}, "
                f"rows emitted={len(sheet_rows)}"
            )
            if notes:
                entry += "; " + "; ".join(notes)
            log.append(entry)

        summary = self._summarize(rows)
        log.append(f"Conversion complete: {summary.total_rows} total rows")
        logger.info(
            "Flattened %s: %d rows from %d sheets in %.3fs",
            parsed.file_name,
            summary.total_rows,
            len(parsed.sheets),
            time.monotonic() - start,
        )
        return ConvertedExcelData(
            original_data=parsed,
            flat_data=rows,
            summary=summary,
            conversion_log=log,
            issues=issues,
        )

    # ------------------------------------------------------------------
    # Validation
    # ------------------------------------------------------------------

    @staticmethod
    def _validate(parsed: ParsedExcelData) -> None:
        if not parsed.sheets:
            raise StructuralInvalidError(
                code=ErrorCode.E_STRUCTURE_NO_SHEETS,
                message=f"Parsed workbook '{parsed.file_name}' contains no sheets.",
                stage="flatten",
            )
        for sheet in parsed.sheets:
            if sheet.column_count == 0 or not sheet.headers:
                raise StructuralInvalidError(
                    code=ErrorCode.E_STRUCTURE_NO_COLUMNS,
                    message=f"Sheet '{sheet.sheet_name}' has no header columns.",
                    sheet_name=sheet.sheet_name,
                    stage="flatten",
                )

    # ------------------------------------------------------------------
    # Per-sheet
    # ------------------------------------------------------------------

    def _flatten_sheet(
        self,
        sheet: ExcelSheetData,
        counter: Iterator[int],
        issues: list[ConversionIssue],
    ) -> tuple[list[FlatDataRow], list[str]]:
        columns = ColumnMap(sheet.headers, self._config.year_columns)
        notes: list[str] = []

        if not columns.year_positions:
            notes.append("no recognised year columns, year fields left empty")
            issues.append(
                ConversionIssue(
                    code=ErrorCode.W_NO_YEAR_COLUMNS,
                    message=f"Sheet '{sheet.sheet_name}' has none of the year columns.",
                    sheet_name=sheet.sheet_name,
                    stage="flatten",
                    recoverable=True,
                )
            )
        if sheet.sheet_type == SheetType.OTHER:
            notes.append("no type match, defaulting to flat emission")
        if sheet.metadata and sheet.metadata.parser_used != ParserUsed.OPENPYXL:
            notes.append(f"read via {sheet.metadata.parser_used.value}")

        units = self._resolve_units(sheet)
        leaf_level = LEAF_LEVELS[sheet.sheet_type]
        rows: list[FlatDataRow] = []

        for table in self._tables(sheet):
            table_rows = sheet.data[table.data_start : table.data_end]
            label_idx = columns.label_index(table.headers, table_rows)
            fields = columns.field_positions(label_idx)
            extras = columns.extra_positions(label_idx, self._reserved)
            context = HierarchyContext(
                title=self._config.default_title,
                category=(
                    extract_by_segment(table.title)
                    or extract_by_segment(sheet.sheet_name)
                    or ""
                ),
            )
            for index in range(table.data_start, table.data_end):
                row, context = self._flatten_row(
                    sheet, index, columns, label_idx, fields, extras,
                    context, leaf_level, units, counter, issues,
                )
                rows.append(row)

        return rows, notes

    @staticmethod
    def _tables(sheet: ExcelSheetData) -> list[DetectedTable]:
        if sheet.metadata and sheet.metadata.tables:
            return sheet.metadata.tables
        return [
            DetectedTable(
                headers=sheet.headers,
                header_row=0,
                data_start=0,
                data_end=sheet.row_count,
                row_count=sheet.row_count,
            )
        ]

    def _resolve_units(self, sheet: ExcelSheetData) -> str:
        if sheet.metadata and sheet.metadata.units_from_data:
            return sheet.metadata.units_from_data
        titles = sheet.metadata.table_titles if sheet.metadata else []
        return units_from_text(" ".join([sheet.sheet_name, *titles])) or self._config.default_units

    # ------------------------------------------------------------------
    # Per-row
    # ------------------------------------------------------------------

    def _flatten_row(
        self,
        sheet: ExcelSheetData,
        index: int,
        columns: ColumnMap,
        label_idx: int,
        fields: list[tuple[RowLevel, int]],
        extras: list[tuple[str, int]],
        context: HierarchyContext,
        leaf_level: RowLevel,
        units: str,
        counter: Iterator[int],
        issues: list[ConversionIssue],
    ) -> tuple[FlatDataRow, HierarchyContext]:
        cells = sheet.data[index]
        source_row = sheet.source_row(index)
        label = self._label(cells, label_idx)
        years = self._year_values(cells, columns, sheet.sheet_name, source_row, issues)

        field_idx = {idx for _, idx in fields}
        has_values = any(
            not is_empty_cell(v)
            for i, v in enumerate(cells)
            if i != label_idx and i not in field_idx
        )
        match = self._classifier.classify_label(
            label,
            LabelContext(
                sheet_name=sheet.sheet_name,
                sheet_type=sheet.sheet_type,
                is_first_row=index == 0,
                has_values=has_values,
            ),
        )

        if not label:
            issues.append(
                ConversionIssue(
                    code=ErrorCode.W_ROW_UNLABELED,
                    message=f"Row {source_row} of sheet '{sheet.sheet_name}' has no label.",
                    sheet_name=sheet.sheet_name,
                    row=source_row,
                    stage="flatten",
                    recoverable=True,
                )
            )

        product_label = strip_unit_text(label) or label
        if match.level is not None:
            level = match.level
            value = match.canonical or label
            if level == RowLevel.PRODUCT:
                value = product_label
            context = context.enter(level, value)
            emitted = context
        else:
            level = leaf_level
            emitted = self._leaf_context(context, level, label, product_label)

        # Explicit Region/Country/Product/Segment columns win over inherited values.
        for field_level, idx in fields:
            value = cell_text(cells[idx])
            if value:
                emitted = emitted.fill(field_level, value)
                if field_level.depth > level.depth:
                    level = field_level

        if self._config.log_sample_data:
            logger.debug(
                "Sheet '%s' row %d: label=%r level=%s",
                sheet.sheet_name, source_row, label, level.value,
            )

        row = FlatDataRow(
            title=emitted.title,
            regions=emitted.regions,
            country=emitted.country,
            segments=emitted.segments,
            units=units,
            product=emitted.product,
            years=years,
            cagr=compute_cagr(years, self._config.cagr_decimals, self._config.placeholder),
            id=f"{sheet.sheet_name}_{next(counter)}",
            source_sheet=sheet.sheet_name,
            source_row=source_row,
            level=level,
            extra=self._extras(cells, extras),
        )
        return row, context

    @staticmethod
    def _leaf_context(
        context: HierarchyContext, level: RowLevel, label: str, product_label: str
    ) -> HierarchyContext:
        if level == RowLevel.PRODUCT:
            return context.enter(level, product_label)
        if level != RowLevel.SEGMENT:
            return context.enter(level, label)
        if context.product:
            return context.enter(RowLevel.SEGMENT, label)
        return context.model_copy(
            update={"product": product_label, "segment": context.segments or label}
        )

    def _label(self, cells: list[Any], label_idx: int) -> str:
        label = cell_text(cells[label_idx]) if label_idx < len(cells) else ""
        if label:
            return label
        for val in cells[: self._config.label_scan_columns]:
            if isinstance(val, str) and val.strip():
                return val.strip()
        return ""

    def _year_values(
        self,
        cells: list[Any],
        columns: ColumnMap,
        sheet_name: str,
        source_row: int,
        issues: list[ConversionIssue],
    ) -> dict[str, float | str]:
        placeholder = self._config.placeholder
        years: dict[str, float | str] = {}
        failed: list[str] = []
        for year in self._config.year_columns:
            pos = columns.year_positions.get(year)
            if pos is None or is_empty_cell(cells[pos]):
                years[year] = placeholder
                continue
            value = _coerce_number(cells[pos])
            if isinstance(value, str):
                failed.append(year)
            years[year] = value

        if failed:
            issues.append(
                ConversionIssue(
                    code=ErrorCode.W_NUMERIC_COERCION,
                    message=(
                        f"Row {source_row} of sheet '{sheet_name}': non-numeric "
                        f"values kept as text for {', '.join(failed)}."
                    ),
                    sheet_name=sheet_name,
                    row=source_row,
                    stage="flatten",
                    recoverable=True,
                )
            )
        return years

    @staticmethod
    def _extras(cells: list[Any], extras: list[tuple[str, int]]) -> dict[str, Any]:
        result: dict[str, Any] = {}
        for name, idx in extras:
            val = cells[idx]
            if is_empty_cell(val):
                continue
            if isinstance(val, (bool, int, float, str)):
                result[name] = val.strip() if isinstance(val, str) else val
            else:
                result[name] = cell_text(val)
        return result

    @staticmethod
    def _summarize(rows: list[FlatDataRow]) -> ConversionSummary:
        counts = dict.fromkeys(RowLevel, 0)
        columns: dict[str, None] = {}
        for row in rows:
            counts[row.level] += 1
            for key in row.to_record():
                columns.setdefault(key, None)
        return ConversionSummary(
            total_rows=len(rows),
            global_rows=counts[RowLevel.GLOBAL],
            regional_rows=counts[RowLevel.REGIONAL],
            country_rows=counts[RowLevel.COUNTRY],
            product_rows=counts[RowLevel.PRODUCT],
            segment_rows=counts[RowLevel.SEGMENT],
            columns=list(columns),
        )


def _coerce_number(val: object) -> float | str:
    """Numbers (not bools) and numeric strings become floats; the rest is text."""
    if isinstance(val, bool):
        return str(val)
    if isinstance(val, (int, float)):
        number = float(val)
        return number if math.isfinite(number) else str(val)
    text = cell_text(val)
    try:
        number = float(text.replace(",", ""))
    except ValueError:
        return text
    return number if math.isfinite(number) else text
