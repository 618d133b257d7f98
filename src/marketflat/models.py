"""Pydantic data models and enumerations for marketflat.

Stage 1 (:mod:`marketflat.sheet_parser`) produces :class:`ParsedExcelData`;
stage 2 (:mod:`marketflat.flattener`) turns it into
:class:`ConvertedExcelData`.  Models that cross the output boundary
serialise with camelCase aliases (``model_dump(by_alias=True)``).
"""

from __future__ import annotations

import math
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_serializer, model_validator
from pydantic.alias_generators import to_camel

from marketflat.errors import ConversionIssue


# ---------------------------------------------------------------------------
# Enumerations
# ---------------------------------------------------------------------------


class SheetType(str, Enum):
    """Hierarchy classification of a whole worksheet.

    ``OTHER`` is the fallback when no keyword evidence is found; the
    flattener then emits the sheet's rows without hierarchy grouping.
    """

    GLOBAL = "global"
    REGIONAL = "regional"
    COUNTRY = "country"
    PRODUCT = "product"
    SEGMENT = "segment"
    OTHER = "other"


class RowLevel(str, Enum):
    """Position of an output row in the global -> segment hierarchy."""

    GLOBAL = "global"
    REGIONAL = "regional"
    COUNTRY = "country"
    PRODUCT = "product"
    SEGMENT = "segment"

    @property
    def depth(self) -> int:
        return _LEVEL_DEPTH[self]


_LEVEL_DEPTH = {
    RowLevel.GLOBAL: 0,
    RowLevel.REGIONAL: 1,
    RowLevel.COUNTRY: 2,
    RowLevel.PRODUCT: 3,
    RowLevel.SEGMENT: 4,
}


class ProcessingMethod(str, Enum):
    """How a sheet's tables were assembled into one grid."""

    SINGLE_TABLE = "single-table"
    MULTI_TABLE = "multi-table"


class ParserUsed(str, Enum):
    """Which reader in the fallback chain produced a sheet's grid."""

    OPENPYXL = "openpyxl"
    PANDAS_FALLBACK = "pandas_fallback"


# ---------------------------------------------------------------------------
# Stage 1: parsed workbook
# ---------------------------------------------------------------------------


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class DetectedTable(_CamelModel):
    """One stacked table found inside a worksheet.

    ``data_start`` / ``data_end`` slice the parent sheet's ``data`` grid;
    ``header_row`` is the 1-based worksheet row of the table's header.
    """

    model_config = ConfigDict(frozen=True)

    title: str | None = None
    headers: list[str]
    header_row: int
    data_start: int
    data_end: int
    row_count: int


class SheetMetadata(_CamelModel):
    """Provenance and detection details for one worksheet."""

    model_config = ConfigDict(frozen=True)

    original_row_count: int
    tables_detected: int
    processing_method: ProcessingMethod
    table_titles: list[str] = []
    units_from_data: str | None = None
    parser_used: ParserUsed = ParserUsed.OPENPYXL
    tables: list[DetectedTable] = []
    classification_confidence: float = 0.0


class ExcelSheetData(_CamelModel):
    """Structured form of one worksheet.

    ``data`` is rectangular: every row holds exactly ``column_count`` cells
    aligned with ``headers``.  ``row_numbers`` maps each data row back to its
    1-based worksheet row.
    """

    model_config = ConfigDict(frozen=True)

    sheet_name: str
    headers: list[str]
    data: list[list[Any]]
    row_count: int
    column_count: int
    sheet_type: SheetType = Field(default=SheetType.OTHER, alias="type")
    table_count: int | None = None
    metadata: SheetMetadata | None = None
    row_numbers: list[int] = []

    @model_validator(mode="after")
    def _check_shape(self) -> ExcelSheetData:
        if len(self.data) != self.row_count:
            raise ValueError(
                f"row_count {self.row_count} does not match "
                f"{len(self.data)} data rows"
            )
        if len(self.headers) != self.column_count:
            raise ValueError(
                f"column_count {self.column_count} does not match "
                f"{len(self.headers)} headers"
            )
        for idx, row in enumerate(self.data):
            if len(row) != self.column_count:
                raise ValueError(
                    f"data row {idx} has {len(row)} cells, "
                    f"expected {self.column_count}"
                )
        if self.row_numbers and len(self.row_numbers) != len(self.data):
            raise ValueError("row_numbers must be empty or match data length")
        return self

    def source_row(self, index: int) -> int:
        """1-based worksheet row for data row *index*."""
        if self.row_numbers:
            return self.row_numbers[index]
        return index + 1


class ParsedExcelData(_CamelModel):
    """Root artifact of stage 1.  Read-only input to the flattener."""

    model_config = ConfigDict(frozen=True)

    file_name: str
    file_size: int
    sheets: list[ExcelSheetData]
    uploaded_at: str
    parsed_at: str
    content_hash: str = ""
    parser_version: str = ""
    skipped_sheets: dict[str, str] = {}
    issues: list[ConversionIssue] = []


# ---------------------------------------------------------------------------
# Stage 2: flattened output
# ---------------------------------------------------------------------------


class FlatDataRow(BaseModel):
    """One normalized output record.

    ``years`` holds one entry per configured year column; each value is a
    number or the placeholder string.  ``extra`` carries source-specific
    columns.  Use :meth:`to_record` for the flat, ordered output shape.
    """

    model_config = ConfigDict(frozen=True)

    title: str
    regions: str
    country: str
    segments: str
    units: str
    product: str
    years: dict[str, float | str]
    cagr: float | str
    id: str
    source_sheet: str
    source_row: int
    level: RowLevel
    extra: dict[str, Any] = {}

    @model_validator(mode="after")
    def _check_finite(self) -> FlatDataRow:
        for year, value in self.years.items():
            if isinstance(value, float) and not math.isfinite(value):
                raise ValueError(f"year {year} holds a non-finite value")
        if isinstance(self.cagr, float) and not math.isfinite(self.cagr):
            raise ValueError("CAGR must be finite")
        return self

    def to_record(self) -> dict[str, Any]:
        """Render the row as an ordered flat dict of output columns."""
        record: dict[str, Any] = {
            "Title": self.title,
            "Regions": self.regions,
            "Country": self.country,
            "Segments": self.segments,
            "Units": self.units,
            "Product": self.product,
        }
        record.update(self.years)
        record["CAGR"] = self.cagr
        record["id"] = self.id
        record["sourceSheet"] = self.source_sheet
        record["sourceRow"] = self.source_row
        record["level"] = self.level.value
        for key, value in self.extra.items():
            record.setdefault(key, value)
        return record


STANDARD_COLUMNS = ("Title", "Regions", "Country", "Segments", "Units", "Product")
PROVENANCE_COLUMNS = ("id", "sourceSheet", "sourceRow", "level")


class ConversionSummary(_CamelModel):
    """Per-level row counts and the ordered union of output columns."""

    total_rows: int = 0
    global_rows: int = 0
    regional_rows: int = 0
    country_rows: int = 0
    product_rows: int = 0
    segment_rows: int = 0
    columns: list[str] = []


class ConvertedExcelData(_CamelModel):
    """Final artifact: original parse, flat rows, summary and audit log."""

    model_config = ConfigDict(frozen=True)

    original_data: ParsedExcelData
    flat_data: list[FlatDataRow]
    summary: ConversionSummary
    conversion_log: list[str]
    issues: list[ConversionIssue] = []

    @field_serializer("flat_data")
    def _serialize_flat_data(self, rows: list[FlatDataRow]) -> list[dict[str, Any]]:
        return [row.to_record() for row in rows]
