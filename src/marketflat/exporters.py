"""In-memory renderings of a :class:`ConvertedExcelData` artifact.

Every function returns a value (``str``, ``bytes`` or a DataFrame); nothing
here touches the filesystem.  Callers decide where the output goes.
"""

from __future__ import annotations

import io
import logging
import pathlib
import re
from datetime import datetime
from typing import Any

import pandas as pd

from marketflat.models import PROVENANCE_COLUMNS, ConvertedExcelData

logger = logging.getLogger("marketflat")

DATA_SHEET = "Market Data"
SUMMARY_SHEET = "Summary"
MAX_ORIGINAL_SHEETS = 3
_EXCEL_SHEET_NAME_LIMIT = 31


def to_dataframe(
    converted: ConvertedExcelData, include_provenance: bool = False
) -> pd.DataFrame:
    """Flat rows as a DataFrame, columns in ``summary.columns`` order.

    Provenance columns (id, sourceSheet, sourceRow, level) are dropped
    unless *include_provenance* is set.
    """
    columns = [
        col
        for col in converted.summary.columns
        if include_provenance or col not in PROVENANCE_COLUMNS
    ]
    records = [row.to_record() for row in converted.flat_data]
    return pd.DataFrame.from_records(records, columns=columns)


def to_csv(converted: ConvertedExcelData, include_provenance: bool = False) -> str:
    return to_dataframe(converted, include_provenance).to_csv(index=False)


def to_json(converted: ConvertedExcelData, indent: int | None = 2) -> str:
    """The whole artifact as camelCase JSON; flat rows render as records."""
    return converted.model_dump_json(by_alias=True, indent=indent)


def _summary_rows(converted: ConvertedExcelData) -> list[list[Any]]:
    original = converted.original_data
    summary = converted.summary
    rows: list[list[Any]] = [
        ["Excel Conversion Summary", ""],
        ["", ""],
        ["File Information", ""],
        ["Original File", original.file_name],
        ["File Size", f"{original.file_size / 1024 / 1024:.2f} MB"],
        ["Sheets Processed", len(original.sheets)],
        ["Conversion Date", original.parsed_at],
        ["", ""],
        ["Data Summary", ""],
        ["Total Data Rows", summary.total_rows],
        ["Global Rows", summary.global_rows],
        ["Regional Rows", summary.regional_rows],
        ["Country Rows", summary.country_rows],
        ["Product Rows", summary.product_rows],
        ["Segment Rows", summary.segment_rows],
        ["", ""],
        ["Output Columns", ""],
    ]
    rows.extend([col, ""] for col in summary.columns)
    rows.append(["", ""])
    rows.append(["Processing Log", ""])
    rows.extend([entry, ""] for entry in converted.conversion_log)
    return rows


def _unique_sheet_name(name: str, used: set[str]) -> str:
    """Truncate *name* to Excel's limit, adding ``_2``, ``_3`` ... on collision."""
    candidate = name[:_EXCEL_SHEET_NAME_LIMIT]
    taken = {u.lower() for u in used}
    n = 1
    while candidate.lower() in taken:
        n += 1
        suffix = f"_{n}"
        candidate = name[: _EXCEL_SHEET_NAME_LIMIT - len(suffix)] + suffix
    return candidate


def to_xlsx(converted: ConvertedExcelData, include_provenance: bool = False) -> bytes:
    """Workbook with a "Market Data" sheet, a "Summary" sheet and copies of
    the first few original sheets (``Orig_<name>``)."""
    buffer = io.BytesIO()
    with pd.ExcelWriter(buffer, engine="openpyxl") as writer:
        to_dataframe(converted, include_provenance).to_excel(
            writer, sheet_name=DATA_SHEET, index=False
        )
        pd.DataFrame(_summary_rows(converted)).to_excel(
            writer, sheet_name=SUMMARY_SHEET, index=False, header=False
        )
        used = {DATA_SHEET, SUMMARY_SHEET}
        for sheet in converted.original_data.sheets[:MAX_ORIGINAL_SHEETS]:
            if not sheet.data:
                continue
            name = _unique_sheet_name(f"Orig_{sheet.sheet_name}", used)
            used.add(name)
            pd.DataFrame(sheet.data, columns=sheet.headers).to_excel(
                writer, sheet_name=name, index=False
            )
    logger.debug(
        "Rendered %d rows of %s to xlsx",
        len(converted.flat_data),
        converted.original_data.file_name,
    )
    return buffer.getvalue()


def default_export_name(
    converted: ConvertedExcelData, extension: str, timestamp: datetime
) -> str:
    """``Market_Data_<source stem>_<YYYYmmdd_HHMMSS>.<extension>``."""
    stem = pathlib.Path(converted.original_data.file_name).stem
    stem = re.sub(r"[^\w\-]+", "_", stem).strip("_") or "workbook"
    return f"Market_Data_{stem}_{timestamp:%Y%m%d_%H%M%S}.{extension.lstrip('.')}"
