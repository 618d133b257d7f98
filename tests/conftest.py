"""Shared test fixtures for marketflat tests.

Provides a default ``sample_config``, a fixed clock for reproducible
timestamps, and openpyxl-built workbooks returned as raw bytes.
"""

from __future__ import annotations

import io
from collections.abc import Callable
from datetime import datetime, timezone
from typing import Any

import openpyxl
import pytest

from marketflat.config import ConverterConfig

FIXED_NOW = datetime(2026, 1, 1, tzinfo=timezone.utc)


def make_xlsx(sheets: dict[str, list[list[Any]]]) -> bytes:
    """Build an .xlsx workbook in memory.  An empty row list appends a blank row."""
    wb = openpyxl.Workbook()
    wb.remove(wb.active)
    for name, rows in sheets.items():
        ws = wb.create_sheet(name)
        for row in rows:
            ws.append(row)
    buffer = io.BytesIO()
    wb.save(buffer)
    wb.close()
    return buffer.getvalue()


@pytest.fixture()
def sample_config() -> ConverterConfig:
    """Return a ConverterConfig with all defaults."""
    return ConverterConfig()


@pytest.fixture()
def fixed_clock() -> Callable[[], datetime]:
    return lambda: FIXED_NOW


@pytest.fixture()
def build_xlsx() -> Callable[[dict[str, list[list[Any]]]], bytes]:
    return make_xlsx


@pytest.fixture()
def global_market_xlsx() -> bytes:
    """A "Global Market" sheet: header [Region, 2021, 2022], one row [Global, 100, 110]."""
    return make_xlsx(
        {"Global Market": [["Region", 2021, 2022], ["Global", 100, 110]]}
    )


@pytest.fixture()
def stacked_tables_xlsx() -> bytes:
    """Two tables on one sheet separated by a blank row."""
    return make_xlsx(
        {
            "Regional Data": [
                ["Region", 2021, 2022],
                ["North America", 10, 12],
                ["Europe", 8, 9],
                [],
                ["Country", 2021, 2022],
                ["U.S.", 5, 6],
                ["Germany", 3, 4],
            ]
        }
    )


@pytest.fixture()
def report_xlsx() -> bytes:
    """A report-style workbook with a title row, units and grouping rows."""
    return make_xlsx(
        {
            "Segment Analysis": [
                ["Cloud Market Size by Application, 2021 - 2034 (USD Billion)"],
                [],
                ["Segment", 2021, 2022, 2023],
                ["Hardware", 10, 11, 12.1],
                ["Servers", 4, 5, 6],
                ["Storage", 6, 6, 6.1],
                ["Europe", 3, 3, 3],
                ["Analytics", 1, 2, 4],
            ],
            "Countries": [
                ["Country", 2021, 2022],
                ["North America", 100, 120],
                ["U.S.", 80, 100],
                ["Canada", 20, 20],
            ],
        }
    )
