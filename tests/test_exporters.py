"""Tests for DataFrame, CSV, JSON and xlsx renderings."""

from __future__ import annotations

import io
import json
from datetime import datetime

import openpyxl
import pytest

from marketflat.converter import ExcelConverter
from marketflat.exporters import (
    default_export_name,
    to_csv,
    to_dataframe,
    to_json,
    to_xlsx,
)
from marketflat.models import ConvertedExcelData


@pytest.fixture()
def converted(sample_config, fixed_clock, report_xlsx: bytes) -> ConvertedExcelData:
    return ExcelConverter(sample_config, clock=fixed_clock).convert(report_xlsx, "report.xlsx")


class TestDataFrame:
    def test_columns_without_provenance(self, converted: ConvertedExcelData) -> None:
        df = to_dataframe(converted)
        assert list(df.columns[:6]) == [
            "Title", "Regions", "Country", "Segments", "Units", "Product",
        ]
        assert list(df.columns[-1:]) == ["CAGR"]
        assert "id" not in df.columns
        assert len(df) == 8

    def test_with_provenance(self, converted: ConvertedExcelData) -> None:
        df = to_dataframe(converted, include_provenance=True)
        assert list(df.columns[-4:]) == ["id", "sourceSheet", "sourceRow", "level"]
        assert df.loc[0, "id"] == "Segment Analysis_1"
        assert df.loc[0, "level"] == "product"


class TestCsv:
    def test_header_line(self, converted: ConvertedExcelData) -> None:
        header = to_csv(converted).splitlines()[0]
        assert header.startswith("Title,Regions,Country,Segments,Units,Product,2021,2022")
        assert header.endswith("2034,CAGR")

    def test_row_count(self, converted: ConvertedExcelData) -> None:
        assert len(to_csv(converted).splitlines()) == 9


class TestJson:
    def test_camel_case_keys(self, converted: ConvertedExcelData) -> None:
        payload = json.loads(to_json(converted))
        assert set(payload) == {
            "originalData", "flatData", "summary", "conversionLog", "issues",
        }
        assert payload["originalData"]["fileName"] == "report.xlsx"
        assert payload["summary"]["totalRows"] == 8
        first = payload["flatData"][0]
        assert first["Product"] == "Hardware"
        assert first["sourceSheet"] == "Segment Analysis"
        assert first["2021"] == 10.0


class TestXlsx:
    def test_sheets(self, converted: ConvertedExcelData) -> None:
        wb = openpyxl.load_workbook(io.BytesIO(to_xlsx(converted)))
        try:
            assert wb.sheetnames == [
                "Market Data", "Summary", "Orig_Segment Analysis", "Orig_Countries",
            ]
            assert wb["Market Data"]["A1"].value == "Title"
            assert wb["Market Data"]["F2"].value == "Hardware"
            assert wb["Summary"]["A1"].value == "Excel Conversion Summary"
            assert wb["Summary"]["B4"].value == "report.xlsx"
            assert wb["Orig_Countries"]["A2"].value == "North America"
        finally:
            wb.close()

    def test_truncated_original_names_stay_unique(
        self, sample_config, fixed_clock, build_xlsx
    ) -> None:
        data = build_xlsx(
            {
                "Regional Market Size Analysis A": [["Region", 2021], ["Europe", 1]],
                "Regional Market Size Analysis B": [["Region", 2021], ["Asia Pacific", 2]],
            }
        )
        converted = ExcelConverter(sample_config, clock=fixed_clock).convert(data, "long.xlsx")
        wb = openpyxl.load_workbook(io.BytesIO(to_xlsx(converted)))
        try:
            assert wb.sheetnames == [
                "Market Data",
                "Summary",
                "Orig_Regional Market Size Analy",
                "Orig_Regional Market Size Ana_2",
            ]
            assert wb["Orig_Regional Market Size Ana_2"]["A2"].value == "Asia Pacific"
        finally:
            wb.close()

    def test_summary_lists_processing_log(self, converted: ConvertedExcelData) -> None:
        wb = openpyxl.load_workbook(io.BytesIO(to_xlsx(converted)))
        try:
            values = [row[0] for row in wb["Summary"].iter_rows(values_only=True)]
        finally:
            wb.close()
        assert "Processing Log" in values
        assert values[-1] == "Conversion complete: 8 total rows"


class TestDefaultExportName:
    def test_name(self, converted: ConvertedExcelData) -> None:
        name = default_export_name(converted, "csv", datetime(2026, 3, 4, 5, 6, 7))
        assert name == "Market_Data_report_20260304_050607.csv"

    def test_unsafe_characters_replaced(self, sample_config, fixed_clock, global_market_xlsx):
        converted = ExcelConverter(sample_config, clock=fixed_clock).convert(
            global_market_xlsx, "Q1 report (final).xlsx"
        )
        name = default_export_name(converted, ".xlsx", datetime(2026, 1, 1))
        assert name == "Market_Data_Q1_report_final_20260101_000000.xlsx"
