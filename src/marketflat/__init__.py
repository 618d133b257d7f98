"""marketflat -- flattens multi-level market-research workbooks.

Public API exports for models, enums, errors, configuration, the two
pipeline stages and the orchestrator.
"""

from marketflat.classifier import (
    KeywordClassifier,
    LabelContext,
    LabelMatch,
    SheetClassification,
)
from marketflat.config import ConverterConfig
from marketflat.converter import ExcelConverter, create_default_converter
from marketflat.errors import (
    ConversionError,
    ConversionIssue,
    ErrorCode,
    ParseError,
    StructuralInvalidError,
)
from marketflat.exporters import (
    default_export_name,
    to_csv,
    to_dataframe,
    to_json,
    to_xlsx,
)
from marketflat.flattener import ColumnMap, Flattener, HierarchyContext, compute_cagr
from marketflat.models import (
    ConversionSummary,
    ConvertedExcelData,
    DetectedTable,
    ExcelSheetData,
    FlatDataRow,
    ParsedExcelData,
    ParserUsed,
    ProcessingMethod,
    RowLevel,
    SheetMetadata,
    SheetType,
)
from marketflat.parser_chain import ParserChain
from marketflat.protocols import LabelClassifier
from marketflat.sheet_parser import SheetParser
from marketflat.table_detector import TableDetector

__all__ = [
    # Enums
    "SheetType",
    "RowLevel",
    "ProcessingMethod",
    "ParserUsed",
    # Stage 1 models
    "DetectedTable",
    "SheetMetadata",
    "ExcelSheetData",
    "ParsedExcelData",
    # Stage 2 models
    "FlatDataRow",
    "ConversionSummary",
    "ConvertedExcelData",
    # Parsing
    "ParserChain",
    "TableDetector",
    "SheetParser",
    # Classification
    "KeywordClassifier",
    "LabelContext",
    "LabelMatch",
    "SheetClassification",
    # Flattening
    "Flattener",
    "HierarchyContext",
    "ColumnMap",
    "compute_cagr",
    # Orchestrator
    "ExcelConverter",
    "create_default_converter",
    # Export
    "to_dataframe",
    "to_csv",
    "to_xlsx",
    "to_json",
    "default_export_name",
    # Errors
    "ErrorCode",
    "ConversionIssue",
    "ConversionError",
    "ParseError",
    "StructuralInvalidError",
    # Config
    "ConverterConfig",
    # Protocols
    "LabelClassifier",
]
