"""Configuration model for the marketflat pipeline.

Provides ``ConverterConfig`` with all tunable parameters and sensible
defaults.  Keyword vocabularies live here as plain data so that
classification can be re-targeted without code changes.  Supports loading
overrides from YAML or JSON files via the ``from_file()`` classmethod.
"""

from __future__ import annotations

import json
import pathlib

import yaml
from pydantic import BaseModel, Field, model_validator

from marketflat import vocabulary


def _default_year_columns() -> list[str]:
    return [str(year) for year in range(2021, 2035)]


class ConverterConfig(BaseModel):
    """All tunable parameters with sensible defaults.

    Override individual values via constructor kwargs or load a complete
    config from a file with ``ConverterConfig.from_file(path)``.
    """

    # --- Identity ---
    parser_version: str = "marketflat:1.0.0"

    # --- Output schema ---
    year_columns: list[str] = Field(default_factory=_default_year_columns)
    placeholder: str = ""
    default_title: str = ""
    default_units: str = "(USD Million)"
    cagr_decimals: int = 6

    # --- Parse limits ---
    max_file_size_bytes: int = 100 * 1024 * 1024
    max_rows_in_memory: int = 100_000

    # --- Table detection ---
    max_header_scan_rows: int = 20
    min_table_columns: int = 2
    blank_row_separator: int = 1
    title_scan_rows: int = 15
    units_scan_rows: int = 10
    label_scan_columns: int = 3

    # --- Vocabularies ---
    global_keywords: list[str] = Field(
        default_factory=lambda: list(vocabulary.GLOBAL_KEYWORDS)
    )
    region_aliases: dict[str, list[str]] = Field(
        default_factory=lambda: {k: list(v) for k, v in vocabulary.REGION_ALIASES.items()}
    )
    country_aliases: dict[str, list[str]] = Field(
        default_factory=lambda: {k: list(v) for k, v in vocabulary.COUNTRY_ALIASES.items()}
    )
    product_keywords: list[str] = Field(
        default_factory=lambda: list(vocabulary.PRODUCT_KEYWORDS)
    )
    segment_keywords: list[str] = Field(
        default_factory=lambda: list(vocabulary.SEGMENT_KEYWORDS)
    )
    sheet_type_keywords: dict[str, list[str]] = Field(
        default_factory=lambda: {
            k: list(v) for k, v in vocabulary.SHEET_TYPE_KEYWORDS.items()
        }
    )

    # --- Logging / PII safety ---
    log_sample_data: bool = False

    @model_validator(mode="after")
    def _check_limits(self) -> ConverterConfig:
        if self.cagr_decimals < 0:
            raise ValueError("cagr_decimals must be >= 0")
        if self.min_table_columns < 1:
            raise ValueError("min_table_columns must be >= 1")
        if self.blank_row_separator < 1:
            raise ValueError("blank_row_separator must be >= 1")
        if len(set(self.year_columns)) != len(self.year_columns):
            raise ValueError("year_columns must not contain duplicates")
        return self

    @classmethod
    def from_file(cls, path: str) -> ConverterConfig:
        """Load configuration from a YAML or JSON file.

        File format is detected by extension: ``.yaml`` / ``.yml`` for YAML,
        ``.json`` for JSON.  Any keys present in the file override the
        corresponding defaults; keys not present retain their defaults.

        Args:
            path: Filesystem path to the configuration file.

        Returns:
            A fully-populated ``ConverterConfig`` instance.

        Raises:
            FileNotFoundError: If *path* does not exist.
            ValueError: If the file extension is not recognized.
        """
        file_path = pathlib.Path(path)
        if not file_path.exists():
            raise FileNotFoundError(f"Config file not found: {path}")

        suffix = file_path.suffix.lower()

        if suffix in (".yaml", ".yml"):
            with open(file_path) as fh:
                data = yaml.safe_load(fh)
        elif suffix == ".json":
            with open(file_path) as fh:
                data = json.load(fh)
        else:
            raise ValueError(
                f"Unsupported config file extension '{suffix}'. "
                "Use .yaml, .yml, or .json."
            )

        if data is None:
            data = {}

        return cls(**data)
