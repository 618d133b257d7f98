"""Tests for ConverterConfig defaults, validation and from_file()."""

from __future__ import annotations

import json
from pathlib import Path

import pytest
import yaml
from pydantic import ValidationError

from marketflat import vocabulary
from marketflat.config import ConverterConfig


class TestConfigDefaults:
    def test_parser_version(self, sample_config: ConverterConfig) -> None:
        assert sample_config.parser_version == "marketflat:1.0.0"

    def test_year_columns_are_2021_through_2034(self, sample_config: ConverterConfig) -> None:
        assert sample_config.year_columns == [str(y) for y in range(2021, 2035)]
        assert len(sample_config.year_columns) == 14

    def test_output_defaults(self, sample_config: ConverterConfig) -> None:
        assert sample_config.placeholder == ""
        assert sample_config.default_title == ""
        assert sample_config.default_units == "(USD Million)"
        assert sample_config.cagr_decimals == 6

    def test_detection_defaults(self, sample_config: ConverterConfig) -> None:
        assert sample_config.max_header_scan_rows == 20
        assert sample_config.min_table_columns == 2
        assert sample_config.blank_row_separator == 1
        assert sample_config.title_scan_rows == 15
        assert sample_config.units_scan_rows == 10
        assert sample_config.label_scan_columns == 3

    def test_log_sample_data_off(self, sample_config: ConverterConfig) -> None:
        assert sample_config.log_sample_data is False

    def test_vocabularies_default_to_module_tables(self, sample_config: ConverterConfig) -> None:
        assert sample_config.global_keywords == vocabulary.GLOBAL_KEYWORDS
        assert sample_config.region_aliases == vocabulary.REGION_ALIASES
        assert "U.S." in sample_config.country_aliases

    def test_vocabulary_defaults_are_copies(self) -> None:
        first = ConverterConfig()
        first.global_keywords.append("planet")
        assert "planet" not in ConverterConfig().global_keywords
        assert "planet" not in vocabulary.GLOBAL_KEYWORDS


class TestConfigValidation:
    def test_negative_cagr_decimals_rejected(self) -> None:
        with pytest.raises(ValidationError, match="cagr_decimals"):
            ConverterConfig(cagr_decimals=-1)

    def test_zero_blank_row_separator_rejected(self) -> None:
        with pytest.raises(ValidationError, match="blank_row_separator"):
            ConverterConfig(blank_row_separator=0)

    def test_duplicate_year_columns_rejected(self) -> None:
        with pytest.raises(ValidationError, match="duplicates"):
            ConverterConfig(year_columns=["2021", "2021"])

    def test_overrides_apply(self) -> None:
        config = ConverterConfig(placeholder="-", year_columns=["2024", "2025"])
        assert config.placeholder == "-"
        assert config.year_columns == ["2024", "2025"]


class TestFromFile:
    def test_from_yaml(self, tmp_path: Path) -> None:
        path = tmp_path / "config.yaml"
        path.write_text(yaml.safe_dump({"placeholder": "n/a", "cagr_decimals": 4}))
        config = ConverterConfig.from_file(str(path))
        assert config.placeholder == "n/a"
        assert config.cagr_decimals == 4
        assert config.default_units == "(USD Million)"

    def test_from_yml_with_vocabulary_override(self, tmp_path: Path) -> None:
        path = tmp_path / "config.yml"
        path.write_text(
            yaml.safe_dump({"region_aliases": {"Nordics": ["nordics", "scandinavia"]}})
        )
        config = ConverterConfig.from_file(str(path))
        assert config.region_aliases == {"Nordics": ["nordics", "scandinavia"]}

    def test_from_json(self, tmp_path: Path) -> None:
        path = tmp_path / "config.json"
        path.write_text(json.dumps({"default_units": "(EUR Million)"}))
        config = ConverterConfig.from_file(str(path))
        assert config.default_units == "(EUR Million)"

    def test_empty_yaml_gives_defaults(self, tmp_path: Path) -> None:
        path = tmp_path / "empty.yaml"
        path.write_text("")
        assert ConverterConfig.from_file(str(path)) == ConverterConfig()

    def test_missing_file(self, tmp_path: Path) -> None:
        with pytest.raises(FileNotFoundError):
            ConverterConfig.from_file(str(tmp_path / "nope.yaml"))

    def test_unsupported_extension(self, tmp_path: Path) -> None:
        path = tmp_path / "config.toml"
        path.write_text("placeholder = ''")
        with pytest.raises(ValueError, match="Unsupported config file extension"):
            ConverterConfig.from_file(str(path))
