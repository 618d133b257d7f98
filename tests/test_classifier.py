"""Tests for the KeywordClassifier label and sheet classification."""

from __future__ import annotations

import pytest

from marketflat.classifier import KeywordClassifier, LabelContext, LabelMatch
from marketflat.config import ConverterConfig
from marketflat.models import RowLevel, SheetType
from marketflat.protocols import LabelClassifier


@pytest.fixture()
def classifier(sample_config: ConverterConfig) -> KeywordClassifier:
    return KeywordClassifier(sample_config)


@pytest.fixture()
def context() -> LabelContext:
    return LabelContext(sheet_name="Sheet1", sheet_type=SheetType.OTHER)


class TestProtocol:
    def test_satisfies_label_classifier(self, classifier: KeywordClassifier) -> None:
        assert isinstance(classifier, LabelClassifier)


class TestClassifyLabel:
    @pytest.mark.parametrize("label", ["Global", "Total", "World Total", "worldwide"])
    def test_global_keywords(
        self, classifier: KeywordClassifier, context: LabelContext, label: str
    ) -> None:
        match = classifier.classify_label(label, context)
        assert match.level == RowLevel.GLOBAL
        assert match.canonical == label

    @pytest.mark.parametrize(
        ("label", "canonical"),
        [
            ("North America", "North America"),
            ("APAC", "Asia Pacific"),
            ("Middle East & Africa", "Middle East & Africa"),
            ("  europe ", "Europe"),
        ],
    )
    def test_regions(
        self, classifier: KeywordClassifier, context: LabelContext, label: str, canonical: str
    ) -> None:
        match = classifier.classify_label(label, context)
        assert match.level == RowLevel.REGIONAL
        assert match.canonical == canonical

    @pytest.mark.parametrize(
        ("label", "canonical"),
        [
            ("U.S.", "U.S."),
            ("US", "U.S."),
            ("United Kingdom", "UK"),
            ("South Africa", "South Africa"),
            ("Rest of Europe", "RoE"),
            ("Rest of Asia Pacific", "RoAPAC"),
        ],
    )
    def test_countries(
        self, classifier: KeywordClassifier, context: LabelContext, label: str, canonical: str
    ) -> None:
        match = classifier.classify_label(label, context)
        assert match.level == RowLevel.COUNTRY
        assert match.canonical == canonical

    def test_exact_alias_has_higher_confidence(
        self, classifier: KeywordClassifier, context: LabelContext
    ) -> None:
        exact = classifier.classify_label("Germany", context)
        partial = classifier.classify_label("Germany (excl. Bavaria)", context)
        assert exact.confidence > partial.confidence
        assert partial.level == RowLevel.COUNTRY

    def test_alias_must_be_whole_word(
        self, classifier: KeywordClassifier, context: LabelContext
    ) -> None:
        assert classifier.classify_label("Indiana Sales", context).level is None

    def test_product_vocabulary(
        self, classifier: KeywordClassifier, context: LabelContext
    ) -> None:
        assert classifier.classify_label("Hardware", context).level == RowLevel.PRODUCT

    def test_by_pattern_is_segment(
        self, classifier: KeywordClassifier, context: LabelContext
    ) -> None:
        match = classifier.classify_label("By Application", context)
        assert match.level == RowLevel.SEGMENT
        assert match.canonical == "Application"

    def test_segment_vocabulary(
        self, classifier: KeywordClassifier, context: LabelContext
    ) -> None:
        assert classifier.classify_label("End User", context).level == RowLevel.SEGMENT

    def test_row_without_values_is_segment_grouping(
        self, classifier: KeywordClassifier
    ) -> None:
        ctx = LabelContext(sheet_name="S", has_values=False)
        match = classifier.classify_label("Cloud", ctx)
        assert match.level == RowLevel.SEGMENT
        assert match.canonical == "Cloud"

    def test_first_row_of_global_sheet(self, classifier: KeywordClassifier) -> None:
        ctx = LabelContext(sheet_name="S", sheet_type=SheetType.GLOBAL, is_first_row=True)
        assert classifier.classify_label("Widgets", ctx).level == RowLevel.GLOBAL

    def test_first_row_rule_only_for_global_sheets(self, classifier: KeywordClassifier) -> None:
        ctx = LabelContext(sheet_name="S", sheet_type=SheetType.COUNTRY, is_first_row=True)
        assert classifier.classify_label("Widgets", ctx).level is None

    def test_unmatched_leaf(self, classifier: KeywordClassifier, context: LabelContext) -> None:
        assert classifier.classify_label("Widgets", context) == LabelMatch()

    def test_empty_label(self, classifier: KeywordClassifier, context: LabelContext) -> None:
        assert classifier.classify_label("   ", context).level is None

    def test_vocabulary_from_config(self) -> None:
        config = ConverterConfig(region_aliases={"Nordics": ["nordics", "scandinavia"]})
        classifier = KeywordClassifier(config)
        match = classifier.classify_label("Scandinavia", LabelContext())
        assert match.level == RowLevel.REGIONAL
        assert match.canonical == "Nordics"
        assert classifier.classify_label("Europe", LabelContext()).level is None


class TestClassifySheet:
    def test_sheet_name_keyword(self, classifier: KeywordClassifier) -> None:
        result = classifier.classify_sheet("Global Market", ["Region", "2021"], [])
        assert result.sheet_type == SheetType.GLOBAL
        assert result.confidence == 0.9

    def test_header_keyword(self, classifier: KeywordClassifier) -> None:
        result = classifier.classify_sheet("Sheet1", ["Country", "2021"], ["Widgets"])
        assert result.sheet_type == SheetType.COUNTRY

    def test_name_keywords_checked_in_hierarchy_order(
        self, classifier: KeywordClassifier
    ) -> None:
        result = classifier.classify_sheet("Regional Product Split", ["Name"], [])
        assert result.sheet_type == SheetType.REGIONAL

    def test_regional_from_labels(self, classifier: KeywordClassifier) -> None:
        result = classifier.classify_sheet(
            "Sheet1", ["Name", "2021"], ["North America", "Europe", "Widgets"]
        )
        assert result.sheet_type == SheetType.REGIONAL
        assert result.confidence == pytest.approx(2 / 3, abs=1e-4)

    def test_global_totals_outrank_countries(self, classifier: KeywordClassifier) -> None:
        result = classifier.classify_sheet("Sheet1", ["Name"], ["Total", "U.S.", "Canada"])
        assert result.sheet_type == SheetType.GLOBAL

    def test_no_evidence_is_other(self, classifier: KeywordClassifier) -> None:
        result = classifier.classify_sheet("Data", ["Name", "Value"], ["foo", "bar"])
        assert result.sheet_type == SheetType.OTHER
        assert result.confidence == 0.0


class TestCurrencyText:
    def test_us_dollar_is_not_a_country(
        self, classifier: KeywordClassifier, context: LabelContext
    ) -> None:
        assert classifier.classify_label("Revenue (US$ Million)", context).level is None

    def test_bare_us_still_matches(
        self, classifier: KeywordClassifier, context: LabelContext
    ) -> None:
        assert classifier.classify_label("US", context).canonical == "U.S."
