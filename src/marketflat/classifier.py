"""Keyword-driven classification of sheets and row labels.

:class:`KeywordClassifier` is the default
:class:`~marketflat.protocols.LabelClassifier`.  All of its vocabulary comes
from :class:`~marketflat.config.ConverterConfig`, so new regions, countries
or product words are configuration changes, not code changes.

Matching rules:

* Aliases match case-insensitively on whole words only.
* When a label matches both a region and a country alias, the longer alias
  wins (``"South Africa"`` is a country even though ``"africa"`` is a region
  alias); equal lengths resolve to the region.
* Sheets are classified from their name and header text first, checked in
  hierarchy order (global, regional, country, product, segment), then from
  the labels found in the sheet.
"""

from __future__ import annotations

import logging
import re

from pydantic import BaseModel, ConfigDict

from marketflat.config import ConverterConfig
from marketflat.models import RowLevel, SheetType
from marketflat.units import extract_by_segment

logger = logging.getLogger("marketflat")

_LEVEL_ORDER = (
    RowLevel.GLOBAL,
    RowLevel.REGIONAL,
    RowLevel.COUNTRY,
    RowLevel.PRODUCT,
    RowLevel.SEGMENT,
)

_SHEET_TYPE_FOR_LEVEL = {
    RowLevel.GLOBAL: SheetType.GLOBAL,
    RowLevel.REGIONAL: SheetType.REGIONAL,
    RowLevel.COUNTRY: SheetType.COUNTRY,
    RowLevel.PRODUCT: SheetType.PRODUCT,
    RowLevel.SEGMENT: SheetType.SEGMENT,
}


# ---------------------------------------------------------------------------
# Result types
# ---------------------------------------------------------------------------


class LabelContext(BaseModel):
    """Where a label sits: the sheet it belongs to and what the row holds."""

    model_config = ConfigDict(frozen=True)

    sheet_name: str = ""
    sheet_type: SheetType = SheetType.OTHER
    is_first_row: bool = False
    has_values: bool = True


class LabelMatch(BaseModel):
    """Outcome of classifying one label.

    ``level`` is ``None`` when the label names no hierarchy level, i.e. the
    row is a leaf.  ``canonical`` is the display value for the matched level.
    """

    model_config = ConfigDict(frozen=True)

    level: RowLevel | None = None
    confidence: float = 0.0
    canonical: str | None = None


class SheetClassification(BaseModel):
    model_config = ConfigDict(frozen=True)

    sheet_type: SheetType
    confidence: float
    reasoning: str


# ---------------------------------------------------------------------------
# Alias matching
# ---------------------------------------------------------------------------


def _word_pattern(alias: str) -> re.Pattern[str]:
    return re.compile(rf"(?<![a-z0-9$]){re.escape(alias.lower())}(?![a-z0-9$])")


class _AliasTable:
    """Compiled ``alias -> canonical`` lookup, longest alias first."""

    def __init__(self, aliases: dict[str, list[str]]) -> None:
        entries: list[tuple[str, str]] = []
        for canonical, names in aliases.items():
            for name in [canonical, *names]:
                if name.strip():
                    entries.append((name.strip().lower(), canonical))
        entries.sort(key=lambda e: len(e[0]), reverse=True)
        self._entries = [
            (alias, canonical, _word_pattern(alias)) for alias, canonical in entries
        ]

    def match(self, text: str) -> tuple[str, str] | None:
        """Return ``(alias, canonical)`` for the longest alias found in *text*."""
        for alias, canonical, pattern in self._entries:
            if pattern.search(text):
                return alias, canonical
        return None


class _KeywordSet:
    def __init__(self, keywords: list[str]) -> None:
        self._patterns = [
            (kw, _word_pattern(kw)) for kw in keywords if kw.strip()
        ]

    def match(self, text: str) -> str | None:
        for keyword, pattern in self._patterns:
            if pattern.search(text):
                return keyword
        return None


# ---------------------------------------------------------------------------
# Classifier
# ---------------------------------------------------------------------------


class KeywordClassifier:
    """Default label and sheet classifier backed by configured vocabularies."""

    def __init__(self, config: ConverterConfig) -> None:
        self._config = config
        self._global = _KeywordSet(config.global_keywords)
        self._regions = _AliasTable(config.region_aliases)
        self._countries = _AliasTable(config.country_aliases)
        self._products = _KeywordSet(config.product_keywords)
        self._segments = _KeywordSet(config.segment_keywords)
        self._sheet_keywords = {
            sheet_type: _KeywordSet(config.sheet_type_keywords.get(sheet_type.value, []))
            for sheet_type in _SHEET_TYPE_FOR_LEVEL.values()
        }

    def classify_label(self, label: str, context: LabelContext) -> LabelMatch:
        stripped = label.strip()
        text = stripped.lower()
        if not text:
            return LabelMatch()

        if self._global.match(text):
            return LabelMatch(level=RowLevel.GLOBAL, confidence=0.9, canonical=stripped)

        region = self._regions.match(text)
        country = self._countries.match(text)
        if region and country:
            if len(country[0]) > len(region[0]):
                region = None
            else:
                country = None
        if region:
            return LabelMatch(
                level=RowLevel.REGIONAL,
                confidence=0.9 if region[0] == text else 0.7,
                canonical=region[1],
            )
        if country:
            return LabelMatch(
                level=RowLevel.COUNTRY,
                confidence=0.9 if country[0] == text else 0.7,
                canonical=country[1],
            )

        if self._products.match(text):
            return LabelMatch(level=RowLevel.PRODUCT, confidence=0.6, canonical=stripped)

        by_segment = extract_by_segment(stripped)
        if by_segment:
            return LabelMatch(level=RowLevel.SEGMENT, confidence=0.8, canonical=by_segment)
        if self._segments.match(text):
            return LabelMatch(level=RowLevel.SEGMENT, confidence=0.6, canonical=stripped)

        # Context rules for labels the vocabulary does not know.
        if context.is_first_row and context.sheet_type == SheetType.GLOBAL:
            return LabelMatch(level=RowLevel.GLOBAL, confidence=0.5, canonical=stripped)
        if not context.has_values:
            # A bare label with no figures heads the rows beneath it.
            return LabelMatch(level=RowLevel.SEGMENT, confidence=0.4, canonical=stripped)

        return LabelMatch()

    def classify_sheet(
        self, sheet_name: str, headers: list[str], labels: list[str]
    ) -> SheetClassification:
        text = " ".join([sheet_name, *headers]).lower()
        for sheet_type, keywords in self._sheet_keywords.items():
            keyword = keywords.match(text)
            if keyword:
                return SheetClassification(
                    sheet_type=sheet_type,
                    confidence=0.9,
                    reasoning=f"keyword '{keyword}' in sheet name or headers",
                )

        present = [label for label in labels if label and label.strip()]
        if present:
            neutral = LabelContext(sheet_name=sheet_name)
            counts = dict.fromkeys(_LEVEL_ORDER, 0)
            for label in present:
                level = self.classify_label(label, neutral).level
                if level is not None:
                    counts[level] += 1
            for level in _LEVEL_ORDER:
                if counts[level]:
                    return SheetClassification(
                        sheet_type=_SHEET_TYPE_FOR_LEVEL[level],
                        confidence=round(counts[level] / len(present), 4),
                        reasoning=(
                            f"{counts[level]} of {len(present)} labels "
                            f"name a {level.value} entry"
                        ),
                    )

        logger.debug("No classification evidence for sheet '%s'", sheet_name)
        return SheetClassification(
            sheet_type=SheetType.OTHER,
            confidence=0.0,
            reasoning="no keyword evidence in name, headers or labels",
        )
