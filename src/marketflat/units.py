"""Units detection and label clean-up helpers.

Market-research tables state their units in free text, usually a
parenthesised suffix on the table title (``"... 2021 - 2034 (USD Million)"``).
This module finds such strings, normalises them to a canonical spelling, and
strips them back out of row labels.  It also extracts the ``By <segment>``
category that report titles use to name the breakdown dimension.
"""

from __future__ import annotations

import re
from collections.abc import Iterable

_CURRENCY = r"(?:usd|us\$|eur|gbp)"
_SCALE = r"(?:billion|million|thousand|trillion)"


def _word(pattern: str) -> str:
    return rf"(?<![a-z0-9]){pattern}(?![a-z0-9])"


# Parenthesised patterns are tried before bare ones: they are the most
# reliable signal in report titles.
_PAREN_PATTERNS = [
    re.compile(rf"\(\s*{_CURRENCY}\s+{_SCALE}\s*\)", re.IGNORECASE),
    re.compile(rf"\(\s*{_SCALE}\s+{_CURRENCY}\s*\)", re.IGNORECASE),
    re.compile(rf"\(\s*(?:{_SCALE}\s+)?units?\s*\)", re.IGNORECASE),
    re.compile(rf"\(\s*{_CURRENCY}\s+[a-z][a-z ]*\)", re.IGNORECASE),
    re.compile(rf"\(\s*{_SCALE}\s*\)", re.IGNORECASE),
]

_BARE_PATTERNS = [
    re.compile(_word(rf"{_CURRENCY}\s+{_SCALE}"), re.IGNORECASE),
    re.compile(_word(rf"{_SCALE}\s+{_CURRENCY}"), re.IGNORECASE),
    re.compile(_word(rf"{_SCALE}\s+units?"), re.IGNORECASE),
]

_SCALE_RE = re.compile(_word(_SCALE), re.IGNORECASE)
_CURRENCY_RE = re.compile(_word(_CURRENCY), re.IGNORECASE)
_UNITS_RE = re.compile(_word(r"units?"), re.IGNORECASE)

_UNIT_WORD = _word(rf"(?:{_CURRENCY}|{_SCALE}|units?)")
_CURRENCY_SCALE = _word(rf"{_CURRENCY}\s*{_SCALE}")
_SCALE_OR_UNITS = _word(rf"(?:{_SCALE}|units)")

_STRIP_PATTERNS = [
    re.compile(rf"\(\s*[^)]*{_UNIT_WORD}[^)]*\)", re.IGNORECASE),
    re.compile(rf",?\s*{_CURRENCY_SCALE}", re.IGNORECASE),
    re.compile(rf",?\s*{_SCALE_OR_UNITS}", re.IGNORECASE),
    re.compile(r",?\s*-?\s*\b(?:19|20)\d{2}\s*-\s*(?:19|20)\d{2}\b"),
]

_BY_PATTERNS = [
    re.compile(r"\bby\s+([^,\d(]+?)(?:\s*,|\s+\d{4}|\s*\(|\s+-)", re.IGNORECASE),
    re.compile(r"\bby\s+([^,\d(]+?)\s*$", re.IGNORECASE),
]
_BY_SUFFIX_RE = re.compile(r"\s*\b(?:market|estimates?|forecast|analysis)$", re.IGNORECASE)
_ARTICLE_RE = re.compile(r"^(?:the|a|an)\s+", re.IGNORECASE)


def format_unit_string(raw: str) -> str:
    """Normalise a matched unit fragment, e.g. ``"(usd  million)"`` -> ``"(USD Million)"``."""
    unit = re.sub(r"\s+", " ", raw.replace("(", "").replace(")", "")).strip()
    currency_match = _CURRENCY_RE.search(unit)
    scale_match = _SCALE_RE.search(unit)
    currency = None
    if currency_match:
        currency = currency_match.group(0).upper().replace("US$", "USD")

    if _UNITS_RE.search(unit):
        if scale_match:
            return f"({scale_match.group(0).title()} Units)"
        return "(Units)"
    if scale_match:
        return f"({currency or 'USD'} {scale_match.group(0).title()})"
    if currency:
        rest = unit[currency_match.end():].strip()  # type: ignore[union-attr]
        return f"({currency} {rest.title()})" if rest else f"({currency})"
    return f"({unit[:1].upper()}{unit[1:].lower()})"


def find_units(text: str) -> str | None:
    """Return the normalised units named in *text*, or ``None``."""
    for pattern in _PAREN_PATTERNS:
        match = pattern.search(text)
        if match:
            return format_unit_string(match.group(0))
    for pattern in _BARE_PATTERNS:
        match = pattern.search(text)
        if match:
            return format_unit_string(match.group(0))
    return None


def detect_units(texts: Iterable[str]) -> str | None:
    """Scan *texts* in order; the first one naming a unit wins."""
    for text in texts:
        if not text:
            continue
        units = find_units(text)
        if units is not None:
            return units
    return None


def units_from_text(text: str) -> str | None:
    """Like :func:`find_units`, with bare scale keywords as a last resort.

    Used on sheet names and table titles, where ``"Revenue Million"`` style
    phrasing is common.
    """
    units = find_units(text)
    if units is not None:
        return units
    lowered = text.lower()
    for scale in ("billion", "million", "thousand", "trillion"):
        if scale in lowered:
            return f"(USD {scale.title()})"
    if _UNITS_RE.search(text):
        return "(Units)"
    return None


def strip_unit_text(text: str) -> str:
    """Remove unit fragments and year ranges from a label."""
    cleaned = text.strip()
    for pattern in _STRIP_PATTERNS:
        cleaned = pattern.sub("", cleaned)
    cleaned = re.sub(r"\s*,\s*,", ",", cleaned)
    cleaned = re.sub(r"\(\s*\)", "", cleaned)
    cleaned = re.sub(r"\s+", " ", cleaned)
    return cleaned.strip(" ,;:-")


def extract_by_segment(text: str | None) -> str | None:
    """Extract the breakdown name from ``"... By <segment>, 2021 - 2034"`` titles."""
    if not text:
        return None
    for pattern in _BY_PATTERNS:
        match = pattern.search(text)
        if not match:
            continue
        segment = match.group(1).strip()
        segment = _BY_SUFFIX_RE.sub("", segment)
        segment = _ARTICLE_RE.sub("", segment)
        segment = re.sub(r"\s+", " ", segment).strip(" ,;:-")
        if len(segment) > 1:
            return segment
    return None
