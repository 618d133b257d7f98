"""Pluggable classifier protocol for the marketflat pipeline.

Keyword classification is a maintained lookup table rather than an
algorithm, so both stages depend on this structural interface instead of a
concrete class.  The protocol is ``@runtime_checkable`` so callers can verify
conformance with ``isinstance``.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from marketflat.classifier import LabelContext, LabelMatch, SheetClassification


@runtime_checkable
class LabelClassifier(Protocol):
    """Maps label text (plus sheet context) to a hierarchy level."""

    def classify_label(self, label: str, context: LabelContext) -> LabelMatch:
        """Classify a single row label.  ``LabelMatch.level`` is None when unmatched."""
        ...

    def classify_sheet(
        self, sheet_name: str, headers: list[str], labels: list[str]
    ) -> SheetClassification:
        """Classify a whole sheet from its name, header text and label column."""
        ...
