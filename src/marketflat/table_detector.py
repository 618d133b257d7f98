"""Header detection and multi-table splitting for raw worksheet grids.

Market-research sheets often stack several tables vertically, each with an
optional title line above its header.  :class:`TableDetector` cuts a trimmed
grid into :class:`TableSlice` objects:

* blocks are separated by runs of at least ``blank_row_separator`` blank
  rows;
* inside a block, a row that repeats the current header (same labels, or a
  new label over the same year columns) starts a new table;
* a header-less block made of text lines supplies the title of the next
  table, while a header-less block of figures continues the previous table.
"""

from __future__ import annotations

import logging
import re

from pydantic import BaseModel

from marketflat.config import ConverterConfig

logger = logging.getLogger("marketflat")

_YEAR_RE = re.compile(r"^(?:19|20)\d{2}$")
_TITLE_WORDS = ("market", "forecast", "estimates")
_BY_WORD_RE = re.compile(r"\bby\b", re.IGNORECASE)


# ---------------------------------------------------------------------------
# Cell helpers
# ---------------------------------------------------------------------------


def is_empty_cell(val: object) -> bool:
    """Return True if a cell value is logically empty."""
    if val is None:
        return True
    if isinstance(val, str) and val.strip() == "":
        return True
    return False


def is_blank_row(row: list[object]) -> bool:
    return all(is_empty_cell(v) for v in row)


def is_year_like(val: object) -> bool:
    """True for ``2021``, ``2021.0`` and ``"2021"``; False for bools."""
    if isinstance(val, bool):
        return False
    if isinstance(val, int):
        return 1900 <= val <= 2099
    if isinstance(val, float):
        return val.is_integer() and 1900 <= val <= 2099
    if isinstance(val, str):
        return bool(_YEAR_RE.match(val.strip()))
    return False


def is_numeric_cell(val: object) -> bool:
    if isinstance(val, bool):
        return False
    if isinstance(val, (int, float)):
        return True
    if isinstance(val, str):
        try:
            float(val.strip().replace(",", ""))
        except ValueError:
            return False
        return True
    return False


def cell_text(val: object) -> str:
    """Render a cell as header/label text.  Integral floats lose the ``.0``."""
    if val is None:
        return ""
    if isinstance(val, str):
        return val.strip()
    if isinstance(val, float) and val.is_integer():
        return str(int(val))
    return str(val).strip()


def row_text(row: list[object]) -> str | None:
    """Joined text of a row holding only text cells, else ``None``."""
    values = [v for v in row if not is_empty_cell(v)]
    if not values or not all(isinstance(v, str) for v in values):
        return None
    return " ".join(str(v).strip() for v in values)


def trim_to_data_bounds(
    rows_data: list[list[object]],
) -> tuple[list[list[object]], int, int]:
    """Trim rows_data to the bounding box of non-empty cells.

    Returns (trimmed_rows, first_data_row, first_data_col) where the offsets
    are 0-based into ``rows_data``.  Trimmed rows are padded to equal width.
    """
    if not rows_data:
        return [], 0, 0

    min_row = len(rows_data)
    max_row = -1
    min_col = max(len(r) for r in rows_data)
    max_col = -1

    for row_idx, row in enumerate(rows_data):
        for col_idx, val in enumerate(row):
            if not is_empty_cell(val):
                min_row = min(min_row, row_idx)
                max_row = max(max_row, row_idx)
                min_col = min(min_col, col_idx)
                max_col = max(max_col, col_idx)

    if max_row == -1:
        return [], 0, 0

    width = max_col - min_col + 1
    trimmed: list[list[object]] = []
    for row_idx in range(min_row, max_row + 1):
        row = list(rows_data[row_idx][min_col : max_col + 1])
        row.extend([None] * (width - len(row)))
        trimmed.append(row)

    return trimmed, min_row, min_col


def header_names(cells: list[object]) -> list[str]:
    """Header labels for *cells*; empty ones become ``column_N``, duplicates get ``_1``, ``_2``."""
    seen: dict[str, int] = {}
    result: list[str] = []
    for i, val in enumerate(cells):
        name = cell_text(val) or f"column_{i}"
        if name in seen:
            seen[name] += 1
            result.append(f"{name}_{seen[name]}")
        else:
            seen[name] = 0
            result.append(name)
    return result


def find_blocks(grid: list[list[object]], min_gap: int) -> list[tuple[int, int]]:
    """Split *grid* at runs of >= *min_gap* blank rows.

    Returns ``(start, end)`` half-open row ranges.  Shorter blank runs stay
    inside their block.
    """
    blocks: list[tuple[int, int]] = []
    block_start: int | None = None
    last_content = -1
    consecutive_blank = 0

    for idx, row in enumerate(grid):
        if is_blank_row(row):
            consecutive_blank += 1
            continue
        if block_start is not None and consecutive_blank >= min_gap:
            blocks.append((block_start, last_content + 1))
            block_start = None
        if block_start is None:
            block_start = idx
        last_content = idx
        consecutive_blank = 0

    if block_start is not None:
        blocks.append((block_start, last_content + 1))
    return blocks


# ---------------------------------------------------------------------------
# Detector
# ---------------------------------------------------------------------------


class TableSlice(BaseModel):
    """One table found in a trimmed grid; row indexes point into that grid."""

    title: str | None = None
    header_index: int
    start_col: int
    end_col: int
    headers: list[str] = []
    rows: list[int] = []


class TableDetector:
    """Finds header rows and stacked tables in a trimmed worksheet grid."""

    def __init__(self, config: ConverterConfig) -> None:
        self._config = config

    def is_header_row(self, row: list[object]) -> bool:
        """Heuristic header test.

        A header has at least ``min_table_columns`` non-empty cells, every
        one of them text or a year, and fills at least half of its own span.
        Numbers stored as text count as figures, not labels.  It needs one
        non-year text cell, unless the row's first cell is empty (a year-only
        header over a label column).
        """
        indices = [i for i, v in enumerate(row) if not is_empty_cell(v)]
        if len(indices) < self._config.min_table_columns:
            return False
        values = [row[i] for i in indices]
        if not all(isinstance(v, str) or is_year_like(v) for v in values):
            return False
        if any(is_numeric_cell(v) and not is_year_like(v) for v in values):
            return False
        has_text = any(isinstance(v, str) and not is_year_like(v) for v in values)
        if not has_text and indices[0] == 0:
            return False
        span = indices[-1] - indices[0] + 1
        return len(indices) / span >= 0.5

    def detect(self, grid: list[list[object]]) -> list[TableSlice]:
        """Return the tables in *grid* in top-to-bottom order.

        The first header must appear within ``max_header_scan_rows``
        non-blank rows; an empty list means the grid has no header at all.
        """
        tables: list[TableSlice] = []
        pending_title: str | None = None
        non_blank_seen = 0

        for start, end in find_blocks(grid, self._config.blank_row_separator):
            current: TableSlice | None = None
            prelude: list[int] = []

            for r in range(start, end):
                row = grid[r]
                if is_blank_row(row):
                    continue
                non_blank_seen += 1

                if current is None:
                    if self.is_header_row(row) and self._year_header_follows(grid, r, end):
                        # Text-only row above the year header: a title/units line.
                        prelude.append(r)
                    elif self.is_header_row(row) and (
                        tables or non_blank_seen <= self._config.max_header_scan_rows
                    ):
                        title = self._title_from(grid, prelude) or pending_title
                        current = self._open_table(row, r, title)
                        tables.append(current)
                        pending_title = None
                        prelude = []
                    elif tables and any(is_numeric_cell(v) for v in row):
                        # Figures with no header of their own continue the last table.
                        current = tables[-1]
                        current.rows.extend(prelude)
                        current.rows.append(r)
                        pending_title = None
                        prelude = []
                    else:
                        prelude.append(r)
                elif self._repeats_header(row, current, grid):
                    title = self._pop_title(current, grid)
                    current = self._open_table(row, r, title)
                    tables.append(current)
                else:
                    current.rows.append(r)

            if current is None and prelude:
                pending_title = self._title_from(grid, prelude) or pending_title

        if not tables:
            return []

        kept = [t for t in tables if t.rows] or tables[:1]
        for table in kept:
            self._finalize(table, grid)
        logger.debug("Detected %d table(s) in grid of %d rows", len(kept), len(grid))
        return kept

    def scan_titles(self, grid: list[list[object]]) -> list[str]:
        """Report-style titles (``"... Market ... by Region ..."``) in the top rows."""
        titles: list[str] = []
        for row in grid[: self._config.title_scan_rows]:
            for val in row:
                if not isinstance(val, str):
                    continue
                text = val.strip()
                lowered = text.lower()
                if (
                    len(text) > 15
                    and any(word in lowered for word in _TITLE_WORDS)
                    and _BY_WORD_RE.search(text)
                ):
                    titles.append(text)
        return titles

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    @staticmethod
    def _open_table(row: list[object], r: int, title: str | None) -> TableSlice:
        indices = [i for i, v in enumerate(row) if not is_empty_cell(v)]
        return TableSlice(
            title=title,
            header_index=r,
            start_col=indices[0],
            end_col=indices[-1],
        )

    def _year_header_follows(self, grid: list[list[object]], r: int, end: int) -> bool:
        """True when row *r* has no year cells and a year-bearing header comes
        later in its block, before any figures."""
        if any(is_year_like(v) for v in grid[r]):
            return False
        scanned = 0
        for row in grid[r + 1 : end]:
            if is_blank_row(row):
                continue
            scanned += 1
            if scanned > self._config.max_header_scan_rows:
                return False
            if self.is_header_row(row):
                if any(is_year_like(v) for v in row):
                    return True
                continue
            if any(is_numeric_cell(v) for v in row):
                return False
        return False

    @staticmethod
    def _title_from(grid: list[list[object]], prelude: list[int]) -> str | None:
        for r in reversed(prelude):
            text = row_text(grid[r])
            if text:
                return text
        return None

    @staticmethod
    def _pop_title(table: TableSlice, grid: list[list[object]]) -> str | None:
        """Take a trailing single-text-cell row of *table* as the next table's title."""
        if not table.rows:
            return None
        last = grid[table.rows[-1]]
        values = [v for v in last if not is_empty_cell(v)]
        if len(values) == 1 and isinstance(values[0], str):
            table.rows.pop()
            return values[0].strip()
        return None

    def _repeats_header(
        self, row: list[object], table: TableSlice, grid: list[list[object]]
    ) -> bool:
        if not self.is_header_row(row):
            return False
        labels = [cell_text(v).lower() for v in row if not is_empty_cell(v)]
        header = grid[table.header_index]
        current = [cell_text(v).lower() for v in header if not is_empty_cell(v)]
        if labels == current:
            return True
        years = {text for text in labels if _YEAR_RE.match(text)}
        current_years = {text for text in current if _YEAR_RE.match(text)}
        return bool(years) and years == current_years

    @staticmethod
    def _finalize(table: TableSlice, grid: list[list[object]]) -> None:
        # Label cells may sit left of a header that leaves its corner empty.
        for r in table.rows:
            for col, val in enumerate(grid[r][: table.start_col]):
                if not is_empty_cell(val):
                    table.start_col = col
                    break
        header = grid[table.header_index][table.start_col : table.end_col + 1]
        table.headers = header_names(header)
