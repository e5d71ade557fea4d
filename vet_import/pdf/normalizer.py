from __future__ import annotations

from collections.abc import Iterable, Sequence

from ..models.layout import RawLine, TextRun

"""Text layout normalizer.

Turns raw extracted PDF text into ordered logical lines, and positioned text
runs into rows of columns.

- normalize_lines: split / trim / drop blank lines
- repair_glued_keys: split lines where two key tokens were glued together by
  the extractor (e.g. ``clientStreetAddrpatientWeight``)
- group_rows: cluster positioned runs into rows by vertical position
"""

__all__ = [
    "DEFAULT_ROW_TOLERANCE",
    "normalize_lines",
    "repair_glued_keys",
    "group_rows",
    "rows_to_lines",
]

DEFAULT_ROW_TOLERANCE = 0.6


def normalize_lines(text: str) -> list[str]:
    """Split text into trimmed, non-blank lines (order preserved)."""
    return [line.strip() for line in text.splitlines() if line.strip()]


def repair_glued_keys(lines: Sequence[str], keys: Iterable[str]) -> list[str]:
    """Split lines that start with a known key but carry extra text.

    The remainder is re-inserted as the next line and gets the same check, so
    ``clientStreetAddrpatientWeight`` becomes ``clientStreetAddr`` +
    ``patientWeight``. Longest key wins so a key that is a prefix of another key
    never splits it. Each split shortens the remainder, so this terminates, and
    running it again on its own output changes nothing.
    """
    ordered_keys = sorted(set(keys), key=len, reverse=True)
    key_set = set(ordered_keys)
    repaired: list[str] = []
    pending = list(reversed(lines))  # stack: 先頭行を pop
    while pending:
        line = pending.pop()
        if line in key_set:
            repaired.append(line)
            continue
        key = next((k for k in ordered_keys if line.startswith(k)), None)
        if key is None:
            repaired.append(line)
            continue
        repaired.append(key)
        remainder = line[len(key):].strip()
        if remainder:
            pending.append(remainder)
    return repaired


def group_rows(
    runs: Iterable[TextRun], tolerance: float = DEFAULT_ROW_TOLERANCE
) -> list[list[TextRun]]:
    """Cluster positioned runs into rows, independent of PDF internal order.

    Runs are sorted by (page, y, x); a run joins the current row when it is on
    the same page and its y differs from the row's first y by less than
    ``tolerance``. Each row is returned sorted by x.
    """
    ordered = sorted(
        (r for r in runs if r.text and r.text.strip()),
        key=lambda r: (r.page, r.y, r.x),
    )
    rows: list[list[TextRun]] = []
    current: list[TextRun] = []
    for run in ordered:
        if current and run.page == current[0].page and abs(run.y - current[0].y) < tolerance:
            current.append(run)
            continue
        if current:
            rows.append(sorted(current, key=lambda r: r.x))
        current = [run]
    if current:
        rows.append(sorted(current, key=lambda r: r.x))
    return rows


def rows_to_lines(rows: Iterable[Sequence[TextRun]]) -> list[RawLine]:
    """Linearize grouped rows into positioned lines (runs joined by a space)."""
    lines: list[RawLine] = []
    for row in rows:
        text = " ".join(r.text.strip() for r in row if r.text.strip())
        if not text:
            continue
        first = row[0]
        lines.append(RawLine(text=text, x=first.x, y=first.y, page=first.page))
    return lines
