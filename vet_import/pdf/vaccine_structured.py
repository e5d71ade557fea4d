from __future__ import annotations

import logging
import re
from bisect import bisect_right
from collections.abc import Iterable, Sequence
from dataclasses import dataclass

from ..models.layout import TextRun
from ..models.vaccine import UNKNOWN_DESCRIPTION, LotMeta, VaccineDeliveryRow
from .dates import DATE_TOKEN, normalize_mm_dd_yyyy, order_dates
from .normalizer import DEFAULT_ROW_TOLERANCE, group_rows, rows_to_lines
from .vaccine_text import TOTALS_LINE, parse_vaccine_lines

"""Vaccine report parser: coordinate (positioned text) strategy.

Runs are grouped into rows by y (see normalizer.group_rows). The column header
row gives the x anchors of each column; cell text is sliced with the midpoints
between neighbouring anchors as boundaries. Output shape and date handling are
the same as the text strategy.

When no header row with at least two known column labels is found (for example
a backend that reports whole lines as single runs), the rows are linearized and
handed to the text strategy instead.
"""

__all__ = [
    "Column",
    "parse_vaccine_records_structured",
    "columns_from_header",
    "lot_from_header_row",
]

logger = logging.getLogger(__name__)

# ヘッダラベル (小文字) -> 列キー
COLUMN_LABELS: dict[str, str] = {
    "date given": "date_given",
    "date given/due": "date_given",
    "date given / due": "date_given",
    "date due": "date_due",
    "due date": "date_due",
    "patient name": "patient_name",
    "patient": "patient_name",
    "description": "description",
    "client name": "client_name",
    "client": "client_name",
}
_DATE_KEYS = ("date_given", "date_due")
_LABEL_PUNCT = re.compile(r"[#:]")


@dataclass(frozen=True)
class Column:
    x: float
    key: str | None  # None = 未知の列 (境界計算のためだけに保持)
    label: str


def _norm(text: str) -> str:
    return " ".join(text.lower().split())


def _row_text(row: Sequence[TextRun]) -> str:
    return " ".join(r.text.strip() for r in row if r.text.strip())


def _is_lot_header_row(row: Sequence[TextRun]) -> bool:
    has_lot = any(_norm(r.text).startswith("lot") for r in row)
    has_mfr = any("manufacturer" in _norm(r.text) for r in row)
    return has_lot and has_mfr


def _is_column_header_row(row: Sequence[TextRun]) -> bool:
    text = _norm(_row_text(row))
    return "date given" in text and "client name" in text and "description" in text


def lot_from_header_row(row: Sequence[TextRun]) -> tuple[str, str, str]:
    """Slice lot number / manufacturer / expiry between the label anchors."""
    anchors: list[tuple[float, str]] = []
    values: list[TextRun] = []
    for run in row:
        label = _norm(run.text)
        if label.startswith("lot") and not any(f == "lot" for _, f in anchors):
            anchors.append((run.x, "lot"))
            # "Lot#A12345" のようにラベルと値が結合しているケース
            glued = _LABEL_PUNCT.sub("", run.text.strip()[3:]).strip()
            if glued and " " not in glued:
                values.append(TextRun(x=run.x, y=run.y, text=glued, page=run.page))
        elif "manufacturer" in label:
            anchors.append((run.x, "manufacturer"))
        elif label.startswith("exp"):
            anchors.append((run.x, "expiry"))
        else:
            values.append(run)
    anchors.sort()

    parts: dict[str, list[str]] = {"lot": [], "manufacturer": [], "expiry": []}
    expiry = ""
    for run in values:
        text = _LABEL_PUNCT.sub("", run.text).strip()
        if not text:
            continue
        date_match = DATE_TOKEN.search(text)
        if date_match:
            expiry = expiry or (normalize_mm_dd_yyyy(date_match.group(0)) or "")
            text = (text[: date_match.start()] + text[date_match.end():]).strip()
            if not text:
                continue
        owner = None
        for x, field_name in anchors:
            if x <= run.x:
                owner = field_name
        if owner is None or owner == "expiry":
            continue
        parts[owner].append(text)

    return " ".join(parts["lot"]), " ".join(parts["manufacturer"]), expiry


def columns_from_header(row: Sequence[TextRun]) -> list[Column]:
    """Derive ordered column anchors from the header row.

    Header labels may be split over several runs (word-level extraction), so
    consecutive runs are merged while their text is a prefix of a known label.
    """
    columns: list[Column] = []
    pending: tuple[float, str] | None = None

    def emit(x: float, label: str) -> None:
        columns.append(Column(x=x, key=COLUMN_LABELS.get(label), label=label))

    def is_prefix(text: str) -> bool:
        return any(lbl.startswith(text + " ") or lbl.startswith(text + "/") for lbl in COLUMN_LABELS)

    for run in sorted(row, key=lambda r: r.x):
        text = _norm(run.text)
        if not text:
            continue
        if pending is not None:
            combined = f"{pending[1]} {text}"
            if combined in COLUMN_LABELS and not is_prefix(combined):
                emit(pending[0], combined)
                pending = None
                continue
            if combined in COLUMN_LABELS or is_prefix(combined):
                pending = (pending[0], combined)
                continue
            emit(*pending)
            pending = None
        if is_prefix(text):
            pending = (run.x, text)
            continue
        emit(run.x, text)
    if pending is not None:
        emit(*pending)
    return columns


def _boundaries(columns: Sequence[Column]) -> list[float]:
    return [(a.x + b.x) / 2 for a, b in zip(columns, columns[1:], strict=False)]


def _split_client_name(text: str) -> tuple[str, str]:
    """Return (family, given) from ``Family, Given`` or ``Given Family``."""
    text = text.strip()
    if "," in text:
        family, given = text.split(",", 1)
        return family.strip(), given.strip()
    tokens = text.split()
    if not tokens:
        return "", ""
    return tokens[-1], " ".join(tokens[:-1])


def _row_from_cells(
    row: Sequence[TextRun], columns: Sequence[Column], bounds: Sequence[float], lot: LotMeta | None
) -> VaccineDeliveryRow | None:
    cells: dict[str, list[str]] = {}
    for run in row:
        column = columns[bisect_right(bounds, run.x)]
        if column.key is None:
            continue
        cells.setdefault(column.key, []).append(run.text.strip())

    dates: list[str] = []
    for key in _DATE_KEYS:
        for token in DATE_TOKEN.finditer(" ".join(cells.get(key, []))):
            normalized = normalize_mm_dd_yyyy(token.group(0))
            if normalized:
                dates.append(normalized)
    if not dates:
        return None
    date_given, date_due = order_dates(dates[0], dates[1] if len(dates) > 1 else None)

    family, given = _split_client_name(" ".join(cells.get("client_name", [])))
    return VaccineDeliveryRow.build(
        date_given=date_given,
        date_due=date_due,
        patient_name=" ".join(cells.get("patient_name", [])).strip(),
        client_given_name=given,
        client_family_name=family,
        description=" ".join(cells.get("description", [])).strip() or UNKNOWN_DESCRIPTION,
        lot=lot,
    )


def _flatten(pages: Iterable[Sequence[TextRun]] | Iterable[TextRun]) -> list[TextRun]:
    runs: list[TextRun] = []
    for page_index, item in enumerate(pages):
        if isinstance(item, TextRun):
            runs.append(item)
            continue
        for run in item:
            runs.append(run if run.page == page_index else TextRun(run.x, run.y, run.text, page_index))
    return runs


def parse_vaccine_records_structured(
    pages: Iterable[Sequence[TextRun]] | Iterable[TextRun],
    tolerance: float = DEFAULT_ROW_TOLERANCE,
) -> list[VaccineDeliveryRow]:
    """Parse positioned runs (a list of pages, or a flat run list) into rows."""
    rows = group_rows(_flatten(pages), tolerance=tolerance)
    result: list[VaccineDeliveryRow] = []
    current_lot: LotMeta | None = None
    seen_lot = False
    columns: list[Column] = []
    bounds: list[float] = []
    in_table = False
    layout_found = False
    skipped = 0

    for row in rows:
        if _is_lot_header_row(row):
            lot_number, manufacturer, expiry = lot_from_header_row(row)
            if lot_number or manufacturer:
                current_lot = LotMeta(lot_number, manufacturer, expiry)
                seen_lot = True
            elif not seen_lot:
                current_lot = LotMeta.empty()
            in_table = False
            continue

        if _is_column_header_row(row):
            columns = columns_from_header(row)
            bounds = _boundaries(columns)
            if sum(1 for c in columns if c.key) >= 2:
                layout_found = True
            if current_lot is None and not seen_lot:
                current_lot = LotMeta.empty()
            in_table = True
            continue

        if TOTALS_LINE.match(_row_text(row)):
            in_table = False
            continue

        if not (in_table and columns and current_lot is not None):
            continue
        parsed = _row_from_cells(row, columns, bounds, current_lot)
        if parsed is None:
            skipped += 1
            continue
        result.append(parsed)

    if not layout_found and rows:
        logger.info("No column layout found; parsing linearized rows as text")
        return parse_vaccine_lines([line.text for line in rows_to_lines(rows)])

    logger.debug("vaccine structured parse rows=%d skipped_rows=%d", len(result), skipped)
    return result
