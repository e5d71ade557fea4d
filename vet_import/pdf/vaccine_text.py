from __future__ import annotations

import logging
import re
from collections.abc import Sequence

from ..models.vaccine import UNKNOWN_DESCRIPTION, LotMeta, VaccineDeliveryRow
from .dates import DATE_TOKEN, normalize_mm_dd_yyyy, order_dates
from .normalizer import normalize_lines

"""Vaccine report parser: plain text (no layout information) strategy.

The report is a sequence of lot groups::

    Lot # Manufacturer Expiration          <- lot header, values nearby
    A12345
    Zoetis
    12/31/2025
    Date Given/Due Patient Name Description Client Name   <- table header
    01/15/2024 01/15/2025 Rabies 3 Yr DVM Buddy Smith, John
    ...
    Total Number of Vaccinations: 12       <- end of table

Rows that cannot be parsed are dropped silently; legacy exports are noisy and a
dangling date fragment is not an error.
"""

__all__ = [
    "parse_vaccine_records",
    "parse_vaccine_lines",
    "parse_vaccine_row",
    "find_lot_meta",
    "is_table_header",
]

logger = logging.getLogger(__name__)

LOT_HEADER = re.compile(r"^lot\s*#?\s*manufacturer", re.IGNORECASE)
TOTALS_LINE = re.compile(r"^total number of vaccinations", re.IGNORECASE)
ROW_DATES = re.compile(r"^\s*(\d{1,2}/\d{1,2}/\d{4})\s*(\d{1,2}/\d{1,2}/\d{4})\s*(.*)$")

LOOK_BACK = 3
LOOK_AHEAD = 7

_LOT_TOKEN = re.compile(r"^[A-Za-z0-9]+$")
_MANUFACTURER_WORD = re.compile(r"^[A-Za-z][A-Za-z&.'\-]*$")
_HEADER_WORDS = frozenset({
    "lot", "manufacturer", "expiration", "expiry", "exp", "date", "dates", "given", "due",
    "patient", "client", "name", "description", "total", "number", "vaccinations",
    "vaccination", "page", "report", "tag",
})
_TAG_SUFFIX = re.compile(r"\s*-{1,2}\d+(?:-\d+)*\s*$")
_FAMILY_NAME = re.compile(r"((?:Mc|Mac|O')?[A-Z][a-z'’]+(?:-[A-Z][a-z'’]+)*)\s*$")
_PATIENT_RUN = re.compile(r"([A-Z][a-z'’.\-]+(?:\s+[A-Z][a-z'’.\-]+)*)\s*$")
_PROVIDER_CODE = re.compile(r"(?:^|(?<=\s))[A-Z]{2,4}\d?\s*$")
_DIGIT = re.compile(r"\d")


def parse_vaccine_records(pdf_text: str) -> list[VaccineDeliveryRow]:
    """Parse linearized report text into delivery rows."""
    return parse_vaccine_lines(normalize_lines(pdf_text))


def parse_vaccine_lines(lines: Sequence[str]) -> list[VaccineDeliveryRow]:
    rows: list[VaccineDeliveryRow] = []
    current_lot: LotMeta | None = None
    seen_lot = False
    in_table = False
    dropped = 0

    for i, line in enumerate(lines):
        if LOT_HEADER.match(line):
            lot_number, manufacturer, expiry = find_lot_meta(lines, i)
            if lot_number or manufacturer:
                current_lot = LotMeta(lot_number or "", manufacturer or "", expiry or "")
                seen_lot = True
            elif not seen_lot:
                # 最初のロット前の "エラー行" バッチ
                current_lot = LotMeta.empty()
            # ロット既出で値なし = ページ跨ぎの繰り返しヘッダ -> 現在のロットを維持
            in_table = False
            continue

        if is_table_header(line):
            if current_lot is None and not seen_lot:
                current_lot = LotMeta.empty()
            in_table = True
            continue

        if TOTALS_LINE.match(line):
            in_table = False
            continue

        if in_table and current_lot is not None:
            row = parse_vaccine_row(line, current_lot)
            if row is None:
                dropped += 1
                continue
            rows.append(row)

    logger.debug("vaccine text parse rows=%d dropped_lines=%d", len(rows), dropped)
    return rows


def is_table_header(line: str) -> bool:
    lowered = line.lower()
    return "patient name" in lowered and "client name" in lowered and "date" in lowered


def _starts_with_date_pair(line: str) -> bool:
    return ROW_DATES.match(line) is not None


def _is_date_shaped(token: str) -> bool:
    if DATE_TOKEN.fullmatch(token):
        return True
    # MMDDYYYY がスラッシュ無しで出力されるケース
    if len(token) == 8 and token.isdigit():
        return normalize_mm_dd_yyyy(f"{token[:2]}/{token[2:4]}/{token[4:]}") is not None
    return False


def _is_lot_token(token: str) -> bool:
    if len(token) < 3 or not _LOT_TOKEN.match(token):
        return False
    if not _DIGIT.search(token):
        return False
    if _is_date_shaped(token):
        return False
    # 純数字の短いトークンは合計値の可能性
    if token.isdigit() and len(token) < 5:
        return False
    return True


def _manufacturer_from(words: list[str]) -> str | None:
    if not words:
        return None
    if not all(_MANUFACTURER_WORD.match(w) for w in words):
        return None
    if any(w.lower().strip(".:#") in _HEADER_WORDS for w in words):
        return None
    return " ".join(words)


def _scan_line(line: str) -> tuple[str | None, str | None, str | None]:
    """Return (lot, manufacturer, expiry) tokens found on one candidate line."""
    expiry = None
    m = DATE_TOKEN.search(line)
    if m:
        expiry = normalize_mm_dd_yyyy(m.group(0))
        line = line[: m.start()] + " " + line[m.end():]
    words = line.split()
    lot = next((w for w in words if _is_lot_token(w)), None)
    rest = [w for w in words if w != lot]
    manufacturer = _manufacturer_from(rest)
    return lot, manufacturer, expiry


def find_lot_meta(lines: Sequence[str], header_index: int) -> tuple[str | None, str | None, str | None]:
    """Search the lines around a lot header for lot number, manufacturer, expiry.

    Forward lines (up to 7) are searched first, then backward lines (up to 3),
    nearest first. The search stops at data rows, totals lines and other lot
    headers so values are never borrowed from a neighbouring group.
    """
    lot: str | None = None
    manufacturer: str | None = None
    expiry: str | None = None

    forward = lines[header_index + 1 : header_index + 1 + LOOK_AHEAD]
    backward = list(reversed(lines[max(0, header_index - LOOK_BACK) : header_index]))

    for window in (forward, backward):
        for candidate in window:
            if (
                _starts_with_date_pair(candidate)
                or TOTALS_LINE.match(candidate)
                or LOT_HEADER.match(candidate)
            ):
                break
            if is_table_header(candidate):
                continue
            found_lot, found_mfr, found_exp = _scan_line(candidate)
            lot = lot or found_lot
            manufacturer = manufacturer or found_mfr
            expiry = expiry or found_exp
            if lot and manufacturer and expiry:
                return lot, manufacturer, expiry
    return lot, manufacturer, expiry


def _strip_provider_codes(text: str) -> str:
    while True:
        stripped = _PROVIDER_CODE.sub("", text).rstrip()
        if stripped == text:
            return text
        text = stripped


def parse_vaccine_row(line: str, lot: LotMeta | None) -> VaccineDeliveryRow | None:
    """Parse one data row; None when the line is not a complete row."""
    m = ROW_DATES.match(line)
    if not m:
        return None
    first = normalize_mm_dd_yyyy(m.group(1))
    second = normalize_mm_dd_yyyy(m.group(2))
    if first is None or second is None:
        return None
    date_given, date_due = order_dates(first, second)
    rest = m.group(3)

    comma = rest.rfind(",")
    if comma < 0:
        return None
    given_name = rest[comma + 1 :].strip()
    if not given_name or _DIGIT.search(given_name):
        return None

    before_comma = rest[:comma].rstrip()
    family_match = _FAMILY_NAME.search(before_comma)
    if not family_match:
        return None
    family_name = family_match.group(1)

    head = _TAG_SUFFIX.sub("", before_comma[: family_match.start()].rstrip()).rstrip()
    patient_match = _PATIENT_RUN.search(head)
    if not patient_match:
        return None
    patient_name = patient_match.group(1).strip()

    description = _strip_provider_codes(head[: patient_match.start()].rstrip())
    if not description:
        description = UNKNOWN_DESCRIPTION

    return VaccineDeliveryRow.build(
        date_given=date_given,
        date_due=date_due,
        patient_name=patient_name,
        client_given_name=given_name,
        client_family_name=family_name,
        description=description,
        lot=lot,
    )
