from __future__ import annotations

import logging
from collections.abc import Sequence

from ..models.records import RECORD_KEYS, SENTINEL_KEY, ClientPatientRecord
from .normalizer import normalize_lines, repair_glued_keys

"""Key/value record parser for the legacy client/patient export.

The export linearizes to alternating ``key`` / ``value`` lines:

    patientId
    5987
    patientName
    Abby
    ...

Values can be missing (the next line is already a key) and keys can be glued
together by the extractor. The stream is read in a single pass; ``patientId``
starts a new record and flushes the previous one.
"""

__all__ = [
    "parse_client_patient_records",
    "parse_client_patient_lines",
]

logger = logging.getLogger(__name__)

_KEY_SET = frozenset(RECORD_KEYS)


def parse_client_patient_records(pdf_text: str) -> list[ClientPatientRecord]:
    """Parse raw extracted text into complete ClientPatientRecord objects."""
    lines = repair_glued_keys(normalize_lines(pdf_text), RECORD_KEYS)
    return parse_client_patient_lines(lines)


def parse_client_patient_lines(lines: Sequence[str]) -> list[ClientPatientRecord]:
    """Parse already-normalized lines.

    Only records with both ``patientId`` and ``patientName`` are emitted; every
    other field may be None.
    """
    records: list[ClientPatientRecord] = []
    current: dict[str, str | None] | None = None
    skipped_noise = 0

    def flush() -> None:
        if current is None:
            return
        record = ClientPatientRecord(**current)
        if record.is_complete():
            records.append(record)
        else:
            logger.debug("dropping incomplete record patientId=%s", record.patientId)

    i = 0
    while i < len(lines):
        line = lines[i]
        has_next = i + 1 < len(lines)
        nxt = lines[i + 1] if has_next else None

        if line == SENTINEL_KEY and has_next:
            flush()
            current = {key: None for key in RECORD_KEYS}
            if nxt in _KEY_SET:
                # patientId の値欠落: このレコードは patientId 無しのまま (出力されない)
                i += 1
            else:
                current[SENTINEL_KEY] = nxt
                i += 2
            continue

        if current is not None and line in _KEY_SET and has_next:
            if nxt in _KEY_SET:
                # 値欠落 -> None, 次行をキーとして再処理
                current[line] = None
                i += 1
            else:
                current[line] = nxt
                i += 2
            continue

        skipped_noise += 1
        i += 1

    flush()
    logger.debug("parsed %d records (%d noise lines skipped)", len(records), skipped_noise)
    return records
