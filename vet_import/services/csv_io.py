from __future__ import annotations

from collections.abc import Sequence
from pathlib import Path

import pandas as pd

from ..logging.error_log import file_stamp
from ..models.records import RECORD_KEYS, ClientPatientRecord

"""CSV persistence of ClientPatientRecord (convert-pdf output, import-csv input).

Columns follow RECORD_KEYS. Everything is read as text (``dtype=str``) with
pandas' default NA strings disabled, so legacy values such as "NA" or "N/A - D"
survive; only empty cells become None.
"""

__all__ = [
    "CsvFormatError",
    "write_records_csv",
    "read_records_csv",
]


class CsvFormatError(Exception):
    """Raised when an input CSV lacks the expected record columns."""


def write_records_csv(records: Sequence[ClientPatientRecord], output_dir: Path) -> Path:
    output_dir = Path(output_dir)
    output_dir.mkdir(parents=True, exist_ok=True)
    path = output_dir / f"client-patient-records_{file_stamp()}.csv"
    df = pd.DataFrame([r.to_dict() for r in records], columns=list(RECORD_KEYS))
    df.to_csv(path, index=False)
    return path


def read_records_csv(path: Path) -> list[ClientPatientRecord]:
    try:
        df = pd.read_csv(path, dtype=str, keep_default_na=False, na_values=[""], skip_blank_lines=True)
    except pd.errors.EmptyDataError as e:
        raise CsvFormatError(f"CSV file is empty: {path}") from e

    missing = [key for key in RECORD_KEYS if key not in df.columns]
    if missing:
        raise CsvFormatError(f"CSV {path} is missing columns: {', '.join(missing)}")

    df = df.astype(object).where(df.notna(), None)
    return [ClientPatientRecord.from_mapping(row) for row in df.to_dict(orient="records")]
