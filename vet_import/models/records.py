from __future__ import annotations

from dataclasses import asdict, dataclass, fields
from typing import Any, Mapping

"""ClientPatientRecord model for the legacy client/patient export.

One record = one patient row of the legacy report together with its owner.
Field names are the literal key tokens printed in the PDF export, which is why
they stay camelCase here: the key/value parser matches lines against them and
the CSV header reuses them unchanged.
"""

__all__ = [
    "ClientPatientRecord",
    "RECORD_KEYS",
    "SENTINEL_KEY",
]


@dataclass
class ClientPatientRecord:
    """Flat client + patient row recovered from the key/value report.

    Every field is ``str | None``. A record is emittable only once both
    ``patientId`` and ``patientName`` are set (see :meth:`is_complete`).
    """
    patientId: str | None = None
    patientName: str | None = None
    patientSpecies: str | None = None
    patientBreed: str | None = None
    patientSexSpay: str | None = None
    clientId: str | None = None
    clientFirstName: str | None = None
    clientLastName: str | None = None
    clientPhone: str | None = None
    clientEmail: str | None = None
    clientStreetAddr: str | None = None
    patientWeight: str | None = None
    patientColor: str | None = None
    patientDOB: str | None = None
    clientPostCode: str | None = None
    clientCity: str | None = None
    clientState: str | None = None
    patientStatus: str | None = None

    def is_complete(self) -> bool:
        return bool(self.patientId) and bool(self.patientName)

    def to_dict(self) -> dict[str, str | None]:
        return asdict(self)

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> ClientPatientRecord:
        """Build a record from a mapping, ignoring unknown keys.

        Empty strings are stored as ``None`` so CSV round trips and freshly
        parsed records look the same to the transformer.
        """
        values: dict[str, str | None] = {}
        for key in RECORD_KEYS:
            raw = data.get(key)
            if raw is None:
                values[key] = None
                continue
            text = str(raw).strip()
            values[key] = text or None
        return cls(**values)


# PDF 上のキー順 (CSV ヘッダ順にも使用)
RECORD_KEYS: tuple[str, ...] = tuple(f.name for f in fields(ClientPatientRecord))

SENTINEL_KEY = "patientId"
