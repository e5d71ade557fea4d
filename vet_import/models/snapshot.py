from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

"""In-memory snapshot of the remote clients and patients."""

__all__ = ["RemoteSnapshot"]


@dataclass
class RemoteSnapshot:
    """Existing remote records in fetch order (never re-sorted).

    The reconciler writes created and updated records back into the lists so
    later rows of the same run can match them.
    """
    clients: list[dict[str, Any]] = field(default_factory=list)
    patients: list[dict[str, Any]] = field(default_factory=list)

    def upsert_client(self, record: dict[str, Any]) -> None:
        _upsert(self.clients, record)

    def upsert_patient(self, record: dict[str, Any]) -> None:
        _upsert(self.patients, record)


def _upsert(records: list[dict[str, Any]], record: dict[str, Any]) -> None:
    record_id = record.get("id")
    for i, existing in enumerate(records):
        if record_id and existing.get("id") == record_id:
            records[i] = record
            return
    records.append(record)
