from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from .error_record import FailureEntry, utc_timestamp

"""Reconciliation result models for the legacy import tool.

ReconciliationResult is created once per run, mutated only by the
reconciliation engine and serialized at the end (summary line + optional
tracked-results artifacts).
"""

__all__ = [
    "MatchReason",
    "Match",
    "OutcomeEntry",
    "EntityOutcomes",
    "OutcomeCounts",
    "ReconciliationResult",
    "ImmunizationResult",
]


class MatchReason:
    """Why an existing remote record was judged equivalent (priority order)."""
    HISTORICAL_ID = "historicalId"
    EMAIL = "email"
    NAME = "name"
    NAME_AND_CLIENT = "name+client"


@dataclass(frozen=True)
class Match:
    record: dict[str, Any]
    match_reason: str


@dataclass(frozen=True)
class OutcomeEntry:
    """Successful outcome (created / skipped / updated)."""
    input_record: dict[str, Any]
    remote_record: dict[str, Any] | None = None  # created / updated / matched record
    old_record: dict[str, Any] | None = None  # update 前のリモートレコード
    match_reason: str | None = None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"inputRecord": self.input_record}
        if self.remote_record is not None:
            data["remoteRecord"] = self.remote_record
        if self.old_record is not None:
            data["oldRecord"] = self.old_record
        if self.match_reason is not None:
            data["matchReason"] = self.match_reason
        return data


@dataclass
class EntityOutcomes:
    """Outcome lists for one entity type (client or patient)."""
    created: list[OutcomeEntry] = field(default_factory=list)
    skipped: list[OutcomeEntry] = field(default_factory=list)
    updated: list[OutcomeEntry] = field(default_factory=list)
    failed: list[FailureEntry] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "created": [e.to_dict() for e in self.created],
            "skipped": [e.to_dict() for e in self.skipped],
            "updated": [e.to_dict() for e in self.updated],
            "failed": [e.to_dict() for e in self.failed],
        }


@dataclass(frozen=True)
class OutcomeCounts:
    """Counts summed across client + patient (progress reporting)."""
    created: int = 0
    failed: int = 0
    updated: int = 0
    skipped: int = 0

    def minus(self, other: OutcomeCounts) -> OutcomeCounts:
        return OutcomeCounts(
            created=self.created - other.created,
            failed=self.failed - other.failed,
            updated=self.updated - other.updated,
            skipped=self.skipped - other.skipped,
        )


@dataclass
class ReconciliationResult:
    """Accumulator for one client/patient reconciliation run."""
    total_records: int = 0
    timestamp: str = field(default_factory=utc_timestamp)
    client: EntityOutcomes = field(default_factory=EntityOutcomes)
    patient: EntityOutcomes = field(default_factory=EntityOutcomes)
    start_time: datetime | None = None
    end_time: datetime | None = None

    @property
    def elapsed_seconds(self) -> float:
        if self.start_time is None or self.end_time is None:
            return 0.0
        return (self.end_time - self.start_time).total_seconds()

    @property
    def failed_count(self) -> int:
        return len(self.client.failed) + len(self.patient.failed)

    def counts(self) -> OutcomeCounts:
        return OutcomeCounts(
            created=len(self.client.created) + len(self.patient.created),
            failed=len(self.client.failed) + len(self.patient.failed),
            updated=len(self.client.updated) + len(self.patient.updated),
            skipped=len(self.client.skipped) + len(self.patient.skipped),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "timestamp": self.timestamp,
            "totalRecords": self.total_records,
            "client": self.client.to_dict(),
            "patient": self.patient.to_dict(),
        }

    def failures_dict(self) -> dict[str, Any]:
        """Failures-only projection written next to the full result."""
        return {
            "timestamp": self.timestamp,
            "totalRecords": self.total_records,
            "clientsFailed": [e.to_dict() for e in self.client.failed],
            "patientsFailed": [e.to_dict() for e in self.patient.failed],
        }


@dataclass
class ImmunizationResult:
    """Accumulator for one immunization import run (no update path)."""
    total_records: int = 0
    timestamp: str = field(default_factory=utc_timestamp)
    created: list[OutcomeEntry] = field(default_factory=list)
    skipped: list[OutcomeEntry] = field(default_factory=list)
    failed: list[FailureEntry] = field(default_factory=list)
    start_time: datetime | None = None
    end_time: datetime | None = None

    @property
    def elapsed_seconds(self) -> float:
        if self.start_time is None or self.end_time is None:
            return 0.0
        return (self.end_time - self.start_time).total_seconds()

    @property
    def failed_count(self) -> int:
        return len(self.failed)

    def counts(self) -> OutcomeCounts:
        return OutcomeCounts(
            created=len(self.created),
            failed=len(self.failed),
            skipped=len(self.skipped),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "timestamp": self.timestamp,
            "totalRecords": self.total_records,
            "immunizationsCreated": [e.to_dict() for e in self.created],
            "immunizationsSkipped": [e.to_dict() for e in self.skipped],
            "immunizationsFailed": [e.to_dict() for e in self.failed],
        }

    def failures_dict(self) -> dict[str, Any]:
        return {
            "timestamp": self.timestamp,
            "totalRecords": self.total_records,
            "immunizationsFailed": [e.to_dict() for e in self.failed],
        }
