from __future__ import annotations

import json
import logging
from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass, field
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

from ..logging.error_log import ResultArtifactWriter, file_stamp, write_json
from ..models.config_models import ImportOptions
from ..models.error_record import FailureEntry, utc_timestamp
from ..models.processing_result import ImmunizationResult, OutcomeEntry
from ..models.validation import Err
from ..models.vaccine import VaccineDeliveryRow
from .field_mapping import FieldMapping, project_fields
from .matching import deep_equal
from .orchestrator import RemoteService
from .progress import DEFAULT_PROGRESS_EVERY, ProgressReporter, ProgressTracker
from .transformer import patient_client_key, to_immunization_draft
from .validation import validate_immunization

"""Immunization proposals and their reconciliation.

propose:   vaccine rows + patient lookup -> proposals (drafts) / unmatched rows
reconcile: each draft, overlaid with the run's location and provider, is
           compared with the immunizations already recorded for its patient.
           Equal -> skip, otherwise create. There is no update path.

Remote immunizations are projected into the draft shape through
REMOTE_IMMUNIZATION_FIELDS before comparison. ``patientId`` is never compared
(IMMUNIZATION_COMPARE_IGNORE); the grouping by patient already covers it.
"""

__all__ = [
    "ProposalsFormatError",
    "ProposalSet",
    "REMOTE_IMMUNIZATION_FIELDS",
    "IMMUNIZATION_COMPARE_IGNORE",
    "project_remote_immunization",
    "existing_immunizations_by_patient",
    "build_proposals",
    "write_proposals",
    "read_proposals",
    "write_vaccine_rows",
    "reconcile_immunizations",
]

logger = logging.getLogger(__name__)

REMOTE_IMMUNIZATION_FIELDS: tuple[FieldMapping, ...] = (
    FieldMapping("patient.id", "patientId"),
    FieldMapping("name", "name"),
    FieldMapping("date", "date"),
    FieldMapping("dueDate", "dueDate"),
    FieldMapping("lotNumber", "lotNumber"),
    FieldMapping("manufacturer", "manufacturer"),
    FieldMapping("expiryDate", "expiryDate"),
    FieldMapping("administered", "administered"),
    FieldMapping("historical", "historical"),
    FieldMapping("location.id", "locationId"),
    FieldMapping("provider.id", "providerId"),
)

IMMUNIZATION_COMPARE_IGNORE = frozenset({"patientId"})


class ProposalsFormatError(Exception):
    """Raised when a proposals file is neither a list nor ``{"proposals": [...]}``."""


def project_remote_immunization(record: Mapping[str, Any]) -> dict[str, Any]:
    return project_fields(record, REMOTE_IMMUNIZATION_FIELDS)


def existing_immunizations_by_patient(patients: Iterable[Mapping[str, Any]]) -> dict[str, list[dict[str, Any]]]:
    """Group remote immunizations (input shape) by owning patient id."""
    grouped: dict[str, list[dict[str, Any]]] = {}
    for patient in patients:
        patient_id = patient.get("id")
        if not patient_id:
            continue
        immunizations = patient.get("immunizations")
        if not isinstance(immunizations, list):
            immunizations = []
        grouped.setdefault(str(patient_id), []).extend(
            project_remote_immunization(i) for i in immunizations if isinstance(i, Mapping)
        )
    return grouped


# ---------------------------------------------------------------- proposals

@dataclass
class ProposalSet:
    proposals: list[dict[str, Any]] = field(default_factory=list)
    unmatched: list[dict[str, Any]] = field(default_factory=list)


def build_proposals(rows: Sequence[VaccineDeliveryRow], lookup: Mapping[str, str]) -> ProposalSet:
    result = ProposalSet()
    for row in rows:
        key = patient_client_key(row.patient_name, row.client_family_name, row.client_given_name)
        patient_id = lookup.get(key)
        if not patient_id:
            result.unmatched.append({"key": key, "row": row.to_dict(), "reason": "no_match"})
            continue
        result.proposals.append(to_immunization_draft(row, patient_id))
    logger.info("Prepared %d proposals, %d rows unmatched", len(result.proposals), len(result.unmatched))
    return result


def write_proposals(
    proposal_set: ProposalSet,
    output_dir: Path,
    *,
    source_pdf: Path,
    total_rows: int,
    used_lookup: bool,
    location_id_present: bool,
    provider_id_present: bool,
) -> Path:
    payload = {
        "meta": {
            "timestamp": utc_timestamp(),
            "sourcePdf": str(Path(source_pdf).resolve()),
            "totalRows": total_rows,
            "totalProposals": len(proposal_set.proposals),
            "totalUnmatched": len(proposal_set.unmatched),
            "usedLookup": used_lookup,
            "locationIdPresent": location_id_present,
            "providerIdPresent": provider_id_present,
        },
        "proposals": proposal_set.proposals,
        "unmatched": proposal_set.unmatched,
    }
    return write_json(Path(output_dir) / f"immunization-proposals_{file_stamp()}.json", payload)


def read_proposals(path: Path) -> list[dict[str, Any]]:
    """Load drafts from ``{"proposals": [...]}`` or a bare JSON list."""
    try:
        with Path(path).open(encoding="utf-8") as f:
            data = json.load(f)
    except json.JSONDecodeError as e:
        raise ProposalsFormatError(f"Invalid JSON in {path}: {e}") from e
    if isinstance(data, dict):
        data = data.get("proposals")
    if not isinstance(data, list):
        raise ProposalsFormatError("Invalid proposals file format: expected array or { proposals: [] }")
    if not all(isinstance(item, dict) for item in data):
        raise ProposalsFormatError("Invalid proposals file format: every proposal must be an object")
    return data


def write_vaccine_rows(rows: Sequence[VaccineDeliveryRow], output_dir: Path) -> Path:
    return write_json(Path(output_dir) / f"vaccine-rows_{file_stamp()}.json", [r.to_dict() for r in rows])


# ------------------------------------------------------------ reconciliation

def reconcile_immunizations(
    drafts: Sequence[Mapping[str, Any]],
    existing_by_patient: dict[str, list[dict[str, Any]]],
    remote: RemoteService,
    options: ImportOptions,
    location_id: str,
    provider_id: str,
    *,
    progress_every: int = DEFAULT_PROGRESS_EVERY,
    writer: ResultArtifactWriter | None = None,
) -> ImmunizationResult:
    """Create each draft unless an identical immunization already exists.

    ``existing_by_patient`` is extended with every created record so duplicate
    drafts within one file are skipped.
    """
    if options.limit is not None:
        drafts = drafts[: options.limit]
    result = ImmunizationResult(total_records=len(drafts), start_time=datetime.now(UTC))
    reporter = ProgressReporter(len(drafts), every=progress_every)

    with ProgressTracker(len(drafts), description="Importing immunizations") as progress:
        for index, draft in enumerate(drafts, start=1):
            payload = {**draft, "locationId": location_id, "providerId": provider_id}
            _reconcile_one(payload, existing_by_patient, remote, result)
            counts = result.counts()
            reporter.record(index, counts)
            progress.advance(created=counts.created, failed=counts.failed)

    result.end_time = datetime.now(UTC)
    if options.track_results and writer is not None:
        results_path, failures_path = writer.write(result)
        logger.info("Results written to %s", results_path)
        logger.info("Failures written to %s", failures_path)
    return result


def _reconcile_one(
    payload: dict[str, Any],
    existing_by_patient: dict[str, list[dict[str, Any]]],
    remote: RemoteService,
    result: ImmunizationResult,
) -> None:
    patient_id = payload.get("patientId")
    if not patient_id:
        result.failed.append(FailureEntry.create(payload, "proposal has no patientId"))
        return

    existing = existing_by_patient.setdefault(str(patient_id), [])
    for record in existing:
        if deep_equal(payload, record, ignore=IMMUNIZATION_COMPARE_IGNORE):
            logger.debug("Skip immunization %s for patient %s (already recorded)", payload.get("name"), patient_id)
            result.skipped.append(OutcomeEntry(input_record=payload, remote_record=record))
            return

    try:
        response = remote.create_record("immunization", payload)
    except Exception as e:
        logger.error("Create immunization for patient %s failed: %s", patient_id, e)
        result.failed.append(FailureEntry.create(payload, str(e)))
        return
    checked = validate_immunization(response)
    if isinstance(checked, Err):
        logger.error("Create immunization for patient %s returned an invalid record: %s", patient_id, checked.reason)
        result.failed.append(FailureEntry.create(payload, checked.reason))
        return
    result.created.append(OutcomeEntry(input_record=payload, remote_record=response))
    existing.append(dict(payload))
