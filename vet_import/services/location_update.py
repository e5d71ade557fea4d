from __future__ import annotations

import logging
from collections.abc import Sequence
from datetime import UTC, datetime
from typing import Any

from ..logging.error_log import ResultArtifactWriter
from ..models.config_models import ImportOptions
from ..models.error_record import FailureEntry
from ..models.processing_result import OutcomeEntry, ReconciliationResult
from ..models.validation import Err
from .orchestrator import CLIENT_READ_ONLY_FIELDS, RemoteService, merge_for_update
from .progress import DEFAULT_PROGRESS_EVERY, ProgressReporter, ProgressTracker
from .validation import validate_client

"""Re-point previously imported records to the configured primary location.

A record counts as imported when its notes carry the import note written by
``import-csv``. Only clients have a ``primaryLocationId``; an imported patient
pulls its owning client into the update set. Each client is updated at most
once per run, and each imported patient is recorded with its client's outcome
(updated / skipped / failed).
"""

__all__ = [
    "get_notes",
    "carries_import_note",
    "update_imported_locations",
]

logger = logging.getLogger(__name__)


def get_notes(record: Any) -> str:
    """``notes``, else ``privateNotes``, else ''.

    >>> get_notes({"notes": "", "privateNotes": "Imported"})
    'Imported'
    >>> get_notes(None)
    ''
    """
    if not isinstance(record, dict):
        return ""
    for key in ("notes", "privateNotes"):
        value = record.get(key)
        if isinstance(value, str) and value:
            return value
    return ""


def carries_import_note(record: Any, import_notes: str) -> bool:
    return bool(import_notes) and import_notes in get_notes(record)


def _target_clients(
    clients: Sequence[dict[str, Any]],
    patients: Sequence[dict[str, Any]],
    import_notes: str,
) -> tuple[list[dict[str, Any]], dict[str, list[dict[str, Any]]]]:
    """Clients to re-point (input order, deduplicated) and imported patients per client id."""
    by_id = {str(c["id"]): c for c in clients if c.get("id")}
    targets: dict[str, dict[str, Any]] = {}
    for client in clients:
        if client.get("id") and carries_import_note(client, import_notes):
            targets.setdefault(str(client["id"]), client)

    patients_by_client: dict[str, list[dict[str, Any]]] = {}
    for patient in patients:
        if not carries_import_note(patient, import_notes):
            continue
        owner = patient.get("client")
        owner_id = owner.get("id") if isinstance(owner, dict) else None
        if not owner_id:
            logger.warning("Imported patient id=%s has no client; skipped", patient.get("id"))
            continue
        owner_id = str(owner_id)
        # 患者に埋め込まれた client は一部フィールドのみ
        targets.setdefault(owner_id, by_id.get(owner_id) or owner)
        patients_by_client.setdefault(owner_id, []).append(patient)
    return list(targets.values()), patients_by_client


def _repoint_client(
    client: dict[str, Any],
    location_id: str,
    remote: RemoteService,
    result: ReconciliationResult,
) -> str:
    """Update one client; returns 'updated', 'skipped' or 'failed'."""
    client_id = str(client["id"])
    if client.get("primaryLocationId") == location_id:
        logger.debug("Skip client id=%s (already at location %s)", client_id, location_id)
        result.client.skipped.append(OutcomeEntry(input_record=client, remote_record=client))
        return "skipped"

    payload = merge_for_update(client, {"primaryLocationId": location_id}, CLIENT_READ_ONLY_FIELDS)
    try:
        response = remote.update_record("client", client_id, payload)
    except Exception as e:
        logger.error("Update client id=%s failed: %s", client_id, e)
        result.client.failed.append(FailureEntry.create(payload, str(e)))
        return "failed"
    checked = validate_client(response)
    if isinstance(checked, Err):
        logger.error("Update client id=%s returned an invalid record: %s", client_id, checked.reason)
        result.client.failed.append(FailureEntry.create(payload, checked.reason))
        return "failed"
    result.client.updated.append(OutcomeEntry(input_record=payload, remote_record=response, old_record=client))
    return "updated"


def _record_patients(
    patients: Sequence[dict[str, Any]],
    outcome: str,
    error: str | None,
    result: ReconciliationResult,
) -> None:
    for patient in patients:
        if outcome == "failed":
            result.patient.failed.append(FailureEntry.create(patient, error or "client update failed"))
        elif outcome == "updated":
            result.patient.updated.append(OutcomeEntry(input_record=patient, remote_record=patient))
        else:
            result.patient.skipped.append(OutcomeEntry(input_record=patient, remote_record=patient))


def update_imported_locations(
    clients: Sequence[dict[str, Any]],
    patients: Sequence[dict[str, Any]],
    remote: RemoteService,
    options: ImportOptions,
    location_id: str,
    *,
    import_notes: str,
    progress_every: int = DEFAULT_PROGRESS_EVERY,
    writer: ResultArtifactWriter | None = None,
) -> ReconciliationResult:
    """Set ``primaryLocationId`` on every imported client not already there.

    ``options.limit`` caps the number of clients considered. Failures are
    recorded per client and never abort the run.
    """
    targets, patients_by_client = _target_clients(clients, patients, import_notes)
    if options.limit is not None:
        targets = targets[: options.limit]
    logger.info(
        "Found %d imported clients (%d imported patients) to check against location %s",
        len(targets), sum(len(v) for v in patients_by_client.values()), location_id,
    )

    result = ReconciliationResult(total_records=len(targets), start_time=datetime.now(UTC))
    reporter = ProgressReporter(len(targets), every=progress_every)
    with ProgressTracker(len(targets), description="Updating locations") as progress:
        for index, client in enumerate(targets, start=1):
            failed_before = len(result.client.failed)
            outcome = _repoint_client(client, location_id, remote, result)
            error = result.client.failed[-1].error if len(result.client.failed) > failed_before else None
            _record_patients(patients_by_client.get(str(client["id"]), []), outcome, error, result)

            counts = result.counts()
            reporter.record(index, counts)
            progress.advance(updated=counts.updated, failed=counts.failed)

    result.end_time = datetime.now(UTC)

    if options.track_results and writer is not None:
        results_path, failures_path = writer.write(result)
        logger.info("Results written to %s", results_path)
        logger.info("Failures written to %s", failures_path)
    return result
