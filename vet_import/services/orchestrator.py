from __future__ import annotations

import logging
from collections.abc import Callable, Sequence
from datetime import UTC, datetime
from typing import Any, Protocol

from ..logging.error_log import ResultArtifactWriter
from ..models.config_models import ImportOptions, TransformSettings
from ..models.error_record import FailureEntry
from ..models.processing_result import EntityOutcomes, OutcomeEntry, ReconciliationResult
from ..models.records import ClientPatientRecord
from ..models.snapshot import RemoteSnapshot
from ..models.validation import Err, Validated
from .matching import deep_equal, find_client_match, find_patient_match
from .progress import DEFAULT_PROGRESS_EVERY, ProgressReporter, ProgressTracker
from .transformer import transform_input_row
from .validation import validate_client, validate_patient

"""Client / patient reconciliation engine.

Per input record, client side first, then patient side:

    Unprocessed -> Matched   -> Skipped | Updated | UpdateFailed
                -> Unmatched -> Created | CreateFailed

CreateFailed on the client ends the record (the patient is never attempted).
Remote failures and invalid responses are recorded per record and never abort
the run. Records are processed strictly in input order.
"""

__all__ = [
    "RemoteService",
    "merge_for_update",
    "reconcile",
    "CLIENT_READ_ONLY_FIELDS",
    "PATIENT_READ_ONLY_FIELDS",
]

logger = logging.getLogger(__name__)

CLIENT_READ_ONLY_FIELDS = frozenset({"id"})
PATIENT_READ_ONLY_FIELDS = frozenset({"id", "client"})


class RemoteService(Protocol):
    def create_record(self, kind: str, payload: dict[str, Any], parent_id: str | None = None) -> dict[str, Any]: ...

    def update_record(self, kind: str, record_id: str, payload: dict[str, Any]) -> dict[str, Any]: ...


def merge_for_update(remote: dict[str, Any], payload: dict[str, Any], read_only: frozenset[str]) -> dict[str, Any]:
    merged = {k: v for k, v in remote.items() if k not in read_only}
    merged.update(payload)
    return merged


def _create(
    remote: RemoteService,
    kind: str,
    payload: dict[str, Any],
    validate: Callable[[Any], Validated],
    outcomes: EntityOutcomes,
    parent_id: str | None = None,
) -> dict[str, Any] | None:
    """Create one record; returns the validated record or None on failure."""
    try:
        response = remote.create_record(kind, payload, parent_id)
    except Exception as e:
        logger.error("Create %s failed: %s", kind, e)
        outcomes.failed.append(FailureEntry.create(payload, str(e)))
        return None
    checked = validate(response)
    if isinstance(checked, Err):
        logger.error("Create %s returned an invalid record: %s", kind, checked.reason)
        outcomes.failed.append(FailureEntry.create(payload, checked.reason))
        return None
    outcomes.created.append(OutcomeEntry(input_record=payload, remote_record=response))
    return response


def _compare_or_update(
    remote: RemoteService,
    kind: str,
    payload: dict[str, Any],
    matched: dict[str, Any],
    match_reason: str,
    validate: Callable[[Any], Validated],
    outcomes: EntityOutcomes,
    read_only: frozenset[str],
) -> dict[str, Any] | None:
    """Skip when equal, otherwise update. Returns the new record on update."""
    if deep_equal(payload, matched):
        logger.debug("Skip %s id=%s (%s match, unchanged)", kind, matched.get("id"), match_reason)
        outcomes.skipped.append(OutcomeEntry(input_record=payload, remote_record=matched, match_reason=match_reason))
        return None

    merged = merge_for_update(matched, payload, read_only)
    try:
        response = remote.update_record(kind, str(matched["id"]), merged)
    except Exception as e:
        logger.error("Update %s id=%s failed: %s", kind, matched.get("id"), e)
        outcomes.failed.append(FailureEntry.create(merged, str(e)))
        return None
    checked = validate(response)
    if isinstance(checked, Err):
        logger.error("Update %s id=%s returned an invalid record: %s", kind, matched.get("id"), checked.reason)
        outcomes.failed.append(FailureEntry.create(merged, checked.reason))
        return None
    outcomes.updated.append(
        OutcomeEntry(input_record=merged, remote_record=response, old_record=matched, match_reason=match_reason)
    )
    return response


def _reconcile_client(
    client_input: dict[str, Any],
    snapshot: RemoteSnapshot,
    remote: RemoteService,
    result: ReconciliationResult,
) -> str | None:
    """Resolve the client id for one record; None means CreateFailed."""
    match = find_client_match(client_input, snapshot.clients)
    if match is None:
        created = _create(remote, "client", client_input, validate_client, result.client)
        if created is None:
            return None
        snapshot.upsert_client(created)
        return str(created["id"])

    updated = _compare_or_update(
        remote, "client", client_input, match.record, match.match_reason,
        validate_client, result.client, CLIENT_READ_ONLY_FIELDS,
    )
    if updated is not None:
        snapshot.upsert_client({**match.record, **updated})
    # UpdateFailed でも既存クライアント ID で患者処理は続行
    return str(match.record["id"])


def _reconcile_patient(
    patient_input: dict[str, Any],
    client_id: str,
    snapshot: RemoteSnapshot,
    remote: RemoteService,
    result: ReconciliationResult,
) -> None:
    match = find_patient_match(patient_input, snapshot.patients, client_id)
    if match is None:
        created = _create(remote, "patient", patient_input, validate_patient, result.patient, parent_id=client_id)
        if created is not None:
            snapshot.upsert_patient({**created, "client": created.get("client") or {"id": client_id}})
        return

    updated = _compare_or_update(
        remote, "patient", patient_input, match.record, match.match_reason,
        validate_patient, result.patient, PATIENT_READ_ONLY_FIELDS,
    )
    if updated is not None:
        snapshot.upsert_patient({**match.record, **updated, "client": match.record.get("client") or {"id": client_id}})


def reconcile(
    rows: Sequence[ClientPatientRecord],
    snapshot: RemoteSnapshot,
    remote: RemoteService,
    options: ImportOptions,
    *,
    settings: TransformSettings | None = None,
    progress_every: int = DEFAULT_PROGRESS_EVERY,
    writer: ResultArtifactWriter | None = None,
) -> ReconciliationResult:
    """Reconcile legacy rows against the remote snapshot.

    ``snapshot`` is mutated: created and updated records are written back so
    later rows of the same run match them. When ``options.track_results`` is
    set and a ``writer`` is given, the result and failures artifacts are
    written at the end.
    """
    if options.limit is not None:
        rows = rows[: options.limit]
    settings = settings or TransformSettings()
    result = ReconciliationResult(total_records=len(rows), start_time=datetime.now(UTC))
    reporter = ProgressReporter(len(rows), every=progress_every)

    with ProgressTracker(len(rows)) as progress:
        for index, row in enumerate(rows, start=1):
            transformed = transform_input_row(row, settings)
            logger.debug(
                "Record %d/%d legacy client=%s patient=%s",
                index, len(rows), transformed.metadata.get("clientId"), transformed.metadata.get("patientId"),
            )
            client_id = _reconcile_client(transformed.client, snapshot, remote, result)
            if client_id is None:
                logger.warning(
                    "Client creation failed for %s %s; patient %s not attempted",
                    transformed.client.get("givenName"), transformed.client.get("familyName"),
                    transformed.patient.get("name"),
                )
            else:
                _reconcile_patient(transformed.patient, client_id, snapshot, remote, result)

            counts = result.counts()
            reporter.record(index, counts)
            progress.advance(created=counts.created, failed=counts.failed)

    result.end_time = datetime.now(UTC)

    if options.track_results and writer is not None:
        results_path, failures_path = writer.write(result)
        logger.info("Results written to %s", results_path)
        logger.info("Failures written to %s", failures_path)
    return result
