from __future__ import annotations

import json
import logging
from collections import Counter
from typing import Any

from ..models.config_models import ImportOptions
from .queries import (
    CREATE_CLIENT_MUTATION,
    CREATE_IMMUNIZATION_MUTATION,
    CREATE_PATIENT_MUTATION,
    GET_CLIENTS_QUERY,
    GET_PATIENTS_QUERY,
    GET_PATIENTS_WITH_IMMUNIZATIONS_QUERY,
    UPDATE_CLIENT_MUTATION,
    UPDATE_PATIENT_MUTATION,
)
from .transport import ApiError, GraphQLTransport

"""Vetspire API client: snapshot fetch and create / update primitives.

Dry run (``send_api_requests=False``) never touches the transport for
mutations; it logs the payload that would have been sent and returns a
placeholder record so the reconciler can carry on (patients still get a client
id to scope against).
"""

__all__ = [
    "VetspireClient",
    "KIND_CLIENT",
    "KIND_PATIENT",
    "KIND_IMMUNIZATION",
    "KIND_PATIENT_IMMUNIZATIONS",
    "DEFAULT_PAGE_SIZE",
]

logger = logging.getLogger(__name__)

KIND_CLIENT = "client"
KIND_PATIENT = "patient"
KIND_IMMUNIZATION = "immunization"
KIND_PATIENT_IMMUNIZATIONS = "patient_immunizations"

DEFAULT_PAGE_SIZE = 100

# kind -> (document, response field)
_FETCH: dict[str, tuple[str, str]] = {
    KIND_CLIENT: (GET_CLIENTS_QUERY, "clients"),
    KIND_PATIENT: (GET_PATIENTS_QUERY, "patients"),
    KIND_PATIENT_IMMUNIZATIONS: (GET_PATIENTS_WITH_IMMUNIZATIONS_QUERY, "patients"),
}
_CREATE: dict[str, tuple[str, str]] = {
    KIND_CLIENT: (CREATE_CLIENT_MUTATION, "createClient"),
    KIND_PATIENT: (CREATE_PATIENT_MUTATION, "createPatient"),
    KIND_IMMUNIZATION: (CREATE_IMMUNIZATION_MUTATION, "createImmunization"),
}
_UPDATE: dict[str, tuple[str, str]] = {
    KIND_CLIENT: (UPDATE_CLIENT_MUTATION, "updateClient"),
    KIND_PATIENT: (UPDATE_PATIENT_MUTATION, "updatePatient"),
}


class VetspireClient:
    """Remote collaborator used by the reconcilers.

    ``transport`` may be None for offline dry runs (no API key): fetches then
    return empty snapshots and mutations are placeholders anyway.
    """

    def __init__(
        self,
        transport: GraphQLTransport | None,
        options: ImportOptions,
        *,
        page_size: int = DEFAULT_PAGE_SIZE,
    ) -> None:
        if options.send_api_requests and transport is None:
            raise ValueError("full-send mode requires a transport")
        self.transport = transport
        self.options = options
        self.page_size = page_size
        self._placeholder_seq: Counter[str] = Counter()

    # ------------------------------------------------------------------ reads

    def fetch_all_existing(self, kind: str) -> list[dict[str, Any]]:
        """Fetch every record of ``kind`` page by page.

        A page shorter than ``page_size`` ends the loop. A failing page aborts
        the loop and returns what was accumulated so far; a non-list payload is
        treated as an empty page.
        """
        if kind not in _FETCH:
            raise ValueError(f"unknown fetch kind: {kind}")
        if self.transport is None:
            logger.warning("No API transport configured; %s snapshot is empty", kind)
            return []

        query, field_name = _FETCH[kind]
        records: list[dict[str, Any]] = []
        offset = 0
        while True:
            try:
                data = self.transport.execute(query, {"limit": self.page_size, "offset": offset})
            except ApiError as e:
                logger.error("Fetching %s page offset=%d failed, keeping %d records: %s", kind, offset, len(records), e)
                break
            page = data.get(field_name)
            if not isinstance(page, list):
                logger.warning("Unexpected %s payload at offset=%d (%s); treated as empty", kind, offset, type(page).__name__)
                page = []
            records.extend(r for r in page if isinstance(r, dict))
            logger.debug("Fetched %s page offset=%d size=%d", kind, offset, len(page))
            if len(page) < self.page_size:
                break
            offset += self.page_size

        logger.info("Fetched %d existing %s records", len(records), kind)
        return records

    # -------------------------------------------------------------- mutations

    def _live_transport(self) -> GraphQLTransport:
        if self.transport is None:
            raise ApiError("no API transport configured for a live request")
        return self.transport

    def create_record(self, kind: str, payload: dict[str, Any], parent_id: str | None = None) -> dict[str, Any]:
        if kind not in _CREATE:
            raise ValueError(f"unknown create kind: {kind}")
        if kind == KIND_PATIENT and not parent_id:
            raise ValueError("patient creation requires a client id")

        if not self.options.send_api_requests:
            logger.info("DRY RUN create %s%s payload=%s", kind, _parent_suffix(parent_id), _dump(payload))
            self._placeholder_seq[kind] += 1
            placeholder: dict[str, Any] = {"id": f"dry-run-{kind}-{self._placeholder_seq[kind]}", **payload}
            if parent_id:
                placeholder["client"] = {"id": parent_id}
            return placeholder

        document, field_name = _CREATE[kind]
        variables: dict[str, Any] = {"input": payload}
        if kind == KIND_PATIENT:
            variables["clientId"] = parent_id
        data = self._live_transport().execute(document, variables)
        return _unwrap(data, field_name)

    def update_record(self, kind: str, record_id: str, payload: dict[str, Any]) -> dict[str, Any]:
        if kind not in _UPDATE:
            raise ValueError(f"unknown update kind: {kind}")

        if not self.options.send_api_requests:
            logger.info("DRY RUN update %s id=%s payload=%s", kind, record_id, _dump(payload))
            return {**payload, "id": record_id}

        document, field_name = _UPDATE[kind]
        data = self._live_transport().execute(document, {"id": record_id, "input": payload})
        return _unwrap(data, field_name)


def _unwrap(data: dict[str, Any], field_name: str) -> dict[str, Any]:
    # 応答が dict でなければ空 dict を返し、検証側で失敗として扱う
    record = data.get(field_name)
    return record if isinstance(record, dict) else {}


def _parent_suffix(parent_id: str | None) -> str:
    return f" client_id={parent_id}" if parent_id else ""


def _dump(payload: dict[str, Any]) -> str:
    return json.dumps(payload, ensure_ascii=False, sort_keys=True)
