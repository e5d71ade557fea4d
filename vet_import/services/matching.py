from __future__ import annotations

from collections.abc import Iterable, Mapping, Sequence
from typing import Any

from ..models.processing_result import Match, MatchReason
from .field_mapping import get_path

"""Matching of transformed inputs against the remote snapshot.

Rules are tried in priority order and the first rule that finds anything wins;
inside a rule the first record in snapshot order wins.

clients:  historicalId -> email (case-insensitive) -> given + family name
patients: historicalId -> name (case-insensitive), always scoped to one client
"""

__all__ = [
    "deep_equal",
    "find_client_match",
    "find_patient_match",
    "patients_of_client",
]


def deep_equal(expected: Any, actual: Any, ignore: Iterable[str] = ()) -> bool:
    """Structural equality restricted to what ``expected`` carries.

    Dict keys missing from ``expected`` are not compared (remote-only fields are
    ignored); keys in ``ignore`` are skipped at the top level. Lists are
    compared position by position over the expected items.
    """
    ignored = frozenset(ignore)
    if isinstance(expected, Mapping):
        if not isinstance(actual, Mapping):
            return False
        for key, value in expected.items():
            if key in ignored:
                continue
            if key not in actual:
                return False
            if not deep_equal(value, actual[key]):
                return False
        return True
    if isinstance(expected, (list, tuple)):
        if not isinstance(actual, (list, tuple)) or len(actual) < len(expected):
            return False
        return all(deep_equal(e, a) for e, a in zip(expected, actual))
    return bool(expected == actual)


def _fold(value: Any) -> str:
    return str(value).strip().casefold() if value is not None else ""


def _first(records: Iterable[dict[str, Any]], predicate: Any) -> dict[str, Any] | None:
    return next((r for r in records if predicate(r)), None)


def find_client_match(client_input: Mapping[str, Any], clients: Sequence[dict[str, Any]]) -> Match | None:
    historical_id = _fold(client_input.get("historicalId"))
    if historical_id:
        found = _first(clients, lambda c: _fold(c.get("historicalId")) == historical_id)
        if found is not None:
            return Match(found, MatchReason.HISTORICAL_ID)

    email = _fold(client_input.get("email"))
    if email:
        found = _first(clients, lambda c: _fold(c.get("email")) == email)
        if found is not None:
            return Match(found, MatchReason.EMAIL)

    given = _fold(client_input.get("givenName"))
    family = _fold(client_input.get("familyName"))
    if given and family:
        found = _first(
            clients,
            lambda c: _fold(c.get("givenName")) == given and _fold(c.get("familyName")) == family,
        )
        if found is not None:
            return Match(found, MatchReason.NAME)
    return None


def patients_of_client(patients: Iterable[dict[str, Any]], client_id: str) -> list[dict[str, Any]]:
    return [p for p in patients if get_path(p, "client.id") == client_id]


def find_patient_match(
    patient_input: Mapping[str, Any],
    patients: Sequence[dict[str, Any]],
    client_id: str,
) -> Match | None:
    """Match a patient among the patients of ``client_id`` only."""
    scoped = patients_of_client(patients, client_id)

    historical_id = _fold(patient_input.get("historicalId"))
    if historical_id:
        found = _first(scoped, lambda p: _fold(p.get("historicalId")) == historical_id)
        if found is not None:
            return Match(found, MatchReason.HISTORICAL_ID)

    name = _fold(patient_input.get("name"))
    if name:
        found = _first(scoped, lambda p: _fold(p.get("name")) == name)
        if found is not None:
            return Match(found, MatchReason.NAME_AND_CLIENT)
    return None
