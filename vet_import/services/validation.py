from __future__ import annotations

from typing import Any

from ..models.validation import Err, Ok, Validated

"""Remote response validators.

A create / update call that returns without raising is only a success when the
returned record carries the identifying fields of its entity type. Anything
else becomes Err(reason) and is recorded as a failure by the reconciler.
"""

__all__ = [
    "validate_client",
    "validate_patient",
    "validate_immunization",
    "REQUIRED_FIELDS",
]

REQUIRED_FIELDS: dict[str, tuple[str, ...]] = {
    "client": ("id", "givenName", "familyName"),
    "patient": ("id",),
    "immunization": ("id",),
}


def _validate(kind: str, obj: Any) -> Validated:
    if not isinstance(obj, dict):
        return Err(f"{kind} response is not an object: {type(obj).__name__}")
    missing = [
        name for name in REQUIRED_FIELDS[kind]
        if not isinstance(obj.get(name), str) or not obj[name].strip()
    ]
    if missing:
        return Err(f"{kind} response missing required fields: {', '.join(missing)}")
    return Ok(obj)


def validate_client(obj: Any) -> Validated:
    return _validate("client", obj)


def validate_patient(obj: Any) -> Validated:
    return _validate("patient", obj)


def validate_immunization(obj: Any) -> Validated:
    return _validate("immunization", obj)
