from __future__ import annotations

from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass
from typing import Any

"""Declarative field mapping tables.

A table is a sequence of FieldMapping entries; project_fields() is the only
code that walks them. ``source`` may be a dotted path into nested objects
(``client.id``). Entries whose projected value is None or "" are omitted from
the output, so optional fields are simply absent rather than blank.
"""

__all__ = [
    "FieldMapping",
    "project_fields",
    "get_path",
]


@dataclass(frozen=True)
class FieldMapping:
    source: str
    target: str
    transform: Callable[[Any], Any] | None = None
    keep_empty: bool = False  # True: None / "" も出力する


def get_path(data: Mapping[str, Any] | None, path: str) -> Any:
    """Resolve a dotted path; None when any segment is missing."""
    current: Any = data
    for part in path.split("."):
        if not isinstance(current, Mapping):
            return None
        current = current.get(part)
    return current


def project_fields(source: Mapping[str, Any], table: Iterable[FieldMapping]) -> dict[str, Any]:
    """Copy (and optionally transform) fields from ``source`` per ``table``."""
    out: dict[str, Any] = {}
    for mapping in table:
        value = get_path(source, mapping.source)
        if mapping.transform is not None:
            value = mapping.transform(value)
        if not mapping.keep_empty and (value is None or value == ""):
            continue
        out[mapping.target] = value
    return out
