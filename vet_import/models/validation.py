from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Generic, TypeVar, Union

"""Tagged validation result used by the remote response validators."""

__all__ = [
    "Ok",
    "Err",
    "Validated",
]

T = TypeVar("T")


@dataclass(frozen=True)
class Ok(Generic[T]):
    value: T

    @property
    def ok(self) -> bool:
        return True


@dataclass(frozen=True)
class Err:
    reason: str

    @property
    def ok(self) -> bool:
        return False


Validated = Union[Ok[dict[str, Any]], Err]
