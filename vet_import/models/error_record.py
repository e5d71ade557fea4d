from __future__ import annotations

from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Any

"""FailureEntry model for per-record failure tracking.

A failure is recorded whenever a remote create/update raises or returns a
response that does not validate. The entry keeps the payload we tried to send so
the failures artifact can be replayed by hand.
"""

__all__ = [
    "FailureEntry",
    "utc_timestamp",
]


def utc_timestamp() -> str:
    """ISO8601 UTC timestamp with 'Z' suffix."""
    return datetime.now(UTC).isoformat().replace("+00:00", "Z")


@dataclass(frozen=True)
class FailureEntry:
    """Structured failure record.

    Attributes:
        input_record: payload that was being created or updated
        error: error message (exception text or validation reason)
        timestamp: ISO8601 UTC timestamp with 'Z' suffix
    """
    input_record: dict[str, Any]
    error: str
    timestamp: str

    @staticmethod
    def create(input_record: dict[str, Any], error: str) -> FailureEntry:
        """Create a new FailureEntry stamped with the current UTC time."""
        return FailureEntry(input_record=dict(input_record), error=error, timestamp=utc_timestamp())

    def to_dict(self) -> dict[str, Any]:
        return {
            "inputRecord": self.input_record,
            "error": self.error,
            "timestamp": self.timestamp,
        }
