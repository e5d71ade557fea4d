from __future__ import annotations

import logging
import sys
from typing import Any

from tqdm import tqdm
from tqdm.std import tqdm as TqdmType

from ..models.processing_result import OutcomeCounts

"""Progress display for record reconciliation.

Two channels, both driven by the reconciler once per record:

- a single tqdm bar, only when stdout is a TTY (no ANSI spam in CI)
- a periodic INFO line every ``every`` records and on the final record, with
  totals and deltas since the previous line (summed across client + patient)
"""

__all__ = [
    "ProgressTracker",
    "ProgressReporter",
    "is_tty_enabled",
    "DEFAULT_PROGRESS_EVERY",
]

logger = logging.getLogger(__name__)

DEFAULT_PROGRESS_EVERY = 10


def is_tty_enabled() -> bool:
    """True if stdout is a TTY and the progress bar should be displayed."""
    return sys.stdout.isatty()


class ProgressTracker:
    """tqdm bar over records; a no-op outside a TTY."""

    def __init__(self, total_records: int, *, description: str = "Reconciling records") -> None:
        self.total_records = total_records
        self.description = description
        self.current_record = 0

        self.enabled = is_tty_enabled()
        self.pbar: TqdmType[Any] | None
        if self.enabled:
            self.pbar = tqdm(
                total=total_records,
                desc=description,
                unit="rec",
                disable=False,
                leave=True,
                position=0,
                ncols=80,
                ascii=True,
            )
        else:
            self.pbar = None

    def advance(self, **postfix: Any) -> None:
        self.current_record += 1
        if self.enabled and self.pbar is not None:
            self.pbar.update(1)
            if postfix:
                self.pbar.set_postfix(**postfix)

    def close(self) -> None:
        if self.enabled and self.pbar is not None:
            self.pbar.close()
            self.pbar = None

    def __enter__(self) -> ProgressTracker:
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        self.close()


class ProgressReporter:
    """Periodic progress log with deltas since the last report."""

    def __init__(self, total_records: int, *, every: int = DEFAULT_PROGRESS_EVERY) -> None:
        self.total_records = total_records
        self.every = max(1, every)
        self.last = OutcomeCounts()
        self.reports: list[tuple[int, OutcomeCounts, OutcomeCounts]] = []

    def should_report(self, processed: int) -> bool:
        return processed % self.every == 0 or processed == self.total_records

    def record(self, processed: int, counts: OutcomeCounts) -> bool:
        """Log a progress line when due; returns True if one was emitted."""
        if not self.should_report(processed):
            return False
        delta = counts.minus(self.last)
        self.last = counts
        self.reports.append((processed, counts, delta))
        logger.info(
            "Progress %d/%d created=%d(+%d) updated=%d(+%d) skipped=%d(+%d) failed=%d(+%d)",
            processed,
            self.total_records,
            counts.created, delta.created,
            counts.updated, delta.updated,
            counts.skipped, delta.skipped,
            counts.failed, delta.failed,
        )
        return True
