from __future__ import annotations

import json
from datetime import UTC, datetime
from pathlib import Path
from typing import Any, Protocol

"""Tracked-results artifacts.

When a run is started with ``--track-results`` two JSON files are written into
the output directory, both stamped with the same UTC time and run tag:

- ``import-results_<stamp>_<tag>.json``: the full result object
- ``import-failures_<stamp>_<tag>.json``: failures-only projection

stamp = ``YYYYMMDD-HHMMSS-mmm`` (UTC, milliseconds), tag = ``dry-run`` | ``full-send``.
The same stamp helper names the CSV / vaccine rows / proposals outputs.
"""

__all__ = [
    "ResultArtifactWriter",
    "TrackedResult",
    "file_stamp",
    "write_json",
    "TIMESTAMP_FMT",
]

TIMESTAMP_FMT = "%Y%m%d-%H%M%S"


class TrackedResult(Protocol):
    def to_dict(self) -> dict[str, Any]: ...

    def failures_dict(self) -> dict[str, Any]: ...


def file_stamp(now: datetime | None = None) -> str:
    now = now or datetime.now(UTC)
    # 同一秒内の連続実行で上書きしないようミリ秒まで
    return f"{now.strftime(TIMESTAMP_FMT)}-{now.microsecond // 1000:03d}"


def write_json(path: Path, payload: Any) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    with path.open("w", encoding="utf-8") as f:
        json.dump(payload, f, ensure_ascii=False, indent=2)
        f.write("\n")
    return path


class ResultArtifactWriter:
    """Writes the result / failures pair for one run.

    The file stamp is fixed on first use so both artifacts share it.
    """

    def __init__(self, output_dir: Path, run_tag: str, *, now: datetime | None = None) -> None:
        self.output_dir = Path(output_dir)
        self.run_tag = run_tag
        self._stamp: str | None = file_stamp(now) if now is not None else None

    @property
    def stamp(self) -> str:
        if self._stamp is None:
            self._stamp = file_stamp()
        return self._stamp

    @property
    def results_path(self) -> Path:
        return self.output_dir / f"import-results_{self.stamp}_{self.run_tag}.json"

    @property
    def failures_path(self) -> Path:
        return self.output_dir / f"import-failures_{self.stamp}_{self.run_tag}.json"

    def write(self, result: TrackedResult) -> tuple[Path, Path]:
        """Persist both artifacts; returns (results_path, failures_path)."""
        results = write_json(self.results_path, result.to_dict())
        failures = write_json(self.failures_path, result.failures_dict())
        return results, failures
