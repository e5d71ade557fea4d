from __future__ import annotations

from dataclasses import dataclass

"""Run-level option dataclasses for the legacy import tool.

These are separate from the loader dataclasses in vet_import/config/loader.py:
the loader describes the file on disk, ImportOptions describes one CLI
invocation (flags). Nothing here is mutated after construction.
"""


@dataclass(frozen=True)
class ImportOptions:
    """Options for one reconciliation run.

    send_api_requests=False is the dry run: every remote mutation is replaced by
    a locally synthesized placeholder.
    """
    send_api_requests: bool = False
    verbose: bool = False
    track_results: bool = False
    limit: int | None = None  # 先頭 N 件のみ処理 (None = 全件)

    @property
    def run_tag(self) -> str:
        """Tag used in artifact file names."""
        return "full-send" if self.send_api_requests else "dry-run"


@dataclass(frozen=True)
class TransformSettings:
    """Domain data consumed by the row transformer."""
    deceased_codes: frozenset[str] = frozenset({"Deceased", "N/A - D"})
    import_notes: str = "Imported from legacy system"
    location_id: str | None = None  # primaryLocationId (未設定なら送らない)
