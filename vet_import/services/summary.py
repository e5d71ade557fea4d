from __future__ import annotations

from ..models.processing_result import ImmunizationResult, ReconciliationResult

"""SUMMARY line rendering.

Format (one line, always printed at the end of an import run)::

    SUMMARY records={n} clients_created={c} clients_updated={u} clients_skipped={s}
    clients_failed={f} patients_created={c} patients_updated={u} patients_skipped={s}
    patients_failed={f} elapsed_sec={elapsed}

The immunization variant reports ``immunizations_created / _skipped / _failed``.
"""

__all__ = [
    "render_summary_line",
    "render_immunization_summary_line",
    "format_elapsed",
]


def format_elapsed(seconds: float) -> str:
    """Render elapsed seconds without scientific notation.

    >>> format_elapsed(0)
    '0'
    >>> format_elapsed(2.0)
    '2'
    >>> format_elapsed(0.000123)
    '0.000123'
    """
    if seconds == 0:
        return "0"
    if seconds == int(seconds):
        return str(int(seconds))
    if seconds < 0.01:
        return f"{seconds:.6f}".rstrip("0").rstrip(".")
    return f"{seconds:.3f}".rstrip("0").rstrip(".")


def render_summary_line(result: ReconciliationResult) -> str:
    client = result.client
    patient = result.patient
    return (
        f"SUMMARY records={result.total_records} "
        f"clients_created={len(client.created)} "
        f"clients_updated={len(client.updated)} "
        f"clients_skipped={len(client.skipped)} "
        f"clients_failed={len(client.failed)} "
        f"patients_created={len(patient.created)} "
        f"patients_updated={len(patient.updated)} "
        f"patients_skipped={len(patient.skipped)} "
        f"patients_failed={len(patient.failed)} "
        f"elapsed_sec={format_elapsed(result.elapsed_seconds)}"
    )


def render_immunization_summary_line(result: ImmunizationResult) -> str:
    return (
        f"SUMMARY records={result.total_records} "
        f"immunizations_created={len(result.created)} "
        f"immunizations_skipped={len(result.skipped)} "
        f"immunizations_failed={len(result.failed)} "
        f"elapsed_sec={format_elapsed(result.elapsed_seconds)}"
    )
