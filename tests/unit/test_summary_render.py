from __future__ import annotations

import re
from datetime import UTC, datetime

from vet_import.models.error_record import FailureEntry
from vet_import.models.processing_result import ImmunizationResult, OutcomeEntry, ReconciliationResult
from vet_import.services.summary import format_elapsed, render_immunization_summary_line, render_summary_line

SUMMARY_PATTERN = re.compile(
    r"^SUMMARY records=([0-9]+) "
    r"clients_created=([0-9]+) clients_updated=([0-9]+) clients_skipped=([0-9]+) clients_failed=([0-9]+) "
    r"patients_created=([0-9]+) patients_updated=([0-9]+) patients_skipped=([0-9]+) patients_failed=([0-9]+) "
    r"elapsed_sec=([0-9]+\.?[0-9]*)$"
)


def test_render_summary_line_counts():
    """Each outcome list is counted per entity."""
    result = ReconciliationResult(
        total_records=3,
        start_time=datetime(2024, 1, 1, 10, 0, 0, tzinfo=UTC),
        end_time=datetime(2024, 1, 1, 10, 0, 2, tzinfo=UTC),
    )
    result.client.created.append(OutcomeEntry(input_record={}))
    result.client.skipped.extend([OutcomeEntry(input_record={}), OutcomeEntry(input_record={})])
    result.patient.updated.append(OutcomeEntry(input_record={}))
    result.patient.failed.append(FailureEntry.create({}, "boom"))

    line = render_summary_line(result)
    match = SUMMARY_PATTERN.match(line)
    assert match, line
    assert match.groups() == ("3", "1", "0", "2", "0", "0", "1", "0", "1", "2")


def test_render_summary_line_without_timing():
    line = render_summary_line(ReconciliationResult())
    assert line.endswith("elapsed_sec=0")
    assert SUMMARY_PATTERN.match(line)


def test_render_immunization_summary_line():
    result = ImmunizationResult(total_records=2)
    result.created.append(OutcomeEntry(input_record={}))
    result.skipped.append(OutcomeEntry(input_record={}))
    assert render_immunization_summary_line(result) == (
        "SUMMARY records=2 immunizations_created=1 immunizations_skipped=1 immunizations_failed=0 elapsed_sec=0"
    )


def test_format_elapsed():
    assert format_elapsed(1.23456) == "1.235"
    assert format_elapsed(0.5) == "0.5"
    assert format_elapsed(12.0) == "12"
