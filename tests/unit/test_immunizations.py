from __future__ import annotations

import json

import pytest

from vet_import.models.config_models import ImportOptions
from vet_import.models.vaccine import LotMeta, VaccineDeliveryRow
from vet_import.services.immunizations import (
    ProposalSet,
    ProposalsFormatError,
    build_proposals,
    existing_immunizations_by_patient,
    read_proposals,
    reconcile_immunizations,
    write_proposals,
    write_vaccine_rows,
)
from vet_import.services.transformer import patient_client_key, to_immunization_draft


def _row(patient: str = "Buddy", given: str = "John", family: str = "Smith") -> VaccineDeliveryRow:
    return VaccineDeliveryRow.build(
        date_given="2024-01-15",
        date_due="2025-01-15",
        patient_name=patient,
        client_given_name=given,
        client_family_name=family,
        description="Rabies 3 Yr",
        lot=LotMeta("A12345", "Zoetis", "2025-12-31"),
    )


def test_build_proposals_splits_matched_and_unmatched():
    lookup = {patient_client_key("Buddy", "Smith", "John"): "P-1"}
    result = build_proposals([_row(), _row(patient="Ghost")], lookup)
    assert [p["patientId"] for p in result.proposals] == ["P-1"]
    assert result.unmatched == [
        {"key": "ghost_(smith, john)", "row": _row(patient="Ghost").to_dict(), "reason": "no_match"}
    ]


def test_write_and_read_proposals(tmp_path):
    proposal_set = ProposalSet(proposals=[to_immunization_draft(_row(), "P-1")])
    pdf = tmp_path / "vaccines.pdf"
    path = write_proposals(
        proposal_set,
        tmp_path / "out",
        source_pdf=pdf,
        total_rows=2,
        used_lookup=False,
        location_id_present=True,
        provider_id_present=False,
    )
    assert path.name.startswith("immunization-proposals_")
    data = json.loads(path.read_text(encoding="utf-8"))
    assert data["meta"]["totalRows"] == 2
    assert data["meta"]["totalProposals"] == 1
    assert data["meta"]["totalUnmatched"] == 0
    assert data["meta"]["usedLookup"] is False
    assert data["meta"]["sourcePdf"] == str(pdf.resolve())
    assert read_proposals(path) == proposal_set.proposals


def test_read_proposals_accepts_bare_list(tmp_path):
    path = tmp_path / "p.json"
    path.write_text(json.dumps([{"patientId": "P-1"}]), encoding="utf-8")
    assert read_proposals(path) == [{"patientId": "P-1"}]


@pytest.mark.parametrize("content", ['{"items": []}', '"text"', "[1, 2]", "{not json"])
def test_read_proposals_rejects_other_shapes(tmp_path, content):
    path = tmp_path / "p.json"
    path.write_text(content, encoding="utf-8")
    with pytest.raises(ProposalsFormatError):
        read_proposals(path)


def test_write_vaccine_rows(tmp_path):
    path = write_vaccine_rows([_row()], tmp_path)
    assert path.name.startswith("vaccine-rows_")
    assert json.loads(path.read_text(encoding="utf-8"))[0]["lotNumber"] == "A12345"


def test_existing_immunizations_are_projected_by_patient():
    patients = [
        {
            "id": "P-1",
            "immunizations": [
                {
                    "id": "I-1",
                    "name": "Rabies 3 Yr",
                    "date": "2024-01-15",
                    "patient": {"id": "P-1"},
                    "location": {"id": "LOC"},
                    "provider": None,
                }
            ],
        },
        {"id": "P-2", "immunizations": None},
        {"name": "no id"},
    ]
    grouped = existing_immunizations_by_patient(patients)
    assert grouped == {
        "P-1": [{"patientId": "P-1", "name": "Rabies 3 Yr", "date": "2024-01-15", "locationId": "LOC"}],
        "P-2": [],
    }


def test_reconcile_skips_existing_and_duplicates(fake_remote):
    draft = to_immunization_draft(_row(), "P-1")
    existing_record = {**draft, "locationId": "LOC", "providerId": "PRV"}
    existing_record.pop("patientId")
    existing = {"P-1": [existing_record]}
    other = {**draft, "patientId": "P-2"}

    result = reconcile_immunizations(
        [draft, other, other], existing, fake_remote, ImportOptions(), "LOC", "PRV"
    )
    assert len(result.skipped) == 2
    assert len(result.created) == 1
    kind, payload, parent = fake_remote.creates[0]
    assert (kind, parent) == ("immunization", None)
    assert payload["patientId"] == "P-2"
    assert payload["locationId"] == "LOC"
    assert payload["providerId"] == "PRV"


def test_reconcile_failures_are_recorded(remote_factory):
    remote = remote_factory(responses={"immunization": {"name": "no id"}})
    draft = to_immunization_draft(_row(), "P-1")
    result = reconcile_immunizations(
        [draft, {"name": "orphan"}], {}, remote, ImportOptions(), "LOC", "PRV"
    )
    assert [f.error for f in result.failed] == [
        "immunization response missing required fields: id",
        "proposal has no patientId",
    ]
    assert result.failed_count == 2


def test_reconcile_respects_limit(fake_remote):
    drafts = [to_immunization_draft(_row(), f"P-{i}") for i in range(5)]
    result = reconcile_immunizations(drafts, {}, fake_remote, ImportOptions(limit=2), "LOC", "PRV")
    assert result.total_records == 2
    assert len(fake_remote.creates) == 2
