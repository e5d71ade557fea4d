from __future__ import annotations

import json
from pathlib import Path

from vet_import.cli.__main__ import main as cli_main
from vet_import.models.records import ClientPatientRecord
from vet_import.services.csv_io import write_records_csv

"""Exit code contract: 0 all records succeeded, 2 some failed, 1 fatal."""


def _csv(workdir: Path, *records: ClientPatientRecord) -> Path:
    return write_records_csv(list(records), workdir / "data")


def test_exit_code_missing_explicit_config(temp_workdir: Path, capsys):
    code = cli_main(["import-csv", "data/x.csv", "--config", "config/missing.yml"])
    assert code == 1
    assert "ERROR config:" in capsys.readouterr().out


def test_exit_code_invalid_config(write_config: Path, capsys):
    write_config.write_text("unknown_key: 1\n", encoding="utf-8")
    code = cli_main(["import-csv", "data/x.csv"])
    assert code == 1
    assert "config validation failed" in capsys.readouterr().out


def test_exit_code_missing_input_file(write_config: Path, capsys):
    code = cli_main(["import-csv", "data/nope.csv"])
    assert code == 1
    assert "ERROR File does not exist: data/nope.csv" in capsys.readouterr().out


def test_exit_code_all_success(write_config: Path, buddy_record, capsys):
    csv_path = _csv(write_config.parent.parent, buddy_record)
    code = cli_main(["import-csv", str(csv_path)])
    out = capsys.readouterr().out
    assert code == 0
    assert "DRY RUN MODE" in out
    assert "SUMMARY records=1 clients_created=1" in out
    assert "patients_created=1" in out


def test_exit_code_partial_failure(write_config: Path, buddy_record, capsys):
    nameless = ClientPatientRecord(patientId="9", patientName="Kit")
    csv_path = _csv(write_config.parent.parent, buddy_record, nameless)
    code = cli_main(["import-csv", str(csv_path)])
    out = capsys.readouterr().out
    assert code == 2
    assert "clients_failed=1" in out
    assert "patients_created=1" in out


def test_exit_code_full_send_without_credentials(write_config: Path, buddy_record, capsys):
    csv_path = _csv(write_config.parent.parent, buddy_record)
    code = cli_main(["import-csv", str(csv_path), "--full-send"])
    assert code == 1
    assert "VETSPIRE_API_URL" in capsys.readouterr().out


def test_exit_code_import_immunizations_without_ids(write_config: Path, capsys):
    proposals = write_config.parent.parent / "data" / "proposals.json"
    proposals.write_text(json.dumps({"proposals": []}), encoding="utf-8")
    code = cli_main(["import-immunizations", str(proposals)])
    assert code == 1
    assert "REAL_LOCATION_ID" in capsys.readouterr().out


def test_exit_code_propose_without_credentials(write_config: Path, capsys):
    pdf = write_config.parent.parent / "data" / "vaccines.pdf"
    pdf.write_bytes(b"%PDF-1.4\n")
    code = cli_main(["propose-immunizations", str(pdf)])
    assert code == 1
    assert "--no-fetch" in capsys.readouterr().out


def test_exit_code_malformed_proposals(write_config: Path, monkeypatch, capsys):
    monkeypatch.setenv("REAL_LOCATION_ID", "LOC")
    monkeypatch.setenv("PROVIDER_ID", "PRV")
    proposals = write_config.parent.parent / "data" / "proposals.json"
    proposals.write_text('{"items": []}', encoding="utf-8")
    code = cli_main(["import-immunizations", str(proposals)])
    assert code == 1
    assert "Invalid proposals file format" in capsys.readouterr().out
