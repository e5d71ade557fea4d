from __future__ import annotations

import random

from vet_import.models.records import RECORD_KEYS
from vet_import.pdf.kv_parser import parse_client_patient_lines, parse_client_patient_records

REPORT_TEXT = """
Client Patient Report
patientId
5987
patientName
Abby
patientSpecies
Canine
patientSexSpay
FS
clientFirstName
Jane
clientLastName
Smith
clientEmail
clientStreetAddrpatientWeight
22.4
patientStatus
Home
patientId
6001
patientName
Max
clientFirstName
John
clientLastName
Doe
Page 2 of 10
"""


def test_parses_records_and_flushes_on_sentinel():
    records = parse_client_patient_records(REPORT_TEXT)
    assert [r.patientId for r in records] == ["5987", "6001"]
    abby, max_ = records
    assert abby.patientName == "Abby"
    assert abby.patientSexSpay == "FS"
    assert abby.clientFirstName == "Jane"
    assert abby.patientStatus == "Home"
    assert max_.clientLastName == "Doe"


def test_missing_value_sets_none_and_keeps_next_key():
    records = parse_client_patient_records(REPORT_TEXT)
    abby = records[0]
    # clientEmail の直後はキー (glued clientStreetAddr) -> 値なし
    assert abby.clientEmail is None
    assert abby.clientStreetAddr is None
    assert abby.patientWeight == "22.4"


def test_record_without_patient_name_is_not_emitted():
    lines = ["patientId", "1", "clientFirstName", "Ann", "patientId", "2", "patientName", "Rex"]
    records = parse_client_patient_lines(lines)
    assert [(r.patientId, r.patientName) for r in records] == [("2", "Rex")]


def test_patient_id_followed_by_key_is_never_emitted():
    lines = ["patientId", "patientName", "Ghost", "patientId", "7", "patientName", "Real"]
    records = parse_client_patient_lines(lines)
    assert [r.patientName for r in records] == ["Real"]


def test_lines_before_first_sentinel_are_ignored():
    lines = ["Report header", "clientFirstName", "Nobody", "patientId", "9", "patientName", "Kit"]
    records = parse_client_patient_lines(lines)
    assert len(records) == 1
    assert records[0].clientFirstName is None


def test_final_incomplete_record_is_dropped():
    lines = ["patientId", "1", "patientName", "Rex", "patientId", "2"]
    records = parse_client_patient_lines(lines)
    assert [r.patientId for r in records] == ["1"]


def test_never_emits_record_without_patient_id_or_name():
    rng = random.Random(1234)
    vocabulary = list(RECORD_KEYS) + ["value", "", "12", "Page 1", "Abby", "patientId"]
    for _ in range(300):
        lines = [rng.choice(vocabulary) for _ in range(rng.randint(0, 40))]
        for record in parse_client_patient_lines(lines):
            assert record.patientId
            assert record.patientName
