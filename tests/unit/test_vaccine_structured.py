from __future__ import annotations

from vet_import.models.layout import TextRun
from vet_import.models.vaccine import UNKNOWN_DESCRIPTION
from vet_import.pdf.vaccine_structured import (
    columns_from_header,
    lot_from_header_row,
    parse_vaccine_records_structured,
)


def _row(y: float, *cells: tuple[str, float]) -> list[TextRun]:
    return [TextRun(x=x, y=y, text=text) for text, x in cells]


LOT_HEADER = _row(
    10.0,
    ("Lot #:", 5.0), ("A12345", 30.0), ("Manufacturer:", 80.0), ("Zoetis", 130.0),
    ("Exp:", 180.0), ("12/31/2025", 200.0),
)


def _column_header(y: float) -> list[TextRun]:
    return _row(
        y,
        ("Date", 5.0), ("Given", 25.0), ("Date", 60.0), ("Due", 80.0),
        ("Patient", 110.0), ("Name", 140.0), ("Description", 180.0),
        ("Client", 260.0), ("Name", 290.0),
    )


def _data_row(y: float, patient: str = "Buddy") -> list[TextRun]:
    return _row(
        y,
        ("01/15/2024", 5.0), ("01/15/2025", 60.0), (patient, 110.0),
        ("Rabies", 180.0), ("3", 210.0), ("Yr", 215.0),
        ("Smith,", 260.0), ("John", 290.0),
    )


def test_lot_from_header_row_slices_between_labels():
    assert lot_from_header_row(LOT_HEADER) == ("A12345", "Zoetis", "2025-12-31")


def test_lot_from_header_row_handles_glued_label():
    row = _row(10.0, ("Lot#B777", 5.0), ("Manufacturer", 80.0), ("Merck", 120.0))
    assert lot_from_header_row(row) == ("B777", "Merck", "")


def test_columns_from_header_merges_split_labels():
    columns = columns_from_header(_column_header(20.0))
    assert [(c.x, c.key) for c in columns] == [
        (5.0, "date_given"),
        (60.0, "date_due"),
        (110.0, "patient_name"),
        (180.0, "description"),
        (260.0, "client_name"),
    ]


def test_parse_structured_rows_with_lot():
    runs = LOT_HEADER + _column_header(20.0) + _data_row(30.0) + _row(
        40.0, ("Total Number of Vaccinations: 1", 5.0)
    )
    rows = parse_vaccine_records_structured([runs])
    assert len(rows) == 1
    row = rows[0]
    assert row.date_given == "2024-01-15"
    assert row.date_due == "2025-01-15"
    assert row.patient_name == "Buddy"
    assert row.description == "Rabies 3 Yr"
    assert (row.client_family_name, row.client_given_name) == ("Smith", "John")
    assert (row.lot_number, row.manufacturer, row.expiry_date) == ("A12345", "Zoetis", "2025-12-31")


def test_table_without_lot_header_is_error_batch():
    runs = _column_header(20.0) + _data_row(30.0)
    rows = parse_vaccine_records_structured(runs)
    assert len(rows) == 1
    assert (rows[0].lot_number, rows[0].manufacturer, rows[0].expiry_date) == ("", "", "")


def test_rows_without_dates_and_after_totals_are_skipped():
    runs = (
        LOT_HEADER
        + _column_header(20.0)
        + _row(30.0, ("Buddy", 110.0), ("Smith,", 260.0), ("John", 290.0))
        + _data_row(40.0, patient="Max")
        + _row(50.0, ("Total Number of Vaccinations: 1", 5.0))
        + _data_row(60.0, patient="Ghost")
    )
    rows = parse_vaccine_records_structured([runs])
    assert [r.patient_name for r in rows] == ["Max"]


def test_pages_are_parsed_in_order():
    page_one = LOT_HEADER + _column_header(20.0) + _data_row(30.0, patient="Buddy")
    page_two = _column_header(20.0) + _data_row(30.0, patient="Max")
    rows = parse_vaccine_records_structured([page_one, page_two])
    assert [r.patient_name for r in rows] == ["Buddy", "Max"]
    # lot はページをまたいで引き継ぐ
    assert rows[1].lot_number == "A12345"


def test_client_name_without_comma_and_missing_description():
    runs = _column_header(20.0) + _row(
        30.0, ("01/15/2024", 5.0), ("Kit", 110.0), ("Mary", 260.0), ("Jo", 275.0), ("Lane", 290.0)
    )
    rows = parse_vaccine_records_structured(runs)
    assert len(rows) == 1
    assert rows[0].client_family_name == "Lane"
    assert rows[0].client_given_name == "Mary Jo"
    assert rows[0].description == UNKNOWN_DESCRIPTION
    assert rows[0].date_due is None


def test_whole_line_runs_fall_back_to_text_parsing():
    lines = [
        "Lot # Manufacturer Expiration",
        "A12345 Zoetis 12/31/2025",
        "Date Given/Due Patient Name Description Client Name",
        "01/15/2024 01/15/2025 Rabies 3 Yr DVM Buddy Smith, John",
        "Total Number of Vaccinations: 1",
    ]
    runs = [TextRun(x=5.0, y=10.0 * i, text=line) for i, line in enumerate(lines)]
    rows = parse_vaccine_records_structured(runs)
    assert [(r.patient_name, r.description, r.lot_number) for r in rows] == [("Buddy", "Rabies 3 Yr", "A12345")]
