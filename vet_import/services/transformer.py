from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from typing import Any

from ..models.config_models import TransformSettings
from ..models.records import ClientPatientRecord
from ..models.vaccine import VaccineDeliveryRow
from ..pdf.dates import normalize_mm_dd_yyyy
from .field_mapping import FieldMapping, get_path, project_fields

"""Legacy row -> Vetspire input transformation.

Field copies are declared in the *_FIELDS tables below and applied by
project_fields(); only derived values (sex / neutered, active and deceased
flags, address and phone lists) are computed here. Empty optional values are
left out of the inputs entirely: the reconciler compares only the keys present
on the input side, so an absent key never forces an update.
"""

__all__ = [
    "TransformedRow",
    "transform_input_row",
    "parse_sex_and_neutered",
    "is_patient_deceased",
    "to_immunization_draft",
    "patient_client_key",
    "build_patient_lookup",
    "CLIENT_FIELDS",
    "PATIENT_FIELDS",
    "IMMUNIZATION_DRAFT_FIELDS",
]

logger = logging.getLogger(__name__)


def _text(value: Any) -> str:
    return str(value).strip() if value is not None else ""


CLIENT_FIELDS: tuple[FieldMapping, ...] = (
    FieldMapping("clientFirstName", "givenName", _text, keep_empty=True),
    FieldMapping("clientLastName", "familyName", _text, keep_empty=True),
    FieldMapping("clientEmail", "email", _text),
    FieldMapping("clientId", "historicalId", _text),
)

PATIENT_FIELDS: tuple[FieldMapping, ...] = (
    FieldMapping("patientName", "name", _text, keep_empty=True),
    FieldMapping("patientSpecies", "species", _text),
    FieldMapping("patientBreed", "breed", _text),
    FieldMapping("patientColor", "color", _text),
    FieldMapping("patientId", "historicalId", _text),
    FieldMapping("patientDOB", "birthDate", lambda v: normalize_mm_dd_yyyy(v) if v else None),
)

# VaccineDeliveryRow.to_dict() -> ImmunizationInput
IMMUNIZATION_DRAFT_FIELDS: tuple[FieldMapping, ...] = (
    FieldMapping("description", "name"),
    FieldMapping("dateGiven", "date"),
    FieldMapping("dateDue", "dueDate"),
    FieldMapping("lotNumber", "lotNumber"),
    FieldMapping("manufacturer", "manufacturer"),
    FieldMapping("expiryDate", "expiryDate"),
)

_METADATA_KEYS = ("clientId", "patientId", "patientStatus", "patientWeight")


@dataclass(frozen=True)
class TransformedRow:
    client: dict[str, Any]
    patient: dict[str, Any]
    metadata: dict[str, Any] = field(default_factory=dict)


def parse_sex_and_neutered(code: str | None) -> tuple[str, bool]:
    """Decode the two letter legacy sex / spay code.

    >>> parse_sex_and_neutered("MN")
    ('Male', True)
    >>> parse_sex_and_neutered("FI")
    ('Female', False)
    >>> parse_sex_and_neutered(None)
    ('Unknown', False)
    """
    if not code:
        return "Unknown", False
    code = code.strip().upper()
    if len(code) != 2:
        return "Unknown", False
    sex = {"M": "Male", "F": "Female"}.get(code[0])
    if sex is None:
        return "Unknown", False
    # S = spayed, N = neutered, I = intact
    return sex, code[1] in ("S", "N")


def is_patient_deceased(status: str | None, deceased_codes: Iterable[str]) -> bool:
    if not status:
        return False
    return status.strip() in set(deceased_codes)


def _address(data: Mapping[str, Any]) -> dict[str, str] | None:
    parts = {
        "line1": _text(data.get("clientStreetAddr")),
        "city": _text(data.get("clientCity")),
        "state": _text(data.get("clientState")),
        "postalCode": _text(data.get("clientPostCode")),
    }
    # 4 項目すべて揃った場合のみ住所を送る
    return parts if all(parts.values()) else None


def transform_input_row(
    record: ClientPatientRecord | Mapping[str, Any],
    settings: TransformSettings | None = None,
) -> TransformedRow:
    """Build the client and patient inputs for one legacy row."""
    settings = settings or TransformSettings()
    data: Mapping[str, Any] = record.to_dict() if isinstance(record, ClientPatientRecord) else record

    deceased = is_patient_deceased(data.get("patientStatus"), settings.deceased_codes)

    client = project_fields(data, CLIENT_FIELDS)
    client["isActive"] = not deceased
    client["notes"] = settings.import_notes
    address = _address(data)
    if address is not None:
        client["addresses"] = [address]
    phone = _text(data.get("clientPhone"))
    if phone:
        client["phoneNumbers"] = [{"value": phone}]
    if settings.location_id:
        client["primaryLocationId"] = settings.location_id

    patient = project_fields(data, PATIENT_FIELDS)
    sex, neutered = parse_sex_and_neutered(data.get("patientSexSpay"))
    patient["sex"] = sex
    patient["neutered"] = neutered
    patient["isActive"] = not deceased
    patient["isDeceased"] = deceased

    metadata = {key: data.get(key) for key in _METADATA_KEYS}
    return TransformedRow(client=client, patient=patient, metadata=metadata)


def to_immunization_draft(row: VaccineDeliveryRow | Mapping[str, Any], patient_id: str) -> dict[str, Any]:
    """Immunization input for one delivery row, bound to a resolved patient."""
    data = row.to_dict() if isinstance(row, VaccineDeliveryRow) else row
    draft: dict[str, Any] = {"patientId": patient_id}
    draft.update(project_fields(data, IMMUNIZATION_DRAFT_FIELDS))
    draft["administered"] = True
    draft["historical"] = True
    return draft


def patient_client_key(patient_name: str, family_name: str, given_name: str) -> str:
    """Lookup key joining a patient to its owner.

    >>> patient_client_key("Buddy ", "Smith", "John")
    'buddy_(smith, john)'
    """
    return f"{patient_name.strip()}_({family_name.strip()}, {given_name.strip()})".lower()


def build_patient_lookup(patients: Iterable[Mapping[str, Any]]) -> dict[str, str]:
    """Map patient_client_key -> patient id (first patient wins).

    Patients whose client has no given or family name cannot be keyed and are
    skipped with a warning.
    """
    lookup: dict[str, str] = {}
    skipped = 0
    for patient in patients:
        name = _text(patient.get("name"))
        given = _text(get_path(patient, "client.givenName"))
        family = _text(get_path(patient, "client.familyName"))
        patient_id = _text(patient.get("id"))
        if not (name and given and family and patient_id):
            skipped += 1
            logger.warning("Patient id=%s has no name or client names; not added to lookup", patient.get("id"))
            continue
        lookup.setdefault(patient_client_key(name, family, given), patient_id)
    if skipped:
        logger.warning("Skipped %d patients while building the lookup", skipped)
    return lookup
