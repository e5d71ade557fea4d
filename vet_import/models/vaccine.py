from __future__ import annotations

from dataclasses import dataclass

"""Vaccine report models: lot metadata and per-row delivery records.

Both PDF strategies (plain text heuristics and coordinate slicing) emit the same
VaccineDeliveryRow shape so the downstream draft building does not care which
parser produced a row.
"""

__all__ = [
    "LotMeta",
    "VaccineDeliveryRow",
    "UNKNOWN_DESCRIPTION",
]

UNKNOWN_DESCRIPTION = "Unknown (Legacy)"


@dataclass(frozen=True)
class LotMeta:
    """Manufacturing batch shared by a group of delivery rows.

    The first group in a report can be an unlabeled "error batch"; it is
    represented by :meth:`empty` (all fields "").
    """
    lot_number: str
    manufacturer: str
    expiry_date: str  # ISO date or ""

    @classmethod
    def empty(cls) -> LotMeta:
        return cls(lot_number="", manufacturer="", expiry_date="")


@dataclass(frozen=True)
class VaccineDeliveryRow:
    """One immunization line item, dates normalized to YYYY-MM-DD."""
    date_given: str
    date_due: str | None
    patient_name: str
    client_given_name: str
    client_family_name: str
    description: str
    lot_number: str = ""
    manufacturer: str = ""
    expiry_date: str = ""

    @classmethod
    def build(
        cls,
        *,
        date_given: str,
        date_due: str | None,
        patient_name: str,
        client_given_name: str,
        client_family_name: str,
        description: str,
        lot: LotMeta | None,
    ) -> VaccineDeliveryRow:
        # LotMeta は値コピー (行ごとに独立)
        lot = lot or LotMeta.empty()
        return cls(
            date_given=date_given,
            date_due=date_due,
            patient_name=patient_name,
            client_given_name=client_given_name,
            client_family_name=client_family_name,
            description=description or UNKNOWN_DESCRIPTION,
            lot_number=lot.lot_number,
            manufacturer=lot.manufacturer,
            expiry_date=lot.expiry_date,
        )

    def to_dict(self) -> dict[str, str | None]:
        """Serialize with the camelCase keys used in the JSON artifacts."""
        return {
            "dateGiven": self.date_given,
            "dateDue": self.date_due,
            "patientName": self.patient_name,
            "clientGivenName": self.client_given_name,
            "clientFamilyName": self.client_family_name,
            "description": self.description,
            "lotNumber": self.lot_number,
            "manufacturer": self.manufacturer,
            "expiryDate": self.expiry_date,
        }
