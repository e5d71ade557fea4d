"""Domain models for the legacy veterinary records importer.

Parsed input (ClientPatientRecord, VaccineDeliveryRow), layout primitives,
run options and the reconciliation outcome accumulators.
"""

from .config_models import ImportOptions, TransformSettings
from .error_record import FailureEntry
from .layout import RawLine, TextRun
from .processing_result import (
    EntityOutcomes,
    ImmunizationResult,
    Match,
    MatchReason,
    OutcomeEntry,
    ReconciliationResult,
)
from .records import ClientPatientRecord
from .snapshot import RemoteSnapshot
from .vaccine import LotMeta, VaccineDeliveryRow
from .validation import Err, Ok

__all__ = [
    # Parsed input
    "ClientPatientRecord",
    "LotMeta",
    "VaccineDeliveryRow",
    "RawLine",
    "TextRun",
    # Run options
    "ImportOptions",
    "TransformSettings",
    # Reconciliation
    "RemoteSnapshot",
    "Match",
    "MatchReason",
    "OutcomeEntry",
    "FailureEntry",
    "EntityOutcomes",
    "ReconciliationResult",
    "ImmunizationResult",
    "Ok",
    "Err",
]
