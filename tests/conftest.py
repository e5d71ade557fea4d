# Shared pytest fixtures
from __future__ import annotations

import tempfile
from pathlib import Path
from typing import Any

import pytest

from vet_import.logging.init import reset_logging
from vet_import.models.records import ClientPatientRecord


@pytest.fixture(autouse=True)
def _clean_logging():
    # ハンドラは setup 時点の sys.stdout を掴むので、テストごとに作り直す
    reset_logging()
    yield
    reset_logging()


@pytest.fixture()
def temp_workdir(monkeypatch) -> Path:
    with tempfile.TemporaryDirectory() as d:
        p = Path(d)
        (p / "config").mkdir()
        (p / "data").mkdir()
        (p / "outputs").mkdir()
        monkeypatch.chdir(p)
        for name in ("VETSPIRE_API_URL", "VETSPIRE_API_KEY", "REAL_LOCATION_ID", "PROVIDER_ID"):
            monkeypatch.delenv(name, raising=False)
        yield p


@pytest.fixture()
def sample_config_yaml() -> str:
    return """output_directory: ./outputs
api:
  page_size: 50
  min_interval_ms: 0
  timeout_sec: 5
pdf:
  backend: text
  row_tolerance: 0.6
patient_status:
  deceased: ["Deceased", "N/A - D"]
progress_every: 10
"""


@pytest.fixture()
def write_config(temp_workdir: Path, sample_config_yaml: str) -> Path:
    cfg = temp_workdir / "config" / "import.yml"
    cfg.write_text(sample_config_yaml, encoding="utf-8")
    return cfg


@pytest.fixture()
def buddy_record() -> ClientPatientRecord:
    return ClientPatientRecord(
        patientId="123",
        patientName="Buddy",
        patientSpecies="Canine",
        patientBreed="Labrador",
        patientSexSpay="MI",
        clientId="C-1",
        clientFirstName="John",
        clientLastName="Doe",
        clientPhone="555-1234",
        clientEmail="john.doe@example.com",
        clientStreetAddr="123 Main St",
        clientCity="Anytown",
        clientState="CA",
        clientPostCode="12345",
        patientStatus="Home",
    )


class FakeRemote:
    """In-memory stand-in for VetspireClient mutations.

    ``fail_on`` maps a kind to an exception (or a callable taking the payload
    and returning an exception or None); ``responses`` maps a kind to a fixed
    response overriding the echo behaviour.
    """

    def __init__(self, fail_on: dict[str, Any] | None = None, responses: dict[str, Any] | None = None) -> None:
        self.fail_on = fail_on or {}
        self.responses = responses or {}
        self.creates: list[tuple[str, dict[str, Any], str | None]] = []
        self.updates: list[tuple[str, str, dict[str, Any]]] = []
        self._seq = 0

    def _maybe_fail(self, kind: str, payload: dict[str, Any]) -> None:
        failure = self.fail_on.get(kind)
        if callable(failure) and not isinstance(failure, BaseException):
            failure = failure(payload)
        if failure is not None:
            raise failure

    def create_record(self, kind: str, payload: dict[str, Any], parent_id: str | None = None) -> dict[str, Any]:
        self.creates.append((kind, payload, parent_id))
        self._maybe_fail(kind, payload)
        if kind in self.responses:
            return self.responses[kind]
        self._seq += 1
        record = {"id": f"{kind}-{self._seq}", **payload}
        if parent_id:
            record["client"] = {"id": parent_id}
        return record

    def update_record(self, kind: str, record_id: str, payload: dict[str, Any]) -> dict[str, Any]:
        self.updates.append((kind, record_id, payload))
        self._maybe_fail(kind, payload)
        if kind in self.responses:
            return self.responses[kind]
        return {**payload, "id": record_id}


@pytest.fixture()
def fake_remote() -> FakeRemote:
    return FakeRemote()


@pytest.fixture()
def remote_factory() -> type[FakeRemote]:
    return FakeRemote
