from __future__ import annotations

from pathlib import Path

import pytest

from vet_import.config.loader import (
    ConfigError,
    ImportConfig,
    PreconditionError,
    apply_env_overrides,
    load_config,
    require_api_credentials,
    require_immunization_ids,
    require_location_id,
)


def test_load_config_success(write_config: Path):
    cfg = load_config(write_config)
    assert cfg.output_directory == "./outputs"
    assert cfg.api.page_size == 50
    assert cfg.api.min_interval_ms == 0
    assert cfg.api.timeout_sec == 5.0
    assert cfg.api.api_key is None
    assert cfg.pdf.backend == "text"
    assert cfg.deceased_codes == ("Deceased", "N/A - D")
    assert cfg.progress_every == 10


def test_load_config_missing_file(temp_workdir: Path):
    missing = temp_workdir / "config" / "not_exists.yml"
    with pytest.raises(ConfigError):
        load_config(missing)


def test_missing_optional_file_gives_defaults(temp_workdir: Path):
    cfg = load_config(temp_workdir / "config" / "import.yml", required=False)
    assert cfg == ImportConfig()


def test_empty_file_gives_defaults(write_config: Path):
    write_config.write_text("", encoding="utf-8")
    cfg = load_config(write_config)
    assert cfg.api.page_size == 100
    assert cfg.import_notes == "Imported from legacy system"


def test_load_config_extra_field(write_config: Path):
    # additionalProperties: false
    text = write_config.read_text(encoding="utf-8") + "\nextra_field: not_allowed\n"
    write_config.write_text(text, encoding="utf-8")
    with pytest.raises(ConfigError) as e:
        load_config(write_config)
    assert "config validation failed" in str(e.value)


@pytest.mark.parametrize(
    "text",
    [
        "api:\n  page_size: 0\n",
        "pdf:\n  backend: ocr\n",
        "patient_status:\n  deceased: []\n",
        "progress_every: two\n",
    ],
)
def test_load_config_rejects_bad_values(write_config: Path, text: str):
    write_config.write_text(text, encoding="utf-8")
    with pytest.raises(ConfigError) as e:
        load_config(write_config)
    assert "config validation failed" in str(e.value)


def test_load_config_invalid_yaml(write_config: Path):
    write_config.write_text("api: [unclosed\n", encoding="utf-8")
    with pytest.raises(ConfigError, match="invalid yaml"):
        load_config(write_config)


def test_load_config_non_mapping_root(write_config: Path):
    write_config.write_text("- a\n- b\n", encoding="utf-8")
    with pytest.raises(ConfigError, match="mapping"):
        load_config(write_config)


def test_env_overrides_win_over_file():
    cfg = ImportConfig(location_id="LOC-FILE")
    env = {
        "VETSPIRE_API_URL": "https://api.example.test/graphql",
        "VETSPIRE_API_KEY": "key",
        "REAL_LOCATION_ID": " ",
        "PROVIDER_ID": "PRV-ENV",
    }
    merged = apply_env_overrides(cfg, env)
    assert merged.api.url == "https://api.example.test/graphql"
    assert merged.api.api_key == "key"
    assert merged.location_id == "LOC-FILE"
    assert merged.provider_id == "PRV-ENV"
    assert cfg.provider_id is None


def test_require_api_credentials():
    with pytest.raises(PreconditionError, match="VETSPIRE_API_URL and VETSPIRE_API_KEY"):
        require_api_credentials(ImportConfig(), "full-send")
    cfg = apply_env_overrides(ImportConfig(), {"VETSPIRE_API_URL": "u", "VETSPIRE_API_KEY": "k"})
    require_api_credentials(cfg, "full-send")


def test_require_immunization_ids():
    with pytest.raises(PreconditionError, match="REAL_LOCATION_ID"):
        require_immunization_ids(ImportConfig(provider_id="P"))
    with pytest.raises(PreconditionError, match="PROVIDER_ID"):
        require_immunization_ids(ImportConfig(location_id="L"))
    assert require_immunization_ids(ImportConfig(location_id="L", provider_id="P")) == ("L", "P")


def test_require_location_id():
    with pytest.raises(PreconditionError, match="REAL_LOCATION_ID"):
        require_location_id(ImportConfig())
    assert require_location_id(ImportConfig(location_id="LOC")) == "LOC"
