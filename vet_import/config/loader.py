from __future__ import annotations

import json
import os
from collections.abc import Mapping
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any

import jsonschema
import yaml
from jsonschema.exceptions import ValidationError

"""Config loader.

Responsibilities:
- Load YAML (config/import.yml by default)
- Validate against config_schema.json (shipped next to this module)
- Apply defaults for every optional key
- Overlay environment variables (VETSPIRE_API_URL, VETSPIRE_API_KEY,
  REAL_LOCATION_ID, PROVIDER_ID); the environment wins over the file
"""

__all__ = [
    "ConfigError",
    "PreconditionError",
    "ApiConfig",
    "PdfConfig",
    "ImportConfig",
    "load_config",
    "apply_env_overrides",
    "require_api_credentials",
    "require_immunization_ids",
    "require_location_id",
    "SCHEMA_PATH",
    "DEFAULT_CONFIG_PATH",
]

SCHEMA_PATH = Path(__file__).with_name("config_schema.json")
DEFAULT_CONFIG_PATH = Path("config/import.yml")

DEFAULT_DECEASED_CODES = ("Deceased", "N/A - D")
DEFAULT_IMPORT_NOTES = "Imported from legacy system"


class ConfigError(Exception):
    pass


class PreconditionError(Exception):
    """A run cannot start: a required identifier or credential is missing."""


@dataclass(frozen=True)
class ApiConfig:
    url: str | None = None
    api_key: str | None = None  # 環境変数のみ (ファイルには書かない)
    page_size: int = 100
    min_interval_ms: int = 200
    timeout_sec: float = 30.0


@dataclass(frozen=True)
class PdfConfig:
    backend: str = "text"  # text | positioned
    row_tolerance: float = 0.6


@dataclass(frozen=True)
class ImportConfig:
    output_directory: str = "./outputs"
    api: ApiConfig = field(default_factory=ApiConfig)
    location_id: str | None = None
    provider_id: str | None = None
    pdf: PdfConfig = field(default_factory=PdfConfig)
    deceased_codes: tuple[str, ...] = DEFAULT_DECEASED_CODES
    import_notes: str = DEFAULT_IMPORT_NOTES
    progress_every: int = 10


def _validate_config_schema(data: dict[str, Any]) -> None:
    """Validate config data against the JSON schema.

    Raises:
        ConfigError: schema file missing or not valid JSON, or the config data
            fails validation (unknown keys, wrong types, out of range values).
    """
    if not SCHEMA_PATH.exists():
        raise ConfigError(f"config schema not found: {SCHEMA_PATH}")
    try:
        schema = json.loads(SCHEMA_PATH.read_text(encoding="utf-8"))
        jsonschema.validate(data, schema)
    except json.JSONDecodeError as e:
        raise ConfigError(f"invalid schema file: {e}") from e
    except ValidationError as e:
        location = ".".join(str(p) for p in e.absolute_path)
        suffix = f" (at {location})" if location else ""
        raise ConfigError(f"config validation failed: {e.message}{suffix}") from e


def load_config(path: Path = DEFAULT_CONFIG_PATH, *, required: bool = True) -> ImportConfig:
    """Load and validate a config file.

    With ``required=False`` a missing file yields the defaults (the CLI does this
    for the implicit default path only).
    """
    if not path.exists():
        if required:
            raise ConfigError(f"config file not found: {path}")
        return ImportConfig()
    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    except yaml.YAMLError as e:
        raise ConfigError(f"invalid yaml: {e}") from e
    if not isinstance(data, dict):
        raise ConfigError(f"config root must be a mapping, got {type(data).__name__}")

    _validate_config_schema(data)

    api_raw = data.get("api") or {}
    pdf_raw = data.get("pdf") or {}
    status_raw = data.get("patient_status") or {}
    return ImportConfig(
        output_directory=data.get("output_directory", "./outputs"),
        api=ApiConfig(
            url=api_raw.get("url"),
            page_size=api_raw.get("page_size", 100),
            min_interval_ms=api_raw.get("min_interval_ms", 200),
            timeout_sec=float(api_raw.get("timeout_sec", 30.0)),
        ),
        location_id=data.get("location_id"),
        provider_id=data.get("provider_id"),
        pdf=PdfConfig(
            backend=pdf_raw.get("backend", "text"),
            row_tolerance=float(pdf_raw.get("row_tolerance", 0.6)),
        ),
        deceased_codes=tuple(status_raw.get("deceased", DEFAULT_DECEASED_CODES)),
        import_notes=data.get("import_notes", DEFAULT_IMPORT_NOTES),
        progress_every=data.get("progress_every", 10),
    )


def apply_env_overrides(cfg: ImportConfig, environ: Mapping[str, str] | None = None) -> ImportConfig:
    """Return a copy of ``cfg`` with non-empty environment values applied."""
    env = os.environ if environ is None else environ

    def pick(name: str, fallback: str | None) -> str | None:
        value = (env.get(name) or "").strip()
        return value or fallback

    api = replace(
        cfg.api,
        url=pick("VETSPIRE_API_URL", cfg.api.url),
        api_key=pick("VETSPIRE_API_KEY", cfg.api.api_key),
    )
    return replace(
        cfg,
        api=api,
        location_id=pick("REAL_LOCATION_ID", cfg.location_id),
        provider_id=pick("PROVIDER_ID", cfg.provider_id),
    )


def require_api_credentials(cfg: ImportConfig, purpose: str) -> None:
    missing = [
        name for name, value in (("VETSPIRE_API_URL", cfg.api.url), ("VETSPIRE_API_KEY", cfg.api.api_key))
        if not value
    ]
    if missing:
        raise PreconditionError(f"{purpose} requires {' and '.join(missing)}")


def require_location_id(cfg: ImportConfig) -> str:
    if not cfg.location_id:
        raise PreconditionError("Missing location id: set REAL_LOCATION_ID or location_id")
    return cfg.location_id


def require_immunization_ids(cfg: ImportConfig) -> tuple[str, str]:
    """(location_id, provider_id), both required for immunization import."""
    location_id = require_location_id(cfg)
    if not cfg.provider_id:
        raise PreconditionError("Missing provider id: set PROVIDER_ID or provider_id")
    return location_id, cfg.provider_id
