from __future__ import annotations

import json
from pathlib import Path
from typing import Any

import jsonschema
import yaml
from jsonschema.exceptions import ValidationError

from ..models.config_models import DatabaseConfig, ImportConfig, ImportSettings

"""Config loader.

Responsibilities:
- Load the YAML config (default ``config/import.yml``)
- Validate it against the JSON schema shipped next to this module
- Apply defaults for the optional sections
"""

__all__ = [
    "ConfigError",
    "DEFAULT_CONFIG_PATH",
    "SCHEMA_PATH",
    "load_config",
    "config_from_dict",
    "check_name_template",
]

SCHEMA_PATH = Path(__file__).with_name("config_schema.json")
DEFAULT_CONFIG_PATH = Path("config/import.yml")


class ConfigError(Exception):
    pass


def check_name_template(template: str) -> None:
    """Reject a sector name template that cannot be filled from ``{code}`` alone."""
    try:
        template.format(code="X")
    except (KeyError, IndexError, ValueError) as e:
        raise ConfigError(f"invalid sector_name_template {template!r}: {e!r}") from e


def _validate_config_schema(data: dict[str, Any]) -> None:
    """Validate config data against the JSON schema.

    Raises:
        ConfigError: If the schema file is missing or not valid JSON, or if
            the data fails schema validation (missing required keys, wrong
            types, unknown keys).
    """
    if not SCHEMA_PATH.exists():
        raise ConfigError(f"config schema not found: {SCHEMA_PATH}")

    try:
        schema = json.loads(SCHEMA_PATH.read_text(encoding="utf-8"))
        jsonschema.validate(data, schema)
    except json.JSONDecodeError as e:
        raise ConfigError(f"invalid schema file: {e}") from e
    except ValidationError as e:
        raise ConfigError(f"config validation failed: {e.message}") from e


def config_from_dict(data: dict[str, Any]) -> ImportConfig:
    """Build an ImportConfig from already-parsed YAML data."""
    if not isinstance(data, dict):
        raise ConfigError(f"config root must be a mapping, got {type(data).__name__}")
    _validate_config_schema(data)

    db_raw = data.get("database") or {}
    db = DatabaseConfig(
        host=db_raw.get("host"),
        port=db_raw.get("port"),
        user=db_raw.get("user"),
        password=db_raw.get("password"),
        database=db_raw.get("database"),
        dsn=db_raw.get("dsn"),
    )
    defaults = ImportSettings()
    imp_raw = data.get("import") or {}
    settings = ImportSettings(
        header_scan_rows=imp_raw.get("header_scan_rows", defaults.header_scan_rows),
        max_file_bytes=imp_raw.get("max_file_bytes", defaults.max_file_bytes),
        flag_duplicate_rows=imp_raw.get("flag_duplicate_rows", defaults.flag_duplicate_rows),
        create_missing_sectors=imp_raw.get("create_missing_sectors", defaults.create_missing_sectors),
        sector_name_template=imp_raw.get("sector_name_template", defaults.sector_name_template),
    )
    check_name_template(settings.sector_name_template)
    return ImportConfig(
        tenant_id=data["tenant_id"],
        database=db,
        settings=settings,
        logs_directory=data.get("logs_directory", "./logs"),
    )


def load_config(path: Path = DEFAULT_CONFIG_PATH) -> ImportConfig:
    if not path.exists():
        raise ConfigError(f"config file not found: {path}")
    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    except yaml.YAMLError as e:
        raise ConfigError(f"invalid yaml: {e}") from e
    return config_from_dict(data)
