from __future__ import annotations

from dataclasses import dataclass, field

"""Config dataclasses for the LAIA import tool.

These are the typed views built by ``laia_import.config.loader`` from the YAML
file after schema validation. Defaults here match the defaults documented in
the JSON schema.
"""

DEFAULT_MAX_FILE_BYTES = 10 * 1024 * 1024
DEFAULT_HEADER_SCAN_ROWS = 20
DEFAULT_SECTOR_NAME_TEMPLATE = "Setor {code}"


@dataclass(frozen=True)
class DatabaseConfig:
    """Database connection configuration.

    Used as fallback when environment variables are not set.
    Environment variables take precedence over these values.
    """
    host: str | None = None
    port: int | None = None
    user: str | None = None
    password: str | None = None
    database: str | None = None
    dsn: str | None = None


@dataclass(frozen=True)
class ImportSettings:
    """Tunables of the parse/validate/commit pipeline."""
    header_scan_rows: int = DEFAULT_HEADER_SCAN_ROWS
    max_file_bytes: int = DEFAULT_MAX_FILE_BYTES
    flag_duplicate_rows: bool = True
    create_missing_sectors: bool = True
    sector_name_template: str = DEFAULT_SECTOR_NAME_TEMPLATE


@dataclass(frozen=True)
class ImportConfig:
    """Root configuration object for an import run."""
    tenant_id: str  # company the records belong to
    database: DatabaseConfig = field(default_factory=DatabaseConfig)
    settings: ImportSettings = field(default_factory=ImportSettings)
    logs_directory: str = "./logs"
