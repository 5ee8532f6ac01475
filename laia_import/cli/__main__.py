from __future__ import annotations

import argparse
import os
import sys
import time
from collections.abc import Iterator
from contextlib import ExitStack, contextmanager
from pathlib import Path
from typing import Any

import psycopg2
from dotenv import load_dotenv

from ..config.loader import DEFAULT_CONFIG_PATH, ConfigError, load_config
from ..excel.reader import ParseError
from ..logging.error_log import ErrorLogBuffer
from ..logging.init import log_summary, setup_logging
from ..models.config_models import DatabaseConfig, ImportConfig
from ..models.error_record import ErrorRecord
from ..models.import_result import ImportResult
from ..models.validation import BATCH_ROW, ValidationResult
from ..repository.base import Repository
from ..repository.memory import InMemoryRepository
from ..repository.postgres import PostgresRepository
from ..services.progress import ProgressTracker
from ..services.session import ImportSession
from ..services.summary import render_summary_line

"""CLI entrypoint.

Runs one spreadsheet through the whole import session:
- Load ``.env`` and the YAML config
- Parse, pick the target branch, validate
- Commit the valid rows (PostgreSQL, or in memory with ``--dry-run``)
- Write the JSON Lines error log and print the SUMMARY line
"""

EXIT_SUCCESS_ALL = 0
EXIT_PARTIAL_FAILURE = 2
EXIT_FATAL = 1


def build_dsn(db_cfg: DatabaseConfig) -> str:
    """Resolve the connection string.

    Precedence:
        1. ``DATABASE_URL`` / ``PGDSN`` environment variables, then ``database.dsn``
        2. individual ``PGHOST`` / ``PGPORT`` / ``PGUSER`` / ``PGPASSWORD`` / ``PGDATABASE``
        3. the matching keys of the ``database`` config section
    """
    dsn = os.getenv("DATABASE_URL") or os.getenv("PGDSN") or db_cfg.dsn
    if dsn:
        return dsn
    host = os.getenv("PGHOST", db_cfg.host or "localhost")
    port = os.getenv("PGPORT", str(db_cfg.port) if db_cfg.port else "5432")
    user = os.getenv("PGUSER", db_cfg.user or "postgres")
    password = os.getenv("PGPASSWORD", db_cfg.password or "")
    database = os.getenv("PGDATABASE", db_cfg.database or "postgres")
    dsn = f"host={host} port={port} user={user} dbname={database}"
    if password:
        dsn += f" password={password}"
    return dsn


@contextmanager
def _db_connection(cfg: ImportConfig) -> Iterator[Any]:  # pragma: no cover (thin wrapper)
    """Yield a cursor on an autocommit connection; every row write commits on its own."""
    conn = psycopg2.connect(build_dsn(cfg.database))
    try:
        conn.autocommit = True
        with conn.cursor() as cur:
            yield cur
    finally:
        conn.close()


def _load_env_file(path: Path, override: bool = True) -> None:
    """Load .env using python-dotenv; its values win over the process environment."""
    if path.exists():
        load_dotenv(dotenv_path=path, override=override)


def _parse_args(argv: list[str]) -> argparse.Namespace:
    p = argparse.ArgumentParser(prog="laia-import", description="LAIA spreadsheet importer")
    p.add_argument("file", type=Path, help="Spreadsheet to import (.xlsx or .xls)")
    p.add_argument("--tenant", help="Company id (defaults to tenant_id from the config)")
    p.add_argument("--branch", help="Branch id; omit to import at company level")
    p.add_argument("--config", type=Path, default=DEFAULT_CONFIG_PATH, help="Path to the YAML config")
    p.add_argument("--dry-run", action="store_true", help="Run against an in-memory store, write nothing")
    p.add_argument("--debug", action="store_true", help="Enable debug logging")
    return p.parse_args(argv)


def _log_issues(logger: Any, validation: ValidationResult, result: ImportResult | None) -> None:
    for issue in validation.errors:
        logger.error(f"row={issue.row} {issue.message}")
    for issue in validation.warnings:
        logger.warning(f"row={issue.row} {issue.message}")
    if result is None:
        return
    for issue in result.errors:
        where = "batch" if issue.row == BATCH_ROW else f"row={issue.row}"
        logger.error(f"{where} {issue.message}")


def run_import(
    repository: Repository,
    cfg: ImportConfig,
    args: argparse.Namespace,
    error_log: ErrorLogBuffer,
) -> tuple[ValidationResult, ImportResult | None]:
    """Drive one session from upload to result. ParseError propagates."""
    file_name = args.file.name
    session = ImportSession(repository, args.tenant or cfg.tenant_id, settings=cfg.settings)
    session.upload(args.file, file_name)
    session.confirm_target(args.branch)
    validation = session.validate()
    error_log.extend_issues(file_name, "validation", validation.errors + validation.warnings)

    if not validation.valid_rows:
        return validation, None

    with ProgressTracker(len(validation.valid_rows)) as tracker:
        result = session.commit(on_progress=tracker)
    error_log.extend_issues(file_name, "commit", result.errors)
    return validation, result


def _open_repository(cfg: ImportConfig, dry_run: bool, stack: ExitStack) -> Repository:
    if dry_run:
        return InMemoryRepository()
    cursor = stack.enter_context(_db_connection(cfg))
    return PostgresRepository(cursor)


def main(argv: list[str] | None = None) -> int:
    logger = setup_logging()

    if argv is None:
        argv = sys.argv[1:]
    args = _parse_args(argv)
    if args.debug:
        setup_logging(debug=True)
        logger.debug("debug mode enabled")

    _load_env_file(Path(".env"), override=True)
    try:
        cfg = load_config(args.config)
    except ConfigError as e:
        logger.error(f"config: {e}")
        return EXIT_FATAL

    error_log = ErrorLogBuffer(Path(cfg.logs_directory))
    started = time.perf_counter()
    logger.info(f"Importing {args.file} tenant={args.tenant or cfg.tenant_id} branch={args.branch or '-'}")
    if args.dry_run:
        logger.info("dry run: records are kept in memory only")

    with ExitStack() as stack:
        try:
            repository = _open_repository(cfg, args.dry_run, stack)
        except psycopg2.Error as e:
            logger.error(f"database connection failed: {e}")
            return EXIT_FATAL
        try:
            validation, result = run_import(repository, cfg, args, error_log)
        except ParseError as e:
            logger.error(f"parse: {e}")
            error_log.append(ErrorRecord.create(file=args.file.name, stage="parse", row=BATCH_ROW, message=str(e)))
            error_log.flush()
            return EXIT_FATAL

    elapsed = time.perf_counter() - started
    _log_issues(logger, validation, result)
    log_path = error_log.flush()
    if log_path is not None:
        logger.info(f"error log written: {log_path}")

    summary_line = render_summary_line(validation, result, elapsed)
    # log_summary adds the "SUMMARY " prefix itself
    log_summary(summary_line.removeprefix("SUMMARY "))

    if validation.stats.invalid > 0 or (result is not None and result.failed > 0):
        return EXIT_PARTIAL_FAILURE
    return EXIT_SUCCESS_ALL


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
