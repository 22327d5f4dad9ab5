from __future__ import annotations

import argparse
import logging
import os
import sys
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path

import psycopg2
from dotenv import load_dotenv

from payroll_ingest.config.loader import ConfigError, load_config_or_default
from payroll_ingest.db.postgres_store import PostgresPayrollStore
from payroll_ingest.db.store import StoreError
from payroll_ingest.excel.file_check import UnsupportedFileError
from payroll_ingest.excel.reader import FileReadError, ParseError
from payroll_ingest.logging.error_log import ErrorLogBuffer
from payroll_ingest.logging.init import log_summary, setup_logging
from payroll_ingest.models.config_models import IngestConfig
from payroll_ingest.services.ingestion import (
    EmptyUploadError,
    NoValidRowsError,
    process_excel_upload,
    validate_excel_before_upload,
)
from payroll_ingest.services.payslip_writer import BatchCommitError
from payroll_ingest.services.summary import render_summary_line

"""Command-line entry point.

    payroll-ingest upload FILE --org ORG --admin ADMIN
    payroll-ingest validate FILE
    payroll-ingest history --org ORG
    payroll-ingest init-db
"""

EXIT_SUCCESS_ALL = 0
EXIT_FATAL = 1
EXIT_PARTIAL_FAILURE = 2

FATAL_UPLOAD_ERRORS = (
    UnsupportedFileError,
    FileReadError,
    ParseError,
    EmptyUploadError,
    NoValidRowsError,
    BatchCommitError,
)


def _resolve_dsn(cfg: IngestConfig) -> str:
    """Connection string: environment (incl. .env) first, then the config file."""
    db_cfg = cfg.database
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
def _open_store(cfg: IngestConfig) -> Iterator[PostgresPayrollStore]:  # pragma: no cover (needs a database)
    conn = psycopg2.connect(_resolve_dsn(cfg))
    conn.autocommit = False
    try:
        yield PostgresPayrollStore(conn)
    finally:
        conn.close()


def _load_env_file(path: Path, override: bool = True) -> None:
    if path.exists():
        load_dotenv(dotenv_path=path, override=override)


def _parse_args(argv: list[str]) -> argparse.Namespace:
    common = argparse.ArgumentParser(add_help=False)
    common.add_argument("--config", type=Path, default=None, help="YAML config file (default: config/payroll.yml)")
    common.add_argument("--debug", action="store_true", help="Enable debug logging")

    p = argparse.ArgumentParser(prog="payroll-ingest", description="Payroll spreadsheet ingestion")
    sub = p.add_subparsers(dest="command", required=True)

    up = sub.add_parser("upload", parents=[common], help="Ingest a payroll spreadsheet")
    up.add_argument("file", type=Path)
    up.add_argument("--org", required=True, help="Organization id")
    up.add_argument("--admin", required=True, help="Uploading admin user id")

    val = sub.add_parser("validate", parents=[common], help="Validate a spreadsheet without writing")
    val.add_argument("file", type=Path)

    hist = sub.add_parser("history", parents=[common], help="List recent uploads of an organization")
    hist.add_argument("--org", required=True, help="Organization id")

    sub.add_parser("init-db", parents=[common], help="Create the database tables")
    return p.parse_args(argv)


def _run_upload(args: argparse.Namespace, cfg: IngestConfig, logger: logging.Logger) -> int:
    error_log = ErrorLogBuffer(cfg.logs_directory)
    try:
        with _open_store(cfg) as store:
            result = process_excel_upload(args.file, args.org, args.admin, store, config=cfg, error_log=error_log)
    except NoValidRowsError as e:
        for item in e.validation.invalid:
            logger.warning(f"row={item.row_number} error={', '.join(item.errors)}")
        logger.error(f"upload: {e}")
        return EXIT_FATAL
    except FATAL_UPLOAD_ERRORS as e:
        logger.error(f"upload: {e}")
        return EXIT_FATAL
    except (StoreError, psycopg2.Error) as e:
        logger.error(f"database: {e}")
        return EXIT_FATAL
    finally:
        log_path = error_log.flush()
        if log_path is not None:
            logger.info(f"error log written to {log_path}")

    for err in result.errors:
        logger.warning(f"row={err.row if err.row is not None else '-'} email={err.email or '-'} error={err.error}")
    log_summary(render_summary_line(result)[len("SUMMARY "):])
    return EXIT_PARTIAL_FAILURE if result.failed_count > 0 else EXIT_SUCCESS_ALL


def _run_validate(args: argparse.Namespace, cfg: IngestConfig, logger: logging.Logger) -> int:
    try:
        preview = validate_excel_before_upload(args.file, config=cfg)
    except (UnsupportedFileError, FileReadError, ParseError, EmptyUploadError) as e:
        logger.error(f"validate: {e}")
        return EXIT_FATAL
    for item in preview.errors:
        logger.warning(f"row={item.row_number} error={', '.join(item.errors)}")
    for row in preview.preview:
        logger.debug(f"preview {row}")
    log_summary(f"rows={preview.total_rows} valid={preview.valid_rows} invalid={preview.invalid_rows}")
    return EXIT_PARTIAL_FAILURE if preview.invalid_rows else EXIT_SUCCESS_ALL


def _run_history(args: argparse.Namespace, cfg: IngestConfig, logger: logging.Logger) -> int:
    try:
        with _open_store(cfg) as store:
            records = store.get_upload_history(args.org, limit=cfg.history_limit)
    except Exception as e:
        logger.error(f"history: {e}")
        return EXIT_FATAL
    for rec in records:
        stats = rec.get("stats") or {}
        logger.info(
            f"batch={rec['batchId']} file={rec['fileName']} month={rec['month']} "
            f"rows={stats.get('totalRows', 0)} success={stats.get('successCount', 0)} "
            f"failed={stats.get('failedCount', 0)} processed_at={rec['processedAt']}"
        )
    log_summary(f"org={args.org} uploads={len(records)}")
    return EXIT_SUCCESS_ALL


def _run_init_db(args: argparse.Namespace, cfg: IngestConfig, logger: logging.Logger) -> int:
    try:
        with _open_store(cfg) as store:
            store.ensure_schema()
    except psycopg2.Error as e:
        logger.error(f"database: {e}")
        return EXIT_FATAL
    logger.info("schema ready")
    return EXIT_SUCCESS_ALL


COMMANDS = {
    "upload": _run_upload,
    "validate": _run_validate,
    "history": _run_history,
    "init-db": _run_init_db,
}


def main(argv: list[str] | None = None) -> int:
    logger = setup_logging()

    # only read sys.argv when no explicit list is given (tests pass [])
    if argv is None:
        argv = sys.argv[1:]
    args = _parse_args(argv)

    # .env wins over the process environment for connection settings
    _load_env_file(Path(".env"), override=True)

    try:
        cfg = load_config_or_default(args.config)
    except ConfigError as e:
        logger.error(f"config: {e}")
        return EXIT_FATAL

    if args.debug:
        for h in logger.handlers:
            h.setLevel(logging.DEBUG)
        logger.setLevel(logging.DEBUG)
        logger.debug("debug mode enabled")

    return COMMANDS[args.command](args, cfg, logger)


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
