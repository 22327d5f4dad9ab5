from __future__ import annotations

import logging
import secrets
import string
import time
from pathlib import Path

from ..db.store import PayrollStore
from ..excel.columns import build_header_variants, normalize_column_names
from ..excel.file_check import check_upload_file
from ..excel.reader import ExcelSource, read_payroll_sheet
from ..logging.error_log import ErrorLogBuffer
from ..models.config_models import IngestConfig
from ..models.error_record import VALIDATION_ERROR, ErrorRecord
from ..models.upload_result import RowError, UploadPreview, UploadResult
from ..models.validation import NormalizedRow, ValidationResults
from .materializer import transform_payslip_data
from .payslip_writer import batch_create_payslips
from .validation import validate_excel_data

"""Pipeline entry points for payroll spreadsheet uploads.

process_excel_upload runs read -> normalize -> validate -> materialize ->
batch write for one file. validate_excel_before_upload stops after
validation and never touches a store.
"""

logger = logging.getLogger(__name__)

__all__ = [
    "EmptyUploadError",
    "NoValidRowsError",
    "PREVIEW_ROWS",
    "generate_batch_id",
    "load_normalized_rows",
    "validate_excel_before_upload",
    "process_excel_upload",
]

PREVIEW_ROWS = 5
_BATCH_ID_ALPHABET = string.digits + string.ascii_lowercase


class EmptyUploadError(Exception):
    """Raised when the spreadsheet holds no data rows."""


class NoValidRowsError(Exception):
    """Raised when every row failed validation; nothing is persisted."""

    def __init__(self, message: str, validation: ValidationResults) -> None:
        super().__init__(message)
        self.validation = validation


def generate_batch_id() -> str:
    """``batch_<epoch millis>_<9 base36 chars>``."""
    suffix = "".join(secrets.choice(_BATCH_ID_ALPHABET) for _ in range(9))
    return f"batch_{int(time.time() * 1000)}_{suffix}"


def _describe_source(source: ExcelSource, file_name: str | None) -> tuple[str, int | None]:
    """Return (file name, size in bytes if known)."""
    if isinstance(source, (str, Path)):
        path = Path(source)
        size = path.stat().st_size if path.is_file() else None
        return file_name or path.name, size
    if isinstance(source, (bytes, bytearray)):
        return file_name or "upload.xlsx", len(source)
    name = file_name or Path(str(getattr(source, "name", "upload.xlsx"))).name
    return name, None


def load_normalized_rows(source: ExcelSource, config: IngestConfig) -> list[NormalizedRow]:
    """Read the first sheet and map its headers to canonical field names.

    Raises:
        EmptyUploadError: the sheet has no data rows
    """
    sheet = read_payroll_sheet(source)
    if not sheet.rows:
        raise EmptyUploadError("Excel file is empty")
    logger.debug(f"sheet={sheet.sheet_name} columns={sheet.columns} rows={len(sheet.rows)}")
    variants = build_header_variants(config.header_variants)
    return normalize_column_names(sheet.rows, variants)


def validate_excel_before_upload(
    source: ExcelSource,
    *,
    file_name: str | None = None,
    config: IngestConfig | None = None,
) -> UploadPreview:
    cfg = config or IngestConfig()
    name, size = _describe_source(source, file_name)
    check_upload_file(name, size, cfg.max_file_size_bytes)
    rows = load_normalized_rows(source, cfg)
    validation = validate_excel_data(rows)
    return UploadPreview(
        total_rows=len(rows),
        valid_rows=len(validation.valid),
        invalid_rows=len(validation.invalid),
        errors=list(validation.invalid),
        preview=rows[:PREVIEW_ROWS],
    )


def _validation_errors(validation: ValidationResults) -> list[RowError]:
    errors = []
    for item in validation.invalid:
        email = item.data.get("email")
        errors.append(
            RowError(
                error=", ".join(item.errors),
                row=item.row_number,
                email=str(email) if email not in (None, "") else None,
            )
        )
    return errors


def process_excel_upload(
    source: ExcelSource,
    org_id: str,
    admin_user_id: str,
    store: PayrollStore,
    *,
    file_name: str | None = None,
    config: IngestConfig | None = None,
    error_log: ErrorLogBuffer | None = None,
    batch_id: str | None = None,
) -> UploadResult:
    """Ingest one payroll spreadsheet for ``org_id``.

    Args:
        source: path, bytes or binary file object of the workbook
        org_id: organization the payslips belong to
        admin_user_id: uploading admin, stored as payslip/history lineage
        store: backing store access
        file_name: name recorded as source file (defaults to the path name)
        config: pipeline settings (chunk size, header variants, size limit)
        error_log: buffer receiving one ErrorRecord per rejected row
        batch_id: explicit batch id, generated when omitted

    Raises:
        UnsupportedFileError, FileReadError, ParseError, EmptyUploadError,
        NoValidRowsError: before anything is persisted
        BatchCommitError: a chunk commit failed (earlier chunks stay committed)
    """
    cfg = config or IngestConfig()
    name, size = _describe_source(source, file_name)
    check_upload_file(name, size, cfg.max_file_size_bytes)

    rows = load_normalized_rows(source, cfg)
    validation = validate_excel_data(rows)
    if not validation.valid:
        raise NoValidRowsError("No valid records found in Excel file", validation)

    batch_id = batch_id or generate_batch_id()
    logger.info(
        f"batch={batch_id} file={name} org={org_id} rows={len(rows)} "
        f"valid={len(validation.valid)} invalid={len(validation.invalid)}"
    )

    validation_errors = _validation_errors(validation)
    if error_log is not None:
        for err in validation_errors:
            error_log.append(ErrorRecord.create(name, batch_id, err.row, VALIDATION_ERROR, err.error, email=err.email))

    payslips = [transform_payslip_data(v, org_id, admin_user_id) for v in validation.valid]
    stats = batch_create_payslips(
        store,
        payslips,
        batch_id,
        name,
        org_id,
        admin_user_id,
        chunk_size=cfg.chunk_size,
        error_log=error_log,
    )

    return UploadResult(
        success=True,
        batch_id=batch_id,
        total_rows=len(rows),
        valid_rows=len(validation.valid),
        invalid_rows=len(validation.invalid),
        success_count=stats.success_count,
        failed_count=stats.failed_count + len(validation.invalid),
        errors=validation_errors + stats.errors,
    )
