from __future__ import annotations

import logging
from collections.abc import Iterator, Sequence
from datetime import UTC, datetime
from typing import Any

from ..db.store import PayrollStore
from ..logging.error_log import ErrorLogBuffer
from ..models.config_models import DEFAULT_CHUNK_SIZE
from ..models.error_record import COMMIT_ERROR, LOOKUP_ERROR, USER_NOT_FOUND, ErrorRecord
from ..models.payslip import PayslipRecord
from ..models.upload_result import RowError, UploadHistoryRecord, WriteStats
from .progress import ChunkProgressTracker

"""Batch writer: resolve employees, reconcile with existing payslips, commit in chunks.

For each record, in input order:
1. look up the employee by (email, org); no match -> per-row "User not found"
2. look up an existing payslip for (employee, month, org); reuse its id so the
   write overwrites it, otherwise allocate a new id
3. stage the write in the current chunk's batch

Lookup failures become per-row errors. A failing chunk commit aborts the
upload: earlier chunks stay committed and no history record is written.
"""

logger = logging.getLogger(__name__)

__all__ = [
    "USER_NOT_FOUND_MESSAGE",
    "BatchCommitError",
    "chunked",
    "batch_create_payslips",
]

USER_NOT_FOUND_MESSAGE = "User not found"


class BatchCommitError(Exception):
    """Raised when a chunk's atomic commit fails."""

    def __init__(self, message: str, *, chunk_index: int, committed_rows: int) -> None:
        super().__init__(message)
        self.chunk_index = chunk_index
        self.committed_rows = committed_rows


def chunked(items: Sequence[Any], size: int) -> Iterator[Sequence[Any]]:
    if size < 1:
        raise ValueError("chunk size must be >= 1")
    for start in range(0, len(items), size):
        yield items[start:start + size]


def _payslip_document(
    record: PayslipRecord,
    user_id: str,
    batch_id: str,
    file_name: str,
    admin_user_id: str,
    now: datetime,
    is_new: bool,
) -> dict[str, Any]:
    doc = record.to_document()
    doc.update(
        userId=user_id,
        orgId=record.org_id,
        uploadBatchId=batch_id,
        excelFileName=file_name,
        generatedBy=admin_user_id,
        generatedAt=now,
        updatedAt=now,
    )
    if is_new:
        doc["createdAt"] = now
    return doc


def batch_create_payslips(
    store: PayrollStore,
    payslips: Sequence[PayslipRecord],
    batch_id: str,
    file_name: str,
    org_id: str,
    admin_user_id: str,
    *,
    chunk_size: int = DEFAULT_CHUNK_SIZE,
    error_log: ErrorLogBuffer | None = None,
) -> WriteStats:
    """Persist materialized payslips and record one upload history entry.

    Returns the writer statistics; ``total_rows`` counts the records passed
    in (validation rejects are not part of it).

    Raises:
        BatchCommitError: a chunk commit failed
    """
    stats = WriteStats(total_rows=len(payslips))
    committed_rows = 0
    # (user id, month) -> doc id of payslips already staged by this upload
    staged_ids: dict[tuple[str, str], str] = {}

    def fail(record: PayslipRecord, error_type: str, message: str) -> None:
        stats.record_failure(RowError(error=message, row=record.row_number, email=record.email))
        if error_log is not None:
            error_log.append(
                ErrorRecord.create(file_name, batch_id, record.row_number, error_type, message, email=record.email)
            )

    with ChunkProgressTracker(len(payslips)) as progress:
        for chunk_index, chunk in enumerate(chunked(payslips, chunk_size)):
            progress.start_chunk(chunk_index, len(chunk))
            batch = store.batch()
            now = datetime.now(UTC)

            for record in chunk:
                try:
                    user = store.get_user_by_email(record.email, org_id)
                    if user is None:
                        fail(record, USER_NOT_FOUND, USER_NOT_FOUND_MESSAGE)
                        continue
                    key = (user["id"], record.month)
                    doc_id = staged_ids.get(key)
                    is_new = False
                    if doc_id is None:
                        existing = store.get_payslip_by_user_and_month(user["id"], record.month, org_id)
                        is_new = existing is None
                        doc_id = store.new_payslip_id() if is_new else existing["id"]
                        staged_ids[key] = doc_id
                    doc = _payslip_document(record, user["id"], batch_id, file_name, admin_user_id, now, is_new=is_new)
                    batch.set(doc_id, doc, merge=True)
                    stats.success_count += 1
                except Exception as e:
                    logger.warning(f"row {record.row_number} ({record.email}): lookup failed: {e}")
                    fail(record, LOOKUP_ERROR, str(e))

            staged = len(batch)
            try:
                batch.commit()
            except Exception as e:
                logger.error(
                    f"batch={batch_id} chunk={chunk_index + 1} commit failed after {committed_rows} committed rows: {e}"
                )
                if error_log is not None:
                    error_log.append(ErrorRecord.create(file_name, batch_id, None, COMMIT_ERROR, str(e)))
                raise BatchCommitError(
                    f"Failed to commit payslip chunk {chunk_index + 1}: {e}",
                    chunk_index=chunk_index,
                    committed_rows=committed_rows,
                ) from e
            committed_rows += staged
            logger.debug(f"batch={batch_id} chunk={chunk_index + 1} committed {staged} payslips")
            progress.finish_chunk(len(chunk), success=stats.success_count, failed=stats.failed_count)

    history = UploadHistoryRecord(
        batch_id=batch_id,
        org_id=org_id,
        uploaded_by=admin_user_id,
        file_name=file_name,
        month=payslips[0].month if payslips else "",
        stats=stats.to_dict(),
        processed_at=datetime.now(UTC),
    )
    store.add_upload_history(history)
    return stats
