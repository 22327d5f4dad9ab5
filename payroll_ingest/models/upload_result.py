from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from .validation import InvalidRow

"""Upload outcome models.

WriteStats is what the batch writer reports, UploadHistoryRecord is the
write-once audit entry persisted per run, and UploadResult is returned to the
caller of the pipeline (validation + writer outcomes merged).
"""

__all__ = [
    "RowError",
    "WriteStats",
    "UploadHistoryRecord",
    "UploadResult",
    "UploadPreview",
    "UPLOAD_STATUS_COMPLETED",
]

UPLOAD_STATUS_COMPLETED = "completed"


@dataclass(frozen=True)
class RowError:
    """One per-row failure. ``row`` or ``email`` may be unknown."""
    error: str
    row: int | None = None
    email: str | None = None

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {}
        if self.row is not None:
            out["row"] = self.row
        if self.email is not None:
            out["email"] = self.email
        out["error"] = self.error
        return out


@dataclass
class WriteStats:
    """Mutable counters accumulated by the batch writer."""
    total_rows: int = 0
    success_count: int = 0
    failed_count: int = 0
    errors: list[RowError] = field(default_factory=list)

    def record_failure(self, error: RowError) -> None:
        self.failed_count += 1
        self.errors.append(error)

    def to_dict(self) -> dict[str, Any]:
        return {
            "totalRows": self.total_rows,
            "successCount": self.success_count,
            "failedCount": self.failed_count,
            "errors": [e.to_dict() for e in self.errors],
        }


@dataclass(frozen=True)
class UploadHistoryRecord:
    batch_id: str
    org_id: str
    uploaded_by: str
    file_name: str
    month: str  # month key of the first materialized row, "" if none
    stats: dict[str, Any]
    processed_at: datetime
    status: str = UPLOAD_STATUS_COMPLETED

    def to_document(self) -> dict[str, Any]:
        return {
            "batchId": self.batch_id,
            "orgId": self.org_id,
            "uploadedBy": self.uploaded_by,
            "fileName": self.file_name,
            "month": self.month,
            "stats": self.stats,
            "status": self.status,
            "processedAt": self.processed_at,
            "createdAt": self.processed_at,
        }


@dataclass(frozen=True)
class UploadResult:
    success: bool
    batch_id: str
    total_rows: int
    valid_rows: int
    invalid_rows: int
    success_count: int
    failed_count: int
    errors: list[RowError]

    def to_dict(self) -> dict[str, Any]:
        """camelCase view handed back to the calling application."""
        return {
            "success": self.success,
            "batchId": self.batch_id,
            "totalRows": self.total_rows,
            "validRows": self.valid_rows,
            "invalidRows": self.invalid_rows,
            "successCount": self.success_count,
            "failedCount": self.failed_count,
            "errors": [e.to_dict() for e in self.errors],
        }


@dataclass(frozen=True)
class UploadPreview:
    """Dry-run outcome of reading and validating a file without persisting."""
    total_rows: int
    valid_rows: int
    invalid_rows: int
    errors: list[InvalidRow]
    preview: list[dict[str, Any]]

    def to_dict(self) -> dict[str, Any]:
        return {
            "totalRows": self.total_rows,
            "validRows": self.valid_rows,
            "invalidRows": self.invalid_rows,
            "errors": [e.to_dict() for e in self.errors],
            "preview": [dict(r) for r in self.preview],
        }
