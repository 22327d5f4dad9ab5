from __future__ import annotations

import json
from dataclasses import asdict, dataclass
from datetime import UTC, datetime

"""ErrorRecord model for the per-upload error log.

One record per rejected row (or per failed chunk commit). ``row=-1`` is the
sentinel for failures that cannot be pinned to a spreadsheet row, e.g. a
chunk commit or a resolution failure for a record without a row number.
"""

__all__ = [
    "ErrorRecord",
    "VALIDATION_ERROR",
    "USER_NOT_FOUND",
    "LOOKUP_ERROR",
    "COMMIT_ERROR",
]

VALIDATION_ERROR = "VALIDATION_ERROR"
USER_NOT_FOUND = "USER_NOT_FOUND"
LOOKUP_ERROR = "LOOKUP_ERROR"
COMMIT_ERROR = "COMMIT_ERROR"


@dataclass(frozen=True)
class ErrorRecord:
    """Structured error record for JSON Lines logging.

    Attributes:
        timestamp: ISO8601 UTC timestamp with 'Z' suffix
        file: Spreadsheet file name of the upload
        batch_id: Batch id of the upload run
        row: Spreadsheet row number (header = 1). -1 when unknown
        email: Employee email of the row, "" when unknown
        error_type: Error classification in UPPER_SNAKE_CASE format
        message: Human-readable error message
    """
    timestamp: str
    file: str
    batch_id: str
    row: int
    email: str
    error_type: str
    message: str

    @staticmethod
    def create(
        file: str,
        batch_id: str,
        row: int | None,
        error_type: str,
        message: str,
        email: str | None = None,
    ) -> ErrorRecord:
        """Create a new ErrorRecord stamped with the current UTC time."""
        ts = datetime.now(UTC).isoformat().replace("+00:00", "Z")
        return ErrorRecord(
            timestamp=ts,
            file=file,
            batch_id=batch_id,
            row=-1 if row is None else row,
            email=email or "",
            error_type=error_type,
            message=message,
        )

    def to_json_line(self) -> str:
        return json.dumps(asdict(self), ensure_ascii=False)
