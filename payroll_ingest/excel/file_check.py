from __future__ import annotations

from pathlib import PurePath

"""Pre-read checks on an uploaded spreadsheet file (extension and size)."""

ALLOWED_EXTENSIONS = (".xlsx", ".xls")


class UnsupportedFileError(Exception):
    """Raised when an upload is not an Excel file or is too large."""


def check_upload_file(name: str, size: int | None, max_size_bytes: int) -> None:
    if PurePath(name).suffix.lower() not in ALLOWED_EXTENSIONS:
        raise UnsupportedFileError("Please select a valid Excel file (.xlsx or .xls)")
    if size is not None and size > max_size_bytes:
        limit_mb = max_size_bytes / 1024 / 1024
        raise UnsupportedFileError(f"File size exceeds {limit_mb:g}MB limit")
