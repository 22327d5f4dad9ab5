"""Domain models for the payroll spreadsheet ingestion pipeline.

This package contains the dataclasses passed between the reader, validator,
materializer and batch writer, plus the configuration and error-log models.
"""

from .config_models import DatabaseConfig, IngestConfig
from .error_record import ErrorRecord
from .payslip import PayslipRecord, PayslipStatus
from .upload_result import RowError, UploadHistoryRecord, UploadPreview, UploadResult, WriteStats
from .validation import InvalidRow, NormalizedRow, ValidationResults, ValidRow

__all__ = [
    # Configuration models
    "DatabaseConfig",
    "IngestConfig",
    # Row models
    "NormalizedRow",
    "ValidRow",
    "InvalidRow",
    "ValidationResults",
    # Payslip / outcome models
    "PayslipRecord",
    "PayslipStatus",
    "RowError",
    "WriteStats",
    "UploadHistoryRecord",
    "UploadResult",
    "UploadPreview",
    "ErrorRecord",
]
