from __future__ import annotations

import math
import re
from collections.abc import Iterable, Mapping
from typing import Any

from ..models.payslip import EARNING_FIELDS
from ..models.validation import InvalidRow, ValidationResults, ValidRow

"""Row validation for normalized payroll rows.

Every row is checked on its own (no cross-row state). A row failing several
rules collects every message, in rule order.
"""

__all__ = [
    "EMAIL_PATTERN",
    "HEADER_ROW_OFFSET",
    "parse_number",
    "parse_integral",
    "is_valid_email",
    "validate_payslip_data",
    "validate_excel_data",
]

EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")

# data row index 0 is spreadsheet row 2 (row 1 holds the headers)
HEADER_ROW_OFFSET = 2

MSG_INVALID_EMAIL = "Invalid email address"
MSG_INVALID_MONTH = "Invalid month (must be 1-12)"
MSG_INVALID_YEAR = "Invalid year"
MSG_NO_EARNINGS = "At least one salary component is required"


def parse_number(value: Any) -> float | None:
    """Parse a cell value as a finite float; None when not possible."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        num = float(value)
    else:
        text = str(value).strip()
        if not text:
            return None
        try:
            num = float(text)
        except ValueError:
            return None
    if not math.isfinite(num):
        return None
    return num


def parse_integral(value: Any) -> int | None:
    """Parse a cell value holding a whole number ("5", "5.0", 5)."""
    num = parse_number(value)
    if num is None or not num.is_integer():
        return None
    return int(num)


def is_valid_email(value: Any) -> bool:
    return isinstance(value, str) and bool(EMAIL_PATTERN.match(value))


def _in_range(value: Any, low: int, high: int) -> bool:
    num = parse_integral(value)
    return num is not None and low <= num <= high


def validate_payslip_data(row: Mapping[str, Any]) -> list[str]:
    """Return the list of error messages for one row (empty when valid)."""
    errors: list[str] = []
    if not is_valid_email(row.get("email")):
        errors.append(MSG_INVALID_EMAIL)
    if not _in_range(row.get("month"), 1, 12):
        errors.append(MSG_INVALID_MONTH)
    if not _in_range(row.get("year"), 2000, 2100):
        errors.append(MSG_INVALID_YEAR)
    if not any(parse_number(row.get(f)) is not None for f in EARNING_FIELDS):
        errors.append(MSG_NO_EARNINGS)
    return errors


def validate_excel_data(rows: Iterable[Mapping[str, Any]]) -> ValidationResults:
    """Partition normalized rows into valid and invalid, keeping input order."""
    results = ValidationResults()
    for index, row in enumerate(rows):
        row_number = index + HEADER_ROW_OFFSET
        errors = validate_payslip_data(row)
        if errors:
            results.invalid.append(InvalidRow(row_number=row_number, data=dict(row), errors=errors))
        else:
            results.valid.append(ValidRow(row_number=row_number, data=dict(row)))
    return results
