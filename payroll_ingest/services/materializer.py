from __future__ import annotations

from collections.abc import Mapping
from datetime import UTC, datetime
from typing import Any

from ..models.payslip import DEDUCTION_FIELDS, EARNING_FIELDS, PayslipRecord
from ..models.validation import ValidRow
from .validation import parse_integral, parse_number

"""Transform validated rows into payslip records (pure, no I/O)."""

__all__ = [
    "sanitize_number",
    "month_key",
    "transform_payslip_data",
]


def sanitize_number(value: Any) -> float:
    """Parse as float; unparseable/NaN/infinite -> 0; negative -> 0."""
    num = parse_number(value)
    if num is None:
        return 0.0
    return max(0.0, num)


def month_key(month: int, year: int) -> str:
    return f"{year}-{month:02d}"


def transform_payslip_data(
    row: Mapping[str, Any] | ValidRow,
    org_id: str,
    admin_user_id: str,
    *,
    now: datetime | None = None,
) -> PayslipRecord:
    """Build a PayslipRecord from one valid normalized row.

    The row must have passed validation: email, month and year are assumed
    present and well formed.
    """
    row_number = None
    if isinstance(row, ValidRow):
        row_number = row.row_number
        row = row.data

    earnings = {name: sanitize_number(row.get(name)) for name in EARNING_FIELDS}
    deductions = {name: sanitize_number(row.get(name)) for name in DEDUCTION_FIELDS}
    gross = sum(earnings.values())
    total_deductions = sum(deductions.values())

    month = parse_integral(row["month"])
    year = parse_integral(row["year"])
    if month is None or year is None:
        raise ValueError(f"row {row_number}: month/year not numeric")

    employee_id = row.get("employeeId") or ""
    return PayslipRecord(
        org_id=org_id,
        email=str(row["email"]).strip().lower(),
        employee_id=str(employee_id),
        month=month_key(month, year),
        year=year,
        earnings=earnings,
        deductions=deductions,
        gross_salary=gross,
        total_deductions=total_deductions,
        net_salary=gross - total_deductions,
        generated_by=admin_user_id,
        generated_at=now or datetime.now(UTC),
        row_number=row_number,
    )
