from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any

"""Payslip domain model.

A PayslipRecord is the materialized form of one validated spreadsheet row.
It is built without I/O and later resolved to an employee by the batch writer,
which adds the lineage fields (user, batch, file) before persisting.
"""

__all__ = [
    "EARNING_FIELDS",
    "DEDUCTION_FIELDS",
    "PayslipStatus",
    "PayslipRecord",
]

EARNING_FIELDS = ("basicSalary", "hra", "allowances", "bonus")
DEDUCTION_FIELDS = ("tax", "providentFund", "insurance")


class PayslipStatus(Enum):
    """Payslip lifecycle. The ingestion pipeline only ever writes GENERATED."""
    GENERATED = "generated"
    APPROVED = "approved"
    PAID = "paid"


@dataclass(frozen=True)
class PayslipRecord:
    """Payslip values computed from one valid row."""
    org_id: str
    email: str  # lower-cased, trimmed
    employee_id: str
    month: str  # YYYY-MM
    year: int
    earnings: dict[str, float]
    deductions: dict[str, float]
    gross_salary: float
    total_deductions: float
    net_salary: float  # may be negative
    generated_by: str
    generated_at: datetime
    row_number: int | None = None
    status: PayslipStatus = PayslipStatus.GENERATED

    def to_document(self) -> dict[str, Any]:
        """Render the stored payslip fields (without lineage/identity)."""
        doc: dict[str, Any] = {
            "email": self.email,
            "employeeId": self.employee_id,
            "month": self.month,
            "year": self.year,
            "earnings": dict(self.earnings),
            "deductions": dict(self.deductions),
            "grossSalary": self.gross_salary,
            "totalDeductions": self.total_deductions,
            "netSalary": self.net_salary,
            "status": self.status.value,
            "generatedBy": self.generated_by,
            "generatedAt": self.generated_at,
            "orgId": self.org_id,
        }
        return doc
