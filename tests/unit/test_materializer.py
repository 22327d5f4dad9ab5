from __future__ import annotations

from datetime import UTC, datetime

import pytest

from payroll_ingest.models.payslip import PayslipStatus
from payroll_ingest.models.validation import ValidRow
from payroll_ingest.services.materializer import month_key, sanitize_number, transform_payslip_data

NOW = datetime(2025, 5, 31, 12, 0, tzinfo=UTC)


@pytest.mark.parametrize(
    "value,expected",
    [("1000", 1000.0), ("12.5", 12.5), ("", 0.0), (None, 0.0), ("abc", 0.0), ("NaN", 0.0), ("-50", 0.0), (300, 300.0)],
)
def test_sanitize_number(value, expected):
    assert sanitize_number(value) == expected


def test_month_key_is_zero_padded():
    assert month_key(5, 2025) == "2025-05"
    assert month_key(11, 2024) == "2024-11"


def test_transform_computes_totals():
    row = {"email": "a@co.com", "month": "5", "year": "2025", "basicSalary": "5000", "hra": "2000", "tax": "800"}
    rec = transform_payslip_data(row, "org_acme", "admin_1", now=NOW)
    assert rec.month == "2025-05"
    assert rec.year == 2025
    assert rec.gross_salary == 7000
    assert rec.total_deductions == 800
    assert rec.net_salary == 6200
    assert rec.earnings == {"basicSalary": 5000.0, "hra": 2000.0, "allowances": 0.0, "bonus": 0.0}
    assert rec.deductions == {"tax": 800.0, "providentFund": 0.0, "insurance": 0.0}
    assert rec.status is PayslipStatus.GENERATED
    assert rec.generated_by == "admin_1"
    assert rec.org_id == "org_acme"
    assert rec.generated_at == NOW


def test_gross_and_net_derivation_invariant():
    row = {
        "email": "a@co.com", "month": "1", "year": "2024", "basicSalary": "123.45", "hra": "0.55",
        "allowances": "-10", "bonus": "x", "tax": "20.10", "providentFund": "5", "insurance": "",
    }
    rec = transform_payslip_data(row, "o", "a", now=NOW)
    assert rec.gross_salary == sum(rec.earnings.values())
    assert rec.net_salary == rec.gross_salary - rec.total_deductions
    assert rec.earnings["allowances"] == 0
    assert rec.earnings["bonus"] == 0
    assert rec.deductions["insurance"] == 0


def test_net_salary_may_be_negative():
    row = {"email": "a@co.com", "month": "2", "year": "2025", "bonus": "100", "tax": "300"}
    rec = transform_payslip_data(row, "o", "a", now=NOW)
    assert rec.net_salary == -200


def test_email_lowercased_and_trimmed():
    row = {"email": "  A.User@Co.COM ", "month": "2", "year": "2025", "bonus": "1"}
    assert transform_payslip_data(row, "o", "a", now=NOW).email == "a.user@co.com"


def test_employee_id_defaults_to_empty():
    row = {"email": "a@co.com", "month": "2", "year": "2025", "bonus": "1"}
    assert transform_payslip_data(row, "o", "a", now=NOW).employee_id == ""
    row["employeeId"] = "EMP9"
    assert transform_payslip_data(row, "o", "a", now=NOW).employee_id == "EMP9"


def test_valid_row_carries_row_number():
    vr = ValidRow(row_number=7, data={"email": "a@co.com", "month": "12.0", "year": "2025", "hra": "1"})
    rec = transform_payslip_data(vr, "o", "a", now=NOW)
    assert rec.row_number == 7
    assert rec.month == "2025-12"


def test_to_document_shape():
    row = {"email": "a@co.com", "month": "5", "year": "2025", "basicSalary": "5000"}
    doc = transform_payslip_data(row, "org_acme", "admin_1", now=NOW).to_document()
    assert doc["status"] == "generated"
    assert doc["orgId"] == "org_acme"
    assert doc["grossSalary"] == 5000
    assert set(doc) == {
        "email", "employeeId", "month", "year", "earnings", "deductions", "grossSalary",
        "totalDeductions", "netSalary", "status", "generatedBy", "generatedAt", "orgId",
    }
