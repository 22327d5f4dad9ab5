from __future__ import annotations

from collections.abc import Iterable, Mapping
from typing import Any

"""Header normalization: spreadsheet header variants -> canonical field names.

The lookup is a static table scanned in a fixed order, so the output for a
given row is always the same. Headers are matched case-sensitively; a field
without a matching header is simply absent from the normalized row.
"""

__all__ = [
    "CANONICAL_FIELDS",
    "HEADER_VARIANTS",
    "build_header_variants",
    "normalize_row",
    "normalize_column_names",
]

HEADER_VARIANTS: dict[str, tuple[str, ...]] = {
    "email": ("email", "Email", "EMAIL", "e-mail", "E-mail"),
    "employeeId": ("employeeId", "EmployeeId", "Employee ID", "EmpId", "Emp ID"),
    "basicSalary": ("basicSalary", "BasicSalary", "Basic Salary", "Basic", "basic"),
    "hra": ("hra", "HRA", "House Rent Allowance", "houseRent"),
    "allowances": ("allowances", "Allowances", "Other Allowances", "otherAllowances"),
    "bonus": ("bonus", "Bonus", "BONUS"),
    "tax": ("tax", "Tax", "TAX", "Income Tax", "incomeTax"),
    "providentFund": ("providentFund", "PF", "pf", "Provident Fund", "ProvidentFund"),
    "insurance": ("insurance", "Insurance", "INSURANCE"),
    "month": ("month", "Month", "MONTH"),
    "year": ("year", "Year", "YEAR"),
}

CANONICAL_FIELDS = tuple(HEADER_VARIANTS)


def build_header_variants(extra: Mapping[str, Iterable[str]] | None = None) -> dict[str, tuple[str, ...]]:
    """Return the variant table with configured headers appended per field.

    Unknown canonical names in ``extra`` are ignored.
    """
    if not extra:
        return dict(HEADER_VARIANTS)
    table: dict[str, tuple[str, ...]] = {}
    for name, builtins in HEADER_VARIANTS.items():
        added = [h for h in extra.get(name, ()) if h not in builtins]
        table[name] = builtins + tuple(added)
    return table


def normalize_row(
    row: Mapping[str, Any],
    variants: Mapping[str, tuple[str, ...]] = HEADER_VARIANTS,
) -> dict[str, Any]:
    """Copy the first matching raw value of each canonical field.

    "First" follows the row's own column order, so a sheet carrying both
    ``Email`` and ``email`` yields whichever column comes first.
    """
    normalized: dict[str, Any] = {}
    for name, accepted in variants.items():
        for key in row:
            if key in accepted:
                normalized[name] = row[key]
                break
    return normalized


def normalize_column_names(
    rows: Iterable[Mapping[str, Any]],
    variants: Mapping[str, tuple[str, ...]] = HEADER_VARIANTS,
) -> list[dict[str, Any]]:
    return [normalize_row(r, variants) for r in rows]
