from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

"""Validation result models.

NormalizedRow is a plain ``dict[str, Any]`` restricted to canonical field
names; these dataclasses tag each one as valid or invalid together with its
spreadsheet row number (header row = 1, first data row = 2).
"""

__all__ = [
    "NormalizedRow",
    "ValidRow",
    "InvalidRow",
    "ValidationResults",
]

NormalizedRow = dict[str, Any]


@dataclass(frozen=True)
class ValidRow:
    row_number: int
    data: NormalizedRow


@dataclass(frozen=True)
class InvalidRow:
    row_number: int
    data: NormalizedRow
    errors: list[str]  # never empty

    def to_dict(self) -> dict[str, Any]:
        return {"rowNumber": self.row_number, "data": dict(self.data), "errors": list(self.errors)}


@dataclass(frozen=True)
class ValidationResults:
    """Ordered partition of one upload's rows."""
    valid: list[ValidRow] = field(default_factory=list)
    invalid: list[InvalidRow] = field(default_factory=list)

    @property
    def total_rows(self) -> int:
        return len(self.valid) + len(self.invalid)
