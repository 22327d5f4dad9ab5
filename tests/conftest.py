# Shared pytest fixtures
from __future__ import annotations

import tempfile
from collections.abc import Callable
from pathlib import Path
from typing import Any

import pandas as pd
import pytest

from payroll_ingest.db.store import InMemoryStore

PAYROLL_HEADERS = [
    "Email", "Employee ID", "Basic Salary", "HRA", "Allowances", "Bonus",
    "Tax", "PF", "Insurance", "Month", "Year",
]

ORG_ID = "org_acme"
ADMIN_ID = "admin_1"


@pytest.fixture()
def temp_workdir(monkeypatch) -> Path:
    with tempfile.TemporaryDirectory() as d:
        p = Path(d)
        (p / "config").mkdir()
        (p / "data").mkdir()
        (p / "logs").mkdir()
        monkeypatch.chdir(p)
        yield p


@pytest.fixture()
def sample_config_yaml() -> str:
    return """chunk_size: 2
history_limit: 10
max_file_size_mb: 1
logs_directory: ./logs
header_variants:
  email: [Work Email]
  basicSalary: [Base Pay]
database:
  host: localhost
  port: 5432
  user: payroll
  password: secret
  database: payroll
"""


@pytest.fixture()
def write_config(temp_workdir: Path, sample_config_yaml: str) -> Path:
    cfg = temp_workdir / "config" / "payroll.yml"
    cfg.write_text(sample_config_yaml, encoding="utf-8")
    return cfg


def write_xlsx(path: Path, rows: list[list[Any]], *, sheets: dict[str, list[list[Any]]] | None = None) -> Path:
    """Write ``rows`` (first row = headers) as the first sheet of ``path``."""
    with pd.ExcelWriter(path, engine="openpyxl") as writer:
        pd.DataFrame(rows).to_excel(writer, sheet_name="Payroll", header=False, index=False)
        for name, extra in (sheets or {}).items():
            pd.DataFrame(extra).to_excel(writer, sheet_name=name, header=False, index=False)
    return path


@pytest.fixture()
def make_payroll_xlsx(temp_workdir: Path) -> Callable[..., Path]:
    def _make(rows: list[list[Any]], name: str = "payroll.xlsx", headers: list[str] | None = None) -> Path:
        return write_xlsx(temp_workdir / "data" / name, [headers or PAYROLL_HEADERS, *rows])
    return _make


@pytest.fixture()
def store() -> InMemoryStore:
    s = InMemoryStore()
    s.add_user("a@co.com", ORG_ID, user_id="u_a")
    s.add_user("b@co.com", ORG_ID, user_id="u_b")
    s.add_user("a@co.com", "org_other", user_id="u_other")
    return s
