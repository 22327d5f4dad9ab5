from __future__ import annotations

from contextlib import contextmanager
from pathlib import Path

import pandas as pd
import pytest

from payroll_ingest.cli import __main__ as cli
from payroll_ingest.db.store import InMemoryStore, StoreError
from payroll_ingest.logging.init import reset_logging

HEADERS = ["Email", "Employee ID", "Basic Salary", "HRA", "Allowances", "Bonus", "Tax", "PF", "Insurance", "Month", "Year"]


@pytest.fixture()
def cli_store(monkeypatch) -> InMemoryStore:
    s = InMemoryStore()
    s.add_user("a@co.com", "org_acme", user_id="u_a")

    @contextmanager
    def _fake_open_store(cfg):
        yield s

    monkeypatch.setattr(cli, "_open_store", _fake_open_store)
    reset_logging()
    yield s
    reset_logging()


def _sheet(temp_workdir: Path, rows: list[list], name: str = "may.xlsx") -> Path:
    path = temp_workdir / "data" / name
    pd.DataFrame([HEADERS, *rows]).to_excel(path, header=False, index=False)
    return path


def _row(email: str, month=5) -> list:
    return [email, "", 5000, "", "", "", 500, "", "", month, 2025]


def test_upload_all_rows_ok(write_config, temp_workdir: Path, cli_store: InMemoryStore, capsys):
    path = _sheet(temp_workdir, [_row("a@co.com")])
    code = cli.main(["upload", str(path), "--org", "org_acme", "--admin", "admin_1"])
    out = capsys.readouterr().out
    assert code == 0
    assert "SUMMARY batch=" in out
    assert "rows=1 valid=1 invalid=0 success=1 failed=0" in out
    assert len(cli_store.payslips_for("org_acme")) == 1
    assert list((temp_workdir / "logs").iterdir()) == []


def test_upload_partial_failure(write_config, temp_workdir: Path, cli_store: InMemoryStore, capsys):
    path = _sheet(temp_workdir, [_row("a@co.com"), _row("ghost@co.com"), _row("a@co.com", month=14)])
    code = cli.main(["upload", str(path), "--org", "org_acme", "--admin", "admin_1"])
    out = capsys.readouterr().out
    assert code == 2
    assert "WARN row=3 email=ghost@co.com error=User not found" in out
    assert "WARN row=4 email=a@co.com error=Invalid month (must be 1-12)" in out
    assert "success=1 failed=2" in out
    logs = list((temp_workdir / "logs").glob("errors-*.log"))
    assert len(logs) == 1
    assert len(logs[0].read_text(encoding="utf-8").splitlines()) == 2


def test_upload_no_valid_rows_is_fatal(write_config, temp_workdir: Path, cli_store: InMemoryStore, capsys):
    path = _sheet(temp_workdir, [_row("not-an-email")])
    code = cli.main(["upload", str(path), "--org", "org_acme", "--admin", "admin_1"])
    out = capsys.readouterr().out
    assert code == 1
    assert "WARN row=2 error=Invalid email address" in out
    assert "ERROR upload: No valid records found in Excel file" in out
    assert cli_store.payslips == {}


def test_upload_rejects_non_excel(write_config, temp_workdir: Path, cli_store: InMemoryStore, capsys):
    path = temp_workdir / "data" / "payroll.txt"
    path.write_text("hello", encoding="utf-8")
    code = cli.main(["upload", str(path), "--org", "org_acme", "--admin", "admin_1"])
    assert code == 1
    assert "ERROR upload: Please select a valid Excel file (.xlsx or .xls)" in capsys.readouterr().out



def test_upload_store_failure_is_fatal(write_config, temp_workdir: Path, monkeypatch, capsys):
    class BrokenHistoryStore(InMemoryStore):
        def add_upload_history(self, record):
            raise StoreError("history insert failed")

    s = BrokenHistoryStore()
    s.add_user("a@co.com", "org_acme", user_id="u_a")

    @contextmanager
    def _fake_open_store(cfg):
        yield s

    monkeypatch.setattr(cli, "_open_store", _fake_open_store)
    reset_logging()
    path = _sheet(temp_workdir, [_row("a@co.com")])
    code = cli.main(["upload", str(path), "--org", "org_acme", "--admin", "admin_1"])
    out = capsys.readouterr().out
    reset_logging()
    assert code == 1
    assert "ERROR database: history insert failed" in out
    assert "SUMMARY" not in out

def test_validate_reports_invalid_rows(write_config, temp_workdir: Path, cli_store: InMemoryStore, capsys):
    path = _sheet(temp_workdir, [_row("a@co.com"), _row("bad")])
    code = cli.main(["validate", str(path)])
    out = capsys.readouterr().out
    assert code == 2
    assert "WARN row=3 error=Invalid email address" in out
    assert "SUMMARY rows=2 valid=1 invalid=1" in out
    assert cli_store.payslips == {}


def test_validate_clean_file(write_config, temp_workdir: Path, cli_store: InMemoryStore, capsys):
    path = _sheet(temp_workdir, [_row("a@co.com")])
    assert cli.main(["validate", str(path)]) == 0
    assert "SUMMARY rows=1 valid=1 invalid=0" in capsys.readouterr().out


def test_history_lists_uploads(write_config, temp_workdir: Path, cli_store: InMemoryStore, capsys):
    path = _sheet(temp_workdir, [_row("a@co.com")])
    cli.main(["upload", str(path), "--org", "org_acme", "--admin", "admin_1"])
    capsys.readouterr()
    reset_logging()
    code = cli.main(["history", "--org", "org_acme"])
    out = capsys.readouterr().out
    assert code == 0
    assert "file=may.xlsx month=2025-05 rows=1 success=1 failed=0" in out
    assert "SUMMARY org=org_acme uploads=1" in out


def test_invalid_config_is_fatal(write_config: Path, cli_store: InMemoryStore, capsys):
    write_config.write_text("chunk_size: 9999\n", encoding="utf-8")
    code = cli.main(["validate", "whatever.xlsx"])
    out = capsys.readouterr().out
    assert code == 1
    assert "ERROR config: config validation failed" in out


def test_debug_flag_emits_debug_lines(write_config, temp_workdir: Path, cli_store: InMemoryStore, capsys):
    path = _sheet(temp_workdir, [_row("a@co.com")])
    cli.main(["validate", str(path), "--debug"])
    out = capsys.readouterr().out
    assert "DEBUG debug mode enabled" in out
    assert "DEBUG preview {" in out


def test_resolve_dsn_prefers_environment(monkeypatch):
    from payroll_ingest.models.config_models import DatabaseConfig, IngestConfig

    cfg = IngestConfig(database=DatabaseConfig(host="db", port=6543, user="pay", password="pw", database="payroll"))
    for var in ("DATABASE_URL", "PGDSN", "PGHOST", "PGPORT", "PGUSER", "PGPASSWORD", "PGDATABASE"):
        monkeypatch.delenv(var, raising=False)
    assert cli._resolve_dsn(cfg) == "host=db port=6543 user=pay dbname=payroll password=pw"
    monkeypatch.setenv("DATABASE_URL", "postgresql://x@y/z")
    assert cli._resolve_dsn(cfg) == "postgresql://x@y/z"
