from __future__ import annotations

import pytest

from payroll_ingest.db.batch_insert import BatchInsertError, InsertResult, batch_upsert, build_upsert_sql


class DummyCursor:
    def __init__(self) -> None:
        self.queries: list[str] = []
        self.rows: list[list] = []


# execute_values is monkeypatched so the logic runs without a database

@pytest.fixture(autouse=True)
def patch_execute_values(monkeypatch):
    import payroll_ingest.db.batch_insert as bi

    def fake_execute_values(cursor, sql, rows, template=None, page_size=100):
        cursor.queries.append(sql)
        cursor.rows.extend(rows)

    monkeypatch.setattr(bi, "execute_values", fake_execute_values)
    return fake_execute_values


def test_build_upsert_sql_skips_key_and_immutable_columns():
    sql = build_upsert_sql("payslips", ["id", "month", "created_at"], "id", immutable_columns=["created_at"])
    assert sql == (
        'INSERT INTO payslips ("id","month","created_at") VALUES %s '
        'ON CONFLICT ("id") DO UPDATE SET "month"=EXCLUDED."month"'
    )


def test_build_upsert_sql_without_updatable_columns():
    assert build_upsert_sql("t", ["id"], "id").endswith('ON CONFLICT ("id") DO NOTHING')


def test_batch_upsert_basic():
    cur = DummyCursor()
    res = batch_upsert(cur, "payslips", ["id", "month"], [["p1", "2025-01"], ["p2", "2025-02"]])
    assert isinstance(res, InsertResult)
    assert res.upserted_rows == 2
    assert len(cur.queries) == 1
    assert cur.rows == [["p1", "2025-01"], ["p2", "2025-02"]]


def test_batch_upsert_empty_rows():
    cur = DummyCursor()
    captured = []
    res = batch_upsert(cur, "payslips", ["id"], [], metrics_callback=captured.append)
    assert res.upserted_rows == 0
    assert cur.queries == []
    assert captured == []


def test_batch_upsert_metrics_callback():
    cur = DummyCursor()
    captured = []
    batch_upsert(cur, "payslips", ["id"], [["p1"], ["p2"], ["p3"]], metrics_callback=captured.append)
    assert len(captured) == 1
    m = captured[0]
    assert m.batch_size == 3
    assert m.end_time >= m.start_time
    assert m.elapsed_seconds == m.end_time - m.start_time


def test_batch_upsert_wraps_driver_errors(monkeypatch):
    import payroll_ingest.db.batch_insert as bi

    def boom(*args, **kwargs):
        raise RuntimeError("deadlock detected")

    monkeypatch.setattr(bi, "execute_values", boom)
    captured = []
    with pytest.raises(BatchInsertError, match="deadlock detected"):
        batch_upsert(DummyCursor(), "payslips", ["id"], [["p1"]], metrics_callback=captured.append)
    # timing is still reported for the failed statement
    assert len(captured) == 1
