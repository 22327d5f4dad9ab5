from __future__ import annotations

import uuid
from collections.abc import Callable
from typing import Any

from psycopg2.extras import Json, RealDictCursor

from ..models.upload_result import UploadHistoryRecord
from .batch_insert import BatchMetrics, batch_upsert
from .store import PayrollStore, StoreError, WriteBatch

"""PostgreSQL implementation of PayrollStore (psycopg2).

Each WriteBatch commit is one transaction holding a single batched upsert.
Document field names (camelCase) map onto snake_case columns.
"""

__all__ = [
    "SCHEMA_SQL",
    "PAYSLIP_COLUMNS",
    "PostgresPayrollStore",
]

SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS users (
    id TEXT PRIMARY KEY,
    email TEXT NOT NULL,
    org_id TEXT NOT NULL
);
CREATE INDEX IF NOT EXISTS users_org_email_idx ON users (org_id, email);
CREATE TABLE IF NOT EXISTS payslips (
    id TEXT PRIMARY KEY,
    org_id TEXT NOT NULL,
    user_id TEXT NOT NULL,
    email TEXT NOT NULL,
    employee_id TEXT NOT NULL DEFAULT '',
    month TEXT NOT NULL,
    year INTEGER NOT NULL,
    earnings JSONB NOT NULL,
    deductions JSONB NOT NULL,
    gross_salary DOUBLE PRECISION NOT NULL,
    total_deductions DOUBLE PRECISION NOT NULL,
    net_salary DOUBLE PRECISION NOT NULL,
    status TEXT NOT NULL,
    upload_batch_id TEXT,
    excel_file_name TEXT,
    generated_by TEXT,
    generated_at TIMESTAMPTZ,
    created_at TIMESTAMPTZ NOT NULL,
    updated_at TIMESTAMPTZ NOT NULL
);
CREATE INDEX IF NOT EXISTS payslips_org_user_month_idx ON payslips (org_id, user_id, month);
CREATE TABLE IF NOT EXISTS upload_history (
    id TEXT PRIMARY KEY,
    batch_id TEXT NOT NULL,
    org_id TEXT NOT NULL,
    uploaded_by TEXT NOT NULL,
    file_name TEXT NOT NULL,
    month TEXT NOT NULL,
    stats JSONB NOT NULL,
    status TEXT NOT NULL,
    processed_at TIMESTAMPTZ NOT NULL,
    created_at TIMESTAMPTZ NOT NULL
);
"""

# document key -> column
PAYSLIP_COLUMNS: dict[str, str] = {
    "id": "id",
    "orgId": "org_id",
    "userId": "user_id",
    "email": "email",
    "employeeId": "employee_id",
    "month": "month",
    "year": "year",
    "earnings": "earnings",
    "deductions": "deductions",
    "grossSalary": "gross_salary",
    "totalDeductions": "total_deductions",
    "netSalary": "net_salary",
    "status": "status",
    "uploadBatchId": "upload_batch_id",
    "excelFileName": "excel_file_name",
    "generatedBy": "generated_by",
    "generatedAt": "generated_at",
    "createdAt": "created_at",
    "updatedAt": "updated_at",
}
_JSON_FIELDS = {"earnings", "deductions"}

HISTORY_COLUMNS: dict[str, str] = {
    "id": "id",
    "batchId": "batch_id",
    "orgId": "org_id",
    "uploadedBy": "uploaded_by",
    "fileName": "file_name",
    "month": "month",
    "stats": "stats",
    "status": "status",
    "processedAt": "processed_at",
    "createdAt": "created_at",
}


def _row_to_doc(row: dict[str, Any], mapping: dict[str, str]) -> dict[str, Any]:
    return {key: row[col] for key, col in mapping.items() if col in row}


class _PostgresWriteBatch(WriteBatch):
    def __init__(self, store: PostgresPayrollStore) -> None:
        self._store = store
        self._writes: dict[str, dict[str, Any]] = {}

    def set(self, doc_id: str, data: dict[str, Any], merge: bool = True) -> None:
        doc = dict(data)
        doc["id"] = doc_id
        # one statement may not touch a row twice: fold repeated ids together
        staged = self._writes.get(doc_id)
        if staged is not None and merge:
            staged.update(doc)
            return
        # rows share one column list; created_at only lands on insert
        doc.setdefault("createdAt", doc.get("updatedAt"))
        self._writes[doc_id] = doc

    def commit(self) -> None:
        if not self._writes:
            return
        self._store._commit_payslips(list(self._writes.values()))
        self._writes = {}

    def __len__(self) -> int:
        return len(self._writes)


class PostgresPayrollStore(PayrollStore):
    def __init__(
        self,
        conn: Any,
        *,
        page_size: int = 1000,
        metrics_callback: Callable[[BatchMetrics], None] | None = None,
    ) -> None:
        self._conn = conn
        self._page_size = page_size
        self._metrics_callback = metrics_callback

    def ensure_schema(self) -> None:
        with self._conn.cursor() as cur:
            cur.execute(SCHEMA_SQL)
        self._conn.commit()

    def _fetch_one(self, sql: str, params: tuple[Any, ...]) -> dict[str, Any] | None:
        try:
            with self._conn.cursor(cursor_factory=RealDictCursor) as cur:
                cur.execute(sql, params)
                row = cur.fetchone()
        except Exception as e:
            self._conn.rollback()
            raise StoreError(str(e)) from e
        return dict(row) if row is not None else None

    def get_user_by_email(self, email: str, org_id: str) -> dict[str, Any] | None:
        row = self._fetch_one(
            "SELECT id, email, org_id FROM users WHERE email = %s AND org_id = %s LIMIT 1",
            (email, org_id),
        )
        if row is None:
            return None
        return {"id": row["id"], "email": row["email"], "orgId": row["org_id"]}

    def get_payslip_by_user_and_month(self, user_id: str, month: str, org_id: str) -> dict[str, Any] | None:
        row = self._fetch_one(
            "SELECT * FROM payslips WHERE org_id = %s AND user_id = %s AND month = %s LIMIT 1",
            (org_id, user_id, month),
        )
        return _row_to_doc(row, PAYSLIP_COLUMNS) if row is not None else None

    def new_payslip_id(self) -> str:
        return uuid.uuid4().hex

    def batch(self) -> WriteBatch:
        return _PostgresWriteBatch(self)

    def _commit_payslips(self, docs: list[dict[str, Any]]) -> None:
        keys = list(PAYSLIP_COLUMNS)
        columns = [PAYSLIP_COLUMNS[k] for k in keys]
        rows = [
            [Json(doc.get(k)) if k in _JSON_FIELDS else doc.get(k) for k in keys]
            for doc in docs
        ]
        try:
            with self._conn.cursor() as cur:
                batch_upsert(
                    cur,
                    "payslips",
                    columns,
                    rows,
                    conflict_column="id",
                    immutable_columns=("created_at",),
                    page_size=self._page_size,
                    metrics_callback=self._metrics_callback,
                )
            self._conn.commit()
        except Exception as e:
            self._conn.rollback()
            raise StoreError(str(e)) from e

    def add_upload_history(self, record: UploadHistoryRecord) -> str:
        doc = record.to_document()
        doc["id"] = uuid.uuid4().hex
        keys = list(HISTORY_COLUMNS)
        values = [Json(doc[k]) if k == "stats" else doc[k] for k in keys]
        cols_sql = ",".join(f'"{HISTORY_COLUMNS[k]}"' for k in keys)
        placeholders = ",".join(["%s"] * len(keys))
        try:
            with self._conn.cursor() as cur:
                cur.execute(f"INSERT INTO upload_history ({cols_sql}) VALUES ({placeholders})", values)
            self._conn.commit()
        except Exception as e:
            self._conn.rollback()
            raise StoreError(str(e)) from e
        return doc["id"]

    def get_upload_history(self, org_id: str, limit: int = 50) -> list[dict[str, Any]]:
        try:
            with self._conn.cursor(cursor_factory=RealDictCursor) as cur:
                cur.execute(
                    "SELECT * FROM upload_history WHERE org_id = %s ORDER BY created_at DESC LIMIT %s",
                    (org_id, limit),
                )
                rows = cur.fetchall()
        except Exception as e:
            self._conn.rollback()
            raise StoreError(str(e)) from e
        return [_row_to_doc(dict(r), HISTORY_COLUMNS) for r in rows]
