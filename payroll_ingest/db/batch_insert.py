from __future__ import annotations

import time
from collections.abc import Callable, Iterable, Sequence
from dataclasses import dataclass
from typing import Any

from psycopg2.extras import execute_values

"""Batched INSERT ... ON CONFLICT helper on psycopg2.extras.execute_values.

Used by the PostgreSQL store to write one chunk of payslips in a single
statement. Transaction boundaries belong to the caller.
"""


class BatchInsertError(Exception):
    pass


@dataclass(frozen=True)
class BatchMetrics:
    """Timing of a single batched statement."""
    batch_size: int
    elapsed_seconds: float
    start_time: float
    end_time: float


@dataclass(frozen=True)
class InsertResult:
    upserted_rows: int


def build_upsert_sql(
    table: str,
    columns: Sequence[str],
    conflict_column: str,
    immutable_columns: Iterable[str] = (),
) -> str:
    """INSERT statement updating every non-key, mutable column on conflict."""
    cols_sql = ",".join(f'"{c}"' for c in columns)
    keep = set(immutable_columns) | {conflict_column}
    updates = ",".join(f'"{c}"=EXCLUDED."{c}"' for c in columns if c not in keep)
    sql = f'INSERT INTO {table} ({cols_sql}) VALUES %s ON CONFLICT ("{conflict_column}")'
    if updates:
        sql += f" DO UPDATE SET {updates}"
    else:
        sql += " DO NOTHING"
    return sql


def batch_upsert(
    cursor: Any,
    table: str,
    columns: Sequence[str],
    rows: Iterable[Sequence[Any]],
    conflict_column: str = "id",
    immutable_columns: Iterable[str] = (),
    page_size: int = 1000,
    metrics_callback: Callable[[BatchMetrics], None] | None = None,
) -> InsertResult:
    """Upsert ``rows`` into ``table``.

    Parameters
    ----------
    cursor: psycopg2 cursor
    table: target table name (trusted, not user input)
    columns: column order of every row
    rows: row value sequences
    conflict_column: unique column driving ON CONFLICT
    immutable_columns: columns written on insert but never overwritten
    page_size: execute_values page size
    metrics_callback: receives BatchMetrics; not called for empty input
    """
    rows_list = list(rows)
    if not rows_list:
        return InsertResult(upserted_rows=0)

    sql = build_upsert_sql(table, columns, conflict_column, immutable_columns)

    start_time = time.time()
    try:
        execute_values(cursor, sql, rows_list, page_size=page_size)
    except Exception as e:
        raise BatchInsertError(str(e)) from e
    finally:
        end_time = time.time()
        if metrics_callback is not None:
            metrics_callback(
                BatchMetrics(
                    batch_size=len(rows_list),
                    elapsed_seconds=end_time - start_time,
                    start_time=start_time,
                    end_time=end_time,
                )
            )

    return InsertResult(upserted_rows=len(rows_list))
