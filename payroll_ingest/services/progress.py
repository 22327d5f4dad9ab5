from __future__ import annotations

import sys
from typing import Any

from tqdm import tqdm

"""Chunk progress display with tqdm (TTY only).

In non-TTY environments (CI, redirected output) no bar is created so that
logs stay free of ANSI control sequences.
"""

__all__ = [
    "ChunkProgressTracker",
    "is_tty_enabled",
]


def is_tty_enabled() -> bool:
    return sys.stdout.isatty()


class ChunkProgressTracker:
    """Progress over the payslip rows written by the batch writer."""

    def __init__(self, total_rows: int, *, description: str = "Writing payslips") -> None:
        self.total_rows = total_rows
        self.description = description
        self.current_chunk = 0

        self.enabled = is_tty_enabled()
        self.pbar: tqdm[Any] | None
        if self.enabled:
            self.pbar = tqdm(
                total=total_rows,
                desc=description,
                unit="row",
                leave=True,
                ncols=80,
                ascii=True,
            )
        else:
            self.pbar = None

    def start_chunk(self, index: int, size: int) -> None:
        self.current_chunk = index + 1
        if self.pbar is not None:
            self.pbar.set_description(f"{self.description} (chunk {self.current_chunk}, {size} rows)")

    def finish_chunk(self, rows: int, **postfix: Any) -> None:
        if self.pbar is not None:
            self.pbar.update(rows)
            self.pbar.set_description(self.description)
            if postfix:
                self.pbar.set_postfix(**postfix)

    def close(self) -> None:
        if self.pbar is not None:
            self.pbar.close()
            self.pbar = None

    def __enter__(self) -> ChunkProgressTracker:
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        self.close()
