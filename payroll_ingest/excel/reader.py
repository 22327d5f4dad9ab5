from __future__ import annotations

import io
import zipfile
from dataclasses import dataclass
from pathlib import Path
from typing import IO, Union

import pandas as pd

"""Spreadsheet reader for payroll uploads.

Only the first sheet is read and its first row is the header. Every cell is
read as text: empty cells become "" so each row carries the full header key
set. Rows whose cells are all empty are dropped.
"""

__all__ = [
    "ParseError",
    "FileReadError",
    "SheetData",
    "ExcelSource",
    "read_payroll_sheet",
]

ExcelSource = Union[str, Path, bytes, IO[bytes]]


class ParseError(Exception):
    """Raised when the input cannot be decoded as a spreadsheet."""


class FileReadError(Exception):
    """Raised when the underlying file cannot be read at all."""


@dataclass
class SheetData:
    sheet_name: str
    columns: list[str]
    rows: list[dict[str, str]]  # header -> raw cell text


def _open_workbook(source: ExcelSource) -> pd.ExcelFile:
    if isinstance(source, (bytes, bytearray)):
        source = io.BytesIO(source)
    try:
        return pd.ExcelFile(source)
    except (OSError, zipfile.BadZipFile) as e:
        # missing file / permission / truncated stream
        raise FileReadError(f"Failed to read file: {e}") from e
    except Exception as e:
        raise ParseError(f"Failed to parse Excel file: {e}") from e


def read_payroll_sheet(source: ExcelSource) -> SheetData:
    """Read the first sheet of ``source`` into header-keyed text rows.

    Parameters
    ----------
    source: path, raw bytes or binary file object of an .xlsx/.xls workbook

    Raises
    ------
    FileReadError: the file could not be read
    ParseError: the content is not a readable spreadsheet
    """
    with _open_workbook(source) as xls:
        if not xls.sheet_names:
            raise ParseError("Failed to parse Excel file: workbook has no sheets")
        sheet_name = str(xls.sheet_names[0])
        try:
            df = xls.parse(xls.sheet_names[0], header=0, dtype=str, keep_default_na=False, na_filter=False)
        except OSError as e:
            raise FileReadError(f"Failed to read file: {e}") from e
        except Exception as e:
            raise ParseError(f"Failed to parse Excel file: {e}") from e

    columns = [str(c).strip() for c in df.columns]
    rows: list[dict[str, str]] = []
    for raw in df.itertuples(index=False, name=None):
        values = ["" if v is None else str(v) for v in raw]
        if all(v.strip() == "" for v in values):
            continue
        rows.append(dict(zip(columns, values, strict=False)))
    return SheetData(sheet_name=sheet_name, columns=columns, rows=rows)
