"""Turn uploaded ``.csv``/``.xlsx`` files into header lists and row records."""

from __future__ import annotations

import csv
import io
import zipfile
from dataclasses import dataclass
from typing import Any, BinaryIO, Sequence

from openpyxl import load_workbook
from openpyxl.utils.exceptions import InvalidFileException

CSV_EXTENSIONS = (".csv", ".txt")
EXCEL_EXTENSIONS = (".xlsx", ".xlsm")


class SpreadsheetError(ValueError):
    """The uploaded file could not be read as a spreadsheet."""


@dataclass(frozen=True)
class Spreadsheet:
    headers: list[str]
    rows: list[dict[str, Any]]


def _normalize_headers(raw_headers: Sequence[Any]) -> list[str]:
    headers: list[str] = []
    seen: dict[str, int] = {}
    for idx, value in enumerate(raw_headers):
        base = str(value).strip() if value not in (None, "") else ""
        if not base:
            base = f"column_{idx + 1}"
        count = seen.get(base, 0)
        name = base if count == 0 else f"{base}_{count + 1}"
        seen[base] = count + 1
        headers.append(name)
    return headers


def _is_blank(values: Sequence[Any]) -> bool:
    return all(value is None or (isinstance(value, str) and not value.strip()) for value in values)


def _build(raw_headers: Sequence[Any], value_rows, max_rows: int | None) -> Spreadsheet:
    headers = _normalize_headers(raw_headers)
    named = [str(value).strip() for value in raw_headers if value not in (None, "") and str(value).strip()]
    rows: list[dict[str, Any]] = []
    for values in value_rows:
        if values is None or _is_blank(values):
            continue
        if max_rows is not None and len(rows) >= max_rows:
            raise SpreadsheetError(f"The file has more than {max_rows} data rows.")
        rows.append(
            {name: (values[idx] if idx < len(values) else None) for idx, name in enumerate(headers)}
        )
    return Spreadsheet(headers=named, rows=rows)


def read_csv(stream: BinaryIO, *, max_rows: int | None = None) -> Spreadsheet:
    raw = stream.read()
    try:
        text = raw.decode("utf-8-sig")
    except UnicodeDecodeError:
        text = raw.decode("latin-1")
    first_line = text.split("\n", 1)[0]
    delimiter = max(",;\t", key=first_line.count)
    reader = csv.reader(io.StringIO(text), delimiter=delimiter)
    header_row = next(reader, None)
    if header_row is None:
        return Spreadsheet(headers=[], rows=[])
    return _build(header_row, reader, max_rows)


def read_xlsx(stream: BinaryIO, *, max_rows: int | None = None) -> Spreadsheet:
    try:
        workbook = load_workbook(stream, read_only=True, data_only=True)
    except (InvalidFileException, zipfile.BadZipFile, KeyError, OSError) as exc:
        raise SpreadsheetError("The file is not a readable Excel workbook.") from exc
    try:
        if not workbook.sheetnames:
            return Spreadsheet(headers=[], rows=[])
        worksheet = workbook[workbook.sheetnames[0]]
        row_iter = worksheet.iter_rows(values_only=True)
        header_row = next(row_iter, None)
        if header_row is None:
            return Spreadsheet(headers=[], rows=[])
        return _build(header_row, row_iter, max_rows)
    finally:
        workbook.close()


def read_spreadsheet(upload, *, max_rows: int | None = None) -> Spreadsheet:
    """Dispatch on the uploaded file's extension."""

    name = (getattr(upload, "name", "") or "").lower()
    if name.endswith(EXCEL_EXTENSIONS):
        return read_xlsx(upload, max_rows=max_rows)
    if name.endswith(CSV_EXTENSIONS):
        return read_csv(upload, max_rows=max_rows)
    raise SpreadsheetError("Unsupported file type. Upload a .csv or .xlsx file.")
