"""Spreadsheet reader service.

Handles:
- Reading the header row and data-row count of the first sheet of an .xlsx file
  (openpyxl read-only mode, rows are streamed and never held in memory)
- The same for .csv files (pandas chunked reads, multiple encodings and separators)
- Streaming the non-empty cells of one column, window by window, in a single pass
"""

import math
import os
from datetime import date, datetime
from functools import lru_cache
from typing import Iterable, Iterator

import openpyxl
import pandas as pd

from keyword_matcher.core.exceptions import (
    AppError,
    ColumnNotFoundException,
    UnreadableFileException,
)
from keyword_matcher.domain.schemas.file import CellValue, SheetInfo

SUPPORTED_EXTENSIONS = ("xlsx", "csv")
CSV_ENCODINGS = ["utf-8", "latin-1", "cp1252", "iso-8859-1"]
CSV_SEPARATORS = [",", ";"]
COUNT_CHUNK_SIZE = 10_000


def file_extension(path: str) -> str:
    return path.rsplit(".", 1)[-1].lower() if "." in os.path.basename(path) else ""


def is_empty_cell(value) -> bool:
    """Empty, null, NaN and whitespace-only cells carry no keyword."""
    if value is None:
        return True
    if isinstance(value, str):
        return value.strip() == ""
    if isinstance(value, float):
        return math.isnan(value)
    return False


def cell_to_text(value) -> str:
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    return str(value).strip()


def _header_names(raw: list) -> list[str]:
    names = [
        cell_to_text(value) if not is_empty_cell(value) else f"Column {i + 1}"
        for i, value in enumerate(raw)
    ]
    # Formatted-but-empty trailing header cells are not columns
    while raw and is_empty_cell(raw[-1]):
        raw = raw[:-1]
        names.pop()
    return names


def _check_path(path: str) -> None:
    if not os.path.isfile(path):
        raise UnreadableFileException(f"File not found: {path}", details={"path": path})
    if file_extension(path) not in SUPPORTED_EXTENSIONS:
        raise UnreadableFileException(
            f"Unsupported spreadsheet type: {os.path.basename(path)}",
            details={"supported": list(SUPPORTED_EXTENSIONS)},
        )


def _unreadable(path: str, exc: Exception) -> UnreadableFileException:
    return UnreadableFileException(f"Unable to read spreadsheet: {exc}", details={"path": path})


def _windowed(
    cells: Iterable[CellValue], start_row: int, end_row: int, size: int
) -> Iterator[list[CellValue]]:
    """Group row-ordered cells into windows of `size` data rows; empty windows are yielded too."""
    window_start = start_row
    window: list[CellValue] = []
    for cell in cells:
        while cell.row_index > min(window_start + size - 1, end_row):
            yield window
            window = []
            window_start += size
        window.append(cell)
    while window_start <= end_row:
        yield window
        window = []
        window_start += size


# --- XLSX ---

def _open_workbook(path: str):
    try:
        return openpyxl.load_workbook(path, read_only=True, data_only=True)
    except Exception as exc:
        raise UnreadableFileException(f"Unable to open workbook: {exc}", details={"path": path}) from exc


def _first_sheet(workbook):
    if not workbook.sheetnames:
        raise UnreadableFileException("Workbook has no sheets")
    return workbook[workbook.sheetnames[0]]


def _read_xlsx_info(path: str) -> SheetInfo:
    workbook = _open_workbook(path)
    try:
        sheet = _first_sheet(workbook)
        # Read-only sheets parse their XML lazily, while the rows are iterated
        rows = sheet.iter_rows(values_only=True)
        header = next(rows, None)
        columns = _header_names(list(header or []))
        if not columns:
            raise UnreadableFileException("The first sheet has no header row")

        # Last data row holding any value; trailing blank rows are not counted
        row_count = 0
        for index, row in enumerate(rows, start=1):
            if any(not is_empty_cell(value) for value in row):
                row_count = index

        return SheetInfo(
            columns=columns,
            row_count=row_count,
            sheet_names=list(workbook.sheetnames),
            current_sheet=workbook.sheetnames[0],
        )
    except AppError:
        raise
    except Exception as exc:
        raise _unreadable(path, exc) from exc
    finally:
        workbook.close()


def _xlsx_column_index(sheet, column: str) -> int:
    header = next(sheet.iter_rows(min_row=1, max_row=1, values_only=True), None)
    columns = _header_names(list(header or []))
    if column not in columns:
        raise ColumnNotFoundException(f'Column "{column}" not found in file', details={"columns": columns})
    return columns.index(column)


def _iter_xlsx_cells(path: str, column: str, start_row: int, end_row: int) -> Iterator[CellValue]:
    workbook = _open_workbook(path)
    try:
        sheet = _first_sheet(workbook)
        col = _xlsx_column_index(sheet, column) + 1
        # Data row n is sheet row n + 1 (header first)
        rows = sheet.iter_rows(
            min_row=start_row + 1, max_row=end_row + 1, min_col=col, max_col=col, values_only=True
        )
        for row_index, row in enumerate(rows, start=start_row):
            value = row[0] if row else None
            if not is_empty_cell(value):
                yield CellValue(value=cell_to_text(value), row_index=row_index)
    except AppError:
        raise
    except Exception as exc:
        raise _unreadable(path, exc) from exc
    finally:
        workbook.close()


# --- CSV ---

@lru_cache(maxsize=64)
def _csv_format(path: str) -> tuple[str, str]:
    """Detect (encoding, separator); Excel CSV exports often use Latin-1/Windows-1252 and ';'."""
    fallback = None
    for encoding in CSV_ENCODINGS:
        for sep in CSV_SEPARATORS:
            try:
                df = pd.read_csv(path, encoding=encoding, sep=sep, nrows=50, dtype=str)
            except pd.errors.EmptyDataError as exc:
                raise UnreadableFileException("CSV file is empty", details={"path": path}) from exc
            except (UnicodeDecodeError, pd.errors.ParserError):
                continue
            if len(df.columns) > 1:
                return encoding, sep
            fallback = fallback or (encoding, sep)
    if fallback is None:
        raise UnreadableFileException("Unable to decode CSV file", details={"path": path})
    return fallback


def _read_csv(path: str, **kwargs):
    encoding, sep = _csv_format(path)
    try:
        return pd.read_csv(
            path,
            encoding=encoding,
            sep=sep,
            dtype=str,
            keep_default_na=False,
            skip_blank_lines=False,
            **kwargs,
        )
    except (UnicodeDecodeError, pd.errors.ParserError) as exc:
        raise UnreadableFileException(f"Unable to parse CSV file: {exc}", details={"path": path}) from exc


def _csv_columns(path: str) -> list[str]:
    header = list(_read_csv(path, nrows=0).columns)
    return _header_names([None if str(c).startswith("Unnamed: ") else c for c in header])


def _read_csv_info(path: str) -> SheetInfo:
    columns = _csv_columns(path)
    if not columns:
        raise UnreadableFileException("CSV file has no header row")

    row_count = 0
    offset = 0
    try:
        for chunk in _read_csv(path, chunksize=COUNT_CHUNK_SIZE):
            filled = chunk.fillna("").apply(lambda col: col.str.strip() != "")
            non_empty = filled.any(axis=1).to_numpy().nonzero()[0]
            if len(non_empty):
                row_count = offset + int(non_empty[-1]) + 1
            offset += len(chunk)
    except (UnicodeDecodeError, pd.errors.ParserError) as exc:
        raise UnreadableFileException(f"Unable to parse CSV file: {exc}", details={"path": path}) from exc

    return SheetInfo(columns=columns, row_count=row_count, sheet_names=[], current_sheet=None)


def _iter_csv_cells(path: str, column: str, start_row: int, end_row: int) -> Iterator[CellValue]:
    columns = _csv_columns(path)
    if column not in columns:
        raise ColumnNotFoundException(f'Column "{column}" not found in file', details={"columns": columns})

    chunks = _read_csv(
        path,
        usecols=[columns.index(column)],
        skiprows=range(1, start_row),
        nrows=end_row - start_row + 1,
        chunksize=COUNT_CHUNK_SIZE,
    )
    row_index = start_row
    try:
        for chunk in chunks:
            for value in chunk.iloc[:, 0].tolist():
                if not is_empty_cell(value):
                    yield CellValue(value=cell_to_text(value), row_index=row_index)
                row_index += 1
    except (UnicodeDecodeError, pd.errors.ParserError) as exc:
        raise UnreadableFileException(f"Unable to parse CSV file: {exc}", details={"path": path}) from exc
    finally:
        chunks.close()


# --- Public API ---

def read_headers_and_count(path: str) -> SheetInfo:
    """Columns of the first sheet and its number of data rows (header excluded)."""
    _check_path(path)
    if file_extension(path) == "csv":
        return _read_csv_info(path)
    return _read_xlsx_info(path)


def iter_column_windows(
    path: str, column: str, start_row: int, end_row: int, size: int
) -> Iterator[list[CellValue]]:
    """
    Non-empty cells of `column` for data rows start_row..end_row (1-based, inclusive),
    grouped in windows of `size` rows.

    The file is opened once and streamed; one list is yielded per window, empty
    windows included, so the caller can track row positions. Close the iterator
    when stopping early to release the file.
    """
    _check_path(path)
    if start_row < 1 or end_row < start_row:
        return
    if file_extension(path) == "csv":
        cells = _iter_csv_cells(path, column, start_row, end_row)
    else:
        cells = _iter_xlsx_cells(path, column, start_row, end_row)
    try:
        yield from _windowed(cells, start_row, end_row, size)
    finally:
        cells.close()


def read_column_chunk(path: str, column: str, start_row: int, end_row: int) -> list[CellValue]:
    """Non-empty cells of `column` for data rows start_row..end_row (1-based, inclusive)."""
    windows = iter_column_windows(path, column, start_row, end_row, max(1, end_row - start_row + 1))
    try:
        return next(windows, [])
    finally:
        windows.close()
