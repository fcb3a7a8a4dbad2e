"""Match result exporter for .xlsx and .csv downloads.

Rows are written batch by batch (openpyxl write-only workbook, or CSV appends
through pandas) so a large export is never held in memory at once.
"""

import os
import re
import uuid
from datetime import datetime
from typing import Iterable

import pandas as pd
from openpyxl import Workbook
from openpyxl.cell import WriteOnlyCell
from pydantic import BaseModel

from keyword_matcher.core.exceptions import UnsupportedFormatException
from keyword_matcher.domain.models.match_result import MatchResult
from keyword_matcher.domain.schemas.result import ExportOptions

EXPORT_FORMATS = ("xlsx", "csv")
MAX_ALTERNATIVES = 3
SHEET_TITLE = "Results"

MEDIA_TYPES = {
    "xlsx": "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
    "csv": "text/csv",
}


class ExportInfo(BaseModel):
    path: str
    file_name: str
    format: str
    rows: int = 0


def export_headers(options: ExportOptions) -> list[str]:
    headers = ["Original Keyword", "Suggestion", "Audience (millions)"]
    if options.include_scores:
        headers.append("Match Score")
    if options.include_all_suggestions:
        for n in range(1, MAX_ALTERNATIVES + 1):
            headers.append(f"Alternative {n}")
            if options.include_scores:
                headers.append(f"Alt. {n} Score")
    return headers


def _audience_millions(suggestion: dict | None):
    if not suggestion:
        return None
    return round((suggestion.get("audience_size") or 0) / 1_000_000, 1)


def export_row(result: MatchResult, options: ExportOptions) -> list:
    selected = result.selected_suggestion or None
    row = [
        result.original_value,
        selected.get("value") if selected else None,
        _audience_millions(selected),
    ]
    if options.include_scores:
        row.append(result.match_score)

    if options.include_all_suggestions:
        # Stored order is already the scored order
        alternatives = [s for s in (result.suggestions or []) if not s.get("is_selected")]
        for n in range(MAX_ALTERNATIVES):
            alternative = alternatives[n] if n < len(alternatives) else None
            row.append(alternative.get("value") if alternative else None)
            if options.include_scores:
                row.append(alternative.get("score") if alternative else None)
    return row


def export_file_name(original_name: str, fmt: str) -> str:
    stem = os.path.splitext(os.path.basename(original_name))[0]
    stem = re.sub(r"[^\w\-]+", "_", stem).strip("_") or "results"
    timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
    return f"export_{stem}_{timestamp}_{uuid.uuid4().hex[:8]}.{fmt}"


def _text_cells(sheet, values: list) -> list:
    """Keyword text is stored as a string, even when it starts with '='."""
    cells = []
    for value in values:
        if isinstance(value, str):
            cell = WriteOnlyCell(sheet, value=value)
            cell.data_type = "s"
            cells.append(cell)
        else:
            cells.append(value)
    return cells


def _write_xlsx(path: str, headers: list[str], batches, options: ExportOptions) -> int:
    workbook = Workbook(write_only=True)
    sheet = workbook.create_sheet(SHEET_TITLE)
    sheet.append(headers)
    rows = 0
    for batch in batches:
        for result in batch:
            sheet.append(_text_cells(sheet, export_row(result, options)))
            rows += 1
    workbook.save(path)
    return rows


def _write_csv(path: str, headers: list[str], batches, options: ExportOptions) -> int:
    pd.DataFrame(columns=headers).to_csv(path, index=False, encoding="utf-8")
    rows = 0
    for batch in batches:
        if not batch:
            continue
        df = pd.DataFrame([export_row(result, options) for result in batch], columns=headers)
        df.to_csv(path, mode="a", header=False, index=False, encoding="utf-8")
        rows += len(df)
    return rows


def export_results(
    batches: Iterable[list[MatchResult]],
    options: ExportOptions,
    output_dir: str,
    base_name: str,
) -> ExportInfo:
    """
    Write match results to a spreadsheet.

    Args:
        batches: Results in row order, in bounded-size lists
        options: format and optional column groups
        output_dir: Directory receiving the file
        base_name: Name of the source upload, used for the export file name

    Returns ExportInfo; the caller deletes the file once it has been sent.
    """
    fmt = (options.format or "").lower()
    if fmt not in EXPORT_FORMATS:
        raise UnsupportedFormatException(
            f"Unsupported export format: {options.format}",
            details={"supported": list(EXPORT_FORMATS)},
        )

    os.makedirs(output_dir, exist_ok=True)
    file_name = export_file_name(base_name, fmt)
    path = os.path.join(output_dir, file_name)
    headers = export_headers(options)

    try:
        if fmt == "xlsx":
            rows = _write_xlsx(path, headers, batches, options)
        else:
            rows = _write_csv(path, headers, batches, options)
    except Exception:
        if os.path.exists(path):
            os.remove(path)
        raise

    return ExportInfo(path=path, file_name=file_name, format=fmt, rows=rows)
