from __future__ import annotations

import os
from pathlib import Path

import pandas as pd
import pytest
from openpyxl import load_workbook

from keyword_matcher.application.services.exporter import export_headers, export_results
from keyword_matcher.application.services.spreadsheet_reader import read_column_chunk
from keyword_matcher.core.exceptions import UnsupportedFormatException
from keyword_matcher.domain.models.match_result import MatchResult
from keyword_matcher.domain.schemas.result import ExportOptions
from keyword_matcher.domain.schemas.suggestion import Suggestion


def _result(keyword: str, values: list[tuple[str, int, int]], row_index: int = 1) -> MatchResult:
    result = MatchResult(file_id=1, row_index=row_index, original_value=keyword, suggestions=[])
    suggestions = [
        Suggestion(id=f"{keyword}-{i}", value=v, score=score, audience_size=audience)
        for i, (v, score, audience) in enumerate(values)
    ]
    result.mark_processed(suggestions, 0, "llm")
    return result


@pytest.fixture()
def batches() -> list[list[MatchResult]]:
    first = _result(
        "shoes",
        [("Shoes", 92, 12_345_678), ("Footwear", 80, 1_000_000), ("Sneakers", 70, 0), ("Boots", 60, 5), ("Socks", 10, 1)],
    )
    second = _result("hats", [("Hats", 88, 2_500_000)], row_index=3)
    return [[first], [second]]


def test_headers_follow_options():
    assert export_headers(ExportOptions(include_scores=False)) == [
        "Original Keyword",
        "Suggestion",
        "Audience (millions)",
    ]
    assert export_headers(ExportOptions(include_scores=True, include_all_suggestions=True)) == [
        "Original Keyword",
        "Suggestion",
        "Audience (millions)",
        "Match Score",
        "Alternative 1",
        "Alt. 1 Score",
        "Alternative 2",
        "Alt. 2 Score",
        "Alternative 3",
        "Alt. 3 Score",
    ]
    assert "Alt. 1 Score" not in export_headers(
        ExportOptions(include_scores=False, include_all_suggestions=True)
    )


def test_xlsx_export_with_alternatives(tmp_path: Path, batches):
    info = export_results(
        batches,
        ExportOptions(format="xlsx", include_scores=True, include_all_suggestions=True),
        output_dir=str(tmp_path),
        base_name="keywords.xlsx",
    )

    assert info.format == "xlsx"
    assert info.rows == 2
    assert info.file_name.startswith("export_keywords_")
    rows = list(load_workbook(info.path).active.iter_rows(values_only=True))
    assert rows[1] == ("shoes", "Shoes", 12.3, 92, "Footwear", 80, "Sneakers", 70, "Boots", 60)
    assert rows[2][:6] == ("hats", "Hats", 2.5, 88, None, None)


def test_csv_export_round_trip_without_optional_columns(tmp_path: Path, batches):
    info = export_results(
        batches,
        ExportOptions(format="csv", include_scores=False, include_all_suggestions=False),
        output_dir=str(tmp_path),
        base_name="keywords.csv",
    )

    df = pd.read_csv(info.path)
    assert list(df.columns) == ["Original Keyword", "Suggestion", "Audience (millions)"]
    assert df["Original Keyword"].tolist() == ["shoes", "hats"]
    assert df["Suggestion"].tolist() == ["Shoes", "Hats"]
    assert df["Audience (millions)"].tolist() == [12.3, 2.5]


def test_unsupported_format_fails_before_writing(tmp_path: Path, batches):
    out = tmp_path / "out"
    with pytest.raises(UnsupportedFormatException):
        export_results(batches, ExportOptions(format="pdf"), output_dir=str(out), base_name="k.xlsx")
    assert not out.exists() or os.listdir(out) == []


def test_xlsx_keeps_leading_equals_sign_as_text(tmp_path: Path):
    result = _result("=shoes", [("=Digital marketing", 75, 1_000_000)])
    info = export_results(
        [[result]], ExportOptions(format="xlsx"), output_dir=str(tmp_path), base_name="k.xlsx"
    )

    assert [c.value for c in read_column_chunk(info.path, "Original Keyword", 1, 1)] == ["=shoes"]
    assert [c.value for c in read_column_chunk(info.path, "Suggestion", 1, 1)] == ["=Digital marketing"]
    cell = load_workbook(info.path).active["A2"]
    assert cell.data_type == "s"


def test_empty_export_has_only_the_header(tmp_path: Path):
    info = export_results([], ExportOptions(format="xlsx"), output_dir=str(tmp_path), base_name="k.xlsx")
    rows = list(load_workbook(info.path).active.iter_rows(values_only=True))
    assert rows == [("Original Keyword", "Suggestion", "Audience (millions)", "Match Score")]
