# Shared pytest fixtures: in-memory database, temporary storage, fake providers, API client
from __future__ import annotations

import os

# Settings are read once at import time; point them at test resources first
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["META_ACCESS_TOKEN"] = ""
os.environ["OPENAI_API_KEY"] = ""
os.environ["GEMINI_API_KEY"] = ""
os.environ["DEFAULT_ADMIN_EMAIL"] = ""
os.environ["DEFAULT_ADMIN_PASSWORD"] = ""
os.environ["ENVIRONMENT"] = "test"

import csv
import zipfile
from pathlib import Path

import pytest
from fastapi.testclient import TestClient
from openpyxl import Workbook

from keyword_matcher.application.services.auth_service import create_user, token_for
from keyword_matcher.application.services.batch_orchestrator import BatchOrchestrator
from keyword_matcher.config import get_settings
from keyword_matcher.core.exceptions import ProviderErrorException
from keyword_matcher.domain.models.uploaded_file import UploadedFile
from keyword_matcher.domain.schemas.suggestion import ScoringOutcome, Suggestion
from keyword_matcher.infrastructure.database import Base, SessionLocal, engine
from keyword_matcher.interfaces.deps import get_relevance_scorer, get_suggestion_provider
from keyword_matcher.main import app

KEYWORD_SHEET = [
    ["Keyword", "Category", "Budget"],
    ["shoes", "apparel", 100],
    [None, "apparel", 200],
    ["hats", "accessories", 300],
    ["boots", "apparel", 400],
    ["boots", "apparel", 500],
]


class FakeSuggestionProvider:
    """Four candidates per keyword, in a fixed order."""

    def __init__(self):
        self.calls: list[str] = []
        self.fail_on: set[str] = set()
        self.empty_on: set[str] = set()

    async def suggest(self, keyword: str, limit: int = 10) -> list[Suggestion]:
        self.calls.append(keyword)
        if keyword in self.fail_on:
            raise ProviderErrorException(f"search failed for {keyword}")
        if keyword in self.empty_on:
            return []
        values = [f"{keyword} shopping", keyword.title(), f"{keyword} lovers", f"Buy {keyword}"]
        return [
            Suggestion(
                id=f"{keyword}-{i}",
                value=value,
                audience_size=(i + 1) * 1_250_000,
                provider="meta",
                targeting_spec=f'{{"interests": ["{keyword}-{i}"]}}',
            )
            for i, value in enumerate(values[:limit])
        ]

    def health(self) -> dict:
        return {"status": "connected", "configured": True, "fallback_enabled": False}


class FakeRelevanceScorer:
    """Scores candidates 40, 90, 70, 55 (by position) and declares the top one best."""

    SCORES = [40, 90, 70, 55]

    def __init__(self):
        self.calls: list[str] = []

    async def score(self, keyword: str, candidates: list[Suggestion]) -> ScoringOutcome:
        self.calls.append(keyword)
        scored = [
            c.model_copy(update={"score": self.SCORES[i % len(self.SCORES)], "reason": "fake"})
            for i, c in enumerate(candidates)
        ]
        scored.sort(key=lambda s: -s.score)
        return ScoringOutcome(scored=scored, best_index=0, source="llm")


def write_xlsx(path: Path, rows: list[list]) -> Path:
    workbook = Workbook()
    sheet = workbook.active
    sheet.title = "Sheet1"
    for row in rows:
        sheet.append(row)
    workbook.save(path)
    return path


def write_csv(path: Path, rows: list[list], delimiter: str = ",", encoding: str = "utf-8") -> Path:
    with open(path, "w", newline="", encoding=encoding) as f:
        writer = csv.writer(f, delimiter=delimiter)
        for row in rows:
            writer.writerow(["" if v is None else v for v in row])
    return path


def truncate_sheet_xml(path: Path) -> Path:
    """Cut the first worksheet's XML in half; the zip container and workbook part stay valid."""
    with zipfile.ZipFile(path) as source:
        parts = {name: source.read(name) for name in source.namelist()}
    sheet = "xl/worksheets/sheet1.xml"
    parts[sheet] = parts[sheet][: len(parts[sheet]) // 2]
    with zipfile.ZipFile(path, "w", zipfile.ZIP_DEFLATED) as target:
        for name, data in parts.items():
            target.writestr(name, data)
    return path


@pytest.fixture(autouse=True)
def database():
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture(autouse=True)
def storage(tmp_path: Path, monkeypatch) -> dict:
    settings = get_settings()
    uploads = tmp_path / "uploads"
    exports = tmp_path / "exports"
    uploads.mkdir()
    exports.mkdir()
    monkeypatch.setattr(settings, "UPLOAD_DIR", str(uploads))
    monkeypatch.setattr(settings, "EXPORT_DIR", str(exports))
    monkeypatch.setattr(settings, "SEARCH_DELAY_SECONDS", 0)
    monkeypatch.setattr(settings, "SCORE_DURING_BATCH", True)
    return {"uploads": uploads, "exports": exports}


@pytest.fixture()
def db():
    session = SessionLocal()
    yield session
    session.close()


@pytest.fixture()
def provider() -> FakeSuggestionProvider:
    return FakeSuggestionProvider()


@pytest.fixture()
def scorer() -> FakeRelevanceScorer:
    return FakeRelevanceScorer()


@pytest.fixture()
def orchestrator(provider, scorer) -> BatchOrchestrator:
    return BatchOrchestrator(provider=provider, scorer=scorer, session_factory=SessionLocal)


@pytest.fixture()
def keyword_xlsx(tmp_path: Path) -> Path:
    return write_xlsx(tmp_path / "keywords.xlsx", KEYWORD_SHEET)


@pytest.fixture()
def make_file(db, storage):
    """Persist an UploadedFile pointing at a spreadsheet on disk."""
    from keyword_matcher.application.services.spreadsheet_reader import read_headers_and_count

    def _make(path: Path, **overrides) -> UploadedFile:
        info = read_headers_and_count(str(path))
        values = {
            "name": path.name,
            "original_name": path.name,
            "path": str(path),
            "size": path.stat().st_size,
            "columns": info.columns,
            "row_count": info.row_count,
        }
        values.update(overrides)
        file = UploadedFile(**values)
        db.add(file)
        db.commit()
        db.refresh(file)
        return file

    return _make


@pytest.fixture()
def user(db):
    return create_user(db, name="Test User", email="tester@example.com", password="secret123")


@pytest.fixture()
def client(user, provider, scorer):
    app.dependency_overrides[get_suggestion_provider] = lambda: provider
    app.dependency_overrides[get_relevance_scorer] = lambda: scorer
    test_client = TestClient(app)
    test_client.headers.update({"Authorization": f"Bearer {token_for(user)}"})
    yield test_client
    app.dependency_overrides.clear()


@pytest.fixture()
def anonymous_client():
    return TestClient(app)


@pytest.fixture()
def xlsx_writer():
    return write_xlsx


@pytest.fixture()
def csv_writer():
    return write_csv


@pytest.fixture()
def corrupt_xlsx(tmp_path: Path) -> Path:
    rows = [["Keyword"]] + [[f"keyword {i}"] for i in range(1, 101)]
    return truncate_sheet_xml(write_xlsx(tmp_path / "corrupt.xlsx", rows))
