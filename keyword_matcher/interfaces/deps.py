"""
API Dependencies.
"""

from functools import lru_cache

from fastapi import Depends
from sqlalchemy.orm import Session

from keyword_matcher.application.services.batch_orchestrator import BatchOrchestrator
from keyword_matcher.domain.models.match_result import MatchResult
from keyword_matcher.domain.models.uploaded_file import UploadedFile
from keyword_matcher.domain.providers import RelevanceScorer, SuggestionProvider
from keyword_matcher.domain.repositories.file_repository import FileRepository
from keyword_matcher.domain.repositories.result_repository import ResultRepository
from keyword_matcher.infrastructure.database import SessionLocal, get_db
from keyword_matcher.infrastructure.repositories.file_repository import SQLAlchemyFileRepository
from keyword_matcher.infrastructure.repositories.result_repository import SQLAlchemyResultRepository
from keyword_matcher.infrastructure.targeting_api import TargetingSearchClient
from keyword_matcher.scoring.scorer import LLMRelevanceScorer


def get_file_repository(db: Session = Depends(get_db)) -> FileRepository:
    """Get uploaded file repository instance."""
    return SQLAlchemyFileRepository(db, UploadedFile)


def get_result_repository(db: Session = Depends(get_db)) -> ResultRepository:
    """Get match result repository instance."""
    return SQLAlchemyResultRepository(db, MatchResult)


@lru_cache
def get_suggestion_provider() -> SuggestionProvider:
    return TargetingSearchClient()


@lru_cache
def get_relevance_scorer() -> RelevanceScorer:
    return LLMRelevanceScorer()


def get_session_factory():
    """Session factory for work that outlives the request (background runs)."""
    return SessionLocal


def get_orchestrator(
    provider: SuggestionProvider = Depends(get_suggestion_provider),
    scorer: RelevanceScorer = Depends(get_relevance_scorer),
    session_factory=Depends(get_session_factory),
) -> BatchOrchestrator:
    return BatchOrchestrator(provider=provider, scorer=scorer, session_factory=session_factory)
