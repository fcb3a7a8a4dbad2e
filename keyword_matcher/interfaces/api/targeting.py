"""Targeting API routes: search and score suggestions outside of a file run."""

import asyncio

import structlog
from fastapi import APIRouter, Depends, Query

from keyword_matcher.config import get_settings
from keyword_matcher.core.exceptions import AppError
from keyword_matcher.domain.models.user import User
from keyword_matcher.domain.providers import RelevanceScorer, SuggestionProvider
from keyword_matcher.domain.schemas.targeting import BatchSuggestionRequest, EvaluationRequest
from keyword_matcher.interfaces.api.deps import get_current_user
from keyword_matcher.interfaces.deps import get_relevance_scorer, get_suggestion_provider
from keyword_matcher.scoring.llm import has_credentials

settings = get_settings()
logger = structlog.get_logger(__name__)
router = APIRouter(prefix="/api/targeting", tags=["Targeting"])


@router.get("/suggestions")
async def search_suggestions(
    keyword: str = Query(..., min_length=1),
    limit: int = Query(10, ge=1, le=50),
    provider: SuggestionProvider = Depends(get_suggestion_provider),
    user: User = Depends(get_current_user),
):
    suggestions = await provider.suggest(keyword, limit)
    return {"keyword": keyword, "items": suggestions}


@router.post("/batch-suggestions")
async def batch_suggestions(
    body: BatchSuggestionRequest,
    provider: SuggestionProvider = Depends(get_suggestion_provider),
    user: User = Depends(get_current_user),
):
    """Sequential searches; one failing keyword does not fail the others."""
    results = {}
    for position, keyword in enumerate(body.keywords):
        if position and settings.SEARCH_DELAY_SECONDS > 0:
            await asyncio.sleep(settings.SEARCH_DELAY_SECONDS)
        try:
            results[keyword] = await provider.suggest(keyword, body.limit)
        except AppError as e:
            logger.warning("batch_search_failed", keyword=keyword, error=e.message)
            results[keyword] = {"error": {"code": e.code, "message": e.message}}
    return {"items": results}


@router.post("/evaluate")
async def evaluate(
    body: EvaluationRequest,
    scorer: RelevanceScorer = Depends(get_relevance_scorer),
    user: User = Depends(get_current_user),
):
    outcome = await scorer.score(body.keyword, body.suggestions)
    best = outcome.scored[outcome.best_index] if outcome.scored else None
    return {
        "keyword": body.keyword,
        "suggestions": outcome.scored,
        "best_index": outcome.best_index,
        "best_score": best.score if best else None,
        "source": outcome.source,
    }


@router.get("/health")
def targeting_health(provider: SuggestionProvider = Depends(get_suggestion_provider)):
    search = provider.health() if hasattr(provider, "health") else {"status": "unknown"}
    return {
        "search": search,
        "scoring": {
            "provider": settings.AI_PROVIDER,
            "configured": has_credentials(settings),
            "fallback_enabled": settings.SCORER_FALLBACK_ENABLED,
        },
    }
