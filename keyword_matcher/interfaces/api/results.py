"""Match result API routes — list, inspect, re-score, re-select, delete."""

from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from keyword_matcher.application.services.batch_orchestrator import BatchOrchestrator
from keyword_matcher.core.exceptions import EntityNotFoundException
from keyword_matcher.domain.models.user import User
from keyword_matcher.domain.repositories.result_repository import ResultRepository
from keyword_matcher.domain.schemas.result import (
    BulkDeleteRequest,
    MatchResultRead,
    ResultFilter,
    SuggestionChange,
)
from keyword_matcher.infrastructure.database import get_db
from keyword_matcher.interfaces.api.deps import get_current_user
from keyword_matcher.interfaces.deps import get_orchestrator, get_result_repository

router = APIRouter(prefix="/api/results", tags=["Results"])


@router.get("")
def list_results(
    file_id: Optional[int] = None,
    status: Optional[str] = None,
    min_score: Optional[int] = Query(None, ge=0, le=100),
    max_score: Optional[int] = Query(None, ge=0, le=100),
    query: Optional[str] = None,
    page: int = Query(1, ge=1),
    page_size: int = Query(50, ge=1, le=500),
    repo: ResultRepository = Depends(get_result_repository),
    user: User = Depends(get_current_user),
):
    filters = ResultFilter(
        file_id=file_id,
        status=status,
        min_score=min_score,
        max_score=max_score,
        query=query,
        page=page,
        page_size=page_size,
    )
    result = repo.get_with_filters(filters)
    result["items"] = [MatchResultRead.model_validate(r) for r in result["items"]]
    return result


@router.get("/{result_id}", response_model=MatchResultRead)
def get_result(
    result_id: int,
    repo: ResultRepository = Depends(get_result_repository),
    user: User = Depends(get_current_user),
):
    result = repo.get_by_id(result_id)
    if not result:
        raise EntityNotFoundException("Result not found", details={"result_id": result_id})
    return MatchResultRead.model_validate(result)


@router.post("/{result_id}/process", response_model=MatchResultRead)
async def process_result(
    result_id: int,
    db: Session = Depends(get_db),
    orchestrator: BatchOrchestrator = Depends(get_orchestrator),
    user: User = Depends(get_current_user),
):
    """Search and score a pending or failed result now."""
    result = await orchestrator.process_result(db, result_id)
    return MatchResultRead.model_validate(result)


@router.patch("/{result_id}/suggestion", response_model=MatchResultRead)
def change_suggestion(
    result_id: int,
    body: SuggestionChange,
    db: Session = Depends(get_db),
    orchestrator: BatchOrchestrator = Depends(get_orchestrator),
    user: User = Depends(get_current_user),
):
    result = orchestrator.change_selected_suggestion(
        db, result_id, index=body.suggestion_index, suggestion_id=body.suggestion_id
    )
    return MatchResultRead.model_validate(result)


@router.delete("/{result_id}")
def delete_result(
    result_id: int,
    repo: ResultRepository = Depends(get_result_repository),
    user: User = Depends(get_current_user),
):
    if not repo.delete(result_id):
        raise EntityNotFoundException("Result not found", details={"result_id": result_id})
    return {"message": "Result deleted", "deleted": 1}


@router.delete("")
def delete_results(
    body: BulkDeleteRequest,
    repo: ResultRepository = Depends(get_result_repository),
    user: User = Depends(get_current_user),
):
    deleted = repo.delete_many(body.ids)
    return {"message": f"{deleted} result(s) deleted", "deleted": deleted}
