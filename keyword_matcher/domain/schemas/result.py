"""Pydantic schemas for match results and export options."""

from pydantic import BaseModel, Field, model_validator
from datetime import datetime
from typing import Optional

from keyword_matcher.domain.schemas.suggestion import Suggestion


class MatchResultRead(BaseModel):
    id: int
    file_id: int
    row_index: int
    original_value: str
    suggestions: list[Suggestion] = []
    selected_suggestion: Optional[Suggestion] = None
    selected_value: Optional[str] = None
    match_score: Optional[int] = None
    status: str
    error_message: Optional[str] = None
    scoring_source: Optional[str] = None
    created_at: Optional[datetime] = None

    model_config = {"from_attributes": True}


class ResultFilter(BaseModel):
    file_id: Optional[int] = None
    status: Optional[str] = None
    min_score: Optional[int] = None
    max_score: Optional[int] = None
    query: Optional[str] = None
    page: int = 1
    page_size: int = 50


class SuggestionChange(BaseModel):
    suggestion_index: Optional[int] = Field(default=None, ge=0)
    suggestion_id: Optional[str] = None

    @model_validator(mode="after")
    def _one_of(self):
        if self.suggestion_index is None and not self.suggestion_id:
            raise ValueError("suggestion_index or suggestion_id is required")
        return self


class BulkDeleteRequest(BaseModel):
    ids: list[int] = Field(min_length=1)


class ExportOptions(BaseModel):
    format: str = "xlsx"
    include_scores: bool = True
    include_all_suggestions: bool = False
