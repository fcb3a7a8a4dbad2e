"""Pydantic schemas for direct targeting search and evaluation."""

from pydantic import BaseModel, Field, field_validator

from keyword_matcher.domain.schemas.suggestion import Suggestion

MAX_BATCH_KEYWORDS = 100


class BatchSuggestionRequest(BaseModel):
    keywords: list[str] = Field(min_length=1, max_length=MAX_BATCH_KEYWORDS)
    limit: int = Field(default=5, ge=1, le=20)

    @field_validator("keywords")
    @classmethod
    def _non_empty(cls, v: list[str]) -> list[str]:
        if any(not k.strip() for k in v):
            raise ValueError("keywords must not be empty")
        return v


class EvaluationRequest(BaseModel):
    keyword: str = Field(min_length=1)
    suggestions: list[Suggestion] = Field(min_length=1)
