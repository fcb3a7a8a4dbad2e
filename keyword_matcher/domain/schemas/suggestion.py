"""Suggestion value object: one targeting candidate for a keyword."""

from typing import Optional

from pydantic import BaseModel, Field, field_validator

PROVIDER_META = "meta"
PROVIDER_FALLBACK = "fallback"  # offline heuristic, never production data


def clamp_score(value) -> Optional[int]:
    """Round and clamp a relevance score to [0, 100]; None stays None."""
    if value is None:
        return None
    return max(0, min(100, int(round(float(value)))))


class Suggestion(BaseModel):
    id: str
    value: str
    audience_size: int = Field(default=0, ge=0)
    provider: str = PROVIDER_META
    # Opaque provider payload, serialized; only the provider that produced it reads it
    targeting_spec: str = "{}"
    score: Optional[int] = None
    reason: Optional[str] = None
    is_selected: bool = False

    @field_validator("score", mode="before")
    @classmethod
    def _clamp(cls, v):
        return clamp_score(v)

    @field_validator("audience_size", mode="before")
    @classmethod
    def _non_negative(cls, v):
        return max(0, int(v or 0))


class ScoringOutcome(BaseModel):
    scored: list[Suggestion]
    best_index: int = 0
    source: str = "llm"  # llm | fallback
