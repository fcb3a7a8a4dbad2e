"""
External provider interfaces.
The orchestrator depends on these, never on a concrete client.
"""

from typing import Protocol

from keyword_matcher.domain.schemas.suggestion import ScoringOutcome, Suggestion


class SuggestionProvider(Protocol):
    async def suggest(self, keyword: str, limit: int = 10) -> list[Suggestion]:
        """Unscored candidates for a keyword, in provider order."""
        ...


class RelevanceScorer(Protocol):
    async def score(self, keyword: str, candidates: list[Suggestion]) -> ScoringOutcome:
        """Candidates scored 0-100, sorted descending, with the best match index."""
        ...
