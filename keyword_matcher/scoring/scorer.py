"""Relevance scorer — LCEL chain over the configured chat model, with a lexical fallback."""

import logging
import zlib

from langchain_core.exceptions import OutputParserException
from langchain_core.output_parsers import JsonOutputParser

from keyword_matcher.config import Settings, get_settings
from keyword_matcher.core.exceptions import ScorerErrorException, ScorerUnavailableException
from keyword_matcher.domain.schemas.suggestion import ScoringOutcome, Suggestion, clamp_score
from keyword_matcher.scoring.llm import get_llm, has_credentials
from keyword_matcher.scoring.prompts import SCORING_PROMPT, format_candidates

logger = logging.getLogger(__name__)

SOURCE_LLM = "llm"
SOURCE_FALLBACK = "fallback"

EXACT_SCORE = 95
CONTAINS_SCORE = 85
OVERLAP_BASE_SCORE = 60
DEFAULT_SCORE = 50
JITTER = 5
FALLBACK_MIN, FALLBACK_MAX = 35, 98


def sort_by_score(suggestions: list[Suggestion]) -> list[Suggestion]:
    """Descending score, unscored last; ties keep their provider order."""
    return sorted(suggestions, key=lambda s: (s.score is None, -(s.score or 0)))


def _safe_score(value):
    try:
        return clamp_score(value)
    except (TypeError, ValueError):
        return None


# --- Heuristic fallback ---

def _jitter(keyword: str, value: str) -> int:
    return zlib.crc32(f"{keyword}|{value}".encode("utf-8")) % (2 * JITTER + 1) - JITTER


def _lexical_score(keyword: str, value: str) -> tuple[int, str]:
    kw, candidate = keyword.lower().strip(), value.lower().strip()
    if kw == candidate:
        return EXACT_SCORE, "Exact match"

    if kw in candidate:
        score, reason = CONTAINS_SCORE, "Contains the keyword"
    else:
        candidate_words = candidate.split()
        matches = sum(
            1 for word in kw.split()
            if any(word in other or other in word for other in candidate_words)
        )
        if matches:
            score = OVERLAP_BASE_SCORE + min(25, matches * 10)
            reason = f"Shares {matches} word(s) with the keyword"
        else:
            score, reason = DEFAULT_SCORE, "No lexical overlap"

    score = max(FALLBACK_MIN, min(FALLBACK_MAX, score + _jitter(keyword, value)))
    return score, reason


def heuristic_score(keyword: str, candidates: list[Suggestion]) -> ScoringOutcome:
    """Deterministic lexical scoring used when no chat model is available."""
    scored = []
    for candidate in candidates:
        score, reason = _lexical_score(keyword, candidate.value)
        scored.append(candidate.model_copy(update={"score": score, "reason": reason, "is_selected": False}))
    return ScoringOutcome(scored=sort_by_score(scored), best_index=0, source=SOURCE_FALLBACK)


# --- LLM reply ---

def _find_entry(entries: list[dict], candidate: Suggestion):
    for entry in entries:
        if str(entry.get("id", "")) == candidate.id:
            return entry
    for entry in entries:
        if entry.get("suggestion") == candidate.value:
            return entry
    return None


def apply_evaluation(reply, candidates: list[Suggestion]) -> ScoringOutcome:
    """Attach the model's scores to the candidates and locate its declared best match."""
    if not isinstance(reply, dict) or not isinstance(reply.get("scores"), list):
        raise ScorerErrorException("Malformed scoring reply: missing 'scores' list")

    entries = [entry for entry in reply["scores"] if isinstance(entry, dict)]
    scored = []
    for candidate in candidates:
        entry = _find_entry(entries, candidate)
        update = {"score": None, "reason": None, "is_selected": False}
        if entry is not None:
            update["score"] = _safe_score(entry.get("score"))
            update["reason"] = entry.get("reason")
        scored.append(candidate.model_copy(update=update))

    scored = sort_by_score(scored)

    best_index = 0
    best = reply.get("bestMatch")
    if isinstance(best, dict):
        for index, suggestion in enumerate(scored):
            if str(best.get("id", "")) == suggestion.id:
                best_index = index
                break
        else:
            for index, suggestion in enumerate(scored):
                if best.get("suggestion") == suggestion.value:
                    best_index = index
                    break

    return ScoringOutcome(scored=scored, best_index=best_index, source=SOURCE_LLM)


class LLMRelevanceScorer:
    """Scores targeting candidates against a keyword with the configured chat model."""

    def __init__(self, settings: Settings | None = None, llm=None):
        self.settings = settings or get_settings()
        self.fallback_enabled = self.settings.SCORER_FALLBACK_ENABLED
        self._llm = llm

    def _get_llm(self):
        if self._llm is not None:
            return self._llm
        if not has_credentials(self.settings):
            return None
        return get_llm(self.settings)

    async def score(self, keyword: str, candidates: list[Suggestion]) -> ScoringOutcome:
        if not candidates:
            return ScoringOutcome(scored=[], best_index=0, source=SOURCE_LLM)

        llm = self._get_llm()
        if llm is None:
            if self.fallback_enabled:
                logger.warning(f"No API key for AI provider '{self.settings.AI_PROVIDER}', using heuristic scoring")
                return heuristic_score(keyword, candidates)
            raise ScorerUnavailableException(f"AI provider '{self.settings.AI_PROVIDER}' is not configured")

        # LCEL chain: prompt → llm → parse JSON
        chain = SCORING_PROMPT | llm | JsonOutputParser()
        try:
            reply = await chain.ainvoke(
                {"keyword": keyword, "candidates": format_candidates(candidates)}
            )
        except OutputParserException as e:
            raise ScorerErrorException(f"Malformed scoring reply: {e}") from e
        except Exception as e:
            # SDK errors differ per provider
            if self.fallback_enabled:
                logger.warning(f"Scoring call failed for '{keyword}', using heuristic scoring: {e}")
                return heuristic_score(keyword, candidates)
            raise ScorerErrorException(f"Scoring call failed: {e}") from e

        return apply_evaluation(reply, candidates)
