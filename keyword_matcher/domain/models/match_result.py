"""Match result: one keyword cell of the selected column and its scored suggestions."""

from datetime import datetime, timezone

from sqlalchemy import Column, Integer, String, Text, DateTime, ForeignKey, Index, JSON
from sqlalchemy.sql import func

from keyword_matcher.core.exceptions import InvalidSuggestionIndexException
from keyword_matcher.domain.schemas.suggestion import Suggestion
from keyword_matcher.infrastructure.database import Base

RESULT_PENDING = "pending"
RESULT_PROCESSED = "processed"
RESULT_FAILED = "failed"


class MatchResult(Base):
    __tablename__ = "match_results"

    id = Column(Integer, primary_key=True, autoincrement=True)
    file_id = Column(Integer, ForeignKey("uploaded_files.id", ondelete="CASCADE"), nullable=False)
    row_index = Column(Integer, nullable=False)
    original_value = Column(Text, nullable=False)

    # Lists of Suggestion dicts; always reassigned, never mutated in place
    suggestions = Column(JSON, nullable=False, default=list)
    selected_suggestion = Column(JSON, nullable=True)
    selected_value = Column(Text, nullable=True)
    match_score = Column(Integer, nullable=True)

    status = Column(String(20), nullable=False, default=RESULT_PENDING)
    error_message = Column(String(1000), nullable=True)
    scoring_source = Column(String(20), nullable=True)  # llm, fallback
    processing_started_at = Column(DateTime(timezone=True), nullable=True)
    processing_completed_at = Column(DateTime(timezone=True), nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    __table_args__ = (
        Index("ix_match_results_file_status", "file_id", "status"),
        Index("ix_match_results_file_row", "file_id", "row_index"),
    )

    def get_suggestions(self) -> list[Suggestion]:
        return [Suggestion.model_validate(s) for s in (self.suggestions or [])]

    def _apply_selection(self, suggestions: list[Suggestion], index: int) -> None:
        for i, suggestion in enumerate(suggestions):
            suggestion.is_selected = i == index
        selected = suggestions[index]
        self.suggestions = [s.model_dump() for s in suggestions]
        self.selected_suggestion = selected.model_dump()
        self.selected_value = selected.value
        self.match_score = selected.score

    def mark_processed(self, suggestions: list[Suggestion], best_index: int, source: str) -> None:
        if not suggestions:
            raise ValueError("Cannot mark a result processed without suggestions")
        if not 0 <= best_index < len(suggestions):
            best_index = 0
        self._apply_selection(list(suggestions), best_index)
        self.status = RESULT_PROCESSED
        self.error_message = None
        self.scoring_source = source
        self.processing_completed_at = datetime.now(timezone.utc)

    def mark_failed(self, message: str) -> None:
        self.status = RESULT_FAILED
        self.error_message = message[:1000]
        self.processing_completed_at = datetime.now(timezone.utc)

    def select_suggestion(self, index: int) -> None:
        """Make the candidate at `index` the selected one."""
        suggestions = self.get_suggestions()
        if not suggestions or not 0 <= index < len(suggestions):
            raise InvalidSuggestionIndexException(
                f"Invalid suggestion index {index}",
                details={"result_id": self.id, "suggestion_count": len(suggestions)},
            )
        self._apply_selection(suggestions, index)

    def select_suggestion_by_id(self, suggestion_id: str) -> None:
        for index, suggestion in enumerate(self.get_suggestions()):
            if suggestion.id == suggestion_id:
                self.select_suggestion(index)
                return
        raise InvalidSuggestionIndexException(
            f"Suggestion '{suggestion_id}' not found",
            details={"result_id": self.id},
        )

    def __repr__(self):
        return f"<MatchResult {self.file_id}:{self.row_index} - {self.status}>"


Index("ix_match_results_file_score", MatchResult.file_id, MatchResult.match_score.desc())
