"""
Batch orchestrator. Drives a column run from the selected spreadsheet column
to scored match results, one window of rows at a time.

Flow:
1. select_column: validate and atomically move the file to "processing"
2. run (background task): read a window of cells → create pending results →
   search + score each result → persist progress every few windows
3. completed / error
"""

import asyncio
from datetime import datetime, timezone
from typing import Callable, Optional

import structlog
from sqlalchemy.orm import Session

from keyword_matcher.application.services.spreadsheet_reader import iter_column_windows
from keyword_matcher.config import Settings, get_settings
from keyword_matcher.core.exceptions import (
    AlreadyProcessedException,
    AlreadyProcessingException,
    EntityNotFoundException,
    InvalidColumnException,
    InvalidFileStateException,
)
from keyword_matcher.domain.models.match_result import MatchResult, RESULT_PROCESSED
from keyword_matcher.domain.models.uploaded_file import UploadedFile, STATUS_ERROR, STATUS_PROCESSING
from keyword_matcher.domain.providers import RelevanceScorer, SuggestionProvider
from keyword_matcher.infrastructure.database import SessionLocal
from keyword_matcher.infrastructure.repositories.file_repository import SQLAlchemyFileRepository
from keyword_matcher.infrastructure.repositories.result_repository import SQLAlchemyResultRepository

logger = structlog.get_logger(__name__)

PROGRESS_EVERY_WINDOWS = 5
NO_SUGGESTIONS_MESSAGE = "No suggestions found"

# File ids with a run in this process
_active_runs: set[int] = set()


def window_size(row_count: int) -> int:
    """Rows read per window; large sheets use smaller windows."""
    if row_count > 50_000:
        return 500
    if row_count > 10_000:
        return 1000
    return 2000


def is_running(file_id: int) -> bool:
    return file_id in _active_runs


class BatchOrchestrator:
    """Runs the keyword → suggestion → score pipeline for uploaded files."""

    def __init__(
        self,
        provider: SuggestionProvider,
        scorer: RelevanceScorer,
        session_factory: Callable[[], Session] = SessionLocal,
        settings: Optional[Settings] = None,
    ):
        self.provider = provider
        self.scorer = scorer
        self.session_factory = session_factory
        settings = settings or get_settings()
        self.score_during_batch = settings.SCORE_DURING_BATCH
        self.search_delay = settings.SEARCH_DELAY_SECONDS
        self.suggestion_limit = settings.SUGGESTION_LIMIT

    # --- Column selection ---

    def select_column(self, db: Session, file_id: int, column: str) -> UploadedFile:
        files = SQLAlchemyFileRepository(db, UploadedFile)
        file = files.get_by_id(file_id)
        if not file:
            raise EntityNotFoundException("File not found", details={"file_id": file_id})
        if column not in (file.columns or []):
            raise InvalidColumnException(
                f'Column "{column}" does not exist in this file',
                details={"columns": file.columns},
            )
        self._check_selectable(file)

        if not files.claim_for_processing(file_id, column):
            # Lost the race against another request
            db.refresh(file)
            self._check_selectable(file)
            raise AlreadyProcessingException("File is already being processed")

        db.refresh(file)
        logger.info("column_selected", file_id=file_id, column=column, row_count=file.row_count)
        return file

    @staticmethod
    def _check_selectable(file: UploadedFile) -> None:
        if file.status == STATUS_PROCESSING or is_running(file.id):
            raise AlreadyProcessingException(
                "File is already being processed", details={"file_id": file.id}
            )
        if file.status == STATUS_ERROR:
            raise InvalidFileStateException(
                "File is in error state; delete it and upload it again",
                details={"file_id": file.id, "error_message": file.error_message},
            )

    # --- Background run ---

    async def run(self, file_id: int, resume: bool = False) -> None:
        """Process the selected column of a file; never raises."""
        if is_running(file_id):
            logger.warning("run_already_active", file_id=file_id)
            return

        _active_runs.add(file_id)
        db = self.session_factory()
        files = SQLAlchemyFileRepository(db, UploadedFile)
        try:
            await self._run(db, file_id, resume)
        except Exception as e:
            db.rollback()
            if not files.exists(file_id):
                logger.info("run_stopped_file_deleted", file_id=file_id)
                return
            logger.exception("file_processing_failed", file_id=file_id)
            files.mark_error(file_id, str(e) or e.__class__.__name__)
        finally:
            _active_runs.discard(file_id)
            db.close()

    async def resume(self, file_id: int) -> None:
        """Continue a run interrupted by a restart from its last persisted checkpoint."""
        await self.run(file_id, resume=True)

    async def _run(self, db: Session, file_id: int, resume: bool) -> None:
        files = SQLAlchemyFileRepository(db, UploadedFile)
        results = SQLAlchemyResultRepository(db, MatchResult)

        file = files.get_by_id(file_id)
        if not file or file.status != STATUS_PROCESSING:
            logger.warning("run_skipped", file_id=file_id, status=file.status if file else None)
            return

        path, column, row_count = file.path, file.selected_column, file.row_count
        size = window_size(row_count)

        if resume:
            checkpoint = file.processed_rows or 0
            dropped = results.delete_after_row(file_id, checkpoint)
            logger.info("run_resumed", file_id=file_id, checkpoint=checkpoint, dropped_results=dropped)
            if self.score_during_batch:
                await self._score_all(db, results.get_pending(file_id, max_row=checkpoint))
            start = checkpoint + 1
        else:
            results.delete_for_file(file_id)
            start = 1

        logger.info(
            "run_started", file_id=file_id, column=column, row_count=row_count, window_size=size
        )

        # One pass over the file; each next() reads only the following window
        windows = iter_column_windows(path, column, start, row_count, size)
        try:
            window = 0
            for window_start in range(start, row_count + 1, size):
                window_end = min(window_start + size - 1, row_count)
                window += 1

                if not files.exists(file_id):
                    logger.info("run_stopped_file_deleted", file_id=file_id, row=window_start)
                    return

                cells = await asyncio.to_thread(next, windows, [])
                pending = results.create_pending(file_id, cells)
                if self.score_during_batch:
                    await self._score_all(db, pending)

                if window % PROGRESS_EVERY_WINDOWS == 0 or window_end == row_count:
                    files.update_progress(file_id, window_end, window_end * 100 // row_count)

                logger.info(
                    "window_processed",
                    file_id=file_id,
                    start_row=window_start,
                    end_row=window_end,
                    keywords=len(cells),
                )
        finally:
            windows.close()

        files.mark_completed(file_id)
        logger.info("run_completed", file_id=file_id, counts=results.count_for_file(file_id))

    async def _score_all(self, db: Session, pending: list[MatchResult]) -> None:
        for position, result in enumerate(pending):
            if position and self.search_delay > 0:
                await asyncio.sleep(self.search_delay)
            await self.score_result(db, result)

    # --- Per-result scoring ---

    async def score_result(self, db: Session, result: MatchResult) -> MatchResult:
        """Search then score one keyword; a failure marks only this result failed."""
        result.processing_started_at = datetime.now(timezone.utc)
        try:
            candidates = await self.provider.suggest(result.original_value, self.suggestion_limit)
            if not candidates:
                raise LookupError(NO_SUGGESTIONS_MESSAGE)
            outcome = await self.scorer.score(result.original_value, candidates)
            result.mark_processed(outcome.scored, outcome.best_index, outcome.source)
        except Exception as e:
            logger.warning(
                "result_failed",
                file_id=result.file_id,
                row_index=result.row_index,
                keyword=result.original_value,
                error=str(e),
            )
            result.mark_failed(str(e) or e.__class__.__name__)

        db.commit()
        return result

    async def process_result(self, db: Session, result_id: int) -> MatchResult:
        """On-demand scoring of a pending or failed result."""
        results = SQLAlchemyResultRepository(db, MatchResult)
        result = results.get_by_id(result_id)
        if not result:
            raise EntityNotFoundException("Result not found", details={"result_id": result_id})
        if result.status == RESULT_PROCESSED:
            raise AlreadyProcessedException(
                "Result has already been processed", details={"result_id": result_id}
            )

        file = SQLAlchemyFileRepository(db, UploadedFile).get_by_id(result.file_id)
        if file and (file.status == STATUS_PROCESSING or is_running(file.id)):
            raise AlreadyProcessingException(
                "The file of this result is being processed", details={"file_id": file.id}
            )

        await self.score_result(db, result)
        db.refresh(result)
        return result

    def change_selected_suggestion(
        self,
        db: Session,
        result_id: int,
        index: Optional[int] = None,
        suggestion_id: Optional[str] = None,
    ) -> MatchResult:
        results = SQLAlchemyResultRepository(db, MatchResult)
        result = results.get_by_id(result_id)
        if not result:
            raise EntityNotFoundException("Result not found", details={"result_id": result_id})

        if suggestion_id is not None:
            result.select_suggestion_by_id(suggestion_id)
        else:
            result.select_suggestion(index if index is not None else -1)

        db.commit()
        db.refresh(result)
        logger.info(
            "suggestion_changed",
            result_id=result_id,
            selected_value=result.selected_value,
            match_score=result.match_score,
        )
        return result
