"""APScheduler jobs — storage cleanup every CLEANUP_INTERVAL_MINUTES, resume of interrupted runs at startup."""

import logging
import os
import time
from datetime import datetime
from typing import Optional

import pytz
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.date import DateTrigger
from apscheduler.triggers.interval import IntervalTrigger

from keyword_matcher.config import get_settings
from keyword_matcher.infrastructure.database import SessionLocal

settings = get_settings()
logger = logging.getLogger(__name__)
tz = pytz.timezone(settings.TIMEZONE)

scheduler = AsyncIOScheduler(timezone=tz)


def _expired_files(directory: str, max_age_seconds: float, now: float):
    if not os.path.isdir(directory):
        return
    for entry in os.scandir(directory):
        if entry.is_file() and now - entry.stat().st_mtime > max_age_seconds:
            yield entry.path


def cleanup_storage(now: Optional[float] = None) -> dict:
    """Remove stale exports and uploads no file record points to."""
    from keyword_matcher.domain.models.uploaded_file import UploadedFile
    from keyword_matcher.infrastructure.repositories.file_repository import SQLAlchemyFileRepository

    now = now if now is not None else time.time()
    removed_exports = 0
    for path in _expired_files(settings.EXPORT_DIR, settings.EXPORT_TTL_MINUTES * 60, now):
        os.remove(path)
        removed_exports += 1

    db = SessionLocal()
    try:
        known = {os.path.abspath(p) for p in SQLAlchemyFileRepository(db, UploadedFile).get_known_paths()}
    finally:
        db.close()

    removed_uploads = 0
    for path in _expired_files(settings.UPLOAD_DIR, settings.ORPHAN_UPLOAD_TTL_MINUTES * 60, now):
        if os.path.abspath(path) not in known:
            os.remove(path)
            removed_uploads += 1

    return {"exports": removed_exports, "uploads": removed_uploads}


async def cleanup_job():
    """Periodic job: delete expired exports and orphaned uploads."""
    logger.info(f"Running storage cleanup at {datetime.now(tz).strftime('%d/%m/%Y %H:%M')}")
    try:
        result = cleanup_storage()
        logger.info(f"Storage cleanup result: {result}")
    except OSError as e:
        logger.error(f"Storage cleanup failed: {e}")


async def resume_interrupted_runs(orchestrator=None) -> list[int]:
    """Continue the runs of files a previous process left in 'processing'."""
    from keyword_matcher.application.services.batch_orchestrator import BatchOrchestrator
    from keyword_matcher.domain.models.uploaded_file import UploadedFile
    from keyword_matcher.infrastructure.repositories.file_repository import SQLAlchemyFileRepository
    from keyword_matcher.interfaces.deps import get_relevance_scorer, get_suggestion_provider

    db = SessionLocal()
    try:
        file_ids = [f.id for f in SQLAlchemyFileRepository(db, UploadedFile).get_processing()]
    finally:
        db.close()

    if not file_ids:
        return []

    orchestrator = orchestrator or BatchOrchestrator(
        provider=get_suggestion_provider(), scorer=get_relevance_scorer()
    )
    for file_id in file_ids:
        logger.info(f"Resuming interrupted run for file {file_id}")
        await orchestrator.resume(file_id)
    return file_ids


def start_scheduler():
    """Start the APScheduler with the cleanup job and the one-shot resume job."""
    scheduler.add_job(
        cleanup_job,
        trigger=IntervalTrigger(minutes=settings.CLEANUP_INTERVAL_MINUTES, timezone=tz),
        id="storage_cleanup",
        name=f"Storage cleanup (every {settings.CLEANUP_INTERVAL_MINUTES} mins)",
        replace_existing=True,
    )

    scheduler.add_job(
        resume_interrupted_runs,
        trigger=DateTrigger(run_date=datetime.now(tz), timezone=tz),
        id="resume_interrupted_runs",
        name="Resume interrupted runs",
        replace_existing=True,
    )

    scheduler.start()
    logger.info(f"Scheduler started: storage cleanup every {settings.CLEANUP_INTERVAL_MINUTES} mins")


def stop_scheduler():
    """Stop the scheduler gracefully."""
    if scheduler.running:
        scheduler.shutdown(wait=False)
        logger.info("Scheduler stopped")
