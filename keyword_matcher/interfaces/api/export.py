"""Export API routes — download a file's match results as .xlsx or .csv."""

import os
from typing import Optional

import structlog
from fastapi import APIRouter, Depends
from fastapi.responses import FileResponse
from sqlalchemy.orm import Session
from starlette.background import BackgroundTask

from keyword_matcher.application.services.exporter import MEDIA_TYPES, export_results
from keyword_matcher.config import get_settings
from keyword_matcher.core.exceptions import EntityNotFoundException
from keyword_matcher.domain.models.match_result import MatchResult
from keyword_matcher.domain.models.uploaded_file import UploadedFile
from keyword_matcher.domain.models.user import User
from keyword_matcher.domain.schemas.result import ExportOptions
from keyword_matcher.infrastructure.database import get_db
from keyword_matcher.infrastructure.repositories.result_repository import SQLAlchemyResultRepository
from keyword_matcher.interfaces.api.deps import get_current_user

settings = get_settings()
logger = structlog.get_logger(__name__)
router = APIRouter(prefix="/api/export", tags=["Export"])

EXPORT_BATCH_SIZE = 5000


def _remove_export(path: str) -> None:
    if os.path.exists(path):
        os.remove(path)


def export_response(db: Session, file_id: int, options: ExportOptions) -> FileResponse:
    """Write the export and stream it; the file is removed once sent."""
    file = db.get(UploadedFile, file_id)
    if not file:
        raise EntityNotFoundException("File not found", details={"file_id": file_id})

    results = SQLAlchemyResultRepository(db, MatchResult)
    info = export_results(
        results.iter_batches(file_id, batch_size=EXPORT_BATCH_SIZE),
        options,
        output_dir=settings.EXPORT_DIR,
        base_name=file.original_name,
    )
    logger.info("export_created", file_id=file_id, format=info.format, rows=info.rows)

    return FileResponse(
        info.path,
        media_type=MEDIA_TYPES[info.format],
        filename=info.file_name,
        background=BackgroundTask(_remove_export, info.path),
    )


@router.post("/{file_id}")
def export_file(
    file_id: int,
    options: Optional[ExportOptions] = None,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    return export_response(db, file_id, options or ExportOptions())
