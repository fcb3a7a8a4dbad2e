"""File API routes — upload spreadsheets, select the keyword column, follow progress."""

import asyncio
import os
import uuid
from typing import Optional

import structlog
from fastapi import APIRouter, BackgroundTasks, Depends, File, HTTPException, Query, UploadFile, status
from sqlalchemy.orm import Session

from keyword_matcher.application.services.batch_orchestrator import BatchOrchestrator
from keyword_matcher.application.services.spreadsheet_reader import (
    SUPPORTED_EXTENSIONS,
    file_extension,
    read_headers_and_count,
)
from keyword_matcher.config import get_settings
from keyword_matcher.core.exceptions import EntityNotFoundException
from keyword_matcher.domain.models.user import User
from keyword_matcher.domain.models.match_result import RESULT_PENDING
from keyword_matcher.domain.repositories.file_repository import FileRepository
from keyword_matcher.domain.repositories.result_repository import ResultRepository
from keyword_matcher.domain.schemas.file import ColumnSelection, FileFilter, FileRead, FileStatusRead
from keyword_matcher.domain.schemas.result import ExportOptions
from keyword_matcher.infrastructure.database import get_db
from keyword_matcher.interfaces.api.deps import get_current_user
from keyword_matcher.interfaces.api.export import export_response
from keyword_matcher.interfaces.deps import get_file_repository, get_orchestrator, get_result_repository

settings = get_settings()
logger = structlog.get_logger(__name__)
router = APIRouter(prefix="/api/files", tags=["Files"])

ALLOWED_CONTENT_TYPES = {
    "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
    "application/vnd.ms-excel",
    "application/octet-stream",
    "text/csv",
    "application/csv",
    "text/plain",
}
UPLOAD_CHUNK_SIZE = 1024 * 1024


def _remove_quietly(path: str) -> None:
    if path and os.path.exists(path):
        os.remove(path)


def _get_file_or_404(repo: FileRepository, file_id: int):
    file = repo.get_by_id(file_id)
    if not file:
        raise EntityNotFoundException("File not found", details={"file_id": file_id})
    return file


@router.post("/upload", response_model=FileRead, status_code=status.HTTP_201_CREATED)
async def upload_file(
    file: UploadFile = File(...),
    repo: FileRepository = Depends(get_file_repository),
    user: User = Depends(get_current_user),
):
    if not file.filename:
        raise HTTPException(status_code=400, detail="No file provided")

    original_name = os.path.basename(file.filename)
    ext = file_extension(original_name)
    if ext not in SUPPORTED_EXTENSIONS:
        raise HTTPException(status_code=400, detail="Only .xlsx and .csv files are accepted")
    content_type = (file.content_type or "application/octet-stream").split(";")[0].strip().lower()
    if content_type not in ALLOWED_CONTENT_TYPES:
        raise HTTPException(status_code=400, detail=f"Unsupported content type: {content_type}")

    # Stream to disk, counting bytes
    os.makedirs(settings.UPLOAD_DIR, exist_ok=True)
    stored_name = f"{uuid.uuid4().hex}_{original_name}"
    file_path = os.path.join(settings.UPLOAD_DIR, stored_name)
    max_bytes = settings.MAX_UPLOAD_SIZE_MB * 1024 * 1024
    size = 0
    with open(file_path, "wb") as f:
        while True:
            chunk = await file.read(UPLOAD_CHUNK_SIZE)
            if not chunk:
                break
            size += len(chunk)
            if size > max_bytes:
                break
            f.write(chunk)

    if size > max_bytes:
        _remove_quietly(file_path)
        raise HTTPException(
            status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE,
            detail=f"File exceeds the {settings.MAX_UPLOAD_SIZE_MB} MB limit",
        )

    try:
        info = await asyncio.to_thread(read_headers_and_count, file_path)
    except Exception:
        _remove_quietly(file_path)
        raise

    uploaded = repo.create(
        {
            "name": stored_name,
            "original_name": original_name,
            "path": file_path,
            "size": size,
            "columns": info.columns,
            "row_count": info.row_count,
            "uploaded_by": user.email,
        }
    )
    logger.info(
        "file_uploaded",
        file_id=uploaded.id,
        name=original_name,
        size=size,
        columns=len(info.columns),
        row_count=info.row_count,
    )
    return FileRead.model_validate(uploaded)


@router.get("")
def list_files(
    status_filter: Optional[str] = Query(None, alias="status"),
    page: int = Query(1, ge=1),
    page_size: int = Query(10, ge=1, le=100),
    repo: FileRepository = Depends(get_file_repository),
    user: User = Depends(get_current_user),
):
    result = repo.get_with_filters(FileFilter(status=status_filter, page=page, page_size=page_size))
    result["items"] = [FileRead.model_validate(f) for f in result["items"]]
    return result


@router.get("/{file_id}", response_model=FileRead)
def get_file(
    file_id: int,
    repo: FileRepository = Depends(get_file_repository),
    user: User = Depends(get_current_user),
):
    return FileRead.model_validate(_get_file_or_404(repo, file_id))


@router.put("/{file_id}/column")
def select_column(
    file_id: int,
    body: ColumnSelection,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
    orchestrator: BatchOrchestrator = Depends(get_orchestrator),
    user: User = Depends(get_current_user),
):
    file = orchestrator.select_column(db, file_id, body.selected_column)
    background_tasks.add_task(orchestrator.run, file.id)
    return {
        "id": file.id,
        "selected_column": file.selected_column,
        "status": file.status,
        "message": "Processing started",
    }


@router.get("/{file_id}/status", response_model=FileStatusRead)
def file_status(
    file_id: int,
    repo: FileRepository = Depends(get_file_repository),
    results: ResultRepository = Depends(get_result_repository),
    user: User = Depends(get_current_user),
):
    file = _get_file_or_404(repo, file_id)
    counts = results.count_for_file(file_id)
    return FileStatusRead(
        status=file.status,
        progress=file.progress,
        processed_rows=file.processed_rows,
        row_count=file.row_count,
        processed_count=counts["total"] - counts.get(RESULT_PENDING, 0),
        total_count=counts["total"],
        error_message=file.error_message,
    )


@router.delete("/{file_id}")
def delete_file(
    file_id: int,
    repo: FileRepository = Depends(get_file_repository),
    results: ResultRepository = Depends(get_result_repository),
    user: User = Depends(get_current_user),
):
    """Delete a file, its match results and the stored spreadsheet."""
    file = _get_file_or_404(repo, file_id)
    path, name = file.path, file.original_name

    deleted_results = results.delete_for_file(file_id)
    repo.delete(file_id)
    _remove_quietly(path)

    logger.info("file_deleted", file_id=file_id, deleted_results=deleted_results)
    return {
        "message": f"File '{name}' deleted",
        "deleted_results": deleted_results,
    }


@router.get("/{file_id}/export")
def export_file(
    file_id: int,
    format: str = "xlsx",
    include_scores: bool = True,
    include_all_suggestions: bool = False,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    options = ExportOptions(
        format=format,
        include_scores=include_scores,
        include_all_suggestions=include_all_suggestions,
    )
    return export_response(db, file_id, options)
