"""
SQLAlchemy Implementation of the Uploaded File Repository.
"""

from datetime import datetime, timezone
from typing import Any, Dict, List

from keyword_matcher.domain.models.uploaded_file import (
    UploadedFile,
    SELECTABLE_STATUSES,
    STATUS_COMPLETED,
    STATUS_ERROR,
    STATUS_PROCESSING,
    STATUS_UPLOADED,
)
from keyword_matcher.domain.repositories.file_repository import FileRepository
from keyword_matcher.domain.schemas.file import FileFilter
from keyword_matcher.infrastructure.repositories.base_repository import SQLAlchemyRepository


class SQLAlchemyFileRepository(SQLAlchemyRepository[UploadedFile], FileRepository):
    """UploadedFile repository implementation using SQLAlchemy.

    Status mutations are single UPDATE statements so a background run and a
    request handler never overwrite each other's columns.
    """

    def get_with_filters(self, filters: FileFilter) -> Dict[str, Any]:
        query = self.db.query(UploadedFile)
        if filters.status:
            query = query.filter(UploadedFile.status == filters.status)

        total = query.count()
        offset = (filters.page - 1) * filters.page_size
        files = (
            query.order_by(UploadedFile.created_at.desc(), UploadedFile.id.desc())
            .offset(offset)
            .limit(filters.page_size)
            .all()
        )

        return {
            "items": files,
            "total": total,
            "page": filters.page,
            "page_size": filters.page_size,
            "total_pages": (total + filters.page_size - 1) // filters.page_size,
        }

    def exists(self, file_id: int) -> bool:
        return self.db.query(UploadedFile.id).filter(UploadedFile.id == file_id).first() is not None

    def _update(self, file_id: int, values: dict, *criteria) -> int:
        updated = (
            self.db.query(UploadedFile)
            .filter(UploadedFile.id == file_id, *criteria)
            .update(values, synchronize_session=False)
        )
        self.db.commit()
        return updated

    def claim_for_processing(self, file_id: int, column: str) -> bool:
        updated = self._update(
            file_id,
            {
                "selected_column": column,
                "status": STATUS_PROCESSING,
                "processing_started_at": datetime.now(timezone.utc),
                "processing_completed_at": None,
                "error_message": None,
                "processed_rows": 0,
                "progress": 0,
            },
            UploadedFile.status.in_(SELECTABLE_STATUSES),
        )
        return updated == 1

    def update_progress(self, file_id: int, processed_rows: int, progress: int) -> None:
        self._update(
            file_id,
            {"processed_rows": processed_rows, "progress": max(0, min(100, progress))},
            UploadedFile.status == STATUS_PROCESSING,
        )

    def mark_completed(self, file_id: int) -> None:
        self._update(
            file_id,
            {
                "status": STATUS_COMPLETED,
                "progress": 100,
                "processing_completed_at": datetime.now(timezone.utc),
            },
            UploadedFile.status == STATUS_PROCESSING,
        )

    def mark_error(self, file_id: int, message: str) -> None:
        self._update(
            file_id,
            {"status": STATUS_ERROR, "error_message": message[:1000]},
            UploadedFile.status.in_((STATUS_UPLOADED, STATUS_PROCESSING)),
        )

    def get_processing(self) -> List[UploadedFile]:
        return self.db.query(UploadedFile).filter(UploadedFile.status == STATUS_PROCESSING).all()

    def get_known_paths(self) -> set[str]:
        return {row[0] for row in self.db.query(UploadedFile.path).all()}
