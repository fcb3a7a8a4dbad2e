"""
Uploaded File Repository Interface.
"""

from typing import Any, Dict, List

from keyword_matcher.domain.repositories.base import BaseRepository
from keyword_matcher.domain.models.uploaded_file import UploadedFile
from keyword_matcher.domain.schemas.file import FileFilter


class FileRepository(BaseRepository[UploadedFile]):
    """Interface for UploadedFile-specific operations."""

    def get_with_filters(self, filters: FileFilter) -> Dict[str, Any]:
        """Paginated listing, newest first."""
        ...

    def exists(self, file_id: int) -> bool:
        ...

    def claim_for_processing(self, file_id: int, column: str) -> bool:
        """Atomically move a selectable file to 'processing'. False if another caller won."""
        ...

    def update_progress(self, file_id: int, processed_rows: int, progress: int) -> None:
        ...

    def mark_completed(self, file_id: int) -> None:
        ...

    def mark_error(self, file_id: int, message: str) -> None:
        ...

    def get_processing(self) -> List[UploadedFile]:
        """Files left in 'processing' (e.g. after a crash)."""
        ...

    def get_known_paths(self) -> set[str]:
        ...
