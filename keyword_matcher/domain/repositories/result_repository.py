"""
Match Result Repository Interface.
"""

from typing import Any, Dict, Iterator, List

from keyword_matcher.domain.repositories.base import BaseRepository
from keyword_matcher.domain.models.match_result import MatchResult
from keyword_matcher.domain.schemas.file import CellValue
from keyword_matcher.domain.schemas.result import ResultFilter


class ResultRepository(BaseRepository[MatchResult]):
    """Interface for MatchResult-specific operations."""

    def get_with_filters(self, filters: ResultFilter) -> Dict[str, Any]:
        """Filtered, paginated listing ordered by row index."""
        ...

    def create_pending(self, file_id: int, cells: List[CellValue]) -> List[MatchResult]:
        """Insert one pending result per cell, in the given order."""
        ...

    def get_pending(self, file_id: int, max_row: int | None = None) -> List[MatchResult]:
        ...

    def count_for_file(self, file_id: int) -> Dict[str, int]:
        """Counts per status plus 'total'."""
        ...

    def delete_for_file(self, file_id: int) -> int:
        ...

    def delete_after_row(self, file_id: int, row_index: int) -> int:
        ...

    def delete_many(self, ids: List[int]) -> int:
        ...

    def iter_batches(self, file_id: int, batch_size: int = 5000) -> Iterator[List[MatchResult]]:
        """Yield the file's results in row order, batch_size at a time."""
        ...
