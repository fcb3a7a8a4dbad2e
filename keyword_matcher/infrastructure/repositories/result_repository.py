"""
SQLAlchemy Implementation of the Match Result Repository.
"""

from typing import Any, Dict, Iterator, List

from sqlalchemy import and_, func, or_

from keyword_matcher.domain.models.match_result import MatchResult, RESULT_PENDING
from keyword_matcher.domain.repositories.result_repository import ResultRepository
from keyword_matcher.domain.schemas.file import CellValue
from keyword_matcher.domain.schemas.result import ResultFilter
from keyword_matcher.infrastructure.repositories.base_repository import SQLAlchemyRepository


class SQLAlchemyResultRepository(SQLAlchemyRepository[MatchResult], ResultRepository):
    """MatchResult repository implementation using SQLAlchemy."""

    def get_with_filters(self, filters: ResultFilter) -> Dict[str, Any]:
        query = self.db.query(MatchResult)

        if filters.file_id is not None:
            query = query.filter(MatchResult.file_id == filters.file_id)
        if filters.status and filters.status != "all":
            query = query.filter(MatchResult.status == filters.status)
        if filters.min_score is not None:
            query = query.filter(MatchResult.match_score >= filters.min_score)
        if filters.max_score is not None:
            query = query.filter(MatchResult.match_score <= filters.max_score)
        if filters.query:
            query = query.filter(
                or_(
                    MatchResult.original_value.icontains(filters.query, autoescape=True),
                    MatchResult.selected_value.icontains(filters.query, autoescape=True),
                )
            )

        total = query.count()
        offset = (filters.page - 1) * filters.page_size
        results = (
            query.order_by(MatchResult.file_id, MatchResult.row_index, MatchResult.id)
            .offset(offset)
            .limit(filters.page_size)
            .all()
        )

        return {
            "items": results,
            "total": total,
            "page": filters.page,
            "page_size": filters.page_size,
            "total_pages": (total + filters.page_size - 1) // filters.page_size,
        }

    def create_pending(self, file_id: int, cells: List[CellValue]) -> List[MatchResult]:
        results = [
            MatchResult(
                file_id=file_id,
                row_index=cell.row_index,
                original_value=cell.value,
                suggestions=[],
                status=RESULT_PENDING,
            )
            for cell in cells
        ]
        if results:
            self.db.add_all(results)
            self.db.commit()
        return results

    def get_pending(self, file_id: int, max_row: int | None = None) -> List[MatchResult]:
        query = self.db.query(MatchResult).filter(
            MatchResult.file_id == file_id,
            MatchResult.status == RESULT_PENDING,
        )
        if max_row is not None:
            query = query.filter(MatchResult.row_index <= max_row)
        return query.order_by(MatchResult.row_index, MatchResult.id).all()

    def count_for_file(self, file_id: int) -> Dict[str, int]:
        rows = (
            self.db.query(MatchResult.status, func.count(MatchResult.id))
            .filter(MatchResult.file_id == file_id)
            .group_by(MatchResult.status)
            .all()
        )
        counts = {status: count for status, count in rows}
        counts["total"] = sum(counts.values())
        return counts

    def delete_for_file(self, file_id: int) -> int:
        deleted = self.db.query(MatchResult).filter(MatchResult.file_id == file_id).delete(
            synchronize_session=False
        )
        self.db.commit()
        return deleted

    def delete_after_row(self, file_id: int, row_index: int) -> int:
        deleted = (
            self.db.query(MatchResult)
            .filter(MatchResult.file_id == file_id, MatchResult.row_index > row_index)
            .delete(synchronize_session=False)
        )
        self.db.commit()
        return deleted

    def delete_many(self, ids: List[int]) -> int:
        deleted = self.db.query(MatchResult).filter(MatchResult.id.in_(ids)).delete(
            synchronize_session=False
        )
        self.db.commit()
        return deleted

    def iter_batches(self, file_id: int, batch_size: int = 5000) -> Iterator[List[MatchResult]]:
        last_row, last_id = 0, 0
        while True:
            batch = (
                self.db.query(MatchResult)
                .filter(
                    MatchResult.file_id == file_id,
                    or_(
                        MatchResult.row_index > last_row,
                        and_(MatchResult.row_index == last_row, MatchResult.id > last_id),
                    ),
                )
                .order_by(MatchResult.row_index, MatchResult.id)
                .limit(batch_size)
                .all()
            )
            if not batch:
                return
            yield batch
            last_row, last_id = batch[-1].row_index, batch[-1].id
            # Exported rows are not needed again
            for result in batch:
                self.db.expunge(result)
            if len(batch) < batch_size:
                return
