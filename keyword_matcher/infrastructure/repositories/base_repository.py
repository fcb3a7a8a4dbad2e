"""
SQLAlchemy base for the file and result repositories.
"""

from typing import Any, Generic, Optional, Type, TypeVar

from sqlalchemy.orm import Session

from keyword_matcher.domain.repositories.base import BaseRepository
from keyword_matcher.infrastructure.database import Base

ModelT = TypeVar("ModelT", bound=Base)


class SQLAlchemyRepository(BaseRepository[ModelT], Generic[ModelT]):
    """Primary-key operations over one mapped model; every write commits."""

    def __init__(self, db: Session, model: Type[ModelT]):
        self.db = db
        self.model = model

    def get_by_id(self, id: int) -> Optional[ModelT]:
        # Conditional bulk UPDATEs bypass the identity map; always reload the row
        return self.db.get(self.model, id, populate_existing=True)

    def create(self, values: Any) -> ModelT:
        data = values.model_dump(exclude_unset=True) if hasattr(values, "model_dump") else dict(values)
        row = self.model(**data)
        self.db.add(row)
        self.db.commit()
        self.db.refresh(row)
        return row

    def delete(self, id: int) -> Optional[ModelT]:
        row = self.db.get(self.model, id)
        if row is None:
            return None
        self.db.delete(row)
        self.db.commit()
        return row
