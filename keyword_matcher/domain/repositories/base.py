"""
Repository contract shared by uploaded files and match results.
"""

from typing import Any, Optional, Protocol, TypeVar

ModelT = TypeVar("ModelT")


class BaseRepository(Protocol[ModelT]):
    """Lookup, insert and delete by primary key; listing lives in the concrete repositories."""

    def get_by_id(self, id: int) -> Optional[ModelT]:
        ...

    def create(self, values: Any) -> ModelT:
        """Insert from a dict or pydantic model and return the refreshed row."""
        ...

    def delete(self, id: int) -> Optional[ModelT]:
        """Delete a row; None when it does not exist."""
        ...
