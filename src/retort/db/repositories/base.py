"""
Base repository with common CRUD operations.
"""

from typing import Any, Generic, List, Optional, Type, TypeVar

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from retort.models.db import Base

ModelType = TypeVar("ModelType", bound=Base)


class BaseRepository(Generic[ModelType]):
    """
    Generic repository for a single model.

    Repositories never commit: they add and flush so that ids are assigned,
    and leave the transaction boundary to the caller's session.
    """

    def __init__(self, model: Type[ModelType], session: Session):
        self.model = model
        self.session = session

    def get(self, id: Any) -> Optional[ModelType]:
        """
        Get a record by primary key.

        Args:
            id: Primary key value

        Returns:
            Model instance or None
        """
        return self.session.get(self.model, id)

    def get_all(self, limit: Optional[int] = None, offset: int = 0) -> List[ModelType]:
        """
        Get all records.

        Args:
            limit: Maximum number of records to return
            offset: Number of records to skip

        Returns:
            List of model instances
        """
        query = self.session.query(self.model).offset(offset)
        if limit:
            query = query.limit(limit)
        return query.all()

    def create(self, **kwargs) -> ModelType:
        """
        Create and flush a new record.

        Args:
            **kwargs: Model field values

        Returns:
            Created model instance
        """
        instance = self.model(**kwargs)
        self.session.add(instance)
        self.session.flush()
        return instance

    def count(self) -> int:
        """Count all records."""
        return self.session.scalar(select(func.count()).select_from(self.model)) or 0
