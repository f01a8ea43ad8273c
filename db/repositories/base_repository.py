"""
Base repository interface for common CRUD operations.
"""

from abc import ABC
from typing import Generic, TypeVar, Optional, List
from sqlalchemy.orm import Session
from uuid import UUID

T = TypeVar('T')


class BaseRepository(ABC, Generic[T]):
    """Base repository interface with common CRUD operations."""

    def __init__(self, session: Session, model_class: type):
        self.session = session
        self.model_class = model_class

    def create(self, **kwargs) -> T:
        """Create a new entity."""
        entity = self.model_class(**kwargs)
        self.session.add(entity)
        self.session.flush()  # Ensure ID is generated
        return entity

    def get_by_id(self, entity_id: UUID) -> Optional[T]:
        """Get entity by ID."""
        return self.session.get(self.model_class, entity_id)

    def get_all(self, limit: Optional[int] = None, offset: int = 0) -> List[T]:
        """Get all entities with optional pagination."""
        query = self.session.query(self.model_class)
        if offset > 0:
            query = query.offset(offset)
        if limit:
            query = query.limit(limit)
        return query.all()

    def update(self, entity_id: UUID, **kwargs) -> Optional[T]:
        """Update entity by ID. Unknown attribute names are ignored."""
        entity = self.get_by_id(entity_id)
        if entity:
            for key, value in kwargs.items():
                if hasattr(entity, key):
                    setattr(entity, key, value)
            self.session.flush()
        return entity
