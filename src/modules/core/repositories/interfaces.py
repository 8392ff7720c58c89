"""Generic repository interface (Dependency Inversion Principle).

Provides ``IRepository[T]``, the base abstract class that the
app-specific repository interfaces extend.  Services depend on these
abstractions, never on the Django ORM directly.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, Dict, Generic, List, Optional, TypeVar

T = TypeVar("T")


class IRepository(ABC, Generic[T]):
    """Base generic repository contract.

    Type parameter ``T`` is the entity managed by the repository
    (e.g. ``Order``, ``ActivationCode``).
    """

    @abstractmethod
    def get_by_id(self, id: int) -> Optional[T]:
        """Retrieve an entity by its primary key."""

    @abstractmethod
    def list(self, filters: Optional[Dict[str, Any]] = None) -> List[T]:
        """List entities with optional filters."""

    @abstractmethod
    def save(self, entity: T) -> T:
        """Persist (create or update) an entity."""
