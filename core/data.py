"""
Data Layer Base Classes.

The data layer provides the Repository pattern for data access.
This abstracts away the specific data store (Cosmos DB, in-memory, etc.)
and provides a clean interface for the workflow layer.

Key principles:
- Repositories handle CRUD operations only
- No business logic in repositories
- Return domain objects, not raw dicts
- Status transitions go through save_if_status so that concurrent
  writers cannot both apply the same transition
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict, Generic, Iterable, List, Optional, TypeVar

# Type variable for entity types
T = TypeVar("T")


@dataclass
class QueryOptions:
    """Options for repository queries."""
    limit: int = 100
    offset: int = 0
    order_by: Optional[str] = None
    order_desc: bool = False
    filters: Dict[str, Any] = field(default_factory=dict)


@dataclass
class QueryResult(Generic[T]):
    """Result of a repository query with pagination info."""
    data: List[T]
    total_count: int
    has_more: bool
    next_offset: Optional[int] = None


class Repository(ABC, Generic[T]):
    """
    Abstract base class for repositories.

    A Repository provides data access methods for a specific entity type.
    It abstracts the underlying data store and provides a consistent interface.

    Type parameter T represents the entity type this repository manages.
    Entities are expected to expose ``id`` and ``status`` attributes.
    """

    @abstractmethod
    def get_by_id(self, id: str) -> Optional[T]:
        """
        Get an entity by its ID.

        Args:
            id: The entity's unique identifier

        Returns:
            The entity if found, None otherwise
        """
        pass

    @abstractmethod
    def find(self, options: Optional[QueryOptions] = None) -> QueryResult[T]:
        """
        Find entities matching the query options.

        Filters are equality matches on entity attributes.
        """
        pass

    @abstractmethod
    def save(self, entity: T) -> T:
        """
        Save an entity (create or update) unconditionally.

        Returns:
            The saved entity
        """
        pass

    @abstractmethod
    def save_if_status(self, entity: T, expected_statuses: Iterable[Any]) -> bool:
        """
        Replace a stored entity only while its current status is one of
        ``expected_statuses``.

        This is the conditional update used for state transitions. It must
        be atomic with respect to other writers of the same entity.

        Returns:
            True if the entity was written, False if the stored status no
            longer matched (or the entity does not exist)
        """
        pass

    @abstractmethod
    def delete(self, id: str) -> bool:
        """
        Delete an entity by ID.

        Returns:
            True if deleted, False if not found
        """
        pass

    def find_all(self, **filters: Any) -> List[T]:
        """Convenience wrapper around find() returning just the entities."""
        return self.find(QueryOptions(filters=filters, limit=1000)).data


def paginate(items: List[T], options: QueryOptions) -> QueryResult[T]:
    """Apply offset/limit to an already filtered and sorted list."""
    total = len(items)
    page = items[options.offset:options.offset + options.limit]
    next_offset = options.offset + len(page)
    has_more = next_offset < total
    return QueryResult(
        data=page,
        total_count=total,
        has_more=has_more,
        next_offset=next_offset if has_more else None,
    )
