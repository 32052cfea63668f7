"""
Base interface for collection stores using Adapter Pattern
"""
from abc import ABC, abstractmethod
from typing import Dict, Any, List


class CollectionStore(ABC):
    """
    Abstract base class for collection stores

    The migration tool only needs to count, page through and partially
    update records, so this is all a backend has to provide. Records are
    returned as plain dictionaries keyed by column name and must contain
    an "id" key.
    """

    def __init__(self, **kwargs):
        """
        Initialize store

        Args:
            **kwargs: Backend-specific connection parameters
        """
        self.config = kwargs

    @abstractmethod
    async def connect(self):
        """Establish connection"""
        pass

    @abstractmethod
    async def disconnect(self):
        """Close connection"""
        pass

    @abstractmethod
    async def health_check(self) -> bool:
        """
        Check connectivity

        Returns:
            True if the store is accessible, False otherwise
        """
        pass

    @abstractmethod
    async def count(self, collection: str) -> int:
        """
        Count records in a collection

        Args:
            collection: Collection (table) name

        Returns:
            Number of records
        """
        pass

    @abstractmethod
    async def fetch_batch(
        self,
        collection: str,
        offset: int,
        limit: int
    ) -> List[Dict[str, Any]]:
        """
        Fetch one page of records in a stable order

        Args:
            collection: Collection (table) name
            offset: Number of records to skip
            limit: Maximum number of records

        Returns:
            List of records ordered by id
        """
        pass

    @abstractmethod
    async def update_fields(
        self,
        collection: str,
        record_id: Any,
        fields: Dict[str, Any]
    ) -> None:
        """
        Partially update one record

        Args:
            collection: Collection (table) name
            record_id: Record id
            fields: Only the columns to change
        """
        pass
