"""
In-memory collection store
"""
import copy
from typing import Dict, Any, List, Optional

from .base import CollectionStore


class InMemoryStore(CollectionStore):
    """
    Collection store backed by dictionaries

    Useful for rehearsing a migration against exported data and for tests.
    Records are copied on read and write so callers never share state with
    the store.
    """

    def __init__(self, collections: Optional[Dict[str, List[Dict[str, Any]]]] = None, **kwargs):
        super().__init__(**kwargs)
        self.collections: Dict[str, List[Dict[str, Any]]] = {
            name: copy.deepcopy(records) for name, records in (collections or {}).items()
        }
        self.update_calls: List[tuple] = []

    async def connect(self):
        pass

    async def disconnect(self):
        pass

    async def health_check(self) -> bool:
        return True

    def _records(self, collection: str) -> List[Dict[str, Any]]:
        try:
            return self.collections[collection]
        except KeyError:
            raise LookupError(f"Unknown collection: {collection}")

    async def count(self, collection: str) -> int:
        return len(self._records(collection))

    async def fetch_batch(
        self,
        collection: str,
        offset: int,
        limit: int
    ) -> List[Dict[str, Any]]:
        ordered = sorted(self._records(collection), key=lambda record: record["id"])
        return copy.deepcopy(ordered[offset:offset + limit])

    async def update_fields(
        self,
        collection: str,
        record_id: Any,
        fields: Dict[str, Any]
    ) -> None:
        for record in self._records(collection):
            if record["id"] == record_id:
                record.update(copy.deepcopy(fields))
                self.update_calls.append((collection, record_id, dict(fields)))
                return
        raise LookupError(f"No record {record_id!r} in {collection}")
