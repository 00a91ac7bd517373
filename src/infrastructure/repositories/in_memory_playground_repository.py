"""In-memory implementation of PlaygroundRepository."""

import copy
from typing import Any, Optional

from domain.repositories import PlaygroundRepository, StoreCollection


class InMemoryPlaygroundRepository(PlaygroundRepository):
    """In-memory implementation of PlaygroundRepository for development and testing.

    Records are deep-copied on the way in and out so callers never share
    mutable state with the store.
    """

    def __init__(self) -> None:
        self._collections: dict[StoreCollection, dict[str, dict[str, Any]]] = {collection: {} for collection in StoreCollection}

    async def get_async(self, collection: StoreCollection, key: str) -> Optional[dict[str, Any]]:
        """Retrieve one record by key."""
        record = self._collections[collection].get(key)
        return copy.deepcopy(record) if record is not None else None

    async def put_async(self, collection: StoreCollection, key: str, value: dict[str, Any]) -> None:
        """Insert or replace a record."""
        self._collections[collection][key] = copy.deepcopy(value)

    async def delete_async(self, collection: StoreCollection, key: str) -> bool:
        """Delete a record by key."""
        if key in self._collections[collection]:
            del self._collections[collection][key]
            return True
        return False

    async def list_async(self, collection: StoreCollection) -> list[dict[str, Any]]:
        """Retrieve all records of a collection."""
        return [copy.deepcopy(record) for record in self._collections[collection].values()]
