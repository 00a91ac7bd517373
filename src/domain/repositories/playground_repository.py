"""Abstract key-value repository for playground records."""

from abc import ABC, abstractmethod
from enum import Enum
from typing import Any, Optional


class StoreCollection(str, Enum):
    """Named collections held by the playground store."""

    SESSIONS = "sessions"
    AGENTS = "agents"
    TOOLS = "tools"
    AUTHORIZATIONS = "authorizations"
    PROVIDER_CONFIGS = "provider_configs"
    AVAILABLE_MODELS = "available_models"


class PlaygroundRepository(ABC):
    """Async key-value storage for sessions, agents, tools and related records.

    Records are stored in their serialized (dictionary) form; callers convert
    with the domain models' to_dict/from_dict. The conversation engine only
    reads from this repository; persisting turn results is left to its caller.
    """

    @abstractmethod
    async def get_async(self, collection: StoreCollection, key: str) -> Optional[dict[str, Any]]:
        """Retrieve one record by key, or None when absent."""
        pass

    @abstractmethod
    async def put_async(self, collection: StoreCollection, key: str, value: dict[str, Any]) -> None:
        """Insert or replace a record."""
        pass

    @abstractmethod
    async def delete_async(self, collection: StoreCollection, key: str) -> bool:
        """Delete a record. Returns False when the key did not exist."""
        pass

    @abstractmethod
    async def list_async(self, collection: StoreCollection) -> list[dict[str, Any]]:
        """Retrieve all records of a collection in insertion order."""
        pass
