"""Storage implementations."""

from .in_memory_playground_repository import InMemoryPlaygroundRepository

__all__ = ["InMemoryPlaygroundRepository"]
