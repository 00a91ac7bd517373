"""Domain repositories package.

Contains the abstract storage interface. Implementations are in
src/infrastructure/repositories/.
"""

from .playground_repository import PlaygroundRepository, StoreCollection

__all__: list[str] = [
    "PlaygroundRepository",
    "StoreCollection",
]
