"""Model provider catalog entries and selectable models."""

from dataclasses import dataclass
from typing import Any


@dataclass(frozen=True)
class ModelProvider:
    """A known chat-completion provider.

    `client` names the wire-protocol variant used to talk to it.
    """

    name: str
    endpoint: str
    models: tuple[str, ...]
    default_model: str
    requires_api_key: bool = True
    docs_link: str = ""
    client: str = "openai"


@dataclass(frozen=True)
class AvailableModel:
    """A provider/model pair the user has enabled."""

    provider: str
    model: str
    display_name: str = ""

    @property
    def id(self) -> str:
        return f"{self.provider}-{self.model}"

    @property
    def label(self) -> str:
        """Name shown in model pickers."""
        return self.display_name or self.model

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "provider": self.provider,
            "model": self.model,
            "displayName": self.display_name,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "AvailableModel":
        return cls(provider=data["provider"], model=data["model"], display_name=data.get("displayName", ""))
