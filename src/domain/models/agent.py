"""Agent definition and its tool bindings.

Agents stored by older versions reference tools as a plain list of ids
(`tools`). Newer records carry `toolBindings`, which can also pin an
authorization per tool. Both formats are normalized into ToolBinding when
the record is read, so nothing downstream branches on the format.
"""

from dataclasses import dataclass, field, replace
from typing import Any, Optional

from .identifiers import generate_id, now_ms


@dataclass(frozen=True)
class ToolBinding:
    """Association of a tool with an optional explicitly selected authorization."""

    tool_id: str
    authorization_id: Optional[str] = None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"toolId": self.tool_id}
        if self.authorization_id:
            data["authorizationId"] = self.authorization_id
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ToolBinding":
        return cls(tool_id=data["toolId"], authorization_id=data.get("authorizationId") or None)


def normalize_tool_bindings(data: dict[str, Any]) -> tuple[ToolBinding, ...]:
    """Read tool references from a stored agent record.

    `toolBindings` wins when present; otherwise each legacy `tools` id
    becomes a binding with no authorization selected.
    """
    bindings = data.get("toolBindings")
    if bindings is not None:
        return tuple(ToolBinding.from_dict(binding) for binding in bindings)
    return tuple(ToolBinding(tool_id=tool_id) for tool_id in data.get("tools") or [])


@dataclass(frozen=True)
class Agent:
    """A reusable persona: system prompt plus a set of bound tools."""

    id: str
    name: str
    description: str = ""
    system_prompt: str = ""
    tool_bindings: tuple[ToolBinding, ...] = ()
    order: Optional[int] = None
    created_at: int = field(default_factory=now_ms)
    updated_at: int = field(default_factory=now_ms)

    @property
    def tool_ids(self) -> list[str]:
        return [binding.tool_id for binding in self.tool_bindings]

    @classmethod
    def create(cls, name: str, system_prompt: str = "", description: str = "", tool_bindings: Optional[list[ToolBinding]] = None) -> "Agent":
        return cls(
            id=generate_id(),
            name=name,
            description=description,
            system_prompt=system_prompt,
            tool_bindings=tuple(tool_bindings or ()),
        )

    def binding_for(self, tool_id: str) -> Optional[ToolBinding]:
        for binding in self.tool_bindings:
            if binding.tool_id == tool_id:
                return binding
        return None

    def remove_tool(self, tool_id: str) -> "Agent":
        """Return a copy of this agent without any binding to tool_id."""
        remaining = tuple(binding for binding in self.tool_bindings if binding.tool_id != tool_id)
        return replace(self, tool_bindings=remaining, updated_at=now_ms())

    def to_dict(self) -> dict[str, Any]:
        """Serialize to dictionary for storage.

        Both formats are written so that older readers keep working.
        """
        data: dict[str, Any] = {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "systemPrompt": self.system_prompt,
            "tools": self.tool_ids,
            "toolBindings": [binding.to_dict() for binding in self.tool_bindings],
            "createdAt": self.created_at,
            "updatedAt": self.updated_at,
        }
        if self.order is not None:
            data["order"] = self.order
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Agent":
        """Deserialize from dictionary, normalizing legacy tool references."""
        return cls(
            id=data["id"],
            name=data.get("name", ""),
            description=data.get("description", ""),
            system_prompt=data.get("systemPrompt", ""),
            tool_bindings=normalize_tool_bindings(data),
            order=data.get("order"),
            created_at=data.get("createdAt", now_ms()),
            updated_at=data.get("updatedAt", now_ms()),
        )
