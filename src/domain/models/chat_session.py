"""Chat session record: a transcript plus the agent/tool selection it runs with."""

from dataclasses import dataclass, field, replace
from typing import Any, Iterable, Optional

from .identifiers import generate_id, now_ms
from .message import Message


@dataclass(frozen=True)
class ChatSession:
    id: str
    name: str
    messages: tuple[Message, ...] = ()
    agent_id: Optional[str] = None
    tool_ids: tuple[str, ...] = ()
    system_prompt: Optional[str] = None
    created_at: int = field(default_factory=now_ms)
    updated_at: int = field(default_factory=now_ms)

    @classmethod
    def create(cls, name: str = "New conversation", agent_id: Optional[str] = None, tool_ids: Iterable[str] = (), system_prompt: Optional[str] = None) -> "ChatSession":
        return cls(id=generate_id(), name=name, agent_id=agent_id, tool_ids=tuple(tool_ids), system_prompt=system_prompt)

    def with_messages(self, messages: Iterable[Message]) -> "ChatSession":
        return replace(self, messages=tuple(messages), updated_at=now_ms())

    def append(self, messages: Iterable[Message]) -> "ChatSession":
        return self.with_messages((*self.messages, *messages))

    def index_of(self, message_id: str) -> int:
        for index, message in enumerate(self.messages):
            if message.id == message_id:
                return index
        raise KeyError(f"Message {message_id} not found in session {self.id}")

    def to_dict(self) -> dict[str, Any]:
        """Serialize to dictionary for storage."""
        data: dict[str, Any] = {
            "id": self.id,
            "name": self.name,
            "messages": [message.to_dict() for message in self.messages],
            "toolIds": list(self.tool_ids),
            "createdAt": self.created_at,
            "updatedAt": self.updated_at,
        }
        if self.agent_id:
            data["agentId"] = self.agent_id
        if self.system_prompt:
            data["systemPrompt"] = self.system_prompt
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ChatSession":
        """Deserialize from dictionary."""
        return cls(
            id=data["id"],
            name=data.get("name", ""),
            messages=tuple(Message.from_dict(message) for message in data.get("messages") or []),
            agent_id=data.get("agentId") or None,
            tool_ids=tuple(data.get("toolIds") or ()),
            system_prompt=data.get("systemPrompt") or None,
            created_at=data.get("createdAt", now_ms()),
            updated_at=data.get("updatedAt", now_ms()),
        )
