"""Transcript message value object.

Messages are immutable once appended to a session transcript. An assistant
reply that is still streaming lives in the orchestrator's buffer and only
becomes a Message when it is committed.
"""

from dataclasses import dataclass, field
from typing import Any, Optional

from domain.enums import MessageRole

from .identifiers import generate_id, now_ms
from .tool import ToolCall


@dataclass(frozen=True)
class Message:
    """A single chat-completion message plus playground metadata."""

    id: str
    role: MessageRole
    content: str
    timestamp: int = field(default_factory=now_ms)

    # Tool result linkage
    tool_call_id: Optional[str] = None
    name: Optional[str] = None

    # Failure marking
    error: Optional[str] = None
    can_retry: bool = False

    # Assistant metadata
    tool_calls: tuple[ToolCall, ...] = ()
    incomplete: bool = False
    reasoning_content: Optional[str] = None
    usage: Optional[dict[str, Any]] = None
    provider: Optional[str] = None
    model: Optional[str] = None

    @property
    def has_tool_calls(self) -> bool:
        return len(self.tool_calls) > 0

    @classmethod
    def system(cls, content: str) -> "Message":
        return cls(id=generate_id(), role=MessageRole.SYSTEM, content=content)

    @classmethod
    def user(cls, content: str) -> "Message":
        return cls(id=generate_id(), role=MessageRole.USER, content=content)

    @classmethod
    def assistant(cls, content: str, **metadata: Any) -> "Message":
        return cls(id=generate_id(), role=MessageRole.ASSISTANT, content=content, **metadata)

    @classmethod
    def tool_result(cls, tool_call_id: str, name: str, content: str) -> "Message":
        return cls(id=generate_id(), role=MessageRole.TOOL, content=content, tool_call_id=tool_call_id, name=name)

    def to_wire(self) -> dict[str, Any]:
        """Render the chat-completion request representation of this message."""
        payload: dict[str, Any] = {"role": self.role.value, "content": self.content}
        if self.role == MessageRole.TOOL:
            payload["tool_call_id"] = self.tool_call_id
            payload["name"] = self.name
        if self.role == MessageRole.ASSISTANT and self.tool_calls:
            payload["tool_calls"] = [call.to_dict() for call in self.tool_calls]
        return payload

    def to_dict(self) -> dict[str, Any]:
        """Serialize to dictionary for storage."""
        data: dict[str, Any] = {
            "id": self.id,
            "role": self.role.value,
            "content": self.content,
            "timestamp": self.timestamp,
        }
        optional = {
            "tool_call_id": self.tool_call_id,
            "name": self.name,
            "error": self.error,
            "reasoningContent": self.reasoning_content,
            "usage": self.usage,
            "provider": self.provider,
            "model": self.model,
        }
        data.update({key: value for key, value in optional.items() if value is not None})
        if self.can_retry:
            data["canRetry"] = True
        if self.incomplete:
            data["incomplete"] = True
        if self.tool_calls:
            data["toolCalls"] = [call.to_dict() for call in self.tool_calls]
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Message":
        """Deserialize from dictionary."""
        return cls(
            id=data["id"],
            role=MessageRole(data["role"]),
            content=data.get("content") or "",
            timestamp=data.get("timestamp", now_ms()),
            tool_call_id=data.get("tool_call_id"),
            name=data.get("name"),
            error=data.get("error"),
            can_retry=bool(data.get("canRetry", False)),
            tool_calls=tuple(ToolCall.from_dict(call) for call in data.get("toolCalls") or []),
            incomplete=bool(data.get("incomplete", False)),
            reasoning_content=data.get("reasoningContent"),
            usage=data.get("usage"),
            provider=data.get("provider"),
            model=data.get("model"),
        )
