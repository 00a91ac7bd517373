"""Tool definitions and tool-call value objects.

A Tool pairs an OpenAI-style function schema (what the model sees) with an
optional HTTP request template (how the call is executed). Tools without a
request template are simulated.
"""

from dataclasses import dataclass, field
from typing import Any, Optional

from domain.enums import HttpMethod, ToolCallStatus

from .identifiers import generate_id, now_ms


@dataclass(frozen=True)
class HttpHeader:
    """A single header entry; keys are matched case-sensitively."""

    key: str
    value: str

    def to_dict(self) -> dict[str, str]:
        return {"key": self.key, "value": self.value}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "HttpHeader":
        return cls(key=str(data.get("key", "")), value=str(data.get("value", "")))


def headers_from_list(items: Optional[list[dict[str, Any]]]) -> tuple[HttpHeader, ...]:
    """Deserialize a stored header list, skipping entries without a key."""
    return tuple(HttpHeader.from_dict(item) for item in items or [] if item.get("key"))


@dataclass(frozen=True)
class HttpRequestConfig:
    """HTTP request template bound to a tool.

    The url and header values may contain `{param}` placeholders that are
    filled from the tool call arguments.
    """

    method: HttpMethod
    url: str
    headers: tuple[HttpHeader, ...] = ()

    def to_dict(self) -> dict[str, Any]:
        return {
            "method": self.method.value,
            "url": self.url,
            "headers": [header.to_dict() for header in self.headers],
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "HttpRequestConfig":
        return cls(
            method=HttpMethod(str(data.get("method", "GET")).upper()),
            url=data["url"],
            headers=headers_from_list(data.get("headers")),
        )


@dataclass(frozen=True)
class Tool:
    """A callable function exposed to the model.

    Invariant: schema["function"]["name"] is the name the model is given and
    is matched back to this tool by exact comparison.
    """

    id: str
    name: str
    description: str
    schema: dict[str, Any]
    http_request: Optional[HttpRequestConfig] = None
    tag: Optional[str] = None
    created_at: int = field(default_factory=now_ms)
    updated_at: int = field(default_factory=now_ms)

    @property
    def function_name(self) -> str:
        """The function name the model will use to call this tool."""
        return self.schema.get("function", {}).get("name") or self.name

    @classmethod
    def create(
        cls,
        name: str,
        description: str,
        parameters: Optional[dict[str, Any]] = None,
        http_request: Optional[HttpRequestConfig] = None,
        tag: Optional[str] = None,
        tool_id: Optional[str] = None,
    ) -> "Tool":
        """Create a tool whose schema is derived from name, description and parameters."""
        schema = {
            "type": "function",
            "function": {
                "name": name,
                "description": description,
                "parameters": parameters or {"type": "object", "properties": {}, "required": []},
            },
        }
        return cls(
            id=tool_id or generate_id(),
            name=name,
            description=description,
            schema=schema,
            http_request=http_request,
            tag=tag or None,
        )

    def to_dict(self) -> dict[str, Any]:
        """Serialize to dictionary for storage."""
        data: dict[str, Any] = {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "schema": self.schema,
            "createdAt": self.created_at,
            "updatedAt": self.updated_at,
        }
        if self.http_request is not None:
            data["httpRequest"] = self.http_request.to_dict()
        if self.tag:
            data["tag"] = self.tag
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Tool":
        """Deserialize from dictionary."""
        http_request = data.get("httpRequest")
        return cls(
            id=data["id"],
            name=data["name"],
            description=data.get("description", ""),
            schema=data["schema"],
            http_request=HttpRequestConfig.from_dict(http_request) if http_request and http_request.get("url") else None,
            tag=data.get("tag") or None,
            created_at=data.get("createdAt", now_ms()),
            updated_at=data.get("updatedAt", now_ms()),
        )


@dataclass(frozen=True)
class FunctionCall:
    """Function name plus raw JSON-encoded arguments, exactly as the model sent them."""

    name: str
    arguments: str


@dataclass(frozen=True)
class ToolCall:
    """A complete, model-emitted request to invoke a named function."""

    id: str
    function: FunctionCall
    type: str = "function"

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "type": self.type,
            "function": {"name": self.function.name, "arguments": self.function.arguments},
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ToolCall":
        function = data.get("function") or {}
        return cls(
            id=data["id"],
            type=data.get("type", "function"),
            function=FunctionCall(name=function.get("name", ""), arguments=function.get("arguments", "")),
        )


@dataclass
class ToolCallExecution:
    """Tracks one tool call from detection to settlement.

    Created PENDING; complete() or fail() settles it exactly once.
    """

    id: str
    tool_call: ToolCall
    status: ToolCallStatus = ToolCallStatus.PENDING
    result: Optional[str] = None
    error: Optional[str] = None
    timestamp: int = field(default_factory=now_ms)

    @classmethod
    def pending(cls, tool_call: ToolCall) -> "ToolCallExecution":
        return cls(id=tool_call.id, tool_call=tool_call)

    @property
    def is_settled(self) -> bool:
        return self.status != ToolCallStatus.PENDING

    def complete(self, result: str) -> None:
        self._ensure_pending()
        self.status = ToolCallStatus.COMPLETED
        self.result = result
        self.timestamp = now_ms()

    def fail(self, error: str) -> None:
        self._ensure_pending()
        self.status = ToolCallStatus.FAILED
        self.error = error
        self.timestamp = now_ms()

    def _ensure_pending(self) -> None:
        if self.is_settled:
            raise ValueError(f"Tool call execution {self.id} already settled as {self.status.value}")

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "id": self.id,
            "toolCall": self.tool_call.to_dict(),
            "status": self.status.value,
            "timestamp": self.timestamp,
        }
        if self.result is not None:
            data["result"] = self.result
        if self.error is not None:
            data["error"] = self.error
        return data
