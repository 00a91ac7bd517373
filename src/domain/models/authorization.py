"""Authorization value object: a reusable, optionally tag-scoped header set."""

from dataclasses import dataclass, field, replace
from typing import Any, Optional

from .identifiers import generate_id, now_ms
from .tool import HttpHeader, headers_from_list


@dataclass(frozen=True)
class Authorization:
    """Named set of HTTP headers (typically credentials).

    At most one authorization per tag group (including the untagged group)
    may be the default for that group.
    """

    id: str
    name: str
    headers: tuple[HttpHeader, ...] = ()
    tag: Optional[str] = None
    is_default_in_tag: bool = False
    created_at: int = field(default_factory=now_ms)
    updated_at: int = field(default_factory=now_ms)

    @classmethod
    def create(
        cls,
        name: str,
        headers: dict[str, str],
        tag: Optional[str] = None,
        is_default_in_tag: bool = False,
    ) -> "Authorization":
        return cls(
            id=generate_id(),
            name=name,
            headers=tuple(HttpHeader(key=key, value=value) for key, value in headers.items()),
            tag=tag or None,
            is_default_in_tag=is_default_in_tag,
        )

    def in_group(self, tag: Optional[str]) -> bool:
        """Whether this authorization belongs to the given tag group (None is the untagged group)."""
        return (self.tag or None) == (tag or None)

    def with_default(self, is_default: bool) -> "Authorization":
        return replace(self, is_default_in_tag=is_default, updated_at=now_ms())

    def to_dict(self) -> dict[str, Any]:
        """Serialize to dictionary for storage."""
        data: dict[str, Any] = {
            "id": self.id,
            "name": self.name,
            "headers": [header.to_dict() for header in self.headers],
            "isDefaultInTag": self.is_default_in_tag,
            "createdAt": self.created_at,
            "updatedAt": self.updated_at,
        }
        if self.tag:
            data["tag"] = self.tag
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Authorization":
        """Deserialize from dictionary."""
        return cls(
            id=data["id"],
            name=data.get("name", ""),
            headers=headers_from_list(data.get("headers")),
            tag=data.get("tag") or None,
            is_default_in_tag=bool(data.get("isDefaultInTag", False)),
            created_at=data.get("createdAt", now_ms()),
            updated_at=data.get("updatedAt", now_ms()),
        )
