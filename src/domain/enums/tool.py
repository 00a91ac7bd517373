"""Tool and tool-call related enumerations."""

from enum import Enum


class ToolCallStatus(str, Enum):
    """Lifecycle status of a tool call execution.

    An execution starts PENDING and moves to exactly one terminal status.
    """

    PENDING = "pending"  # Call fully received, not yet settled
    COMPLETED = "completed"  # Invoker returned a result
    FAILED = "failed"  # Invoker raised or tool could not be resolved


class HttpMethod(str, Enum):
    """HTTP methods a tool request template may use."""

    GET = "GET"
    POST = "POST"
    PUT = "PUT"
    DELETE = "DELETE"
    PATCH = "PATCH"

    @property
    def carries_body(self) -> bool:
        """Whether leftover arguments travel as a JSON body; GET and DELETE send them as query parameters."""
        return self in (HttpMethod.POST, HttpMethod.PUT, HttpMethod.PATCH)
