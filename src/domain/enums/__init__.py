"""Domain enumerations package.

This package contains all enumerations used across the domain layer,
organized into logical modules for maintainability.
"""

from .message import MessageRole
from .tool import HttpMethod, ToolCallStatus

__all__ = [
    # Message enums
    "MessageRole",
    # Tool enums
    "ToolCallStatus",
    "HttpMethod",
]
