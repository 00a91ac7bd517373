"""Conversation message enumerations."""

from enum import Enum


class MessageRole(str, Enum):
    """Role of a message in a chat-completion transcript."""

    SYSTEM = "system"
    USER = "user"
    ASSISTANT = "assistant"
    TOOL = "tool"
