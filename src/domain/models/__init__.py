"""Domain models for the agent playground.

Records owned by the storage collaborator (sessions, agents, tools,
authorizations) and the value objects the orchestrator passes around.
Everything that represents stored state is a frozen dataclass; the engine
produces new instances instead of mutating existing ones.
"""

from .agent import Agent, ToolBinding, normalize_tool_bindings
from .api_config import ApiConfig
from .authorization import Authorization
from .chat_session import ChatSession
from .identifiers import generate_id, now_ms
from .message import Message
from .provider import AvailableModel, ModelProvider
from .tool import FunctionCall, HttpHeader, HttpRequestConfig, Tool, ToolCall, ToolCallExecution

__all__ = [
    "Agent",
    "ApiConfig",
    "Authorization",
    "AvailableModel",
    "ChatSession",
    "FunctionCall",
    "HttpHeader",
    "HttpRequestConfig",
    "Message",
    "ModelProvider",
    "Tool",
    "ToolBinding",
    "ToolCall",
    "ToolCallExecution",
    "generate_id",
    "normalize_tool_bindings",
    "now_ms",
]
