"""Application services package.

Contains the conversation engine and the services around it.
"""

from . import authorization_resolver
from .cancellation import CancellationToken
from .chat_service import ChatService, SessionNotFoundError
from .conversation_orchestrator import ConversationOrchestrator, TurnEvent, TurnEventType, TurnRequest, TurnResult, TurnState
from .logger import configure_logging
from .model_availability import ModelAvailability, api_config_for
from .tool_call_accumulator import PartialToolCall, ToolCallAccumulator
from .tool_invoker import PreparedToolRequest, ToolExecutionError, ToolExecutionErrorKind, ToolInvoker, stringify_result

__all__ = [
    "authorization_resolver",
    "configure_logging",
    "CancellationToken",
    "ChatService",
    "SessionNotFoundError",
    "ConversationOrchestrator",
    "TurnEvent",
    "TurnEventType",
    "TurnRequest",
    "TurnResult",
    "TurnState",
    "ModelAvailability",
    "api_config_for",
    "PartialToolCall",
    "ToolCallAccumulator",
    "PreparedToolRequest",
    "ToolExecutionError",
    "ToolExecutionErrorKind",
    "ToolInvoker",
    "stringify_result",
]
