"""Observability utilities and metrics."""

from .metrics import (provider_errors, provider_request_count, provider_request_time, provider_tool_call_deltas, tool_execution_failures,  # Provider metrics; Tool metrics; Turn metrics
                      tool_execution_time, tool_executions, turn_iterations, turn_processing_time, turns_completed)

__all__ = [
    # Provider metrics
    "provider_request_count",
    "provider_request_time",
    "provider_errors",
    "provider_tool_call_deltas",
    # Tool metrics
    "tool_executions",
    "tool_execution_failures",
    "tool_execution_time",
    # Turn metrics
    "turns_completed",
    "turn_iterations",
    "turn_processing_time",
]
