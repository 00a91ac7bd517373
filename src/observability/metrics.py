"""Business metrics for the agent playground engine.

Defines OpenTelemetry metrics for:
- Provider requests: chat-completion calls to model APIs
- Tool executions: simulated and HTTP-backed tool invocations
- Turns: user submissions driven through the conversation orchestrator
"""

from opentelemetry import metrics

meter = metrics.get_meter(__name__)

# =============================================================================
# PROVIDER METRICS
# =============================================================================

provider_request_count = meter.create_counter(
    name="playground.provider.requests",
    description="Total chat-completion requests sent to providers",
    unit="1",
)

provider_request_time = meter.create_histogram(
    name="playground.provider.request_time",
    description="Time until a provider request completed or its stream ended",
    unit="ms",
)

provider_errors = meter.create_counter(
    name="playground.provider.errors",
    description="Total provider requests that failed",
    unit="1",
)

provider_tool_call_deltas = meter.create_counter(
    name="playground.provider.tool_call_deltas",
    description="Total tool-call fragments relayed from provider streams",
    unit="1",
)

# =============================================================================
# TOOL METRICS
# =============================================================================

tool_executions = meter.create_counter(
    name="playground.tool.executions",
    description="Total tool invocations",
    unit="1",
)

tool_execution_failures = meter.create_counter(
    name="playground.tool.execution_failures",
    description="Total tool invocations that failed",
    unit="1",
)

tool_execution_time = meter.create_histogram(
    name="playground.tool.execution_time",
    description="Time to execute a tool call",
    unit="ms",
)

# =============================================================================
# TURN METRICS
# =============================================================================

turns_completed = meter.create_counter(
    name="playground.turns.completed",
    description="Total turns that reached a terminal state, by state",
    unit="1",
)

turn_iterations = meter.create_histogram(
    name="playground.turn.iterations",
    description="Model round-trips used per turn",
    unit="1",
)

turn_processing_time = meter.create_histogram(
    name="playground.turn.processing_time",
    description="Wall-clock time of a turn from submit to terminal state",
    unit="ms",
)
