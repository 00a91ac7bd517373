"""Conversation orchestrator driving one user turn.

A turn moves through these states:

    Idle -> Sending -> StreamingAssistant -> {ToolDispatch <-> Sending} -> Done

Cancelled and Errored are reachable from any state after Idle.

Loop:
1. Send system prompt + history + new messages, with the active tool schemas
2. Forward content deltas to the caller while accumulating tool-call fragments
3. If the model asked for tools, execute them concurrently and append results in call order
4. Repeat until the model answers without tool calls or the iteration cap is reached

The orchestrator never writes to storage. It returns the messages it
appended so the caller can persist them.
"""

import asyncio
import logging
import time
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, AsyncIterator, Awaitable, Callable, Iterable, Optional

from opentelemetry import trace

from application.clients import ChatClient, ConfigError, ProviderError
from domain.enums import MessageRole
from domain.models import ApiConfig, Authorization, Message, Tool, ToolBinding, ToolCall, ToolCallExecution, now_ms
from observability import turn_iterations, turn_processing_time, turns_completed

from . import authorization_resolver
from .cancellation import CancellationToken
from .tool_call_accumulator import ToolCallAccumulator
from .tool_invoker import ToolExecutionError, ToolExecutionErrorKind, ToolInvoker

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)

ChatClientProvider = Callable[[ApiConfig, Optional[str]], ChatClient]

DEFAULT_TOOL_FINISH_REASONS = ("tool_calls", "function_call")

_STREAM_END = object()


class TurnState(str, Enum):
    """States of a conversation turn."""

    IDLE = "idle"
    SENDING = "sending"
    STREAMING_ASSISTANT = "streaming_assistant"
    TOOL_DISPATCH = "tool_dispatch"
    DONE = "done"
    CANCELLED = "cancelled"
    ERRORED = "errored"

    @property
    def is_terminal(self) -> bool:
        return self in (TurnState.DONE, TurnState.CANCELLED, TurnState.ERRORED)


class TurnEventType(str, Enum):
    """Types of events emitted while a turn runs."""

    STATE_CHANGED = "state_changed"
    CONTENT_DELTA = "content_delta"
    REASONING_DELTA = "reasoning_delta"
    TOOL_CALL_DELTA = "tool_call_delta"
    MESSAGE_APPENDED = "message_appended"
    TOOL_EXECUTION_STARTED = "tool_execution_started"
    TOOL_EXECUTION_COMPLETED = "tool_execution_completed"
    TOOL_EXECUTION_FAILED = "tool_execution_failed"
    TURN_COMPLETED = "turn_completed"


@dataclass
class TurnEvent:
    """An event emitted during a turn.

    Attributes:
        type: The event type
        data: Event-specific payload
        iteration: Model round-trip the event belongs to (0 before the first)
        timestamp: Epoch milliseconds when the event was created
    """

    type: TurnEventType
    data: dict[str, Any] = field(default_factory=dict)
    iteration: int = 0
    timestamp: int = field(default_factory=now_ms)


@dataclass(frozen=True)
class TurnRequest:
    """Read-only snapshot of everything a turn needs.

    Attributes:
        api_config: Provider configuration used for every round-trip of the turn
        history: Transcript before this turn
        user_message: New user message; None regenerates from history (retry)
        provider_name: Catalog provider name, defaults to api_config.provider
        tools: Active tool set; empty means no `tools` field is sent
        bindings: Agent tool bindings (explicit authorization choices)
        authorizations: All known authorizations
        session_system_prompt: Session level override
        agent_system_prompt: Agent system prompt
    """

    api_config: ApiConfig
    history: tuple[Message, ...] = ()
    user_message: Optional[Message] = None
    provider_name: Optional[str] = None
    tools: tuple[Tool, ...] = ()
    bindings: tuple[ToolBinding, ...] = ()
    authorizations: tuple[Authorization, ...] = ()
    session_system_prompt: Optional[str] = None
    agent_system_prompt: Optional[str] = None

    @property
    def system_prompt(self) -> str:
        """First non-empty of session override, agent prompt and configured default."""
        for candidate in (self.session_system_prompt, self.agent_system_prompt, self.api_config.system_prompt):
            if candidate and candidate.strip():
                return candidate
        return ""


@dataclass
class TurnResult:
    """Outcome of a turn.

    Attributes:
        final_state: DONE, CANCELLED or ERRORED
        messages: Messages appended during the turn, in order (user message included)
        executions: Tool call executions created during the turn
        iterations: Model round-trips performed
        incomplete: True when the turn stopped before a final answer
        error: Error text when the turn errored
        can_retry: Whether re-submitting the same user message may succeed
    """

    final_state: TurnState
    messages: list[Message] = field(default_factory=list)
    executions: list[ToolCallExecution] = field(default_factory=list)
    iterations: int = 0
    incomplete: bool = False
    error: Optional[str] = None
    can_retry: bool = False

    @property
    def final_message(self) -> Optional[Message]:
        for message in reversed(self.messages):
            if message.role == MessageRole.ASSISTANT:
                return message
        return None

    def to_dict(self) -> dict[str, Any]:
        return {
            "final_state": self.final_state.value,
            "messages": [message.to_dict() for message in self.messages],
            "executions": [execution.to_dict() for execution in self.executions],
            "iterations": self.iterations,
            "incomplete": self.incomplete,
            "error": self.error,
            "can_retry": self.can_retry,
        }


@dataclass
class _Turn:
    request: TurnRequest
    state: TurnState = TurnState.IDLE
    appended: list[Message] = field(default_factory=list)
    executions: list[ToolCallExecution] = field(default_factory=list)
    iterations: int = 0
    started_at: float = field(default_factory=time.time)


@dataclass
class _RoundOutcome:
    accumulator: ToolCallAccumulator = field(default_factory=ToolCallAccumulator)
    content: str = ""
    reasoning: str = ""
    finish_reason: Optional[str] = None
    usage: Optional[dict[str, Any]] = None
    cancelled: bool = False


@dataclass
class _DispatchOutcome:
    tool_messages: list[Message] = field(default_factory=list)
    cancelled: bool = False


class ConversationOrchestrator:
    """Drives a single user turn through model round-trips and tool execution.

    Safety Features:
    - Iteration cap on model round-trips per turn
    - Bounded tool call concurrency
    - Cooperative cancellation checked between stream reads, before each
      round-trip and before each tool call starts

    Usage:
        orchestrator = ConversationOrchestrator(factory, ToolInvoker())
        async for event in orchestrator.run_turn(request, token):
            if event.type == TurnEventType.CONTENT_DELTA:
                print(event.data["content"], end="")
    """

    def __init__(
        self,
        client_factory: ChatClientProvider,
        tool_invoker: ToolInvoker,
        max_iterations: int = 10,
        max_parallel_tool_calls: int = 5,
        tool_finish_reasons: Iterable[str] = DEFAULT_TOOL_FINISH_REASONS,
    ) -> None:
        if max_iterations < 1:
            raise ValueError("max_iterations must be at least 1")
        self._client_factory = client_factory
        self._tool_invoker = tool_invoker
        self._max_iterations = max_iterations
        self._max_parallel_tool_calls = max(1, max_parallel_tool_calls)
        self._tool_finish_reasons = frozenset(tool_finish_reasons)
        # Tool calls still running after their turn was cancelled
        self._background_tasks: set[asyncio.Future] = set()

    @property
    def max_iterations(self) -> int:
        return self._max_iterations

    async def run(self, request: TurnRequest, cancellation: Optional[CancellationToken] = None) -> TurnResult:
        """Run a turn to completion and return its result, discarding intermediate events."""
        result: Optional[TurnResult] = None
        async for event in self.run_turn(request, cancellation):
            if event.type == TurnEventType.TURN_COMPLETED:
                result = event.data["result"]
        if result is None:
            raise RuntimeError("Turn ended without a result")
        return result

    async def run_turn(self, request: TurnRequest, cancellation: Optional[CancellationToken] = None) -> AsyncIterator[TurnEvent]:
        """Run a turn, yielding events as they happen.

        The last event is always TURN_COMPLETED carrying the TurnResult.

        Raises:
            ConfigError: Before any event, when the provider configuration is unusable
        """
        cancellation = cancellation or CancellationToken()
        turn = _Turn(request=request)

        client = self._client_factory(request.api_config, request.provider_name)
        client.validate_config()

        span = tracer.start_span("conversation_orchestrator.turn")
        span.set_attribute("turn.provider", client.provider_name)
        span.set_attribute("turn.model", request.api_config.model)
        span.set_attribute("turn.tools", len(request.tools))
        logger.info(f"🔄 Turn started: provider={client.provider_name}, model={request.api_config.model}, tools={len(request.tools)}, history={len(request.history)}")

        try:
            async with client:
                yield self._transition(turn, TurnState.SENDING)
                if request.user_message is not None:
                    yield self._append(turn, request.user_message)

                while True:
                    if cancellation.is_cancelled:
                        yield self._transition(turn, TurnState.CANCELLED)
                        yield self._complete(turn, incomplete=True)
                        return

                    turn.iterations += 1
                    if turn.state != TurnState.SENDING:
                        yield self._transition(turn, TurnState.SENDING)

                    outcome = _RoundOutcome()
                    try:
                        async for event in self._stream_round(client, turn, outcome, cancellation):
                            yield event
                    except (ProviderError, ConfigError) as e:
                        logger.error(f"Turn errored on iteration {turn.iterations}: {e.message}")
                        yield self._append(turn, self._assistant_message(turn, outcome, error=e.message))
                        yield self._transition(turn, TurnState.ERRORED)
                        yield self._complete(turn, incomplete=True, error=e.message, can_retry=True)
                        return

                    if outcome.cancelled:
                        if outcome.content or outcome.reasoning:
                            yield self._append(turn, self._assistant_message(turn, outcome, incomplete=True))
                        yield self._transition(turn, TurnState.CANCELLED)
                        yield self._complete(turn, incomplete=True)
                        return

                    tool_calls = outcome.accumulator.complete_calls()
                    if not tool_calls or not self._indicates_tool_use(outcome.finish_reason):
                        if tool_calls:
                            logger.warning(f"Ignoring {len(tool_calls)} tool call(s): finish reason '{outcome.finish_reason}' does not request tools")
                        yield self._append(turn, self._assistant_message(turn, outcome))
                        yield self._transition(turn, TurnState.DONE)
                        yield self._complete(turn)
                        return

                    cap_reached = turn.iterations >= self._max_iterations
                    yield self._append(turn, self._assistant_message(turn, outcome, tool_calls=tool_calls, incomplete=cap_reached))
                    yield self._transition(turn, TurnState.TOOL_DISPATCH)

                    dispatch = _DispatchOutcome()
                    async for event in self._dispatch(tool_calls, turn, dispatch, cancellation):
                        yield event

                    if dispatch.cancelled:
                        yield self._transition(turn, TurnState.CANCELLED)
                        yield self._complete(turn, incomplete=True)
                        return

                    for message in dispatch.tool_messages:
                        yield self._append(turn, message)

                    if cap_reached:
                        logger.warning(f"Turn reached max iterations ({self._max_iterations})")
                        yield self._transition(turn, TurnState.DONE)
                        yield self._complete(turn, incomplete=True)
                        return
        finally:
            span.set_attribute("turn.final_state", turn.state.value)
            span.set_attribute("turn.iterations", turn.iterations)
            span.end()

    # =========================================================================
    # Message building
    # =========================================================================

    def build_messages(self, request: TurnRequest, appended: Iterable[Message] = ()) -> list[Message]:
        """Build the outbound message list for one round-trip.

        System messages already in the history are replaced by the resolved
        system prompt. Failed assistant attempts are left out, and tool calls
        that never received a result are stripped so the request stays valid.
        """
        messages: list[Message] = []
        system_prompt = request.system_prompt
        if system_prompt:
            messages.append(Message.system(system_prompt))

        transcript = [message for message in (*request.history, *appended) if message.role != MessageRole.SYSTEM and not message.error]
        answered = {message.tool_call_id for message in transcript if message.role == MessageRole.TOOL}
        for message in transcript:
            if message.tool_calls:
                kept = tuple(call for call in message.tool_calls if call.id in answered)
                if len(kept) != len(message.tool_calls):
                    message = replace(message, tool_calls=kept)
            messages.append(message)
        return messages

    def _assistant_message(
        self,
        turn: _Turn,
        outcome: _RoundOutcome,
        tool_calls: Optional[list[ToolCall]] = None,
        incomplete: bool = False,
        error: Optional[str] = None,
    ) -> Message:
        return Message.assistant(
            outcome.content,
            tool_calls=tuple(tool_calls or ()),
            incomplete=incomplete,
            error=error,
            can_retry=error is not None,
            reasoning_content=outcome.reasoning or None,
            usage=outcome.usage,
            provider=turn.request.provider_name or turn.request.api_config.provider,
            model=turn.request.api_config.model,
        )

    def _indicates_tool_use(self, finish_reason: Optional[str]) -> bool:
        # Some compatible servers end tool-call streams without a finish reason
        return finish_reason is None or finish_reason in self._tool_finish_reasons

    # =========================================================================
    # Streaming
    # =========================================================================

    async def _stream_round(self, client: ChatClient, turn: _Turn, outcome: _RoundOutcome, cancellation: CancellationToken) -> AsyncIterator[TurnEvent]:
        """Consume one model stream, forwarding deltas until it ends or the turn is cancelled."""
        request = turn.request
        messages = self.build_messages(request, turn.appended)
        stream = client.stream_chat_completion(messages, list(request.tools) or None)
        queue: asyncio.Queue = asyncio.Queue(maxsize=1)
        pump = asyncio.ensure_future(self._pump(stream, queue))
        logger.debug(f"Turn iteration {turn.iterations}/{self._max_iterations}: {len(messages)} messages")

        try:
            yield self._transition(turn, TurnState.STREAMING_ASSISTANT)
            while True:
                cancelled, item = await self._next_or_cancel(queue.get(), cancellation)
                if cancelled:
                    outcome.cancelled = True
                    return
                if item is _STREAM_END:
                    return
                if isinstance(item, BaseException):
                    raise item

                if item.content:
                    outcome.content += item.content
                    yield TurnEvent(type=TurnEventType.CONTENT_DELTA, data={"content": item.content}, iteration=turn.iterations)
                if item.reasoning_content:
                    outcome.reasoning += item.reasoning_content
                    yield TurnEvent(type=TurnEventType.REASONING_DELTA, data={"content": item.reasoning_content}, iteration=turn.iterations)
                if item.tool_call_deltas:
                    outcome.accumulator.add_all(item.tool_call_deltas)
                    yield TurnEvent(
                        type=TurnEventType.TOOL_CALL_DELTA,
                        data={"tool_calls": [{"index": p.index, "id": p.id, "name": p.name, "arguments": p.arguments} for p in outcome.accumulator.partials()]},
                        iteration=turn.iterations,
                    )
                if item.finish_reason:
                    outcome.finish_reason = item.finish_reason
                if item.usage:
                    outcome.usage = item.usage
        finally:
            if not pump.done():
                pump.cancel()
                await asyncio.wait({pump})

    async def _pump(self, stream: AsyncIterator[Any], queue: asyncio.Queue) -> None:
        """Move stream chunks into the queue so reads can be raced against cancellation."""
        try:
            async for chunk in stream:
                await queue.put(chunk)
        except Exception as e:
            # Handed to the consumer, which re-raises it in order
            await queue.put(e)
            return
        finally:
            await stream.aclose()
        await queue.put(_STREAM_END)

    async def _next_or_cancel(self, awaitable: Awaitable[Any], cancellation: CancellationToken) -> tuple[bool, Any]:
        """Await a value unless the cancellation signal fires first.

        Returns:
            (True, None) if cancelled, (False, value) otherwise
        """
        task = asyncio.ensure_future(awaitable)
        waiter = asyncio.ensure_future(cancellation.wait())
        try:
            await asyncio.wait({task, waiter}, return_when=asyncio.FIRST_COMPLETED)
        except BaseException:
            task.cancel()
            raise
        finally:
            waiter.cancel()

        if task.done() and not cancellation.is_cancelled:
            return False, task.result()

        if not task.done():
            task.cancel()
            await asyncio.wait({task})
        if not task.cancelled() and task.exception() is not None:
            logger.debug(f"Discarding error raised after cancellation: {task.exception()}")
        return True, None

    # =========================================================================
    # Tool dispatch
    # =========================================================================

    async def _dispatch(self, tool_calls: list[ToolCall], turn: _Turn, outcome: _DispatchOutcome, cancellation: CancellationToken) -> AsyncIterator[TurnEvent]:
        """Execute tool calls concurrently; results keep the original call order."""
        executions = [ToolCallExecution.pending(call) for call in tool_calls]
        turn.executions.extend(executions)
        logger.info(f"🔧 Dispatching {len(executions)} tool call(s): {[call.function.name for call in tool_calls]}")

        events: asyncio.Queue = asyncio.Queue()
        semaphore = asyncio.Semaphore(self._max_parallel_tool_calls)
        tools_by_name = {tool.function_name: tool for tool in turn.request.tools}
        bindings = {binding.tool_id: binding for binding in turn.request.bindings}

        async def run_all() -> None:
            try:
                results = await asyncio.gather(
                    *(self._execute(execution, turn, tools_by_name, bindings, semaphore, cancellation, events) for execution in executions)
                )
                outcome.tool_messages = [message for message in results if message is not None]
            finally:
                events.put_nowait(None)

        runner = asyncio.ensure_future(run_all())
        while True:
            cancelled, event = await self._next_or_cancel(events.get(), cancellation)
            if cancelled:
                outcome.cancelled = True
                if not runner.done():
                    # In-flight calls finish in the background; their results are dropped
                    self._background_tasks.add(runner)
                    runner.add_done_callback(self._background_tasks.discard)
                logger.info(f"Tool dispatch cancelled: {sum(1 for e in executions if e.is_settled)}/{len(executions)} settled")
                return
            if event is None:
                break
            yield event

        await runner

    async def _execute(
        self,
        execution: ToolCallExecution,
        turn: _Turn,
        tools_by_name: dict[str, Tool],
        bindings: dict[str, ToolBinding],
        semaphore: asyncio.Semaphore,
        cancellation: CancellationToken,
        events: asyncio.Queue,
    ) -> Optional[Message]:
        call = execution.tool_call
        name = call.function.name

        async with semaphore:
            if cancellation.is_cancelled:
                logger.debug(f"Skipping tool call {call.id} ({name}): turn cancelled before it started")
                return None

            events.put_nowait(TurnEvent(type=TurnEventType.TOOL_EXECUTION_STARTED, data={"execution": execution.to_dict()}, iteration=turn.iterations))
            result: Optional[str] = None
            error: Optional[str] = None
            try:
                tool = tools_by_name.get(name)
                if tool is None:
                    raise ToolExecutionError(message=f"Tool not found: {name}", kind=ToolExecutionErrorKind.TOOL_NOT_FOUND, tool_name=name)
                authorization = authorization_resolver.resolve(tool, turn.request.authorizations, bindings.get(tool.id))
                result = await self._tool_invoker.invoke(tool, call, authorization)
            except ToolExecutionError as e:
                logger.warning(f"Tool call {call.id} ({name}) failed: {e.message}")
                error = e.message
            except Exception as e:
                logger.exception(f"Unexpected error executing tool call {call.id} ({name})")
                error = f"Unexpected error: {e}"

        if cancellation.is_cancelled:
            logger.debug(f"Discarding result of tool call {call.id} ({name}): turn was cancelled")
            return None

        if error is None:
            execution.complete(result or "")
            events.put_nowait(TurnEvent(type=TurnEventType.TOOL_EXECUTION_COMPLETED, data={"execution": execution.to_dict()}, iteration=turn.iterations))
            return Message.tool_result(call.id, name, execution.result or "")

        execution.fail(error)
        events.put_nowait(TurnEvent(type=TurnEventType.TOOL_EXECUTION_FAILED, data={"execution": execution.to_dict()}, iteration=turn.iterations))
        return Message.tool_result(call.id, name, f"Error: {error}")

    # =========================================================================
    # State bookkeeping
    # =========================================================================

    def _transition(self, turn: _Turn, state: TurnState) -> TurnEvent:
        previous = turn.state
        turn.state = state
        logger.debug(f"Turn state: {previous.value} -> {state.value}")
        return TurnEvent(type=TurnEventType.STATE_CHANGED, data={"state": state.value, "previous": previous.value}, iteration=turn.iterations)

    def _append(self, turn: _Turn, message: Message) -> TurnEvent:
        turn.appended.append(message)
        return TurnEvent(type=TurnEventType.MESSAGE_APPENDED, data={"message": message}, iteration=turn.iterations)

    def _complete(self, turn: _Turn, incomplete: bool = False, error: Optional[str] = None, can_retry: bool = False) -> TurnEvent:
        result = TurnResult(
            final_state=turn.state,
            messages=list(turn.appended),
            executions=list(turn.executions),
            iterations=turn.iterations,
            incomplete=incomplete,
            error=error,
            can_retry=can_retry,
        )
        duration_ms = (time.time() - turn.started_at) * 1000
        turns_completed.add(1, {"state": turn.state.value})
        turn_iterations.record(turn.iterations, {"state": turn.state.value})
        turn_processing_time.record(duration_ms, {"state": turn.state.value})
        logger.info(f"🏁 Turn {turn.state.value}: iterations={turn.iterations}, messages={len(turn.appended)}, incomplete={incomplete}")
        return TurnEvent(type=TurnEventType.TURN_COMPLETED, data={"result": result}, iteration=turn.iterations)
