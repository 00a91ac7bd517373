"""Session-level glue around the conversation orchestrator.

The ChatService loads a read-only snapshot of the session, its agent, tools
and authorizations, runs one turn, and persists the appended messages back
onto the session. Only one turn runs per session at a time: submitting a new
message cancels the turn in flight and waits until that turn has been
persisted before reading the session.

Each turn runs in a task owned by the service, so it reaches its commit and
persists even when nobody is reading its events at that moment.
"""

import asyncio
import logging
from dataclasses import dataclass, field, replace
from typing import AsyncIterator, Awaitable, Callable, Iterable, Optional

from domain.enums import MessageRole
from domain.models import Agent, ApiConfig, Authorization, ChatSession, Message, Tool, ToolBinding, now_ms
from domain.repositories import PlaygroundRepository, StoreCollection

from .cancellation import CancellationToken
from .conversation_orchestrator import ConversationOrchestrator, TurnEvent, TurnEventType, TurnRequest, TurnResult

logger = logging.getLogger(__name__)

DEFAULT_SESSION_NAME = "New conversation"

_TURN_END = object()

TurnHook = Callable[[], Awaitable[None]]


class SessionNotFoundError(Exception):
    """Raised when a session id does not exist in the store."""

    def __init__(self, session_id: str) -> None:
        super().__init__(f"Session not found: {session_id}")
        self.session_id = session_id


@dataclass
class _InFlightTurn:
    token: CancellationToken = field(default_factory=CancellationToken)
    finished: asyncio.Event = field(default_factory=asyncio.Event)


class ChatService:
    """Runs conversation turns for stored sessions.

    Usage:
        service = ChatService(repository, orchestrator)
        async for event in service.submit(session_id, "What's the weather in Paris?", api_config):
            ...
    """

    def __init__(self, repository: PlaygroundRepository, orchestrator: ConversationOrchestrator, title_generator=None) -> None:
        self._repository = repository
        self._orchestrator = orchestrator
        self._title_generator = title_generator
        self._in_flight: dict[str, _InFlightTurn] = {}
        self._turn_tasks: set[asyncio.Future] = set()

    def is_running(self, session_id: str) -> bool:
        turn = self._in_flight.get(session_id)
        return turn is not None and not turn.token.is_cancelled

    def cancel(self, session_id: str) -> bool:
        """Signal the in-flight turn of a session. Returns False when none is running."""
        turn = self._in_flight.get(session_id)
        if turn is None or turn.token.is_cancelled:
            return False
        turn.token.cancel()
        logger.info(f"⏹️ Cancelled turn for session {session_id}")
        return True

    async def submit(self, session_id: str, content: str, api_config: ApiConfig, provider_name: Optional[str] = None) -> AsyncIterator[TurnEvent]:
        """Send a user message and stream the resulting turn events.

        Raises:
            SessionNotFoundError: If the session does not exist
            ConfigError: Before any event, when the configuration is unusable
        """
        turn = await self._claim(session_id)
        try:
            session = await self._load_session(session_id)
            is_first_message = not any(message.role == MessageRole.USER for message in session.messages)
            request = await self._build_request(session, api_config, provider_name, Message.user(content))
        except BaseException:
            self._release(session_id, turn)
            raise

        async def generate_title() -> None:
            if is_first_message:
                await self._maybe_generate_title(session_id, content, api_config, provider_name)

        events = self._drive(session_id, turn, request, on_completed=generate_title)
        try:
            async for event in events:
                yield event
        finally:
            await events.aclose()

    async def retry(self, session_id: str, message_id: str, api_config: ApiConfig, provider_name: Optional[str] = None) -> AsyncIterator[TurnEvent]:
        """Regenerate the answer to the user message preceding a failed message.

        The failed message and everything after it are removed; the user
        message itself is kept and not sent twice.

        Raises:
            SessionNotFoundError: If the session does not exist
            KeyError: If the message is not part of the session
            ValueError: If no user message precedes it
        """
        turn = await self._claim(session_id)
        try:
            session = await self._load_session(session_id)
            index = session.index_of(message_id)
            history = session.messages[:index]
            if not any(message.role == MessageRole.USER for message in history):
                raise ValueError(f"No user message precedes message {message_id}")

            # Trailing assistant/tool messages of the failed attempt go too
            while history and history[-1].role != MessageRole.USER:
                history = history[:-1]

            request = await self._build_request(session.with_messages(history), api_config, provider_name, None)
        except BaseException:
            self._release(session_id, turn)
            raise
        logger.info(f"🔁 Retrying session {session_id} from message {message_id} ({len(session.messages) - len(history)} message(s) dropped)")

        async def truncate() -> None:
            await self._truncate(session_id, history[-1].id)

        events = self._drive(session_id, turn, request, on_first_event=truncate)
        try:
            async for event in events:
                yield event
        finally:
            await events.aclose()

    async def delete_tool(self, tool_id: str) -> bool:
        """Delete a tool and remove its bindings from every agent."""
        deleted = await self._repository.delete_async(StoreCollection.TOOLS, tool_id)
        for record in await self._repository.list_async(StoreCollection.AGENTS):
            agent = Agent.from_dict(record)
            if agent.binding_for(tool_id) is not None:
                await self._repository.put_async(StoreCollection.AGENTS, agent.id, agent.remove_tool(tool_id).to_dict())
                logger.debug(f"Removed tool {tool_id} from agent {agent.name}")
        return deleted

    async def import_definitions(self, agents: Iterable[dict], tools: Iterable[dict]) -> tuple[int, int]:
        """Store imported tools, then agents. Returns (agents, tools) counts."""
        tool_count = 0
        for record in tools:
            tool = Tool.from_dict(record)
            await self._repository.put_async(StoreCollection.TOOLS, tool.id, tool.to_dict())
            tool_count += 1
        agent_count = 0
        for record in agents:
            agent = Agent.from_dict(record)
            await self._repository.put_async(StoreCollection.AGENTS, agent.id, agent.to_dict())
            agent_count += 1
        logger.info(f"📥 Imported {agent_count} agent(s) and {tool_count} tool(s)")
        return agent_count, tool_count

    # =========================================================================
    # Turn execution
    # =========================================================================

    async def _claim(self, session_id: str) -> _InFlightTurn:
        """Register a new turn, cancelling the previous one and waiting until it has persisted."""
        turn = _InFlightTurn()
        previous = self._in_flight.get(session_id)
        self._in_flight[session_id] = turn
        if previous is not None:
            previous.token.cancel("Superseded by a new message")
            try:
                await previous.finished.wait()
            except asyncio.CancelledError:
                self._release(session_id, turn)
                raise
        return turn

    def _release(self, session_id: str, turn: _InFlightTurn) -> None:
        if self._in_flight.get(session_id) is turn:
            del self._in_flight[session_id]
        turn.finished.set()

    async def _drive(
        self,
        session_id: str,
        turn: _InFlightTurn,
        request: TurnRequest,
        on_first_event: Optional[TurnHook] = None,
        on_completed: Optional[TurnHook] = None,
    ) -> AsyncIterator[TurnEvent]:
        events: asyncio.Queue = asyncio.Queue()
        task = asyncio.ensure_future(self._execute_turn(session_id, turn, request, events, on_first_event, on_completed))
        self._turn_tasks.add(task)
        task.add_done_callback(self._turn_tasks.discard)

        try:
            while True:
                item = await events.get()
                if item is _TURN_END:
                    return
                if isinstance(item, Exception):
                    raise item
                yield item
        finally:
            if not task.done():
                # Reader went away; the turn still commits and persists
                turn.token.cancel("Listener disconnected")

    async def _execute_turn(
        self,
        session_id: str,
        turn: _InFlightTurn,
        request: TurnRequest,
        events: asyncio.Queue,
        on_first_event: Optional[TurnHook],
        on_completed: Optional[TurnHook],
    ) -> None:
        started = False
        try:
            async for event in self._orchestrator.run_turn(request, turn.token):
                if not started:
                    started = True
                    if on_first_event is not None:
                        await on_first_event()
                if event.type != TurnEventType.TURN_COMPLETED:
                    events.put_nowait(event)
                    continue
                await self._persist(session_id, event.data["result"])
                events.put_nowait(event)
                if on_completed is not None:
                    await on_completed()
        except Exception as e:
            logger.warning(f"Turn for session {session_id} ended with {type(e).__name__}: {e}")
            events.put_nowait(e)
        finally:
            self._release(session_id, turn)
            events.put_nowait(_TURN_END)

    async def _build_request(self, session: ChatSession, api_config: ApiConfig, provider_name: Optional[str], user_message: Optional[Message]) -> TurnRequest:
        agent: Optional[Agent] = None
        if session.agent_id:
            record = await self._repository.get_async(StoreCollection.AGENTS, session.agent_id)
            if record is None:
                logger.warning(f"Agent {session.agent_id} of session {session.id} not found, running without it")
            else:
                agent = Agent.from_dict(record)

        bindings: tuple[ToolBinding, ...] = agent.tool_bindings if agent else ()
        tool_ids = agent.tool_ids if agent else list(session.tool_ids)
        tools = await self._load_tools(tool_ids)
        authorizations = tuple(Authorization.from_dict(record) for record in await self._repository.list_async(StoreCollection.AUTHORIZATIONS))

        return TurnRequest(
            api_config=api_config,
            provider_name=provider_name,
            history=session.messages,
            user_message=user_message,
            tools=tools,
            bindings=bindings,
            authorizations=authorizations,
            session_system_prompt=session.system_prompt,
            agent_system_prompt=agent.system_prompt if agent else None,
        )

    async def _load_tools(self, tool_ids: Iterable[str]) -> tuple[Tool, ...]:
        tools: list[Tool] = []
        for tool_id in tool_ids:
            record = await self._repository.get_async(StoreCollection.TOOLS, tool_id)
            if record is None:
                logger.warning(f"Tool {tool_id} not found, skipping")
                continue
            tools.append(Tool.from_dict(record))
        return tuple(tools)

    # =========================================================================
    # Persistence
    # =========================================================================

    async def _load_session(self, session_id: str) -> ChatSession:
        record = await self._repository.get_async(StoreCollection.SESSIONS, session_id)
        if record is None:
            raise SessionNotFoundError(session_id)
        return ChatSession.from_dict(record)

    async def _persist(self, session_id: str, result: TurnResult) -> None:
        session = await self._load_session(session_id)
        session = session.append(result.messages)
        await self._repository.put_async(StoreCollection.SESSIONS, session_id, session.to_dict())
        logger.debug(f"Persisted {len(result.messages)} message(s) to session {session_id} ({result.final_state.value})")

    async def _truncate(self, session_id: str, last_kept_id: str) -> None:
        session = await self._load_session(session_id)
        index = session.index_of(last_kept_id)
        session = session.with_messages(session.messages[: index + 1])
        await self._repository.put_async(StoreCollection.SESSIONS, session_id, session.to_dict())

    async def _maybe_generate_title(self, session_id: str, content: str, api_config: ApiConfig, provider_name: Optional[str]) -> None:
        if self._title_generator is None:
            return
        session = await self._load_session(session_id)
        if session.name and session.name != DEFAULT_SESSION_NAME:
            return
        title = await self._title_generator.generate(content, api_config, provider_name)
        session = replace(session, name=title, updated_at=now_ms())
        await self._repository.put_async(StoreCollection.SESSIONS, session_id, session.to_dict())
        logger.info(f"📝 Session {session_id} titled '{title}'")
