import asyncio
import logging
import time
from contextlib import aclosing
from dataclasses import dataclass, field
from enum import Enum
from typing import AsyncIterator, Awaitable, Callable, List, Optional, Sequence

from base import LLMBase, LLMMessage, RouterBase, ToolClientBase
from config.settings import OrchestratorConfig, settings
from exceptions import GatewayError, GenerationFailure, RequestTimeout, SessionNotFound
from memory.session_store import SessionStore
from metrics import record_chat
from models import Message, Role, StreamEvent, ToolDescriptor, ToolInvocation, new_id
from prompts import PROMPTS
from utils import get_llm_class, get_router_class, get_tool_client_class

EventSink = Callable[[StreamEvent], Awaitable[None]]


class TurnState(str, Enum):
    RECEIVED = "received"
    DECIDING = "deciding"
    TOOL_CALL = "tool_call"
    GENERATING = "generating"
    DONE = "done"
    FAILED = "failed"


@dataclass
class Turn:
    """Bookkeeping for one chat request."""

    session_id: str
    request_id: str = field(default_factory=new_id)
    state: TurnState = TurnState.RECEIVED
    invocation: Optional[ToolInvocation] = None
    tool_result: Optional[str] = None
    context: List[LLMMessage] = field(default_factory=list)
    assistant_message_id: Optional[str] = None
    error: Optional[str] = None


def to_llm_messages(history: Sequence[Message]) -> List[LLMMessage]:
    return [
        {"role": "user" if m.role == Role.USER else "assistant", "content": m.content}
        for m in history
    ]


def describe_capabilities(catalog: Sequence[ToolDescriptor]) -> str:
    if not catalog:
        return "No tools available."
    lines = ["Available capabilities:", ""]
    lines.extend(f"- {tool.description or tool.name}" for tool in catalog)
    return "\n".join(lines)


def build_plain_context(message: str, history: Sequence[Message], catalog: Sequence[ToolDescriptor],
                        auth_token: Optional[str] = None) -> List[LLMMessage]:
    """System preamble, the full history, then the new user message."""
    messages: List[LLMMessage] = [
        {"role": "system", "content": PROMPTS['chat_system'].format(capabilities=describe_capabilities(catalog))},
    ]
    if auth_token:
        messages.append({"role": "system", "content": PROMPTS['auth_available']})
    messages.extend(to_llm_messages(history))
    messages.append({"role": "user", "content": message})
    return messages


def build_tool_context(message: str, tool_result: str, history: Sequence[Message],
                       keep_last: int) -> List[LLMMessage]:
    """Tool result as system context plus only the most recent exchanges."""
    messages: List[LLMMessage] = [
        {"role": "system", "content": PROMPTS['tool_result_system'].format(message=message, tool_result=tool_result)},
    ]
    recent = list(history)[-keep_last:] if keep_last > 0 else []
    messages.extend(to_llm_messages(recent))
    messages.append({"role": "user", "content": PROMPTS['present_request']})
    return messages


class StreamingOrchestrator:
    """Drives one chat turn: decide, maybe call a tool, generate, emit events.

    Events for a turn are emitted in the order userMessage, start, chunk..., then
    exactly one of done or error. The assistant message is written to the session
    only when generation completes; a failed, timed out or cancelled turn keeps the
    user message and nothing else.
    """

    def __init__(self, store: SessionStore, tool_client: ToolClientBase, router: RouterBase, llm: LLMBase,
                 config: Optional[OrchestratorConfig] = None):
        self.store = store
        self.tool_client = tool_client
        self.router = router
        self.llm = llm
        self.cfg = config or settings.orchestrator
        self.logger = logging.getLogger("app")

    def log(self, turn: Turn, msg: str, level: str = "info"):
        extra = {'extra_data': {"request_id": turn.request_id, "session_id": turn.session_id,
                                "state": turn.state.value}}
        getattr(self.logger, level)(msg, extra=extra)

    async def run(self, session_id: str, message: str, sink: EventSink,
                  auth_token: Optional[str] = None) -> Turn:
        turn = Turn(session_id=session_id)
        start = time.monotonic()
        outcome = "error"
        try:
            await asyncio.wait_for(self._serialized(turn, message, sink, auth_token),
                                   timeout=self.cfg.request_timeout_seconds)
            outcome = "done"
        except asyncio.TimeoutError:
            await self._fail(turn, sink, RequestTimeout(self.cfg.request_timeout_seconds))
        except asyncio.CancelledError:
            outcome = "cancelled"
            turn.state = TurnState.FAILED
            self.log(turn, "Client went away; turn cancelled", "warning")
            raise
        except SessionNotFound as e:
            await self._fail(turn, sink, e)
        except Exception as e:
            self.logger.exception("Chat turn failed", extra={"extra_data": {
                "request_id": turn.request_id, "session_id": session_id, "state": turn.state.value}})
            await self._fail(turn, sink, e)
        finally:
            record_chat(outcome, time.monotonic() - start)
        return turn

    async def _fail(self, turn: Turn, sink: EventSink, error: Exception) -> None:
        turn.error = str(error) or type(error).__name__
        self.log(turn, f"Turn failed: {turn.error}", "warning")
        turn.state = TurnState.FAILED
        await sink(StreamEvent.error(turn.error))

    async def _serialized(self, turn: Turn, message: str, sink: EventSink, auth_token: Optional[str]) -> None:
        if self.store.get(turn.session_id) is None:
            raise SessionNotFound(turn.session_id)
        try:
            if not self.cfg.serialize_session_turns:
                await self._turn(turn, message, sink, auth_token)
                return
            async with self.store.turn_lock(turn.session_id):
                await self._turn(turn, message, sink, auth_token)
        except (TimeoutError, asyncio.TimeoutError) as e:
            # only the whole-request deadline may surface as a TimeoutError in run()
            raise GenerationFailure(str(e) or "Upstream call timed out") from e

    async def _turn(self, turn: Turn, message: str, sink: EventSink, auth_token: Optional[str]) -> None:
        session = self.store.get(turn.session_id)
        history = self.store.history(turn.session_id, expected=session) if session is not None else None
        if history is None:
            raise SessionNotFound(turn.session_id)
        user_message = Message.user(message)
        if not self.store.append_message(turn.session_id, user_message, expected=session):
            raise SessionNotFound(turn.session_id)
        await sink(StreamEvent.user_ack(user_message.id))

        turn.state = TurnState.DECIDING
        catalog: List[ToolDescriptor] = []
        if self.cfg.enable_tools:
            catalog = await self.tool_client.list_tools()
            recent = history[-self.cfg.decision_history_messages:] if self.cfg.decision_history_messages > 0 else []
            turn.invocation = await self.router.decide(message, catalog, recent)

        if turn.invocation is not None:
            turn.state = TurnState.TOOL_CALL
            self.log(turn, f"Calling tool {turn.invocation.tool} with {turn.invocation.arguments}")
            turn.tool_result = await self.tool_client.call_tool(turn.invocation.tool, turn.invocation.arguments)
            turn.context = build_tool_context(message, turn.tool_result, history, self.cfg.tool_history_messages)
        else:
            self.log(turn, "No tool call needed", "debug")
            turn.context = build_plain_context(message, history, catalog, auth_token)

        turn.state = TurnState.GENERATING
        turn.assistant_message_id = new_id()
        await sink(StreamEvent.start(turn.assistant_message_id))
        parts: List[str] = []
        async with aclosing(self.llm.stream(turn.context)) as fragments:
            async for fragment in fragments:
                if not fragment:
                    continue
                parts.append(fragment)
                await sink(StreamEvent.chunk(fragment))

        assistant = Message.assistant("".join(parts), turn.assistant_message_id)
        if not self.store.append_message(turn.session_id, assistant, expected=session):
            self.log(turn, "Session deleted or replaced while generating; answer not stored", "warning")
        await sink(StreamEvent.done(turn.assistant_message_id))
        turn.state = TurnState.DONE
        self.log(turn, "Streaming completed")

    async def stream(self, session_id: str, message: str,
                     auth_token: Optional[str] = None) -> AsyncIterator[StreamEvent]:
        """Run the turn in its own task and yield its events.

        Closing the iterator early (client disconnect) cancels the task.
        """
        queue: asyncio.Queue = asyncio.Queue()
        task = asyncio.create_task(self.run(session_id, message, queue.put, auth_token))
        task.add_done_callback(lambda _: queue.put_nowait(None))
        try:
            while True:
                event = await queue.get()
                if event is None:
                    break
                yield event
        finally:
            if not task.done():
                task.cancel()
                await asyncio.wait({task})

    async def complete(self, session_id: str, message: str, auth_token: Optional[str] = None) -> Message:
        """Non-streaming turn. Raises GatewayError with the error event's text on failure."""
        parts: List[str] = []
        async with aclosing(self.stream(session_id, message, auth_token)) as events:
            async for event in events:
                if event.event == "chunk":
                    parts.append(event.data["content"])
                elif event.event == "error":
                    raise GatewayError(event.data["error"])
                elif event.event == "done":
                    message_id = event.data["messageId"]
                    for stored in reversed(self.store.history(session_id) or []):
                        if stored.id == message_id:
                            return stored
                    return Message.assistant("".join(parts), message_id)
        raise GatewayError("Turn ended without a result")


def build_orchestrator(store: SessionStore) -> StreamingOrchestrator:
    modules = settings.modules
    llm = get_llm_class(modules.llm_name)()
    tool_client = get_tool_client_class(modules.tool_client_name)()
    router_factory = get_router_class(modules.router_name)
    router = router_factory(llm) if modules.router_name == "LLMRouter" else router_factory()
    return StreamingOrchestrator(store, tool_client, router, llm)
