"""
StatBridge Chat Orchestrator - Streaming model turns with tool use

One orchestrator per conversation:
1. send_message() appends the user message and opens a model stream
2. Stream events update the assistant message as text deltas arrive
3. A tool_use block is assembled from JSON fragments, then executed on its
   own task while the stream keeps being parsed
4. Once every tool call issued by a stream has resolved, the calls and their
   results are spliced into history (tool_use + tool_result blocks) and one
   continuation stream resumes the answer

Also manages:
- Cancellation (a new user turn cancels the previous stream and its tools)
- Citation extraction from tool results
- The follow-up query queue
- A per-turn bound on tool rounds

Every outbound notification is a ``{"type": ..., "content": ...}`` dict passed
to the async ``emit`` callable (the WebSocket router binds it to send_json).
"""

import asyncio
import json
import logging
import time
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, Iterable, List, Optional, Set, Union

from config import runtime_config
from errors import (
    ConfigurationError,
    CorrelationError,
    ErrorCode,
    ProtocolError,
    StatBridgeError,
    format_error_for_llm,
    handle_async_tool_errors,
    log_error,
)
from logging_config import log_llm, log_message_in, log_message_out, log_tool
from services.model_client import ModelStreamClient, build_stream_request
from services.search_dispatcher import SearchDispatcher
from services.sse import SSEBuffer, SSEEvent

from ..chat_prompts import (
    CONTINUATION_PROMPT,
    SYSTEM_PROMPT,
    TOOL_DONE_LINE,
    TOOL_FAILED_LINE,
    display_text,
    theme_query,
    tool_status_line,
)
from .citations import extract_citations, extract_content_citations, result_text
from .conversation import Citation, Conversation, Message
from .tool_calls import PendingToolCall, PendingToolCallRegistry, ToolCallState

logger = logging.getLogger(__name__)

Emit = Callable[[Dict[str, Any]], Awaitable[None]]


class OrchestratorState(str, Enum):
    IDLE = "idle"
    SENDING = "sending"
    STREAMING_TEXT = "streaming_text"
    STREAMING_TOOL_INPUT = "streaming_tool_input"
    TOOL_EXECUTING = "tool_executing"
    CONTINUING = "continuing"
    DONE = "done"
    FAILED = "failed"


class StreamEventType(str, Enum):
    MESSAGE_START = "message_start"
    CONTENT_BLOCK_START = "content_block_start"
    CONTENT_BLOCK_DELTA = "content_block_delta"
    CONTENT_BLOCK_STOP = "content_block_stop"
    MESSAGE_DELTA = "message_delta"
    MESSAGE_STOP = "message_stop"
    PING = "ping"
    ERROR = "error"


def tool_result_content(payload: Dict[str, Any]) -> str:
    """Text handed back to the model for a tool result.

    ``result.content[0].text`` when present, else the whole reply as compact JSON.
    """
    text = result_text(payload)
    if text:
        return text
    return json.dumps(payload, separators=(",", ":"))


async def _discard(event: Dict[str, Any]) -> None:
    logger.debug(f"No listener for {event.get('type')} event")


class ChatOrchestrator:
    """Drives model streams, tool calls and continuations for one conversation.

    Args:
        dispatcher: SearchDispatcher used to execute model tool calls
        model_client: ModelStreamClient for the streaming Messages endpoint
        emit: Async callable receiving event dicts
        conversation: Existing Conversation (a new one if omitted)
    """

    def __init__(
        self,
        dispatcher: SearchDispatcher,
        model_client: ModelStreamClient,
        emit: Optional[Emit] = None,
        conversation: Optional[Conversation] = None,
    ):
        self.dispatcher = dispatcher
        self.model = model_client
        self.emit = emit or _discard
        self.conversation = conversation or Conversation()
        self.registry = PendingToolCallRegistry()

        self.state = OrchestratorState.IDLE
        self.skipped_frames = 0
        self.tool_rounds = 0

        self._turn = 0
        self._stream_seq = 0
        self._stream_task: Optional[asyncio.Task] = None
        self._tool_tasks: Set[asyncio.Task] = set()

        # Per-stream parse state (reset in _run_stream)
        self._active_call: Optional[PendingToolCall] = None
        self._stop_reason: Optional[str] = None
        self._turn_reported = False
        self._tools_used: List[str] = []

        # Tool calls issued by one stream; continued together once all resolve
        self._batch: List[PendingToolCall] = []
        self._batch_results: Dict[str, Dict[str, Any]] = {}
        self._batch_message: Optional[Message] = None

        self._handlers = {
            StreamEventType.MESSAGE_START: self._on_message_start,
            StreamEventType.CONTENT_BLOCK_START: self._on_content_block_start,
            StreamEventType.CONTENT_BLOCK_DELTA: self._on_content_block_delta,
            StreamEventType.CONTENT_BLOCK_STOP: self._on_content_block_stop,
            StreamEventType.MESSAGE_DELTA: self._on_message_delta,
            StreamEventType.MESSAGE_STOP: self._on_ignored,
            StreamEventType.PING: self._on_ignored,
            StreamEventType.ERROR: self._on_error,
        }

    # =========================================================================
    # Caller operations
    # =========================================================================

    async def send_message(self, text: str) -> None:
        """Start a new user turn. Returns once the model stream is started."""
        if not text or not text.strip():
            return
        if not self.model.configured:
            await self._report_error(
                ConfigurationError("Anthropic API key not configured", setting="anthropic_api_key")
            )
            return

        self._cancel_turn()
        log_message_in(logger, text, turn=self._turn)

        shown = display_text(text)
        self.conversation.add("user", text, display=shown if shown != text else None)
        await self._emit_messages()

        self._start_stream(build_stream_request(self.conversation.to_wire(), SYSTEM_PROMPT))

    async def send_theme_query(self, theme: str) -> None:
        await self.send_message(theme_query(theme))

    async def set_followups(self, items: Iterable[Union[str, Dict[str, Any]]]) -> None:
        queries = self.conversation.set_followups(items)
        await self._send("followups", queries)

    async def run_followup_queue(self) -> None:
        """Send the next queued follow-up, if any."""
        query = self.conversation.pop_followup()
        if query is None:
            return
        await self._send("followups", list(self.conversation.followups))
        await self.send_message(query)

    async def reset(self) -> None:
        self._cancel_turn()
        self.conversation.clear()
        self.state = OrchestratorState.IDLE
        await self._emit_messages()
        await self._send("followups", [])

    async def handle_tool_result(self, request_id: str, payload: Dict[str, Any]) -> None:
        """Apply a tool result to its pending call and continue the turn.

        Results may arrive in any order. The continuation starts once every
        call issued by the same stream has resolved. Content citations are
        taken even from a result whose id has no pending call; the id error
        is reported afterwards.
        """
        try:
            call = self.registry.resolve(request_id)
        except CorrelationError as e:
            message = self.conversation.latest_assistant()
            if message is not None:
                await self._add_citations(message, extract_content_citations(payload))
            log_error(logger, e, context="tool result", include_traceback=False)
            await self._report_error(e)
            return

        ok = "error" not in payload
        call.state = ToolCallState.RESOLVED if ok else ToolCallState.ERRORED
        log_tool(logger, call.name, "end", id=call.id, ok=ok)
        await self._send("tool_end", {"id": call.id, "name": call.name, "ok": ok})

        self._batch_results[call.id] = payload
        message = self._batch_message or self.conversation.ensure_assistant()
        await self._add_citations(message, extract_citations(call.name, payload))
        message.append(TOOL_DONE_LINE if ok else TOOL_FAILED_LINE)
        await self._emit_messages()
        await self._continue()

    def cancel(self) -> None:
        """Cancel the in-flight stream and tool calls (conversation is kept)."""
        self._cancel_turn()
        self.state = OrchestratorState.IDLE

    async def wait_idle(self) -> None:
        """Wait until no stream or tool task is running."""
        while True:
            pending = {t for t in [self._stream_task, *self._tool_tasks] if t is not None and not t.done()}
            if not pending:
                return
            await asyncio.wait(pending)

    # =========================================================================
    # Streaming
    # =========================================================================

    def _cancel_turn(self) -> None:
        self._turn += 1
        self._stream_seq += 1
        current = asyncio.current_task()
        if self._stream_task and not self._stream_task.done() and self._stream_task is not current:
            self._stream_task.cancel()
        for task in list(self._tool_tasks):
            if task is not current:
                task.cancel()
        self._tool_tasks.clear()
        self.registry.clear()
        self._batch = []
        self._batch_results = {}
        self._batch_message = None
        self._active_call = None
        self.tool_rounds = 0
        self._tools_used = []

    def _start_stream(self, body: Dict[str, Any]) -> None:
        previous = self._stream_task
        if previous and not previous.done() and previous is not asyncio.current_task():
            previous.cancel()
        self._stream_seq += 1
        self.state = OrchestratorState.SENDING
        self._stream_task = asyncio.create_task(self._run_stream(body, self._stream_seq))

    async def _run_stream(self, body: Dict[str, Any], seq: int) -> None:
        buffer = SSEBuffer()
        self._active_call = None
        self._stop_reason = None
        self._turn_reported = False
        started = time.time()
        log_llm(logger, "start", model=body["model"])

        try:
            async for chunk in self.model.stream(body):
                for event in buffer.feed(chunk):
                    if seq != self._stream_seq:
                        return
                    if event.is_done:
                        await self._finish_stream()
                        return
                    await self._handle_event(event)
        except StatBridgeError as e:
            if seq == self._stream_seq:
                await self._fail_stream(e)
            return
        except Exception as e:
            log_error(logger, e, context="model stream")
            if seq == self._stream_seq:
                await self._fail_stream(StatBridgeError(f"Stream failed: {e}"))
            return
        finally:
            log_llm(logger, "end", model=body["model"], duration=time.time() - started)

        if len(buffer):
            logger.debug(f"Discarding {len(buffer)} bytes of unterminated stream data")
        if seq == self._stream_seq:
            await self._finish_stream()

    async def _finish_stream(self) -> None:
        """Stream ended ([DONE] or connection close)."""
        if not self._turn_reported:
            await self._complete_turn(self._stop_reason)
        if self.state not in (OrchestratorState.TOOL_EXECUTING, OrchestratorState.CONTINUING):
            self.state = OrchestratorState.DONE

    async def _fail_stream(self, error: StatBridgeError) -> None:
        self.state = OrchestratorState.FAILED
        self._append_visible(format_error_for_llm(error))
        await self._emit_messages()
        await self._report_error(error)

    async def _handle_event(self, event: SSEEvent) -> None:
        try:
            payload = event.json()
        except ValueError:
            self.skipped_frames += 1
            logger.debug(f"Skipping malformed stream frame: {(event.data or '')[:80]}")
            return
        if not isinstance(payload, dict):
            self.skipped_frames += 1
            logger.debug("Skipping non-object stream frame")
            return

        kind = payload.get("type") or event.event
        try:
            event_type = StreamEventType(kind)
        except ValueError:
            logger.debug(f"Ignoring unknown stream event: {kind}")
            return
        await self._handlers[event_type](payload)

    async def _complete_turn(self, stop_reason: Optional[str]) -> None:
        self._turn_reported = True
        message = self.conversation.latest_assistant()
        log_message_out(
            logger,
            stop_reason=stop_reason or "",
            tools_used=self._tools_used,
            citations=len(message.citations) if message else 0,
        )
        await self._send("turn_complete", {"stop_reason": stop_reason})

    # =========================================================================
    # Stream event handlers
    # =========================================================================

    async def _on_message_start(self, payload: Dict[str, Any]) -> None:
        self.conversation.add("assistant")
        self.state = OrchestratorState.STREAMING_TEXT
        await self._emit_messages()

    async def _on_content_block_start(self, payload: Dict[str, Any]) -> None:
        block = payload.get("content_block") or {}
        if block.get("type") != "tool_use":
            return
        if not block.get("id") or not block.get("name"):
            self.skipped_frames += 1
            missing = "id" if not block.get("id") else "name"
            error = ProtocolError(f"tool_use block without {missing}", kind="field", field=missing)
            log_error(logger, error, context="model stream", include_traceback=False)
            await self._report_error(error)
            return

        self._active_call = PendingToolCall(id=block["id"], name=block["name"])
        self.state = OrchestratorState.STREAMING_TOOL_INPUT
        line = tool_status_line(block["name"])
        self._append_visible(line)
        await self._send("partial", line)

    async def _on_content_block_delta(self, payload: Dict[str, Any]) -> None:
        delta = payload.get("delta") or {}
        delta_type = delta.get("type")

        if delta_type == "text_delta":
            text = delta.get("text") or ""
            if text:
                self.conversation.append_to_assistant(text)
                await self._send("partial", text)
        elif delta_type == "input_json_delta":
            if self._active_call is None:
                logger.debug("input_json_delta with no active tool call")
                return
            self._active_call.add_fragment(delta.get("partial_json") or "")

    async def _on_content_block_stop(self, payload: Dict[str, Any]) -> None:
        call, self._active_call = self._active_call, None
        if call is None:
            return

        try:
            call.finalize()
        except ProtocolError as e:
            log_error(logger, e, context=call.name, include_traceback=False)
            self._append_visible(f"\n{format_error_for_llm(e)}\n")
            await self._emit_messages()
            await self._report_error(e)
            return

        await self._dispatch(call)

    async def _on_message_delta(self, payload: Dict[str, Any]) -> None:
        stop_reason = (payload.get("delta") or {}).get("stop_reason")
        if stop_reason and not self._turn_reported:
            self._stop_reason = stop_reason
            await self._complete_turn(stop_reason)

    async def _on_error(self, payload: Dict[str, Any]) -> None:
        error = payload.get("error") or {}
        message = error.get("message") or "Model stream error"
        logger.error(f"Model stream error event: {error}")
        self._append_visible(f"Error: {message}")
        await self._emit_messages()
        await self._send("error", message, code=error.get("type"))

    async def _on_ignored(self, payload: Dict[str, Any]) -> None:
        pass

    # =========================================================================
    # Tool execution
    # =========================================================================

    async def _dispatch(self, call: PendingToolCall) -> None:
        limit = runtime_config.max_tool_rounds
        if self.tool_rounds >= limit:
            call.state = ToolCallState.ERRORED
            error = CorrelationError(
                f"Tool limit reached ({limit} per message); {call.name} was not run",
                code=ErrorCode.CORRELATION_TOOL_LIMIT,
                request_id=call.id,
            )
            logger.warning(error.message)
            self._append_visible(f"\n{format_error_for_llm(error)}\n")
            await self._emit_messages()
            await self._report_error(error)
            return

        self.tool_rounds += 1
        self.registry.register(call)
        if not self._batch:
            self._batch_message = self.conversation.ensure_assistant()
        self._batch.append(call)
        call.state = ToolCallState.DISPATCHED
        self._tools_used.append(call.name)
        self.state = OrchestratorState.TOOL_EXECUTING
        log_tool(logger, call.name, "start", id=call.id, round=self.tool_rounds)
        await self._send("tool_start", {"id": call.id, "name": call.name, "input": call.input})

        task = asyncio.create_task(self._execute_tool(call, self._turn))
        self._tool_tasks.add(task)
        task.add_done_callback(self._tool_tasks.discard)

    async def _execute_tool(self, call: PendingToolCall, turn: int) -> None:
        @handle_async_tool_errors(call.name, logger=logger)
        async def run() -> Dict[str, Any]:
            result = await self.dispatcher.invoke_tool(call.name, call.input, call.id)
            return result.payload

        payload = await run()
        if turn != self._turn:
            return
        # Nothing awaits this task; the listener may already be gone
        try:
            await self.handle_tool_result(call.id, payload)
        except Exception as e:
            log_error(logger, e, context=f"{call.name} result")

    def _batch_pending(self, batch: List[PendingToolCall]) -> bool:
        return any(c.id in self.registry for c in batch)

    async def _continue(self) -> None:
        """Send every result of the current batch back in one continuation."""
        turn = self._turn
        batch = self._batch
        if not batch or self._batch_pending(batch):
            return

        # The issuing stream normally only has message_delta/message_stop left
        stream = self._stream_task
        if stream is not None and not stream.done() and stream is not asyncio.current_task():
            await asyncio.wait({stream})
        # The stream may have added calls, or another result continued first
        if turn != self._turn or batch is not self._batch or self._batch_pending(batch):
            return

        results = self._batch_results
        self._batch, self._batch_results, self._batch_message = [], {}, None
        self.state = OrchestratorState.CONTINUING

        messages = self.conversation.to_wire()
        messages.append({"role": "assistant", "content": [c.to_tool_use_block() for c in batch]})
        messages.append({
            "role": "user",
            "content": [
                {
                    "type": "tool_result",
                    "tool_use_id": c.id,
                    "content": tool_result_content(results[c.id]),
                }
                for c in batch
            ],
        })
        self._start_stream(build_stream_request(messages, CONTINUATION_PROMPT))

    # =========================================================================
    # Notifications
    # =========================================================================

    def _append_visible(self, text: str) -> None:
        self.conversation.append_to_assistant(text)

    async def _add_citations(self, message: Message, citations: List[Citation]) -> None:
        if not citations:
            return
        message.attach_citations(citations)
        await self._send("citations", [c.to_dict() for c in citations])

    async def _send(self, event_type: str, content: Any, **extra: Any) -> None:
        await self.emit({"type": event_type, "content": content, **extra})

    async def _emit_messages(self) -> None:
        await self._send("messages", self.conversation.to_list())

    async def _report_error(self, error: StatBridgeError) -> None:
        await self._send("error", error.message, code=error.code.value)
