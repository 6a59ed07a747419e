"""
StatBridge Chat Router - WebSocket Handler

Research chat with statistics lookup. This module handles the WebSocket
endpoint and delegates orchestration to chat_orchestration/ modules.

Architecture:
- chat.py: WebSocket endpoint and command loop
- chat_orchestration/: Conversation state, tool calls, citations, ChatOrchestrator
- chat_prompts.py: System prompts and status lines

Inbound frames (JSON):
    {"action": "send_message", "message": "..."}
    {"action": "theme_query", "theme": "..."}
    {"action": "run_followups"}
    {"action": "set_followups", "items": ["...", {"query": "..."}]}
    {"action": "reset"}
    {"action": "analyze", "text": "..."}
    {"action": "search", "themes": ["..."]}
    {"action": "fetch", "id": "..."}

Outbound frames are {"type": ..., "content": ...}; see ChatOrchestrator.
"""

import logging
from typing import Any, Dict, List, Literal, Union

from fastapi import APIRouter, WebSocket, WebSocketDisconnect
from pydantic import BaseModel, Field, ValidationError

from errors import StatBridgeError, log_error
from services.model_client import ModelStreamClient

from .chat_orchestration import ChatOrchestrator

logger = logging.getLogger(__name__)

router = APIRouter()

# Security
MAX_MESSAGE_LENGTH = 4000
MAX_ANALYZE_LENGTH = 50000


class ChatCommand(BaseModel):
    """One inbound WebSocket frame."""

    action: Literal[
        "send_message",
        "theme_query",
        "run_followups",
        "set_followups",
        "reset",
        "analyze",
        "search",
        "fetch",
    ] = "send_message"
    message: str = ""
    theme: str = ""
    items: List[Union[str, Dict[str, Any]]] = Field(default_factory=list)
    text: str = ""
    themes: List[str] = Field(default_factory=list)
    id: str = ""


async def _ensure_session(websocket: WebSocket) -> None:
    """Retry the search-service handshake if an earlier attempt failed."""
    rpc = websocket.app.state.rpc_client
    if not rpc.session.initialized:
        await rpc.configure()


async def _handle_command(websocket: WebSocket, orchestrator: ChatOrchestrator, command: ChatCommand) -> None:
    state = websocket.app.state

    if command.action == "send_message":
        if len(command.message) > MAX_MESSAGE_LENGTH:
            await websocket.send_json(
                {"type": "error", "content": f"Message too long (max {MAX_MESSAGE_LENGTH:,} characters)"}
            )
            return
        await _ensure_session(websocket)
        await orchestrator.send_message(command.message)

    elif command.action == "theme_query":
        await _ensure_session(websocket)
        await orchestrator.send_theme_query(command.theme)

    elif command.action == "run_followups":
        await orchestrator.run_followup_queue()

    elif command.action == "set_followups":
        await orchestrator.set_followups(command.items)

    elif command.action == "reset":
        await orchestrator.reset()

    elif command.action == "analyze":
        themes = await state.theme_extractor.extract(command.text[:MAX_ANALYZE_LENGTH])
        await websocket.send_json({"type": "themes", "content": themes})

    elif command.action == "search":
        await _ensure_session(websocket)
        if command.themes:
            items = await state.dispatcher.search(command.themes)
        else:
            items = await state.dispatcher.search_theme(command.theme)
        await websocket.send_json({"type": "results", "content": [item.to_dict() for item in items]})

    elif command.action == "fetch":
        await _ensure_session(websocket)
        chart = await state.dispatcher.fetch_by_id(command.id)
        await websocket.send_json({"type": "chart", "content": chart})


@router.websocket("/ws/chat")
async def chat_websocket(websocket: WebSocket):
    """WebSocket endpoint for chat."""
    await websocket.accept()

    client = websocket.client.host if websocket.client else "unknown"
    logger.info(f"Chat connected from {client}")

    orchestrator = ChatOrchestrator(
        dispatcher=websocket.app.state.dispatcher,
        model_client=ModelStreamClient(websocket.app.state.http_client),
        emit=websocket.send_json,
    )

    try:
        while True:
            data = await websocket.receive_json()
            try:
                command = ChatCommand.model_validate(data)
            except ValidationError as e:
                await websocket.send_json({"type": "error", "content": f"Invalid command: {e.errors()[0]['msg']}"})
                continue

            try:
                await _handle_command(websocket, orchestrator, command)
            except WebSocketDisconnect:
                raise
            except StatBridgeError as e:
                log_error(logger, e, context=command.action, include_traceback=False)
                await websocket.send_json({"type": "error", "content": str(e), "code": e.code.value})
            except Exception as e:
                logger.error(f"Chat error: {e}", exc_info=True)
                await websocket.send_json({"type": "error", "content": f"Hit a snag: {e}"})

    except WebSocketDisconnect:
        logger.info(f"Chat disconnected: {client}")
    finally:
        orchestrator.cancel()
