"""
Shared pytest fixtures and helpers for StatBridge tests.

HTTP is scripted with httpx.MockTransport: FakeBackend answers both the model
streaming endpoint and the statistics search service, and records every
request it sees. Async code is driven with asyncio.run() inside plain tests.
"""

import json
from typing import Any, Dict, List, Optional, Tuple

import httpx
import pytest

from config import runtime_config

MODEL_URL = "https://model.test/v1/messages"
MCP_URL = "https://search.test/v1/mcp"


@pytest.fixture(autouse=True)
def test_config(monkeypatch):
    """Pin endpoints and limits so the environment cannot leak into tests."""
    monkeypatch.setattr(runtime_config, "anthropic_url", MODEL_URL)
    monkeypatch.setattr(runtime_config, "anthropic_api_key", "")
    monkeypatch.setattr(runtime_config, "mcp_endpoint", MCP_URL)
    monkeypatch.setattr(runtime_config, "mcp_api_key", "")
    monkeypatch.setattr(runtime_config, "max_tool_rounds", 3)
    monkeypatch.setattr(runtime_config, "search_limit", 12)
    return runtime_config


# ---------------------------------------------------------------------------
# SSE builders for the model stream
# ---------------------------------------------------------------------------

def sse(payload: Dict[str, Any]) -> bytes:
    """One SSE block carrying a model stream event."""
    return f"event: {payload['type']}\ndata: {json.dumps(payload)}\n\n".encode()


def text_events(*texts: str, stop_reason: str = "end_turn") -> List[bytes]:
    """A complete model reply made of text deltas."""
    blocks = [
        sse({"type": "message_start", "message": {"id": "msg_1", "role": "assistant"}}),
        sse({"type": "content_block_start", "index": 0, "content_block": {"type": "text", "text": ""}}),
    ]
    for text in texts:
        blocks.append(sse({
            "type": "content_block_delta",
            "index": 0,
            "delta": {"type": "text_delta", "text": text},
        }))
    blocks += [
        sse({"type": "content_block_stop", "index": 0}),
        sse({"type": "message_delta", "delta": {"stop_reason": stop_reason}}),
        sse({"type": "message_stop"}),
    ]
    return blocks


def tool_use_events(tool_id: str, name: str, fragments: List[str], lead_text: str = "") -> List[bytes]:
    """A model reply that requests one tool call, input split into fragments."""
    return multi_tool_events([(tool_id, name, fragments)], lead_text=lead_text)


def multi_tool_events(calls: List[Tuple[str, str, List[str]]], lead_text: str = "") -> List[bytes]:
    """A model reply that requests each (id, name, fragments) call in order."""
    blocks = [sse({"type": "message_start", "message": {"id": "msg_t", "role": "assistant"}})]
    if lead_text:
        blocks += [
            sse({"type": "content_block_start", "index": 0, "content_block": {"type": "text", "text": ""}}),
            sse({"type": "content_block_delta", "index": 0, "delta": {"type": "text_delta", "text": lead_text}}),
            sse({"type": "content_block_stop", "index": 0}),
        ]
    for index, (tool_id, name, fragments) in enumerate(calls, start=1):
        blocks.append(sse({
            "type": "content_block_start",
            "index": index,
            "content_block": {"type": "tool_use", "id": tool_id, "name": name, "input": {}},
        }))
        for fragment in fragments:
            blocks.append(sse({
                "type": "content_block_delta",
                "index": index,
                "delta": {"type": "input_json_delta", "partial_json": fragment},
            }))
        blocks.append(sse({"type": "content_block_stop", "index": index}))
    blocks += [
        sse({"type": "message_delta", "delta": {"stop_reason": "tool_use"}}),
        sse({"type": "message_stop"}),
    ]
    return blocks


def rechunk(blocks: List[bytes], size: int) -> List[bytes]:
    """Concatenate blocks and cut them into fixed-size chunks."""
    data = b"".join(blocks)
    return [data[i:i + size] for i in range(0, len(data), size)]


# ---------------------------------------------------------------------------
# Search service replies
# ---------------------------------------------------------------------------

def rpc_result(result: Any, request_id: Any = 1) -> Dict[str, Any]:
    return {"jsonrpc": "2.0", "id": request_id, "result": result}


def text_content(data: Any) -> Dict[str, Any]:
    """A tools/call result whose first content element is a JSON string."""
    return {"content": [{"type": "text", "text": json.dumps(data)}]}


# ---------------------------------------------------------------------------
# Scripted backend
# ---------------------------------------------------------------------------

class FakeBackend:
    """Answers model and search requests from scripted queues.

    Attributes:
        model_streams: Chunk lists (or async generator functions), one per model request
        model_status: (status, body) pairs to answer instead of a stream
        rpc_replies: httpx.Response objects or JSON dicts, one per RPC request
        session_token: Header value sent on every RPC reply (None to omit)
    """

    def __init__(self, session_token: Optional[str] = "sess-1"):
        self.model_streams: List[Any] = []
        self.model_status: List[tuple] = []
        self.model_requests: List[Dict[str, Any]] = []
        self.rpc_replies: List[Any] = []
        self.rpc_requests: List[httpx.Request] = []
        self.session_token = session_token

    @property
    def rpc_bodies(self) -> List[Dict[str, Any]]:
        return [json.loads(r.content) for r in self.rpc_requests]

    def _model(self, request: httpx.Request) -> httpx.Response:
        self.model_requests.append(json.loads(request.content))
        if self.model_status:
            status, body = self.model_status.pop(0)
            return httpx.Response(status, json=body)

        source = self.model_streams.pop(0) if self.model_streams else text_events("")

        async def body():
            for chunk in source:
                yield chunk

        # An async generator function scripts a stream that can block mid-way
        stream = source() if callable(source) else body()
        return httpx.Response(200, content=stream, headers={"content-type": "text/event-stream"})

    def _rpc(self, request: httpx.Request) -> httpx.Response:
        self.rpc_requests.append(request)
        reply = self.rpc_replies.pop(0) if self.rpc_replies else rpc_result({})
        if isinstance(reply, httpx.Response):
            return reply
        headers = {"mcp-session-id": self.session_token} if self.session_token else {}
        return httpx.Response(200, json=reply, headers=headers)

    def handler(self, request: httpx.Request) -> httpx.Response:
        if str(request.url) == MODEL_URL:
            return self._model(request)
        return self._rpc(request)

    def client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=httpx.MockTransport(self.handler))


@pytest.fixture
def backend():
    return FakeBackend()


class EventRecorder:
    """Async emit target that keeps every event."""

    def __init__(self):
        self.events: List[Dict[str, Any]] = []

    async def __call__(self, event: Dict[str, Any]) -> None:
        self.events.append(event)

    def of_type(self, event_type: str) -> List[Dict[str, Any]]:
        return [e for e in self.events if e["type"] == event_type]

    def partial_text(self) -> str:
        return "".join(e["content"] for e in self.of_type("partial"))


@pytest.fixture
def recorder():
    return EventRecorder()
