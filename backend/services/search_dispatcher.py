"""
Search Dispatcher - statistics search operations over the MCP session.

Maps high-level operations onto ``tools/call`` requests:
- search(themes)          -> search-statistics {"question": "...", "limit": N}
- fetch_by_id(id)         -> get-chart-data-by-id {"id": "..."}
- invoke_tool(name, args) -> any tool, raw reply returned for the orchestrator

Search replies come in several shapes; normalize_search_result() flattens
them into SearchResultItem lists.
"""

import json
import logging
from dataclasses import asdict, dataclass
from typing import Any, Dict, List, Optional

from config import runtime_config
from errors import SessionNotInitializedError
from logging_config import log_tool
from services.mcp_session import RPCSessionClient

logger = logging.getLogger(__name__)

SEARCH_TOOL = "search-statistics"
CHART_TOOL = "get-chart-data-by-id"


@dataclass
class SearchResultItem:
    title: str = ""
    url: str = ""
    id: str = ""
    summary: str = ""

    @classmethod
    def from_dict(cls, item: Dict[str, Any]) -> "SearchResultItem":
        return cls(
            title=str(item.get("title") or ""),
            url=str(item.get("url") or item.get("link") or ""),
            id=str(item.get("id") or ""),
            summary=str(item.get("summary") or ""),
        )

    def to_dict(self) -> Dict[str, str]:
        return asdict(self)


@dataclass
class ToolResult:
    """Reply to an invoke_tool() call, tagged with the model-issued id."""

    request_id: str
    payload: Dict[str, Any]


def _items_from_list(raw: Any) -> List[SearchResultItem]:
    if not isinstance(raw, list):
        return []
    return [SearchResultItem.from_dict(item) for item in raw if isinstance(item, dict)]


def normalize_search_result(result: Any) -> List[SearchResultItem]:
    """Flatten a search-statistics ``result`` into items.

    Recognized shapes, first match wins:
        result.content[0].data      (array)
        result.content[0].results   (array)
        result.content[0].text      (JSON string with "items")
        result                      (bare array)
        result.items                (array)
    Anything else yields an empty list.
    """
    if isinstance(result, list):
        return _items_from_list(result)
    if not isinstance(result, dict):
        return []

    content = result.get("content")
    if isinstance(content, list) and content and isinstance(content[0], dict):
        first = content[0]
        for key in ("data", "results"):
            if isinstance(first.get(key), list):
                return _items_from_list(first[key])
        text = first.get("text")
        if isinstance(text, str):
            try:
                decoded = json.loads(text)
            except ValueError:
                decoded = None
            if isinstance(decoded, dict) and isinstance(decoded.get("items"), list):
                return _items_from_list(decoded["items"])

    if isinstance(result.get("items"), list):
        return _items_from_list(result["items"])
    return []


class SearchDispatcher:
    """High-level search operations on a shared RPCSessionClient."""

    def __init__(self, client: RPCSessionClient):
        self.client = client

    @property
    def session(self):
        return self.client.session

    async def search(self, themes: List[str], limit: Optional[int] = None) -> List[SearchResultItem]:
        """Search statistics for a list of themes (joined into one question)."""
        question = " ".join(themes)
        limit = limit if limit is not None else runtime_config.search_limit

        log_tool(logger, SEARCH_TOOL, "start", question=question[:60], limit=limit)
        reply = await self.client.call(
            "tools/call",
            {"name": SEARCH_TOOL, "arguments": {"question": question, "limit": limit}},
        )
        if "error" in reply:
            logger.warning(f"Search returned error: {reply['error']}")
        items = normalize_search_result(reply.get("result"))
        log_tool(logger, SEARCH_TOOL, "end", items=len(items))
        return items

    async def search_theme(self, theme: str) -> List[SearchResultItem]:
        return await self.search([theme])

    async def fetch_by_id(self, chart_id: str) -> Optional[Dict[str, Any]]:
        """Fetch one chart; returns the first content element verbatim, or None."""
        log_tool(logger, CHART_TOOL, "start", id=chart_id)
        reply = await self.client.call(
            "tools/call",
            {"name": CHART_TOOL, "arguments": {"id": chart_id}},
        )
        result = reply.get("result")
        content = result.get("content") if isinstance(result, dict) else None
        chart = content[0] if isinstance(content, list) and content else None
        log_tool(logger, CHART_TOOL, "end", found=chart is not None)
        return chart

    async def invoke_tool(self, name: str, arguments: Dict[str, Any], request_id: str) -> ToolResult:
        """Run a model-requested tool call.

        Raises:
            SessionNotInitializedError: no session token has been assigned yet
        """
        if not self.session.has_token:
            raise SessionNotInitializedError()

        reply = await self.client.call("tools/call", {"name": name, "arguments": arguments})
        return ToolResult(request_id=request_id, payload=reply)
