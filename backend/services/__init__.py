"""
StatBridge Services - Outbound clients.

- mcp_session: JSON-RPC session client for the statistics search service
- search_dispatcher: High-level search / chart operations on that session
- model_client: Streaming requests to the model API
- theme_extractor: Theme extraction (model with heuristic fallback)
- sse: Server-Sent Events framing helpers
"""

from .mcp_session import RPCSessionClient, Session
from .search_dispatcher import SearchDispatcher, SearchResultItem, ToolResult
from .model_client import ModelStreamClient, build_stream_request, TOOL_MANIFEST
from .theme_extractor import ThemeExtractor, extract_themes_naive

__all__ = [
    "RPCSessionClient",
    "Session",
    "SearchDispatcher",
    "SearchResultItem",
    "ToolResult",
    "ModelStreamClient",
    "build_stream_request",
    "TOOL_MANIFEST",
    "ThemeExtractor",
    "extract_themes_naive",
]
