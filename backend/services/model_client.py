"""
Model Client - streaming requests to the Anthropic Messages endpoint.

Raw httpx streaming is used here (not the SDK's stream helper) because the
orchestrator parses the SSE frames itself: tool-use input arrives as JSON
fragments spread over many chunks and is assembled incrementally.

Request body:
    {"model", "system", "messages", "tools", "max_tokens", "temperature", "stream": true}
"""

import json
import logging
from typing import Any, AsyncIterator, Dict, List, Optional

import httpx

from config import runtime_config
from errors import ConfigurationError, TransportError

logger = logging.getLogger(__name__)


TOOL_MANIFEST: List[Dict[str, Any]] = [
    {
        "name": "search-statistics",
        "description": "Search Statista database for statistics on any topic",
        "input_schema": {
            "type": "object",
            "properties": {
                "question": {"type": "string", "description": "The search query for statistics"},
                "limit": {
                    "type": "integer",
                    "description": "Maximum number of results (default 10)",
                    "default": 10,
                },
            },
            "required": ["question"],
        },
    },
    {
        "name": "get-chart-data-by-id",
        "description": "Get detailed data for a specific Statista chart by its ID",
        "input_schema": {
            "type": "object",
            "properties": {
                "id": {"type": "string", "description": "The Statista chart/statistic ID"},
            },
            "required": ["id"],
        },
    },
]


def build_stream_request(
    messages: List[Dict[str, Any]],
    system: str,
    tools: Optional[List[Dict[str, Any]]] = None,
) -> Dict[str, Any]:
    """Assemble a streaming Messages request body.

    Args:
        messages: Wire-format history (role + string or block-list content)
        system: System prompt for this request
        tools: Tool definitions; the fixed manifest when omitted
    """
    return {
        "model": runtime_config.model_chat,
        "system": system,
        "messages": messages,
        "tools": tools if tools is not None else TOOL_MANIFEST,
        "max_tokens": runtime_config.max_tokens,
        "temperature": runtime_config.temperature,
        "stream": True,
    }


def api_error_message(body: bytes, status_code: int) -> str:
    """Pull ``error.message`` from an API error body, else a generic status line."""
    try:
        parsed = json.loads(body)
    except ValueError:
        parsed = None
    if isinstance(parsed, dict) and isinstance(parsed.get("error"), dict):
        message = parsed["error"].get("message")
        if message:
            return str(message)
    return f"Model API returned HTTP {status_code}"


class ModelStreamClient:
    """Opens a streaming POST and yields raw response chunks."""

    def __init__(self, http_client: Optional[httpx.AsyncClient] = None, api_key: Optional[str] = None):
        self._owns_client = http_client is None
        self._http = http_client or httpx.AsyncClient()
        self._api_key = api_key

    @property
    def api_key(self) -> str:
        return self._api_key if self._api_key is not None else runtime_config.anthropic_api_key

    @property
    def configured(self) -> bool:
        return bool(self.api_key)

    async def aclose(self) -> None:
        if self._owns_client:
            await self._http.aclose()

    def _headers(self) -> Dict[str, str]:
        return {
            "Content-Type": "application/json",
            "x-api-key": self.api_key,
            "anthropic-version": runtime_config.anthropic_version,
        }

    async def stream(self, body: Dict[str, Any]) -> AsyncIterator[bytes]:
        """Yield response bytes as they arrive.

        Raises:
            ConfigurationError: no API key
            TransportError: connection failure or HTTP error status; for the
                latter the message is the API's ``error.message`` when present
        """
        if not self.api_key:
            raise ConfigurationError("Anthropic API key not configured", setting="anthropic_api_key")

        # No read timeout: the stream stays open as long as the model writes
        timeout = httpx.Timeout(None, connect=runtime_config.connect_timeout)
        try:
            async with self._http.stream(
                "POST", runtime_config.anthropic_url, json=body, headers=self._headers(), timeout=timeout
            ) as response:
                if response.status_code >= 400:
                    error_body = await response.aread()
                    message = api_error_message(error_body, response.status_code)
                    logger.error(f"Model API error {response.status_code}: {error_body[:200]!r}")
                    raise TransportError(message, service="anthropic", status_code=response.status_code)

                async for chunk in response.aiter_bytes():
                    yield chunk
        except httpx.HTTPError as e:
            raise TransportError(f"Network: {e}", service="anthropic")
