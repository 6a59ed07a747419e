"""
MCP Session Client - JSON-RPC over HTTP to the statistics search service.

The service is session oriented:
- A one-time ``initialize`` handshake declares protocol version and capabilities.
- The server assigns an opaque session token in the ``mcp-session-id`` response
  header (never in the JSON-RPC body). Once seen, the token is echoed on
  every later request. It is captured from *any* response, not only the
  handshake reply.

Replies come in one of two framings:
    application/json        {"jsonrpc": "2.0", "id": 1, "result": {...}}
    text/event-stream       event: message
                            data: {"jsonrpc": "2.0", "id": 1, "result": {...}}

Errors are raised, never swallowed; the client stays usable after any of them:
    missing endpoint  -> ConfigurationError
    network / status  -> TransportError
    unparseable body  -> ProtocolError
"""

import itertools
import json
import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional

import httpx

from config import runtime_config
from errors import ConfigurationError, ProtocolError, StatBridgeError, TransportError, log_error
from logging_config import log_rpc
from services.sse import first_data_object, looks_like_sse

logger = logging.getLogger(__name__)

SESSION_HEADER = "mcp-session-id"
JSONRPC_VERSION = "2.0"


@dataclass
class Session:
    """Connection state shared by the RPC client and the search dispatcher.

    Passed by reference; ``session_token`` is updated with a single
    attribute write whenever a response carries one.
    """

    endpoint: str = ""
    credential: str = ""
    session_token: Optional[str] = None
    initialized: bool = False

    @property
    def has_token(self) -> bool:
        return bool(self.session_token)

    def reset(self) -> None:
        """Forget server-assigned state (endpoint and credential are kept)."""
        self.session_token = None
        self.initialized = False


def parse_rpc_body(body: str) -> Dict[str, Any]:
    """Decode a JSON-RPC reply body in either framing.

    Raises:
        ProtocolError: SSE body without a JSON object data line, or a body
            that is not a JSON object at all.
    """
    if looks_like_sse(body):
        reply = first_data_object(body)
        if reply is None:
            raise ProtocolError(
                "No JSON data line in event-stream reply",
                details=body[:200],
                kind="sse",
            )
        return reply

    try:
        reply = json.loads(body)
    except ValueError:
        raise ProtocolError("Bad response", details=body[:200])
    if not isinstance(reply, dict):
        raise ProtocolError("Bad response", details="JSON-RPC reply is not an object")
    return reply


class RPCSessionClient:
    """Sends JSON-RPC calls over one session.

    Args:
        session: Shared Session object (endpoint, credential, token)
        http_client: Shared httpx.AsyncClient; one is created if omitted
        timeout: Per-request timeout in seconds
    """

    def __init__(
        self,
        session: Session,
        http_client: Optional[httpx.AsyncClient] = None,
        timeout: Optional[float] = None,
    ):
        self.session = session
        self._owns_client = http_client is None
        self._http = http_client or httpx.AsyncClient()
        self._timeout = timeout if timeout is not None else runtime_config.rpc_timeout
        self._ids = itertools.count(1)

    async def aclose(self) -> None:
        if self._owns_client:
            await self._http.aclose()

    def next_id(self) -> int:
        return next(self._ids)

    def _headers(self) -> Dict[str, str]:
        headers = {
            "Content-Type": "application/json",
            "Accept": "application/json, text/event-stream",
        }
        if self.session.credential:
            headers["x-api-key"] = self.session.credential
        # Only after the server has assigned one
        if self.session.session_token:
            headers[SESSION_HEADER] = self.session.session_token
        return headers

    def _capture_token(self, response: httpx.Response) -> None:
        token = response.headers.get(SESSION_HEADER)
        if token and token != self.session.session_token:
            self.session.session_token = token
            logger.info(f"Got session ID from server: {token}")

    async def call(self, method: str, params: Optional[Dict[str, Any]] = None, request_id: Any = None) -> Dict[str, Any]:
        """Send one JSON-RPC request and return the decoded reply envelope.

        Args:
            method: JSON-RPC method ("initialize", "tools/call", ...)
            params: Method parameters
            request_id: Explicit JSON-RPC id; a per-client counter otherwise

        Returns:
            The whole reply object (``result`` or ``error`` left for the caller)
        """
        endpoint = self.session.endpoint
        if not endpoint:
            raise ConfigurationError("Endpoint not configured", setting="endpoint")

        payload = {
            "jsonrpc": JSONRPC_VERSION,
            "id": request_id if request_id is not None else self.next_id(),
            "method": method,
            "params": params or {},
        }
        log_rpc(logger, method, "start", id=payload["id"], session=self.session.session_token or "-")

        try:
            response = await self._http.post(endpoint, json=payload, headers=self._headers(), timeout=self._timeout)
        except httpx.TimeoutException as e:
            raise TransportError("Search service timed out", details=str(e), service="mcp", error_type="timeout")
        except httpx.HTTPError as e:
            raise TransportError(f"Network: {e}", service="mcp")

        self._capture_token(response)

        if response.is_error:
            raise TransportError(
                f"Search service returned {response.status_code}",
                details=response.text[:200],
                service="mcp",
                status_code=response.status_code,
            )

        reply = parse_rpc_body(response.text)
        log_rpc(logger, method, "end", status=response.status_code, has_result="result" in reply)
        return reply

    async def initialize(self) -> bool:
        """Run the handshake once.

        Returns:
            True once the session is initialized. A reply without ``result``
            leaves it uninitialized so a later attempt retries.

        Raises:
            ConfigurationError: endpoint is unset
        """
        if self.session.initialized:
            return True
        if not self.session.endpoint:
            raise ConfigurationError("Endpoint not configured", setting="endpoint")

        logger.info("Initializing MCP session...")
        reply = await self.call(
            "initialize",
            {
                "protocolVersion": runtime_config.mcp_protocol_version,
                "capabilities": {"tools": {}, "sampling": {}},
                "clientInfo": {
                    "name": runtime_config.client_name,
                    "version": runtime_config.client_version,
                },
            },
        )
        if "result" in reply:
            self.session.initialized = True
            logger.info("MCP session initialized")
        else:
            logger.warning(f"MCP handshake rejected: {reply.get('error')}")
        return self.session.initialized

    async def configure(self, endpoint: Optional[str] = None, credential: Optional[str] = None) -> bool:
        """Update endpoint/credential and attempt the handshake when both are set.

        A failed attempt is logged and leaves the session uninitialized; the
        next configure() call with both values present retries it.

        Returns:
            Whether the session is initialized afterwards.
        """
        if endpoint is not None and endpoint != self.session.endpoint:
            self.session.endpoint = endpoint
            self.session.reset()
        if credential is not None:
            self.session.credential = credential

        if self.session.initialized or not (self.session.endpoint and self.session.credential):
            return self.session.initialized

        try:
            return await self.initialize()
        except StatBridgeError as e:
            log_error(logger, e, context="MCP handshake", include_traceback=False)
            return False
