"""
StatBridge Error Handling Module

Provides standardized error codes, exceptions, and response builders
for consistent error handling across the RPC client, the search
dispatcher and the chat orchestrator.

Usage:
    from errors import (
        # Error codes
        ErrorCode,

        # Exceptions
        StatBridgeError,
        ConfigurationError,
        SessionNotInitializedError,
        TransportError,
        ProtocolError,
        CorrelationError,

        # Response builders
        error_response,
        format_error_for_llm,

        # Decorators
        handle_async_tool_errors,
        log_error,
    )

Example:
    from errors import ConfigurationError, TransportError

    async def call(self, method, params):
        if not self.session.endpoint:
            raise ConfigurationError("Endpoint not configured")
        try:
            resp = await self._http.post(self.session.endpoint, json=payload)
        except httpx.HTTPError as e:
            raise TransportError("Search service unreachable", details=str(e), service="mcp")
"""

from .codes import ErrorCode
from .exceptions import (
    StatBridgeError,
    ConfigurationError,
    SessionNotInitializedError,
    TransportError,
    ProtocolError,
    CorrelationError,
)
from .response import (
    error_response,
    format_error_for_llm,
)
from .handlers import (
    handle_async_tool_errors,
    log_error,
)

__all__ = [
    # Error codes
    "ErrorCode",
    # Exceptions
    "StatBridgeError",
    "ConfigurationError",
    "SessionNotInitializedError",
    "TransportError",
    "ProtocolError",
    "CorrelationError",
    # Response builders
    "error_response",
    "format_error_for_llm",
    # Decorators
    "handle_async_tool_errors",
    "log_error",
]
