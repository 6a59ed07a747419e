"""
Error codes for StatBridge.

Provides a standardized taxonomy of error codes organized by category.
Use these codes consistently across all error responses.
"""

from enum import Enum


class ErrorCode(str, Enum):
    """Standardized error codes for StatBridge.

    Categories:
    - CONFIG_*: Missing endpoint, credential or session
    - TRANSPORT_*: Connection and HTTP failures
    - PROTOCOL_*: Unparseable bodies, missing fields, bad tool input
    - CORRELATION_*: Tool results that match no pending call
    - INTERNAL_*: Internal/unexpected errors
    """

    # Configuration errors (surfaced immediately, never retried)
    CONFIG_ENDPOINT_MISSING = "CONFIG_ENDPOINT_MISSING"
    CONFIG_CREDENTIAL_MISSING = "CONFIG_CREDENTIAL_MISSING"
    CONFIG_SESSION_NOT_INITIALIZED = "CONFIG_SESSION_NOT_INITIALIZED"

    # Transport errors (connection / HTTP status)
    TRANSPORT_CONNECTION_FAILED = "TRANSPORT_CONNECTION_FAILED"
    TRANSPORT_HTTP_STATUS = "TRANSPORT_HTTP_STATUS"
    TRANSPORT_TIMEOUT = "TRANSPORT_TIMEOUT"

    # Protocol errors (payload shape)
    PROTOCOL_BAD_BODY = "PROTOCOL_BAD_BODY"
    PROTOCOL_NO_SSE_DATA = "PROTOCOL_NO_SSE_DATA"
    PROTOCOL_BAD_TOOL_INPUT = "PROTOCOL_BAD_TOOL_INPUT"
    PROTOCOL_MISSING_FIELD = "PROTOCOL_MISSING_FIELD"

    # Correlation errors (tool results)
    CORRELATION_NO_PENDING_CALL = "CORRELATION_NO_PENDING_CALL"
    CORRELATION_TOOL_LIMIT = "CORRELATION_TOOL_LIMIT"

    # Internal errors (unexpected failures)
    INTERNAL_UNEXPECTED = "INTERNAL_UNEXPECTED"
