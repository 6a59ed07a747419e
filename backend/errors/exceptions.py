"""
Custom exception hierarchy for StatBridge.

All exceptions inherit from StatBridgeError and include:
- code: ErrorCode for categorization
- message: Human-readable error message
- details: Optional additional context
- recoverable: Whether the caller can retry/fix the issue
- context: Additional key-value pairs for debugging
"""

from typing import Any, Optional
from .codes import ErrorCode


class StatBridgeError(Exception):
    """Base exception for all StatBridge errors.

    Attributes:
        code: The ErrorCode categorizing this error
        message: Human-readable error message
        details: Optional additional context for the user
        recoverable: Whether the error can be resolved by user action
        context: Additional debugging information
    """

    code: ErrorCode = ErrorCode.INTERNAL_UNEXPECTED
    recoverable: bool = False

    def __init__(
        self,
        message: str,
        details: Optional[str] = None,
        code: Optional[ErrorCode] = None,
        recoverable: Optional[bool] = None,
        **context: Any,
    ):
        self.message = message
        self.details = details
        self.context = context if context else None

        # Allow overriding class defaults
        if code is not None:
            self.code = code
        if recoverable is not None:
            self.recoverable = recoverable

        super().__init__(message)

    def __str__(self) -> str:
        if self.details:
            return f"{self.message} - {self.details}"
        return self.message

    def to_dict(self) -> dict:
        """Convert exception to dictionary for JSON serialization."""
        return {
            "code": self.code.value,
            "message": self.message,
            "details": self.details,
            "recoverable": self.recoverable,
            "context": self.context,
        }


class ConfigurationError(StatBridgeError):
    """Missing endpoint or credential. Never retried automatically."""

    code = ErrorCode.CONFIG_ENDPOINT_MISSING
    recoverable = True

    def __init__(self, message: str, details: Optional[str] = None, setting: Optional[str] = None, **context: Any):
        if setting in ("api_key", "anthropic_api_key", "mcp_api_key", "credential"):
            code = ErrorCode.CONFIG_CREDENTIAL_MISSING
        elif setting == "session":
            code = ErrorCode.CONFIG_SESSION_NOT_INITIALIZED
        else:
            code = ErrorCode.CONFIG_ENDPOINT_MISSING

        ctx = {**context}
        if setting:
            ctx["setting"] = setting
        super().__init__(message, details, code=code, **ctx)


class SessionNotInitializedError(ConfigurationError):
    """A tool call was attempted before the search service assigned a session."""

    def __init__(self, message: str = "Session not initialized", details: Optional[str] = None, **context: Any):
        super().__init__(message, details, setting="session", **context)


class TransportError(StatBridgeError):
    """Connection or HTTP failure talking to the model or search service."""

    code = ErrorCode.TRANSPORT_CONNECTION_FAILED
    recoverable = True

    def __init__(
        self,
        message: str,
        details: Optional[str] = None,
        service: Optional[str] = None,
        status_code: Optional[int] = None,
        error_type: Optional[str] = None,
        **context: Any,
    ):
        if error_type == "timeout":
            code = ErrorCode.TRANSPORT_TIMEOUT
        elif status_code:
            code = ErrorCode.TRANSPORT_HTTP_STATUS
        else:
            code = ErrorCode.TRANSPORT_CONNECTION_FAILED

        ctx = {**context}
        if service:
            ctx["service"] = service
        if status_code:
            ctx["status_code"] = status_code
        self.status_code = status_code
        super().__init__(message, details, code=code, **ctx)


class ProtocolError(StatBridgeError):
    """A reply or stream payload did not have the expected shape."""

    code = ErrorCode.PROTOCOL_BAD_BODY
    recoverable = False

    def __init__(self, message: str, details: Optional[str] = None, kind: Optional[str] = None, **context: Any):
        if kind == "sse":
            code = ErrorCode.PROTOCOL_NO_SSE_DATA
        elif kind == "tool_input":
            code = ErrorCode.PROTOCOL_BAD_TOOL_INPUT
        elif kind == "field":
            code = ErrorCode.PROTOCOL_MISSING_FIELD
        else:
            code = ErrorCode.PROTOCOL_BAD_BODY
        super().__init__(message, details, code=code, **context)


class CorrelationError(StatBridgeError):
    """A tool result arrived for an id with no pending call."""

    code = ErrorCode.CORRELATION_NO_PENDING_CALL
    recoverable = True

    def __init__(self, message: str, details: Optional[str] = None, request_id: Optional[str] = None, **context: Any):
        ctx = {**context}
        if request_id:
            ctx["request_id"] = request_id
        self.request_id = request_id
        super().__init__(message, details, **ctx)
