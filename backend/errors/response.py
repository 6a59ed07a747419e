"""
Standard error response builders for StatBridge.

Provides consistent payload formats for errors sent to WebSocket clients
and for error results handed back to the model as tool output.
"""

from typing import Any, Optional
from .codes import ErrorCode
from .exceptions import StatBridgeError


def error_response(error: StatBridgeError | Exception, tool: Optional[str] = None, include_context: bool = True) -> dict:
    """Build a standard error response dictionary.

    Args:
        error: The exception to convert to a response
        tool: Optional tool name for context
        include_context: Whether to include the context dict (disable for privacy)

    Returns:
        Standard error response dict with success=False

    Example:
        >>> from errors import ConfigurationError, error_response
        >>> err = ConfigurationError("Endpoint not configured")
        >>> error_response(err, tool="search-statistics")
        {
            "success": False,
            "error": {
                "code": "CONFIG_ENDPOINT_MISSING",
                "message": "Endpoint not configured",
                "details": None,
                "tool": "search-statistics",
                "recoverable": True,
                "context": None
            }
        }
    """
    if isinstance(error, StatBridgeError):
        return {
            "success": False,
            "error": {
                "code": error.code.value,
                "message": error.message,
                "details": error.details,
                "tool": tool,
                "recoverable": error.recoverable,
                "context": error.context if include_context else None,
            },
        }

    return {
        "success": False,
        "error": {
            "code": ErrorCode.INTERNAL_UNEXPECTED.value,
            "message": str(error),
            "details": None,
            "tool": tool,
            "recoverable": False,
            "context": None,
        },
    }


def format_error_for_llm(error: StatBridgeError | Exception, tool: Optional[str] = None) -> str:
    """Format an error for inclusion in model context or visible chat text.

    Returns:
        Concise string starting with "Error:"
    """
    if isinstance(error, StatBridgeError):
        parts = [f"Error: {error.message}"]
        if error.details:
            parts.append(f"Details: {error.details}")
        if tool:
            parts.append(f"(tool: {tool})")
        return " ".join(parts)

    return f"Error: {str(error)}"
