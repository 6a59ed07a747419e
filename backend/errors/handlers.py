"""
Error handling decorators and utilities for StatBridge.
"""

import logging
from functools import wraps
from typing import Any, Callable, Optional, TypeVar

from .exceptions import StatBridgeError
from .response import error_response

F = TypeVar("F", bound=Callable[..., Any])


def handle_async_tool_errors(tool_name: str, logger: Optional[logging.Logger] = None):
    """Decorator that turns exceptions of an async tool coroutine into error dicts.

    The wrapped coroutine never raises (except cancellation); failures are
    logged and returned as ``error_response`` payloads.

    Example:
        >>> @handle_async_tool_errors("search-statistics")
        ... async def run(args):
        ...     raise ConfigurationError("Endpoint not configured")
    """

    def decorator(func: F) -> F:
        log = logger or logging.getLogger(f"statbridge.{tool_name}")

        @wraps(func)
        async def wrapper(*args: Any, **kwargs: Any) -> dict:
            try:
                return await func(*args, **kwargs)
            except StatBridgeError as e:
                log.error(f"[{tool_name}] {e.code.value}: {e.message}")
                return error_response(e, tool=tool_name)
            except Exception as e:
                log.error(f"[{tool_name}] Unexpected error: {e}", exc_info=True)
                return error_response(e, tool=tool_name)

        return wrapper  # type: ignore

    return decorator


def log_error(
    logger: logging.Logger, error: Exception, context: Optional[str] = None, include_traceback: bool = True
) -> None:
    """Log an error with consistent formatting.

    Example:
        >>> log_error(logger, err, context="RPC")
        # Logs: "[RPC] TRANSPORT_HTTP_STATUS: Search service returned 502"
    """
    if isinstance(error, StatBridgeError):
        message = f"{error.code.value}: {error.message}"
    else:
        message = str(error)

    if context:
        message = f"[{context}] {message}"

    logger.error(message, exc_info=include_traceback)
