"""
StatBridge Logging Configuration

Console logging for the backend. Event helpers (log_message_in, log_tool,
log_llm, log_rpc, log_message_out) write plain-text records tagged with an
``event`` attribute; EventFormatter turns the tag into a colored marker when
the output stream is a terminal.

Usage:
    from logging_config import setup_logging, log_tool
    setup_logging()
    logger = logging.getLogger(__name__)
    log_tool(logger, "search-statistics", "start", id="tu_1")

Environment:
    LOG_LEVEL   root level name (default INFO)
    NO_COLOR    disable ANSI colors when set to any value
"""

import logging
import os
import sys
from typing import Dict, Iterable, Optional, TextIO

RESET = "\033[0m"
DIM = "\033[2m"

# Marker colors keyed by the record's ``event`` attribute
EVENT_COLORS: Dict[str, str] = {
    "message": "\033[96m",
    "turn": "\033[92m",
    "tool": "\033[93m",
    "llm": "\033[94m",
    "rpc": "\033[95m",
}

LEVEL_COLORS: Dict[int, str] = {
    logging.DEBUG: "\033[90m",
    logging.WARNING: "\033[33m",
    logging.ERROR: "\033[91m",
    logging.CRITICAL: "\033[1;91m",
}

QUIET_LOGGERS = ("httpx", "httpcore", "anthropic", "uvicorn.access")


def color_enabled(stream: Optional[TextIO]) -> bool:
    if os.environ.get("NO_COLOR") is not None:
        return False
    isatty = getattr(stream, "isatty", None)
    return bool(isatty and isatty())


class EventFormatter(logging.Formatter):
    """``HH:MM:SS LEVL name: message`` with optional ANSI markers.

    ``name`` is the last component of the logger name. When a record carries
    an ``event`` tag, its leading ``>>>``/``<<<`` marker is colored.
    """

    def __init__(self, use_color: bool = False):
        super().__init__(datefmt="%H:%M:%S")
        self.use_color = use_color

    def _paint(self, text: str, color: Optional[str]) -> str:
        if not self.use_color or not color:
            return text
        return f"{color}{text}{RESET}"

    def format(self, record: logging.LogRecord) -> str:
        message = record.getMessage()
        event = getattr(record, "event", None)
        if event and message.startswith((">>> ", "<<< ")):
            marker, _, rest = message.partition(" ")
            label, _, tail = rest.partition(" ")
            message = self._paint(f"{marker} {label}", EVENT_COLORS.get(event)) + (f" {tail}" if tail else "")

        line = "{} {} {}: {}".format(
            self._paint(self.formatTime(record, self.datefmt), DIM),
            self._paint(record.levelname[:4].ljust(4), LEVEL_COLORS.get(record.levelno)),
            record.name.rsplit(".", 1)[-1],
            message,
        )
        if record.exc_info:
            line += "\n" + self.formatException(record.exc_info)
        return line


def setup_logging(level: Optional[int] = None, stream: Optional[TextIO] = None) -> logging.Handler:
    """Install a single console handler on the root logger and return it."""
    stream = stream if stream is not None else sys.stdout
    if level is None:
        level = logging.getLevelName(os.environ.get("LOG_LEVEL", "INFO").upper())
        if not isinstance(level, int):
            level = logging.INFO

    handler = logging.StreamHandler(stream)
    handler.setFormatter(EventFormatter(use_color=color_enabled(stream)))

    root = logging.getLogger()
    root.setLevel(level)
    root.handlers = [handler]

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
    return handler


def _pairs(context: Dict[str, object]) -> str:
    return " ".join(f"{key}={value}" for key, value in context.items())


def _emit(logger: logging.Logger, level: int, event: str, marker: str, label: str, parts: Iterable[str]) -> None:
    text = " ".join(p for p in (f"{marker} {label}", *parts) if p)
    logger.log(level, text, extra={"event": event})


def log_message_in(logger: logging.Logger, message: str, **context) -> None:
    """Log an incoming user message, truncated to 80 characters."""
    preview = message if len(message) <= 80 else message[:80] + "..."
    _emit(logger, logging.INFO, "message", ">>>", "MESSAGE", [preview, f"[{_pairs(context)}]"])


def log_message_out(
    logger: logging.Logger,
    stop_reason: str = "",
    tools_used: Optional[list] = None,
    citations: int = 0,
) -> None:
    """Log the end of a model turn with the tools it used."""
    tools = ", ".join(tools_used) if tools_used else "none"
    parts = [f"stop={stop_reason or '-'}", f"tools=[{tools}]", f"citations={citations}"]
    _emit(logger, logging.INFO, "turn", "<<<", "TURN", parts)


def log_tool(logger: logging.Logger, tool_name: str, state: str, **context) -> None:
    """Log a tool call starting (``state="start"``) or finishing."""
    marker = ">>>" if state == "start" else "<<<"
    _emit(logger, logging.INFO, "tool", marker, "TOOL", [tool_name, _pairs(context)])


def log_llm(logger: logging.Logger, state: str, model: str = "", duration: float = 0) -> None:
    if state == "start":
        _emit(logger, logging.INFO, "llm", ">>>", "LLM", ["streaming", model])
    else:
        _emit(logger, logging.INFO, "llm", "<<<", "LLM", [model, f"stream closed after {duration:.1f}s"])


def log_rpc(logger: logging.Logger, method: str, state: str, **context) -> None:
    """JSON-RPC exchanges with the search service, at DEBUG."""
    marker = ">>>" if state == "start" else "<<<"
    _emit(logger, logging.DEBUG, "rpc", marker, "RPC", [method, _pairs(context)])
