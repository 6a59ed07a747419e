"""
Server-Sent Events framing helpers.

Two consumers:
- The model stream: bytes arrive in arbitrary chunks. SSEBuffer accumulates
  them and only yields complete blank-line-delimited blocks; a trailing
  partial block stays buffered until the next chunk.
- RPC replies: the whole body is available at once. first_data_object()
  returns the first ``data:`` line that parses as a JSON object.
"""

import json
import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

logger = logging.getLogger(__name__)

DONE_SENTINEL = "[DONE]"

_BLOCK_SEPARATOR = b"\n\n"


@dataclass(frozen=True)
class SSEEvent:
    """One complete SSE block."""

    event: Optional[str] = None
    data: Optional[str] = None

    @property
    def is_done(self) -> bool:
        return self.data == DONE_SENTINEL

    def json(self) -> Any:
        """Parse the data payload. Raises ValueError on malformed JSON."""
        if self.data is None:
            raise ValueError("SSE block has no data line")
        return json.loads(self.data)


def _field_value(line: str, name: str) -> Optional[str]:
    """Value of an ``name:`` line, with the single optional leading space removed."""
    prefix = name + ":"
    if not line.startswith(prefix):
        return None
    value = line[len(prefix):]
    if value.startswith(" "):
        value = value[1:]
    return value


def parse_block(block: str) -> SSEEvent:
    """Recover the optional ``event:`` and ``data:`` lines of one block.

    Multiple data lines are joined with newlines per the SSE format.
    Comment lines (starting with ':') are ignored.
    """
    event_type = None
    data_lines: List[str] = []
    for line in block.split("\n"):
        if not line or line.startswith(":"):
            continue
        value = _field_value(line, "event")
        if value is not None:
            event_type = value.strip()
            continue
        value = _field_value(line, "data")
        if value is not None:
            data_lines.append(value)
    data = "\n".join(data_lines) if data_lines else None
    return SSEEvent(event=event_type, data=data)


class SSEBuffer:
    """Incremental SSE block extractor.

    Chunk boundaries never need to line up with event boundaries: feed()
    returns only events whose terminating blank line has been seen.
    """

    def __init__(self):
        self._buffer = b""

    def __len__(self) -> int:
        return len(self._buffer)

    @property
    def pending(self) -> bytes:
        """Unconsumed bytes (a partial block)."""
        return self._buffer

    def clear(self) -> None:
        self._buffer = b""

    def feed(self, chunk: bytes) -> List[SSEEvent]:
        """Append a chunk and return every complete event now available."""
        if not chunk:
            return []
        # CRLF may straddle chunks, so normalize the whole buffer
        self._buffer = (self._buffer + chunk).replace(b"\r\n", b"\n")

        events = []
        while _BLOCK_SEPARATOR in self._buffer:
            raw, self._buffer = self._buffer.split(_BLOCK_SEPARATOR, 1)
            if not raw.strip():
                continue
            events.append(parse_block(raw.decode("utf-8", errors="replace")))
        return events


def looks_like_sse(body: str) -> bool:
    """Heuristic for an SSE-framed reply body."""
    stripped = body.lstrip()
    return stripped.startswith(("event:", "data:")) or "\nevent:" in body or "\ndata:" in body


def first_data_object(body: str) -> Optional[Dict[str, Any]]:
    """First ``data:`` line of an SSE body that parses as a JSON object.

    Returns:
        The parsed object, or None if no data line holds a JSON object.
    """
    for line in body.replace("\r\n", "\n").split("\n"):
        value = _field_value(line, "data")
        if value is None:
            continue
        try:
            parsed = json.loads(value)
        except ValueError:
            logger.debug(f"Skipping non-JSON SSE data line: {value[:80]}")
            continue
        if isinstance(parsed, dict):
            return parsed
    return None
