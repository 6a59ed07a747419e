"""
StatBridge Pending Tool Calls - Tool-use requests assembled from the stream

A tool call's input arrives as JSON fragments (``input_json_delta``) spread
across many stream events. PendingToolCall accumulates them; finalize() parses
the result once the block closes. The registry matches asynchronous tool
results back to their call by the model-issued id.
"""

import json
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional

from errors import CorrelationError, ProtocolError


class ToolCallState(str, Enum):
    ACCUMULATING = "accumulating"
    FINALIZED = "finalized"
    DISPATCHED = "dispatched"
    RESOLVED = "resolved"
    ERRORED = "errored"


@dataclass
class PendingToolCall:
    id: str
    name: str
    input_buffer: str = ""
    input: Dict[str, Any] = field(default_factory=dict)
    state: ToolCallState = ToolCallState.ACCUMULATING

    def add_fragment(self, fragment: str) -> None:
        self.input_buffer += fragment

    def finalize(self) -> Dict[str, Any]:
        """Parse the accumulated input.

        An empty buffer means a tool with no arguments.

        Raises:
            ProtocolError: the buffer is not a JSON object (state becomes ERRORED)
        """
        if not self.input_buffer.strip():
            self.input = {}
            self.state = ToolCallState.FINALIZED
            return self.input

        try:
            parsed = json.loads(self.input_buffer)
        except ValueError as e:
            self.state = ToolCallState.ERRORED
            raise ProtocolError(
                f"Invalid tool input for {self.name}",
                details=str(e),
                kind="tool_input",
                tool_id=self.id,
            )
        if not isinstance(parsed, dict):
            self.state = ToolCallState.ERRORED
            raise ProtocolError(
                f"Tool input for {self.name} is not an object",
                kind="tool_input",
                tool_id=self.id,
            )

        self.input = parsed
        self.state = ToolCallState.FINALIZED
        return self.input

    def to_tool_use_block(self) -> Dict[str, Any]:
        return {"type": "tool_use", "id": self.id, "name": self.name, "input": self.input}


class PendingToolCallRegistry:
    """Dispatched tool calls awaiting their results, keyed by id."""

    def __init__(self):
        self._calls: Dict[str, PendingToolCall] = {}

    def __len__(self) -> int:
        return len(self._calls)

    def __contains__(self, request_id: str) -> bool:
        return request_id in self._calls

    def register(self, call: PendingToolCall) -> None:
        self._calls[call.id] = call

    def get(self, request_id: str) -> Optional[PendingToolCall]:
        return self._calls.get(request_id)

    def resolve(self, request_id: str) -> PendingToolCall:
        """Remove and return a pending call; each id resolves at most once.

        Raises:
            CorrelationError: no pending call has this id
        """
        call = self._calls.pop(request_id, None)
        if call is None:
            raise CorrelationError("No pending tool call for result", request_id=request_id)
        return call

    def pending_ids(self) -> List[str]:
        return list(self._calls)

    def clear(self) -> None:
        self._calls.clear()
