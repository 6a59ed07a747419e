"""
StatBridge Conversation - Message history owned by one orchestrator

Only the newest assistant message is ever mutated (streamed text, tool
progress lines, citations); earlier messages are never reordered or pruned.
"""

from collections import deque
from dataclasses import dataclass, field
from typing import Any, Deque, Dict, Iterable, List, Optional, Union


@dataclass(frozen=True)
class Citation:
    title: str
    url: str

    def to_dict(self) -> Dict[str, str]:
        return {"title": self.title, "url": self.url}


@dataclass
class Message:
    """One chat message.

    Attributes:
        role: "user", "assistant" or "system"
        content: Text sent to the model
        display: Text shown to the user, when it differs from content
        citations: Sources attached to an assistant message
    """

    role: str
    content: str = ""
    display: Optional[str] = None
    citations: List[Citation] = field(default_factory=list)

    def append(self, delta: str) -> None:
        self.content += delta

    def attach_citations(self, citations: Iterable[Citation]) -> None:
        self.citations.extend(citations)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "role": self.role,
            "content": self.display if self.display is not None else self.content,
            "citations": [c.to_dict() for c in self.citations],
        }


class Conversation:
    """Ordered message list plus the follow-up query queue."""

    def __init__(self):
        self.messages: List[Message] = []
        self.followups: Deque[str] = deque()

    def __len__(self) -> int:
        return len(self.messages)

    def add(self, role: str, content: str = "", display: Optional[str] = None) -> Message:
        message = Message(role=role, content=content, display=display)
        self.messages.append(message)
        return message

    def latest_assistant(self) -> Optional[Message]:
        """The message being streamed into, if the newest message is an assistant one."""
        if self.messages and self.messages[-1].role == "assistant":
            return self.messages[-1]
        return None

    def ensure_assistant(self) -> Message:
        return self.latest_assistant() or self.add("assistant")

    def append_to_assistant(self, delta: str) -> Message:
        message = self.ensure_assistant()
        message.append(delta)
        return message

    def to_wire(self) -> List[Dict[str, Any]]:
        """History in model API shape.

        System messages stay local; empty assistant messages are streaming
        placeholders and would be rejected by the API.
        """
        wire = []
        for message in self.messages:
            if message.role == "system":
                continue
            if message.role == "assistant" and not message.content:
                continue
            wire.append({"role": message.role, "content": message.content})
        return wire

    def to_list(self) -> List[Dict[str, Any]]:
        return [m.to_dict() for m in self.messages]

    def set_followups(self, items: Iterable[Union[str, Dict[str, Any]]]) -> List[str]:
        """Replace the queue. Items are query strings or {"query": ...} dicts."""
        queries = []
        for item in items:
            query = item.get("query") if isinstance(item, dict) else item
            if isinstance(query, str) and query.strip():
                queries.append(query.strip())
        self.followups = deque(queries)
        return queries

    def pop_followup(self) -> Optional[str]:
        return self.followups.popleft() if self.followups else None

    def clear(self) -> None:
        self.messages.clear()
        self.followups.clear()
