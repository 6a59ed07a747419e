"""
StatBridge Chat Orchestration - Streaming chat components

Components:
- Conversation / Message / Citation: Conversation state and follow-up queue
- PendingToolCall / PendingToolCallRegistry: Tool-use requests assembled from
  stream fragments and matched to their results by id
- citations: Citation extraction from nested tool results
- ChatOrchestrator: Model stream parsing, tool execution and continuation

Turn lifecycle:
    send_message -> model stream -> [tool_use block] -> tool task
                 -> handle_tool_result -> continuation stream -> turn_complete
"""

from .conversation import Citation, Conversation, Message
from .tool_calls import PendingToolCall, PendingToolCallRegistry, ToolCallState
from .citations import extract_citations, extract_content_citations, extract_item_citations, is_search_tool
from .orchestrator import ChatOrchestrator, OrchestratorState, StreamEventType

__all__ = [
    "Citation",
    "Conversation",
    "Message",
    "PendingToolCall",
    "PendingToolCallRegistry",
    "ToolCallState",
    "extract_citations",
    "extract_content_citations",
    "extract_item_citations",
    "is_search_tool",
    "ChatOrchestrator",
    "OrchestratorState",
    "StreamEventType",
]
