"""
StatBridge Chat Prompts - System prompts and user-visible status text

Contains:
- SYSTEM_PROMPT: Research-assistant prompt for a fresh user turn
- CONTINUATION_PROMPT: "Synthesize now" prompt used after tool results
- TOOL_STATUS_MESSAGES / tool_status_line(): Progress line shown when a tool starts
- TOOL_DONE_LINE / TOOL_FAILED_LINE: Progress line shown when a tool finishes
- display_text(): Rewrites canned search queries for display
- theme_query(): Canned query for a theme
"""

import re
from typing import Dict

_ROLE = (
    "You are a helpful research assistant integrated into a web browser application. "
    "Your role is to provide insightful statistical analysis and data-driven answers to help "
    "users understand topics they're researching online."
)

SYSTEM_PROMPT = f"""{_ROLE}

When users ask about statistics, trends, or data:
1. Use the search-statistics tool to find relevant data (usually just one search is enough)
2. After getting results, synthesize and present the findings conversationally
3. Do not repeatedly search unless the user asks for more information

Focus on being helpful and conversational. One tool use is usually sufficient to answer most questions."""

CONTINUATION_PROMPT = f"""{_ROLE}

IMPORTANT: You have just received tool results. Now provide a complete, conversational response to the user based on the data you gathered. Do NOT call more tools unless absolutely necessary. Synthesize what you've learned and give the user a helpful answer.

Present your findings in a clear, conversational way with the key statistics and insights from the data."""


TOOL_STATUS_MESSAGES: Dict[str, str] = {
    "search-statistics": "\n\n🔍 Searching Statista...\n",
    "statista.llm.chat.stream": "\n\n🔍 Searching Statista database for relevant statistics and data...\n",
    "statista.llm.search": "\n\n🔍 Searching for relevant information...\n",
    "statista.insights.generate": "\n\n📊 Generating insights from the data...\n",
    "statista.chart.generate": "\n\n📈 Creating chart visualization...\n",
}

TOOL_DONE_LINE = "\n✓ Data retrieved successfully. Analyzing results...\n\n"
TOOL_FAILED_LINE = "\n⚠️ Unable to retrieve data. Let me try another approach...\n\n"


def tool_status_line(tool_name: str) -> str:
    """Status line appended to the assistant message when a tool call starts."""
    return TOOL_STATUS_MESSAGES.get(tool_name, f"\n\n🔧 Using {tool_name}...\n")


THEME_QUERY_TEMPLATE = "Tell me about statistics related to {theme}"

# Canned prefixes produced by theme clicks and search buttons
_CANNED_QUERY = re.compile(
    r"^(?:Search for statistics about|Tell me about statistics related to)\s+(?P<topic>.+)$",
    re.DOTALL,
)


def theme_query(theme: str) -> str:
    return THEME_QUERY_TEMPLATE.format(theme=theme)


def display_text(message: str) -> str:
    """Text shown for a user message; canned search queries get a short form."""
    match = _CANNED_QUERY.match(message.strip())
    if not match:
        return message
    return f"Ok, searching for statistics on {match.group('topic').strip()}"
