"""
StatBridge Citation Extractor - Source links from search tool results

Tool results nest their useful data inside JSON *strings*
(``result.content[i].text``), so every level is decoded defensively: any
shape that does not match simply yields no citations.

Two extraction paths run on each result:
- extract_item_citations(): search-family tools, ``{"items": [{title, link}]}``
- extract_content_citations(): any tool, direct ``{title, link}`` objects and
  their ``statistics`` lists

The paths can report the same source twice; both are kept so that either
payload layout produces citations.
"""

import json
from typing import Any, Dict, List, Optional

from .conversation import Citation

MAX_CITATIONS = 5

SEARCH_TOOL_MARKERS = ("statista", "search-statistics")


def is_search_tool(tool_name: str) -> bool:
    return any(marker in tool_name for marker in SEARCH_TOOL_MARKERS)


def _as_object(value: Any) -> Optional[Dict[str, Any]]:
    """Object as-is, or a JSON string that decodes to an object."""
    if isinstance(value, dict):
        return value
    if isinstance(value, str):
        try:
            decoded = json.loads(value)
        except ValueError:
            return None
        return decoded if isinstance(decoded, dict) else None
    return None


def _citation(entry: Any) -> Optional[Citation]:
    if not isinstance(entry, dict):
        return None
    title, link = entry.get("title"), entry.get("link")
    if isinstance(title, str) and isinstance(link, str) and title and link:
        return Citation(title=title, url=link)
    return None


def result_text(payload: Dict[str, Any]) -> Optional[str]:
    """``payload.result.content[0].text`` if present and a string."""
    result = payload.get("result") if isinstance(payload, dict) else None
    content = result.get("content") if isinstance(result, dict) else None
    if isinstance(content, list) and content and isinstance(content[0], dict):
        text = content[0].get("text")
        if isinstance(text, str):
            return text
    return None


def extract_item_citations(text: Optional[str], limit: int = MAX_CITATIONS) -> List[Citation]:
    """Citations from a JSON text carrying an ``items`` list."""
    decoded = _as_object(text)
    items = decoded.get("items") if decoded else None
    if not isinstance(items, list):
        return []

    citations = []
    for item in items:
        if len(citations) >= limit:
            break
        citation = _citation(item)
        if citation:
            citations.append(citation)
    return citations


def extract_content_citations(payload: Dict[str, Any], limit: int = MAX_CITATIONS) -> List[Citation]:
    """Citations from every ``result.content[*].text`` of a tool reply."""
    result = payload.get("result") if isinstance(payload, dict) else None
    content = result.get("content") if isinstance(result, dict) else None
    if not isinstance(content, list):
        return []

    citations: List[Citation] = []
    for entry in content:
        if len(citations) >= limit:
            break
        data = _as_object(entry.get("text")) if isinstance(entry, dict) else None
        if not data:
            continue

        direct = _citation(data)
        if direct:
            citations.append(direct)

        statistics = data.get("statistics")
        if isinstance(statistics, list):
            for stat in statistics:
                if len(citations) >= limit:
                    break
                citation = _citation(stat)
                if citation:
                    citations.append(citation)
    return citations[:limit]


def extract_citations(tool_name: str, payload: Dict[str, Any]) -> List[Citation]:
    """Run both extraction paths for one tool result."""
    citations = []
    if is_search_tool(tool_name):
        citations.extend(extract_item_citations(result_text(payload)))
    citations.extend(extract_content_citations(payload))
    return citations
