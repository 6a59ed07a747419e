"""
Tests for citation extraction from nested tool results.
"""

import json

from routers.chat_orchestration.citations import (
    extract_citations,
    extract_content_citations,
    extract_item_citations,
    is_search_tool,
)
from routers.chat_orchestration.conversation import Citation

from conftest import rpc_result, text_content


def _items(n):
    return [{"title": f"Stat {i}", "link": f"https://example.com/{i}"} for i in range(n)]


class TestIsSearchTool:
    def test_names(self):
        assert is_search_tool("search-statistics")
        assert is_search_tool("statista.llm.search")
        assert not is_search_tool("get-chart-data-by-id")


class TestItemCitations:
    """Path 1: {"items": [...]} text from search tools."""

    def test_capped_at_five(self):
        text = json.dumps({"items": _items(8)})
        citations = extract_item_citations(text)
        assert len(citations) == 5
        assert citations[0] == Citation("Stat 0", "https://example.com/0")

    def test_items_without_link_skipped(self):
        text = json.dumps({"items": [{"title": "No link"}, {"title": "Ok", "link": "https://e.com"}]})
        assert extract_item_citations(text) == [Citation("Ok", "https://e.com")]

    def test_invalid_text(self):
        assert extract_item_citations("not json") == []
        assert extract_item_citations(None) == []
        assert extract_item_citations(json.dumps([1, 2])) == []


class TestContentCitations:
    """Path 2: direct title/link and statistics lists in every content element."""

    def test_string_encoded_text(self):
        payload = rpc_result(text_content({
            "title": "Chart A",
            "link": "https://example.com/a",
            "statistics": [{"title": "Stat B", "link": "https://example.com/b"}, {"title": "no link"}],
        }))
        assert extract_content_citations(payload) == [
            Citation("Chart A", "https://example.com/a"),
            Citation("Stat B", "https://example.com/b"),
        ]

    def test_object_text(self):
        payload = rpc_result({"content": [{"type": "text", "text": {"title": "Obj", "link": "https://o.com"}}]})
        assert extract_content_citations(payload) == [Citation("Obj", "https://o.com")]

    def test_bounded_across_elements(self):
        content = [{"type": "text", "text": json.dumps({"statistics": _items(3)})} for _ in range(4)]
        assert len(extract_content_citations(rpc_result({"content": content}))) == 5

    def test_malformed_payloads(self):
        assert extract_content_citations({}) == []
        assert extract_content_citations({"result": "x"}) == []
        assert extract_content_citations(rpc_result({"content": [{"text": "{{{"}, "junk"]})) == []
        assert extract_content_citations({"error": {"message": "boom"}}) == []


class TestExtractCitations:
    """Both paths together."""

    def test_idempotent(self):
        payload = rpc_result(text_content({"items": _items(2)}))
        assert extract_citations("search-statistics", payload) == extract_citations("search-statistics", payload)

    def test_search_tool_uses_item_path(self):
        payload = rpc_result(text_content({"items": _items(2)}))
        assert len(extract_citations("search-statistics", payload)) == 2
        assert extract_citations("get-chart-data-by-id", payload) == []

    def test_both_paths_can_repeat_a_source(self):
        payload = rpc_result(text_content({
            "title": "Stat 0",
            "link": "https://example.com/0",
            "items": _items(1),
        }))
        citations = extract_citations("search-statistics", payload)
        assert citations == [Citation("Stat 0", "https://example.com/0")] * 2
