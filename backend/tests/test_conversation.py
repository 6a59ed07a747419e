"""
Tests for conversation state and the follow-up queue.
"""

from routers.chat_orchestration.conversation import Citation, Conversation, Message


class TestMessage:
    def test_deltas_concatenate(self):
        msg = Message(role="assistant")
        for delta in ["Hel", "lo", ", ", "world"]:
            msg.append(delta)
        assert msg.content == "Hello, world"

    def test_display_text_used_for_caller(self):
        msg = Message(role="user", content="Search for statistics about EVs", display="Ok, searching for statistics on EVs")
        assert msg.to_dict()["content"] == "Ok, searching for statistics on EVs"


class TestConversation:
    """Test history handling."""

    def test_to_wire_drops_placeholders_and_system(self):
        conv = Conversation()
        conv.add("system", "local note")
        conv.add("user", "hi")
        conv.add("assistant")
        conv.add("assistant", "answer")
        assert conv.to_wire() == [
            {"role": "user", "content": "hi"},
            {"role": "assistant", "content": "answer"},
        ]

    def test_to_wire_sends_original_user_text(self):
        conv = Conversation()
        conv.add("user", "Tell me about statistics related to solar", display="Ok, searching for statistics on solar")
        assert conv.to_wire()[0]["content"] == "Tell me about statistics related to solar"

    def test_append_only_touches_latest_assistant(self):
        conv = Conversation()
        first = conv.add("assistant", "old")
        conv.add("user", "next")
        conv.append_to_assistant("new")
        assert first.content == "old"
        assert conv.messages[-1].role == "assistant"
        assert conv.messages[-1].content == "new"

    def test_attach_citations(self):
        conv = Conversation()
        message = conv.add("assistant", "text")
        message.attach_citations([Citation("A", "https://a")])
        message.attach_citations([])
        assert conv.messages[-1].citations == [Citation("A", "https://a")]
        assert conv.to_list()[-1]["citations"] == [{"title": "A", "url": "https://a"}]


class TestFollowups:
    """FIFO follow-up queue."""

    def test_fifo_order(self):
        conv = Conversation()
        conv.set_followups(["q1", {"query": "q2"}, "q3"])
        assert [conv.pop_followup() for _ in range(3)] == ["q1", "q2", "q3"]
        assert conv.pop_followup() is None

    def test_replace_and_filter(self):
        conv = Conversation()
        conv.set_followups(["old"])
        queries = conv.set_followups(["", {"query": "  keep  "}, {"other": 1}, 5])
        assert queries == ["keep"]
        assert list(conv.followups) == ["keep"]

    def test_clear(self):
        conv = Conversation()
        conv.add("user", "x")
        conv.set_followups(["q"])
        conv.clear()
        assert len(conv) == 0
        assert conv.pop_followup() is None
