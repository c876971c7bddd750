"""Tests for the bounded memory window."""

from persanna.agent.memory import ConversationTurn, MemoryWindow
from persanna.bus.events import HostMessage
from persanna.utils.helpers import format_response


def _history(n: int) -> list[HostMessage]:
    return [
        HostMessage(content=f"message {i}", type="human" if i % 2 == 0 else "ai", time=f"t{i}")
        for i in range(n)
    ]


class TestMemoryWindow:

    def test_empty_history_gives_empty_window(self):
        window = MemoryWindow.from_messages([])
        assert len(window) == 0
        assert window.to_messages() == []

    def test_keeps_most_recent_turns_in_order(self):
        window = MemoryWindow.from_messages(_history(10), k=4, raw_limit=42)

        assert [t.text for t in window] == ["message 6", "message 7", "message 8", "message 9"]
        assert [t.speaker for t in window] == ["human", "assistant", "human", "assistant"]

    def test_raw_limit_applies_before_window_cap(self):
        window = MemoryWindow.from_messages(_history(100), k=512, raw_limit=42)

        assert len(window) == 42
        assert window.turns[0].text == "message 58"
        assert window.turns[-1].text == "message 99"

    def test_no_duplicates_or_reordering(self):
        history = _history(60)
        window = MemoryWindow.from_messages(history, k=30, raw_limit=60)

        texts = [t.text for t in window]
        assert texts == [m.content for m in history[-30:]]
        assert len(set(texts)) == len(texts)

    def test_short_history_is_kept_whole(self):
        window = MemoryWindow.from_messages(_history(3))
        assert len(window) == 3

    def test_append_evicts_oldest(self):
        window = MemoryWindow(k=2)
        for i in range(3):
            window.append(ConversationTurn(speaker="human", text=str(i)))

        assert [t.text for t in window] == ["1", "2"]

    def test_accepts_host_dicts(self):
        records = [
            {"content": "hi", "type": "human", "time": "1:00:00 PM"},
            {"content": "hello!", "type": "ai", "time": "1:00:01 PM"},
            {"content": "odd", "type": "system", "time": "1:00:02 PM"},
        ]
        window = MemoryWindow.from_messages(records)

        assert [t.speaker for t in window] == ["human", "assistant", "human"]
        assert window.turns[1].timestamp == "1:00:01 PM"

    def test_to_messages_roles(self):
        window = MemoryWindow.from_messages(_history(2))
        assert window.to_messages() == [
            {"role": "user", "content": "message 0"},
            {"role": "assistant", "content": "message 1"},
        ]

    def test_formatted_human_message_round_trips(self):
        text = format_response("  What is   2+2?  \r\n\r\n\r\n  thanks ")
        history = _history(5) + [HostMessage(content=text, type="human", time="now")]

        newest = MemoryWindow.from_messages(history).turns[-1]

        assert newest.text == text
        assert newest.speaker == "human"
