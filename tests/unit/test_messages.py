"""
Unit tests for message formats and the outbound queue.
"""

from chatserver.chat.messages import (
    OutboundMessage,
    OutboundQueue,
    chat_line,
    entered,
    left,
    welcome,
)


class TestFormats:
    """Tests for the server → client text formats."""

    def test_chat_line(self):
        assert chat_line("alice", "hi there") == "alice: hi there"

    def test_membership_events(self):
        assert entered("bob") == "bob has entered the chat."
        assert left("bob") == "bob has left the chat."

    def test_welcome(self):
        assert welcome("Lobby") == 'Welcome to the "Lobby" chat server!'

    def test_encode_appends_terminator(self):
        """Test UTF-8 encoding with a terminator."""
        message = OutboundMessage("zoë: ça va")

        assert message.encode("\n") == "zoë: ça va\n".encode("utf-8")


class TestOutboundQueue:
    """Tests for OutboundQueue."""

    def test_fifo(self):
        """Test that drain returns messages oldest first."""
        queue = OutboundQueue()
        queue.put("one")
        queue.put("two")
        queue.put("three")

        assert [m.text for m in queue.drain()] == ["one", "two", "three"]

    def test_drain_empties(self):
        """Test that drain leaves nothing behind."""
        queue = OutboundQueue()
        queue.put("one")

        queue.drain()

        assert len(queue) == 0
        assert not queue
        assert queue.drain() == []

    def test_snapshot_does_not_consume(self):
        queue = OutboundQueue()
        queue.put("one")

        assert queue.texts() == ["one"]
        assert len(queue) == 1

    def test_clear(self):
        queue = OutboundQueue()
        queue.put("one")
        queue.clear()

        assert len(queue) == 0
