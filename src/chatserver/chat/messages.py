"""
=============================================================================
OUTBOUND MESSAGES
=============================================================================

Everything the server says to clients goes through one ordered queue:

    Handshake    ──► "alice has entered the chat."  ─┐
    Liveness     ──► "bob has left the chat."        ├──► OutboundQueue ──► Broadcaster
    Collector    ──► "alice: hi"                    ─┘

Enqueue order is delivery order. Join/leave announcements and chat lines
are ordered only by when they were queued.
=============================================================================
"""

import threading
from dataclasses import dataclass
from typing import TYPE_CHECKING, List, Optional

if TYPE_CHECKING:
    from .registry import Client


NAME_PREFIX = "name:"
VIEWER_TOKEN = "viewer"
CHAT_SEPARATOR = ": "


def chat_line(name: str, text: str) -> str:
    return f"{name}{CHAT_SEPARATOR}{text}"


def entered(name: str) -> str:
    return f"{name} has entered the chat."


def left(name: str) -> str:
    return f"{name} has left the chat."


def welcome(chat_name: str) -> str:
    return f'Welcome to the "{chat_name}" chat server!'


@dataclass(frozen=True)
class OutboundMessage:
    """
    One fully formatted message awaiting broadcast.

    Attributes:
        text: What every recipient sees.
        sender: The client whose input produced the message, or None for
                server announcements.
    """

    text: str
    sender: Optional["Client"] = None

    def encode(self, terminator: str = "") -> bytes:
        return (self.text + terminator).encode("utf-8")


class OutboundQueue:
    """FIFO of OutboundMessage, drained once per tick."""

    def __init__(self):
        self._messages: List[OutboundMessage] = []
        self._lock = threading.Lock()

    def put(self, text: str, sender: Optional["Client"] = None) -> OutboundMessage:
        message = OutboundMessage(text=text, sender=sender)
        with self._lock:
            self._messages.append(message)
        return message

    def drain(self) -> List[OutboundMessage]:
        """Take every queued message, oldest first, leaving the queue empty."""
        with self._lock:
            messages, self._messages = self._messages, []
        return messages

    def snapshot(self) -> List[OutboundMessage]:
        with self._lock:
            return list(self._messages)

    def texts(self) -> List[str]:
        return [m.text for m in self.snapshot()]

    def clear(self):
        with self._lock:
            self._messages = []

    def __len__(self) -> int:
        with self._lock:
            return len(self._messages)

    def __bool__(self) -> bool:
        return len(self) > 0
