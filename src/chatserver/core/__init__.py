"""
=============================================================================
CORE NETWORKING COMPONENTS
=============================================================================

    Listener      The listening TCP socket; polled once per tick
    Connection    One client socket with buffered, bounded reads and
                  isolated writes

Nothing in here knows about names, rooms or messages. That lives in
chatserver.chat.
=============================================================================
"""

from .listener import Listener
from .connection import Connection, ConnectionState

__all__ = [
    "Listener",
    "Connection",
    "ConnectionState",
]
