"""
=============================================================================
CHATSERVER - Single-Room TCP Text Broadcast Server
=============================================================================

Clients connect over TCP, identify themselves with a name, and send lines
of text. Every line is broadcast to everyone in the room as
"<name>: <text>". Joins and leaves are announced.

=============================================================================
PACKAGE STRUCTURE
=============================================================================

    chatserver/
    ├── __init__.py          # This file - package exports
    ├── __main__.py          # CLI entry point (python -m chatserver)
    ├── server.py            # ChatServer: lifecycle and tick loop
    ├── config.py            # ServerConfig dataclass
    ├── errors.py            # Exception hierarchy
    ├── logs.py              # Logging setup (text / JSON)
    ├── core/                # Transport
    │   ├── listener.py      # Listening socket, polled per tick
    │   └── connection.py    # Client socket wrapper
    └── chat/                # Chat semantics
        ├── registry.py      # Active clients and their names
        ├── messages.py      # Message formats and the outbound queue
        ├── handshake.py     # name:<NAME> / viewer identification
        ├── liveness.py      # Disconnect detection and pruning
        ├── collector.py     # Client input → chat lines
        └── broadcaster.py   # Outbound queue → every client

=============================================================================
WIRE PROTOCOL
=============================================================================

    client → server   name:alice\\n          identify as a messenger
                      viewer\\n              identify as a read-only viewer
                      hello everyone\\n      one chat line

    server → client   Welcome to the "PyChat" chat server!\\n
                      alice has entered the chat.\\n
                      alice: hello everyone\\n
                      alice has left the chat.\\n

=============================================================================
QUICK START
=============================================================================

    from chatserver import ChatServer, ServerConfig

    server = ChatServer(ServerConfig(chat_name="Lobby", port=6000))
    server.run()    # Blocks until server.shutdown()

=============================================================================
"""

__version__ = "1.0.0"

from .server import ChatServer, ServerState
from .config import ServerConfig
from .errors import ChatServerError, HandshakeRejected, NameTakenError, TransportFault

__all__ = [
    "ChatServer",
    "ServerState",
    "ServerConfig",
    "ChatServerError",
    "HandshakeRejected",
    "NameTakenError",
    "TransportFault",
    "__version__",
]
