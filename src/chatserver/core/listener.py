"""
=============================================================================
LISTENING ENDPOINT
=============================================================================

The listening socket of the chat server. Unlike a thread-per-connection
server, the chat loop never sits inside accept(): once per tick it asks
"is anybody waiting?" and only then accepts, so a quiet listener never
holds up the registered clients.

    ┌─────────────────────────────────────────────────────────────────────┐
    │                         Listener Internals                          │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │    open()            socket() → setsockopt() → bind() → listen()    │
    │                                                                      │
    │    pending()         select() on the listening socket, no wait      │
    │                                                                      │
    │    accept()          accept() → Connection wrapper                  │
    │                                                                      │
    │    close()           Release the listening socket (idempotent)      │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

SO_REUSEADDR lets the server restart immediately instead of failing with
"Address already in use" while the old socket sits in TIME_WAIT.

=============================================================================
"""

import select
import socket
import logging
from typing import Optional, Tuple

from ..config import ServerConfig
from .connection import Connection


logger = logging.getLogger(__name__)


class Listener:
    """
    TCP listening endpoint.

    Usage:
        listener = Listener(config)
        listener.open()
        if listener.pending():
            conn = listener.accept()
        listener.close()
    """

    def __init__(self, config: ServerConfig):
        self.config = config
        self._socket: Optional[socket.socket] = None

    @property
    def is_open(self) -> bool:
        return self._socket is not None

    @property
    def address(self) -> Tuple[str, int]:
        """The bound (host, port). Reflects the real port when config.port is 0."""
        if self._socket is not None:
            host, port = self._socket.getsockname()[:2]
            return (host, port)
        return (self.config.host, self.config.port)

    def _create_socket(self) -> socket.socket:
        sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)

        sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)

        # Chat lines are small; send them as soon as they are written.
        sock.setsockopt(socket.IPPROTO_TCP, socket.TCP_NODELAY, 1)

        return sock

    def open(self):
        """
        Bind and start listening.

        Raises:
            OSError: If the address cannot be bound.
        """
        sock = self._create_socket()

        try:
            sock.bind((self.config.host, self.config.port))
        except OSError as e:
            logger.error(f"Failed to bind to {self.config.host}:{self.config.port}: {e}")
            sock.close()
            raise

        sock.listen(self.config.backlog)
        self._socket = sock

        host, port = self.address
        logger.info(f"Listening on {host}:{port}")

    def pending(self, timeout: float = 0.0) -> bool:
        """Return True if a connection is waiting to be accepted."""
        if self._socket is None:
            return False

        try:
            readable, _, _ = select.select([self._socket], [], [], timeout)
        except (OSError, ValueError) as e:
            logger.error(f"Listener poll failed: {e}")
            return False
        return bool(readable)

    def accept(self) -> Optional[Connection]:
        """
        Accept one waiting connection.

        Returns:
            A Connection wrapper, or None if the accept failed (e.g. the
            client gave up between pending() and accept()).
        """
        if self._socket is None:
            return None

        try:
            client_socket, client_address = self._socket.accept()
        except OSError as e:
            logger.warning(f"Accept failed: {e}")
            return None

        # Accepted sockets can inherit TCP_NODELAY on some platforms but not all.
        try:
            client_socket.setsockopt(socket.IPPROTO_TCP, socket.TCP_NODELAY, 1)
        except OSError:
            pass

        conn = Connection(
            socket=client_socket,
            address=client_address[:2],
            buffer_size=self.config.buffer_size,
        )
        logger.debug(f"[{conn.id}] Accepted connection from {conn.client_ip}:{conn.client_port}")
        return conn

    def close(self):
        """Close the listening socket. Safe to call more than once."""
        if self._socket is None:
            return

        try:
            self._socket.close()
        except OSError:
            pass  # Already closed
        self._socket = None

        logger.info("Listener closed")
