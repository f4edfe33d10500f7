"""
=============================================================================
CONNECTION MANAGEMENT
=============================================================================

This module wraps a raw client socket with the handful of primitives the
chat loop needs: a bounded handshake read, a non-blocking "how much is
waiting?" check, a non-destructive disconnect check, and an isolated write.

=============================================================================
TCP IS A BYTE STREAM, NOT A MESSAGE PROTOCOL!
=============================================================================

    Client sends:
        send("name:alice\\n")

    Server might receive:
        recv() → "name:al"
        recv() → "ice\\n"

The connection keeps a pending byte buffer so a payload split across reads
can be reassembled, and so bytes that arrive after the handshake line in
the same read are not lost.

=============================================================================
DETECTING A CLOSED PEER WITHOUT READING
=============================================================================

A socket whose peer has closed becomes *readable*, but a read returns 0
bytes. Peeking (MSG_PEEK) lets us see that without consuming anything a
later step still needs:

    select() says readable?
        no  → alive (nothing to look at)
        yes → recv(1, MSG_PEEK)
                 b""        → peer closed (half-close)
                 b"x"       → alive, data waiting
                 OSError    → dead (reset, bad fd, ...)

=============================================================================
CONNECTION STATE MACHINE
=============================================================================

    NEW ──────► HANDSHAKE ──────► ACTIVE ──────► CLOSED
     │              │                              ▲
     └──────────────┴──────────────────────────────┘

=============================================================================
"""

import select
import socket
import time
import logging
import uuid
from enum import Enum
from dataclasses import dataclass, field
from typing import List, Optional, Tuple

from ..errors import TransportFault


logger = logging.getLogger(__name__)


class ConnectionState(Enum):
    """Connection lifecycle states."""
    NEW = "new"                # Just accepted
    HANDSHAKE = "handshake"    # Waiting for the identification payload
    ACTIVE = "active"          # Registered, exchanging chat traffic
    CLOSED = "closed"          # Socket released


@dataclass
class Connection:
    """
    Represents one client connection.

    Attributes:
        socket: The client socket.
        address: Client's (ip, port) tuple.
        id: Short identifier used in log lines.
        state: Current connection state.
        faulted: Set once a read or write on the connection failed. A
                 faulted connection is reported as disconnected.
    """

    socket: socket.socket
    address: Tuple[str, int]

    id: str = field(default_factory=lambda: str(uuid.uuid4())[:8])
    state: ConnectionState = ConnectionState.NEW
    faulted: bool = False

    buffer_size: int = 2 * 1024

    _buffer: bytes = field(default=b"", repr=False)
    _partial: bool = field(default=False, repr=False)

    def __post_init__(self):
        self.socket.setblocking(True)

    # =========================================================================
    # PROPERTIES
    # =========================================================================

    @property
    def client_ip(self) -> str:
        return self.address[0]

    @property
    def client_port(self) -> int:
        return self.address[1]

    @property
    def is_closed(self) -> bool:
        return self.state == ConnectionState.CLOSED

    @property
    def pending(self) -> bytes:
        """Bytes received but not yet consumed."""
        return self._buffer

    # =========================================================================
    # HANDSHAKE READS (blocking, bounded)
    # =========================================================================

    def read_payload(self, timeout: Optional[float] = None) -> Optional[bytes]:
        """
        Read whatever a single recv() returns.

        Returns:
            The payload, or None if the peer closed or the timeout expired.

        Raises:
            TransportFault: If the socket errors.
        """
        self.state = ConnectionState.HANDSHAKE
        self.socket.settimeout(timeout)
        try:
            data = self._recv(self.buffer_size)
        except socket.timeout:
            logger.debug(f"[{self.id}] Handshake read timed out")
            return None
        return data or None

    def read_line(self, timeout: Optional[float] = None) -> Optional[bytes]:
        """
        Read up to and including the first newline.

        Keeps reading until the terminator arrives, the deadline passes,
        or the peer closes. Anything received after the newline stays in
        the pending buffer.

        Returns:
            The line without its terminator ("\\r\\n" or "\\n"), or None if
            the peer closed or the timeout expired first.

        Raises:
            TransportFault: If the socket errors.
            ValueError: If no newline shows up within buffer_size bytes.
        """
        self.state = ConnectionState.HANDSHAKE
        deadline = None if timeout is None else time.monotonic() + timeout

        while b"\n" not in self._buffer:
            if len(self._buffer) >= self.buffer_size:
                raise ValueError(f"Payload too large: {len(self._buffer)} bytes without newline")

            if deadline is None:
                self.socket.settimeout(None)
            else:
                remaining = deadline - time.monotonic()
                if remaining <= 0:
                    logger.debug(f"[{self.id}] Handshake read timed out")
                    return None
                self.socket.settimeout(remaining)

            try:
                chunk = self._recv(self.buffer_size)
            except socket.timeout:
                logger.debug(f"[{self.id}] Handshake read timed out")
                return None

            if not chunk:
                return None  # Peer closed before finishing the line
            self._buffer += chunk

        line, self._buffer = self._buffer.split(b"\n", 1)
        return line.rstrip(b"\r")

    # =========================================================================
    # ACTIVE TRAFFIC (non-blocking)
    # =========================================================================

    def activate(self, send_timeout: Optional[float] = None):
        """Switch to chat mode once the handshake has succeeded."""
        self.socket.settimeout(send_timeout)
        self.state = ConnectionState.ACTIVE

    def bytes_available(self) -> int:
        """
        Number of bytes that can be read right now without blocking.

        Capped at buffer_size. Returns 0 for a half-closed peer (the
        liveness check is what reports that case).

        Raises:
            TransportFault: If the socket errors.
        """
        if not self._readable(0.0):
            return 0
        return len(self._peek(self.buffer_size) or b"")

    def read(self, size: int) -> bytes:
        """
        Read exactly what bytes_available() reported and append it to the
        pending buffer.

        Returns:
            The bytes that were read.

        Raises:
            TransportFault: If the socket errors.
        """
        try:
            data = self._recv(size)
        except socket.timeout as e:
            raise TransportFault(f"[{self.id}] read timed out", e) from e
        self._buffer += data
        return data

    def take_lines(self) -> List[bytes]:
        """
        Pop every complete line from the pending buffer (terminators stripped).

        A partial line that has grown to buffer_size is popped as a line of
        its own so one client cannot grow the buffer without bound.
        """
        *lines, self._buffer = self._buffer.split(b"\n")
        lines = [line.rstrip(b"\r") for line in lines]
        if len(self._buffer) >= self.buffer_size:
            lines.append(self._buffer)
            self._buffer = b""
        self._partial = bool(self._buffer)
        return lines

    def take_partial(self) -> bytes:
        """
        Pop the unterminated tail left behind by take_lines().

        Only bytes that take_lines() has already looked at count. Input
        that was never split into lines is not returned.
        """
        if not self._partial:
            return b""
        self._partial = False
        return self.take_all()

    def take_all(self) -> bytes:
        """Pop the whole pending buffer."""
        data, self._buffer = self._buffer, b""
        self._partial = False
        return data

    def discard_pending(self):
        self._buffer = b""
        self._partial = False

    def is_disconnected(self, poll_timeout: float = 0.0) -> bool:
        """
        Check whether the peer has gone away, without consuming data.

        Any error while checking counts as disconnected: a connection we
        cannot inspect is not one we keep.
        """
        if self.is_closed or self.faulted:
            return True

        try:
            if not self._readable(poll_timeout):
                return False
            return self._peek(1) == b""
        except TransportFault as e:
            self.faulted = True
            logger.debug(f"[{self.id}] Liveness check failed: {e}")
            return True

    def send(self, data: bytes) -> bool:
        """
        Send data to the client.

        Uses sendall() so a message is never half-written on success.

        Returns:
            True if send succeeded, False if it failed. A failed send marks
            the connection faulted.
        """
        if self.is_closed:
            return False

        try:
            self.socket.sendall(data)
            return True
        except (socket.timeout, OSError) as e:
            logger.warning(f"[{self.id}] Send failed: {e}")
            self.faulted = True
            return False

    # =========================================================================
    # LOW-LEVEL HELPERS
    # =========================================================================

    def _recv(self, size: int) -> bytes:
        """
        Receive data from the socket.

        socket.timeout is passed through so callers can tell "slow" from
        "broken"; every other OSError becomes a TransportFault.
        """
        try:
            data = self.socket.recv(size)
        except socket.timeout:
            raise
        except (ConnectionResetError, BrokenPipeError):
            self.faulted = True
            return b""
        except OSError as e:
            self.faulted = True
            raise TransportFault(f"[{self.id}] recv failed: {e}", e) from e
        return data

    def _readable(self, timeout: float) -> bool:
        try:
            readable, _, _ = select.select([self.socket], [], [], timeout)
        except (OSError, ValueError) as e:
            # ValueError: the socket was closed under us (fd == -1)
            raise TransportFault(f"[{self.id}] select failed: {e}", e) from e
        return bool(readable)

    def _peek(self, size: int) -> Optional[bytes]:
        """Look at waiting bytes without consuming them. None = nothing yet."""
        try:
            return self.socket.recv(size, socket.MSG_PEEK)
        except (socket.timeout, BlockingIOError):
            return None
        except OSError as e:
            raise TransportFault(f"[{self.id}] peek failed: {e}", e) from e

    # =========================================================================
    # CLEANUP
    # =========================================================================

    def close(self) -> bool:
        """
        Close the connection.

        Safe to call more than once; only the first call touches the socket.
        Errors while closing are logged and ignored.

        Returns:
            True if this call released the socket, False if it was
            already closed.
        """
        if self.state == ConnectionState.CLOSED:
            return False

        self.state = ConnectionState.CLOSED

        try:
            self.socket.shutdown(socket.SHUT_RDWR)
        except OSError:
            pass  # Already disconnected

        try:
            self.socket.close()
        except OSError as e:
            logger.debug(f"[{self.id}] Error while closing socket: {e}")

        self._buffer = b""
        self._partial = False
        logger.debug(f"[{self.id}] Connection closed")
        return True

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False
