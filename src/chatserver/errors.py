"""
=============================================================================
CHAT SERVER EXCEPTIONS
=============================================================================

    ChatServerError
    ├── HandshakeRejected       Bad or colliding identification payload
    │   └── NameTakenError      Requested name already held by a client
    └── TransportFault          I/O failure on an established connection

Only HandshakeRejected ever reaches the server loop as an exception; a
TransportFault is converted into "this client is disconnected" by the
component that hit it. Nothing in per-client processing may stop the loop.
=============================================================================
"""

from typing import Optional


class ChatServerError(Exception):
    """Base class for all chat server errors."""


class HandshakeRejected(ChatServerError):
    """
    A new connection failed to identify itself.

    Attributes:
        reason: Short human-readable reason, used in log lines.
        payload: The decoded payload that was rejected (if any).
    """

    def __init__(self, reason: str, payload: Optional[str] = None):
        super().__init__(reason)
        self.reason = reason
        self.payload = payload


class NameTakenError(HandshakeRejected):
    """The requested display name belongs to another active client."""

    def __init__(self, name: str):
        super().__init__(f"name {name!r} is already taken", payload=f"name:{name}")
        self.name = name


class TransportFault(ChatServerError):
    """
    An I/O error on an established client connection.

    Wraps the underlying OSError so callers can tell transport problems apart
    from programming errors.
    """

    def __init__(self, message: str, cause: Optional[BaseException] = None):
        super().__init__(message)
        self.cause = cause
