"""
=============================================================================
CONNECTION HANDSHAKE
=============================================================================

Turns a freshly accepted connection into a registered client, or rejects
it.

    payload                     result
    ─────────────────────────   ──────────────────────────────────────────
    name:<NAME>                 messenger NAME, "<NAME> has entered the chat."
    name:                       rejected (empty name)
    name:<NAME already used>    rejected (collision)
    viewer                      viewer (receives only, no announcement)
    anything else / nothing     rejected

A rejected connection is closed straight away and leaves no trace in the
registry or the outbound queue.

In "line" framing the payload ends at the first newline; whatever follows
it in the same read is kept as the client's first chat input. In "raw"
framing the first read result is the payload.
=============================================================================
"""

import logging
from dataclasses import dataclass
from typing import Optional

from ..config import FRAMING_LINE, ServerConfig
from ..core.connection import Connection
from ..errors import HandshakeRejected, TransportFault
from .messages import NAME_PREFIX, VIEWER_TOKEN, OutboundQueue, entered, welcome
from .registry import Client, ClientRegistry, ClientRole


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Identification:
    """A parsed handshake payload."""
    role: ClientRole
    name: Optional[str] = None


def parse_identification(payload: str) -> Identification:
    """
    Parse a decoded handshake payload.

    Raises:
        HandshakeRejected: If the payload is not a valid identification.
    """
    if payload == VIEWER_TOKEN:
        return Identification(role=ClientRole.VIEWER)

    if payload.startswith(NAME_PREFIX):
        name = payload[len(NAME_PREFIX):]
        if not name:
            raise HandshakeRejected("empty name", payload)
        return Identification(role=ClientRole.MESSENGER, name=name)

    raise HandshakeRejected("unrecognized identification", payload)


class Handshake:
    """
    Admits or rejects new connections.

    Args:
        config: Server configuration (framing, timeouts, welcome).
        registry: Where admitted clients are registered.
        queue: Where join announcements are queued.
    """

    def __init__(self, config: ServerConfig, registry: ClientRegistry, queue: OutboundQueue):
        self.config = config
        self.registry = registry
        self.queue = queue

    def perform(self, conn: Connection) -> Optional[Client]:
        """
        Run the handshake on a new connection.

        Returns:
            The registered client, or None if the connection was rejected
            (and closed).
        """
        try:
            return self._admit(conn)
        except HandshakeRejected as e:
            logger.info(f"[{conn.id}] Rejected {conn.client_ip}:{conn.client_port}: {e.reason}")
            conn.close()
            return None

    def _admit(self, conn: Connection) -> Client:
        identification = parse_identification(self._read_payload(conn))

        client = self.registry.register(conn, identification.name, identification.role)
        conn.activate(self.config.send_timeout)

        if client.role == ClientRole.MESSENGER:
            logger.info(f"[{conn.id}] {conn.client_ip}:{conn.client_port} joined as {client.name!r}")
            self.queue.put(entered(client.name))
        else:
            logger.info(f"[{conn.id}] {conn.client_ip}:{conn.client_port} joined as a viewer")

        if self.config.send_welcome:
            # A failed write marks the connection faulted; liveness prunes it.
            conn.send((welcome(self.config.chat_name) + self.config.message_terminator).encode("utf-8"))

        return client

    def _read_payload(self, conn: Connection) -> str:
        timeout = self.config.handshake_timeout
        try:
            if self.config.framing == FRAMING_LINE:
                raw = conn.read_line(timeout)
            else:
                raw = conn.read_payload(timeout)
                if raw is not None:
                    raw = raw.rstrip(b"\r\n")
        except TransportFault as e:
            raise HandshakeRejected(f"transport error: {e}") from e
        except ValueError as e:
            raise HandshakeRejected(str(e)) from e

        if not raw:
            raise HandshakeRejected("no identification received")

        return raw.decode("utf-8", errors="replace")
