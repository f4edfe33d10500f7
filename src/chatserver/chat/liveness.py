"""
Disconnect detection and pruning.

Runs before inbound collection each tick, so a client found dead is gone
before any of its stale input could be read. The one exception is an
unterminated line the collector already read while the client was alive:
it goes out as a last chat message ahead of the "has left" notice.
"""

import logging
import time
from typing import List

from ..config import ServerConfig
from .messages import OutboundQueue, chat_line, left
from .registry import Client, ClientRegistry


logger = logging.getLogger(__name__)


class LivenessDetector:
    """Finds clients whose connection has gone away and removes them."""

    def __init__(self, config: ServerConfig):
        self.config = config

    def is_disconnected(self, client: Client) -> bool:
        # Fails safe: any error inside the check reports the client as gone.
        return client.connection.is_disconnected(self.config.liveness_poll_timeout)

    def prune(self, registry: ClientRegistry, queue: OutboundQueue) -> List[Client]:
        """
        Remove every dead client.

        Each removed messenger gets a "<name> has left the chat." queued,
        preceded by its unterminated last line if the collector holds one.
        The connection is closed after the registry entry is gone, and a
        failing close never keeps the entry around.

        Returns:
            The removed clients, in registry order.
        """
        removed = []
        for client in registry.clients():
            if not self.is_disconnected(client):
                continue

            if not registry.remove(client):
                continue

            stayed = time.time() - client.joined_at
            if client.name is not None:
                tail = client.connection.take_partial()
                if tail:
                    queue.put(chat_line(client.name, tail.decode("utf-8", errors="replace")), sender=client)
                logger.info(f"[{client.id}] {client.name} has left after {stayed:.1f}s")
                queue.put(left(client.name))
            else:
                logger.info(f"[{client.id}] {client.label} has left after {stayed:.1f}s")

            client.connection.close()
            removed.append(client)

        return removed
