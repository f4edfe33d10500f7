"""
Inbound collection: drain whatever each client has sent into chat lines.
"""

import logging

from ..config import FRAMING_LINE, ServerConfig
from ..errors import TransportFault
from .messages import OutboundQueue, chat_line
from .registry import Client, ClientRegistry


logger = logging.getLogger(__name__)


class InboundCollector:
    """
    Reads available input from every client without blocking.

    A client with nothing waiting is skipped for this tick. Bytes are
    decoded as UTF-8 with invalid sequences replaced, so one bad client
    cannot fail the whole tick.
    """

    def __init__(self, config: ServerConfig):
        self.config = config

    def collect(self, registry: ClientRegistry, queue: OutboundQueue) -> int:
        """
        Harvest new chat lines into the queue, in registry order.

        Returns:
            Number of chat messages queued.
        """
        queued = 0
        for client in registry.clients():
            try:
                queued += self._collect_from(client, queue)
            except TransportFault as e:
                # Liveness picks the faulted connection up next tick.
                logger.debug(f"[{client.id}] Read failed: {e}")
        return queued

    def _collect_from(self, client: Client, queue: OutboundQueue) -> int:
        conn = client.connection

        available = conn.bytes_available()
        if available:
            conn.read(available)

        if not client.can_send:
            conn.discard_pending()
            return 0

        if self.config.framing == FRAMING_LINE:
            payloads = conn.take_lines()
        else:
            payloads = [conn.take_all()]

        queued = 0
        for payload in payloads:
            if not payload:
                continue
            text = payload.decode("utf-8", errors="replace")
            queue.put(chat_line(client.name, text), sender=client)
            queued += 1
        return queued
