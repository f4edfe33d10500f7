"""
Outbound broadcast: deliver the queue to every client.
"""

import logging

from ..config import ServerConfig
from .messages import OutboundQueue
from .registry import ClientRegistry


logger = logging.getLogger(__name__)

# Every broadcast line, the server's running transcript of the room.
transcript_logger = logging.getLogger("chatserver.transcript")


class OutboundBroadcaster:
    """
    Flushes the outbound queue to all receiving clients.

    Messages go out in queue order; within a message, clients are served in
    registry order. A failed write is logged and marks that connection
    faulted, and delivery carries on with the next client. The faulted
    client is removed by the next liveness check, not here.
    """

    def __init__(self, config: ServerConfig):
        self.config = config

    def broadcast(self, registry: ClientRegistry, queue: OutboundQueue) -> int:
        """
        Send every queued message and empty the queue.

        Nothing is retried: a message that could not be written to a
        client is simply not delivered to it.

        Returns:
            Number of successful deliveries.
        """
        messages = queue.drain()
        if not messages:
            return 0

        recipients = [c for c in registry.clients() if c.can_receive]
        delivered = 0

        for message in messages:
            transcript_logger.info(message.text)
            data = message.encode(self.config.message_terminator)

            for client in recipients:
                if client.connection.faulted:
                    continue
                if client is message.sender and not self.config.echo_to_sender:
                    continue
                if client.connection.send(data):
                    delivered += 1

        return delivered
