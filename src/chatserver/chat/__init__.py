"""
=============================================================================
CHAT COMPONENTS
=============================================================================

One tick of the server loop walks these in order:

    Handshake           new connection → registered client (or rejected)
    LivenessDetector    dead clients → removed, "left" announcements
    InboundCollector    client input → chat lines on the queue
    OutboundBroadcaster queue → every client, then empty the queue

ClientRegistry and OutboundQueue are the shared state they pass around.
=============================================================================
"""

from .registry import Client, ClientRegistry, ClientRole
from .messages import OutboundMessage, OutboundQueue
from .handshake import Handshake, Identification, parse_identification
from .liveness import LivenessDetector
from .collector import InboundCollector
from .broadcaster import OutboundBroadcaster

__all__ = [
    "Client",
    "ClientRegistry",
    "ClientRole",
    "OutboundMessage",
    "OutboundQueue",
    "Handshake",
    "Identification",
    "parse_identification",
    "LivenessDetector",
    "InboundCollector",
    "OutboundBroadcaster",
]
