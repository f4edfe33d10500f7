"""
=============================================================================
CLIENT REGISTRY
=============================================================================

The authoritative set of clients that are currently in the chat.

    ┌─────────────────────────────────────────────────────────────────────┐
    │                         ClientRegistry                              │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │   _clients   [alice, <viewer>, bob]     join order = send order     │
    │   _names     {"alice": alice, "bob": bob}                           │
    │                                                                      │
    │   Invariant: every name points at exactly one entry of _clients,   │
    │   and every named entry of _clients has exactly one name. Both     │
    │   change together under one lock, or not at all.                   │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

Viewers are clients with the VIEWER role: they receive broadcasts but
cannot send, and they hold no name. Messengers and viewers share one list
so that broadcast and pruning have a single code path.

Readers get snapshot lists. Iterating a snapshot while another thread
registers or removes a client is safe; the change shows up next tick.
=============================================================================
"""

import threading
import time
import logging
from enum import Enum
from dataclasses import dataclass, field
from typing import Dict, Iterator, List, Optional

from ..core.connection import Connection
from ..errors import NameTakenError


logger = logging.getLogger(__name__)


class ClientRole(Enum):
    MESSENGER = "messenger"   # Named; sends and receives
    VIEWER = "viewer"         # Anonymous; receives only


@dataclass(eq=False)
class Client:
    """
    A registered chat participant.

    Compared and hashed by identity: two clients are the same only if they
    are the same object.
    """

    connection: Connection
    role: ClientRole = ClientRole.MESSENGER
    name: Optional[str] = None
    joined_at: float = field(default_factory=time.time)

    @property
    def id(self) -> str:
        return self.connection.id

    @property
    def can_send(self) -> bool:
        return self.role == ClientRole.MESSENGER

    @property
    def can_receive(self) -> bool:
        return True

    @property
    def label(self) -> str:
        """Name for log lines."""
        if self.name is not None:
            return self.name
        return f"viewer@{self.connection.client_ip}:{self.connection.client_port}"


class ClientRegistry:
    """Thread-safe registry of active clients."""

    def __init__(self):
        self._clients: List[Client] = []
        self._names: Dict[str, Client] = {}
        self._lock = threading.RLock()

    # =========================================================================
    # MEMBERSHIP CHANGES
    # =========================================================================

    def register(
        self,
        connection: Connection,
        name: Optional[str] = None,
        role: ClientRole = ClientRole.MESSENGER,
    ) -> Client:
        """
        Add a client.

        The name check and both inserts happen inside one critical section,
        so two handshakes racing for the same name cannot both win.

        Raises:
            NameTakenError: If name is held by another active client.
            ValueError: If a messenger has no name or a viewer has one.
        """
        if role == ClientRole.MESSENGER and not name:
            raise ValueError("A messenger needs a non-empty name")
        if role == ClientRole.VIEWER and name is not None:
            raise ValueError("A viewer cannot have a name")

        with self._lock:
            if name is not None and name in self._names:
                raise NameTakenError(name)

            client = Client(connection=connection, role=role, name=name)
            self._clients.append(client)
            if name is not None:
                self._names[name] = client

        logger.debug(f"[{client.id}] Registered {client.role.value} {client.label}")
        return client

    def remove(self, client: Client) -> bool:
        """
        Remove a client and its name together.

        Returns:
            True if the client was registered, False if it was not.
        """
        with self._lock:
            if client not in self._clients:
                return False
            self._clients.remove(client)
            if client.name is not None and self._names.get(client.name) is client:
                del self._names[client.name]

        logger.debug(f"[{client.id}] Unregistered {client.label}")
        return True

    def clear(self) -> List[Client]:
        """Remove every client. Returns the removed clients in join order."""
        with self._lock:
            removed = self._clients
            self._clients = []
            self._names = {}
        return removed

    # =========================================================================
    # QUERIES
    # =========================================================================

    def clients(self) -> List[Client]:
        """Snapshot of all active clients, in join order."""
        with self._lock:
            return list(self._clients)

    def messengers(self) -> List[Client]:
        return [c for c in self.clients() if c.role == ClientRole.MESSENGER]

    def viewers(self) -> List[Client]:
        return [c for c in self.clients() if c.role == ClientRole.VIEWER]

    def names(self) -> List[str]:
        """Names of active messengers, in join order."""
        return [c.name for c in self.messengers()]

    def get(self, name: str) -> Optional[Client]:
        with self._lock:
            return self._names.get(name)

    def is_name_taken(self, name: str) -> bool:
        with self._lock:
            return name in self._names

    def __len__(self) -> int:
        with self._lock:
            return len(self._clients)

    def __contains__(self, client: Client) -> bool:
        with self._lock:
            return client in self._clients

    def __iter__(self) -> Iterator[Client]:
        return iter(self.clients())
