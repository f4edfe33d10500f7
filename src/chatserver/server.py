"""
=============================================================================
CHAT SERVER
=============================================================================

The orchestrator: owns the listener, the registry and the outbound queue,
and drives the chat components once per tick.

=============================================================================
ARCHITECTURE OVERVIEW
=============================================================================

    ┌─────────────────────────────────────────────────────────────────────┐
    │                          ChatServer                                 │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │   while running:                                                    │
    │       │                                                             │
    │       ├──► 1. Listener.pending()?  ──► accept ──► Handshake         │
    │       │                                              │              │
    │       │                                              ▼              │
    │       ├──► 2. LivenessDetector.prune() ──────► ClientRegistry      │
    │       │                                              ▲              │
    │       ├──► 3. InboundCollector.collect() ────────────┤              │
    │       │              │                               │              │
    │       │              ▼                               │              │
    │       │        OutboundQueue                         │              │
    │       │              │                               │              │
    │       ├──► 4. OutboundBroadcaster.broadcast() ───────┘              │
    │       │                                                             │
    │       └──► 5. wait tick_interval (or until shutdown)                │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

=============================================================================
LIFECYCLE
=============================================================================

    CREATED ──── run() ────► RUNNING ──── shutdown() ────► STOPPED

shutdown() only sets a flag. The loop notices it at the top of its next
iteration, closes every remaining client, closes the listener and returns.
It is idempotent and safe to call from another thread or a signal handler.

A server runs once. Build a new ChatServer to start again.
=============================================================================
"""

import dataclasses
import logging
import threading
import time
from enum import Enum
from typing import Optional, Tuple

from .config import ServerConfig
from .core.listener import Listener
from .chat.registry import ClientRegistry
from .chat.messages import OutboundQueue
from .chat.handshake import Handshake
from .chat.liveness import LivenessDetector
from .chat.collector import InboundCollector
from .chat.broadcaster import OutboundBroadcaster


logger = logging.getLogger(__name__)


class ServerState(Enum):
    CREATED = "created"
    RUNNING = "running"
    STOPPED = "stopped"


class ChatServer:
    """
    Single-room text broadcast server.

    Usage:
        server = ChatServer(ServerConfig(chat_name="Lobby", port=6000))
        server.run()         # Blocks until shutdown()

    From another thread:
        server.shutdown()
    """

    def __init__(self, config: Optional[ServerConfig] = None):
        self.config = config or ServerConfig()
        self.config.validate()

        # ─────────────────────────────────────────────────────────────────
        # SHARED STATE
        # ─────────────────────────────────────────────────────────────────
        self._listener = Listener(self.config)
        self._registry = ClientRegistry()
        self._queue = OutboundQueue()

        # ─────────────────────────────────────────────────────────────────
        # TICK STEPS
        # ─────────────────────────────────────────────────────────────────
        self._handshake = Handshake(self.config, self._registry, self._queue)
        self._liveness = LivenessDetector(self.config)
        self._collector = InboundCollector(self.config)
        self._broadcaster = OutboundBroadcaster(self.config)

        # ─────────────────────────────────────────────────────────────────
        # LIFECYCLE
        # ─────────────────────────────────────────────────────────────────
        self._state = ServerState.CREATED
        self._state_lock = threading.Lock()
        self._stop_requested = threading.Event()
        self._started = threading.Event()
        self._stopped = threading.Event()

    @classmethod
    def create(cls, name: str, port: int, config: Optional[ServerConfig] = None) -> "ChatServer":
        """Build a server for a chat name and port on top of config (or the environment)."""
        base = config or ServerConfig.from_env()
        return cls(dataclasses.replace(base, chat_name=name, port=port))

    # =========================================================================
    # PROPERTIES
    # =========================================================================

    @property
    def state(self) -> ServerState:
        return self._state

    @property
    def running(self) -> bool:
        """True between run() and the first shutdown() request."""
        return self._state == ServerState.RUNNING and not self._stop_requested.is_set()

    @property
    def chat_name(self) -> str:
        return self.config.chat_name

    @property
    def registry(self) -> ClientRegistry:
        return self._registry

    @property
    def queue(self) -> OutboundQueue:
        return self._queue

    @property
    def address(self) -> Tuple[str, int]:
        """Bound (host, port); the real port once running, even with port=0."""
        return self._listener.address

    # =========================================================================
    # LIFECYCLE
    # =========================================================================

    def run(self):
        """
        Bind the listener and run the loop (blocking).

        Raises:
            RuntimeError: If the server was already started.
            OSError: If the listener cannot bind.
        """
        with self._state_lock:
            if self._state != ServerState.CREATED:
                raise RuntimeError(f"Server cannot be started from state {self._state.value}")
            self._state = ServerState.RUNNING

        try:
            self._listener.open()
        except OSError:
            self._finish()
            raise

        host, port = self.address
        logger.info(f'Starting the "{self.config.chat_name}" chat server on {host}:{port}')
        self._started.set()

        try:
            while not self._stop_requested.is_set():
                try:
                    self.tick()
                except Exception as e:
                    # Only shutdown() ends the loop.
                    logger.exception(f"Unexpected error during tick: {e}")

                self._stop_requested.wait(self.config.tick_interval)
        finally:
            self._cleanup()

    def tick(self):
        """Run one iteration: accept, prune, collect, broadcast."""
        if self._listener.pending():
            conn = self._listener.accept()
            if conn is not None:
                self._handshake.perform(conn)

        self._liveness.prune(self._registry, self._queue)
        self._collector.collect(self._registry, self._queue)
        self._broadcaster.broadcast(self._registry, self._queue)

    def shutdown(self):
        """
        Ask the loop to stop.

        Safe to call from any thread or a signal handler, any number of
        times. Calling it before run() makes run() return right after
        binding.
        """
        if self._stop_requested.is_set():
            return
        self._stop_requested.set()
        logger.info("Shutting down the server...")

    def _cleanup(self):
        """Release every remaining client and the listener."""
        clients = self._registry.clear()
        for client in clients:
            client.connection.close()
        if clients:
            logger.info(f"Disconnected {len(clients)} client(s)")

        self._listener.close()
        self._finish()
        logger.info("Server is shut down")

    def _finish(self):
        with self._state_lock:
            self._state = ServerState.STOPPED
        self._stopped.set()

    def wait_until_running(self, timeout: Optional[float] = None) -> bool:
        """
        Wait for the listener to be bound.

        Returns:
            True once the server accepts connections, False on timeout or
            if it stopped without ever running.
        """
        deadline = None if timeout is None else time.monotonic() + timeout
        while not self._started.is_set() and not self._stopped.is_set():
            remaining = None if deadline is None else deadline - time.monotonic()
            if remaining is not None and remaining <= 0:
                break
            self._started.wait(0.05 if remaining is None else min(0.05, remaining))
        return self._started.is_set() and self._state == ServerState.RUNNING

    def wait_for_shutdown(self, timeout: Optional[float] = None) -> bool:
        """
        Wait for the server to reach STOPPED.

        Returns:
            True if it stopped, False on timeout.
        """
        return self._stopped.wait(timeout)
