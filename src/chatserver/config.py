"""
=============================================================================
SERVER CONFIGURATION
=============================================================================

Centralized configuration for the chat server.

    ┌─────────────────────────────────────────────────────────────────────┐
    │                    CONFIGURATION HIERARCHY                          │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │   Priority (highest to lowest):                                     │
    │                                                                      │
    │   1. Command-line arguments                                         │
    │      └── python -m chatserver --port 7000                          │
    │                                                                      │
    │   2. Environment variables                                          │
    │      └── CHAT_PORT=7000 python -m chatserver                       │
    │                                                                      │
    │   3. Default values (in this dataclass)                            │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

=============================================================================
FRAMING
=============================================================================

TCP is a byte stream: one send() on the client may arrive as several
recv() results on the server, or several sends may arrive as one.

    "line"  Payloads end with "\\n". The handshake waits for the terminator
            (bounded by handshake_timeout) and every complete chat line
            becomes one broadcast message.

    "raw"   Whatever a single read returns is one payload. A handshake
            split across two reads is truncated. Kept for old clients.

=============================================================================
"""

import os
from dataclasses import dataclass
from typing import Optional


FRAMING_LINE = "line"
FRAMING_RAW = "raw"
FRAMING_MODES = (FRAMING_LINE, FRAMING_RAW)

LOG_FORMATS = ("text", "json")


@dataclass
class ServerConfig:
    """
    Configuration for the chat server.

    Development:
        ServerConfig(host="127.0.0.1", port=6000, log_level="DEBUG")

    Production:
        ServerConfig(host="0.0.0.0", port=6000, log_format="json")
    """

    # ─────────────────────────────────────────────────────────────────────
    # IDENTITY
    # ─────────────────────────────────────────────────────────────────────

    chat_name: str = "PyChat"
    """Name shown in the welcome message and startup log."""

    # ─────────────────────────────────────────────────────────────────────
    # NETWORK SETTINGS
    # ─────────────────────────────────────────────────────────────────────

    host: str = "0.0.0.0"
    port: int = 6000
    backlog: int = 16

    buffer_size: int = 2 * 1024
    """
    Receive buffer size in bytes. Also the upper bound on a handshake
    payload: a longer identification is rejected.
    """

    handshake_timeout: Optional[float] = 1.0
    """
    How long a new connection gets to identify itself. The handshake runs
    inside the server loop, so this bounds how long registered clients can
    be held up by a silent newcomer. None = wait forever.
    """

    send_timeout: Optional[float] = 2.0
    """Per-client write timeout during broadcast. None = block."""

    liveness_poll_timeout: float = 0.0
    """select() timeout used by the disconnect check, per client."""

    tick_interval: float = 0.01
    """Sleep between server loop iterations (seconds)."""

    # ─────────────────────────────────────────────────────────────────────
    # PROTOCOL
    # ─────────────────────────────────────────────────────────────────────

    framing: str = FRAMING_LINE
    message_terminator: str = "\n"
    """Appended to every message written to clients. "" = none."""

    echo_to_sender: bool = True
    """Deliver a chat line back to the client that sent it."""

    send_welcome: bool = True

    # ─────────────────────────────────────────────────────────────────────
    # LOGGING
    # ─────────────────────────────────────────────────────────────────────

    log_level: str = "INFO"
    log_format: str = "text"

    @classmethod
    def from_env(cls) -> "ServerConfig":
        """
        Create configuration from environment variables.

        CHAT_NAME               Chat name (default: PyChat)
        CHAT_HOST               Server host (default: 0.0.0.0)
        CHAT_PORT               Server port (default: 6000)
        CHAT_BUFFER_SIZE        Receive buffer in bytes (default: 2048)
        CHAT_HANDSHAKE_TIMEOUT  Seconds to identify (default: 1)
        CHAT_TICK_INTERVAL      Loop sleep in seconds (default: 0.01)
        CHAT_FRAMING            line | raw (default: line)
        CHAT_LOG_LEVEL          Logging level (default: INFO)
        CHAT_LOG_FORMAT         text | json (default: text)
        """
        return cls(
            chat_name=os.getenv("CHAT_NAME", "PyChat"),
            host=os.getenv("CHAT_HOST", "0.0.0.0"),
            port=int(os.getenv("CHAT_PORT", "6000")),
            buffer_size=int(os.getenv("CHAT_BUFFER_SIZE", str(2 * 1024))),
            handshake_timeout=float(os.getenv("CHAT_HANDSHAKE_TIMEOUT", "1")),
            tick_interval=float(os.getenv("CHAT_TICK_INTERVAL", "0.01")),
            framing=os.getenv("CHAT_FRAMING", FRAMING_LINE),
            log_level=os.getenv("CHAT_LOG_LEVEL", "INFO"),
            log_format=os.getenv("CHAT_LOG_FORMAT", "text"),
        )

    def validate(self) -> None:
        """Validate configuration values. Raises ValueError on the first problem."""
        # Port 0 is allowed: the OS picks a free port (used by the tests).
        if not 0 <= self.port < 65536:
            raise ValueError(f"Invalid port: {self.port}. Must be 0-65535.")

        if not self.chat_name:
            raise ValueError("chat_name must not be empty")

        if self.backlog < 1:
            raise ValueError("backlog must be >= 1")

        if self.buffer_size < 64:
            raise ValueError("buffer_size must be >= 64")

        if self.handshake_timeout is not None and self.handshake_timeout <= 0:
            raise ValueError("handshake_timeout must be > 0")

        if self.send_timeout is not None and self.send_timeout <= 0:
            raise ValueError("send_timeout must be > 0")

        if self.liveness_poll_timeout < 0:
            raise ValueError("liveness_poll_timeout must be >= 0")

        if self.tick_interval < 0:
            raise ValueError("tick_interval must be >= 0")

        if self.framing not in FRAMING_MODES:
            raise ValueError(f"framing must be one of {FRAMING_MODES}, got {self.framing!r}")

        if self.log_format not in LOG_FORMATS:
            raise ValueError(f"log_format must be one of {LOG_FORMATS}, got {self.log_format!r}")
