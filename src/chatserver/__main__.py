"""
=============================================================================
CHAT SERVER CLI ENTRY POINT
=============================================================================

    # Run with defaults (0.0.0.0:6000)
    python -m chatserver

    # Named room on a custom port
    python -m chatserver --name "Lobby" --port 7000

    # Legacy clients that send no newline after their name
    python -m chatserver --framing raw

The entry point owns the process-level concerns the server itself does
not: argument parsing, logging setup and signals. SIGINT and SIGTERM call
shutdown() on the one server instance created here.
=============================================================================
"""

import argparse
import dataclasses
import logging
import signal
import sys

from . import __version__
from .config import FRAMING_MODES, LOG_FORMATS, ServerConfig
from .logs import configure_logging
from .server import ChatServer


logger = logging.getLogger("chatserver")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="chatserver",
        description="Single-room TCP text broadcast server",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python -m chatserver                          # Run with defaults
  python -m chatserver --name Lobby --port 7000 # Named room, custom port
  python -m chatserver --host 127.0.0.1         # Localhost only
  python -m chatserver --framing raw            # Legacy, no newline framing
        """,
    )

    # Defaults of None mean "keep what the environment / ServerConfig says".
    parser.add_argument("--name", "-n", default=None, help="Chat name shown to clients")
    parser.add_argument("--host", "-H", default=None, help="Host to bind to (default: 0.0.0.0)")
    parser.add_argument("--port", "-p", type=int, default=None, help="Port to listen on (default: 6000)")

    parser.add_argument(
        "--framing",
        choices=FRAMING_MODES,
        default=None,
        help="How payloads are delimited (default: line)",
    )
    parser.add_argument(
        "--handshake-timeout",
        type=float,
        default=None,
        help="Seconds a new client gets to identify itself (default: 1)",
    )
    parser.add_argument(
        "--no-echo",
        action="store_true",
        help="Do not send chat lines back to their sender",
    )
    parser.add_argument(
        "--no-welcome",
        action="store_true",
        help="Do not greet new clients",
    )

    parser.add_argument(
        "--log-level", "-l",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        default=None,
        help="Logging level (default: INFO)",
    )
    parser.add_argument(
        "--log-format",
        choices=LOG_FORMATS,
        default=None,
        help="Log output format (default: text)",
    )

    parser.add_argument("--version", "-v", action="version", version=f"chatserver {__version__}")

    return parser


def config_from_args(args: argparse.Namespace, base: ServerConfig) -> ServerConfig:
    """Overlay the flags that were given on top of base."""
    overrides = {
        "chat_name": args.name,
        "host": args.host,
        "port": args.port,
        "framing": args.framing,
        "handshake_timeout": args.handshake_timeout,
        "log_level": args.log_level,
        "log_format": args.log_format,
    }
    changes = {key: value for key, value in overrides.items() if value is not None}

    if args.no_echo:
        changes["echo_to_sender"] = False
    if args.no_welcome:
        changes["send_welcome"] = False

    return dataclasses.replace(base, **changes)


def install_signal_handlers(server: ChatServer) -> dict:
    """
    Route SIGINT / SIGTERM to server.shutdown().

    Returns:
        The previous handlers, for restore_signal_handlers().
    """
    def shutdown_handler(signum, frame):
        signal_name = signal.Signals(signum).name
        logger.info(f"Received {signal_name}, initiating shutdown...")
        server.shutdown()

    original = {}
    for sig in (signal.SIGINT, signal.SIGTERM):
        original[sig] = signal.signal(sig, shutdown_handler)
    return original


def restore_signal_handlers(original: dict):
    for sig, handler in original.items():
        signal.signal(sig, handler)


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)

    try:
        config = config_from_args(args, ServerConfig.from_env())
        config.validate()
    except ValueError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 2

    configure_logging(config.log_level, config.log_format)

    server = ChatServer(config)
    original_handlers = install_signal_handlers(server)
    logger.info("Press Ctrl+C to shut down the server at any time.")

    try:
        server.run()
    except OSError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    finally:
        restore_signal_handlers(original_handlers)

    return 0


if __name__ == "__main__":
    sys.exit(main())
