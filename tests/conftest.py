"""
pytest configuration and fixtures.
"""

import socket
import threading
import time
from typing import Callable, Generator, List, Optional, Tuple
import pytest

# Add src to path for imports
import sys
from pathlib import Path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from chatserver import ChatServer, ServerConfig
from chatserver.core.connection import Connection
from chatserver.chat.registry import ClientRegistry
from chatserver.chat.messages import OutboundQueue


def wait_for(predicate: Callable[[], bool], timeout: float = 3.0, interval: float = 0.01) -> bool:
    """Poll predicate until it is true or the timeout expires."""
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(interval)
    return predicate()


@pytest.fixture
def config() -> ServerConfig:
    """Default test configuration: localhost, OS-picked port, fast ticks."""
    return ServerConfig(
        chat_name="Test",
        host="127.0.0.1",
        port=0,
        handshake_timeout=1.0,
        send_timeout=1.0,
        tick_interval=0.005,
        send_welcome=False,
        log_level="WARNING",
    )


@pytest.fixture
def registry() -> ClientRegistry:
    return ClientRegistry()


@pytest.fixture
def queue() -> OutboundQueue:
    return OutboundQueue()


@pytest.fixture
def make_connection() -> Generator[Callable[..., Tuple[Connection, socket.socket]], None, None]:
    """
    Factory for (Connection, peer socket) pairs backed by socket.socketpair().

    The Connection is the server side; write to the peer to play the client.
    """
    peers: List[socket.socket] = []
    conns: List[Connection] = []
    counter = [0]

    def factory(buffer_size: int = 2048) -> Tuple[Connection, socket.socket]:
        server_side, client_side = socket.socketpair()
        counter[0] += 1
        conn = Connection(
            socket=server_side,
            address=("127.0.0.1", 50000 + counter[0]),
            buffer_size=buffer_size,
        )
        peers.append(client_side)
        conns.append(conn)
        return conn, client_side

    yield factory

    for conn in conns:
        conn.close()
    for peer in peers:
        peer.close()


def recv_all(sock: socket.socket, timeout: float = 0.5) -> bytes:
    """Read everything that arrives within timeout."""
    sock.settimeout(timeout)
    data = b""
    try:
        while True:
            chunk = sock.recv(4096)
            if not chunk:
                break
            data += chunk
    except (socket.timeout, BlockingIOError):
        pass
    return data


class ChatClient:
    """Line-oriented TCP test client."""

    def __init__(self, port: int, host: str = "127.0.0.1"):
        self.sock = socket.create_connection((host, port), timeout=3.0)
        self.lines: List[str] = []
        self._buffer = b""

    def send(self, text: str):
        self.sock.sendall(text.encode("utf-8"))

    def read_line(self, timeout: float = 3.0) -> Optional[str]:
        """Next line from the server, or None on timeout or EOF."""
        deadline = time.monotonic() + timeout
        while b"\n" not in self._buffer:
            remaining = deadline - time.monotonic()
            if remaining <= 0:
                return None
            self.sock.settimeout(remaining)
            try:
                chunk = self.sock.recv(4096)
            except socket.timeout:
                return None
            except ConnectionResetError:
                return None
            if not chunk:
                return None
            self._buffer += chunk
        line, self._buffer = self._buffer.split(b"\n", 1)
        text = line.decode("utf-8")
        self.lines.append(text)
        return text

    def expect(self, wanted: str, timeout: float = 3.0) -> bool:
        """Read lines until one equals wanted. Skips anything else."""
        deadline = time.monotonic() + timeout
        while True:
            remaining = deadline - time.monotonic()
            if remaining <= 0:
                return False
            line = self.read_line(remaining)
            if line is None:
                return False
            if line == wanted:
                return True

    def is_closed_by_server(self, timeout: float = 3.0) -> bool:
        """Drain anything unread and report whether the server closed the socket."""
        deadline = time.monotonic() + timeout
        while True:
            remaining = deadline - time.monotonic()
            if remaining <= 0:
                return False
            self.sock.settimeout(remaining)
            try:
                chunk = self.sock.recv(4096)
            except ConnectionResetError:
                return True
            except socket.timeout:
                return False
            if not chunk:
                return True
            self._buffer += chunk

    def close(self):
        try:
            self.sock.close()
        except OSError:
            pass


class RunningServer:
    """Runs a ChatServer in a background thread."""

    def __init__(self, server: ChatServer):
        self.server = server
        self._thread: Optional[threading.Thread] = None
        self.clients: List[ChatClient] = []

    @property
    def port(self) -> int:
        return self.server.address[1]

    def start(self):
        self._thread = threading.Thread(target=self.server.run, daemon=True)
        self._thread.start()
        if not self.server.wait_until_running(timeout=5.0):
            raise RuntimeError("Server failed to start")

    def connect(self) -> ChatClient:
        client = ChatClient(self.port)
        self.clients.append(client)
        return client

    def join(self, name: str) -> ChatClient:
        """Connect and register as name; returns once the registry has it."""
        client = self.connect()
        client.send(f"name:{name}\n")
        if not wait_for(lambda: self.server.registry.get(name) is not None):
            raise RuntimeError(f"{name} was not registered")
        return client

    def stop(self):
        self.server.shutdown()
        if self._thread and self._thread.is_alive():
            self._thread.join(timeout=5.0)
        for client in self.clients:
            client.close()


@pytest.fixture
def wait() -> Callable[..., bool]:
    """The wait_for() polling helper, as a fixture."""
    return wait_for


@pytest.fixture
def recv() -> Callable[..., bytes]:
    """The recv_all() helper, as a fixture."""
    return recv_all


@pytest.fixture
def start_server() -> Generator[Callable[[ServerConfig], RunningServer], None, None]:
    """Factory that starts a server for a given config; all are stopped at teardown."""
    started: List[RunningServer] = []

    def factory(config: ServerConfig) -> RunningServer:
        running = RunningServer(ChatServer(config))
        running.start()
        started.append(running)
        return running

    yield factory

    for running in started:
        running.stop()


@pytest.fixture
def chat_server(config: ServerConfig, start_server) -> RunningServer:
    """A running chat server on a free port."""
    return start_server(config)
