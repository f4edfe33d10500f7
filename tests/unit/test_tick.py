"""
Unit tests for a single server tick, driven without a bound listener.
"""

from chatserver import ChatServer
from chatserver.chat.handshake import Handshake


def join(server, make_connection, payload: bytes):
    conn, peer = make_connection()
    peer.sendall(payload)
    client = Handshake(server.config, server.registry, server.queue).perform(conn)
    assert client is not None
    return client, peer


class TestTick:
    """Tests for the order of steps inside one tick."""

    def test_dead_client_input_never_collected(self, config, make_connection, recv):
        """Test that a client gone before the tick has its leftover lines dropped."""
        server = ChatServer(config)
        alice, alice_peer = join(server, make_connection, b"name:alice\n")
        bob, bob_peer = join(server, make_connection, b"name:bob\nstale\n")
        assert bob.connection.pending == b"stale\n"
        bob_peer.close()

        server.tick()

        assert server.registry.clients() == [alice]
        assert len(server.queue) == 0
        assert recv(alice_peer, timeout=0.2) == (
            b"alice has entered the chat.\n"
            b"bob has entered the chat.\n"
            b"bob has left the chat.\n"
        )

    def test_live_client_line_broadcast_same_tick(self, config, make_connection, recv):
        """Test that a line read in a tick is delivered by that same tick."""
        server = ChatServer(config)
        alice, alice_peer = join(server, make_connection, b"name:alice\n")
        server.tick()
        recv(alice_peer, timeout=0.1)

        alice_peer.sendall(b"hi\n")
        server.tick()

        assert recv(alice_peer, timeout=0.2) == b"alice: hi\n"
