"""
Unit tests for outbound broadcast.
"""

import dataclasses

import pytest

from chatserver.chat.broadcaster import OutboundBroadcaster
from chatserver.chat.liveness import LivenessDetector
from chatserver.chat.registry import ClientRole


@pytest.fixture
def broadcaster(config) -> OutboundBroadcaster:
    return OutboundBroadcaster(config)


def register(registry, make_connection, name=None, role=ClientRole.MESSENGER):
    conn, peer = make_connection()
    conn.activate(send_timeout=1.0)
    return registry.register(conn, name, role), peer


class TestOutboundBroadcaster:
    """Tests for flushing the queue to every client."""

    def test_everyone_receives_in_queue_order(self, broadcaster, registry, queue, make_connection, recv):
        """Test that all clients get all messages, in enqueue order."""
        alice, alice_peer = register(registry, make_connection, "alice")
        _, bob_peer = register(registry, make_connection, "bob")
        _, viewer_peer = register(registry, make_connection, role=ClientRole.VIEWER)
        queue.put("bob has entered the chat.")
        queue.put("alice: hi", sender=alice)

        delivered = broadcaster.broadcast(registry, queue)

        expected = b"bob has entered the chat.\nalice: hi\n"
        assert delivered == 6
        assert recv(alice_peer, timeout=0.2) == expected
        assert recv(bob_peer, timeout=0.2) == expected
        assert recv(viewer_peer, timeout=0.2) == expected

    def test_queue_cleared(self, broadcaster, registry, queue, make_connection):
        """Test that the queue is empty after a broadcast."""
        register(registry, make_connection, "alice")
        queue.put("one")
        queue.put("two")

        broadcaster.broadcast(registry, queue)

        assert len(queue) == 0

    def test_queue_cleared_with_no_clients(self, broadcaster, registry, queue):
        """Test that messages are dropped, not kept, when nobody is listening."""
        queue.put("anyone?")

        assert broadcaster.broadcast(registry, queue) == 0
        assert len(queue) == 0

    def test_no_echo_skips_sender(self, config, registry, queue, make_connection, recv):
        """Test echo_to_sender=False."""
        broadcaster = OutboundBroadcaster(dataclasses.replace(config, echo_to_sender=False))
        alice, alice_peer = register(registry, make_connection, "alice")
        _, bob_peer = register(registry, make_connection, "bob")
        queue.put("alice: hi", sender=alice)

        broadcaster.broadcast(registry, queue)

        assert recv(alice_peer, timeout=0.1) == b""
        assert recv(bob_peer, timeout=0.2) == b"alice: hi\n"

    def test_custom_terminator(self, config, registry, queue, make_connection, recv):
        """Test an empty terminator sends the bare text."""
        broadcaster = OutboundBroadcaster(dataclasses.replace(config, message_terminator=""))
        _, peer = register(registry, make_connection, "alice")
        queue.put("plain")

        broadcaster.broadcast(registry, queue)

        assert recv(peer, timeout=0.2) == b"plain"

    def test_write_failure_isolated(self, broadcaster, registry, queue, make_connection, recv):
        """Test that one broken client does not stop delivery to the rest."""
        _, alice_peer = register(registry, make_connection, "alice")
        bob, bob_peer = register(registry, make_connection, "bob")
        _, carol_peer = register(registry, make_connection, "carol")
        bob_peer.close()
        queue.put("first")
        queue.put("second")

        broadcaster.broadcast(registry, queue)

        assert recv(alice_peer, timeout=0.2) == b"first\nsecond\n"
        assert recv(carol_peer, timeout=0.2) == b"first\nsecond\n"
        assert bob.connection.faulted
        # Not torn down here; pruning is the liveness step's job.
        assert bob in registry
        assert not bob.connection.is_closed

    def test_failed_client_pruned_next(self, config, broadcaster, registry, queue, make_connection):
        """Test that the client whose write failed is removed by the next liveness check."""
        register(registry, make_connection, "alice")
        bob, bob_peer = register(registry, make_connection, "bob")
        bob_peer.close()
        queue.put("hello")
        broadcaster.broadcast(registry, queue)

        removed = LivenessDetector(config).prune(registry, queue)

        assert removed == [bob]
        assert queue.texts() == ["bob has left the chat."]
