import socket
import threading
import time

import pytest

from punchthrough.client import FALLBACK_PEER_ADDR, Client
from punchthrough.protocol import ProtocolError
from punchthrough.server import SignalingServer


def _wait_for(predicate, timeout=3.0):
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(0.02)
    return predicate()


@pytest.fixture
def server():
    srv = SignalingServer("127.0.0.1:0")

    def serve():
        try:
            srv.run()
        except OSError:
            pass

    threading.Thread(target=serve, daemon=True).start()
    yield srv
    srv.close()


@pytest.fixture
def make_client():
    created = []

    def factory(client_id, server_addr, **kwargs):
        client = Client(client_id, server_addr, **kwargs)
        created.append(client)
        return client

    yield factory
    for client in created:
        client.close()


@pytest.fixture
def raw_socket():
    sock = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
    sock.bind(("127.0.0.1", 0))
    sock.settimeout(2.0)
    yield sock
    sock.close()


def test_server_addr_accepts_text(make_client):
    client = make_client("alice", "127.0.0.1:9090")
    assert client.server_addr == ("127.0.0.1", 9090)
    assert client.external_addr is None
    assert client.console_logger.local_addr == client.local_addr


def test_register_records_external_address(server, make_client):
    alice = make_client("alice", server.local_addr)
    alice.register()
    expected = ("127.0.0.1", alice.local_addr[1])
    assert alice.external_addr == expected
    assert alice.console_logger.external_addr == expected
    assert server.clients["alice"] == expected
    assert alice.listening


def test_register_times_out_without_server(make_client, raw_socket):
    client = make_client("alice", raw_socket.getsockname())
    with pytest.raises(TimeoutError):
        client.register()
    assert client.external_addr is None


def test_register_rejects_other_reply(make_client, raw_socket):
    client = make_client("alice", raw_socket.getsockname())
    raw_socket.sendto(b"NOPE:alice", ("127.0.0.1", client.local_addr[1]))
    time.sleep(0.05)
    with pytest.raises(ConnectionError, match="Registration failed"):
        client.register()
    assert not client.listening


def test_register_rejects_malformed_reply(make_client, raw_socket):
    client = make_client("alice", raw_socket.getsockname())
    raw_socket.sendto(b"garbage", ("127.0.0.1", client.local_addr[1]))
    time.sleep(0.05)
    with pytest.raises(ProtocolError):
        client.register()


def test_alice_and_bob_connect(server, make_client):
    alice = make_client("alice", server.local_addr, discovery_wait=0.1, punch_wait=4.0)
    bob = make_client("bob", server.local_addr, discovery_wait=0.1, punch_wait=4.0)
    alice.register()
    bob.register()

    bob_addr = alice.connect_to_peer("bob")
    assert bob_addr == ("127.0.0.1", bob.local_addr[1])
    assert alice.has_connections()
    assert alice.get_connected_peers() == [bob_addr]

    assert _wait_for(bob.has_connections)
    assert bob.get_connected_peers() == [("127.0.0.1", alice.local_addr[1])]


def test_unknown_peer_returns_fallback(server, make_client):
    alice = make_client("alice", server.local_addr, discovery_wait=0.05, punch_wait=0.2)
    alice.register()
    assert alice.connect_to_peer("charlie") == FALLBACK_PEER_ADDR
    assert not alice.has_connections()
    assert alice.get_connected_peers() == []


def test_send_message_reaches_peer(make_client, raw_socket):
    client = make_client("alice", "127.0.0.1:9090")
    client.log_peer_discovered("peer", raw_socket.getsockname())
    client.send_message(raw_socket.getsockname(), "hello there")
    data, _ = raw_socket.recvfrom(1024)
    assert data == b"MSG:hello there"
    assert client.console_logger.stats["peer"].direct_messages_sent == 1


def test_incoming_punch_is_acknowledged(server, make_client, raw_socket):
    alice = make_client("alice", server.local_addr)
    alice.register()
    raw_socket.sendto(b"PUNCH:0", ("127.0.0.1", alice.local_addr[1]))
    data, _ = raw_socket.recvfrom(1024)
    assert data == b"PUNCH_ACK:alice"
    assert _wait_for(alice.has_connections)
    assert alice.get_connected_peers() == [raw_socket.getsockname()]


def test_incoming_ack_stores_peer(server, make_client, raw_socket):
    alice = make_client("alice", server.local_addr)
    alice.register()
    raw_socket.sendto(b"PUNCH_ACK:bob", ("127.0.0.1", alice.local_addr[1]))
    assert _wait_for(alice.has_connections)
    assert alice.connected_peers == {"peer": raw_socket.getsockname()}


def test_incoming_message_is_reported(server, make_client, raw_socket, capsys):
    alice = make_client("alice", server.local_addr)
    alice.register()
    capsys.readouterr()
    raw_socket.sendto(b"MSG:hi alice", ("127.0.0.1", alice.local_addr[1]))
    seen = []

    def received():
        seen.append(capsys.readouterr().out)
        return "Received message from" in "".join(seen)

    assert _wait_for(received)
    assert "hi alice" in "".join(seen)
    assert not alice.has_connections()


def test_hole_punch_result_logging(make_client):
    client = make_client("alice", "127.0.0.1:9090")
    client.log_peer_discovered("bob", ("192.168.2.10", 5000))
    client.log_hole_punch_attempt("bob")
    client.log_hole_punch_result("bob", True, 150)
    stats = client.console_logger.stats["bob"]
    assert stats.hole_punch_attempts == 1
    assert stats.successful_hole_punches == 1
    assert stats.total_latency_ms == 150
    assert stats.traversal_success

    client.log_hole_punch_result("bob", True, None)
    assert stats.successful_hole_punches == 1

    client.log_hole_punch_result("bob", False, None)
    assert stats.error_count == 1


def test_message_logging_counts(make_client):
    client = make_client("alice", "127.0.0.1:9090")
    client.log_peer_discovered("bob", None)
    client.log_message_sent("bob", "one")
    client.log_message_received("bob", "two", ("192.168.2.10", 5000))
    client.log_message_received("bob", "three", ("192.168.2.10", 5000))
    stats = client.console_logger.stats["bob"]
    assert stats.direct_messages_sent == 1
    assert stats.direct_messages_received == 2


def test_reports_are_printed(make_client, capsys):
    client = make_client("alice", "127.0.0.1:9090")
    capsys.readouterr()
    client.print_detailed_report()
    out = capsys.readouterr().out
    assert "NAT TRAVERSAL DETAILED REPORT" in out
    assert "=" * 80 in out
    assert "No successful NAT traversals yet" in out

    client.print_status_report()
    assert "Address Information" in capsys.readouterr().out


def test_listen_for_messages_explains(make_client, capsys):
    client = make_client("alice", "127.0.0.1:9090")
    capsys.readouterr()
    client.listen_for_messages()
    assert "Already listening in background" in capsys.readouterr().out


def test_close_stops_listener(server, make_client):
    alice = make_client("alice", server.local_addr)
    alice.register()
    assert alice.listening
    alice.close()
    assert not alice.listening