import pytest

from punchthrough.logger import (
    ConnectionState,
    NatConsoleLogger,
    pad_string,
    truncate_string,
)

LOCAL = ("192.168.1.10", 5000)


@pytest.fixture
def logger():
    return NatConsoleLogger(LOCAL)


def _row_for(out, peer_id):
    for line in out.splitlines():
        if line.startswith(f"│ {peer_id} "):
            return line
    raise AssertionError(f"no row for {peer_id}")


def test_console_logger_creation(logger):
    assert logger.local_addr == LOCAL
    assert logger.external_addr is None
    assert logger.stats == {}


def test_peer_discovery_logging(logger):
    peer_addr = ("192.168.2.10", 5000)
    logger.log_peer_discovery("alice", peer_addr)
    assert "alice" in logger.stats
    assert logger.stats["alice"].peer_addr == peer_addr
    assert logger.stats["alice"].connection_state is ConnectionState.DISCOVERING


def test_hole_punch_tracking(logger):
    logger.log_peer_discovery("bob", None)
    logger.log_hole_punch_attempt("bob")
    logger.log_hole_punch_success("bob", 150)
    stats = logger.stats["bob"]
    assert stats.hole_punch_attempts == 1
    assert stats.successful_hole_punches == 1
    assert stats.total_latency_ms == 150
    assert stats.traversal_success
    assert stats.connection_state is ConnectionState.CONNECTED
    assert stats.last_attempt_time is not None and stats.last_attempt_time >= logger.start_time


def test_unknown_peer_is_ignored(logger, capsys):
    logger.log_hole_punch_attempt("ghost")
    logger.log_hole_punch_success("ghost", 10)
    logger.log_direct_message_sent("ghost", "hi")
    assert logger.stats == {}
    assert "#0 to peer: ghost" in capsys.readouterr().out


def test_failure_counts_errors(logger):
    logger.log_peer_discovery("charlie", ("192.168.3.10", 5000))
    logger.log_hole_punch_attempt("charlie")
    logger.log_hole_punch_failure("charlie")
    logger.log_connection_failed("charlie", "timeout")
    stats = logger.stats["charlie"]
    assert stats.error_count == 2
    assert stats.connection_state is ConnectionState.FAILED
    assert not stats.traversal_success


def test_rediscovery_keeps_counters(logger):
    logger.log_peer_discovery("dave", None)
    logger.log_hole_punch_attempt("dave")
    logger.log_hole_punch_attempt("dave")
    new_addr = ("192.168.4.15", 5001)
    logger.log_peer_discovery("dave", new_addr)
    stats = logger.stats["dave"]
    assert stats.hole_punch_attempts == 2
    assert stats.peer_addr == new_addr
    assert stats.connection_state is ConnectionState.DISCOVERING


def test_message_counters(logger):
    grace = ("10.0.0.100", 5000)
    logger.log_peer_discovery("grace", grace)
    for i in range(1, 6):
        logger.log_direct_message_sent("grace", f"Message {i} to Grace")
        logger.log_direct_message_received("grace", f"Grace reply {i}", grace)
    stats = logger.stats["grace"]
    assert stats.direct_messages_sent == 5
    assert stats.direct_messages_received == 5


def test_state_labels(logger, capsys):
    logger.log_peer_discovery("disc", None)
    logger.log_peer_discovery("punch", None)
    logger.log_hole_punch_attempt("punch")
    logger.log_peer_discovery("conn", None)
    logger.log_hole_punch_attempt("conn")
    logger.log_hole_punch_success("conn", 10)
    logger.log_peer_discovery("fail", None)
    logger.log_hole_punch_attempt("fail")
    logger.log_hole_punch_failure("fail")
    capsys.readouterr()
    logger.print_traversal_table()
    out = capsys.readouterr().out
    assert "│ DISC    │" in _row_for(out, "disc")
    assert "│ PUNCH   │" in _row_for(out, "punch")
    assert "│ CONN    │" in _row_for(out, "conn")
    assert "│ FAIL    │" in _row_for(out, "fail")
    assert str(ConnectionState.DISCONNECTED) == "DISC"
    assert ConnectionState.DISCONNECTED is not ConnectionState.DISCOVERING


@pytest.mark.parametrize("text", ["", "bob", "exactly14chars"])
def test_truncate_short_unchanged(text):
    assert truncate_string(text, 14) == text


@pytest.mark.parametrize("width", [5, 8, 14, 20])
def test_truncate_long(width):
    text = "a-rather-long-peer-identifier"
    result = truncate_string(text, width)
    assert len(result) == width
    assert result.endswith("...")
    assert text.startswith(result[:-3])


@pytest.mark.parametrize("text", ["", "x", "seven77", "much-longer-than-seven"])
def test_pad_string_fixed_width(text):
    result = pad_string(text, 7)
    assert len(result) == 7
    if len(text) <= 7:
        assert result.rstrip() == text.rstrip()


def test_address_table(logger, capsys):
    logger.print_address_table()
    out = capsys.readouterr().out
    assert "192.168.1.10:5000" in out
    assert "Not yet discovered" in out

    logger.set_external_addr(("203.0.113.45", 5000))
    logger.print_address_table()
    out = capsys.readouterr().out
    assert "203.0.113.45:5000" in out
    assert "Not yet discovered" not in out


def test_traversal_table_empty(logger, capsys):
    logger.print_traversal_table()
    assert capsys.readouterr().out == ""


def test_traversal_table_rows(logger, capsys):
    logger.log_peer_discovery("zed", None)
    logger.log_peer_discovery("bob", ("192.168.2.10", 5000))
    logger.log_hole_punch_attempt("bob")
    logger.log_hole_punch_success("bob", 150)
    capsys.readouterr()
    logger.print_traversal_table()
    out = capsys.readouterr().out
    assert "NAT Traversal Results (peers: 2)" in out
    assert "N/A" in out
    assert "Unknown" in out
    assert "150ms" in out
    assert "SUMMARY: 2 total peers" in out
    assert out.index("│ bob") < out.index("│ zed")


def test_message_table_only_connected(logger, capsys):
    logger.log_peer_discovery("bob", ("192.168.2.10", 5000))
    logger.log_hole_punch_attempt("bob")
    logger.log_hole_punch_success("bob", 145)
    logger.log_peer_discovery("eve", ("192.168.5.20", 5002))
    logger.log_hole_punch_attempt("eve")
    capsys.readouterr()
    logger.print_message_table()
    out = capsys.readouterr().out
    assert "Direct P2P Message Statistics" in out
    assert "bob" in out
    assert "eve" not in out


def test_message_table_empty_without_connections(logger, capsys):
    logger.log_peer_discovery("eve", None)
    capsys.readouterr()
    logger.print_message_table()
    assert capsys.readouterr().out == ""


def test_full_report_without_success(logger, capsys):
    logger.print_full_report()
    out = capsys.readouterr().out
    assert "No successful NAT traversals yet" in out


def test_full_report_with_success(logger, capsys):
    logger.log_peer_discovery("bob", ("192.168.2.10", 5000))
    logger.log_hole_punch_attempt("bob")
    logger.log_hole_punch_success("bob", 145)
    capsys.readouterr()
    logger.print_full_report()
    out = capsys.readouterr().out
    assert "NAT Traversal successful for" in out
    assert "No successful NAT traversals yet" not in out


def test_live_update(logger, capsys):
    logger.print_live_update("nobody")
    assert capsys.readouterr().out == ""

    logger.log_peer_discovery("bob", ("192.168.2.10", 5000))
    logger.log_hole_punch_attempt("bob")
    logger.log_hole_punch_success("bob", 145)
    logger.log_direct_message_sent("bob", "Hello Bob!")
    capsys.readouterr()
    logger.print_live_update("bob")
    out = capsys.readouterr().out
    assert out.startswith("✅ bob")
    assert "attempts: 1" in out
    assert "success: 1" in out