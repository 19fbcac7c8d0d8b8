"""Console statistics for NAT traversal attempts, printed as tables."""

from __future__ import annotations

import enum
import time
from dataclasses import dataclass, field

from punchthrough.protocol import Address, format_addr


class ConnectionState(enum.Enum):
    """Where a peer connection stands."""

    DISCOVERING = "discovering"
    HOLE_PUNCHING = "hole_punching"
    CONNECTED = "connected"
    FAILED = "failed"
    DISCONNECTED = "disconnected"

    @property
    def label(self) -> str:
        """Short label used in tables."""
        return _LABELS[self]

    @property
    def icon(self) -> str:
        """Status marker used in live updates."""
        return _ICONS[self]

    def __str__(self) -> str:
        return self.label


_LABELS = {
    ConnectionState.DISCOVERING: "DISC",
    ConnectionState.HOLE_PUNCHING: "PUNCH",
    ConnectionState.CONNECTED: "CONN",
    ConnectionState.FAILED: "FAIL",
    ConnectionState.DISCONNECTED: "DISC",
}

_ICONS = {
    ConnectionState.DISCOVERING: "🔍",
    ConnectionState.HOLE_PUNCHING: "🕳️",
    ConnectionState.CONNECTED: "✅",
    ConnectionState.FAILED: "❌",
    ConnectionState.DISCONNECTED: "🔌",
}


@dataclass
class NatTraversalStats:
    """Counters kept for one peer."""

    local_addr: Address
    external_addr: Address | None
    peer_id: str
    peer_addr: Address | None
    hole_punch_attempts: int = 0
    successful_hole_punches: int = 0
    direct_messages_sent: int = 0
    direct_messages_received: int = 0
    traversal_success: bool = False
    last_attempt_time: float | None = None
    total_latency_ms: int = 0
    connection_state: ConnectionState = ConnectionState.DISCOVERING
    error_count: int = 0

    @property
    def peer_addr_text(self) -> str:
        return format_addr(self.peer_addr) if self.peer_addr is not None else "Unknown"


def truncate_string(s: str, max_len: int) -> str:
    """Cut ``s`` to ``max_len`` characters, ending in ``...`` when shortened."""
    if len(s) <= max_len:
        return s
    return s[: max_len - 3] + "..."


def pad_string(s: str, width: int) -> str:
    """Fit ``s`` to exactly ``width`` characters by padding or truncating."""
    if len(s) >= width:
        return truncate_string(s, width)
    return s.ljust(width)


@dataclass
class NatConsoleLogger:
    """Collects per-peer traversal statistics and prints them as tables."""

    local_addr: Address
    external_addr: Address | None = None
    stats: dict[str, NatTraversalStats] = field(default_factory=dict)
    start_time: float = field(default_factory=time.monotonic)

    def set_external_addr(self, external_addr: Address) -> None:
        self.external_addr = external_addr

    def log_peer_discovery(self, peer_id: str, peer_addr: Address | None) -> None:
        entry = self.stats.get(peer_id)
        if entry is None:
            entry = NatTraversalStats(
                local_addr=self.local_addr,
                external_addr=self.external_addr,
                peer_id=peer_id,
                peer_addr=peer_addr,
            )
            self.stats[peer_id] = entry
        entry.peer_addr = peer_addr
        entry.connection_state = ConnectionState.DISCOVERING
        shown = format_addr(peer_addr) if peer_addr is not None else "None"
        print(f"🔍 Discovered peer: {peer_id} at {shown}")

    def log_hole_punch_attempt(self, peer_id: str) -> None:
        entry = self.stats.get(peer_id)
        if entry is not None:
            entry.hole_punch_attempts += 1
            entry.last_attempt_time = time.monotonic()
            entry.connection_state = ConnectionState.HOLE_PUNCHING
        attempts = entry.hole_punch_attempts if entry is not None else 0
        print(f"🕳️  Hole punch attempt #{attempts} to peer: {peer_id}")

    def log_hole_punch_success(self, peer_id: str, latency_ms: int) -> None:
        entry = self.stats.get(peer_id)
        if entry is not None:
            entry.successful_hole_punches += 1
            entry.traversal_success = True
            entry.total_latency_ms += latency_ms
            entry.connection_state = ConnectionState.CONNECTED
        print(f"✅ Hole punch SUCCESS for peer: {peer_id} ({latency_ms}ms)")

    def log_hole_punch_failure(self, peer_id: str) -> None:
        entry = self.stats.get(peer_id)
        if entry is not None:
            entry.connection_state = ConnectionState.FAILED
            entry.error_count += 1
        print(f"❌ Hole punch FAILED for peer: {peer_id}")

    def log_direct_message_sent(self, peer_id: str, message: str) -> None:
        entry = self.stats.get(peer_id)
        if entry is not None:
            entry.direct_messages_sent += 1
        print(f"📤 Direct message sent to {peer_id}: {message}")

    def log_direct_message_received(
        self, peer_id: str, message: str, sender_addr: Address
    ) -> None:
        entry = self.stats.get(peer_id)
        if entry is not None:
            entry.direct_messages_received += 1
        print(f"📥 Direct message from {peer_id} ({format_addr(sender_addr)}): {message}")

    def log_connection_failed(self, peer_id: str, error: str) -> None:
        entry = self.stats.get(peer_id)
        if entry is not None:
            entry.connection_state = ConnectionState.FAILED
            entry.error_count += 1
        print(f"🔥 Connection failed to {peer_id}: {error}")

    def print_address_table(self) -> None:
        print("\n")
        self._print_section_header("Address Information")
        print("┌─────────────────┬─────────────────────────────┐")
        print("│ Address Type    │ Value                       │")
        print("├─────────────────┼─────────────────────────────┤")
        print(f"│ Local Address   │ {format_addr(self.local_addr):<27} │")
        external = (
            format_addr(self.external_addr)
            if self.external_addr is not None
            else "Not yet discovered"
        )
        print(f"│ External Address│ {external:<27} │")
        print("└─────────────────┴─────────────────────────────┘")

    def print_traversal_table(self) -> None:
        if not self.stats:
            return

        print("\n")
        self._print_section_header(f"NAT Traversal Results (peers: {len(self.stats)})")

        print("┌────────────────┬──────────────────────┬─────────┬─────────┬─────────┬─────────┬─────────┬───────────┬─────────┐")
        print(_traversal_row("Peer ID", "Peer Address", "State", "Hole", "Success",
                             "Msg Out", "Msg In", "Avg RTT", "Errors"))
        print(_traversal_row("", "", "", "Punches", "Rate", "", "", "", ""))
        print("├────────────────┼──────────────────────┼─────────┼─────────┼─────────┼─────────┼─────────┼───────────┼─────────┤")

        for peer_id, entry in sorted(self.stats.items()):
            if entry.hole_punch_attempts > 0:
                rate = entry.successful_hole_punches / entry.hole_punch_attempts * 100.0
                success_rate = f"{rate:.1f}%"
            else:
                success_rate = "N/A"

            if entry.successful_hole_punches > 0:
                avg_rtt = f"{entry.total_latency_ms // entry.successful_hole_punches}ms"
            else:
                avg_rtt = "N/A"

            print(
                _traversal_row(
                    pad_string(truncate_string(peer_id, 14), 14),
                    pad_string(truncate_string(entry.peer_addr_text, 20), 20),
                    pad_string(str(entry.connection_state), 7),
                    pad_string(str(entry.hole_punch_attempts), 7),
                    pad_string(success_rate, 7),
                    pad_string(str(entry.direct_messages_sent), 7),
                    pad_string(str(entry.direct_messages_received), 7),
                    pad_string(avg_rtt, 9),
                    pad_string(str(entry.error_count), 7),
                )
            )

        print("└────────────────┴──────────────────────┴─────────┴─────────┴─────────┴─────────┴─────────┴───────────┴─────────┘")
        self._print_summary_stats()

    def print_message_table(self) -> None:
        connected = [
            (peer_id, entry)
            for peer_id, entry in self.stats.items()
            if entry.connection_state is ConnectionState.CONNECTED
        ]
        if not connected:
            return

        print("\n")
        self._print_section_header("Direct P2P Message Statistics")
        print("┌────────────────┬──────────────────────┬─────────────┬─────────────┬─────────────┐")
        print("│ Peer ID        │ Peer Address         │ Msgs Sent  │ Msgs Recv  │ Total Msgs  │")
        print("├────────────────┼──────────────────────┼─────────────┼─────────────┼─────────────┤")
        for peer_id, entry in connected:
            total = entry.direct_messages_sent + entry.direct_messages_received
            print(
                f"│ {truncate_string(peer_id, 14):<14} "
                f"│ {truncate_string(entry.peer_addr_text, 20):<20} "
                f"│ {entry.direct_messages_sent:<11} "
                f"│ {entry.direct_messages_received:<11} "
                f"│ {total:<11} │"
            )
        print("└────────────────┴──────────────────────┴─────────────┴─────────────┴─────────────┘")

    def _print_summary_stats(self) -> None:
        entries = list(self.stats.values())
        total_attempts = sum(e.hole_punch_attempts for e in entries)
        total_successes = sum(e.successful_hole_punches for e in entries)
        total_messages = sum(
            e.direct_messages_sent + e.direct_messages_received for e in entries
        )
        success_rate = (
            total_successes / total_attempts * 100.0 if total_attempts > 0 else 0.0
        )
        elapsed_ms = int((time.monotonic() - self.start_time) * 1000)

        print("┌─────────────────────────────────────────────────────────────────────────────────────────────────────────────────┐")
        print(
            f"│ SUMMARY: {len(entries)} total peers | {success_rate:.1f}% hole punch success"
            f" | {total_messages} total messages | {elapsed_ms}ms elapsed │"
        )
        print("└─────────────────────────────────────────────────────────────────────────────────────────────────────────────────┘")

    @staticmethod
    def _print_section_header(title: str) -> None:
        border = "═" * (len(title) + 4)
        print(f"┌{border}┐")
        print(f"│ {title} │")
        print(f"└{border}┘")

    def print_full_report(self) -> None:
        self.print_address_table()
        self.print_traversal_table()
        self.print_message_table()

        successes = sum(1 for e in self.stats.values() if e.traversal_success)
        if successes:
            print(f"\n🎉 NAT Traversal successful for {successes} peer(s)!")
        else:
            print("\n❌ No successful NAT traversals yet. Check network configuration.")

    def print_live_update(self, peer_id: str) -> None:
        entry = self.stats.get(peer_id)
        if entry is None:
            return
        print(
            f"{entry.connection_state.icon} {truncate_string(peer_id, 12)} "
            f"│ attempts: {entry.hole_punch_attempts} "
            f"│ success: {entry.successful_hole_punches} "
            f"│ msgs: {entry.direct_messages_sent}↑/{entry.direct_messages_received}↓ │"
        )


def _traversal_row(*cells: str) -> str:
    widths = (14, 20, 7, 7, 7, 7, 7, 9, 7)
    return "│ " + " │ ".join(f"{cell:<{w}}" for cell, w in zip(cells, widths)) + " │"