"""Peer client: registers with the signaling server and punches UDP holes."""

from __future__ import annotations

import ipaddress
import socket
import threading
import time

from punchthrough.logger import NatConsoleLogger
from punchthrough.protocol import (
    Address,
    Discover,
    HolePunch,
    Message,
    PeerFound,
    ProtocolError,
    Register,
    RegisterOk,
    StartPunch,
    StartPunchWithPeer,
    decode,
    format_addr,
    parse_addr,
)

PEER_KEY = "peer"
FALLBACK_PEER_ADDR: Address = ("127.0.0.1", 1234)
PUNCH_COUNT = 10
PUNCH_INTERVAL = 0.05
_BUFFER_SIZE = 1024
_RECV_TIMEOUT = 0.1


def _normalise(addr: tuple) -> Address:
    return (str(ipaddress.ip_address(addr[0])), addr[1])


def _now_ms() -> int:
    return time.time_ns() // 1_000_000


class Client:
    """A peer that talks to a signaling server and to other peers over one UDP socket."""

    def __init__(
        self,
        client_id: str,
        server_addr: Address | str,
        *,
        discovery_wait: float = 1.0,
        punch_wait: float = 8.0,
    ) -> None:
        self.id = client_id
        self.server_addr: Address = (
            parse_addr(server_addr) if isinstance(server_addr, str) else _normalise(server_addr)
        )
        self.discovery_wait = discovery_wait
        self.punch_wait = punch_wait
        self.external_addr: Address | None = None
        self.connected_peers: dict[str, Address] = {}
        self._peers_lock = threading.Lock()
        self._stop = threading.Event()
        self._listener: threading.Thread | None = None
        self._listener_logger: NatConsoleLogger | None = None

        self._socket = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
        try:
            self._socket.bind(("0.0.0.0", 0))
            self._socket.settimeout(_RECV_TIMEOUT)
        except OSError:
            self._socket.close()
            raise
        print(f"🔌 Client '{client_id}' created, local: {format_addr(self.local_addr)}")

        self.console_logger = NatConsoleLogger(self.local_addr)
        self.console_logger.print_address_table()

    @property
    def local_addr(self) -> Address:
        return _normalise(self._socket.getsockname())

    @property
    def listening(self) -> bool:
        """Whether the background listener is running."""
        return self._listener is not None and self._listener.is_alive()

    def __enter__(self) -> Client:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def close(self) -> None:
        """Stop the background listener and release the socket."""
        self._stop.set()
        if self._listener is not None:
            self._listener.join(timeout=5.0)
        self._socket.close()

    def register(self) -> None:
        """Register with the server and start listening in the background.

        Raises ``TimeoutError`` when no reply arrives, :class:`ProtocolError`
        when the reply is malformed and ``ConnectionError`` when it is not a
        registration confirmation.
        """
        self._send_to_server(Register(id=self.id, port=self.local_addr[1]))
        print("✅ Registration packet sent successfully")

        data, _ = self._socket.recvfrom(_BUFFER_SIZE)
        response = decode(data.decode("utf-8", errors="replace"))
        if not isinstance(response, RegisterOk):
            raise ConnectionError("Registration failed")

        self.external_addr = response.external_addr
        self.console_logger.set_external_addr(response.external_addr)
        print(f"✅ Registered! External address: {format_addr(response.external_addr)}")
        self.console_logger.print_address_table()
        self._start_background_listening()

    def connect_to_peer(self, peer_id: str) -> Address:
        """Ask the server to coordinate a hole punch and return the peer's address.

        When no connection has been recorded by the time the wait is over, a
        placeholder address is returned, as the attempt may still succeed.
        """
        print(f"🔍 Step 1: Discovering peer '{peer_id}'...")
        self._send_to_server(Discover(target=peer_id))
        time.sleep(self.discovery_wait)

        print("🔍 Step 2: Requesting hole punch coordination...")
        self._send_to_server(HolePunch(from_id=self.id, to_id=peer_id))
        print("✅ Step 2: Hole punch request sent")

        print("🔍 Step 3: Waiting for hole punch coordination...")
        print("   (Background listener will handle START_PEER message)")
        time.sleep(self.punch_wait)

        self.print_status_report()

        with self._peers_lock:
            peer_addr = self.connected_peers.get(PEER_KEY)
        if peer_addr is not None:
            print(
                f"✅ Hole punch successful! Connection established to {format_addr(peer_addr)}"
            )
            return peer_addr

        print("⚠️ Hole punch status uncertain, but proceeding...")
        return FALLBACK_PEER_ADDR

    def send_message(self, peer_addr: Address, message: str) -> None:
        """Send a direct message to a peer."""
        self._socket.sendto(f"MSG:{message}".encode("utf-8"), peer_addr)
        self.log_message_sent(PEER_KEY, message)
        self.console_logger.print_live_update(PEER_KEY)
        print(f"📤 Sent message to {format_addr(peer_addr)}: {message}")

    def listen_for_messages(self) -> None:
        """Messages are handled by the background listener; this only says so."""
        print("Already listening in background. Messages will appear automatically.")

    def get_connected_peers(self) -> list[Address]:
        with self._peers_lock:
            return list(self.connected_peers.values())

    def has_connections(self) -> bool:
        with self._peers_lock:
            return bool(self.connected_peers)

    def log_peer_discovered(self, peer_id: str, peer_addr: Address | None) -> None:
        self.console_logger.log_peer_discovery(peer_id, peer_addr)

    def log_hole_punch_attempt(self, peer_id: str) -> None:
        self.console_logger.log_hole_punch_attempt(peer_id)

    def log_hole_punch_result(
        self, peer_id: str, success: bool, latency_ms: int | None
    ) -> None:
        if success:
            if latency_ms is not None:
                self.console_logger.log_hole_punch_success(peer_id, latency_ms)
        else:
            self.console_logger.log_hole_punch_failure(peer_id)

    def log_message_sent(self, peer_id: str, message: str) -> None:
        self.console_logger.log_direct_message_sent(peer_id, message)

    def log_message_received(self, peer_id: str, message: str, sender_addr: Address) -> None:
        self.console_logger.log_direct_message_received(peer_id, message, sender_addr)

    def print_status_report(self) -> None:
        self.console_logger.print_full_report()

    def print_detailed_report(self) -> None:
        separator = "=" * 80
        print(f"\n{separator}")
        print("                    NAT TRAVERSAL DETAILED REPORT")
        print(separator)
        self.console_logger.print_full_report()
        print(separator)

    def _send_to_server(self, msg: Message) -> None:
        self._socket.sendto(msg.encode().encode("utf-8"), self.server_addr)

    def _store_peer(self, addr: Address) -> None:
        with self._peers_lock:
            self.connected_peers[PEER_KEY] = addr

    def _start_background_listening(self) -> None:
        if self._listener is not None:
            return
        logger = NatConsoleLogger(self.local_addr)
        if self.external_addr is not None:
            logger.set_external_addr(self.external_addr)
        self._listener_logger = logger
        self._listener = threading.Thread(
            target=self._listen, name=f"listener-{self.id}", daemon=True
        )
        self._listener.start()

    def _listen(self) -> None:
        cid = self.id
        print(f"🔊 Background listener started for {cid}")
        while not self._stop.is_set():
            try:
                data, raw_sender = self._socket.recvfrom(_BUFFER_SIZE)
            except (TimeoutError, BlockingIOError, InterruptedError):
                continue
            except OSError as exc:
                if not self._stop.is_set():
                    print(f"❌ [{cid}] Background listener error: {exc}")
                break

            sender = _normalise(raw_sender)
            text = data.decode("utf-8", errors="replace")
            print(
                f"\n🔍 [{cid}] DEBUG: Received {len(data)} bytes from "
                f"{format_addr(sender)}: '{text}'"
            )
            if sender[1] == self.server_addr[1]:
                print(f"📡 [{cid}] This is from signaling server")
                self._handle_server_datagram(text, data)
            else:
                print(f"🤝 [{cid}] This is P2P traffic from {format_addr(sender)}")
                self._handle_peer_datagram(text, sender)
            print(f"\n{cid} > ", end="", flush=True)
        print(f"🔇 Background listener stopped for {cid}")

    def _handle_server_datagram(self, text: str, data: bytes) -> None:
        cid = self.id
        try:
            msg = decode(text)
        except ProtocolError as exc:
            print(f"❌ [{cid}] Failed to parse server message '{text}': {exc}")
            print(f"🔍 [{cid}] Raw bytes: {list(data)}")
            return
        print(f"✅ [{cid}] Successfully parsed message: {msg!r}")

        logger = self._listener_logger
        assert logger is not None
        if isinstance(msg, StartPunchWithPeer):
            self._punch(msg.peer_addr, msg.timestamp, logger)
        elif isinstance(msg, StartPunch):
            print(f"🚀 [{cid}] Received OLD FORMAT hole punch (no peer address)")
        elif isinstance(msg, PeerFound):
            logger.log_peer_discovery(msg.id, msg.addr)
            print(f"🔍 [{cid}] Peer discovery result: {msg.id} at {format_addr(msg.addr)}")
        else:
            print(f"🔍 [{cid}] Other server message: {msg!r}")

    def _punch(self, peer_addr: Address, timestamp: int, logger: NatConsoleLogger) -> None:
        cid = self.id
        shown = format_addr(peer_addr)
        print(f"\n🚀 [{cid}] HOLE PUNCH COORDINATION RECEIVED!")
        print(f"🎯 [{cid}] Target: {shown}, Timestamp: {timestamp}")
        logger.log_peer_discovery(PEER_KEY, peer_addr)

        now = _now_ms()
        print(f"⏰ [{cid}] Now: {now}, Start: {timestamp}")
        if timestamp > now:
            delay = timestamp - now
            print(f"⏳ [{cid}] Waiting {delay} ms before starting...")
            if self._stop.wait(delay / 1000):
                return

        print(f"🕳️ [{cid}] STARTING HOLE PUNCH SEQUENCE TO {shown}")
        for attempt in range(PUNCH_COUNT):
            logger.log_hole_punch_attempt(PEER_KEY)
            try:
                self._socket.sendto(f"PUNCH:{attempt}".encode("utf-8"), peer_addr)
            except OSError as exc:
                logger.log_hole_punch_failure(PEER_KEY)
                print(f"❌ [{cid}] Hole punch {attempt} failed: {exc}")
            else:
                print(f"🕳️ [{cid}] Sent hole punch {attempt} to {shown}")
            if self._stop.wait(PUNCH_INTERVAL):
                return

        self._store_peer(peer_addr)
        print(f"✅ [{cid}] Hole punch sequence completed to {shown}")
        print(f"🎉 [{cid}] Ready to send/receive messages!")

    def _handle_peer_datagram(self, text: str, sender: Address) -> None:
        cid = self.id
        shown = format_addr(sender)
        logger = self._listener_logger
        assert logger is not None

        if text.startswith("MSG:"):
            message = text[4:]
            print(f"\n📥 [{cid}] Received message from {shown}: {message}")
            logger.log_direct_message_received(PEER_KEY, message, sender)
            logger.print_live_update(PEER_KEY)
        elif text.startswith("PUNCH:"):
            print(f"\n🕳️ [{cid}] Received hole punch from {shown}: {text}")
            try:
                self._socket.sendto(f"PUNCH_ACK:{cid}".encode("utf-8"), sender)
            except OSError as exc:
                print(f"❌ [{cid}] Failed to send punch ACK: {exc}")
            else:
                print(f"🤝 [{cid}] Sent punch ACK to {shown}")
                logger.log_hole_punch_success(PEER_KEY, 50)
            self._store_peer(sender)
            print(f"🔗 [{cid}] PUNCH-CONNECTED: Stored connection to {shown}")
        elif text.startswith("PUNCH_ACK:"):
            print(f"\n🤝 [{cid}] Received punch ACK from {shown}: {text}")
            logger.log_hole_punch_success(PEER_KEY, 100)
            self._store_peer(sender)
            print(f"🔗 [{cid}] ACK-CONNECTED: Stored connection to {shown}")
            print("🎉 DIRECT P2P CONNECTION ESTABLISHED!")
            logger.print_live_update(PEER_KEY)
        else:
            print(f"\n🔍 [{cid}] Unknown P2P message from {shown}: {text}")