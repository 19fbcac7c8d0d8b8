"""UDP signaling server that registers clients and coordinates hole punches."""

from __future__ import annotations

import ipaddress
import socket
import sys
import time
from collections.abc import Sequence

from punchthrough.protocol import (
    Address,
    Discover,
    HolePunch,
    Message,
    PeerFound,
    PeerNotFound,
    ProtocolError,
    Register,
    RegisterOk,
    StartPunchWithPeer,
    decode,
)

DEFAULT_BIND = "0.0.0.0:9090"
PUNCH_DELAY_MS = 2000
_BUFFER_SIZE = 1024


def _open_socket(bind_addr: str) -> socket.socket:
    host, sep, port = bind_addr.rpartition(":")
    if not sep or not (port.isascii() and port.isdigit()):
        raise ValueError(f"invalid bind address: {bind_addr!r}")
    if host.startswith("[") and host.endswith("]"):
        host = host[1:-1]
    family, kind, proto, _, sockaddr = socket.getaddrinfo(
        host, int(port), type=socket.SOCK_DGRAM
    )[0]
    sock = socket.socket(family, kind, proto)
    try:
        sock.bind(sockaddr)
    except OSError:
        sock.close()
        raise
    return sock


def _normalise(addr: tuple) -> Address:
    return (str(ipaddress.ip_address(addr[0])), addr[1])


class SignalingServer:
    """Keeps a registry of client ids and their external addresses."""

    def __init__(self, bind_addr: str = DEFAULT_BIND) -> None:
        self._socket = _open_socket(bind_addr)
        self.clients: dict[str, Address] = {}
        print(f"📡 Server listening on {self.local_addr[0]}:{self.local_addr[1]}")

    @property
    def local_addr(self) -> Address:
        return _normalise(self._socket.getsockname())

    def __enter__(self) -> SignalingServer:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def close(self) -> None:
        """Release the server socket."""
        self._socket.close()

    def run(self) -> None:
        """Serve requests until the socket fails or the process is interrupted."""
        while True:
            self.serve_once()

    def serve_once(self) -> Message | None:
        """Receive and handle one datagram; return the decoded message, if any."""
        data, sender = self._socket.recvfrom(_BUFFER_SIZE)
        text = data.decode("utf-8", errors="replace")
        try:
            msg = decode(text)
        except ProtocolError as exc:
            print(f"❌ Parse error: {exc}")
            return None
        self.handle_message(msg, _normalise(sender))
        return msg

    def handle_message(self, msg: Message, addr: Address) -> None:
        """Act on one decoded message received from ``addr``."""
        if isinstance(msg, Register):
            external_addr = (addr[0], msg.port)
            self.clients[msg.id] = external_addr
            self._send(RegisterOk(external_addr), addr)
            print(f"✅ Registered {msg.id} at {external_addr[0]}:{external_addr[1]}")
        elif isinstance(msg, Discover):
            peer_addr = self.clients.get(msg.target)
            if peer_addr is not None:
                self._send(PeerFound(msg.target, peer_addr), addr)
            else:
                self._send(PeerNotFound(msg.target), addr)
        elif isinstance(msg, HolePunch):
            from_addr = self.clients.get(msg.from_id)
            to_addr = self.clients.get(msg.to_id)
            if from_addr is None or to_addr is None:
                print("❌ Cannot coordinate hole punch: missing client addresses")
                return
            timestamp = time.time_ns() // 1_000_000 + PUNCH_DELAY_MS
            self._send(StartPunchWithPeer(timestamp, to_addr), from_addr)
            self._send(StartPunchWithPeer(timestamp, from_addr), to_addr)
            print(
                f"🕳️  Coordinating hole punch: {msg.from_id} ({from_addr[0]}:{from_addr[1]})"
                f" ↔ {msg.to_id} ({to_addr[0]}:{to_addr[1]})"
            )

    def _send(self, msg: Message, addr: Address) -> None:
        data = msg.encode()
        self._socket.sendto(data.encode("utf-8"), addr)
        print(f"📤 Sent to {addr[0]}:{addr[1]}: {data}")


def main(argv: Sequence[str] | None = None) -> int:
    """Start a signaling server on the address given as first argument."""
    args = list(sys.argv[1:] if argv is None else argv)
    print("Simple NAT Traversal - Signaling Server")
    print("==========================================")

    bind_addr = args[0] if args else DEFAULT_BIND
    print(f"Starting signaling server on {bind_addr}")

    try:
        server = SignalingServer(bind_addr)
    except (OSError, ValueError) as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1

    print("✅ Signaling server ready!")
    print("   Clients can register and discover peers")
    print("   Press Ctrl+C to stop")
    print()

    with server:
        try:
            server.run()
        except KeyboardInterrupt:
            return 0
        except OSError as exc:
            print(f"Error: {exc}", file=sys.stderr)
            return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())