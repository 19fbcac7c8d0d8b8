"""Wire format of the signaling protocol.

Every message is a short UTF-8 string.  Most messages use ``:`` as the field
separator; the peer-carrying start message uses ``|`` so that IPv6 addresses
survive intact.  Socket addresses are ``(host, port)`` tuples.
"""

from __future__ import annotations

import ipaddress
import re
from dataclasses import dataclass
from typing import Union

Address = tuple[str, int]

_U16_MAX = 0xFFFF
_U64_MAX = 0xFFFF_FFFF_FFFF_FFFF
_UNSIGNED = re.compile(r"\+?[0-9]+\Z")


class ProtocolError(ValueError):
    """Raised when a message or an address cannot be decoded."""


def _parse_unsigned(text: str, limit: int, error: str) -> int:
    if not _UNSIGNED.match(text):
        raise ProtocolError(error)
    value = int(text)
    if value > limit:
        raise ProtocolError(error)
    return value


def parse_addr(text: str) -> Address:
    """Parse ``a.b.c.d:port`` or ``[ipv6]:port`` into a ``(host, port)`` tuple."""
    if text.startswith("["):
        host, sep, port = text[1:].partition("]:")
        if not sep or "%" in host:
            raise ProtocolError(f"invalid socket address: {text!r}")
        try:
            ip: ipaddress.IPv4Address | ipaddress.IPv6Address = ipaddress.IPv6Address(host)
        except ValueError as exc:
            raise ProtocolError(f"invalid socket address: {text!r}") from exc
    else:
        host, sep, port = text.rpartition(":")
        if not sep:
            raise ProtocolError(f"invalid socket address: {text!r}")
        try:
            ip = ipaddress.IPv4Address(host)
        except ValueError as exc:
            raise ProtocolError(f"invalid socket address: {text!r}") from exc
    if not (port.isascii() and port.isdigit()) or int(port) > _U16_MAX:
        raise ProtocolError(f"invalid socket address: {text!r}")
    return (str(ip), int(port))


def format_addr(addr: Address) -> str:
    """Render a ``(host, port)`` tuple, bracketing IPv6 hosts."""
    host, port = addr[0], addr[1]
    ip = ipaddress.ip_address(host)
    if ip.version == 6:
        return f"[{ip}]:{port}"
    return f"{ip}:{port}"


@dataclass(frozen=True)
class Register:
    """A client announces its id and local port."""

    id: str
    port: int

    def encode(self) -> str:
        return f"REG:{self.id}:{self.port}"


@dataclass(frozen=True)
class RegisterOk:
    """The server confirms registration with the observed external address."""

    external_addr: Address

    def encode(self) -> str:
        return f"OK:{format_addr(self.external_addr)}"


@dataclass(frozen=True)
class Discover:
    """A client asks where a peer is."""

    target: str

    def encode(self) -> str:
        return f"FIND:{self.target}"


@dataclass(frozen=True)
class PeerFound:
    """The server answers a discovery with the peer's address."""

    id: str
    addr: Address

    def encode(self) -> str:
        return f"PEER:{self.id}:{format_addr(self.addr)}"


@dataclass(frozen=True)
class PeerNotFound:
    """The server knows no peer of that id."""

    id: str

    def encode(self) -> str:
        return f"NOPE:{self.id}"


@dataclass(frozen=True)
class HolePunch:
    """A client asks the server to coordinate a hole punch with a peer."""

    from_id: str
    to_id: str

    def encode(self) -> str:
        return f"PUNCH:{self.from_id}:{self.to_id}"


@dataclass(frozen=True)
class StartPunch:
    """Start punching at a given Unix time in milliseconds (no peer address)."""

    timestamp: int

    def encode(self) -> str:
        return f"START:{self.timestamp}"


@dataclass(frozen=True)
class StartPunchWithPeer:
    """Start punching towards ``peer_addr`` at a Unix time in milliseconds."""

    timestamp: int
    peer_addr: Address

    def encode(self) -> str:
        return f"START_PEER|{format_addr(self.peer_addr)}|{self.timestamp}"


Message = Union[
    Register,
    RegisterOk,
    Discover,
    PeerFound,
    PeerNotFound,
    HolePunch,
    StartPunch,
    StartPunchWithPeer,
]


def _addr_or(text: str, error: str) -> Address:
    try:
        return parse_addr(text)
    except ProtocolError as exc:
        raise ProtocolError(error) from exc


def decode(text: str) -> Message:
    """Decode one message, raising :class:`ProtocolError` when it is malformed."""
    if text.startswith("START_PEER|"):
        parts = text.split("|")
        if len(parts) != 3:
            raise ProtocolError("Invalid START_PEER format")
        peer_addr = _addr_or(parts[1], "Invalid peer address")
        timestamp = _parse_unsigned(parts[2], _U64_MAX, "Invalid timestamp")
        return StartPunchWithPeer(timestamp=timestamp, peer_addr=peer_addr)

    parts = text.split(":")
    if len(parts) < 2:
        raise ProtocolError("Invalid message format")

    kind, count = parts[0], len(parts)
    if kind == "REG" and count == 3:
        return Register(id=parts[1], port=_parse_unsigned(parts[2], _U16_MAX, "Invalid port"))
    if kind == "OK":
        return RegisterOk(external_addr=_addr_or(":".join(parts[1:]), "Invalid address"))
    if kind == "FIND":
        return Discover(target=parts[1])
    if kind == "PEER" and count >= 3:
        return PeerFound(id=parts[1], addr=_addr_or(":".join(parts[2:]), "Invalid peer address"))
    if kind == "NOPE":
        return PeerNotFound(id=parts[1])
    if kind == "PUNCH" and count == 3:
        return HolePunch(from_id=parts[1], to_id=parts[2])
    if kind == "START":
        return StartPunch(timestamp=_parse_unsigned(parts[1], _U64_MAX, "Invalid timestamp"))
    raise ProtocolError("Unknown message type")