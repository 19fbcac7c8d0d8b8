# punchthrough

Peer-to-peer UDP connections through NAT by hole punching. The package has two parts:

- a **signaling server** (`punchthrough.server.SignalingServer`). Clients register with it and look each other up. It also coordinates hole punches.
- an **interactive client** (`punchthrough.cli`, built on `punchthrough.client.Client`). It registers, punches a hole to a peer, sends direct messages and prints tables that summarise the NAT traversal.

The package uses only the standard library.

## Installation

```
pip install .
```

## Running the signaling server

```
punchthrough-server [bind_addr]
```

The default bind address is `0.0.0.0:9090`. Stop the server with Ctrl+C.

When the server gets a hole punch request for two registered clients, it sends each of them a `START_PEER` message. The message holds the other client's address and a start time two seconds in the future.

## Running a client

```
punchthrough-client <client_id> [server_addr]
```

Examples:

```
punchthrough-client alice
punchthrough-client bob 192.168.1.100:9090
```

If no server address is given, the client uses `127.0.0.1:9090`. After it registers, the client prints its local and external addresses and then reads commands:

| Command             | Effect                                           |
|---------------------|--------------------------------------------------|
| `connect <peer_id>` | Ask the server to coordinate a hole punch         |
| `send <message>`    | Send a direct P2P message to the connected peer   |
| `status`            | Show the current connection status                |
| `report`            | Show the detailed NAT traversal report            |
| `test <peer_id>`    | Connect, send three test messages, then report    |
| `monitor`           | Print ten live status updates, two seconds apart  |
| `help`              | List the commands                                 |
| `quit` / `exit`     | Print a final report and leave                    |

End of input acts like `quit`.

A background listener handles the datagrams that arrive. If a datagram comes from the same port as the signaling server, the listener treats it as signaling traffic. Any other datagram is treated as peer traffic.

## Wire protocol

All messages are short UTF-8 datagrams. `punchthrough.protocol` encodes them with each message's `encode()` method and parses them with `decode()`. `decode()` raises `ProtocolError` (a `ValueError`) when the text is malformed. Addresses are `(host, port)` tuples. `parse_addr()` and `format_addr()` convert between these tuples and text in the forms `a.b.c.d:port` and `[ipv6]:port`.

| Message              | Text                              |
|----------------------|-----------------------------------|
| `Register`           | `REG:<id>:<port>`                 |
| `RegisterOk`         | `OK:<addr>`                       |
| `Discover`           | `FIND:<target>`                   |
| `PeerFound`          | `PEER:<id>:<addr>`                |
| `PeerNotFound`       | `NOPE:<id>`                       |
| `HolePunch`          | `PUNCH:<from_id>:<to_id>`         |
| `StartPunch`         | `START:<timestamp>`               |
| `StartPunchWithPeer` | `START_PEER\|<addr>\|<timestamp>` |

Timestamps are Unix times in milliseconds.

```python
from punchthrough.protocol import PeerFound, decode

msg = decode("PEER:bob:192.168.2.10:5000")
assert msg == PeerFound(id="bob", addr=("192.168.2.10", 5000))
print(msg.encode())
```

Peers talk to each other directly with `PUNCH:<n>`, `PUNCH_ACK:<id>` and `MSG:<text>` datagrams.

## Using the library

```python
from punchthrough.client import Client

with Client("alice", ("127.0.0.1", 9090), discovery_wait=1.0, punch_wait=8.0) as client:
    client.register()
    peer = client.connect_to_peer("bob")
    client.send_message(peer, "hello")
    client.print_detailed_report()
```

- `register()` raises `TimeoutError` when the server does not answer. It raises `ProtocolError` when the reply is malformed, and `ConnectionError` when the reply is not a registration confirmation.
- `connect_to_peer()` waits for the coordination to finish. If no peer connection has been recorded by then, it returns the placeholder address `127.0.0.1:1234`.
- `get_connected_peers()` and `has_connections()` report the connections the background listener has recorded.

The server can also be driven one datagram at a time:

```python
from punchthrough.server import SignalingServer

with SignalingServer("127.0.0.1:9090") as server:
    msg = server.serve_once()
```

`punchthrough.logger.NatConsoleLogger` keeps statistics for each peer: hole punch attempts, successes, latency, messages and errors. It prints them as tables with `print_full_report()`, and as one-line summaries with `print_live_update()`.

## What it does not do

- Registration records the address the datagram came from together with the **local** port that the client reports. The port the NAT assigned is not recorded. Hole punching therefore works only where the NAT keeps the client's port.
- The client opens an IPv4 socket only.
- The client does not act on `StartPunch` messages, the form without a peer address. It only reports them.
- The server keeps its registry in memory. Entries never expire, and nothing is saved.
- There is no relay fallback when a hole punch fails.
- Traffic is neither authenticated nor encrypted.
- The latencies in the reports are fixed values (50 ms and 100 ms). They are not measured.