"""Interactive peer client: register, punch a hole to a peer and chat."""

from __future__ import annotations

import sys
import time
from collections.abc import Sequence

from punchthrough.client import Client
from punchthrough.protocol import Address, ProtocolError, format_addr, parse_addr

DEFAULT_SERVER = "127.0.0.1:9090"
PROG = "client"
TEST_MESSAGE_COUNT = 3
TEST_MESSAGE_INTERVAL = 0.5
MONITOR_UPDATES = 10
MONITOR_INTERVAL = 2.0

_HEAVY_RULE = "━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━"


def print_commands() -> None:
    """Print the list of interactive commands."""
    print("📚 Available Commands:")
    print("━━━━━━━━━━━━━━━━━━━━━")
    print("  connect <peer_id>  - Initiate hole punching with peer")
    print("  send <message>     - Send direct P2P message")
    print("  status            - Show current connection status")
    print("  report            - Display detailed NAT traversal report")
    print("  test <peer_id>     - Run automated connection test")
    print("  monitor           - Start live connection monitoring")
    print("  help              - Show this help message")
    print("  quit              - Exit with final report")


def run_connection_test(client: Client, peer_id: str) -> Address | None:
    """Connect to a peer, send a few test messages and print the results.

    Returns the peer address when the connection step succeeded.
    """
    print("🔬 Test Phase 1: Connection Attempt")
    print("───────────────────────────────────")

    try:
        peer_addr = client.connect_to_peer(peer_id)
    except OSError as exc:
        print(f"❌ Phase 1 Failed: {exc}")
        client.print_detailed_report()
        return None

    print("✅ Phase 1 Complete: Connection established")
    print("\n🔬 Test Phase 2: Message Exchange")
    print("─────────────────────────────────────")

    for number in range(1, TEST_MESSAGE_COUNT + 1):
        test_msg = f"Test message #{number} from automated test"
        try:
            client.send_message(peer_addr, test_msg)
        except OSError as exc:
            print(f"❌ Test message {number} failed: {exc}")
        else:
            print(f"✅ Test message {number} sent")
        time.sleep(TEST_MESSAGE_INTERVAL)

    print("\n🔬 Test Phase 3: Final Results")
    print("──────────────────────────────")
    client.print_detailed_report()
    return peer_addr


def start_live_monitoring(client: Client) -> int:
    """Print the status report periodically; return the number of updates shown."""
    print(f"Starting live updates every {MONITOR_INTERVAL:g} seconds...")
    shown = 0
    try:
        for number in range(1, MONITOR_UPDATES + 1):
            time.sleep(MONITOR_INTERVAL)
            print(f"\n📊 Live Update #{number}")
            print("──────────────────")
            client.print_status_report()
            shown = number
    except KeyboardInterrupt:
        print("\n⏹️ Live monitoring stopped")
        return shown
    print(f"🏁 Live monitoring complete ({MONITOR_UPDATES} updates)")
    return shown


def _read_command(client_id: str) -> list[str]:
    try:
        line = input(f"\n{client_id} > ")
    except EOFError:
        return ["quit"]
    return line.split()


def _interact(client: Client, client_id: str) -> None:
    connected_peer: Address | None = None

    while True:
        parts = _read_command(client_id)
        if not parts:
            continue
        command, args = parts[0], parts[1:]

        if command == "connect":
            if not args:
                print("❌ Usage: connect <peer_id>")
                continue
            peer_id = args[0]
            print(f"\n🔗 Initiating connection to peer '{peer_id}'...")
            print(_HEAVY_RULE)
            try:
                connected_peer = client.connect_to_peer(peer_id)
            except OSError as exc:
                print(f"❌ Connection failed: {exc}")
                client.print_detailed_report()
            else:
                print("\n🎉 Connection process completed!")
                print(f"✅ You can now send messages to '{peer_id}'")
                client.print_detailed_report()

        elif command == "send":
            if not args:
                print("❌ Usage: send <message>")
                continue
            if connected_peer is None:
                print("❌ Not connected to any peer. Use 'connect <peer_id>' first.")
                continue
            try:
                client.send_message(connected_peer, " ".join(args))
            except OSError as exc:
                print(f"❌ Send failed: {exc}")
            else:
                print("✅ Message sent successfully!")

        elif command == "status":
            print("\n📊 Current Client Status")
            print("━━━━━━━━━━━━━━━━━━━━━━━━")
            client.print_status_report()

        elif command == "report":
            print("\n📈 Detailed NAT Traversal Report")
            print("━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━")
            client.print_detailed_report()

        elif command == "test":
            if not args:
                print("❌ Usage: test <peer_id>")
                continue
            print(f"\n🧪 Starting automated connection test to '{args[0]}'...")
            run_connection_test(client, args[0])

        elif command == "monitor":
            print("\n📡 Starting live monitoring mode...")
            print("Press Ctrl+C to stop monitoring")
            start_live_monitoring(client)

        elif command == "help":
            print_commands()

        elif command in ("quit", "exit"):
            print("\n📋 Final Report")
            print("━━━━━━━━━━━━━━━")
            client.print_detailed_report()
            print("\n👋 Goodbye!")
            return

        else:
            print(
                f"❌ Unknown command: '{command}'. Type 'help' for available commands."
            )


def main(argv: Sequence[str] | None = None) -> int:
    """Run the interactive client: ``<client_id> [server_addr]``."""
    args = list(sys.argv[1:] if argv is None else argv)
    print("🚀 NAT Traversal P2P Client with Logging")
    print("==================================================")

    if not args:
        print(f"Usage: {PROG} <client_id> [server_addr]")
        print(f"Example: {PROG} alice")
        print(f"Example: {PROG} bob 192.168.1.100:9090")
        return 0

    client_id = args[0]
    try:
        server_addr = parse_addr(args[1] if len(args) > 1 else DEFAULT_SERVER)
    except ProtocolError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1

    print(f"Client ID: {client_id}")
    print(f"Server: {format_addr(server_addr)}")

    try:
        client = Client(client_id, server_addr)
    except OSError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1

    with client:
        print("\n📡 Registering with signaling server...")
        try:
            client.register()
        except (OSError, ProtocolError) as exc:
            print(f"Error: {exc}", file=sys.stderr)
            return 1

        print("\n✅ Registration complete!")
        print()
        print_commands()

        try:
            _interact(client, client_id)
        except KeyboardInterrupt:
            print("\n👋 Goodbye!")
    return 0


if __name__ == "__main__":
    sys.exit(main())