"""UDP hole punching: a signaling server, a P2P client, an interactive CLI and NAT traversal reports."""

__version__ = "0.1.0"
__all__ = ["protocol", "server", "logger", "client", "cli"]