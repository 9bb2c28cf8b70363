"""Connection bridge module for lancenter.

Relays bytes between a terminal surface and a WebSocket. The abstract
interfaces let the bridge drive the local console or a test double
without changing the relay logic.

Public API:
    ConnectionBridge -- The relay itself
    TerminalSurface -- Abstract terminal widget
    SocketTransport -- Abstract browser-style socket
    WebSocketTransport -- ``websockets`` client transport
    ConsoleTerminal -- Local TTY terminal surface
"""

from lancenter.bridge.base import (
    BridgeError,
    SocketTransport,
    TerminalSurface,
    TransportError,
)
from lancenter.bridge.bridge import ConnectionBridge

__all__ = [
    "BridgeError",
    "ConnectionBridge",
    "ConsoleTerminal",
    "SocketTransport",
    "TerminalSurface",
    "TransportError",
    "WebSocketTransport",
    "run_client",
]


def __getattr__(name: str) -> object:
    """Lazy import for implementations that require external deps or a TTY."""
    if name == "WebSocketTransport":
        from lancenter.bridge.websocket import WebSocketTransport
        return WebSocketTransport
    if name == "ConsoleTerminal":
        from lancenter.bridge.console import ConsoleTerminal
        return ConsoleTerminal
    if name == "run_client":
        from lancenter.bridge.client import run_client
        return run_client
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
