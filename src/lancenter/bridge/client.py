"""Run the connection bridge against the local console."""

from __future__ import annotations

import logging

from lancenter.bridge.bridge import ConnectionBridge
from lancenter.bridge.console import ConsoleTerminal
from lancenter.bridge.websocket import WebSocketTransport
from lancenter.domain.models import SOCKET_PATH, CloseEvent, PageLocation

logger = logging.getLogger(__name__)


async def run_client(
    base_url: str,
    path: str = SOCKET_PATH,
    open_timeout: float = 10.0,
    terminal: ConsoleTerminal | None = None,
) -> CloseEvent:
    """Bridge the console to the gateway page at ``base_url`` until the socket closes.

    Returns the close event reported by the socket.
    """
    location = PageLocation.from_url(base_url)
    bridge: ConnectionBridge | None = None

    def leave() -> None:
        if bridge is not None and bridge.socket is not None:
            bridge.socket.close()

    if terminal is None:
        terminal = ConsoleTerminal(on_escape=leave)

    bridge = ConnectionBridge(
        terminal=terminal,
        transport_factory=lambda url: WebSocketTransport(url, open_timeout=open_timeout),
        location=location,
        path=path,
    )
    try:
        socket = bridge.initialize()
        event = await socket.wait_closed()
    finally:
        terminal.close()
    logger.info("Session ended (code=%d)", event.code)
    return event
