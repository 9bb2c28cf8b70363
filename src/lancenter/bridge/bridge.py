"""The connection bridge: terminal surface <-> WebSocket.

Relays bytes between a terminal and a socket with no transformation,
buffering or protocol awareness. The socket's own ready state is the
only state consulted; everything else is a straight pass-through.
"""

from __future__ import annotations

import logging
from typing import Any, Callable

from lancenter.bridge.base import BridgeError, Payload, SocketTransport, TerminalSurface
from lancenter.domain.models import (
    DISCONNECT_BANNER,
    SOCKET_PATH,
    CloseEvent,
    PageLocation,
    ReadyState,
    build_socket_url,
)

logger = logging.getLogger(__name__)

TransportFactory = Callable[[str], SocketTransport]


class ConnectionBridge:
    """Wires one terminal surface to one socket transport.

    All handlers run on the single event loop that delivers socket and
    input events; none of them block. A bridge opens at most one socket.

    Example usage::

        bridge = ConnectionBridge(
            terminal=ConsoleTerminal(),
            transport_factory=WebSocketTransport,
            location=PageLocation(hostname="example.com", port=8080),
        )
        socket = bridge.initialize()
        await socket.wait_closed()
    """

    def __init__(
        self,
        terminal: TerminalSurface,
        transport_factory: TransportFactory,
        location: PageLocation,
        container: Any = None,
        path: str = SOCKET_PATH,
    ) -> None:
        self._terminal = terminal
        self._transport_factory = transport_factory
        self._location = location
        self._container = container
        self._path = path
        self._socket: SocketTransport | None = None
        self._closed = False

    @property
    def socket(self) -> SocketTransport | None:
        return self._socket

    @property
    def socket_url(self) -> str:
        return build_socket_url(self._location, self._path)

    def initialize(self) -> SocketTransport:
        """Attach the terminal, open the socket and wire the handlers.

        Raises:
            BridgeError: If the bridge was already initialized.
        """
        if self._socket is not None:
            raise BridgeError("Bridge already initialized; only one connection per bridge")

        url = self.socket_url
        socket = self._transport_factory(url)
        self._socket = socket
        self._terminal.open(self._container)

        socket.on_open = self.handle_open
        socket.on_message = self.handle_message
        socket.on_close = self.handle_close
        self._terminal.on_data(self.handle_input)

        logger.info("Opening WebSocket %s", url)
        socket.open()
        return socket

    def handle_open(self) -> None:
        logger.info("WebSocket connected")

    def handle_message(self, data: Payload) -> None:
        """Write a received payload to the terminal as-is."""
        self._terminal.write(data)

    def handle_input(self, data: Payload) -> None:
        """Forward terminal input to the socket if it is open, else drop it."""
        socket = self._socket
        state = socket.ready_state if socket is not None else ReadyState.CLOSED
        if state is ReadyState.OPEN:
            socket.send(data)
        else:
            logger.error("WebSocket is not open. ReadyState: %d (%s)", state, state.name)

    def handle_close(self, event: CloseEvent | None = None) -> None:
        """Print the disconnect banner once. No reconnection."""
        if self._closed:
            return
        self._closed = True
        if event is not None:
            logger.info(
                "WebSocket disconnected (code=%d, clean=%s)", event.code, event.was_clean,
            )
        else:
            logger.info("WebSocket disconnected")
        self._terminal.write(DISCONNECT_BANNER)
