"""Abstract collaborators of the connection bridge.

The bridge only relays bytes; rendering and transport are delegated to a
terminal surface and a socket transport. Both are plain interfaces so the
bridge can drive the local console, a test double, or anything else that
renders terminal output and emits keystrokes.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import Any, Callable, Union

from lancenter.domain.models import CloseEvent, ReadyState

logger = logging.getLogger(__name__)

# Text frames arrive as str, binary frames as bytes
Payload = Union[str, bytes]


class TerminalSurface(ABC):
    """A terminal widget: renders output and emits user input.

    Example usage::

        terminal = ConsoleTerminal()
        terminal.open()
        terminal.on_data(lambda data: print(repr(data)))
        terminal.write("hello\\r\\n")
    """

    @abstractmethod
    def open(self, container: Any = None) -> None:
        """Attach the terminal to its container and start emitting input.

        Args:
            container: Where the terminal renders. Meaning is up to the
                       implementation (an output stream for the console).
        """
        ...

    @abstractmethod
    def write(self, data: Payload) -> None:
        """Render ``data`` verbatim."""
        ...

    @abstractmethod
    def on_data(self, callback: Callable[[str], None]) -> None:
        """Register the callback that receives user input."""
        ...

    def close(self) -> None:
        """Release the terminal. Default is a no-op."""


class SocketTransport(ABC):
    """A full-duplex message socket with browser-style event handlers.

    Handlers are plain attributes assigned before :meth:`open` is called:
    ``on_open()``, ``on_message(data)`` and ``on_close(event)``. All of them
    are invoked from the event loop that owns the transport.
    """

    def __init__(self, url: str) -> None:
        self._url = url
        self._ready_state = ReadyState.CONNECTING
        self.on_open: Callable[[], None] | None = None
        self.on_message: Callable[[Payload], None] | None = None
        self.on_close: Callable[[CloseEvent], None] | None = None

    @property
    def url(self) -> str:
        return self._url

    @property
    def ready_state(self) -> ReadyState:
        return self._ready_state

    @abstractmethod
    def open(self) -> None:
        """Start connecting. Returns immediately; progress is reported via handlers."""
        ...

    @abstractmethod
    def send(self, data: Payload) -> None:
        """Send one message.

        Raises:
            TransportError: If the socket is not open.
        """
        ...

    @abstractmethod
    def close(self) -> None:
        """Start the closing handshake. Safe to call more than once."""
        ...

    @abstractmethod
    async def wait_closed(self) -> CloseEvent:
        """Wait until the socket is closed and return the close event."""
        ...

    # A failing handler is reported and does not tear down the socket.

    def _fire_open(self) -> None:
        if self.on_open is not None:
            try:
                self.on_open()
            except Exception:
                logger.exception("on_open handler failed")

    def _fire_message(self, data: Payload) -> None:
        if self.on_message is not None:
            try:
                self.on_message(data)
            except Exception:
                logger.exception("on_message handler failed")

    def _fire_close(self, event: CloseEvent) -> None:
        if self.on_close is not None:
            try:
                self.on_close(event)
            except Exception:
                logger.exception("on_close handler failed")


class TransportError(Exception):
    """Raised when a transport operation is not possible in its current state."""

    def __init__(self, message: str, state: ReadyState | None = None) -> None:
        super().__init__(message)
        self.state = state


class BridgeError(Exception):
    """Raised when the bridge is used out of order."""
