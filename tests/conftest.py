"""Shared test fixtures for the lancenter test suite.

Provides common fixtures used across unit tests: recording terminal and
socket doubles for the bridge, page locations, settings, and a local TCP
echo server for the gateway tunnels.
"""

from __future__ import annotations

import socket
import socketserver
import threading
from typing import Any, Callable, Iterator

import pytest

from lancenter.bridge.base import Payload, SocketTransport, TerminalSurface, TransportError
from lancenter.config.settings import Settings
from lancenter.domain.models import CloseEvent, PageLocation, ReadyState


# ---------------------------------------------------------------------------
# Bridge doubles
# ---------------------------------------------------------------------------


class RecordingTerminal(TerminalSurface):
    """A terminal that records writes and lets tests type input."""

    def __init__(self) -> None:
        self.container: Any = None
        self.opened = False
        self.writes: list[Payload] = []
        self._callback: Callable[[str], None] | None = None

    def open(self, container: Any = None) -> None:
        self.container = container
        self.opened = True

    def write(self, data: Payload) -> None:
        self.writes.append(data)

    def on_data(self, callback: Callable[[str], None]) -> None:
        self._callback = callback

    def type(self, data: str) -> None:
        assert self._callback is not None, "on_data was never registered"
        self._callback(data)


class RecordingTransport(SocketTransport):
    """A socket whose state and events are driven by the test."""

    def __init__(self, url: str) -> None:
        super().__init__(url)
        self.opened = False
        self.sent: list[Payload] = []

    def open(self) -> None:
        self.opened = True

    def send(self, data: Payload) -> None:
        if self._ready_state is not ReadyState.OPEN:
            raise TransportError("not open", state=self._ready_state)
        self.sent.append(data)

    def close(self) -> None:
        self._ready_state = ReadyState.CLOSED

    async def wait_closed(self) -> CloseEvent:
        return CloseEvent()

    # Test drivers

    def server_opens(self) -> None:
        self._ready_state = ReadyState.OPEN
        self._fire_open()

    def server_sends(self, data: Payload) -> None:
        self._fire_message(data)

    def server_closes(self, event: CloseEvent | None = None) -> None:
        self._ready_state = ReadyState.CLOSED
        self._fire_close(event or CloseEvent(code=1000, was_clean=True))


@pytest.fixture
def terminal() -> RecordingTerminal:
    return RecordingTerminal()


@pytest.fixture
def transports() -> list[RecordingTransport]:
    """Every transport created by :func:`transport_factory`, in order."""
    return []


@pytest.fixture
def transport_factory(transports: list[RecordingTransport]) -> Callable[[str], RecordingTransport]:
    def factory(url: str) -> RecordingTransport:
        transport = RecordingTransport(url)
        transports.append(transport)
        return transport

    return factory


@pytest.fixture
def page_location() -> PageLocation:
    """The page of the end-to-end scenario: example.com:8080."""
    return PageLocation(hostname="example.com", port=8080)


# ---------------------------------------------------------------------------
# Settings
# ---------------------------------------------------------------------------


@pytest.fixture
def settings() -> Settings:
    """Settings with a known SSH target and no real network defaults."""
    return Settings(
        ssh={"host": "ssh.test", "port": 2222, "username": "tester", "password": "secret"},
    )


# ---------------------------------------------------------------------------
# Local TCP servers
# ---------------------------------------------------------------------------


class _EchoHandler(socketserver.BaseRequestHandler):
    def handle(self) -> None:
        while True:
            data = self.request.recv(4096)
            if not data:
                return
            self.request.sendall(data)


class _GreetHandler(socketserver.BaseRequestHandler):
    """Sends a greeting and hangs up."""

    def handle(self) -> None:
        self.request.sendall(b"RFB 003.008\n")
        self.request.shutdown(socket.SHUT_WR)


def _serve(handler: type[socketserver.BaseRequestHandler]) -> Iterator[tuple[str, int]]:
    server = socketserver.ThreadingTCPServer(("127.0.0.1", 0), handler)
    server.daemon_threads = True
    thread = threading.Thread(target=server.serve_forever, daemon=True)
    thread.start()
    try:
        yield server.server_address[0], server.server_address[1]
    finally:
        server.shutdown()
        server.server_close()


@pytest.fixture
def echo_server() -> Iterator[tuple[str, int]]:
    """A TCP echo server on localhost; yields (host, port)."""
    yield from _serve(_EchoHandler)


@pytest.fixture
def greeting_server() -> Iterator[tuple[str, int]]:
    """A TCP server that sends one line and closes; yields (host, port)."""
    yield from _serve(_GreetHandler)


@pytest.fixture
def closed_port() -> int:
    """A localhost port with nothing listening on it."""
    sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
    sock.bind(("127.0.0.1", 0))
    port = sock.getsockname()[1]
    sock.close()
    return port
