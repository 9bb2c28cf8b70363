"""Tests for WebSocketTransport against a local websockets server."""

from __future__ import annotations

import asyncio
from typing import Any, AsyncIterator, Awaitable, Callable

import pytest
from websockets.asyncio.server import ServerConnection, serve

from lancenter.bridge.base import TransportError
from lancenter.bridge.bridge import ConnectionBridge
from lancenter.bridge.websocket import WebSocketTransport
from lancenter.domain.models import DISCONNECT_BANNER, CloseEvent, PageLocation, ReadyState

Handler = Callable[[ServerConnection], Awaitable[None]]


class Events:
    """Collects transport callbacks."""

    def __init__(self, transport: WebSocketTransport) -> None:
        self.opened = 0
        self.messages: list[Any] = []
        self.closes: list[CloseEvent] = []
        self.message_arrived = asyncio.Event()
        transport.on_open = self._on_open
        transport.on_message = self._on_message
        transport.on_close = self.closes.append

    def _on_open(self) -> None:
        self.opened += 1

    def _on_message(self, data: Any) -> None:
        self.messages.append(data)
        self.message_arrived.set()


async def _start(handler: Handler) -> tuple[Any, int]:
    server = await serve(handler, "127.0.0.1", 0)
    port = server.sockets[0].getsockname()[1]
    return server, port


async def _stop(server: Any) -> None:
    server.close()
    await server.wait_closed()


async def _wait_for(predicate: Callable[[], bool], timeout: float = 5.0) -> None:
    async def poll() -> None:
        while not predicate():
            await asyncio.sleep(0.01)

    await asyncio.wait_for(poll(), timeout)


class TestLifecycle:
    @pytest.mark.asyncio
    async def test_messages_then_clean_close(self) -> None:
        async def handler(ws: ServerConnection) -> None:
            await ws.send("hello\r\n")
            await ws.send(b"\x00\x01")
            await ws.close()

        server, port = await _start(handler)
        try:
            transport = WebSocketTransport(f"ws://127.0.0.1:{port}/ssh")
            events = Events(transport)
            assert transport.ready_state is ReadyState.CONNECTING

            transport.open()
            event = await asyncio.wait_for(transport.wait_closed(), 5)
        finally:
            await _stop(server)

        assert events.opened == 1
        assert events.messages == ["hello\r\n", b"\x00\x01"]
        assert events.closes == [event]
        assert event.code == 1000
        assert event.was_clean is True
        assert transport.ready_state is ReadyState.CLOSED

    @pytest.mark.asyncio
    async def test_refused_connection_reports_one_close(self, closed_port: int) -> None:
        transport = WebSocketTransport(f"ws://127.0.0.1:{closed_port}/ssh", open_timeout=2.0)
        events = Events(transport)

        transport.open()
        event = await asyncio.wait_for(transport.wait_closed(), 5)

        assert events.opened == 0
        assert events.closes == [event]
        assert event.was_clean is False
        assert event.code == 1006
        assert transport.ready_state is ReadyState.CLOSED

    @pytest.mark.asyncio
    async def test_open_twice_rejected(self, closed_port: int) -> None:
        transport = WebSocketTransport(f"ws://127.0.0.1:{closed_port}/ssh", open_timeout=2.0)
        transport.open()
        with pytest.raises(TransportError):
            transport.open()
        await asyncio.wait_for(transport.wait_closed(), 5)

    @pytest.mark.asyncio
    async def test_client_close(self) -> None:
        async def handler(ws: ServerConnection) -> None:
            async for _ in ws:
                pass

        server, port = await _start(handler)
        try:
            transport = WebSocketTransport(f"ws://127.0.0.1:{port}/ssh")
            events = Events(transport)
            transport.open()
            await _wait_for(lambda: transport.ready_state is ReadyState.OPEN)

            transport.close()
            assert transport.ready_state is ReadyState.CLOSING
            transport.close()
            event = await asyncio.wait_for(transport.wait_closed(), 5)
        finally:
            await _stop(server)

        assert events.closes == [event]
        assert event.code == 1000

    @pytest.mark.asyncio
    async def test_server_drop_without_close_frame(self) -> None:
        async def handler(ws: ServerConnection) -> None:
            await ws.send("partial")
            ws.transport.abort()
            await ws.wait_closed()

        server, port = await _start(handler)
        try:
            transport = WebSocketTransport(f"ws://127.0.0.1:{port}/ssh")
            events = Events(transport)
            transport.open()
            event = await asyncio.wait_for(transport.wait_closed(), 5)
        finally:
            await _stop(server)

        assert events.messages == ["partial"]
        assert events.closes == [event]
        assert event.code == 1006
        assert event.was_clean is False
        assert transport.ready_state is ReadyState.CLOSED


class EndedConnection:
    """A connection whose stream ends after one message, without a close code.

    Records what a late ``send`` sees while the transport tears down.
    """

    close_reason = None

    def __init__(self) -> None:
        self.transport: WebSocketTransport | None = None
        self.late_send_error: TransportError | None = None

    async def __aenter__(self) -> EndedConnection:
        return self

    async def __aexit__(self, *exc: Any) -> None:
        return None

    async def _messages(self) -> AsyncIterator[str]:
        yield "bye"

    def __aiter__(self) -> AsyncIterator[str]:
        return self._messages()

    @property
    def close_code(self) -> int | None:
        assert self.transport is not None
        try:
            self.transport.send("late")
        except TransportError as e:
            self.late_send_error = e
        return None

    async def send(self, data: Any) -> None:
        raise AssertionError(f"unexpected send: {data!r}")

    async def close(self) -> None:
        return None


class TestSend:
    @pytest.mark.asyncio
    async def test_send_rejected_once_stream_ends(self) -> None:
        connection = EndedConnection()
        transport = WebSocketTransport(
            "ws://gateway.test/ssh", connector=lambda url, open_timeout: connection,
        )
        connection.transport = transport
        events = Events(transport)
        transport.open()
        event = await asyncio.wait_for(transport.wait_closed(), 5)

        assert events.messages == ["bye"]
        assert connection.late_send_error is not None
        assert connection.late_send_error.state is ReadyState.CLOSING
        assert event.code == 1006
        assert event.was_clean is False

    @pytest.mark.asyncio
    async def test_send_before_open_raises(self) -> None:
        transport = WebSocketTransport("ws://127.0.0.1:1/ssh")
        with pytest.raises(TransportError) as excinfo:
            transport.send("ls")
        assert excinfo.value.state is ReadyState.CONNECTING

    @pytest.mark.asyncio
    async def test_sends_in_call_order(self) -> None:
        async def echo(ws: ServerConnection) -> None:
            async for message in ws:
                await ws.send(message)

        server, port = await _start(echo)
        try:
            transport = WebSocketTransport(f"ws://127.0.0.1:{port}/ssh")
            events = Events(transport)
            transport.open()
            await _wait_for(lambda: transport.ready_state is ReadyState.OPEN)

            for payload in ["l", "s", b"\r"]:
                transport.send(payload)
            await _wait_for(lambda: len(events.messages) == 3)

            transport.close()
            await asyncio.wait_for(transport.wait_closed(), 5)
        finally:
            await _stop(server)

        assert events.messages == ["l", "s", b"\r"]

    @pytest.mark.asyncio
    async def test_failing_handler_keeps_socket(self) -> None:
        async def handler(ws: ServerConnection) -> None:
            await ws.send("first")
            await ws.send("second")
            await ws.close()

        server, port = await _start(handler)
        received: list[str] = []

        def flaky(data: str) -> None:
            received.append(data)
            if data == "first":
                raise RuntimeError("boom")

        try:
            transport = WebSocketTransport(f"ws://127.0.0.1:{port}/ssh")
            transport.on_message = flaky
            transport.open()
            event = await asyncio.wait_for(transport.wait_closed(), 5)
        finally:
            await _stop(server)

        assert received == ["first", "second"]
        assert event.was_clean is True


class TestBridgeOverWebSocket:
    @pytest.mark.asyncio
    async def test_end_to_end_scenario(self, terminal) -> None:
        received: list[str] = []

        async def handler(ws: ServerConnection) -> None:
            assert ws.request.path == "/ssh"
            await ws.send("hello\r\n")
            received.append(await ws.recv())
            await ws.close()

        server, port = await _start(handler)
        try:
            bridge = ConnectionBridge(
                terminal=terminal,
                transport_factory=WebSocketTransport,
                location=PageLocation(hostname="127.0.0.1", port=port),
            )
            socket = bridge.initialize()
            assert socket.url == f"ws://127.0.0.1:{port}/ssh"

            await _wait_for(lambda: terminal.writes == ["hello\r\n"])
            terminal.type("ls")
            await asyncio.wait_for(socket.wait_closed(), 5)
        finally:
            await _stop(server)

        assert received == ["ls"]
        assert terminal.writes == ["hello\r\n", DISCONNECT_BANNER]
