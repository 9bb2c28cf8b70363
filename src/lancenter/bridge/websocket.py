"""WebSocket transport built on the ``websockets`` asyncio client.

Behaves like the browser ``WebSocket``: construction does no I/O,
``open()`` starts connecting in the background, ``send()`` never blocks,
and every way the connection can end is reported through exactly one
``on_close`` call.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Callable

from websockets.asyncio.client import connect
from websockets.exceptions import ConnectionClosed, ConnectionClosedError, WebSocketException

from lancenter.bridge.base import Payload, SocketTransport, TransportError
from lancenter.domain.models import CloseEvent, ReadyState

logger = logging.getLogger(__name__)

# Abnormal closure: no close frame was received
ABNORMAL_CLOSURE = 1006

# Queued after the last payload to close the socket once it is flushed
_CLOSE = object()


class WebSocketTransport(SocketTransport):
    """A :class:`SocketTransport` over one ``websockets`` client connection.

    Outgoing payloads are written by a single writer task in the order
    :meth:`send` was called. ``str`` payloads go out as text frames,
    ``bytes`` as binary frames.
    """

    def __init__(
        self,
        url: str,
        open_timeout: float = 10.0,
        connector: Callable[..., Any] = connect,
    ) -> None:
        super().__init__(url)
        self._open_timeout = open_timeout
        self._connector = connector
        self._task: asyncio.Task[None] | None = None
        self._outbox: asyncio.Queue[object] = asyncio.Queue()
        self._close_requested = False
        self._closed = asyncio.Event()
        self._close_event: CloseEvent | None = None

    def open(self) -> None:
        """Schedule the connection on the running event loop."""
        if self._task is not None:
            raise TransportError("Transport already opened", state=self._ready_state)
        self._task = asyncio.get_running_loop().create_task(self._run())

    def send(self, data: Payload) -> None:
        if self._ready_state is not ReadyState.OPEN:
            raise TransportError(
                f"WebSocket is not open (state: {self._ready_state.name})",
                state=self._ready_state,
            )
        self._outbox.put_nowait(data)

    def close(self) -> None:
        if self._ready_state in (ReadyState.CLOSING, ReadyState.CLOSED):
            return
        self._close_requested = True
        if self._ready_state is ReadyState.OPEN:
            self._ready_state = ReadyState.CLOSING
            self._outbox.put_nowait(_CLOSE)

    async def wait_closed(self) -> CloseEvent:
        await self._closed.wait()
        assert self._close_event is not None
        return self._close_event

    async def _run(self) -> None:
        try:
            event = await self._connect_and_read()
        except (OSError, asyncio.TimeoutError, WebSocketException) as e:
            logger.warning("WebSocket %s failed: %s", self._url, e)
            event = CloseEvent(code=ABNORMAL_CLOSURE, reason=str(e), was_clean=False)
        finally:
            self._ready_state = ReadyState.CLOSED
        self._close_event = event
        self._closed.set()
        self._fire_close(event)

    async def _connect_and_read(self) -> CloseEvent:
        async with self._connector(self._url, open_timeout=self._open_timeout) as ws:
            if self._close_requested:
                await ws.close()
                return CloseEvent(code=ws.close_code or ABNORMAL_CLOSURE, was_clean=True)

            self._ready_state = ReadyState.OPEN
            logger.debug("WebSocket %s open", self._url)
            self._fire_open()

            writer = asyncio.create_task(self._write_loop(ws))
            clean = True
            try:
                async for message in ws:
                    logger.debug("Received %d-char/byte message", len(message))
                    self._fire_message(message)
            except ConnectionClosedError as e:
                logger.debug("WebSocket closed abnormally: %s", e)
                clean = False
            finally:
                # No more sends once the read side has ended
                self._ready_state = ReadyState.CLOSING
                writer.cancel()
                try:
                    await writer
                except asyncio.CancelledError:
                    pass

            code = ws.close_code
            return CloseEvent(
                code=code if code is not None else ABNORMAL_CLOSURE,
                reason=ws.close_reason or "",
                was_clean=clean and code is not None,
            )

    async def _write_loop(self, ws: Any) -> None:
        while True:
            item = await self._outbox.get()
            try:
                if item is _CLOSE:
                    await ws.close()
                    return
                await ws.send(item)
            except ConnectionClosed:
                return
