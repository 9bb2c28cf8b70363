"""Byte relays between an accepted WebSocket and an upstream stream.

An upstream is anything with ``read(size)``, ``write(data)`` and
``close()`` coroutines: an SSH shell or a TCP connection. Each direction
runs as its own task; when either finishes the other is cancelled and
both ends are closed.
"""

from __future__ import annotations

import asyncio
import codecs
import logging
import socket
from typing import Protocol

from fastapi import WebSocket
from starlette.websockets import WebSocketState

logger = logging.getLogger(__name__)

# Address families accepted by the generic tunnel
NETWORK_FAMILIES = {
    "tcp": socket.AF_UNSPEC,
    "tcp4": socket.AF_INET,
    "tcp6": socket.AF_INET6,
}


class Upstream(Protocol):
    async def read(self, size: int) -> bytes: ...

    async def write(self, data: bytes) -> None: ...

    async def close(self) -> None: ...


class TcpTarget:
    """An upstream TCP connection opened with asyncio streams."""

    def __init__(self, reader: asyncio.StreamReader, writer: asyncio.StreamWriter) -> None:
        self._reader = reader
        self._writer = writer

    @classmethod
    async def open(cls, host: str, port: int, network: str = "tcp") -> TcpTarget:
        """Connect to ``host:port``.

        Raises:
            TargetConnectError: If the network is unknown or the target
                                is unreachable.
        """
        family = NETWORK_FAMILIES.get(network)
        if family is None:
            raise TargetConnectError(f"Unsupported network: {network}")
        try:
            reader, writer = await asyncio.open_connection(host, port, family=family)
        except OSError as e:
            raise TargetConnectError(f"Error connecting {network} address {host}:{port}: {e}") from e
        logger.info("Connected to %s %s:%d", network, host, port)
        return cls(reader, writer)

    async def read(self, size: int) -> bytes:
        return await self._reader.read(size)

    async def write(self, data: bytes) -> None:
        self._writer.write(data)
        await self._writer.drain()

    async def close(self) -> None:
        if self._writer.is_closing():
            return
        self._writer.close()
        try:
            await self._writer.wait_closed()
        except OSError as e:
            logger.debug("TCP close error: %s", e)


def parse_address(address: str) -> tuple[str, int]:
    """Split ``host:port`` (or ``[v6]:port``) into its parts.

    Raises:
        ValueError: If the address has no valid port.
    """
    host, sep, port_s = address.rpartition(":")
    if not sep or not host:
        raise ValueError(f"Address must be host:port, got {address!r}")
    if host.startswith("[") and host.endswith("]"):
        host = host[1:-1]
    port = int(port_s)
    if not 0 < port < 65536:
        raise ValueError(f"Port out of range: {port}")
    return host, port


async def relay(
    websocket: WebSocket,
    upstream: Upstream,
    buffer_size: int = 1024,
    text_output: bool = False,
) -> None:
    """Pump bytes between ``websocket`` and ``upstream`` until either side ends.

    Client text frames are written upstream as UTF-8, binary frames as-is.
    Upstream output goes out as binary frames, or as text frames decoded
    incrementally as UTF-8 when ``text_output`` is set.
    """

    async def client_to_upstream() -> None:
        while True:
            message = await websocket.receive()
            if message["type"] == "websocket.disconnect":
                logger.debug("Client disconnected (code=%s)", message.get("code"))
                return
            data = message.get("bytes")
            if data is None:
                text = message.get("text")
                if text is None:
                    continue
                data = text.encode("utf-8")
            logger.debug("Read %d bytes from websocket", len(data))
            await upstream.write(data)

    async def upstream_to_client() -> None:
        decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
        while True:
            chunk = await upstream.read(buffer_size)
            if not chunk:
                logger.debug("Upstream closed by remote")
                if text_output:
                    tail = decoder.decode(b"", final=True)
                    if tail:
                        await websocket.send_text(tail)
                return
            logger.debug("Read %d bytes from upstream", len(chunk))
            if text_output:
                text = decoder.decode(chunk)
                if text:
                    await websocket.send_text(text)
            else:
                await websocket.send_bytes(chunk)

    tasks = {
        asyncio.create_task(client_to_upstream(), name="client_to_upstream"),
        asyncio.create_task(upstream_to_client(), name="upstream_to_client"),
    }
    try:
        done, pending = await asyncio.wait(tasks, return_when=asyncio.FIRST_COMPLETED)
    finally:
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        await upstream.close()

    for task in done:
        if not task.cancelled() and task.exception() is not None:
            logger.warning("Relay %s ended with error: %s", task.get_name(), task.exception())

    await close_quietly(websocket)


async def close_quietly(websocket: WebSocket, code: int = 1000, reason: str = "") -> None:
    """Close ``websocket`` unless either side already has."""
    if (
        websocket.application_state == WebSocketState.DISCONNECTED
        or websocket.client_state == WebSocketState.DISCONNECTED
    ):
        return
    try:
        await websocket.close(code=code, reason=reason)
    except RuntimeError as e:
        logger.debug("WebSocket already closed: %s", e)


class TargetConnectError(Exception):
    """Raised when an upstream TCP target cannot be reached."""
