"""Stream-like connection to a TCP target through the gateway's ``/ws`` tunnel.

Each WebSocket frame carries raw bytes. Frames larger than a read are
kept in a buffer and handed out by the following reads.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Callable
from urllib.parse import quote

from websockets.asyncio.client import connect
from websockets.exceptions import ConnectionClosed, ConnectionClosedOK, WebSocketException

logger = logging.getLogger(__name__)


class WebSocketTunnel:
    """A client-side connection to ``network``/``address`` via a tunnel endpoint.

    Example usage::

        async with WebSocketTunnel("ws://localhost:8080/ws", "tcp", "example.com:80") as conn:
            await conn.write(b"GET / HTTP/1.0\\r\\n\\r\\n")
            data = await conn.read(4096)
    """

    def __init__(
        self,
        ws_url: str,
        network: str,
        address: str,
        read_timeout: float | None = None,
        open_timeout: float = 10.0,
        connector: Callable[..., Any] = connect,
    ) -> None:
        self._ws_url = ws_url
        self._network = network
        self._address = address
        self._read_timeout = read_timeout
        self._open_timeout = open_timeout
        self._connector = connector
        self._ws: Any = None
        self._buffer = b""
        self._eof = False

    @property
    def url(self) -> str:
        return (
            f"{self._ws_url}?network={quote(self._network, safe='')}"
            f"&address={quote(self._address, safe='')}"
        )

    @property
    def is_connected(self) -> bool:
        return self._ws is not None

    @property
    def local_addr(self) -> tuple[str, str]:
        return ("websocket", "client")

    @property
    def remote_addr(self) -> tuple[str, str]:
        return ("websocket", self._address)

    def set_read_timeout(self, timeout: float | None) -> None:
        self._read_timeout = timeout

    async def connect(self) -> None:
        """Open the tunnel.

        Raises:
            TunnelError: If the gateway is unreachable or rejects the tunnel.
        """
        logger.info("Opening tunnel to %s %s via %s", self._network, self._address, self._ws_url)
        try:
            self._ws = await self._connector(self.url, open_timeout=self._open_timeout)
        except (OSError, asyncio.TimeoutError, WebSocketException) as e:
            raise TunnelError(f"Failed to open tunnel to {self._address}: {e}") from e

    async def close(self) -> None:
        if self._ws is not None:
            await self._ws.close()
            self._ws = None
            logger.info("Tunnel to %s closed", self._address)

    async def read(self, size: int) -> bytes:
        """Read up to ``size`` bytes. Returns ``b""`` at end of stream.

        Raises:
            TunnelTimeoutError: If no data arrives within the read timeout.
            TunnelError: If the tunnel is not connected or breaks.
        """
        if self._buffer:
            data, self._buffer = self._buffer[:size], self._buffer[size:]
            return data
        if self._eof:
            return b""
        if self._ws is None:
            raise TunnelError("Tunnel is not connected")

        try:
            message = await asyncio.wait_for(self._ws.recv(), timeout=self._read_timeout)
        except asyncio.TimeoutError as e:
            raise TunnelTimeoutError("read timeout exceeded") from e
        except ConnectionClosedOK:
            self._eof = True
            return b""
        except ConnectionClosed as e:
            raise TunnelError(f"Tunnel to {self._address} broke: {e}") from e

        if isinstance(message, str):
            message = message.encode("utf-8")
        data, self._buffer = message[:size], message[size:]
        logger.debug("Read %d bytes (%d buffered)", len(data), len(self._buffer))
        return data

    async def write(self, data: bytes) -> int:
        """Send ``data`` as one binary frame and return its length."""
        if self._ws is None:
            raise TunnelError("Tunnel is not connected")
        try:
            await self._ws.send(data)
        except ConnectionClosed as e:
            raise TunnelError(f"Tunnel to {self._address} closed: {e}") from e
        return len(data)

    async def __aenter__(self) -> WebSocketTunnel:
        await self.connect()
        return self

    async def __aexit__(self, exc_type: type | None, exc_val: Exception | None, exc_tb: object) -> None:
        await self.close()


class TunnelError(Exception):
    """Raised when the tunnel cannot be opened or used."""


class TunnelTimeoutError(TunnelError):
    """Raised when a read exceeds the configured timeout."""
