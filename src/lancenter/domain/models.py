"""Core domain types shared by the bridge, the gateway and the tunnel.

The ready-state values mirror the browser WebSocket API so that the
Python bridge and the shipped browser script agree on what "open" means.
"""

from __future__ import annotations

import enum
from urllib.parse import urlsplit

from pydantic import BaseModel, ConfigDict, Field

# Path of the SSH endpoint on the gateway
SOCKET_PATH = "/ssh"

# Written to the terminal once the socket closes
DISCONNECT_BANNER = "\r\n\x1b[1;31mDisconnected from SSH server.\x1b[0m\r\n"


class ReadyState(enum.IntEnum):
    """WebSocket readyState values."""

    CONNECTING = 0
    OPEN = 1
    CLOSING = 2
    CLOSED = 3


class PageLocation(BaseModel):
    """Host and port of the page that loads the bridge."""

    model_config = ConfigDict(frozen=True)

    hostname: str = Field(min_length=1, description="Page hostname, e.g. 'example.com'")
    port: int | None = Field(default=None, ge=1, le=65535, description="Explicit page port, if any")

    @classmethod
    def from_url(cls, url: str) -> PageLocation:
        """Build a location from a page URL such as ``http://example.com:8080/``."""
        parts = urlsplit(url if "//" in url else f"//{url}")
        if not parts.hostname:
            raise ValueError(f"URL has no hostname: {url!r}")
        return cls(hostname=parts.hostname, port=parts.port)


class CloseEvent(BaseModel):
    """What a socket reports when it closes."""

    model_config = ConfigDict(frozen=True)

    code: int = Field(default=1006, description="WebSocket close code")
    reason: str = Field(default="")
    was_clean: bool = Field(default=False, description="Closing handshake completed")


def build_socket_url(location: PageLocation, path: str = SOCKET_PATH) -> str:
    """Return the insecure WebSocket URL for ``path`` on the page's host.

    The scheme is always ``ws``. A location without an explicit port
    yields a URL without one.
    """
    if not path.startswith("/"):
        path = "/" + path
    host = location.hostname
    if ":" in host:
        host = f"[{host}]"  # IPv6 literal
    if location.port is None:
        return f"ws://{host}{path}"
    return f"ws://{host}:{location.port}{path}"
