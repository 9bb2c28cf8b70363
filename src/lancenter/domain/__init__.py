"""Domain types for lancenter.

Value objects and constants used by the connection bridge, the gateway
server and the tunnel client. Models use Pydantic v2.
"""

from lancenter.domain.models import (
    DISCONNECT_BANNER,
    SOCKET_PATH,
    CloseEvent,
    PageLocation,
    ReadyState,
    build_socket_url,
)

__all__ = [
    "DISCONNECT_BANNER",
    "SOCKET_PATH",
    "CloseEvent",
    "PageLocation",
    "ReadyState",
    "build_socket_url",
]
