"""Tunnel client module for lancenter.

Public API:
    WebSocketTunnel -- Byte stream to a TCP target through ``/ws``
    TunnelError -- Base error
    TunnelTimeoutError -- Read timeout
"""

from lancenter.tunnel.client import TunnelError, TunnelTimeoutError, WebSocketTunnel

__all__ = ["TunnelError", "TunnelTimeoutError", "WebSocketTunnel"]
