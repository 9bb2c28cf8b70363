"""lancenter -- WebSocket terminal gateway.

Relays raw terminal bytes between a terminal surface (xterm.js in the
browser, or the local console) and a WebSocket, and serves the gateway
that turns those sockets into SSH shells and TCP tunnels.
"""

__version__ = "0.1.0"
