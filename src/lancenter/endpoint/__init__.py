"""Gateway server module for lancenter.

A FastAPI application that serves the browser terminal page and bridges
its WebSocket to an SSH shell, plus raw TCP tunnels for websockify-style
clients and the tunnel client.
"""
