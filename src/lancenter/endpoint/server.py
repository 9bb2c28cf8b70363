"""FastAPI gateway server.

Serves the terminal page and the WebSocket endpoints that turn a raw
terminal byte stream into an SSH shell or a TCP connection:

    GET  /health       -> {"status": "ok", ...}
    GET  /             -> terminal page (xterm.js + ssh-client.js)
    WS   /ssh          <-> pty shell on the configured SSH host
    WS   /websockify   <-> configured TCP target (e.g. a VNC server)
    WS   /ws?network=tcp&address=host:port  <-> any TCP target
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from pathlib import Path
from typing import AsyncIterator, Awaitable, Callable

import uvicorn
from fastapi import FastAPI, WebSocket, status
from fastapi.responses import FileResponse
from fastapi.staticfiles import StaticFiles
from pydantic import BaseModel

from lancenter.config.settings import Settings, SshConfig
from lancenter.endpoint.relay import (
    TargetConnectError,
    TcpTarget,
    Upstream,
    close_quietly,
    parse_address,
    relay,
)
from lancenter.endpoint.ssh import SshSessionError, SshShell

logger = logging.getLogger(__name__)

STATIC_DIR = Path(__file__).parent / "static"

ShellFactory = Callable[[SshConfig], Awaitable[Upstream]]


class HealthResponse(BaseModel):
    status: str = "ok"
    ssh_target: str = ""
    websockify_target: str = ""
    active_sessions: int = 0


def create_app(
    settings: Settings | None = None,
    shell_factory: ShellFactory | None = None,
    static_dir: Path | str | None = None,
) -> FastAPI:
    """Create and configure the gateway application.

    Args:
        settings: Loaded settings. Defaults are used if None.
        shell_factory: Coroutine opening an SSH shell (for testing).
        static_dir: Directory holding ``index.html`` and the client script.
    """
    if settings is None:
        settings = Settings()
    server = settings.server
    ssh = settings.ssh
    static_path = Path(static_dir or server.static_dir or STATIC_DIR)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        logger.info(
            "Gateway started (ssh=%s@%s:%d, websockify=%s:%d)",
            ssh.username, ssh.host, ssh.port, server.websockify_host, server.websockify_port,
        )
        yield
        logger.info("Gateway stopped")

    app = FastAPI(
        title="lancenter gateway",
        description="WebSocket terminal gateway: SSH shells and TCP tunnels",
        version="0.1.0",
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.shell_factory = shell_factory or SshShell.open
    app.state.active_sessions = 0

    async def _run_session(websocket: WebSocket, upstream: Upstream, text_output: bool) -> None:
        app.state.active_sessions += 1
        try:
            await relay(websocket, upstream, buffer_size=server.buffer_size, text_output=text_output)
        finally:
            app.state.active_sessions -= 1

    @app.get("/health")
    async def health_check() -> HealthResponse:
        return HealthResponse(
            status="ok",
            ssh_target=f"{ssh.username}@{ssh.host}:{ssh.port}",
            websockify_target=f"{server.websockify_host}:{server.websockify_port}",
            active_sessions=app.state.active_sessions,
        )

    @app.get("/", include_in_schema=False)
    async def index() -> FileResponse:
        return FileResponse(static_path / "index.html")

    app.mount("/static", StaticFiles(directory=static_path), name="static")

    # -------------------------------------------------------------------
    # WebSocket endpoints
    # -------------------------------------------------------------------

    @app.websocket("/ssh")
    async def ssh_socket(websocket: WebSocket) -> None:
        await websocket.accept()
        logger.info("New SSH websocket from %s", websocket.client)
        try:
            shell = await app.state.shell_factory(ssh)
        except SshSessionError as e:
            logger.error("SSH dial error: %s", e)
            await close_quietly(
                websocket, code=status.WS_1011_INTERNAL_ERROR, reason="SSH session failed",
            )
            return
        await _run_session(websocket, shell, text_output=True)

    @app.websocket("/websockify")
    async def websockify_socket(websocket: WebSocket) -> None:
        await websocket.accept()
        try:
            target = await TcpTarget.open(server.websockify_host, server.websockify_port)
        except TargetConnectError as e:
            logger.error("Error connecting to websockify target: %s", e)
            await close_quietly(
                websocket, code=status.WS_1011_INTERNAL_ERROR, reason="Target unreachable",
            )
            return
        await _run_session(websocket, target, text_output=False)

    @app.websocket("/ws")
    async def tunnel_socket(
        websocket: WebSocket,
        network: str | None = None,
        address: str | None = None,
    ) -> None:
        if not network or not address:
            logger.warning("Rejected tunnel: missing 'network' or 'address' query parameters")
            await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
            return
        if network not in server.allowed_networks:
            logger.warning("Rejected tunnel: network %r not allowed", network)
            await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
            return
        try:
            host, port = parse_address(address)
        except ValueError as e:
            logger.warning("Rejected tunnel: %s", e)
            await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
            return

        logger.info("New websocket connection to %s %s", network, address)
        await websocket.accept()
        try:
            target = await TcpTarget.open(host, port, network=network)
        except TargetConnectError as e:
            logger.error("%s", e)
            await close_quietly(
                websocket, code=status.WS_1011_INTERNAL_ERROR, reason="Target unreachable",
            )
            return
        await _run_session(websocket, target, text_output=False)

    return app


def main(settings: Settings | None = None) -> None:
    """Run the gateway standalone."""
    settings = settings or Settings()
    app = create_app(settings)
    uvicorn.run(app, host=settings.server.host, port=settings.server.port)


if __name__ == "__main__":
    main()
