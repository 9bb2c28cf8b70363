"""SSH shell sessions for the ``/ssh`` gateway endpoint.

Opens a paramiko client, requests a pseudo-terminal and starts an
interactive shell. Output is polled with ``recv_ready()`` on the event loop
so an idle session holds no worker thread; the short blocking calls
(connect, send, close) run in a worker thread.
"""

from __future__ import annotations

import asyncio
import logging

import paramiko

from lancenter.config.settings import SshConfig

logger = logging.getLogger(__name__)

# Seconds between output checks on an idle channel
POLL_INTERVAL = 0.01


class SshShell:
    """An interactive shell on a remote host.

    Usage::

        shell = await SshShell.open(settings.ssh)
        await shell.write(b"ls\\n")
        data = await shell.read(1024)
        await shell.close()
    """

    def __init__(self, client: paramiko.SSHClient, channel: paramiko.Channel) -> None:
        self._client = client
        self._channel = channel

    @property
    def is_alive(self) -> bool:
        return not self._channel.closed

    @classmethod
    async def open(cls, config: SshConfig) -> SshShell:
        """Connect and start a pty shell.

        Raises:
            SshSessionError: If connecting, authenticating, or starting
                             the shell fails.
        """
        client, channel = await asyncio.to_thread(_open_shell, config)
        logger.info(
            "SSH shell started: %s@%s:%d (%s %dx%d)",
            config.username, config.host, config.port, config.term, config.cols, config.rows,
        )
        return cls(client, channel)

    async def read(self, size: int) -> bytes:
        """Read up to ``size`` bytes of shell output; ``b""`` once the shell is gone."""
        try:
            while not self._channel.recv_ready():
                if self._channel.closed:
                    return b""
                if self._channel.eof_received:
                    # Buffer is drained and closed; recv returns b"" at once
                    break
                await asyncio.sleep(POLL_INTERVAL)
            return self._channel.recv(size)
        except (paramiko.SSHException, OSError) as e:
            raise SshSessionError(f"Failed to read from SSH shell: {e}") from e

    async def write(self, data: bytes) -> None:
        try:
            await asyncio.to_thread(self._channel.sendall, data)
        except (paramiko.SSHException, OSError) as e:
            raise SshSessionError(f"Failed to write to SSH shell: {e}") from e

    async def resize(self, cols: int, rows: int) -> None:
        await asyncio.to_thread(self._channel.resize_pty, width=cols, height=rows)

    async def close(self) -> None:
        """Close the channel and the client. Safe to call more than once."""
        self._channel.close()
        await asyncio.to_thread(self._client.close)
        logger.info("SSH shell closed")


def _open_shell(config: SshConfig) -> tuple[paramiko.SSHClient, paramiko.Channel]:
    client = paramiko.SSHClient()
    if config.host_key_policy == "auto_add":
        client.set_missing_host_key_policy(paramiko.AutoAddPolicy())
    else:
        client.load_system_host_keys()
        client.set_missing_host_key_policy(paramiko.RejectPolicy())

    kwargs: dict = {
        "hostname": config.host,
        "port": config.port,
        "username": config.username or None,
        "timeout": config.connect_timeout,
    }
    password = config.password.get_secret_value()
    if password:
        kwargs["password"] = password
        kwargs["look_for_keys"] = False
        kwargs["allow_agent"] = False
    if config.key_filename:
        kwargs["key_filename"] = config.key_filename

    try:
        client.connect(**kwargs)
        channel = client.get_transport().open_session()
        channel.get_pty(term=config.term, width=config.cols, height=config.rows)
        channel.invoke_shell()
    except (paramiko.SSHException, OSError) as e:
        client.close()
        raise SshSessionError(
            f"SSH session to {config.host}:{config.port} failed: {e}"
        ) from e
    return client, channel


class SshSessionError(Exception):
    """Raised when an SSH shell cannot be opened or used."""
