"""Terminal surface over the local console.

The real terminal emulator is whatever the user runs lancenter in; this
class only switches stdin to raw mode, forwards keystrokes and writes
output bytes through untouched.
"""

from __future__ import annotations

import asyncio
import codecs
import logging
import os
import sys
import termios
import tty
from typing import Any, BinaryIO, Callable, TextIO

from lancenter.bridge.base import Payload, TerminalSurface

logger = logging.getLogger(__name__)

READ_SIZE = 1024

# Ctrl+] leaves the session, as in telnet
ESCAPE_CHAR = "\x1d"


class ConsoleTerminal(TerminalSurface):
    """Renders to stdout and reads keystrokes from stdin.

    Must be opened from within a running asyncio event loop; stdin is
    watched with ``loop.add_reader`` so input arrives on the same loop as
    socket events.
    """

    def __init__(
        self,
        stdin: TextIO | BinaryIO | None = None,
        stdout: TextIO | BinaryIO | None = None,
        escape: str | None = ESCAPE_CHAR,
        on_escape: Callable[[], None] | None = None,
    ) -> None:
        self._stdin = stdin if stdin is not None else sys.stdin
        self._stdout = stdout if stdout is not None else sys.stdout
        self._escape = escape
        self._on_escape = on_escape
        self._output: BinaryIO | None = None
        self._callback: Callable[[str], None] | None = None
        self._decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
        self._saved_attrs: list[Any] | None = None
        self._loop: asyncio.AbstractEventLoop | None = None
        self._fd: int | None = None

    @property
    def is_open(self) -> bool:
        return self._fd is not None

    def open(self, container: Any = None) -> None:
        """Start rendering into ``container`` (default: stdout) and reading stdin."""
        target = container if container is not None else self._stdout
        self._output = getattr(target, "buffer", target)

        fd = self._stdin.fileno()
        self._loop = asyncio.get_running_loop()
        self._fd = fd
        if os.isatty(fd):
            self._saved_attrs = termios.tcgetattr(fd)
            tty.setraw(fd)
            logger.debug("Console switched to raw mode")

        try:
            self._loop.add_reader(fd, self._on_readable)
        except (OSError, ValueError):
            # e.g. stdin redirected from a regular file, which epoll cannot watch
            self.close()
            raise

    def write(self, data: Payload) -> None:
        if self._output is None:
            return
        if isinstance(data, str):
            data = data.encode("utf-8")
        self._output.write(data)
        self._output.flush()

    def on_data(self, callback: Callable[[str], None]) -> None:
        self._callback = callback

    def close(self) -> None:
        """Stop reading stdin and restore the TTY settings."""
        if self._fd is None:
            return
        if self._loop is not None:
            self._loop.remove_reader(self._fd)
        if self._saved_attrs is not None:
            termios.tcsetattr(self._fd, termios.TCSADRAIN, self._saved_attrs)
            self._saved_attrs = None
            logger.debug("Console restored")
        self._fd = None

    def _on_readable(self) -> None:
        try:
            chunk = os.read(self._fd, READ_SIZE)
        except OSError as e:
            logger.warning("Console read failed: %s", e)
            chunk = b""
        if not chunk:
            # stdin closed; keep the socket, stop watching input
            if self._loop is not None and self._fd is not None:
                self._loop.remove_reader(self._fd)
            return
        text = self._decoder.decode(chunk)
        escaped = False
        if self._escape and self._escape in text:
            text, _, _ = text.partition(self._escape)
            escaped = True
        if text and self._callback is not None:
            self._callback(text)
        if escaped:
            logger.debug("Escape character received")
            if self._on_escape is not None:
                self._on_escape()
