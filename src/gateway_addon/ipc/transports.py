"""Stream transports behind the ``ipc`` and ``inproc`` address protocols.

Both transports hand out ``asyncio`` stream pairs, so channels frame and read
messages the same way regardless of protocol.  ``UnixSocketTransport`` backs
``ipc`` addresses with a socket file; ``InProcTransport`` backs ``inproc``
addresses with a named listener table and ``socket.socketpair()`` links.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
import os
import socket
import sys
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from gateway_addon.constants import STREAM_LIMIT_BYTES, IPCProtocol

if TYPE_CHECKING:
    from collections.abc import Callable, Coroutine
    from typing import Any

    ClientHandler = Callable[
        [asyncio.StreamReader, asyncio.StreamWriter],
        Coroutine[Any, Any, None],
    ]

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Shared types
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ServerHandle:
    """Handle returned after starting a transport listener.

    Attributes:
        protocol: Address protocol the listener serves.
        location: Socket file path or in-process channel name.
        close: Async callable to shut down the listener.
    """

    protocol: IPCProtocol
    location: str
    close: Callable[[], Coroutine[Any, Any, None]] | None = None


# ---------------------------------------------------------------------------
# Unix socket transport (ipc://)
# ---------------------------------------------------------------------------


class UnixSocketTransport:
    """Transport over Unix domain sockets at a filesystem path."""

    protocol = IPCProtocol.IPC

    async def start_server(self, location: str, handler: ClientHandler) -> ServerHandle:
        """Bind a Unix socket server at *location*.

        Any stale socket file is removed before binding.  On close, the file
        is removed only if it is still the one this listener created.
        """
        with contextlib.suppress(FileNotFoundError):
            os.unlink(location)

        parent = os.path.dirname(location)
        if parent:
            os.makedirs(parent, exist_ok=True)

        server = await asyncio.start_unix_server(
            handler,
            path=location,
            limit=STREAM_LIMIT_BYTES,
        )

        if sys.platform != "win32":
            os.chmod(location, 0o600)
        inode = os.stat(location).st_ino

        logger.debug("Unix socket listening on %s", location)

        async def _close() -> None:
            server.close()
            await server.wait_closed()
            with contextlib.suppress(FileNotFoundError):
                if os.stat(location).st_ino == inode:
                    os.unlink(location)
            logger.debug("Unix socket listener on %s stopped", location)

        return ServerHandle(protocol=self.protocol, location=location, close=_close)

    async def connect(self, location: str) -> tuple[asyncio.StreamReader, asyncio.StreamWriter]:
        """Open a connection to the Unix socket at *location*."""
        reader, writer = await asyncio.open_unix_connection(location, limit=STREAM_LIMIT_BYTES)
        logger.debug("Connected to Unix socket at %s", location)
        return reader, writer


# ---------------------------------------------------------------------------
# In-process transport (inproc://)
# ---------------------------------------------------------------------------


@dataclass
class InProcHub:
    """Name table of in-process listeners; a process-wide instance starts empty."""

    listeners: dict[str, ClientHandler] = field(default_factory=dict)
    connections: set[asyncio.Task[None]] = field(default_factory=set)


default_inproc_hub = InProcHub()


class InProcTransport:
    """Transport between channels living in the same process.

    Listeners are registered by name in an ``InProcHub``.  Each connection is
    a ``socket.socketpair()`` wrapped in asyncio streams.  Binding a name that
    is already listening replaces the previous listener, the same way
    re-binding a socket file does.
    """

    protocol = IPCProtocol.INPROC

    def __init__(self, hub: InProcHub | None = None) -> None:
        self._hub = hub or default_inproc_hub

    async def start_server(self, location: str, handler: ClientHandler) -> ServerHandle:
        """Register *handler* under *location*."""
        if location in self._hub.listeners:
            logger.debug("Replacing in-process listener %s", location)
        self._hub.listeners[location] = handler

        async def _close() -> None:
            if self._hub.listeners.get(location) is handler:
                del self._hub.listeners[location]
            logger.debug("In-process listener %s stopped", location)

        logger.debug("In-process listener registered at %s", location)
        return ServerHandle(protocol=self.protocol, location=location, close=_close)

    async def connect(self, location: str) -> tuple[asyncio.StreamReader, asyncio.StreamWriter]:
        """Open a connection to the listener registered under *location*.

        Raises:
            ConnectionRefusedError: If nothing is listening under *location*.
        """
        handler = self._hub.listeners.get(location)
        if handler is None:
            msg = f"No in-process listener at {location}"
            raise ConnectionRefusedError(msg)

        client_sock, server_sock = socket.socketpair()
        reader, writer = await asyncio.open_connection(sock=client_sock, limit=STREAM_LIMIT_BYTES)
        server_reader, server_writer = await asyncio.open_connection(
            sock=server_sock,
            limit=STREAM_LIMIT_BYTES,
        )
        task = asyncio.get_running_loop().create_task(handler(server_reader, server_writer))
        self._hub.connections.add(task)
        task.add_done_callback(self._hub.connections.discard)
        logger.debug("Connected to in-process listener %s", location)
        return reader, writer


Transport = UnixSocketTransport | InProcTransport

__all__ = [
    "ClientHandler",
    "InProcHub",
    "InProcTransport",
    "ServerHandle",
    "Transport",
    "UnixSocketTransport",
    "default_inproc_hub",
]
