"""Message-oriented channels over the ``ipc`` and ``inproc`` transports.

A ``Channel`` plays one of two roles:

* ``RENDEZVOUS``: request/reply.  The connecting side sends requests; the
  bound side answers each one exactly once, oldest first.
* ``SESSION``: a symmetric pair.  Either side may send at any time and the
  bound side accepts a single peer.

Frames are compact JSON documents, one per line.  Every inbound frame is run
through the ``MessageValidator``; frames that fail are logged and dropped
before ``on_message`` is called.
"""

from __future__ import annotations

import asyncio
import contextlib
import inspect
import itertools
import logging
from collections import deque
from dataclasses import dataclass
from enum import StrEnum
from typing import TYPE_CHECKING

from gateway_addon.constants import MAX_LINE_BYTES, IPCProtocol
from gateway_addon.errors import ChannelStateError, MessageValidationError, TransportFatalError
from gateway_addon.ipc.addresses import ChannelAddress, default_address_registry, parse_protocol
from gateway_addon.ipc.transports import InProcTransport, UnixSocketTransport
from gateway_addon.ipc.validator import get_default_validator
from gateway_addon.paths import get_default_ipc_dir

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

    from gateway_addon.config import IPCConfig
    from gateway_addon.ipc.addresses import AddressRegistry
    from gateway_addon.ipc.messages import Message
    from gateway_addon.ipc.transports import InProcHub, ServerHandle, Transport
    from gateway_addon.ipc.validator import MessageValidator

    OnMessage = Callable[[Message], Awaitable[None] | None]

logger = logging.getLogger(__name__)
trace_logger = logging.getLogger("gateway_addon.ipc.trace")

_channel_ids = itertools.count(1)
_MAX_LOGGED_FRAME = 200


class ChannelRole(StrEnum):
    RENDEZVOUS = "rendezvous"
    SESSION = "session"


class ChannelState(StrEnum):
    IDLE = "idle"
    BOUND = "bound"
    CONNECTED = "connected"


@dataclass(eq=False)
class _Link:
    reader: asyncio.StreamReader
    writer: asyncio.StreamWriter
    task: asyncio.Task[None] | None = None

    @property
    def closing(self) -> bool:
        return self.writer.is_closing()


class Channel:
    """One endpoint of a rendezvous or session channel.

    Usage::

        channel = Channel("PluginClient", ChannelRole.SESSION, on_message=handle)
        await channel.connect("acme.session")
        channel.send(Message.create(MessageType.PROPERTY_CHANGED, {...}))
        await channel.close()

    Calling ``bind`` or ``connect`` on a channel that is already bound or
    connected is logged as a usage error and still goes ahead; the same holds
    for a session address bound or connected twice in this process.  With
    ``strict=True`` those cases raise ``ChannelStateError`` instead.
    """

    def __init__(
        self,
        name: str,
        role: ChannelRole,
        *,
        protocol: str = IPCProtocol.IPC,
        on_message: OnMessage | None = None,
        ipc_dir: str | None = None,
        app_instance: str = "gateway",
        strict: bool = False,
        validator: MessageValidator | None = None,
        address_registry: AddressRegistry | None = None,
        inproc_hub: InProcHub | None = None,
    ) -> None:
        self._protocol = parse_protocol(protocol)
        self._transport: Transport = (
            UnixSocketTransport()
            if self._protocol is IPCProtocol.IPC
            else InProcTransport(inproc_hub)
        )
        self._id = next(_channel_ids)
        self._label = f"{name}#{self._id}"
        self.name = name
        self.role = role
        self.on_message = on_message
        self._ipc_dir = ipc_dir or get_default_ipc_dir()
        self._app_instance = app_instance
        self._strict = strict
        self._validator = validator or get_default_validator()
        self._registry = address_registry or default_address_registry

        self._bound = False
        self._connected = False
        self._address: ChannelAddress | None = None
        self._claims: list[tuple[ChannelState, ChannelAddress]] = []
        self._servers: list[ServerHandle] = []
        self._links: set[_Link] = set()
        self._peer: _Link | None = None
        self._awaiting_reply: deque[_Link] = deque()
        self._loop: asyncio.AbstractEventLoop | None = None

    @classmethod
    def from_config(
        cls,
        name: str,
        role: ChannelRole,
        config: IPCConfig,
        **kwargs: object,
    ) -> Channel:
        """Build a channel using the transport settings of an ``IPCConfig``."""
        return cls(
            name,
            role,
            protocol=config.protocol,
            ipc_dir=config.ipc_dir,
            app_instance=config.app_instance,
            strict=config.strict_socket_state,
            **kwargs,  # type: ignore[arg-type]
        )

    @property
    def state(self) -> ChannelState:
        if self._connected:
            return ChannelState.CONNECTED
        if self._bound:
            return ChannelState.BOUND
        return ChannelState.IDLE

    @property
    def address(self) -> ChannelAddress | None:
        """Address of the most recent ``bind``/``connect``."""
        return self._address

    @property
    def has_peer(self) -> bool:
        """Whether a session peer (or the connected remote end) is attached."""
        return self._peer is not None and not self._peer.closing

    def resolve(self, base_addr: str) -> ChannelAddress:
        """Concrete address for *base_addr* under this channel's protocol."""
        return ChannelAddress.for_base(
            self._protocol,
            base_addr,
            ipc_dir=self._ipc_dir,
            app_instance=self._app_instance,
        )

    # ------------------------------------------------------------------
    # Setup / teardown
    # ------------------------------------------------------------------

    async def bind(self, base_addr: str) -> ChannelAddress:
        """Listen on *base_addr*.

        Raises:
            TransportFatalError: If the transport cannot listen at all.
            ChannelStateError: On misuse, only when strict checking is enabled.
        """
        address = self.resolve(base_addr)
        problems = self._state_problems(address)
        if self.role is ChannelRole.SESSION and self._registry.is_bound(address):
            problems.append(f"address already bound: {address}")
        self._report(problems)

        self._bound = True
        self._address = address
        self._loop = asyncio.get_running_loop()
        if self.role is ChannelRole.SESSION:
            self._registry.claim_bound(address)
            self._claims.append((ChannelState.BOUND, address))

        try:
            handle = await self._transport.start_server(address.location, self._accept)
        except OSError as exc:
            self._bound = bool(self._servers)
            self._forget_claim(ChannelState.BOUND, address)
            msg = f"Cannot bind {address}: {exc}"
            raise TransportFatalError(msg) from exc
        self._servers.append(handle)
        logger.debug("%s: bound %s (%s)", self._label, address, self.role)
        return address

    async def connect(self, base_addr: str) -> ChannelAddress:
        """Connect to the endpoint bound at *base_addr*.

        Raises:
            TransportFatalError: If nothing can be reached at the address.
            ChannelStateError: On misuse, only when strict checking is enabled.
        """
        address = self.resolve(base_addr)
        problems = self._state_problems(address)
        if self.role is ChannelRole.SESSION and self._registry.is_connected(address):
            problems.append(f"address already connected: {address}")
        self._report(problems)

        self._connected = True
        self._address = address
        self._loop = asyncio.get_running_loop()
        if self.role is ChannelRole.SESSION:
            self._registry.claim_connected(address)
            self._claims.append((ChannelState.CONNECTED, address))

        try:
            reader, writer = await self._transport.connect(address.location)
        except OSError as exc:
            self._connected = self._peer is not None
            self._forget_claim(ChannelState.CONNECTED, address)
            msg = f"Cannot connect to {address}: {exc}"
            raise TransportFatalError(msg) from exc

        link = _Link(reader, writer)
        link.task = self._loop.create_task(self._read_loop(link))
        self._links.add(link)
        self._peer = link
        logger.debug("%s: connected %s (%s)", self._label, address, self.role)
        return address

    async def close(self) -> None:
        """Close links and listeners and release address claims."""
        if not self._bound and not self._connected:
            logger.error("%s: socket not connected or bound: %s", self._label, self._address)
            return

        self._bound = False
        self._connected = False
        for state, address in self._claims:
            self._release(state, address)
        self._claims.clear()

        current = asyncio.current_task()
        pending: list[asyncio.Task[None]] = []
        for link in list(self._links):
            link.writer.close()
            if link.task is not None and link.task is not current and not link.task.done():
                link.task.cancel()
                pending.append(link.task)
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)
        self._links.clear()
        self._peer = None
        self._awaiting_reply.clear()

        servers, self._servers = self._servers, []
        for handle in servers:
            if handle.close is not None:
                await handle.close()
        logger.debug("%s: closed %s", self._label, self._address)

    # ------------------------------------------------------------------
    # Sending
    # ------------------------------------------------------------------

    def send(self, message: Message) -> None:
        """Send *message* without waiting for delivery.

        From a thread other than the channel's event loop the send is handed
        to the loop.  With no peer to send to, the message is logged and dropped.
        """
        if self._loop is not None:
            try:
                running = asyncio.get_running_loop()
            except RuntimeError:
                running = None
            if running is not self._loop:
                try:
                    self._loop.call_soon_threadsafe(self._send_now, message)
                except RuntimeError:
                    logger.warning(
                        "%s: event loop closed, dropping %s",
                        self._label,
                        message.message_type,
                    )
                return
        self._send_now(message)

    def _send_now(self, message: Message) -> None:
        link = self._send_link()
        if link is None or link.closing:
            logger.warning(
                "%s: no peer on %s, dropping %s",
                self._label,
                self._address,
                message.message_type,
            )
            return

        frame = message.to_wire()
        trace_logger.debug("%s Sending: %s", self._label, frame.decode("utf-8"))
        try:
            link.writer.write(frame + b"\n")
        except (ConnectionError, OSError, RuntimeError) as exc:
            logger.warning("%s: send of %s failed: %s", self._label, message.message_type, exc)

    def _send_link(self) -> _Link | None:
        if self._connected:
            return self._peer
        if not self._bound:
            return None
        if self.role is ChannelRole.SESSION:
            return self._peer
        while self._awaiting_reply:
            link = self._awaiting_reply.popleft()
            if not link.closing:
                return link
        logger.error("%s: reply sent with no outstanding request", self._label)
        return None

    # ------------------------------------------------------------------
    # Receiving
    # ------------------------------------------------------------------

    async def _accept(self, reader: asyncio.StreamReader, writer: asyncio.StreamWriter) -> None:
        """Serve one connection accepted by the listener."""
        link = _Link(reader, writer, task=asyncio.current_task())  # type: ignore[arg-type]
        if self.role is ChannelRole.SESSION and self.has_peer:
            logger.warning("%s: session %s already has a peer, refusing", self._label, self._address)
            writer.close()
            with contextlib.suppress(ConnectionError, OSError):
                await writer.wait_closed()
            return

        self._links.add(link)
        if self.role is ChannelRole.SESSION:
            self._peer = link
        await self._read_loop(link)

    async def _read_loop(self, link: _Link) -> None:
        try:
            while True:
                try:
                    raw = await link.reader.readline()
                except ValueError:
                    logger.warning("%s: frame exceeded stream framing limit", self._label)
                    break
                if not raw:
                    break
                if len(raw) > MAX_LINE_BYTES + 1:
                    logger.warning("%s: oversized frame (%d bytes)", self._label, len(raw))
                    break
                line = raw.strip()
                if line:
                    await self._deliver(line, link)
        except (ConnectionError, OSError):
            logger.debug("%s: link lost on %s", self._label, self._address)
        finally:
            self._drop_link(link)

    async def _deliver(self, line: bytes, link: _Link) -> None:
        trace_logger.debug("%s Rcvd: %s", self._label, line.decode("utf-8", "replace"))
        try:
            message = self._validator.validate(line)
        except MessageValidationError as exc:
            logger.error(
                "%s: dropping invalid frame [%s] %s: %r",
                self._label,
                exc.kind,
                exc.message,
                line[:_MAX_LOGGED_FRAME],
            )
            return
        except Exception:
            logger.exception("%s: dropping undecodable frame: %r", self._label, line[:_MAX_LOGGED_FRAME])
            return

        if self.role is ChannelRole.RENDEZVOUS and self._bound:
            self._awaiting_reply.append(link)

        handler = self.on_message
        if handler is None:
            logger.debug("%s: no handler, dropping %s", self._label, message.message_type)
            return
        try:
            result = handler(message)
            if inspect.isawaitable(result):
                await result
        except Exception:
            logger.exception("%s: handler failed for %s", self._label, message.message_type)

    def _drop_link(self, link: _Link) -> None:
        self._links.discard(link)
        if self._peer is link:
            self._peer = None
            logger.info("%s: peer disconnected from %s", self._label, self._address)
        if not link.closing:
            link.writer.close()

    # ------------------------------------------------------------------
    # State checks
    # ------------------------------------------------------------------

    def _state_problems(self, address: ChannelAddress) -> list[str]:
        problems: list[str] = []
        if self._bound:
            problems.append(f"socket already bound: {address}")
        if self._connected:
            problems.append(f"socket already connected: {address}")
        return problems

    def _release(self, state: ChannelState, address: ChannelAddress) -> None:
        if state is ChannelState.BOUND:
            self._registry.release_bound(address)
        else:
            self._registry.release_connected(address)

    def _forget_claim(self, state: ChannelState, address: ChannelAddress) -> None:
        if (state, address) in self._claims:
            self._claims.remove((state, address))
            self._release(state, address)

    def _report(self, problems: list[str]) -> None:
        if not problems:
            return
        if self._strict:
            raise ChannelStateError("; ".join(problems))
        for problem in problems:
            logger.error("%s: %s", self._label, problem)


__all__ = ["Channel", "ChannelRole", "ChannelState"]
