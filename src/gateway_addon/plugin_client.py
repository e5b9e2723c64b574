"""Plugin side of the registration handshake.

``PluginClient.register()`` connects to the gateway's well-known rendezvous
address, announces the plugin id and waits for the reply naming the private
session address.  It then opens the session channel and hands back the
``AddonManagerProxy`` that routes all further traffic.
"""

from __future__ import annotations

import asyncio
import logging
from enum import StrEnum
from typing import TYPE_CHECKING, Any

from gateway_addon.addon_manager_proxy import AddonManagerProxy
from gateway_addon.config import IPCConfig
from gateway_addon.constants import MessageType
from gateway_addon.debug_log import setup_debug_logging
from gateway_addon.errors import ProtocolViolationError, TransportFatalError
from gateway_addon.ipc.channel import Channel, ChannelRole
from gateway_addon.ipc.messages import Message, PluginRegisterResponseData
from gateway_addon.version import get_gateway_addon_version

if TYPE_CHECKING:
    from collections.abc import Callable

    from gateway_addon.config import AddonConfig
    from gateway_addon.ipc.addresses import AddressRegistry
    from gateway_addon.ipc.transports import InProcHub
    from gateway_addon.ipc.validator import MessageValidator

logger = logging.getLogger(__name__)


class RegistrationState(StrEnum):
    IDLE = "idle"
    AWAITING_RESPONSE = "awaiting_response"
    REGISTERED = "registered"
    FAILED = "failed"


class PluginClient:
    """Connects one plugin process to the gateway.

    Attributes:
        plugin_id: Identifier announced in the registration request and
            stamped on every outbound notification.
        state: Current ``RegistrationState``.
        gateway_version: Reported by the gateway once registered.
        user_profile: Reported by the gateway once registered.
        addon_manager: The router, once registered.
    """

    def __init__(
        self,
        plugin_id: str,
        *,
        config: IPCConfig | None = None,
        verbose: bool = False,
        address_registry: AddressRegistry | None = None,
        inproc_hub: InProcHub | None = None,
        validator: MessageValidator | None = None,
    ) -> None:
        self.plugin_id = plugin_id
        self.config = config or IPCConfig()
        self.verbose = verbose
        self.state = RegistrationState.IDLE
        self.gateway_version: str | None = None
        self.user_profile: dict[str, Any] = {}
        self.addon_manager: AddonManagerProxy | None = None
        self.library_version = get_gateway_addon_version()

        self._channel_options: dict[str, Any] = {
            "address_registry": address_registry,
            "inproc_hub": inproc_hub,
            "validator": validator,
        }
        self._registration: asyncio.Future[AddonManagerProxy] | None = None
        self._manager_channel: Channel | None = None
        self._plugin_channel: Channel | None = None
        self._unloaded = asyncio.Event()
        self._unload_callbacks: list[Callable[[], object]] = []

    @classmethod
    def from_config(cls, plugin_id: str, config: AddonConfig, **kwargs: Any) -> PluginClient:
        """Build a client from loaded configuration and set up debug logging to match."""
        setup_debug_logging(
            verbose=config.logging.verbose,
            trace_messages=config.logging.trace_messages,
        )
        return cls(plugin_id, config=config.ipc, verbose=config.logging.verbose, **kwargs)

    @property
    def manager_channel(self) -> Channel | None:
        """The rendezvous channel while it is open."""
        return self._manager_channel

    @property
    def plugin_channel(self) -> Channel | None:
        """The session channel once registered."""
        return self._plugin_channel

    def _progress(self, msg: str, *args: object) -> None:
        logger.log(logging.INFO if self.verbose else logging.DEBUG, msg, *args)

    # ------------------------------------------------------------------
    # Handshake
    # ------------------------------------------------------------------

    async def register(self) -> AddonManagerProxy | None:
        """Register with the gateway and return the router.

        Only the first call sends a request; later calls log an error and
        return ``None``.  If the gateway answers with anything other than a
        registration response the client moves to ``FAILED`` and this
        coroutine never completes, so wrap it in ``asyncio.wait_for`` when a
        deadline matters.

        Raises:
            TransportFatalError: If the rendezvous or session channel cannot connect.
        """
        if self.state is not RegistrationState.IDLE:
            logger.error("Registration already attempted (state: %s)", self.state)
            return None

        registration: asyncio.Future[AddonManagerProxy] = asyncio.get_running_loop().create_future()
        self._registration = registration
        self.state = RegistrationState.AWAITING_RESPONSE

        channel = Channel.from_config(
            "PluginClientServer",
            ChannelRole.RENDEZVOUS,
            self.config,
            on_message=self._on_manager_message,
            **self._channel_options,
        )
        self._manager_channel = channel
        try:
            await channel.connect(self.config.rendezvous_addr)
        except TransportFatalError:
            self.state = RegistrationState.FAILED
            self._registration = None
            self._manager_channel = None
            raise

        self._progress(
            "Connected to %s, registering %s (gateway-addon %s)",
            channel.address,
            self.plugin_id,
            self.library_version,
        )
        channel.send(
            Message.create(MessageType.PLUGIN_REGISTER_REQUEST, {"pluginId": self.plugin_id}),
        )
        return await registration

    async def _on_manager_message(self, message: Message) -> None:
        self._progress("Received manager message %s", message.message_type)

        registration = self._registration
        if self.state is not RegistrationState.AWAITING_RESPONSE or registration is None:
            logger.error("No registration in flight, dropping %s", message.message_type)
            return

        if message.known_type is not MessageType.PLUGIN_REGISTER_RESPONSE:
            self.state = RegistrationState.FAILED
            error = ProtocolViolationError(
                f"Unexpected {message.message_type} while awaiting registration reply",
            )
            logger.error("%s [%s]: %r", error.message, error.kind, message.data)
            return

        data = PluginRegisterResponseData.model_validate(message.data)
        self.gateway_version = data.gateway_version
        self.user_profile = dict(data.user_profile)
        self.addon_manager = AddonManagerProxy(self)

        session = Channel.from_config(
            "PluginClient",
            ChannelRole.SESSION,
            self.config,
            on_message=self.addon_manager.on_message,
            **self._channel_options,
        )
        self._plugin_channel = session
        try:
            await session.connect(data.ipc_base_addr)
        except TransportFatalError as exc:
            self.state = RegistrationState.FAILED
            self._registration = None
            self._plugin_channel = None
            self.addon_manager = None
            if not registration.done():
                registration.set_exception(exc)
            return

        self.state = RegistrationState.REGISTERED
        self._registration = None
        self._progress("Registered with gateway %s at %s", self.gateway_version, session.address)

        if self.config.close_rendezvous_after_register and self._manager_channel is not None:
            await self._manager_channel.close()
            self._manager_channel = None

        if not registration.done():
            registration.set_result(self.addon_manager)

    # ------------------------------------------------------------------
    # Session
    # ------------------------------------------------------------------

    def send_notification(self, message_type: MessageType | str, data: dict[str, Any]) -> None:
        """Send *data* on the session channel with ``pluginId`` stamped in."""
        if self._plugin_channel is None:
            logger.warning("Not registered, dropping %s", message_type)
            return
        payload = {**data, "pluginId": self.plugin_id}
        self._plugin_channel.send(Message.create(message_type, payload))

    async def unload(self) -> None:
        """Close both channels and fire the unloaded signal."""
        if self._unloaded.is_set():
            return
        if self._plugin_channel is not None:
            await self._plugin_channel.close()
            self._plugin_channel = None
        if self._manager_channel is not None:
            await self._manager_channel.close()
            self._manager_channel = None

        self._unloaded.set()
        for callback in self._unload_callbacks:
            try:
                callback()
            except Exception:
                logger.exception("Unload callback %r failed", callback)

    @property
    def unloaded(self) -> bool:
        return self._unloaded.is_set()

    async def wait_until_unloaded(self) -> None:
        await self._unloaded.wait()

    def add_unload_callback(self, callback: Callable[[], object]) -> None:
        self._unload_callbacks.append(callback)


__all__ = ["PluginClient", "RegistrationState"]
