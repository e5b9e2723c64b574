"""Dispatch router between the session channel and the registered domain objects.

Inbound control messages are looked up in the dispatch map and run as
background tasks; domain events from adapters, devices and notifiers are
turned into outbound notifications.  The proxy never retries and holds no
timers.
"""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING, Any

from pydantic import ValidationError

from gateway_addon.constants import MessageType
from gateway_addon.dispatch_map import build_dispatch_map
from gateway_addon.errors import UnknownTargetError
from gateway_addon.registry import DispatchRegistry
from gateway_addon.utils import drop_none, spawn_background

if TYPE_CHECKING:
    from collections.abc import Mapping

    from gateway_addon.dispatch_map import MessageHandler
    from gateway_addon.ipc.messages import Message
    from gateway_addon.models.action import Action
    from gateway_addon.models.adapter import Adapter
    from gateway_addon.models.device import Device
    from gateway_addon.models.event import Event
    from gateway_addon.models.notifier import Notifier
    from gateway_addon.models.outlet import Outlet
    from gateway_addon.models.property import Property
    from gateway_addon.plugin_client import PluginClient

logger = logging.getLogger(__name__)


class AddonManagerProxy:
    """The ``AddonManager`` seen by domain objects, backed by the plugin's session channel."""

    def __init__(
        self,
        plugin_client: PluginClient,
        *,
        dispatch_map: Mapping[MessageType, MessageHandler] | None = None,
    ) -> None:
        self.plugin_client = plugin_client
        self.registry = DispatchRegistry()
        self._dispatch = dict(dispatch_map if dispatch_map is not None else build_dispatch_map())
        self._tasks: set[asyncio.Task[Any]] = set()
        self._closed = False

    @property
    def gateway_version(self) -> str | None:
        return self.plugin_client.gateway_version

    @property
    def user_profile(self) -> dict[str, Any]:
        return self.plugin_client.user_profile

    @property
    def closed(self) -> bool:
        return self._closed

    # ------------------------------------------------------------------
    # Inbound
    # ------------------------------------------------------------------

    def on_message(self, message: Message) -> None:
        """Session channel callback: schedule the handler for *message*."""
        if self._closed:
            logger.debug("Router closed, dropping %s", message.message_type)
            return

        handler = self._dispatch.get(message.known_type)  # type: ignore[arg-type]
        if handler is None:
            logger.warning("Unhandled message type %s", message.message_type)
            return

        spawn_background(
            self._run(handler, message),
            self._tasks,
            name=f"dispatch:{message.message_type}",
        )

    async def _run(self, handler: MessageHandler, message: Message) -> None:
        try:
            await handler(self, message)
        except UnknownTargetError as exc:
            logger.error("Dropping %s: %s", message.message_type, exc)
        except ValidationError as exc:
            logger.error("Dropping %s with unusable payload: %s", message.message_type, exc)
        except Exception:
            logger.exception("Handler for %s failed", message.message_type)

    async def wait_idle(self) -> None:
        """Wait until every scheduled handler has finished."""
        current = asyncio.current_task()
        while pending := [task for task in self._tasks if task is not current]:
            await asyncio.gather(*pending, return_exceptions=True)

    # ------------------------------------------------------------------
    # Registration
    # ------------------------------------------------------------------

    def add_adapter(self, adapter: Adapter) -> None:
        """Register *adapter* for dispatch and announce it to the gateway."""
        self.registry.adapters[adapter.id] = adapter
        self.send(
            MessageType.ADAPTER_ADDED,
            {"adapterId": adapter.id, "name": adapter.name, "packageName": adapter.package_name},
        )

    def add_notifier(self, notifier: Notifier) -> None:
        """Register *notifier* for dispatch and announce it to the gateway."""
        self.registry.notifiers[notifier.id] = notifier
        self.send(
            MessageType.NOTIFIER_ADDED,
            {"notifierId": notifier.id, "name": notifier.name, "packageName": notifier.package_name},
        )

    def unregister_adapter(self, adapter_id: str) -> None:
        if self.registry.adapters.pop(adapter_id, None) is None:
            logger.warning("Adapter %s was not registered", adapter_id)

    def unregister_notifier(self, notifier_id: str) -> None:
        if self.registry.notifiers.pop(notifier_id, None) is None:
            logger.warning("Notifier %s was not registered", notifier_id)

    async def unload_all(self) -> None:
        """Unload and unregister every adapter and notifier."""
        for adapter in list(self.registry.adapters.values()):
            try:
                await adapter.unload()
            except Exception:
                logger.exception("Adapter %s failed to unload", adapter.id)
        for notifier in list(self.registry.notifiers.values()):
            try:
                await notifier.unload()
            except Exception:
                logger.exception("Notifier %s failed to unload", notifier.id)
        self.registry.clear()

    async def close(self) -> None:
        """Stop routing and unload the plugin client, closing its channels."""
        if self._closed:
            return
        self._closed = True
        await self.plugin_client.unload()

    # ------------------------------------------------------------------
    # Outbound
    # ------------------------------------------------------------------

    def send(self, message_type: MessageType, data: dict[str, Any]) -> None:
        self.plugin_client.send_notification(message_type, data)

    def send_error(self, message: str) -> None:
        self.send(MessageType.PLUGIN_ERROR, {"message": message})

    def send_property_changed_notification(self, property_: Property) -> None:
        device = property_.device
        self.send(
            MessageType.PROPERTY_CHANGED,
            {"adapterId": device.adapter.id, "deviceId": device.id, "property": property_.as_dict()},
        )

    def send_action_status_notification(self, action: Action) -> None:
        device = action.device
        self.send(
            MessageType.ACTION_STATUS,
            {"adapterId": device.adapter.id, "deviceId": device.id, "action": action.as_dict()},
        )

    def send_event_notification(self, event: Event) -> None:
        device = event.device
        self.send(
            MessageType.EVENT,
            {"adapterId": device.adapter.id, "deviceId": device.id, "event": event.as_dict()},
        )

    def send_connected_notification(self, device: Device, connected: bool) -> None:
        self.send(
            MessageType.CONNECTED_STATE,
            {"adapterId": device.adapter.id, "deviceId": device.id, "connected": connected},
        )

    def send_pairing_prompt(
        self,
        adapter: Adapter,
        prompt: str,
        url: str | None = None,
        device: Device | None = None,
    ) -> None:
        self.send(MessageType.PAIRING_PROMPT, self._prompt(adapter, prompt, url, device))

    def send_unpairing_prompt(
        self,
        adapter: Adapter,
        prompt: str,
        url: str | None = None,
        device: Device | None = None,
    ) -> None:
        self.send(MessageType.UNPAIRING_PROMPT, self._prompt(adapter, prompt, url, device))

    @staticmethod
    def _prompt(adapter: Adapter, prompt: str, url: str | None, device: Device | None) -> dict[str, Any]:
        return drop_none(
            {
                "adapterId": adapter.id,
                "prompt": prompt,
                "url": url,
                "deviceId": device.id if device is not None else None,
            }
        )

    def handle_device_added(self, device: Device) -> None:
        self.send(
            MessageType.DEVICE_ADDED,
            {"adapterId": device.adapter.id, "device": device.as_dict()},
        )

    def handle_device_removed(self, device: Device) -> None:
        self.send(MessageType.DEVICE_REMOVED, {"adapterId": device.adapter.id, "id": device.id})

    def handle_outlet_added(self, outlet: Outlet) -> None:
        self.send(
            MessageType.OUTLET_ADDED,
            {"notifierId": outlet.notifier.id, "outlet": outlet.as_dict()},
        )

    def handle_outlet_removed(self, outlet: Outlet) -> None:
        self.send(MessageType.OUTLET_REMOVED, {"notifierId": outlet.notifier.id, "id": outlet.id})


__all__ = ["AddonManagerProxy"]
