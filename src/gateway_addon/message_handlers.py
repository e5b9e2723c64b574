"""Inbound message handlers.

Each handler takes ``(proxy, message)``, resolves its target through the
proxy's ``DispatchRegistry`` and calls the matching domain operation.  A
missing target raises ``UnknownTargetError``, which the proxy logs before
dropping the message.  Handlers that owe the gateway a response send it
whether the operation succeeded or failed.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from gateway_addon.constants import MessageType
from gateway_addon.errors import UnknownTargetError
from gateway_addon.ipc.messages import (
    AdapterUnloadData,
    CancelPairingData,
    CancelRemoveDeviceData,
    DebugCommandData,
    DeviceSavedData,
    NotifierUnloadData,
    OutletNotifyData,
    RemoveActionData,
    RemoveDeviceData,
    RequestActionData,
    SetCredentialsData,
    SetPinData,
    SetPropertyData,
    StartPairingData,
)

if TYPE_CHECKING:
    from gateway_addon.addon_manager_proxy import AddonManagerProxy
    from gateway_addon.ipc.messages import Message
    from gateway_addon.models.adapter import Adapter
    from gateway_addon.models.device import Device

logger = logging.getLogger(__name__)


def _adapter_device(proxy: AddonManagerProxy, adapter_id: str, device_id: str) -> tuple[Adapter, Device]:
    adapter = proxy.registry.get_adapter(adapter_id)
    device = adapter.get_device(device_id)
    if device is None:
        raise UnknownTargetError("device", device_id)
    return adapter, device


def _outcome(success: bool, error: Exception | None, **fields: Any) -> dict[str, Any]:
    data = {key: value for key, value in fields.items() if value is not None}
    data["success"] = success
    if error is not None:
        data["error"] = str(error)
    return data


# ---------------------------------------------------------------------------
# Device-scoped
# ---------------------------------------------------------------------------


async def handle_set_property(proxy: AddonManagerProxy, message: Message) -> None:
    data = SetPropertyData.model_validate(message.data)
    device = proxy.registry.get_device(data.device_id, data.adapter_id)
    prop = device.find_property(data.name)
    if prop is None:
        raise UnknownTargetError("property", f"{device.id}/{data.name}")

    previous = prop.value
    try:
        updated = await prop.set_value(data.value)
    except Exception as exc:
        logger.error("Failed setting %s of %s to %r: %s", data.name, device.id, data.value, exc)
        # Let the gateway resync to the value the device still holds.
        proxy.send_property_changed_notification(prop)
        return

    # Changes are notified by the property itself. Resync only when the cached
    # value held but differs from the requested one.
    if updated == previous and updated != data.value:
        proxy.send_property_changed_notification(prop)


async def handle_request_action(proxy: AddonManagerProxy, message: Message) -> None:
    data = RequestActionData.model_validate(message.data)
    device = proxy.registry.get_device(data.device_id, data.adapter_id)
    error: Exception | None = None
    try:
        await device.request_action(data.action_id, data.action_name, data.input)
    except Exception as exc:
        logger.error("Failed to request action %s on %s: %s", data.action_name, device.id, exc)
        error = exc

    proxy.send(
        MessageType.REQUEST_ACTION_RESPONSE,
        _outcome(
            error is None,
            error,
            adapterId=device.adapter.id,
            deviceId=device.id,
            actionName=data.action_name,
            actionId=data.action_id,
        ),
    )


async def handle_remove_action(proxy: AddonManagerProxy, message: Message) -> None:
    data = RemoveActionData.model_validate(message.data)
    device = proxy.registry.get_device(data.device_id, data.adapter_id)
    error: Exception | None = None
    try:
        await device.remove_action(data.action_id, data.action_name)
    except Exception as exc:
        logger.error("Failed to remove action %s on %s: %s", data.action_name, device.id, exc)
        error = exc

    proxy.send(
        MessageType.REMOVE_ACTION_RESPONSE,
        _outcome(
            error is None,
            error,
            adapterId=device.adapter.id,
            deviceId=device.id,
            actionName=data.action_name,
            actionId=data.action_id,
        ),
    )


async def handle_debug_command(proxy: AddonManagerProxy, message: Message) -> None:
    data = DebugCommandData.model_validate(message.data)
    device = proxy.registry.get_device(data.device_id, data.adapter_id)
    await device.debug_cmd(data.cmd, data.params)


# ---------------------------------------------------------------------------
# Adapter-scoped
# ---------------------------------------------------------------------------


async def handle_device_saved(proxy: AddonManagerProxy, message: Message) -> None:
    data = DeviceSavedData.model_validate(message.data)
    adapter = proxy.registry.get_adapter(data.adapter_id)
    await adapter.handle_device_saved(data.device_id, data.device)


async def handle_start_pairing(proxy: AddonManagerProxy, message: Message) -> None:
    data = StartPairingData.model_validate(message.data)
    await proxy.registry.get_adapter(data.adapter_id).start_pairing(data.timeout)


async def handle_cancel_pairing(proxy: AddonManagerProxy, message: Message) -> None:
    data = CancelPairingData.model_validate(message.data)
    await proxy.registry.get_adapter(data.adapter_id).cancel_pairing()


async def handle_remove_device(proxy: AddonManagerProxy, message: Message) -> None:
    data = RemoveDeviceData.model_validate(message.data)
    adapter, device = _adapter_device(proxy, data.adapter_id, data.device_id)
    await adapter.remove_thing(device)


async def handle_cancel_remove_device(proxy: AddonManagerProxy, message: Message) -> None:
    data = CancelRemoveDeviceData.model_validate(message.data)
    adapter, device = _adapter_device(proxy, data.adapter_id, data.device_id)
    await adapter.cancel_remove_thing(device)


async def handle_set_pin(proxy: AddonManagerProxy, message: Message) -> None:
    data = SetPinData.model_validate(message.data)
    adapter = proxy.registry.get_adapter(data.adapter_id)
    error: Exception | None = None
    try:
        await adapter.set_pin(data.device_id, data.pin)
    except Exception as exc:
        logger.error("Failed to set PIN for %s: %s", data.device_id, exc)
        error = exc

    device = adapter.get_device(data.device_id)
    proxy.send(
        MessageType.SET_PIN_RESPONSE,
        _outcome(
            error is None,
            error,
            adapterId=adapter.id,
            deviceId=data.device_id,
            messageId=data.message_id,
            device=device.as_dict() if device is not None else None,
        ),
    )


async def handle_set_credentials(proxy: AddonManagerProxy, message: Message) -> None:
    data = SetCredentialsData.model_validate(message.data)
    adapter = proxy.registry.get_adapter(data.adapter_id)
    error: Exception | None = None
    try:
        await adapter.set_credentials(data.device_id, data.username, data.password)
    except Exception as exc:
        logger.error("Failed to set credentials for %s: %s", data.device_id, exc)
        error = exc

    device = adapter.get_device(data.device_id)
    proxy.send(
        MessageType.SET_CREDENTIALS_RESPONSE,
        _outcome(
            error is None,
            error,
            adapterId=adapter.id,
            deviceId=data.device_id,
            messageId=data.message_id,
            device=device.as_dict() if device is not None else None,
        ),
    )


async def handle_adapter_unload(proxy: AddonManagerProxy, message: Message) -> None:
    data = AdapterUnloadData.model_validate(message.data)
    adapter = proxy.registry.get_adapter(data.adapter_id)
    await adapter.unload()
    proxy.unregister_adapter(adapter.id)
    proxy.send(MessageType.ADAPTER_UNLOAD_RESPONSE, {"adapterId": adapter.id})


# ---------------------------------------------------------------------------
# Notifier-scoped
# ---------------------------------------------------------------------------


async def handle_outlet_notify(proxy: AddonManagerProxy, message: Message) -> None:
    data = OutletNotifyData.model_validate(message.data)
    outlet = proxy.registry.get_outlet(data.notifier_id, data.outlet_id)
    error: Exception | None = None
    try:
        await outlet.notify(data.title, data.message, data.level)
    except Exception as exc:
        logger.error("Outlet %s failed to notify: %s", outlet.id, exc)
        error = exc

    proxy.send(
        MessageType.OUTLET_NOTIFY_RESPONSE,
        _outcome(
            error is None,
            error,
            notifierId=data.notifier_id,
            outletId=outlet.id,
            messageId=data.message_id,
        ),
    )


async def handle_notifier_unload(proxy: AddonManagerProxy, message: Message) -> None:
    data = NotifierUnloadData.model_validate(message.data)
    notifier = proxy.registry.get_notifier(data.notifier_id)
    await notifier.unload()
    proxy.unregister_notifier(notifier.id)
    proxy.send(MessageType.NOTIFIER_UNLOAD_RESPONSE, {"notifierId": notifier.id})


# ---------------------------------------------------------------------------
# Plugin-scoped
# ---------------------------------------------------------------------------


async def handle_unload(proxy: AddonManagerProxy, message: Message) -> None:
    await proxy.unload_all()
    proxy.send(MessageType.UNLOAD_RESPONSE, {})
    await proxy.close()


__all__ = [
    "handle_adapter_unload",
    "handle_cancel_pairing",
    "handle_cancel_remove_device",
    "handle_debug_command",
    "handle_device_saved",
    "handle_notifier_unload",
    "handle_outlet_notify",
    "handle_remove_action",
    "handle_remove_device",
    "handle_request_action",
    "handle_set_credentials",
    "handle_set_pin",
    "handle_set_property",
    "handle_start_pairing",
    "handle_unload",
]
