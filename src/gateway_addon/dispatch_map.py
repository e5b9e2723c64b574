"""Canonical message type -> inbound handler dispatch map."""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from typing import Any

from gateway_addon.constants import MessageType

MessageHandler = Callable[[Any, Any], Awaitable[None]]


def build_dispatch_map() -> dict[MessageType, MessageHandler]:
    """Build the full dispatch map, importing handlers lazily to avoid cycles."""
    from gateway_addon.message_handlers import (
        handle_adapter_unload,
        handle_cancel_pairing,
        handle_cancel_remove_device,
        handle_debug_command,
        handle_device_saved,
        handle_notifier_unload,
        handle_outlet_notify,
        handle_remove_action,
        handle_remove_device,
        handle_request_action,
        handle_set_credentials,
        handle_set_pin,
        handle_set_property,
        handle_start_pairing,
        handle_unload,
    )

    return {
        # Devices (4)
        MessageType.SET_PROPERTY: handle_set_property,
        MessageType.REQUEST_ACTION: handle_request_action,
        MessageType.REMOVE_ACTION: handle_remove_action,
        MessageType.DEBUG_COMMAND: handle_debug_command,
        # Adapters (8)
        MessageType.DEVICE_SAVED: handle_device_saved,
        MessageType.START_PAIRING: handle_start_pairing,
        MessageType.CANCEL_PAIRING: handle_cancel_pairing,
        MessageType.REMOVE_DEVICE: handle_remove_device,
        MessageType.CANCEL_REMOVE_DEVICE: handle_cancel_remove_device,
        MessageType.SET_PIN: handle_set_pin,
        MessageType.SET_CREDENTIALS: handle_set_credentials,
        MessageType.ADAPTER_UNLOAD: handle_adapter_unload,
        # Notifiers (2)
        MessageType.OUTLET_NOTIFY: handle_outlet_notify,
        MessageType.NOTIFIER_UNLOAD: handle_notifier_unload,
        # Plugin (1)
        MessageType.UNLOAD: handle_unload,
    }


__all__ = ["MessageHandler", "build_dispatch_map"]
