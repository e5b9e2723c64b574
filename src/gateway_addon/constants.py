"""Protocol constants shared by the plugin client and the dispatch router."""

from __future__ import annotations

from enum import StrEnum

RENDEZVOUS_ADDR = "gateway.addonManager"
SCHEMA_VERSION = 1

MAX_LINE_BYTES = 4 * 1024 * 1024  # 4 MiB per JSON line (without framing overhead)
STREAM_LIMIT_BYTES = MAX_LINE_BYTES + 1  # Include trailing newline separator.


class MessageType(StrEnum):
    """Closed set of message types understood by schema set version 1."""

    # Registration (rendezvous channel)
    PLUGIN_REGISTER_REQUEST = "PLUGIN_REGISTER_REQUEST"
    PLUGIN_REGISTER_RESPONSE = "PLUGIN_REGISTER_RESPONSE"

    # Gateway -> plugin
    START_PAIRING = "START_PAIRING"
    CANCEL_PAIRING = "CANCEL_PAIRING"
    REMOVE_DEVICE = "REMOVE_DEVICE"
    CANCEL_REMOVE_DEVICE = "CANCEL_REMOVE_DEVICE"
    DEVICE_SAVED = "DEVICE_SAVED"
    SET_PIN = "SET_PIN"
    SET_CREDENTIALS = "SET_CREDENTIALS"
    SET_PROPERTY = "SET_PROPERTY"
    REQUEST_ACTION = "REQUEST_ACTION"
    REMOVE_ACTION = "REMOVE_ACTION"
    DEBUG_COMMAND = "DEBUG_COMMAND"
    OUTLET_NOTIFY = "OUTLET_NOTIFY"
    ADAPTER_UNLOAD = "ADAPTER_UNLOAD"
    NOTIFIER_UNLOAD = "NOTIFIER_UNLOAD"
    UNLOAD = "UNLOAD"

    # Plugin -> gateway
    ADAPTER_ADDED = "ADAPTER_ADDED"
    NOTIFIER_ADDED = "NOTIFIER_ADDED"
    DEVICE_ADDED = "DEVICE_ADDED"
    DEVICE_REMOVED = "DEVICE_REMOVED"
    OUTLET_ADDED = "OUTLET_ADDED"
    OUTLET_REMOVED = "OUTLET_REMOVED"
    PROPERTY_CHANGED = "PROPERTY_CHANGED"
    ACTION_STATUS = "ACTION_STATUS"
    EVENT = "EVENT"
    CONNECTED_STATE = "CONNECTED_STATE"
    PAIRING_PROMPT = "PAIRING_PROMPT"
    UNPAIRING_PROMPT = "UNPAIRING_PROMPT"
    REQUEST_ACTION_RESPONSE = "REQUEST_ACTION_RESPONSE"
    REMOVE_ACTION_RESPONSE = "REMOVE_ACTION_RESPONSE"
    SET_PIN_RESPONSE = "SET_PIN_RESPONSE"
    SET_CREDENTIALS_RESPONSE = "SET_CREDENTIALS_RESPONSE"
    OUTLET_NOTIFY_RESPONSE = "OUTLET_NOTIFY_RESPONSE"
    ADAPTER_UNLOAD_RESPONSE = "ADAPTER_UNLOAD_RESPONSE"
    NOTIFIER_UNLOAD_RESPONSE = "NOTIFIER_UNLOAD_RESPONSE"
    UNLOAD_RESPONSE = "UNLOAD_RESPONSE"
    PLUGIN_ERROR = "PLUGIN_ERROR"


class IPCProtocol(StrEnum):
    """Address protocols a channel can be bound or connected over."""

    IPC = "ipc"
    INPROC = "inproc"


__all__ = [
    "MAX_LINE_BYTES",
    "RENDEZVOUS_ADDR",
    "SCHEMA_VERSION",
    "STREAM_LIMIT_BYTES",
    "IPCProtocol",
    "MessageType",
]
