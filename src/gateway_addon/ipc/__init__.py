"""Message envelope, schema validation, addressing and channels for plugin <-> gateway traffic."""

from __future__ import annotations

from gateway_addon.ipc.addresses import AddressRegistry, ChannelAddress, default_address_registry
from gateway_addon.ipc.channel import Channel, ChannelRole, ChannelState
from gateway_addon.ipc.messages import Message
from gateway_addon.ipc.transports import InProcHub, default_inproc_hub
from gateway_addon.ipc.validator import MessageValidator, get_default_validator

__all__ = [
    "AddressRegistry",
    "Channel",
    "ChannelAddress",
    "ChannelRole",
    "ChannelState",
    "InProcHub",
    "Message",
    "MessageValidator",
    "default_address_registry",
    "default_inproc_hub",
    "get_default_validator",
]
