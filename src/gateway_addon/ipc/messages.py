"""Message envelope and typed payload variants for plugin <-> gateway traffic."""

from __future__ import annotations

import json
from typing import Any

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from gateway_addon.constants import MessageType


class Message(BaseModel):
    """Envelope for a single frame on a rendezvous or session channel.

    ``message_type`` is normally a ``MessageType`` member; unknown type strings
    are kept as plain strings so newer gateways can talk to older plugins.
    ``data`` carries the type-dependent payload, see ``payload()``.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    message_type: MessageType | str = Field(
        alias="messageType",
        description="Message type name (e.g. 'SET_PROPERTY')",
    )
    data: dict[str, Any] = Field(
        default_factory=dict,
        description="Type-dependent payload",
    )

    @staticmethod
    def create(message_type: MessageType | str, data: dict[str, Any] | None = None) -> Message:
        """Create a message from a type and payload mapping."""
        return Message(message_type=message_type, data=dict(data or {}))

    @property
    def known_type(self) -> MessageType | None:
        """The ``MessageType`` member, or ``None`` for types outside schema set 1."""
        try:
            return MessageType(self.message_type)
        except ValueError:
            return None

    def to_wire(self) -> bytes:
        """Serialise as one compact JSON document (no raw newlines)."""
        payload = {"messageType": str(self.message_type), "data": self.data}
        return json.dumps(payload, separators=(",", ":")).encode("utf-8")

    def payload(self) -> BaseModel:
        """Parse ``data`` into the typed variant registered for this message type.

        Raises:
            KeyError: If no typed variant exists for the message type.
            pydantic.ValidationError: If ``data`` does not fit the variant.
        """
        model = PAYLOAD_MODELS.get(self.known_type)  # type: ignore[arg-type]
        if model is None:
            msg = f"No typed payload for message type {self.message_type!r}"
            raise KeyError(msg)
        return model.model_validate(self.data)


class _Payload(BaseModel):
    model_config = ConfigDict(
        frozen=True,
        alias_generator=to_camel,
        populate_by_name=True,
        extra="allow",
    )


class PluginRegisterRequestData(_Payload):
    plugin_id: str


class PluginRegisterResponseData(_Payload):
    gateway_version: str
    user_profile: dict[str, Any] = Field(default_factory=dict)
    ipc_base_addr: str


class _PluginScoped(_Payload):
    plugin_id: str | None = None


class _AdapterScoped(_PluginScoped):
    adapter_id: str


class _DeviceScoped(_PluginScoped):
    device_id: str
    adapter_id: str | None = None


class _NotifierScoped(_PluginScoped):
    notifier_id: str


class StartPairingData(_AdapterScoped):
    timeout: float = 60.0


class CancelPairingData(_AdapterScoped):
    pass


class RemoveDeviceData(_AdapterScoped):
    device_id: str


class CancelRemoveDeviceData(_AdapterScoped):
    device_id: str


class DeviceSavedData(_AdapterScoped):
    device_id: str
    device: dict[str, Any] = Field(default_factory=dict)


class SetPinData(_AdapterScoped):
    device_id: str
    pin: str
    message_id: int | str | None = None


class SetCredentialsData(_AdapterScoped):
    device_id: str
    username: str
    password: str
    message_id: int | str | None = None


class AdapterUnloadData(_AdapterScoped):
    pass


class SetPropertyData(_DeviceScoped):
    name: str
    value: Any = None


class RequestActionData(_DeviceScoped):
    action_id: str
    action_name: str
    input: Any = None


class RemoveActionData(_DeviceScoped):
    action_id: str
    action_name: str


class DebugCommandData(_DeviceScoped):
    cmd: str
    params: dict[str, Any] = Field(default_factory=dict)


class OutletNotifyData(_NotifierScoped):
    outlet_id: str
    title: str
    message: str
    level: int = 0
    message_id: int | str | None = None


class NotifierUnloadData(_NotifierScoped):
    pass


class UnloadData(_PluginScoped):
    pass


PAYLOAD_MODELS: dict[MessageType, type[BaseModel]] = {
    MessageType.PLUGIN_REGISTER_REQUEST: PluginRegisterRequestData,
    MessageType.PLUGIN_REGISTER_RESPONSE: PluginRegisterResponseData,
    MessageType.START_PAIRING: StartPairingData,
    MessageType.CANCEL_PAIRING: CancelPairingData,
    MessageType.REMOVE_DEVICE: RemoveDeviceData,
    MessageType.CANCEL_REMOVE_DEVICE: CancelRemoveDeviceData,
    MessageType.DEVICE_SAVED: DeviceSavedData,
    MessageType.SET_PIN: SetPinData,
    MessageType.SET_CREDENTIALS: SetCredentialsData,
    MessageType.ADAPTER_UNLOAD: AdapterUnloadData,
    MessageType.SET_PROPERTY: SetPropertyData,
    MessageType.REQUEST_ACTION: RequestActionData,
    MessageType.REMOVE_ACTION: RemoveActionData,
    MessageType.DEBUG_COMMAND: DebugCommandData,
    MessageType.OUTLET_NOTIFY: OutletNotifyData,
    MessageType.NOTIFIER_UNLOAD: NotifierUnloadData,
    MessageType.UNLOAD: UnloadData,
}


__all__ = [
    "PAYLOAD_MODELS",
    "AdapterUnloadData",
    "CancelPairingData",
    "CancelRemoveDeviceData",
    "DebugCommandData",
    "DeviceSavedData",
    "Message",
    "NotifierUnloadData",
    "OutletNotifyData",
    "PluginRegisterRequestData",
    "PluginRegisterResponseData",
    "RemoveActionData",
    "RemoveDeviceData",
    "RequestActionData",
    "SetCredentialsData",
    "SetPinData",
    "SetPropertyData",
    "StartPairingData",
    "UnloadData",
]
