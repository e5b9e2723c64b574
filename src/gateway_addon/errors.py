"""Error taxonomy for the plugin IPC and dispatch layer.

Every error carries a ``kind`` so callers that catch the common base can still
tell a malformed frame from an unknown target in logs.  Only
``TransportFatalError`` and ``UnsupportedProtocolError`` are expected to abort
startup; everything else is caught and logged at the boundary where it is
detected.
"""

from __future__ import annotations

from enum import StrEnum


class ErrorKind(StrEnum):
    MALFORMED_ENCODING = "MalformedEncoding"
    SCHEMA_VIOLATION = "SchemaViolation"
    UNKNOWN_TARGET = "UnknownTarget"
    PROTOCOL_VIOLATION = "ProtocolViolation"
    TRANSPORT_FATAL = "TransportFatal"
    CHANNEL_STATE = "ChannelState"
    UNSUPPORTED_PROTOCOL = "UnsupportedProtocol"
    PROPERTY_REJECTED = "PropertyRejected"
    ACTION_REJECTED = "ActionRejected"


class GatewayAddonError(Exception):
    """Base error for gateway-addon."""

    kind: ErrorKind

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)


class MessageValidationError(GatewayAddonError):
    """Raised when an inbound frame cannot become a ``Message``."""


class MalformedEncodingError(MessageValidationError):
    """Raised when frame bytes are not UTF-8 encoded JSON."""

    kind = ErrorKind.MALFORMED_ENCODING


class SchemaViolationError(MessageValidationError):
    """Raised when a well-formed document fails the envelope or per-type schema."""

    kind = ErrorKind.SCHEMA_VIOLATION

    def __init__(self, message: str, *, path: str = "") -> None:
        self.path = path
        super().__init__(message)


class UnknownTargetError(GatewayAddonError):
    """Raised when a message names an adapter, device, notifier or outlet that is not registered."""

    kind = ErrorKind.UNKNOWN_TARGET

    def __init__(self, target: str, target_id: str) -> None:
        self.target = target
        self.target_id = target_id
        super().__init__(f"Unknown {target} '{target_id}'")


class ProtocolViolationError(GatewayAddonError):
    """Raised when a message type is not valid for the current handshake state."""

    kind = ErrorKind.PROTOCOL_VIOLATION


class TransportFatalError(GatewayAddonError):
    """Raised when a channel cannot be bound or connected at all."""

    kind = ErrorKind.TRANSPORT_FATAL


class UnsupportedProtocolError(GatewayAddonError):
    """Raised at channel construction for an address protocol outside the supported set."""

    kind = ErrorKind.UNSUPPORTED_PROTOCOL

    def __init__(self, protocol: str) -> None:
        self.protocol = protocol
        super().__init__(f"Unsupported IPC protocol: {protocol}")


class ChannelStateError(GatewayAddonError):
    """Raised for bind/connect misuse when strict socket state checking is enabled."""

    kind = ErrorKind.CHANNEL_STATE


class PropertyError(GatewayAddonError):
    """Raised when a property rejects a new value."""

    kind = ErrorKind.PROPERTY_REJECTED


class ActionError(GatewayAddonError):
    """Raised when a device rejects an action request or cancellation."""

    kind = ErrorKind.ACTION_REJECTED


__all__ = [
    "ActionError",
    "ChannelStateError",
    "ErrorKind",
    "GatewayAddonError",
    "MalformedEncodingError",
    "MessageValidationError",
    "PropertyError",
    "ProtocolViolationError",
    "SchemaViolationError",
    "TransportFatalError",
    "UnknownTargetError",
    "UnsupportedProtocolError",
]
