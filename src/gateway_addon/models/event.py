"""A single event emitted by a device."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from gateway_addon.utils import timestamp

if TYPE_CHECKING:
    from gateway_addon.models.device import Device


class Event:
    def __init__(self, device: Device, name: str, data: Any = None) -> None:
        self.device = device
        self.name = name
        self.data = data
        self.timestamp = timestamp()

    def __repr__(self) -> str:
        return f"Event(device={self.device.id!r}, name={self.name!r})"

    def as_event_description(self) -> dict[str, Any]:
        description: dict[str, Any] = {"name": self.name, "timestamp": self.timestamp}
        if self.data is not None:
            description["data"] = self.data
        return description

    def as_dict(self) -> dict[str, Any]:
        return {"name": self.name, "data": self.data, "timestamp": self.timestamp}


__all__ = ["Event"]
