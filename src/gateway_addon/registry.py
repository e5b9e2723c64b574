"""Lookup tables for the adapters and notifiers registered with the router."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from gateway_addon.errors import UnknownTargetError

if TYPE_CHECKING:
    from gateway_addon.models.adapter import Adapter
    from gateway_addon.models.device import Device
    from gateway_addon.models.notifier import Notifier
    from gateway_addon.models.outlet import Outlet


@dataclass
class DispatchRegistry:
    """Adapter id -> Adapter and notifier id -> Notifier.

    Entries are added by ``AddonManagerProxy.add_adapter``/``add_notifier`` and
    removed only by explicit unregistration.  Every ``get_*`` raises
    ``UnknownTargetError`` instead of returning ``None``.
    """

    adapters: dict[str, Adapter] = field(default_factory=dict)
    notifiers: dict[str, Notifier] = field(default_factory=dict)

    def get_adapter(self, adapter_id: str) -> Adapter:
        adapter = self.adapters.get(adapter_id)
        if adapter is None:
            raise UnknownTargetError("adapter", adapter_id)
        return adapter

    def get_device(self, device_id: str, adapter_id: str | None = None) -> Device:
        """Find *device_id* on *adapter_id*, or on any adapter when no id is given."""
        if adapter_id is not None:
            device = self.get_adapter(adapter_id).get_device(device_id)
        else:
            device = next(
                (
                    found
                    for adapter in self.adapters.values()
                    if (found := adapter.get_device(device_id)) is not None
                ),
                None,
            )
        if device is None:
            raise UnknownTargetError("device", device_id)
        return device

    def get_notifier(self, notifier_id: str) -> Notifier:
        notifier = self.notifiers.get(notifier_id)
        if notifier is None:
            raise UnknownTargetError("notifier", notifier_id)
        return notifier

    def get_outlet(self, notifier_id: str, outlet_id: str) -> Outlet:
        outlet = self.get_notifier(notifier_id).get_outlet(outlet_id)
        if outlet is None:
            raise UnknownTargetError("outlet", outlet_id)
        return outlet

    def clear(self) -> None:
        self.adapters.clear()
        self.notifiers.clear()


__all__ = ["DispatchRegistry"]
