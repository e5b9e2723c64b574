"""Manager surface seen by adapters, devices, notifiers and outlets.

Domain objects only ever talk to the gateway through this protocol; the
``AddonManagerProxy`` implements it on top of the session channel, and tests
can substitute a recording fake.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Protocol

if TYPE_CHECKING:
    from gateway_addon.models.action import Action
    from gateway_addon.models.adapter import Adapter
    from gateway_addon.models.device import Device
    from gateway_addon.models.event import Event
    from gateway_addon.models.outlet import Outlet
    from gateway_addon.models.property import Property


class AddonManager(Protocol):
    @property
    def gateway_version(self) -> str | None: ...

    @property
    def user_profile(self) -> dict[str, Any]: ...

    def send_property_changed_notification(self, property_: Property) -> None: ...

    def send_action_status_notification(self, action: Action) -> None: ...

    def send_event_notification(self, event: Event) -> None: ...

    def send_connected_notification(self, device: Device, connected: bool) -> None: ...

    def send_pairing_prompt(
        self,
        adapter: Adapter,
        prompt: str,
        url: str | None = None,
        device: Device | None = None,
    ) -> None: ...

    def send_unpairing_prompt(
        self,
        adapter: Adapter,
        prompt: str,
        url: str | None = None,
        device: Device | None = None,
    ) -> None: ...

    def handle_device_added(self, device: Device) -> None: ...

    def handle_device_removed(self, device: Device) -> None: ...

    def handle_outlet_added(self, outlet: Outlet) -> None: ...

    def handle_outlet_removed(self, outlet: Outlet) -> None: ...


__all__ = ["AddonManager"]
