"""Adapter base class: owns a set of devices and handles pairing."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from gateway_addon.errors import UnknownTargetError

if TYPE_CHECKING:
    from gateway_addon.addon_manager import AddonManager
    from gateway_addon.models.device import Device

logger = logging.getLogger(__name__)


class Adapter:
    """Base class for adapters, which manage devices.

    An adapter is ready as soon as it is constructed; adapters that need time
    to come up set ``ready = False`` in their constructor.
    """

    def __init__(self, manager: AddonManager, adapter_id: str, package_name: str) -> None:
        self.manager = manager
        self.id = adapter_id
        self.package_name = package_name
        self.name = type(self).__name__
        self.devices: dict[str, Device] = {}
        self.ready = True
        self.gateway_version = manager.gateway_version
        self.user_profile = manager.user_profile

    def __repr__(self) -> str:
        return f"{type(self).__name__}(id={self.id!r})"

    def get_device(self, device_id: str) -> Device | None:
        return self.devices.get(device_id)

    def as_dict(self) -> dict[str, Any]:
        return {"id": self.id, "name": self.name, "ready": self.ready}

    def handle_device_added(self, device: Device) -> None:
        """Start managing *device* and announce it to the gateway."""
        self.devices[device.id] = device
        self.manager.handle_device_added(device)

    def handle_device_removed(self, device: Device) -> None:
        """Stop managing *device* and tell the gateway it is gone."""
        self.devices.pop(device.id, None)
        self.manager.handle_device_removed(device)

    async def handle_device_saved(self, device_id: str, device: dict[str, Any]) -> None:
        """Called when the user saves a device, and at startup for every saved device."""

    async def start_pairing(self, timeout: float) -> None:
        logger.info("Adapter %s (%s) pairing started, timeout %ss", self.name, self.id, timeout)

    async def cancel_pairing(self) -> None:
        logger.info("Adapter %s (%s) pairing cancelled", self.name, self.id)

    def send_pairing_prompt(
        self,
        prompt: str,
        url: str | None = None,
        device: Device | None = None,
    ) -> None:
        self.manager.send_pairing_prompt(self, prompt, url, device)

    def send_unpairing_prompt(
        self,
        prompt: str,
        url: str | None = None,
        device: Device | None = None,
    ) -> None:
        self.manager.send_unpairing_prompt(self, prompt, url, device)

    async def remove_thing(self, device: Device) -> None:
        logger.info("Adapter %s (%s) removing %s", self.name, self.id, device.id)
        self.handle_device_removed(device)

    async def cancel_remove_thing(self, device: Device) -> None:
        logger.info("Adapter %s (%s) cancel removing %s", self.name, self.id, device.id)

    async def set_pin(self, device_id: str, pin: str) -> None:
        """Set the PIN of *device_id*.

        Raises:
            UnknownTargetError: If this adapter has no such device.
        """
        if self.get_device(device_id) is None:
            raise UnknownTargetError("device", device_id)
        logger.info("Adapter %s (%s) set_pin(%s)", self.name, self.id, device_id)

    async def set_credentials(self, device_id: str, username: str, password: str) -> None:
        """Set login credentials of *device_id*.

        Raises:
            UnknownTargetError: If this adapter has no such device.
        """
        if self.get_device(device_id) is None:
            raise UnknownTargetError("device", device_id)
        logger.info("Adapter %s (%s) set_credentials(%s, %s)", self.name, self.id, device_id, username)

    async def unload(self) -> None:
        logger.info("Adapter %s (%s) unloaded", self.name, self.id)


__all__ = ["Adapter"]
