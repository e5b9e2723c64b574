"""Notifier base class: owns the outlets that deliver alerts to a user."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from gateway_addon.addon_manager import AddonManager
    from gateway_addon.models.outlet import Outlet

logger = logging.getLogger(__name__)


class Notifier:
    def __init__(self, manager: AddonManager, notifier_id: str, package_name: str) -> None:
        self.manager = manager
        self.id = notifier_id
        self.package_name = package_name
        self.name = type(self).__name__
        self.outlets: dict[str, Outlet] = {}
        self.ready = True
        self.gateway_version = manager.gateway_version
        self.user_profile = manager.user_profile

    def __repr__(self) -> str:
        return f"{type(self).__name__}(id={self.id!r})"

    def get_outlet(self, outlet_id: str) -> Outlet | None:
        return self.outlets.get(outlet_id)

    def as_dict(self) -> dict[str, Any]:
        return {"id": self.id, "name": self.name, "ready": self.ready}

    def handle_outlet_added(self, outlet: Outlet) -> None:
        self.outlets[outlet.id] = outlet
        self.manager.handle_outlet_added(outlet)

    def handle_outlet_removed(self, outlet: Outlet) -> None:
        self.outlets.pop(outlet.id, None)
        self.manager.handle_outlet_removed(outlet)

    async def unload(self) -> None:
        logger.info("Notifier %s (%s) unloaded", self.name, self.id)


__all__ = ["Notifier"]
