"""Outlet base class: one delivery channel of a notifier."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from gateway_addon.models.notifier import Notifier

logger = logging.getLogger(__name__)


class Outlet:
    def __init__(self, notifier: Notifier, outlet_id: str) -> None:
        self.notifier = notifier
        self.id = str(outlet_id)
        self.name = ""

    def __repr__(self) -> str:
        return f"{type(self).__name__}(id={self.id!r}, notifier={self.notifier.id!r})"

    def as_dict(self) -> dict[str, Any]:
        return {"id": self.id, "name": self.name}

    async def notify(self, title: str, message: str, level: int) -> None:
        """Deliver a notification to the user; the base class only logs it."""
        logger.info('Outlet %s notify("%s", "%s", %s)', self.name, title, message, level)


__all__ = ["Outlet"]
