"""A single requested action on a device."""

from __future__ import annotations

from enum import StrEnum
from typing import TYPE_CHECKING, Any

from gateway_addon.utils import timestamp

if TYPE_CHECKING:
    from gateway_addon.models.device import Device


class ActionStatus(StrEnum):
    CREATED = "created"
    PENDING = "pending"
    COMPLETED = "completed"


class Action:
    """An action instance created for each ``REQUEST_ACTION``.

    ``start()`` and ``finish()`` move the status forward and report it to the
    gateway as an ``ACTION_STATUS`` notification.
    """

    def __init__(self, action_id: str, device: Device, name: str, input_: Any = None) -> None:
        self.id = action_id
        self.device = device
        self.name = name
        self.input = input_
        self.status = ActionStatus.CREATED
        self.time_requested = timestamp()
        self.time_completed: str | None = None

    def __repr__(self) -> str:
        return f"Action(id={self.id!r}, name={self.name!r}, status={self.status.value!r})"

    def as_action_description(self) -> dict[str, Any]:
        description: dict[str, Any] = {
            "name": self.name,
            "timeRequested": self.time_requested,
            "status": self.status.value,
        }
        if self.input:
            description["input"] = self.input
        if self.time_completed:
            description["timeCompleted"] = self.time_completed
        return description

    def as_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "input": self.input,
            "status": self.status.value,
            "timeRequested": self.time_requested,
            "timeCompleted": self.time_completed,
        }

    def start(self) -> None:
        self.status = ActionStatus.PENDING
        self.device.action_notify(self)

    def finish(self) -> None:
        self.status = ActionStatus.COMPLETED
        self.time_completed = timestamp()
        self.device.action_notify(self)


__all__ = ["Action", "ActionStatus"]
