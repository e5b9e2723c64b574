"""Base classes an add-on subclasses to expose adapters, devices and notifiers."""

from gateway_addon.models.action import Action, ActionStatus
from gateway_addon.models.adapter import Adapter
from gateway_addon.models.device import Device
from gateway_addon.models.event import Event
from gateway_addon.models.notifier import Notifier
from gateway_addon.models.outlet import Outlet
from gateway_addon.models.property import Property

__all__ = [
    "Action",
    "ActionStatus",
    "Adapter",
    "Device",
    "Event",
    "Notifier",
    "Outlet",
    "Property",
]
