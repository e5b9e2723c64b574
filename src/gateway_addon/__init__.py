"""gateway-addon: plugin-side IPC, registration and dispatch for gateway add-ons."""

from gateway_addon.addon_manager_proxy import AddonManagerProxy
from gateway_addon.config import AddonConfig
from gateway_addon.constants import MessageType
from gateway_addon.models import Action, Adapter, Device, Event, Notifier, Outlet, Property
from gateway_addon.plugin_client import PluginClient, RegistrationState

__all__ = [
    "Action",
    "Adapter",
    "AddonConfig",
    "AddonManagerProxy",
    "Device",
    "Event",
    "MessageType",
    "Notifier",
    "Outlet",
    "PluginClient",
    "Property",
    "RegistrationState",
]
