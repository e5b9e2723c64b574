"""Device base class for things managed by an adapter."""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING, Any

from jsonschema import validators
from jsonschema.exceptions import best_match

from gateway_addon.errors import ActionError, PropertyError
from gateway_addon.models.action import Action
from gateway_addon.utils import drop_none, spawn_background

if TYPE_CHECKING:
    from gateway_addon.models.adapter import Adapter
    from gateway_addon.models.event import Event
    from gateway_addon.models.property import Property

logger = logging.getLogger(__name__)

THING_CONTEXT = "https://iot.mozilla.org/schemas"


def _without_href(metadata: dict[str, Any] | None) -> dict[str, Any]:
    metadata = dict(metadata or {})
    metadata.pop("href", None)
    return metadata


class Device:
    """A device exposed to the gateway.

    Subclasses populate ``properties``, register actions and events with
    ``add_action``/``add_event``, and override ``perform_action`` and
    ``cancel_action``.  Every notification goes through the adapter's manager.
    """

    def __init__(self, adapter: Adapter, device_id: str) -> None:
        self.adapter = adapter
        self.id = str(device_id)
        self.type = "thing"
        self.context = THING_CONTEXT
        self.at_type: list[str] = []
        self.title = ""
        self.description = ""
        self.properties: dict[str, Property] = {}
        self.actions: dict[str, dict[str, Any]] = {}
        self.events: dict[str, dict[str, Any]] = {}
        self.links: list[dict[str, Any]] = []
        self.base_href: str | None = None
        self.pin_required = False
        self.pin_pattern: str | None = None
        self.credentials_required = False
        self._action_tasks: set[asyncio.Task[Any]] = set()

    def __repr__(self) -> str:
        return f"{type(self).__name__}(id={self.id!r}, adapter={self.adapter.id!r})"

    def _description(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "type": self.type,
            "@context": self.context,
            "@type": list(self.at_type),
            "links": list(self.links),
            "baseHref": self.base_href,
            "pin": drop_none({"required": self.pin_required, "pattern": self.pin_pattern}),
            "credentialsRequired": self.credentials_required,
        }

    def as_dict(self) -> dict[str, Any]:
        """Full state dump, including property values."""
        return drop_none(
            {
                **self._description(),
                "description": self.description,
                "properties": {name: prop.as_dict() for name, prop in self.properties.items()},
                "actions": {name: dict(meta) for name, meta in self.actions.items()},
                "events": {name: dict(meta) for name, meta in self.events.items()},
            }
        )

    def as_thing(self) -> dict[str, Any]:
        """Thing description as announced in ``DEVICE_ADDED``."""
        thing = {
            **self._description(),
            "properties": self.get_property_descriptions(),
            "actions": {name: dict(meta) for name, meta in self.actions.items()},
            "events": {name: dict(meta) for name, meta in self.events.items()},
        }
        if self.description:
            thing["description"] = self.description
        return drop_none(thing)

    def get_property_descriptions(self) -> dict[str, dict[str, Any]]:
        return {
            name: prop.as_property_description()
            for name, prop in self.properties.items()
            if prop.is_visible()
        }

    def find_property(self, name: str) -> Property | None:
        return self.properties.get(name)

    def has_property(self, name: str) -> bool:
        return name in self.properties

    async def get_property(self, name: str) -> Any:
        prop = self.find_property(name)
        if prop is None:
            msg = f'Property "{name}" not found'
            raise PropertyError(msg)
        return await prop.get_value()

    async def set_property(self, name: str, value: Any) -> Any:
        """Set property *name*; returns the value actually applied.

        Raises:
            PropertyError: If the property is missing or rejects *value*.
        """
        prop = self.find_property(name)
        if prop is None:
            msg = f'Property "{name}" not found'
            raise PropertyError(msg)
        return await prop.set_value(value)

    def notify_property_changed(self, prop: Property) -> None:
        self.adapter.manager.send_property_changed_notification(prop)

    def action_notify(self, action: Action) -> None:
        self.adapter.manager.send_action_status_notification(action)

    def event_notify(self, event: Event) -> None:
        self.adapter.manager.send_event_notification(event)

    def connected_notify(self, connected: bool) -> None:
        self.adapter.manager.send_connected_notification(self, connected)

    def add_action(self, name: str, metadata: dict[str, Any] | None = None) -> None:
        """Register action *name*; an ``input`` key holds its JSON schema."""
        self.actions[name] = _without_href(metadata)

    def add_event(self, name: str, metadata: dict[str, Any] | None = None) -> None:
        self.events[name] = _without_href(metadata)

    async def request_action(self, action_id: str, action_name: str, input_: Any = None) -> Action:
        """Validate a request and start ``perform_action`` in the background.

        Raises:
            ActionError: If the action is unknown or *input_* fails its schema.
        """
        metadata = self.actions.get(action_name)
        if metadata is None:
            msg = f'Action "{action_name}" not found'
            raise ActionError(msg)

        if "input" in metadata:
            schema = metadata["input"]
            validator = validators.validator_for(schema)(schema)
            error = best_match(validator.iter_errors(input_))
            if error is not None:
                msg = f'Action "{action_name}": input {input_!r} is invalid: {error.message}'
                raise ActionError(msg)

        action = Action(action_id, self, action_name, input_)
        spawn_background(
            self.perform_action(action),
            self._action_tasks,
            name=f"perform_action:{self.id}:{action_name}",
        )
        return action

    async def remove_action(self, action_id: str, action_name: str) -> None:
        """Start ``cancel_action`` in the background.

        Raises:
            ActionError: If the action is unknown.
        """
        if action_name not in self.actions:
            msg = f'Action "{action_name}" not found'
            raise ActionError(msg)
        spawn_background(
            self.cancel_action(action_id, action_name),
            self._action_tasks,
            name=f"cancel_action:{self.id}:{action_name}",
        )

    async def perform_action(self, action: Action) -> None:
        pass

    async def cancel_action(self, action_id: str, action_name: str) -> None:
        pass

    async def debug_cmd(self, cmd: str, params: dict[str, Any]) -> None:
        logger.info("Device %s got debug command %s params=%r", self.id, cmd, params)


__all__ = ["THING_CONTEXT", "Device"]
