"""Device property: a description plus its cached value."""

from __future__ import annotations

import logging
import math
from collections.abc import Mapping
from numbers import Real
from typing import TYPE_CHECKING, Any

from gateway_addon.errors import PropertyError
from gateway_addon.utils import drop_none

if TYPE_CHECKING:
    from gateway_addon.models.device import Device

logger = logging.getLogger(__name__)

# Description keys as they appear on the wire, mapped to attribute names.
_DESCRIPTION_FIELDS: dict[str, str] = {
    "title": "title",
    "type": "type",
    "@type": "at_type",
    "unit": "unit",
    "description": "description",
    "minimum": "minimum",
    "maximum": "maximum",
    "enum": "enum",
    "readOnly": "read_only",
    "multipleOf": "multiple_of",
    "links": "links",
}


def _from_legacy(description: Mapping[str, Any]) -> dict[str, Any]:
    """Map the older ``label``/``min``/``max`` keys onto ``title``/``minimum``/``maximum``."""
    normalized = dict(description)
    if normalized.get("title") is None:
        normalized["title"] = description.get("label")
    if normalized.get("minimum") is None:
        normalized["minimum"] = description.get("min")
    if normalized.get("maximum") is None:
        normalized["maximum"] = description.get("max")
    return normalized


def _is_number(value: object) -> bool:
    return isinstance(value, Real) and not isinstance(value, bool)


def _is_multiple(value: Real, step: Real) -> bool:
    return math.isclose(round(value / step) * step, value)


class Property:
    """A named property of a device.

    The base implementation simply caches values.  Subclasses override
    ``set_value`` to push writes to real hardware, calling
    ``set_cached_value_and_notify`` once the device confirms the change.
    """

    def __init__(self, device: Device, name: str, description: Mapping[str, Any]) -> None:
        if not isinstance(description, Mapping):
            msg = "Property description must be a mapping"
            raise TypeError(msg)

        self.device = device
        self.name = name
        self.visible: bool = description.get("visible", True)
        self.value: Any = None
        self.prev_get_value: Any = None
        self.fire_and_forget = False

        normalized = _from_legacy(description)
        self.title: str | None = normalized.get("title")
        self.type: str | None = normalized.get("type")
        self.at_type: str | None = normalized.get("@type")
        self.unit: str | None = normalized.get("unit")
        self.description: str | None = normalized.get("description")
        self.minimum: float | None = normalized.get("minimum")
        self.maximum: float | None = normalized.get("maximum")
        self.enum: list[Any] | None = normalized.get("enum")
        self.read_only: bool | None = normalized.get("readOnly")
        self.multiple_of: float | None = normalized.get("multipleOf")
        self.links: list[dict[str, Any]] | None = normalized.get("links")

    def __repr__(self) -> str:
        return f"Property(device={self.device.id!r}, name={self.name!r}, value={self.value!r})"

    def as_property_description(self) -> dict[str, Any]:
        """The property description without ``href``, omitting unset fields."""
        return drop_none(
            {key: getattr(self, attr) for key, attr in _DESCRIPTION_FIELDS.items()},
        )

    def as_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "value": self.value,
            "visible": self.visible,
            **self.as_property_description(),
        }

    def is_visible(self) -> bool:
        return self.visible

    def set_cached_value(self, value: Any) -> Any:
        """Store *value*, coercing it to ``bool`` for boolean properties."""
        self.value = bool(value) if self.type == "boolean" else value
        return self.value

    def set_cached_value_and_notify(self, value: Any) -> bool:
        """Cache *value* and notify the manager when it differs from the previous one.

        Returns:
            Whether the cached value changed.
        """
        old_value = self.value
        self.set_cached_value(value)
        changed = old_value != self.value
        if changed:
            self.device.notify_property_changed(self)
            logger.info(
                "Property %s of %s changed from %r to %r",
                self.name,
                self.device.id,
                old_value,
                self.value,
            )
        return changed

    async def get_value(self) -> Any:
        if self.value != self.prev_get_value:
            logger.debug("get_value for %s of %s returning %r", self.name, self.device.id, self.value)
            self.prev_get_value = self.value
        return self.value

    async def set_value(self, value: Any) -> Any:
        """Validate and apply *value*; returns the value now cached.

        Raises:
            PropertyError: If the property is read-only or *value* violates its
                minimum, maximum, multipleOf or enum constraints.
        """
        self.validate_value(value)
        self.set_cached_value_and_notify(value)
        return self.value

    def validate_value(self, value: Any) -> None:
        if self.read_only:
            msg = "Read-only property"
            raise PropertyError(msg)

        numeric_limits = (self.minimum, self.maximum, self.multiple_of)
        if any(limit is not None for limit in numeric_limits) and not _is_number(value):
            msg = f"Value must be a number: {value!r}"
            raise PropertyError(msg)

        if self.minimum is not None and value < self.minimum:
            msg = f"Value less than minimum: {self.minimum}"
            raise PropertyError(msg)

        if self.maximum is not None and value > self.maximum:
            msg = f"Value greater than maximum: {self.maximum}"
            raise PropertyError(msg)

        if self.multiple_of and not _is_multiple(value, self.multiple_of):
            msg = f"Value is not a multiple of: {self.multiple_of}"
            raise PropertyError(msg)

        if self.enum and value not in self.enum:
            msg = "Invalid enum value"
            raise PropertyError(msg)


__all__ = ["Property"]
