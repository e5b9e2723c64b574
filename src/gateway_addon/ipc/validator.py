"""Schema validation for inbound frames.

The schema set ships as package data: ``schema.json`` describes the envelope
(the frame wrapped under a ``message`` key) and ``messages/*.json`` holds one
schema per message type, keyed by the ``messageType`` constant it declares.
"""

from __future__ import annotations

import json
import logging
from functools import lru_cache
from importlib import resources
from types import MappingProxyType
from typing import TYPE_CHECKING, Any

from jsonschema import validators
from jsonschema.exceptions import best_match

from gateway_addon.errors import MalformedEncodingError, SchemaViolationError
from gateway_addon.ipc.messages import Message

if TYPE_CHECKING:
    from collections.abc import Mapping
    from importlib.resources.abc import Traversable

logger = logging.getLogger(__name__)

_SCHEMA_PACKAGE = "gateway_addon.schema"


def _load_json(path: Traversable) -> dict[str, Any]:
    return json.loads(path.read_text(encoding="utf-8"))


def _build_validator(schema: dict[str, Any]) -> Any:
    validator_cls = validators.validator_for(schema)
    validator_cls.check_schema(schema)
    return validator_cls(schema)


def _schema_message_type(schema: Mapping[str, Any]) -> str | None:
    message_type = schema.get("properties", {}).get("messageType", {})
    const = message_type.get("const") if isinstance(message_type, dict) else None
    return const if isinstance(const, str) else None


class MessageValidator:
    """Validates raw frames against the envelope and per-type schemas.

    Instances are read-only after construction; ``get_default_validator()``
    returns the process-wide instance built from the packaged schema set.
    """

    def __init__(self, envelope: dict[str, Any], message_schemas: list[dict[str, Any]]) -> None:
        self._envelope = _build_validator(envelope)
        by_type: dict[str, Any] = {}
        for schema in message_schemas:
            message_type = _schema_message_type(schema)
            if message_type is None:
                logger.warning("Skipping schema without a messageType const: %s", schema.get("$id"))
                continue
            by_type[message_type] = _build_validator(schema)
        self._by_type = MappingProxyType(by_type)

    @classmethod
    def from_package(cls, package: str = _SCHEMA_PACKAGE) -> MessageValidator:
        """Load the schema set bundled with *package*."""
        root = resources.files(package)
        envelope = _load_json(root.joinpath("schema.json"))
        messages_dir = root.joinpath("messages")
        message_schemas = [
            _load_json(item)
            for item in sorted(messages_dir.iterdir(), key=lambda p: p.name)
            if item.name.endswith(".json")
        ]
        return cls(envelope, message_schemas)

    @property
    def message_types(self) -> frozenset[str]:
        """Message types that have a dedicated schema."""
        return frozenset(self._by_type)

    def validate(self, raw: bytes | str) -> Message:
        """Decode and validate one frame.

        Raises:
            MalformedEncodingError: *raw* is not UTF-8 encoded JSON.
            SchemaViolationError: The document fails the envelope or its type schema.
        """
        try:
            text = raw.decode("utf-8") if isinstance(raw, bytes) else raw
            document = json.loads(text)
        except (ValueError, RecursionError) as exc:
            msg = f"Error parsing message as JSON: {exc}"
            raise MalformedEncodingError(msg) from exc

        self._check(self._envelope, {"message": document}, "envelope")

        type_validator = self._by_type.get(document["messageType"])
        if type_validator is not None:
            self._check(type_validator, document, document["messageType"])

        return Message.model_validate(document)

    @staticmethod
    def _check(validator: Any, instance: Any, label: str) -> None:
        error = best_match(validator.iter_errors(instance))
        if error is None:
            return
        path = ".".join(str(p) for p in error.absolute_path)
        where = f" ({path})" if path else ""
        msg = f"Invalid {label} message{where}: {error.message}"
        raise SchemaViolationError(msg, path=path)


@lru_cache(maxsize=1)
def get_default_validator() -> MessageValidator:
    """Return the process-wide validator for schema set version 1."""
    return MessageValidator.from_package()


__all__ = ["MessageValidator", "get_default_validator"]
