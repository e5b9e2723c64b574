"""Test helpers package."""

from tests.helpers.config import write_test_config
from tests.helpers.gateway import SESSION_ADDR, FakeGateway
from tests.helpers.mocks import (
    LampAdapter,
    LampDevice,
    RecordingManager,
    RecordingNotifier,
    RecordingOutlet,
    RecordingPluginClient,
    make_router,
    populate,
)
from tests.helpers.wait import settle, wait_until

__all__ = [
    "SESSION_ADDR",
    "FakeGateway",
    "LampAdapter",
    "LampDevice",
    "RecordingManager",
    "RecordingNotifier",
    "RecordingOutlet",
    "RecordingPluginClient",
    "make_router",
    "populate",
    "settle",
    "wait_until",
    "write_test_config",
]
