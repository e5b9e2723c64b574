"""Pytest fixtures for gateway-addon tests."""

from __future__ import annotations

import os
import shutil
import tempfile
from pathlib import Path
from typing import TYPE_CHECKING

import pytest
from hypothesis import Phase, Verbosity, settings

from gateway_addon.config import IPCConfig
from gateway_addon.ipc.addresses import AddressRegistry
from gateway_addon.ipc.transports import InProcHub

_TEST_BASE_DIR = Path(tempfile.mkdtemp(prefix="gateway-addon-tests-"))
os.environ["GATEWAY_ADDON_CONFIG_DIR"] = str(_TEST_BASE_DIR / "config")
for _name in ("GATEWAY_ADDON_IPC_PROTOCOL", "GATEWAY_ADDON_APP_INSTANCE", "GATEWAY_ADDON_IPC_DIR"):
    os.environ.pop(_name, None)

if TYPE_CHECKING:
    from collections.abc import AsyncGenerator, Generator

    from tests.helpers.gateway import FakeGateway


settings.register_profile(
    "ci",
    max_examples=100,
    deadline=None,
    phases=[Phase.explicit, Phase.reuse, Phase.generate, Phase.shrink],
)
settings.register_profile(
    "dev",
    max_examples=20,
    deadline=500,
)
settings.register_profile(
    "debug",
    max_examples=10,
    verbosity=Verbosity.verbose,
    deadline=None,
)
settings.load_profile(os.getenv("HYPOTHESIS_PROFILE", "dev"))


@pytest.fixture
def address_registry() -> AddressRegistry:
    """Empty address registry, isolated from the process-wide one."""
    return AddressRegistry()


@pytest.fixture
def inproc_hub() -> InProcHub:
    """Empty in-process listener table, isolated from the process-wide one."""
    return InProcHub()


@pytest.fixture
def inproc_config() -> IPCConfig:
    return IPCConfig(protocol="inproc", app_instance="test-gateway")


@pytest.fixture
def short_tmp() -> Generator[Path, None, None]:
    """Create a short temp directory for Unix socket paths (macOS 104-byte limit)."""
    d = tempfile.mkdtemp(prefix="ga-", dir="/tmp")
    yield Path(d)
    shutil.rmtree(d, ignore_errors=True)


@pytest.fixture
def ipc_config(short_tmp: Path) -> IPCConfig:
    return IPCConfig(protocol="ipc", ipc_dir=str(short_tmp))


@pytest.fixture
async def gateway(
    inproc_config: IPCConfig,
    address_registry: AddressRegistry,
    inproc_hub: InProcHub,
) -> AsyncGenerator[FakeGateway, None]:
    """A started in-process gateway."""
    from tests.helpers.gateway import FakeGateway

    fake = FakeGateway(inproc_config, address_registry=address_registry, inproc_hub=inproc_hub)
    await fake.start()
    yield fake
    await fake.close()
