"""Unit tests for configuration loading."""

from __future__ import annotations

from typing import TYPE_CHECKING

import pytest

from gateway_addon.config import AddonConfig, IPCConfig
from gateway_addon.constants import RENDEZVOUS_ADDR
from gateway_addon.paths import get_config_dir, get_config_path
from tests.helpers.config import write_test_config

if TYPE_CHECKING:
    from pathlib import Path

pytestmark = pytest.mark.unit


def test_defaults() -> None:
    config = AddonConfig()

    assert config.ipc.protocol == "ipc"
    assert config.ipc.ipc_dir == "/tmp"
    assert config.ipc.app_instance == "gateway"
    assert config.ipc.rendezvous_addr == RENDEZVOUS_ADDR
    assert config.ipc.strict_socket_state is False
    assert config.ipc.close_rendezvous_after_register is True
    assert config.logging.verbose is False
    assert config.logging.trace_messages is False


def test_missing_file_gives_defaults(tmp_path: Path) -> None:
    config = AddonConfig.load(tmp_path / "absent.toml", environ={})

    assert config == AddonConfig()


def test_load_from_toml(tmp_path: Path) -> None:
    path = write_test_config(
        tmp_path / "config.toml",
        protocol="inproc",
        app_instance="gw-7",
        strict_socket_state=True,
        verbose=True,
    )

    config = AddonConfig.load(path, environ={})

    assert config.ipc.protocol == "inproc"
    assert config.ipc.app_instance == "gw-7"
    assert config.ipc.strict_socket_state is True
    assert config.logging.verbose is True


def test_environment_overrides_file(tmp_path: Path) -> None:
    path = write_test_config(tmp_path / "config.toml", protocol="ipc", ipc_dir="/var/run/gw")

    config = AddonConfig.load(
        path,
        environ={
            "GATEWAY_ADDON_IPC_PROTOCOL": "inproc",
            "GATEWAY_ADDON_APP_INSTANCE": "gw-env",
            "GATEWAY_ADDON_IPC_DIR": "/run/gw",
        },
    )

    assert config.ipc.protocol == "inproc"
    assert config.ipc.app_instance == "gw-env"
    assert config.ipc.ipc_dir == "/run/gw"


def test_empty_environment_values_are_ignored(tmp_path: Path) -> None:
    path = write_test_config(tmp_path / "config.toml", protocol="inproc")

    config = AddonConfig.load(path, environ={"GATEWAY_ADDON_IPC_PROTOCOL": ""})

    assert config.ipc.protocol == "inproc"


@pytest.mark.parametrize("value", ["", "   ", None])
def test_blank_app_instance_falls_back_to_default(value: object) -> None:
    assert IPCConfig(app_instance=value).app_instance == "gateway"  # type: ignore[arg-type]


def test_unknown_protocol_is_kept_until_a_channel_is_built() -> None:
    assert IPCConfig(protocol="tcp").protocol == "tcp"


def test_config_dir_override(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    monkeypatch.setenv("GATEWAY_ADDON_CONFIG_DIR", str(tmp_path))

    assert get_config_dir() == tmp_path.resolve()
    assert get_config_path() == tmp_path.resolve() / "config.toml"


def test_load_reads_default_path(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    monkeypatch.setenv("GATEWAY_ADDON_CONFIG_DIR", str(tmp_path))
    write_test_config(tmp_path / "config.toml", app_instance="from-default-path")

    config = AddonConfig.load(environ={})

    assert config.ipc.app_instance == "from-default-path"
