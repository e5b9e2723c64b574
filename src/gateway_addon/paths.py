"""XDG-compliant path helpers for gateway-addon configuration and IPC files."""

from __future__ import annotations

import os
from pathlib import Path

from platformdirs import user_config_dir

_DEFAULT_IPC_DIR = "/tmp"


def get_config_dir() -> Path:
    """Get the config directory for gateway-addon (config.toml)."""
    override = os.environ.get("GATEWAY_ADDON_CONFIG_DIR")
    if override:
        return Path(override).resolve()
    return Path(user_config_dir("gateway-addon"))


def get_config_path() -> Path:
    """Get the path to the main config file."""
    return get_config_dir() / "config.toml"


def get_default_ipc_dir() -> str:
    """Directory holding ``ipc`` protocol socket files.

    The gateway and every plugin must agree on this directory, so it is a fixed
    location rather than a per-user one.
    """
    return _DEFAULT_IPC_DIR


__all__ = ["get_config_dir", "get_config_path", "get_default_ipc_dir"]
