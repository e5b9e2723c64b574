"""Configuration loader for gateway-addon."""

from __future__ import annotations

import os
import tomllib
from typing import TYPE_CHECKING

from pydantic import BaseModel, Field, field_validator

from gateway_addon.constants import RENDEZVOUS_ADDR, IPCProtocol
from gateway_addon.paths import get_config_path, get_default_ipc_dir

if TYPE_CHECKING:
    from collections.abc import Mapping
    from pathlib import Path

_DEFAULT_APP_INSTANCE = "gateway"

_ENV_OVERRIDES: dict[str, str] = {
    "GATEWAY_ADDON_IPC_PROTOCOL": "protocol",
    "GATEWAY_ADDON_APP_INSTANCE": "app_instance",
    "GATEWAY_ADDON_IPC_DIR": "ipc_dir",
}


class IPCConfig(BaseModel):
    """Transport settings shared by the rendezvous and session channels."""

    protocol: str = Field(
        default=IPCProtocol.IPC.value,
        description="Address protocol: ipc (local socket file) or inproc (same process)",
    )
    ipc_dir: str = Field(
        default_factory=get_default_ipc_dir,
        description="Directory holding socket files for the ipc protocol",
    )
    app_instance: str = Field(
        default=_DEFAULT_APP_INSTANCE,
        description="Prefix scoping inproc channel names to one gateway instance",
    )
    rendezvous_addr: str = Field(
        default=RENDEZVOUS_ADDR,
        description="Well-known base address the gateway binds for registration",
    )
    strict_socket_state: bool = Field(
        default=False,
        description="Raise instead of logging on bind/connect misuse and address conflicts",
    )
    close_rendezvous_after_register: bool = Field(
        default=True,
        description="Close the registration channel once the session channel is open",
    )

    @field_validator("app_instance", mode="before")
    @classmethod
    def validate_app_instance(cls, value: object) -> str:
        """Coerce empty app instance names to the default."""
        match value:
            case str() as name if name.strip():
                return name.strip()
            case _:
                pass
        return _DEFAULT_APP_INSTANCE


class LoggingConfig(BaseModel):
    """Logging preferences."""

    verbose: bool = Field(default=False, description="Log handshake and dispatch progress")
    trace_messages: bool = Field(
        default=False,
        description="Log every frame sent and received on the gateway_addon.ipc.trace logger",
    )


class AddonConfig(BaseModel):
    """Root configuration model."""

    ipc: IPCConfig = Field(default_factory=IPCConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    @classmethod
    def load(
        cls,
        config_path: Path | None = None,
        *,
        environ: Mapping[str, str] | None = None,
    ) -> AddonConfig:
        """Load configuration from TOML file or use defaults, then apply env overrides."""
        if config_path is None:
            config_path = get_config_path()

        data: dict[str, object] = {}
        if config_path.exists():
            with open(config_path, "rb") as f:
                data = tomllib.load(f)

        env = os.environ if environ is None else environ
        ipc_section = dict(data.get("ipc") or {})  # type: ignore[call-overload]
        for env_name, key in _ENV_OVERRIDES.items():
            value = env.get(env_name)
            if value:
                ipc_section[key] = value
        if ipc_section:
            data["ipc"] = ipc_section

        return cls.model_validate(data)


__all__ = ["AddonConfig", "IPCConfig", "LoggingConfig"]
