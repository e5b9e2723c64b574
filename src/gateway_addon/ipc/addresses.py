"""Channel addresses and the address-uniqueness registry."""

from __future__ import annotations

import os
from collections import Counter
from dataclasses import dataclass, field

from gateway_addon.constants import IPCProtocol
from gateway_addon.errors import UnsupportedProtocolError


def parse_protocol(protocol: str) -> IPCProtocol:
    """Resolve a protocol name, raising ``UnsupportedProtocolError`` when unknown."""
    try:
        return IPCProtocol(protocol)
    except ValueError:
        raise UnsupportedProtocolError(protocol) from None


@dataclass(frozen=True)
class ChannelAddress:
    """A ``(protocol, location)`` pair.

    Attributes:
        protocol: ``ipc`` (socket file) or ``inproc`` (same-process name).
        location: Socket file path for ``ipc``, channel name for ``inproc``.
    """

    protocol: IPCProtocol
    location: str

    @classmethod
    def for_base(
        cls,
        protocol: IPCProtocol,
        base_addr: str,
        *,
        ipc_dir: str,
        app_instance: str,
    ) -> ChannelAddress:
        """Derive the concrete address for a base address such as ``gateway.addonManager``."""
        if protocol is IPCProtocol.IPC:
            return cls(protocol, os.path.join(ipc_dir, base_addr))
        return cls(protocol, f"{app_instance}-{base_addr}")

    def __str__(self) -> str:
        return f"{self.protocol.value}://{self.location}"


@dataclass
class AddressRegistry:
    """Tracks which session-role addresses are bound or connected in this process.

    Starts empty.  ``claim_*`` records one holder of an address and reports
    whether it was free; ``release_*`` drops one holder.  A conflicting claim
    is still recorded so the caller can proceed the way permissive transports
    do, and the address stays claimed until every holder has released it.
    """

    bound: Counter[str] = field(default_factory=Counter)
    connected: Counter[str] = field(default_factory=Counter)

    def claim_bound(self, address: ChannelAddress) -> bool:
        return self._claim(self.bound, address)

    def claim_connected(self, address: ChannelAddress) -> bool:
        return self._claim(self.connected, address)

    def release_bound(self, address: ChannelAddress) -> None:
        self._release(self.bound, address)

    def release_connected(self, address: ChannelAddress) -> None:
        self._release(self.connected, address)

    def is_bound(self, address: ChannelAddress) -> bool:
        return self.bound[str(address)] > 0

    def is_connected(self, address: ChannelAddress) -> bool:
        return self.connected[str(address)] > 0

    def clear(self) -> None:
        self.bound.clear()
        self.connected.clear()

    @staticmethod
    def _claim(holders: Counter[str], address: ChannelAddress) -> bool:
        key = str(address)
        free = holders[key] == 0
        holders[key] += 1
        return free

    @staticmethod
    def _release(holders: Counter[str], address: ChannelAddress) -> None:
        key = str(address)
        holders[key] -= 1
        if holders[key] <= 0:
            del holders[key]


default_address_registry = AddressRegistry()


__all__ = [
    "AddressRegistry",
    "ChannelAddress",
    "default_address_registry",
    "parse_protocol",
]
