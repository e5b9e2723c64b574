"""Shared package version helpers."""

from __future__ import annotations

from functools import lru_cache
from importlib.metadata import PackageNotFoundError, version


@lru_cache(maxsize=1)
def get_gateway_addon_version() -> str:
    """Return installed gateway-addon version, or 'dev' when package metadata is unavailable."""
    try:
        return version("gateway-addon")
    except PackageNotFoundError:
        return "dev"


__all__ = ["get_gateway_addon_version"]
