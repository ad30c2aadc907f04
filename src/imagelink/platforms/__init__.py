"""Host platform families and process-wide platform selection."""

from __future__ import annotations

import sys

from .base import Platform, PlatformName
from .linux import LinuxPlatform
from .macos import MacOSPlatform
from .windows import WindowsPlatform

_CURRENT: Platform | None = None


def detect_platform(sys_platform: str | None = None) -> Platform:
    value = sys.platform if sys_platform is None else sys_platform
    if value == "darwin":
        return MacOSPlatform()
    if value in ("win32", "cygwin"):
        return WindowsPlatform()
    return LinuxPlatform()


def current_platform() -> Platform:
    """Return the platform of the running host, detected once per process."""
    global _CURRENT
    if _CURRENT is None:
        _CURRENT = detect_platform()
    return _CURRENT


__all__ = [
    "LinuxPlatform",
    "MacOSPlatform",
    "Platform",
    "PlatformName",
    "WindowsPlatform",
    "current_platform",
    "detect_platform",
]
