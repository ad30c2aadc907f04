"""ELF hosts (Linux and other Unix systems using ``$ORIGIN``)."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING

from imagelink.platforms.base import PlatformName

if TYPE_CHECKING:
    from imagelink.runtime import RuntimeDistribution


@dataclass(frozen=True, slots=True)
class LinuxPlatform:
    name: PlatformName = "linux"
    shared_ext: str = ".so"
    exe_suffix: str = ""
    path_sep: str = ":"
    default_libdir: str = "lib"
    default_rpath: str = "../lib"
    rpath_token: str | None = "$ORIGIN/"
    whole_archive: str = "--whole-archive"
    no_whole_archive: str = "--no-whole-archive"
    shared_library_glob: str = "*.so*"
    has_system_toolchain: bool = True
    flat_bundle: bool = False

    def runtime_library_dir(self, runtime: RuntimeDistribution) -> Path:
        return runtime.libdir
