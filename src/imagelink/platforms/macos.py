"""Mach-O hosts."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING

from imagelink.platforms.base import PlatformName

if TYPE_CHECKING:
    from imagelink.runtime import RuntimeDistribution


@dataclass(frozen=True, slots=True)
class MacOSPlatform:
    name: PlatformName = "macos"
    shared_ext: str = ".dylib"
    exe_suffix: str = ""
    path_sep: str = ":"
    default_libdir: str = "lib"
    default_rpath: str = "../lib"
    rpath_token: str | None = "@loader_path/"
    # ld64 spells the whole-archive bracket differently from GNU ld.
    whole_archive: str = "-all_load"
    no_whole_archive: str = "-noall_load"
    shared_library_glob: str = "*.dylib"
    has_system_toolchain: bool = True
    flat_bundle: bool = False

    def runtime_library_dir(self, runtime: RuntimeDistribution) -> Path:
        return runtime.libdir
