"""Windows hosts.

Executables need an ``.exe`` suffix, DLLs are resolved from the executable's
own directory (so the bundle is one flat ``bin`` directory), there is no
loader-relative rpath, and no system C toolchain is assumed.
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING

from imagelink.platforms.base import PlatformName

if TYPE_CHECKING:
    from imagelink.runtime import RuntimeDistribution


@dataclass(frozen=True, slots=True)
class WindowsPlatform:
    name: PlatformName = "windows"
    shared_ext: str = ".dll"
    exe_suffix: str = ".exe"
    path_sep: str = ";"
    default_libdir: str = "bin"
    default_rpath: str = ""
    rpath_token: str | None = None
    whole_archive: str = "--whole-archive"
    no_whole_archive: str = "--no-whole-archive"
    shared_library_glob: str = "*.dll"
    has_system_toolchain: bool = False
    flat_bundle: bool = True

    def runtime_library_dir(self, runtime: RuntimeDistribution) -> Path:
        return runtime.bindir
