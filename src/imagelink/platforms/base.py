"""Platform capability interface.

Every operation whose behavior diverges by host family (linker directives,
loader-relative rpath tokens, shared-library extensions, bundle layout) reads
it from one ``Platform`` object chosen once per process.
"""

from __future__ import annotations

from pathlib import Path
from typing import TYPE_CHECKING, Literal, Protocol

if TYPE_CHECKING:
    from imagelink.runtime import RuntimeDistribution

PlatformName = Literal["linux", "macos", "windows"]


class Platform(Protocol):
    name: PlatformName
    shared_ext: str
    exe_suffix: str
    path_sep: str
    default_libdir: str
    default_rpath: str
    rpath_token: str | None
    whole_archive: str
    no_whole_archive: str
    shared_library_glob: str
    has_system_toolchain: bool
    flat_bundle: bool

    def runtime_library_dir(self, runtime: RuntimeDistribution) -> Path:
        """Return the directory holding the runtime's public shared libraries."""


__all__ = ["Platform", "PlatformName"]
