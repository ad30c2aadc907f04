"""Pre-built runtime distribution the linked artifacts depend on."""

from __future__ import annotations

import os
import shutil
from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path

from imagelink.errors import ConfigurationError
from imagelink.platforms import Platform

DEFAULT_RUNTIME_NAME = "julia"

_TRUTHY = ("1", "true", "yes", "on")

_DEFAULT: RuntimeDistribution | None = None


@dataclass(frozen=True, slots=True)
class RuntimeDistribution:
    """Library and header layout of an installed runtime.

    ``private_libdir`` is the nested directory (``<libdir>/<name>``) where the
    runtime keeps libraries that are not part of its public interface.
    """

    root: Path
    name: str = DEFAULT_RUNTIME_NAME
    debug_build: bool = False
    toolchain_root: Path | None = None

    @property
    def bindir(self) -> Path:
        return self.root / "bin"

    @property
    def libdir(self) -> Path:
        return self.root / "lib"

    @property
    def private_libdir(self) -> Path:
        return self.libdir / self.name

    @property
    def includedir(self) -> Path:
        return self.root / "include" / self.name

    @property
    def executable(self) -> Path:
        return self.bindir / self.name

    @property
    def bundled_toolchain_root(self) -> Path:
        if self.toolchain_root is not None:
            return self.toolchain_root
        return self.root / "libexec" / "mingw-w64"

    def link_libraries(self) -> tuple[str, ...]:
        if self.debug_build:
            return (f"-l{self.name}-debug", f"-l{self.name}-internal-debug")
        return (f"-l{self.name}", f"-l{self.name}-internal")

    def compile_flags(
        self,
        platform: Platform,
        *,
        framework: bool = False,
        rpath: bool = False,
    ) -> tuple[str, ...]:
        flags = ["-std=gnu11", f"-I{self.includedir}"]
        if platform.name != "windows":
            flags.append("-fPIC")
        if framework and platform.name == "macos":
            flags.extend([f"-F{self.root / 'Frameworks'}", "-framework", self.name.capitalize()])
        else:
            flags.extend([f"-L{self.libdir}", f"-L{self.private_libdir}"])
        if rpath and platform.rpath_token is not None:
            flags.append(f"-Wl,-rpath,{self.libdir}")
            flags.append(f"-Wl,-rpath,{self.private_libdir}")
        if platform.name == "linux":
            flags.append("-Wl,--export-dynamic")
        return tuple(flags)

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> RuntimeDistribution:
        env = os.environ if environ is None else environ
        name = env.get("IMAGELINK_RUNTIME_NAME") or DEFAULT_RUNTIME_NAME
        debug_build = env.get("IMAGELINK_RUNTIME_DEBUG", "").strip().lower() in _TRUTHY
        toolchain = env.get("IMAGELINK_TOOLCHAIN_ROOT")
        toolchain_root = Path(toolchain) if toolchain else None

        root_value = env.get("IMAGELINK_RUNTIME_ROOT")
        if root_value:
            root = Path(root_value)
        else:
            executable = shutil.which(name, path=env.get("PATH"))
            if executable is None:
                raise ConfigurationError(
                    "Could not locate the runtime distribution.",
                    hint=(
                        "Set IMAGELINK_RUNTIME_ROOT to the runtime install prefix or put the "
                        f"`{name}` executable on PATH."
                    ),
                    context={"runtime": name},
                )
            # <root>/bin/<name>
            root = Path(executable).resolve().parent.parent

        return cls(
            root=root,
            name=name,
            debug_build=debug_build,
            toolchain_root=toolchain_root,
        )


def default_runtime() -> RuntimeDistribution:
    """Resolve the runtime from the environment once and reuse it afterwards."""
    global _DEFAULT
    if _DEFAULT is None:
        _DEFAULT = RuntimeDistribution.from_env()
    return _DEFAULT


__all__ = ["DEFAULT_RUNTIME_NAME", "RuntimeDistribution", "default_runtime"]
