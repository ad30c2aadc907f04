"""Native C/C++ compiler discovery."""

from __future__ import annotations

import os
import shlex
import shutil
import sys
from collections.abc import Mapping

from imagelink.errors import ConfigurationError, ToolchainNotFoundError
from imagelink.models import CommandSpec
from imagelink.platforms import Platform, current_platform
from imagelink.runtime import RuntimeDistribution, default_runtime

CC_OVERRIDE_ENV = "IMAGELINK_CC"

CPP_COMPILERS = ("g++", "clang++")
C_COMPILERS = ("gcc", "clang")


def locate(
    want_cpp: bool = False,
    *,
    platform: Platform | None = None,
    runtime: RuntimeDistribution | None = None,
    environ: Mapping[str, str] | None = None,
) -> CommandSpec:
    """Return the compiler invocation and any environment it needs."""
    env = os.environ if environ is None else environ
    override = env.get(CC_OVERRIDE_ENV)
    if override:
        argv = tuple(shlex.split(override))
        if not argv:
            raise ConfigurationError(
                f"{CC_OVERRIDE_ENV} is set but names no command.",
                context={CC_OVERRIDE_ENV: override},
            )
        return CommandSpec(argv=argv)

    platform = platform or current_platform()
    if not platform.has_system_toolchain:
        return _bundled_compiler(
            want_cpp,
            platform=platform,
            runtime=runtime or default_runtime(),
            environ=env,
        )

    candidates = CPP_COMPILERS if want_cpp else C_COMPILERS
    search_path = env.get("PATH")
    for compiler in candidates:
        if shutil.which(compiler, path=search_path) is not None:
            return CommandSpec(argv=(compiler,))

    raise ToolchainNotFoundError(
        f"Could not find a compiler, looked for {_describe(candidates)}.",
        hint=f"Install a C compiler or set {CC_OVERRIDE_ENV} to the compiler command line.",
        context={"candidates": ", ".join(candidates), "platform": platform.name},
    )


def _bundled_compiler(
    want_cpp: bool,
    *,
    platform: Platform,
    runtime: RuntimeDistribution,
    environ: Mapping[str, str],
) -> CommandSpec:
    flavor = "mingw64" if sys.maxsize > 2**32 else "mingw32"
    bindir = runtime.bundled_toolchain_root / flavor / "bin"
    compiler = bindir / ("g++.exe" if want_cpp else "gcc.exe")
    # The driver spawns as/ld from its own directory.
    search_path = environ.get("PATH", "")
    path_value = f"{search_path}{platform.path_sep}{bindir}" if search_path else str(bindir)
    return CommandSpec(argv=(str(compiler),), env={"PATH": path_value})


def _describe(candidates: tuple[str, ...]) -> str:
    if len(candidates) == 1:
        return candidates[0]
    return f"{', '.join(candidates[:-1])} and {candidates[-1]}"


__all__ = ["CC_OVERRIDE_ENV", "C_COMPILERS", "CPP_COMPILERS", "locate"]
