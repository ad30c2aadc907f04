"""Privatize a bundled runtime so it cannot be confused with a system install.

The runtime libraries in the bundle are renamed with a private tag
(``libjulia.so.1`` -> ``libjulia-1a2b3c4d.so.1``), their own identity
(ELF soname / Mach-O install name) is rewritten to the new name, and every
binary in the bundle is relinked against the renamed files. A second copy of
the runtime loaded into the same process then resolves to distinct files.
"""

from __future__ import annotations

import hashlib
import os
import shutil
import subprocess
import warnings
from dataclasses import dataclass
from pathlib import Path
from typing import Protocol

from imagelink.errors import PrivatizationError
from imagelink.models import BundleResult, CommandSpec, PrivatizeResult
from imagelink.observability import StructuredLogger
from imagelink.platforms import Platform, current_platform
from imagelink.process import run_command
from imagelink.runtime import RuntimeDistribution, default_runtime

TAG_LENGTH = 8


class Privatizer(Protocol):
    name: str

    def required_tools(self) -> tuple[str, ...]:
        """Return host commands needed to rewrite binaries."""

    def set_identity(self, path: Path, renames: dict[str, str], *, in_private_dir: bool) -> None:
        """Point the library's own name and search paths at the bundle."""

    def relink(self, path: Path, renames: dict[str, str]) -> None:
        """Rewrite references to renamed libraries inside *path*."""


@dataclass(slots=True)
class ElfPrivatizer:
    runtime_name: str
    name: str = "elf"

    def required_tools(self) -> tuple[str, ...]:
        return ("patchelf",)

    def set_identity(self, path: Path, renames: dict[str, str], *, in_private_dir: bool) -> None:
        result = _run("patchelf", "--print-soname", str(path))
        soname = result.stdout.strip() or path.name
        rpath = "$ORIGIN:$ORIGIN/.." if in_private_dir else f"$ORIGIN:$ORIGIN/{self.runtime_name}"
        _run(
            "patchelf",
            "--set-soname",
            renames.get(soname, soname),
            "--set-rpath",
            rpath,
            str(path),
        )

    def relink(self, path: Path, renames: dict[str, str]) -> None:
        args: list[str] = []
        for old, new in sorted(renames.items()):
            args.extend(["--replace-needed", old, new])
        if args:
            _run("patchelf", *args, str(path))


@dataclass(slots=True)
class MachOPrivatizer:
    runtime_name: str
    name: str = "macho"

    def required_tools(self) -> tuple[str, ...]:
        return ("install_name_tool", "otool", "codesign")

    def set_identity(self, path: Path, renames: dict[str, str], *, in_private_dir: bool) -> None:
        result = _run("otool", "-D", str(path))
        lines = [line.strip() for line in result.stdout.splitlines() if line.strip()]
        # otool prints "<path>:" followed by the install name.
        current = os.path.basename(lines[-1]) if len(lines) > 1 else path.name
        _run("install_name_tool", "-id", f"@rpath/{renames.get(current, current)}", str(path))

    def relink(self, path: Path, renames: dict[str, str]) -> None:
        args: list[str] = []
        for old, new in sorted(renames.items()):
            args.extend(["-change", f"@rpath/{old}", f"@rpath/{new}"])
        if args:
            _run("install_name_tool", *args, str(path))
        # Rewriting load commands invalidates the signature.
        _run("codesign", "--sign", "-", "--force", str(path))


def get_privatizer(platform: Platform, runtime: RuntimeDistribution) -> Privatizer | None:
    if platform.name == "linux":
        return ElfPrivatizer(runtime_name=runtime.name)
    if platform.name == "macos":
        return MachOPrivatizer(runtime_name=runtime.name)
    return None


def private_tag(*artifact_names: str) -> str:
    digest = hashlib.sha256("\0".join(sorted(artifact_names)).encode("utf-8"))
    return digest.hexdigest()[:TAG_LENGTH]


def is_runtime_library(name: str, runtime_name: str) -> bool:
    """Match ``lib<runtime>`` and ``lib<runtime>-<suffix>``, tagged or not."""
    stem = name.partition(".")[0]
    prefix = f"lib{runtime_name}"
    return stem == prefix or stem.startswith(f"{prefix}-")


def privatized_name(name: str, runtime_name: str, tag: str) -> str | None:
    """Return the tagged file name for a runtime library, or ``None``.

    ``None`` means *name* is not a runtime library or already carries *tag*.
    """
    if not is_runtime_library(name, runtime_name):
        return None
    stem, dot, rest = name.partition(".")
    if stem.endswith(f"-{tag}"):
        return None
    return f"{stem}-{tag}{dot}{rest}"


def privatize(
    bundle: BundleResult | str | Path,
    *,
    tag: str | None = None,
    libdir: str | None = None,
    platform: Platform | None = None,
    runtime: RuntimeDistribution | None = None,
    logger: StructuredLogger | None = None,
) -> PrivatizeResult:
    platform = platform or current_platform()
    runtime = runtime or default_runtime()
    logger = logger or StructuredLogger()

    privatizer = get_privatizer(platform, runtime)
    if privatizer is None:
        warnings.warn(
            f"Privatizing the bundled runtime is not supported on {platform.name}; skipping.",
            RuntimeWarning,
            stacklevel=2,
        )
        logger.log(
            operation="privatize",
            stage="privatize",
            artifact=None,
            message=f"privatize skipped: unsupported platform {platform.name}",
            level="warning",
        )
        return PrivatizeResult(skipped=True)

    if isinstance(bundle, BundleResult):
        lib_root = bundle.libdir
        artifacts = [bundle.artifact]
    else:
        root = Path(bundle)
        lib_root = root / (libdir or platform.default_libdir)
        artifacts = _bundle_artifacts(root / "bin", runtime.name)
    if not lib_root.is_dir():
        raise PrivatizationError(
            "Bundle library directory not found.",
            hint="Run the bundle step before privatizing.",
            context={"libdir": str(lib_root)},
        )

    missing = [tool for tool in privatizer.required_tools() if shutil.which(tool) is None]
    if missing:
        raise PrivatizationError(
            f"Privatization requires `{'`, `'.join(missing)}` in PATH.",
            hint="Install the binary rewriting tools for this platform.",
            context={"platform": platform.name, "privatizer": privatizer.name},
        )

    tag = tag or private_tag(*(artifact.name for artifact in artifacts))
    private_root = lib_root / runtime.name
    renames: dict[str, str] = {}
    libraries: list[tuple[Path, bool]] = []

    for directory, in_private_dir in ((lib_root, False), (private_root, True)):
        if not directory.is_dir():
            continue
        for path in sorted(directory.glob(platform.shared_library_glob)):
            new_name = privatized_name(path.name, runtime.name, tag)
            if new_name is None:
                continue
            renames[path.name] = new_name
            libraries.append((path, in_private_dir))

    renamed_files: list[tuple[Path, bool]] = []
    for path, in_private_dir in libraries:
        target = path.with_name(renames[path.name])
        if path.is_symlink():
            link_target = os.readlink(path)
            new_target = renames.get(link_target, link_target)
            if target.exists() or target.is_symlink():
                target.unlink()
            os.symlink(new_target, target)
            path.unlink()
        else:
            os.replace(path, target)
            renamed_files.append((target, in_private_dir))

    rewritten: list[Path] = []
    for path, in_private_dir in renamed_files:
        privatizer.set_identity(path, renames, in_private_dir=in_private_dir)

    if renames:
        for path in _bundle_binaries(lib_root, platform) + artifacts:
            privatizer.relink(path, renames)
            rewritten.append(path)

    logger.log(
        operation="privatize",
        stage="privatize",
        artifact=", ".join(str(a) for a in artifacts) or None,
        message=f"Privatized {len(renamed_files)} runtime libraries with tag {tag}",
        extra={"renamed": dict(renames), "privatizer": privatizer.name},
    )
    return PrivatizeResult(renamed=renames, rewritten=tuple(rewritten))


def _bundle_binaries(lib_root: Path, platform: Platform) -> list[Path]:
    return sorted(
        path
        for path in lib_root.rglob(platform.shared_library_glob)
        if path.is_file() and not path.is_symlink()
    )


def _bundle_artifacts(bindir: Path, runtime_name: str) -> list[Path]:
    if not bindir.is_dir():
        return []
    return sorted(
        path
        for path in bindir.iterdir()
        if path.is_file()
        and not path.is_symlink()
        and not is_runtime_library(path.name, runtime_name)
    )


def _run(*argv: str) -> subprocess.CompletedProcess[str]:
    return run_command(
        CommandSpec(argv=argv),
        operation="privatize",
        message="Privatization failed.",
        error_cls=PrivatizationError,
    )


__all__ = [
    "ElfPrivatizer",
    "MachOPrivatizer",
    "Privatizer",
    "get_privatizer",
    "is_runtime_library",
    "private_tag",
    "privatize",
    "privatized_name",
]
