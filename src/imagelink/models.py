"""Core typed dataclasses for build recipes, commands and stage results."""

from __future__ import annotations

import os
import shlex
from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path
from typing import Literal

from imagelink.errors import ConfigurationError
from imagelink.platforms import Platform

OutputType = Literal["exe", "lib", "sysimage", "o", "bc"]

OUTPUT_FLAGS: dict[OutputType, str] = {
    "exe": "--output-exe",
    "lib": "--output-lib",
    "sysimage": "--output-sysimage",
    "o": "--output-o",
    "bc": "--output-bc",
}
ARCHIVE_OUTPUTS: frozenset[OutputType] = frozenset({"o", "bc"})
SHARED_OUTPUTS: frozenset[OutputType] = frozenset({"lib", "sysimage"})

IMAGE_DIR = ".imagelink"


@dataclass(frozen=True, slots=True)
class CommandSpec:
    argv: tuple[str, ...]
    env: Mapping[str, str] = field(default_factory=dict)

    def extend(self, *args: str) -> CommandSpec:
        return CommandSpec(argv=(*self.argv, *args), env=self.env)

    def render(self) -> str:
        return shlex.join(self.argv)


@dataclass(frozen=True, slots=True)
class ImageRecipe:
    output_type: OutputType
    file: str = ""
    img_path: str = ""
    cpu_target: str | None = None
    trim_mode: str | None = None
    add_ccallables: bool = False
    runtime_args: tuple[str, ...] = ()
    project: str = ""
    verbose: bool = False
    use_loaded_libs: bool = False
    c_sources: tuple[str, ...] = ()
    cflags: tuple[str, ...] = ()
    extra_objects: tuple[str, ...] = ()

    @property
    def output_flag(self) -> str:
        return OUTPUT_FLAGS[self.output_type]

    @property
    def trim_enabled(self) -> bool:
        return self.trim_mode is not None and self.trim_mode != "no"


@dataclass(frozen=True, slots=True)
class LinkRecipe:
    image_recipe: ImageRecipe
    outname: str
    rpath: str | None = None
    cc_flags: tuple[str, ...] = ()


@dataclass(frozen=True, slots=True)
class BundleRecipe:
    link_recipe: LinkRecipe
    output_dir: str | None = None
    libdir: str = "lib"
    privatize: bool = False
    assets: tuple[str, ...] = ()

    @property
    def requested(self) -> bool:
        return self.output_dir is not None


@dataclass(frozen=True, slots=True)
class LinkResult:
    outname: Path
    argv: tuple[str, ...]
    elapsed_seconds: float
    size_bytes: int


@dataclass(frozen=True, slots=True)
class BundleResult:
    output_dir: Path
    bindir: Path
    libdir: Path
    artifact: Path
    copied: tuple[Path, ...] = ()
    unchanged: tuple[Path, ...] = ()
    manifest_path: Path | None = None


@dataclass(frozen=True, slots=True)
class PrivatizeResult:
    renamed: Mapping[str, str] = field(default_factory=dict)
    rewritten: tuple[Path, ...] = ()
    skipped: bool = False


def is_name_only(value: str) -> bool:
    """Return whether *value* is a bare file name with no directory part."""
    return os.path.basename(value) == value and not os.path.isabs(value) and "\\" not in value


def normalize_outname(output_type: OutputType, outname: str, platform: Platform) -> str:
    """Apply the mandatory-extension rule for *output_type* on *platform*.

    An absent extension is filled in, a matching one is kept, anything else
    is rejected.
    """
    if output_type in SHARED_OUTPUTS:
        expected = platform.shared_ext
        case_sensitive = True
    elif output_type == "exe" and platform.exe_suffix:
        expected = platform.exe_suffix
        case_sensitive = False
    else:
        return outname

    stem, ext = os.path.splitext(outname)
    if ext == "":
        return stem + expected
    actual = ext if case_sensitive else ext.lower()
    if actual != expected:
        raise ConfigurationError(
            f"Invalid file extension '{ext}' for {OUTPUT_FLAGS[output_type]}. "
            f"Expected '{expected}' for this platform.",
            hint="Drop the extension to have it filled in automatically.",
            context={"outname": outname, "platform": platform.name},
        )
    return outname


def default_image_path(output_type: OutputType, outname: str) -> str:
    if output_type in ARCHIVE_OUTPUTS:
        return outname
    target = Path(outname)
    stem = os.path.splitext(target.name)[0]
    return str(target.parent / IMAGE_DIR / f"{stem}.a")


@dataclass(slots=True)
class RecipeBuilder:
    """Mutable collector for recipe settings.

    Settings are gathered incrementally (typically by the CLI), then
    :meth:`build` validates everything at once and returns the frozen
    image, link and bundle recipes.
    """

    output_type: OutputType | None = None
    outname: str = ""
    file: str = ""
    img_path: str = ""
    cpu_target: str | None = None
    trim_mode: str | None = None
    add_ccallables: bool = False
    runtime_args: list[str] = field(default_factory=list)
    project: str = ""
    verbose: bool = False
    use_loaded_libs: bool = False
    c_sources: list[str] = field(default_factory=list)
    cflags: list[str] = field(default_factory=list)
    extra_objects: list[str] = field(default_factory=list)
    rpath: str | None = None
    cc_flags: list[str] = field(default_factory=list)
    bundle: bool = False
    bundle_dir: str | None = None
    libdir: str | None = None
    privatize: bool = False
    assets: list[str] = field(default_factory=list)

    def set_output(self, output_type: OutputType, name: str) -> None:
        if self.output_type is not None:
            raise ConfigurationError(
                "Multiple output types specified.",
                context={
                    "first": OUTPUT_FLAGS[self.output_type],
                    "second": OUTPUT_FLAGS[output_type],
                },
            )
        if output_type == "exe" and not is_name_only(name):
            raise ConfigurationError(
                f"--output-exe expects a name, no path. Got: {name}",
                hint="Use --bundle <dir> to choose where the executable is placed.",
            )
        self.output_type = output_type
        self.outname = name

    def set_input(self, file: str) -> None:
        if self.file:
            raise ConfigurationError(f"Unexpected argument `{file}`.")
        self.file = file

    def build(self, platform: Platform) -> tuple[ImageRecipe, LinkRecipe, BundleRecipe]:
        if self.output_type is None or not self.outname:
            raise ConfigurationError("No output file specified.")
        if not self.file:
            raise ConfigurationError("No input file specified.")

        output_type = self.output_type
        outname = normalize_outname(output_type, self.outname, platform)
        image = ImageRecipe(
            output_type=output_type,
            file=self.file,
            img_path=self.img_path or default_image_path(output_type, outname),
            cpu_target=self.cpu_target,
            trim_mode=self.trim_mode,
            add_ccallables=self.add_ccallables,
            runtime_args=tuple(self.runtime_args),
            project=self.project,
            verbose=self.verbose,
            use_loaded_libs=self.use_loaded_libs,
            c_sources=tuple(self.c_sources),
            cflags=tuple(self.cflags),
            extra_objects=tuple(self.extra_objects),
        )

        libdir = self.libdir or platform.default_libdir
        rpath = self.rpath
        output_dir: str | None = None
        if self.bundle:
            output_dir = self.bundle_dir or os.path.abspath(os.path.dirname(outname))
            # Artifacts land in bin/, so the loader path is relative to it.
            rpath = libdir if platform.flat_bundle else f"../{libdir}"

        link = LinkRecipe(
            image_recipe=image,
            outname=outname,
            rpath=rpath,
            cc_flags=tuple(self.cc_flags),
        )
        bundle = BundleRecipe(
            link_recipe=link,
            output_dir=output_dir,
            libdir=libdir,
            privatize=self.privatize,
            assets=tuple(self.assets),
        )
        return image, link, bundle


__all__ = [
    "ARCHIVE_OUTPUTS",
    "BundleRecipe",
    "BundleResult",
    "CommandSpec",
    "ImageRecipe",
    "LinkRecipe",
    "LinkResult",
    "OUTPUT_FLAGS",
    "OutputType",
    "PrivatizeResult",
    "RecipeBuilder",
    "SHARED_OUTPUTS",
    "default_image_path",
    "is_name_only",
    "normalize_outname",
]
