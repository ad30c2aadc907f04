"""Boundary to the external image compiler.

The image compiler (the runtime's own front-end) turns a program into the
object or bitcode archive that the link step consumes. This module only
assembles its command line and compiles the recipe's C shim sources.
"""

from __future__ import annotations

import dataclasses
import hashlib
import os
from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path
from typing import Protocol

from imagelink.models import CommandSpec, ImageRecipe
from imagelink.observability import StructuredLogger
from imagelink.platforms import Platform, current_platform
from imagelink.process import run_command
from imagelink.runtime import RuntimeDistribution, default_runtime
from imagelink.toolchain import locate


class ImageCompiler(Protocol):
    def compile(self, recipe: ImageRecipe) -> ImageRecipe:
        """Produce ``recipe.img_path`` and return the recipe the link step should use."""


def image_command(recipe: ImageRecipe, runtime: RuntimeDistribution) -> CommandSpec:
    # Executable/library outputs are linked from an object archive.
    archive_flag = "--output-bc" if recipe.output_type == "bc" else "--output-o"
    argv: list[str] = [str(runtime.executable), "--startup-file=no", "--history-file=no"]
    if recipe.project:
        argv.append(f"--project={recipe.project}")
    if recipe.cpu_target:
        argv.append(f"--cpu-target={recipe.cpu_target}")
    if recipe.trim_enabled:
        argv.append(f"--trim={recipe.trim_mode}")
    argv.extend(recipe.runtime_args)
    argv.extend([archive_flag, recipe.img_path])
    if recipe.add_ccallables:
        argv.append("--compile-ccallable")
    if recipe.use_loaded_libs:
        argv.append("--use-loaded-libs")
    argv.append(recipe.file)
    return CommandSpec(argv=tuple(argv))


def shim_command(
    source: str,
    output: Path,
    recipe: ImageRecipe,
    *,
    compiler: CommandSpec,
    platform: Platform,
    runtime: RuntimeDistribution,
) -> CommandSpec:
    return compiler.extend(
        "-c",
        *runtime.compile_flags(platform),
        *recipe.cflags,
        source,
        "-o",
        str(output),
    )



def shim_object_name(source: str) -> str:
    """Object file name for *source*, distinct for equal stems in different directories."""
    digest = hashlib.sha256(os.path.normpath(source).encode("utf-8")).hexdigest()[:8]
    return f"{Path(source).stem}-{digest}.o"


@dataclass(slots=True)
class SubprocessImageCompiler:
    platform: Platform = field(default_factory=current_platform)
    runtime: RuntimeDistribution = field(default_factory=default_runtime)
    logger: StructuredLogger = field(default_factory=StructuredLogger)
    environ: Mapping[str, str] | None = None

    def compile(self, recipe: ImageRecipe) -> ImageRecipe:
        image_path = Path(recipe.img_path)
        image_path.parent.mkdir(parents=True, exist_ok=True)

        objects = list(recipe.extra_objects)
        if recipe.c_sources:
            compiler = locate(
                False, platform=self.platform, runtime=self.runtime, environ=self.environ
            )
            for source in recipe.c_sources:
                output = image_path.parent / shim_object_name(source)
                command = shim_command(
                    source,
                    output,
                    recipe,
                    compiler=compiler,
                    platform=self.platform,
                    runtime=self.runtime,
                )
                self._run(command, recipe, artifact=str(output))
                objects.append(str(output))

        self._run(image_command(recipe, self.runtime), recipe, artifact=recipe.img_path)
        return dataclasses.replace(recipe, extra_objects=tuple(objects))

    def _run(self, command: CommandSpec, recipe: ImageRecipe, *, artifact: str) -> None:
        if recipe.verbose:
            self.logger.log(
                operation="compile",
                stage="compile",
                artifact=artifact,
                message=f"Running: {command.render()}",
            )
        run_command(command, operation="compile", environ=self.environ)


__all__ = [
    "ImageCompiler",
    "SubprocessImageCompiler",
    "image_command",
    "shim_command",
    "shim_object_name",
]
