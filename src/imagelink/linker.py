"""Link step: turn a compiled image archive into the final native artifact."""

from __future__ import annotations

import time
from collections.abc import Mapping
from pathlib import Path

from imagelink.errors import ConfigurationError, ExecutionError
from imagelink.models import (
    ARCHIVE_OUTPUTS,
    CommandSpec,
    LinkRecipe,
    LinkResult,
    normalize_outname,
)
from imagelink.observability import StructuredLogger, format_bytes
from imagelink.platforms import Platform, current_platform
from imagelink.process import run_command
from imagelink.rpath import resolve_rpath
from imagelink.runtime import RuntimeDistribution, default_runtime
from imagelink.toolchain import locate


def link_command(
    recipe: LinkRecipe,
    *,
    platform: Platform,
    runtime: RuntimeDistribution,
    environ: Mapping[str, str] | None = None,
) -> tuple[str, CommandSpec]:
    """Validate *recipe* and return the normalized outname and link command."""
    image = recipe.image_recipe
    if image.output_type in ARCHIVE_OUTPUTS:
        flag = image.output_flag
        raise ConfigurationError(
            f"Cannot link {flag} output type. {flag} generates object files/archives "
            "that don't require linking. Use compile step directly instead of link step.",
            context={"output_type": image.output_type, "outname": recipe.outname},
        )

    outname = normalize_outname(image.output_type, recipe.outname, platform)
    rpath_flags = resolve_rpath(recipe, platform, private_subdir=runtime.name)
    libraries = runtime.link_libraries()
    compiler = locate(False, platform=platform, runtime=runtime, environ=environ)

    command = compiler.extend(
        *recipe.cc_flags,
        *runtime.compile_flags(platform, framework=False, rpath=False),
        *rpath_flags,
        "-o",
        outname,
    )
    if image.output_type != "exe":
        command = command.extend("-shared")
    # Only the program's own code is force-loaded; the runtime libraries stay
    # outside the bracket.
    command = command.extend(
        f"-Wl,{platform.whole_archive}",
        image.img_path,
        *image.extra_objects,
        f"-Wl,{platform.no_whole_archive}",
        *libraries,
    )
    return outname, command


def link(
    recipe: LinkRecipe,
    *,
    platform: Platform | None = None,
    runtime: RuntimeDistribution | None = None,
    logger: StructuredLogger | None = None,
    environ: Mapping[str, str] | None = None,
) -> LinkResult:
    start = time.perf_counter()
    platform = platform or current_platform()
    runtime = runtime or default_runtime()
    logger = logger or StructuredLogger()
    verbose = recipe.image_recipe.verbose

    outname, command = link_command(
        recipe,
        platform=platform,
        runtime=runtime,
        environ=environ,
    )
    output_path = Path(outname)
    output_path.parent.mkdir(parents=True, exist_ok=True)

    if verbose:
        logger.log(
            operation="link",
            stage="link",
            artifact=outname,
            message=f"Running: {command.render()}",
            extra={"env": dict(command.env)},
        )
    run_command(command, operation="link", environ=environ)

    if not output_path.is_file():
        raise ExecutionError(
            "Compilation failed.",
            hint="The linker exited successfully but did not write the artifact.",
            context={"operation": "link", "outname": outname, "command": command.render()},
        )
    elapsed = time.perf_counter() - start
    size = output_path.stat().st_size
    if verbose:
        logger.log(
            operation="link",
            stage="link",
            artifact=outname,
            message=f"Linking took {elapsed:.3f} s",
            extra={"elapsed_seconds": elapsed},
        )
        logger.log(
            operation="link",
            stage="link",
            artifact=outname,
            message=f"Linked artifact size: {format_bytes(size)}",
            extra={"size_bytes": size},
        )

    return LinkResult(
        outname=output_path,
        argv=command.argv,
        elapsed_seconds=elapsed,
        size_bytes=size,
    )


__all__ = ["link", "link_command"]
