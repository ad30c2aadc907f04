"""Command-line entry point: build recipes from argv and run the pipeline."""

from __future__ import annotations

import argparse
import dataclasses
import sys
from collections.abc import Sequence
from typing import Any, NoReturn, TextIO

from imagelink.bundler import bundle
from imagelink.compiler import ImageCompiler, SubprocessImageCompiler
from imagelink.errors import ConfigurationError, ImagelinkError
from imagelink.linker import link
from imagelink.models import (
    ARCHIVE_OUTPUTS,
    OUTPUT_FLAGS,
    BundleRecipe,
    BundleResult,
    ImageRecipe,
    LinkRecipe,
    LinkResult,
    OutputType,
    RecipeBuilder,
)
from imagelink.observability import StructuredLogger
from imagelink.platforms import Platform, current_platform
from imagelink.privatizer import privatize
from imagelink.runtime import RuntimeDistribution, default_runtime

_OUTPUT_HELP: dict[OutputType, str] = {
    "exe": "Output native executable (name only)",
    "lib": "Output shared library",
    "sysimage": "Output shared library (precompiled runtime image)",
    "o": "Output object archive",
    "bc": "Output bitcode archive",
}

EXAMPLES = """\
Examples:
  imagelink --output-exe app ./MyApp.jl --bundle build --trim=safe
  imagelink --output-lib build/libmylib --project ./MyLib src/libentry.jl
"""


class _Parser(argparse.ArgumentParser):
    def error(self, message: str) -> NoReturn:
        raise ConfigurationError(message, hint="Run with --help for usage.")


class _OutputAction(argparse.Action):
    def __call__(
        self,
        parser: argparse.ArgumentParser,
        namespace: argparse.Namespace,
        values: Any,
        option_string: str | None = None,
    ) -> None:
        outputs = list(getattr(namespace, self.dest) or [])
        outputs.append((self.const, values))
        setattr(namespace, self.dest, outputs)


def build_parser() -> argparse.ArgumentParser:
    parser = _Parser(
        prog="imagelink",
        description=(
            "Link a compiled program image into an executable, shared library or "
            "precompiled runtime image, optionally bundled with its runtime."
        ),
        usage="%(prog)s [options] <file>|<package directory>",
        epilog=EXAMPLES,
        formatter_class=argparse.RawDescriptionHelpFormatter,
        add_help=False,
        allow_abbrev=False,
    )
    for output_type, flag in OUTPUT_FLAGS.items():
        parser.add_argument(
            flag,
            dest="outputs",
            action=_OutputAction,
            const=output_type,
            metavar="<name>",
            help=_OUTPUT_HELP[output_type],
        )
    parser.add_argument("--project", metavar="<path>", help="Project to instantiate/precompile")
    parser.add_argument(
        "--bundle",
        nargs="?",
        const="",
        default=None,
        metavar="<dir>",
        help="Bundle the runtime libraries and assets next to the artifact",
    )
    parser.add_argument(
        "--privatize",
        action="store_true",
        help="Privatize the bundled runtime library (Unix)",
    )
    parser.add_argument(
        "--trim",
        dest="trim_mode",
        metavar="<mode>",
        help="Strip unreachable code and metadata (bare --trim means safe)",
    )
    parser.add_argument(
        "--compile-ccallable",
        action="store_true",
        help="Export C-callable entrypoints",
    )
    parser.add_argument(
        "--experimental",
        dest="runtime_args",
        action="append_const",
        const="--experimental",
        help="Forwarded to the runtime (needed for --trim)",
    )
    parser.add_argument("--cpu-target", metavar="<target>", help="Target CPU for code generation")
    parser.add_argument("--verbose", action="store_true", help="Print commands and timings")
    parser.add_argument("-h", "--help", action="store_true", help="Show this help")
    parser.add_argument("file", nargs="?", default=None, help=argparse.SUPPRESS)
    return parser


def parse_args(
    argv: Sequence[str],
    platform: Platform,
) -> tuple[ImageRecipe, LinkRecipe, BundleRecipe]:
    args = ["--trim=safe" if arg == "--trim" else arg for arg in argv]
    namespace, extras = build_parser().parse_known_args(args)
    if extras:
        raise ConfigurationError(f"Unexpected argument `{extras[0]}`.")

    builder = RecipeBuilder()
    for output_type, name in namespace.outputs or []:
        builder.set_output(output_type, name)
    if namespace.file is not None:
        builder.set_input(namespace.file)
    builder.trim_mode = namespace.trim_mode
    builder.add_ccallables = namespace.compile_ccallable
    builder.runtime_args = list(namespace.runtime_args or [])
    builder.project = namespace.project or ""
    builder.cpu_target = namespace.cpu_target
    builder.verbose = namespace.verbose
    builder.privatize = namespace.privatize
    if namespace.bundle is not None:
        builder.bundle = True
        builder.bundle_dir = namespace.bundle or None
    return builder.build(platform)


def run_pipeline(
    image: ImageRecipe,
    link_recipe: LinkRecipe,
    bundle_recipe: BundleRecipe,
    *,
    compiler: ImageCompiler,
    platform: Platform,
    runtime: RuntimeDistribution,
    logger: StructuredLogger,
) -> tuple[LinkResult | None, BundleResult | None]:
    """Run compile, link, bundle and privatize one after another."""
    compiled = compiler.compile(image)
    if compiled.output_type in ARCHIVE_OUTPUTS:
        return None, None

    link_recipe = dataclasses.replace(link_recipe, image_recipe=compiled)
    link_result = link(link_recipe, platform=platform, runtime=runtime, logger=logger)

    bundle_recipe = dataclasses.replace(bundle_recipe, link_recipe=link_recipe)
    bundle_result = bundle(
        bundle_recipe,
        link_result,
        platform=platform,
        runtime=runtime,
        logger=logger,
    )
    if bundle_result is not None and bundle_recipe.privatize:
        privatize(bundle_result, platform=platform, runtime=runtime, logger=logger)
    return link_result, bundle_result


def main(
    argv: Sequence[str] | None = None,
    *,
    stdout: TextIO | None = None,
    stderr: TextIO | None = None,
    compiler: ImageCompiler | None = None,
    platform: Platform | None = None,
    runtime: RuntimeDistribution | None = None,
) -> int:
    args = list(sys.argv[1:] if argv is None else argv)
    out = stdout or sys.stdout
    err = stderr or sys.stderr
    if not args or any(arg in ("-h", "--help") for arg in args):
        build_parser().print_help(file=out)
        return 0

    try:
        platform = platform or current_platform()
        image, link_recipe, bundle_recipe = parse_args(args, platform)
        runtime = runtime or default_runtime()
        logger = StructuredLogger(stream=out if image.verbose else None)
        compiler = compiler or SubprocessImageCompiler(
            platform=platform,
            runtime=runtime,
            logger=logger,
        )
        run_pipeline(
            image,
            link_recipe,
            bundle_recipe,
            compiler=compiler,
            platform=platform,
            runtime=runtime,
            logger=logger,
        )
    except ImagelinkError as exc:
        print(f"imagelink: error: {exc}", file=err)
        return 1
    return 0


__all__ = ["build_parser", "main", "parse_args", "run_pipeline"]
