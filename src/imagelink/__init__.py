"""Public package entrypoint for the imagelink build pipeline."""

from .bundler import BundleManifest, bundle
from .errors import (
    ConfigurationError,
    ErrorCode,
    ExecutionError,
    ImagelinkError,
    PrivatizationError,
    ToolchainNotFoundError,
)
from .linker import link
from .models import (
    BundleRecipe,
    BundleResult,
    CommandSpec,
    ImageRecipe,
    LinkRecipe,
    LinkResult,
    OutputType,
    PrivatizeResult,
    RecipeBuilder,
)
from .platforms import Platform, current_platform
from .privatizer import privatize
from .rpath import resolve_rpath
from .runtime import RuntimeDistribution
from .toolchain import locate

__all__ = [
    "BundleManifest",
    "BundleRecipe",
    "BundleResult",
    "CommandSpec",
    "ConfigurationError",
    "ErrorCode",
    "ExecutionError",
    "ImageRecipe",
    "ImagelinkError",
    "LinkRecipe",
    "LinkResult",
    "OutputType",
    "Platform",
    "PrivatizationError",
    "PrivatizeResult",
    "RecipeBuilder",
    "RuntimeDistribution",
    "ToolchainNotFoundError",
    "bundle",
    "current_platform",
    "link",
    "locate",
    "privatize",
    "resolve_rpath",
]
