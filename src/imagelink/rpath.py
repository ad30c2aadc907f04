"""Loader-relative runtime search path flags."""

from __future__ import annotations

import posixpath
import warnings

from imagelink.models import LinkRecipe
from imagelink.platforms import Platform
from imagelink.runtime import DEFAULT_RUNTIME_NAME


def effective_rpath(recipe: LinkRecipe, platform: Platform) -> str:
    """Return the recipe's library directory relative to the artifact."""
    if recipe.rpath is None:
        return platform.default_rpath
    return recipe.rpath


def resolve_rpath(
    recipe: LinkRecipe,
    platform: Platform,
    *,
    private_subdir: str = DEFAULT_RUNTIME_NAME,
) -> tuple[str, ...]:
    """Return the ``-Wl,-rpath`` flags for *recipe*.

    Two flags are emitted: one for the library directory itself and one for
    the runtime's private libraries nested one level below it.
    """
    token = platform.rpath_token
    if token is None:
        warnings.warn(
            f"Runtime search paths are not supported on {platform.name}; linking without them.",
            RuntimeWarning,
            stacklevel=2,
        )
        return ()

    base = effective_rpath(recipe, platform)
    nested = posixpath.join(base, private_subdir)
    return (f"-Wl,-rpath,{token}{base}", f"-Wl,-rpath,{token}{nested}")


__all__ = ["effective_rpath", "resolve_rpath"]
