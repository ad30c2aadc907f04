"""Synchronous native process execution."""

from __future__ import annotations

import os
import subprocess
from collections.abc import Mapping
from pathlib import Path

from imagelink.errors import ExecutionError, ImagelinkError
from imagelink.models import CommandSpec


def run_command(
    command: CommandSpec,
    *,
    operation: str,
    message: str = "Compilation failed.",
    error_cls: type[ImagelinkError] = ExecutionError,
    cwd: Path | None = None,
    environ: Mapping[str, str] | None = None,
) -> subprocess.CompletedProcess[str]:
    """Run *command* to completion, raising *error_cls* when it fails.

    The argv is passed straight to the OS; nothing is re-parsed by a shell.
    """
    env = dict(os.environ if environ is None else environ)
    env.update(command.env)
    try:
        result = subprocess.run(
            list(command.argv),
            cwd=str(cwd) if cwd is not None else None,
            env=env,
            capture_output=True,
            text=True,
            check=False,
        )
    except OSError as exc:
        raise error_cls(
            message,
            hint=f"Could not start `{command.argv[0]}`; check that it is installed.",
            context={
                "operation": operation,
                "command": command.render(),
                "error": str(exc),
            },
        ) from exc

    if result.returncode != 0:
        raise error_cls(
            message,
            hint="Check the tool output below and the build configuration.",
            context={
                "operation": operation,
                "command": command.render(),
                "returncode": str(result.returncode),
                "stderr": result.stderr[:2000] if result.stderr else "",
            },
        )
    return result


__all__ = ["run_command"]
