"""Typed error model with stable, machine-readable error codes."""

from __future__ import annotations

from collections.abc import Mapping
from enum import StrEnum


class ErrorCode(StrEnum):
    """Stable error identifiers used across pipeline stages."""

    CONFIGURATION = "E_CONFIGURATION"
    TOOLCHAIN_NOT_FOUND = "E_TOOLCHAIN_NOT_FOUND"
    EXECUTION = "E_EXECUTION"
    PRIVATIZATION = "E_PRIVATIZATION"


class ImagelinkError(Exception):
    """Base error class that carries code, optional hint, and context."""

    code: str
    hint: str | None
    context: Mapping[str, str]

    def __init__(
        self,
        message: str,
        *,
        code: ErrorCode,
        hint: str | None = None,
        context: Mapping[str, str] | None = None,
    ) -> None:
        super().__init__(message)
        self.code = code.value
        self.hint = hint
        self.context = dict(context or {})

    def __str__(self) -> str:
        lines = [self.args[0] if self.args else ""]
        if self.hint:
            lines.append(f"Hint: {self.hint}")
        # Empty values are omitted.
        lines.extend(f"  {key}: {value}" for key, value in self.context.items() if value)
        return "\n".join(lines)


class ConfigurationError(ImagelinkError):
    def __init__(
        self,
        message: str,
        *,
        hint: str | None = None,
        context: Mapping[str, str] | None = None,
    ) -> None:
        super().__init__(message, code=ErrorCode.CONFIGURATION, hint=hint, context=context)


class ToolchainNotFoundError(ImagelinkError):
    def __init__(
        self,
        message: str,
        *,
        hint: str | None = None,
        context: Mapping[str, str] | None = None,
    ) -> None:
        super().__init__(
            message, code=ErrorCode.TOOLCHAIN_NOT_FOUND, hint=hint, context=context
        )


class ExecutionError(ImagelinkError):
    def __init__(
        self,
        message: str,
        *,
        hint: str | None = None,
        context: Mapping[str, str] | None = None,
    ) -> None:
        super().__init__(message, code=ErrorCode.EXECUTION, hint=hint, context=context)


class PrivatizationError(ImagelinkError):
    def __init__(
        self,
        message: str,
        *,
        hint: str | None = None,
        context: Mapping[str, str] | None = None,
    ) -> None:
        super().__init__(message, code=ErrorCode.PRIVATIZATION, hint=hint, context=context)


__all__ = [
    "ConfigurationError",
    "ErrorCode",
    "ExecutionError",
    "ImagelinkError",
    "PrivatizationError",
    "ToolchainNotFoundError",
]
