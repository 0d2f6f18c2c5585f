"""Shared error taxonomy for benchmemo."""

from __future__ import annotations

from typing import Any, Mapping, TypeVar


def _normalize_context_value(value: Any) -> Any:
    if isinstance(value, Mapping):
        return normalize_context(value)
    if isinstance(value, (list, tuple)):
        return [_normalize_context_value(item) for item in value]
    if isinstance(value, bytes):
        return value.hex()
    if isinstance(value, (str, int, float, bool)) or value is None:
        return value
    return str(value)


def normalize_context(context: Mapping[str, Any]) -> dict[str, Any]:
    """Return a JSON-friendly copy of an error context mapping."""
    return {key: _normalize_context_value(val) for key, val in context.items()}


class BMError(Exception):
    """Base error type for typed failure handling."""

    def __init__(
        self,
        message: str,
        *,
        context: Mapping[str, Any] | None = None,
        cause: Exception | None = None,
    ) -> None:
        super().__init__(message)
        self.context = normalize_context(context or {})
        if cause is not None:
            self.__cause__ = cause

    @property
    def error_type(self) -> str:
        return self.__class__.__name__

    def to_dict(self) -> dict[str, Any]:
        return {"type": self.error_type, "message": str(self), "context": self.context}


class StorageError(BMError):
    """Failure reading, decoding or writing the persisted store."""


class ConfigurationError(BMError):
    """Failure due to invalid configuration or plan files."""


class ToolchainError(BMError):
    """Failure installing or releasing a toolchain."""


class StageError(BMError):
    """Failure of a build, run or post-process stage for one run plan.

    ``attempt`` holds the recorded attempt (kind and retry bookkeeping) when
    the failure has been captured as data.
    """

    def __init__(
        self,
        message: str,
        *,
        attempt: Any = None,
        context: Mapping[str, Any] | None = None,
        cause: Exception | None = None,
    ) -> None:
        super().__init__(message, context=context, cause=cause)
        self.attempt = attempt


class BuildError(StageError):
    """The external build step failed."""


class RunError(StageError):
    """The benchmark execution step failed."""


class PostProcessError(StageError):
    """Benchmark output was missing, unreadable or malformed."""


T = TypeVar("T", bound=BMError)


def wrap_error(
    error_cls: type[T],
    message: str,
    *,
    context: Mapping[str, Any] | None = None,
    cause: Exception | None = None,
) -> T:
    """Create a typed BMError with optional context and cause."""
    return error_cls(message, context=context, cause=cause)


def error_to_payload(error: BMError) -> dict[str, Any]:
    """Convert a BMError to a report payload."""
    return {
        "error_type": error.error_type,
        "error": str(error),
        "error_context": error.context,
    }
