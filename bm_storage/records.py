"""Persisted record shapes: attempt errors, outcomes and estimates."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Dict, Generic, Mapping, Optional, TypeVar

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from bm_common.errors import (
    BuildError,
    PostProcessError,
    RunError,
    StageError,
    StorageError,
)

DEFAULT_MAX_RETRIES = 2

# A statistic is an opaque JSON object (criterion's estimate summary).
Statistic = Dict[str, Any]
Estimates = Dict[str, Statistic]

T = TypeVar("T")


class ErrorKind(str, Enum):
    """Stage that produced a recorded failure."""

    BUILD = "build"
    RUN = "run"
    POST_PROCESS = "post_process"


_EXCEPTION_BY_KIND: dict[ErrorKind, type[StageError]] = {
    ErrorKind.BUILD: BuildError,
    ErrorKind.RUN: RunError,
    ErrorKind.POST_PROCESS: PostProcessError,
}


class AttemptError(BaseModel):
    """A failed attempt captured as data, with retry bookkeeping.

    ``num_retries`` counts retries made after the first attempt, so a record
    with ``num_retries == 2`` stands for three executions. ``max_retries`` is
    the ceiling on those retries.
    """

    model_config = ConfigDict(frozen=True)

    kind: ErrorKind = Field(description="Stage that failed")
    message: str = Field(description="Human readable failure message")
    num_retries: int = Field(default=0, ge=0, description="Retries made after the first attempt")
    max_retries: int = Field(
        default=DEFAULT_MAX_RETRIES, ge=0, description="Most retries allowed after the first attempt"
    )
    retryable: bool = Field(default=False, description="Whether this failure is worth retrying")

    def can_retry(self) -> bool:
        return self.retryable and self.num_retries < self.max_retries

    def to_exception(self) -> StageError:
        error_cls = _EXCEPTION_BY_KIND[self.kind]
        return error_cls(
            self.message,
            attempt=self,
            context={"num_retries": self.num_retries, "max_retries": self.max_retries},
        )

    @classmethod
    def from_exception(
        cls,
        exc: StageError,
        *,
        num_retries: int = 0,
        max_retries: int = DEFAULT_MAX_RETRIES,
    ) -> "AttemptError":
        """Classify a stage exception. Only execution failures are retryable."""
        if isinstance(exc, BuildError):
            kind = ErrorKind.BUILD
        elif isinstance(exc, PostProcessError):
            kind = ErrorKind.POST_PROCESS
        else:
            kind = ErrorKind.RUN
        return cls(
            kind=kind,
            message=str(exc),
            num_retries=num_retries,
            max_retries=max_retries,
            retryable=kind is ErrorKind.RUN,
        )


@dataclass(frozen=True)
class Outcome(Generic[T]):
    """Result of a compute step: either a value or a recorded failure."""

    value: Optional[T] = None
    error: Optional[AttemptError] = None

    @classmethod
    def success(cls, value: T) -> "Outcome[T]":
        return cls(value=value)

    @classmethod
    def failure(cls, error: AttemptError) -> "Outcome[T]":
        return cls(error=error)

    @property
    def ok(self) -> bool:
        return self.error is None

    def unwrap(self) -> T:
        if self.error is not None:
            raise self.error.to_exception()
        return self.value  # type: ignore[return-value]

    def to_record(self, encode: Callable[[T], Any]) -> dict[str, Any]:
        if self.error is not None:
            return {"err": self.error.model_dump(mode="json")}
        return {"ok": encode(self.value)}  # type: ignore[arg-type]

    @classmethod
    def from_record(
        cls, record: Mapping[str, Any], decode: Callable[[Any], T]
    ) -> "Outcome[T]":
        if not isinstance(record, Mapping):
            raise StorageError("Outcome record is not a mapping")
        if "ok" in record:
            return cls.success(decode(record["ok"]))
        if "err" in record:
            try:
                return cls.failure(AttemptError.model_validate(record["err"]))
            except ValidationError as exc:
                raise StorageError("Malformed failure record", cause=exc) from exc
        raise StorageError("Outcome record has neither 'ok' nor 'err'")


def encode_binary_hash(value: bytes) -> str:
    return value.hex()


def decode_binary_hash(raw: Any) -> bytes:
    if not isinstance(raw, str):
        raise StorageError("Binary hash record is not a hex string")
    try:
        return bytes.fromhex(raw)
    except ValueError as exc:
        raise StorageError("Binary hash record is not valid hex", cause=exc) from exc


def encode_estimates(value: Estimates) -> dict[str, Any]:
    return dict(value)


def decode_estimates(raw: Any) -> Estimates:
    if not isinstance(raw, dict) or not all(isinstance(v, dict) for v in raw.values()):
        raise StorageError("Estimates record is not a mapping of statistics")
    return {str(name): dict(stat) for name, stat in raw.items()}
