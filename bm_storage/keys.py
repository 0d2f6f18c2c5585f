"""Content-derived storage keys and the directory-backed lookup."""

from __future__ import annotations

import contextlib
import hashlib
import json
import logging
import os
import tempfile
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, ClassVar, Generic, Mapping, Optional, Protocol, Tuple, TypeVar

from bm_common.errors import StorageError, wrap_error
from bm_storage.lock import store_lock
from bm_storage.records import (
    Estimates,
    Outcome,
    decode_binary_hash,
    decode_estimates,
    encode_binary_hash,
    encode_estimates,
)

logger = logging.getLogger(__name__)

V = TypeVar("V")


def _discard(name: str) -> None:
    with contextlib.suppress(OSError):
        os.unlink(name)


def canonical_json(payload: Any) -> str:
    return json.dumps(payload, sort_keys=True, separators=(",", ":"))


class HasIdentity(Protocol):
    def identity(self) -> Mapping[str, Any]: ...


class StorageKey(ABC, Generic[V]):
    """A deterministic key addressing one record in the data directory."""

    namespace: ClassVar[str]

    @abstractmethod
    def payload(self) -> dict[str, Any]:
        """Return the JSON-able identity this key is derived from."""

    @abstractmethod
    def encode_value(self, value: V) -> Any: ...

    @abstractmethod
    def decode_value(self, raw: Any) -> V: ...

    @property
    def digest(self) -> str:
        return hashlib.sha256(canonical_json(self.payload()).encode("utf-8")).hexdigest()

    def path(self, directory: Path) -> Path:
        digest = self.digest
        return Path(directory) / self.namespace / digest[:2] / f"{digest}.json"

    def get(self, directory: Path) -> Optional[Tuple[dict[str, Any], Outcome[V]]]:
        """Return ``(raw_record, outcome)`` or None when nothing is stored.

        Never creates files; I/O and decode failures raise StorageError.
        """
        path = self.path(directory)
        try:
            text = path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return None
        except OSError as exc:
            raise wrap_error(
                StorageError,
                f"Failed to read {self.namespace} record",
                context={"path": path},
                cause=exc,
            ) from exc
        try:
            raw = json.loads(text)
        except json.JSONDecodeError as exc:
            raise wrap_error(
                StorageError,
                f"Corrupt {self.namespace} record",
                context={"path": path},
                cause=exc,
            ) from exc
        if not isinstance(raw, dict) or "outcome" not in raw:
            raise StorageError(f"Malformed {self.namespace} record", context={"path": path})
        if raw.get("key") != self.payload():
            raise StorageError(
                f"{self.namespace} record does not belong to this key",
                context={"path": path},
            )
        outcome = Outcome.from_record(raw["outcome"], self.decode_value)
        return raw, outcome

    def write(self, directory: Path, outcome: Outcome[V]) -> Path:
        """Atomically persist ``outcome``. Only entries call this."""
        path = self.path(directory)
        record = {
            "namespace": self.namespace,
            "key": self.payload(),
            "outcome": outcome.to_record(self.encode_value),
            "written_at": datetime.now(timezone.utc).isoformat(),
        }
        tmp_name: Optional[str] = None
        try:
            with store_lock(Path(directory)):
                path.parent.mkdir(parents=True, exist_ok=True)
                with tempfile.NamedTemporaryFile(
                    "w", encoding="utf-8", dir=path.parent, suffix=".tmp", delete=False
                ) as handle:
                    tmp_name = handle.name
                    json.dump(record, handle, indent=2, sort_keys=True)
                os.replace(tmp_name, path)
                tmp_name = None
        except OSError as exc:
            raise wrap_error(
                StorageError,
                f"Failed to write {self.namespace} record",
                context={"path": path},
                cause=exc,
            ) from exc
        finally:
            if tmp_name is not None:
                _discard(tmp_name)
        logger.debug("persisted %s record %s", self.namespace, path)
        return path


@dataclass(frozen=True)
class IndexKey(StorageKey[bytes]):
    """Build key: maps a run plan to the hash of the binary it produced."""

    namespace: ClassVar[str] = "index"

    identity: str

    @classmethod
    def from_plan(cls, plan: HasIdentity) -> "IndexKey":
        return cls(identity=canonical_json(dict(plan.identity())))

    def payload(self) -> dict[str, Any]:
        return {"plan": json.loads(self.identity)}

    def encode_value(self, value: bytes) -> str:
        return encode_binary_hash(value)

    def decode_value(self, raw: Any) -> bytes:
        return decode_binary_hash(raw)


@dataclass(frozen=True)
class MeasurementKey(StorageKey[Estimates]):
    """Measurement key: (binary hash, runner, shield) to estimates."""

    namespace: ClassVar[str] = "measurements"

    binary_hash: bytes
    runner: Optional[str] = None
    shield: Optional[str] = None

    def payload(self) -> dict[str, Any]:
        return {
            "binary_hash": self.binary_hash.hex(),
            "runner": self.runner,
            "shield": self.shield,
        }

    def encode_value(self, value: Estimates) -> dict[str, Any]:
        return encode_estimates(value)

    def decode_value(self, raw: Any) -> Estimates:
        return decode_estimates(raw)
