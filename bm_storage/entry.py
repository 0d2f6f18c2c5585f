"""Lazy-write wrapper around values that are cached or freshly computed."""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Generic, TypeVar

from bm_storage.keys import StorageKey
from bm_storage.records import Outcome

logger = logging.getLogger(__name__)

V = TypeVar("V")


class Entry(ABC, Generic[V]):
    """Either an already persisted value or a computed outcome awaiting storage."""

    @property
    @abstractmethod
    def value(self) -> V:
        """Return the inner value, raising the stage error for failed outcomes."""

    @abstractmethod
    def ensure_persisted(self) -> None:
        """Write the entry to the store if it is not stored yet."""

    @property
    def is_new(self) -> bool:
        return False


class ExistingEntry(Entry[V]):
    """A value that was found in the store. Persisting it is a no-op."""

    def __init__(self, value: V) -> None:
        self._value = value

    @property
    def value(self) -> V:
        return self._value

    def ensure_persisted(self) -> None:
        return None

    def __repr__(self) -> str:
        return f"ExistingEntry({self._value!r})"


class NewEntry(Entry[V]):
    """A freshly computed outcome owned until ``ensure_persisted`` writes it."""

    def __init__(self, key: StorageKey[V], outcome: Outcome[V], location: Path) -> None:
        self.key = key
        self.outcome = outcome
        self.location = Path(location)
        self._persisted = False

    @property
    def value(self) -> V:
        return self.outcome.unwrap()

    @property
    def is_new(self) -> bool:
        return True

    @property
    def persisted(self) -> bool:
        return self._persisted

    def ensure_persisted(self) -> None:
        """Write the outcome once, then raise its stage error if it failed."""
        if not self._persisted:
            self.key.write(self.location, self.outcome)
            self._persisted = True
            logger.debug(
                "stored %s outcome (ok=%s) under %s",
                self.key.namespace,
                self.outcome.ok,
                self.location,
            )
        if self.outcome.error is not None:
            raise self.outcome.error.to_exception()

    def __repr__(self) -> str:
        return f"NewEntry({self.key!r}, ok={self.outcome.ok})"
