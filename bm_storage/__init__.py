"""Storage facade for benchmemo.

Re-exports the key family and entry lifecycle used by the collector.
"""

from bm_storage.entry import Entry, ExistingEntry, NewEntry
from bm_storage.keys import IndexKey, MeasurementKey, StorageKey
from bm_storage.records import AttemptError, ErrorKind, Estimates, Outcome

__all__ = [
    "AttemptError",
    "Entry",
    "ErrorKind",
    "Estimates",
    "ExistingEntry",
    "IndexKey",
    "MeasurementKey",
    "NewEntry",
    "Outcome",
    "StorageKey",
]
