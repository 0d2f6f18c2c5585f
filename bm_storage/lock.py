"""Advisory cross-process lock for the data directory."""

from __future__ import annotations

import contextlib
import fcntl
import logging
from pathlib import Path
from typing import Iterator

logger = logging.getLogger(__name__)

LOCK_FILENAME = ".lock"


@contextlib.contextmanager
def store_lock(directory: Path) -> Iterator[None]:
    """Hold an exclusive ``flock`` on ``directory/.lock`` while writing.

    The lock file is left in place; removing it would let a waiting process
    lock an unlinked inode.
    """
    directory.mkdir(parents=True, exist_ok=True)
    lock_path = directory / LOCK_FILENAME
    with lock_path.open("a") as handle:
        fcntl.flock(handle, fcntl.LOCK_EX)
        logger.debug("acquired store lock %s", lock_path)
        try:
            yield
        finally:
            fcntl.flock(handle, fcntl.LOCK_UN)
