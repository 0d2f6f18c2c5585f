"""Toolchains and the scoped installation lease."""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from pathlib import Path
from types import TracebackType
from typing import Optional

from bm_collector.process_utils import run_command
from bm_common.errors import ToolchainError

logger = logging.getLogger(__name__)

DEFAULT_TARGET_ROOT = Path("target")

# rustup appends the host triple to installed names; a date never starts
# with a letter, so `nightly` does not match `nightly-2018-01-01-<host>`.
_HOST_TRIPLE = re.compile(r"^[a-z][a-z0-9_]*(-[a-z0-9_]+){2,3}$")


@dataclass(frozen=True, order=True)
class Toolchain:
    """A rustup toolchain spec such as ``nightly-2018-05-01``."""

    spec: str

    def __post_init__(self) -> None:
        if not self.spec or not self.spec.strip():
            raise ToolchainError("Toolchain spec must be non-empty")

    def __str__(self) -> str:
        return self.spec

    def target_dir(self, root: Path = DEFAULT_TARGET_ROOT) -> Path:
        """Build output directory dedicated to this toolchain."""
        return Path(root) / self.spec

    def _names(self, installed: str) -> bool:
        """True when ``installed`` (a rustup list entry) is this toolchain."""
        if installed == self.spec:
            return True
        prefix = f"{self.spec}-"
        if not installed.startswith(prefix):
            return False
        return _HOST_TRIPLE.match(installed[len(prefix):]) is not None

    def is_installed(self) -> bool:
        output = run_command(
            ["rustup", "toolchain", "list"],
            error_cls=ToolchainError,
            label="rustup toolchain list",
        )
        for line in output.splitlines():
            name = line.split(" ", 1)[0].strip()
            if self._names(name):
                return True
        return False

    def install(self) -> None:
        logger.info("installing toolchain %s", self.spec)
        run_command(
            ["rustup", "toolchain", "install", self.spec, "--profile", "minimal"],
            error_cls=ToolchainError,
            label=f"rustup install {self.spec}",
        )

    def uninstall(self) -> None:
        logger.info("uninstalling toolchain %s", self.spec)
        run_command(
            ["rustup", "toolchain", "uninstall", self.spec],
            error_cls=ToolchainError,
            label=f"rustup uninstall {self.spec}",
        )

    def ensure_installed(self, *, uninstall_on_release: bool = False) -> "ToolchainGuard":
        """Install the toolchain if needed and return a lease on it.

        Idempotent: an already installed toolchain is leased as-is and never
        uninstalled by the guard.
        """
        installed_here = False
        if not self.is_installed():
            self.install()
            installed_here = True
        else:
            logger.debug("toolchain %s already installed", self.spec)
        return ToolchainGuard(
            self,
            uninstall=installed_here and uninstall_on_release,
        )


class ToolchainGuard:
    """Lease on an installed toolchain, released on scope exit."""

    def __init__(self, toolchain: Toolchain, *, uninstall: bool = False) -> None:
        self.toolchain = toolchain
        self._uninstall = uninstall
        self._released = False

    @property
    def released(self) -> bool:
        return self._released

    def release(self) -> None:
        if self._released:
            return
        self._released = True
        if self._uninstall:
            self.toolchain.uninstall()
        logger.debug("released toolchain %s", self.toolchain)

    def __enter__(self) -> "ToolchainGuard":
        return self

    def __exit__(
        self,
        exc_type: Optional[type[BaseException]],
        exc: Optional[BaseException],
        tb: Optional[TracebackType],
    ) -> None:
        try:
            self.release()
        except ToolchainError as release_exc:
            if exc is None:
                raise
            logger.warning("failed to release toolchain %s: %s", self.toolchain, release_exc)
