"""Run plans: what to build and benchmark, under which toolchain and shield."""

from __future__ import annotations

import functools
import hashlib
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Optional

from bm_collector.process_utils import run_command
from bm_collector.toolchain import DEFAULT_TARGET_ROOT, Toolchain
from bm_common.errors import BuildError, ConfigurationError, RunError

logger = logging.getLogger(__name__)

_HASH_CHUNK = 1 << 20


def _opt_key(value: Optional[Any]) -> tuple[bool, Any]:
    # absent values order first
    return (value is not None, value if value is not None else "")


@functools.total_ordering
@dataclass(frozen=True)
class Benchmark:
    """A criterion benchmark binary inside a crate."""

    crate_name: str
    name: str
    runner: Optional[str] = None

    def __post_init__(self) -> None:
        if not self.crate_name or not self.name:
            raise ConfigurationError("Benchmark needs both a crate name and a name")

    def sort_key(self) -> tuple[Any, ...]:
        return (self.crate_name, self.name, _opt_key(self.runner))

    def __lt__(self, other: object) -> bool:
        if not isinstance(other, Benchmark):
            return NotImplemented
        return self.sort_key() < other.sort_key()

    def __str__(self) -> str:
        return f"{self.crate_name}::{self.name}"


@dataclass(frozen=True, order=True)
class Shield:
    """CPU shield the benchmark runs inside (``cset shield``)."""

    cpus: str

    def command_prefix(self) -> list[str]:
        return ["cset", "shield", "--exec", "--"]

    def __str__(self) -> str:
        return self.cpus


@functools.total_ordering
@dataclass(frozen=True)
class RunPlan:
    """Run ``benchmark`` built by ``toolchain``, optionally inside ``shield``.

    Structurally identical plans compare equal and hash equal, so plans can be
    used as set members and mapping keys.
    """

    benchmark: Benchmark
    shield: Optional[Shield] = None
    toolchain: Optional[Toolchain] = None
    source_dir: str = "."

    def sort_key(self) -> tuple[Any, ...]:
        return (
            self.benchmark.sort_key(),
            _opt_key(self.shield.cpus if self.shield else None),
            _opt_key(self.toolchain.spec if self.toolchain else None),
            self.source_dir,
        )

    def __lt__(self, other: object) -> bool:
        if not isinstance(other, RunPlan):
            return NotImplemented
        return self.sort_key() < other.sort_key()

    def __str__(self) -> str:
        parts = [str(self.benchmark)]
        if self.toolchain is not None:
            parts.append(f"@{self.toolchain}")
        if self.benchmark.runner:
            parts.append(f" runner={self.benchmark.runner}")
        if self.shield is not None:
            parts.append(f" shield={self.shield}")
        return "".join(parts)

    @property
    def shield_id(self) -> Optional[str]:
        return self.shield.cpus if self.shield is not None else None

    def identity(self) -> dict[str, Any]:
        """Everything that determines which binary this plan builds."""
        return {
            "crate": self.benchmark.crate_name,
            "name": self.benchmark.name,
            "runner": self.benchmark.runner,
            "shield": self.shield_id,
            "toolchain": self.toolchain.spec if self.toolchain else None,
            "source_dir": self.source_dir,
        }

    def output_dir(self, target_root: Path = DEFAULT_TARGET_ROOT) -> Path:
        """Cargo target directory: per toolchain, or the plain default."""
        root = Path(target_root)
        if self.toolchain is not None:
            root = self.toolchain.target_dir(root)
        return Path(self.source_dir) / root

    def binary_path(self, target_root: Path = DEFAULT_TARGET_ROOT) -> Path:
        return self.output_dir(target_root) / "release" / self.benchmark.name

    def _cargo_env(self, target_root: Path) -> dict[str, str]:
        return {"CARGO_TARGET_DIR": str(self.output_dir(target_root).resolve())}

    def build(self, target_root: Path = DEFAULT_TARGET_ROOT) -> bytes:
        """Build the benchmark binary and return the SHA-256 of its contents."""
        cmd = ["cargo"]
        if self.toolchain is not None:
            cmd.append(f"+{self.toolchain.spec}")
        cmd += [
            "build",
            "--release",
            "-p",
            self.benchmark.crate_name,
            "--bin",
            self.benchmark.name,
        ]
        logger.info("building %s", self)
        run_command(
            cmd,
            error_cls=BuildError,
            label=f"cargo build {self.benchmark}",
            cwd=Path(self.source_dir),
            env=self._cargo_env(target_root),
        )
        return hash_file(self.binary_path(target_root))

    def exec(self, target_root: Path = DEFAULT_TARGET_ROOT) -> None:
        """Run the built benchmark; results land under the criterion dir."""
        binary = self.binary_path(target_root).resolve()
        cmd: list[str] = []
        if self.shield is not None:
            cmd += self.shield.command_prefix()
        cmd += [str(binary), "--bench"]
        logger.info("running %s", self)
        run_command(
            cmd,
            error_cls=RunError,
            label=f"benchmark {self.benchmark}",
            cwd=Path(self.source_dir),
            env=self._cargo_env(target_root),
        )


def hash_file(path: Path) -> bytes:
    """Return the SHA-256 digest of a built artifact."""
    digest = hashlib.sha256()
    try:
        with path.open("rb") as handle:
            for chunk in iter(lambda: handle.read(_HASH_CHUNK), b""):
                digest.update(chunk)
    except OSError as exc:
        raise BuildError(
            f"Built binary is not readable: {path}",
            context={"path": path},
            cause=exc,
        ) from exc
    return digest.digest()
