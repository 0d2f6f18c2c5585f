"""Subprocess helpers shared by builds, executions and toolchain management."""

from __future__ import annotations

import logging
import os
import subprocess
from pathlib import Path
from typing import Mapping, Sequence

from bm_common.errors import BMError

logger = logging.getLogger(__name__)


def build_env(extra: Mapping[str, str] | None = None) -> dict[str, str]:
    env = dict(os.environ)
    if extra:
        env.update(extra)
    return env


def _log_failure(label: str, returncode: int, output: str) -> None:
    if output:
        logger.error("%s failed with return code %s: %s", label, returncode, output.strip())
    else:
        logger.error("%s failed with return code %s", label, returncode)


def run_command(
    cmd: Sequence[str],
    *,
    error_cls: type[BMError],
    label: str,
    cwd: Path | None = None,
    env: Mapping[str, str] | None = None,
) -> str:
    """Run ``cmd`` to completion and return its combined output.

    A missing executable or a non-zero exit raises ``error_cls``. Output
    that is not valid UTF-8 is decoded with replacement characters.
    """
    logger.debug("running %s: %s", label, " ".join(cmd))
    try:
        proc = subprocess.run(
            list(cmd),
            cwd=cwd,
            env=build_env(env),
            stdout=subprocess.PIPE,
            stderr=subprocess.STDOUT,
            text=True,
            errors="replace",
            check=False,
        )
    except OSError as exc:
        raise error_cls(
            f"{label} could not be started: {exc}",
            context={"cmd": list(cmd), "cwd": cwd},
            cause=exc,
        ) from exc
    output = proc.stdout or ""
    if proc.returncode != 0:
        _log_failure(label, proc.returncode, output)
        raise error_cls(
            f"{label} failed with return code {proc.returncode}",
            context={"cmd": list(cmd), "cwd": cwd, "returncode": proc.returncode},
        )
    return output
