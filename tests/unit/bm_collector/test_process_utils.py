"""Tests for the subprocess helper."""

from __future__ import annotations

import sys

import pytest

from bm_collector.process_utils import run_command
from bm_common.errors import BuildError, RunError


pytestmark = pytest.mark.unit_collector

UNDECODABLE = "import sys; sys.stdout.buffer.write(b'\\xff\\xfe'); sys.exit({code})"


def test_undecodable_output_of_failing_command_raises_stage_error() -> None:
    with pytest.raises(RunError) as excinfo:
        run_command(
            [sys.executable, "-c", UNDECODABLE.format(code=3)],
            error_cls=RunError,
            label="bench fib",
        )
    assert excinfo.value.context["returncode"] == 3


def test_undecodable_output_is_replaced_on_success() -> None:
    output = run_command(
        [sys.executable, "-c", UNDECODABLE.format(code=0)],
        error_cls=RunError,
        label="bench fib",
    )
    assert output == "\ufffd\ufffd"


def test_missing_executable_raises_error_cls(tmp_path) -> None:
    with pytest.raises(BuildError) as excinfo:
        run_command(
            [str(tmp_path / "no-such-cargo")],
            error_cls=BuildError,
            label="cargo build",
        )
    assert "could not be started" in str(excinfo.value)
