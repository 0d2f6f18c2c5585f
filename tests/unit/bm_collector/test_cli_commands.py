"""Tests for the Typer command-line interface."""

from __future__ import annotations

import logging
from pathlib import Path

import pytest
from typer.testing import CliRunner

from bm_collector.cli import app


pytestmark = pytest.mark.unit_collector


@pytest.fixture(autouse=True)
def restore_logging(monkeypatch):
    for name in ("BM_DATA_DIR", "BM_MAX_RETRIES", "BM_LOG_FILE"):
        monkeypatch.delenv(name, raising=False)
    root = logging.getLogger()
    handlers = list(root.handlers)
    level = root.level
    yield
    root.handlers[:] = handlers
    root.setLevel(level)


@pytest.fixture
def plan_file(fake_cargo, tmp_path: Path) -> Path:
    path = tmp_path / "plans.yaml"
    path.write_text(
        "toolchains: [nightly-2018-01-01]\n"
        "benchmarks:\n"
        "  - {crate: demo, name: fib}\n"
        "  - {crate: demo, name: fact}\n"
        f"source_dir: {fake_cargo.source_dir}\n"
    )
    return path


def _invoke(data_dir: Path, *args: str):
    return CliRunner().invoke(app, ["--data-dir", str(data_dir), *args])


def test_pending_lists_uncollected_plans(plan_file: Path, data_dir: Path) -> None:
    result = _invoke(data_dir, "pending", str(plan_file))
    assert result.exit_code == 0, result.output
    assert "demo::fib" in result.output
    assert "demo::fact" in result.output


def test_run_collects_then_pending_is_empty(fake_cargo, plan_file: Path, data_dir: Path) -> None:
    result = _invoke(data_dir, "run", str(plan_file))
    assert result.exit_code == 0, result.output
    assert len(fake_cargo.exec_calls) == 2

    result = _invoke(data_dir, "pending", str(plan_file))
    assert result.exit_code == 0
    assert "Nothing to do" in result.output


def test_run_exits_non_zero_when_a_plan_fails(fake_cargo, plan_file: Path, data_dir: Path) -> None:
    fake_cargo.failing_execs.add("fact")
    result = _invoke(data_dir, "run", str(plan_file))
    assert result.exit_code == 1
    assert len(fake_cargo.exec_calls) == 1 + 3  # fib once, fact with two retries


def test_invalid_plan_file_is_reported(tmp_path: Path, data_dir: Path) -> None:
    bad = tmp_path / "bad.yaml"
    bad.write_text("toolchains: []\n")
    result = _invoke(data_dir, "pending", str(bad))
    assert result.exit_code == 2
