import hashlib
import json
from collections import defaultdict
from pathlib import Path
from typing import Optional

import pytest
from rich.console import Console
from rich.table import Table

from bm_collector.models import Benchmark, RunPlan, Shield
from bm_collector.results import criterion_dir
from bm_collector.toolchain import DEFAULT_TARGET_ROOT, Toolchain, ToolchainGuard
from bm_common.errors import BuildError, RunError


class FakeCargo:
    """Stands in for cargo, the benchmark binaries and rustup.

    Builds return a hash derived from the benchmark name, so the same
    benchmark under different toolchains yields an identical binary unless
    ``hashes`` says otherwise. Executions write criterion output files.
    """

    def __init__(self, mocker, source_dir: Path) -> None:
        self.source_dir = source_dir
        self.hashes: dict[RunPlan, bytes] = {}
        self.failing_builds: set[str] = set()
        self.failing_execs: set[str] = set()
        self.write_primary = True
        self.metrics: Optional[dict] = None
        self.build_calls: list[RunPlan] = []
        self.exec_calls: list[RunPlan] = []
        self.installed: list[Toolchain] = []
        self.guards: list[ToolchainGuard] = []
        mocker.patch.object(RunPlan, "build", autospec=True, side_effect=self._build)
        mocker.patch.object(RunPlan, "exec", autospec=True, side_effect=self._exec)
        mocker.patch.object(
            Toolchain, "ensure_installed", autospec=True, side_effect=self._install
        )

    def plan(
        self,
        name: str = "fib",
        toolchain: Optional[str] = "nightly-2018-01-01",
        runner: Optional[str] = None,
        shield: Optional[str] = None,
        crate: str = "demo",
    ) -> RunPlan:
        return RunPlan(
            benchmark=Benchmark(crate, name, runner),
            shield=Shield(shield) if shield else None,
            toolchain=Toolchain(toolchain) if toolchain else None,
            source_dir=str(self.source_dir),
        )

    def results_dir(self, plan: RunPlan) -> Path:
        return criterion_dir(plan.output_dir(DEFAULT_TARGET_ROOT), plan.benchmark)

    def _build(self, plan: RunPlan, target_root: Path = DEFAULT_TARGET_ROOT) -> bytes:
        self.build_calls.append(plan)
        if plan.benchmark.name in self.failing_builds:
            raise BuildError("cargo build failed")
        if plan in self.hashes:
            return self.hashes[plan]
        return hashlib.sha256(str(plan.benchmark).encode()).digest()

    def _exec(self, plan: RunPlan, target_root: Path = DEFAULT_TARGET_ROOT) -> None:
        self.exec_calls.append(plan)
        if plan.benchmark.name in self.failing_execs:
            raise RunError("benchmark exited with 101")
        out = criterion_dir(plan.output_dir(target_root), plan.benchmark)
        out.mkdir(parents=True, exist_ok=True)
        if self.write_primary:
            (out / "estimates.json").write_text(
                json.dumps({"Mean": {"point_estimate": 42.0}})
            )
        if self.metrics is not None:
            (out / "metrics-estimates.json").write_text(json.dumps(self.metrics))

    def _install(self, toolchain: Toolchain, *, uninstall_on_release: bool = False) -> ToolchainGuard:
        self.installed.append(toolchain)
        guard = ToolchainGuard(toolchain)
        self.guards.append(guard)
        return guard


@pytest.fixture
def data_dir(tmp_path: Path) -> Path:
    return tmp_path / "data"


@pytest.fixture
def fake_cargo(mocker, tmp_path: Path) -> FakeCargo:
    source = tmp_path / "bench-src"
    source.mkdir()
    return FakeCargo(mocker, source)


def pytest_terminal_summary(terminalreporter, exitstatus, config):
    """
    Print statistics by marker at the end of the test session.
    """
    _ = (exitstatus, config)
    known_markers = {"unit_common", "unit_storage", "unit_collector"}
    marker_stats = defaultdict(lambda: {"passed": 0, "failed": 0, "skipped": 0, "total": 0, "duration": 0.0})

    for outcome in ["passed", "failed", "skipped"]:
        for report in terminalreporter.stats.get(outcome, []):
            # Only count the actual test call, or setup skips
            if report.when == "call" or (report.when == "setup" and report.outcome == "skipped"):
                duration = getattr(report, "duration", 0.0)
                for marker in known_markers:
                    if marker in report.keywords:
                        stats = marker_stats[marker]
                        stats[outcome] += 1
                        stats["total"] += 1
                        stats["duration"] += duration

    if not marker_stats:
        return

    table = Table(title="Test Statistics by Marker", show_header=True, header_style="bold magenta")
    table.add_column("Marker", style="cyan")
    table.add_column("Total", justify="right")
    table.add_column("Passed", justify="right", style="green")
    table.add_column("Failed", justify="right", style="red")
    table.add_column("Skipped", justify="right", style="yellow")
    table.add_column("Duration (s)", justify="right", style="blue")

    for marker in sorted(marker_stats):
        stats = marker_stats[marker]
        table.add_row(
            marker,
            str(stats["total"]),
            str(stats["passed"]),
            str(stats["failed"]),
            str(stats["skipped"]),
            f"{stats['duration']:.2f}",
        )

    console = Console()
    console.print("\n")
    console.print(table)
