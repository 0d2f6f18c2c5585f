"""
Command-line interface for benchmemo.

Shows which run plans still need work and collects them.
"""

from __future__ import annotations

from pathlib import Path
from typing import Dict, Iterable, List, NoReturn, Optional

import typer
from rich.console import Console
from rich.table import Table

from bm_collector.collector import BatchReport, Collector
from bm_collector.config import CollectorConfig, load_config
from bm_collector.models import RunPlan
from bm_collector.plans import load_plan_file
from bm_collector.toolchain import Toolchain
from bm_common.errors import BMError
from bm_common.logging import configure_logging

app = typer.Typer(help="Collect benchmark results across toolchains, skipping work already done.", no_args_is_help=True)


def _fail(message: str, code: int = 2) -> NoReturn:
    Console(stderr=True).print(f"[bold red]error:[/bold red] {message}")
    raise typer.Exit(code)


def _load(ctx: typer.Context, plan_file: Path) -> tuple[Collector, Dict[Toolchain, set[RunPlan]]]:
    config: CollectorConfig = ctx.obj
    try:
        return Collector.from_config(config), load_plan_file(plan_file)
    except BMError as exc:
        _fail(str(exc))


def _plans_table(title: str, needed: Dict[Toolchain, List[RunPlan]]) -> Table:
    table = Table(title=title, show_header=True, header_style="bold magenta")
    table.add_column("Toolchain", style="cyan")
    table.add_column("Benchmark")
    table.add_column("Runner")
    table.add_column("Shield")
    for toolchain, plans in needed.items():
        for rp in plans:
            table.add_row(
                str(toolchain),
                str(rp.benchmark),
                rp.benchmark.runner or "-",
                rp.shield_id or "-",
            )
    return table


def _report_table(report: BatchReport) -> Table:
    table = Table(title="Collection Summary", show_header=True, header_style="bold magenta")
    table.add_column("Plan", style="cyan")
    table.add_column("Status")
    table.add_column("Detail")

    def rows(plans: Iterable[RunPlan], status: str) -> None:
        for rp in plans:
            table.add_row(str(rp), status, "")

    rows(report.completed, "[green]collected[/green]")
    rows(report.skipped, "[yellow]cached[/yellow]")
    for rp, exc in report.failed.items():
        table.add_row(str(rp), "[red]failed[/red]", str(exc))
    return table


@app.callback()
def entry(
    ctx: typer.Context,
    data_dir: Optional[Path] = typer.Option(
        None,
        "--data-dir",
        "-d",
        help="Directory holding persisted binary hashes and measurements.",
    ),
    config: Optional[Path] = typer.Option(
        None,
        "--config",
        "-c",
        help="YAML collector configuration file.",
    ),
    debug: bool = typer.Option(False, "--debug", help="Enable debug logging."),
) -> None:
    """Resolve configuration shared by all commands."""
    configure_logging(debug=debug, force=True)
    try:
        ctx.obj = load_config(config, data_dir=data_dir)
    except BMError as exc:
        _fail(str(exc))


@app.command("pending")
def pending(
    ctx: typer.Context,
    plan_file: Path = typer.Argument(..., help="YAML plan file."),
) -> None:
    """List run plans that still need a build or a measurement."""
    collector, plans = _load(ctx, plan_file)
    try:
        needed = collector.compute_builds_needed(plans)
    except BMError as exc:
        _fail(str(exc))
    console = Console()
    if not needed:
        console.print("[green]Nothing to do: every plan is already collected.[/green]")
        return
    console.print(_plans_table("Pending Run Plans", needed))


@app.command("run")
def run(
    ctx: typer.Context,
    plan_file: Path = typer.Argument(..., help="YAML plan file."),
) -> None:
    """Build and benchmark every plan that is not collected yet."""
    collector, plans = _load(ctx, plan_file)
    try:
        report = collector.run_all(plans)
    except BMError as exc:
        _fail(str(exc), code=1)
    Console().print(_report_table(report))
    if not report.ok:
        raise typer.Exit(1)


def main() -> None:
    """Invoke the benchmemo Typer application."""
    app()


if __name__ == "__main__":  # pragma: no cover
    main()
