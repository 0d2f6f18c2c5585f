"""Collector facade for benchmemo.

Re-exports the run plan model and the memoizing collector.
"""

from bm_collector.api import BatchReport, Benchmark, Collector, CollectorHooks, RunPlan, Shield, Toolchain

__all__ = [
    "BatchReport",
    "Benchmark",
    "Collector",
    "CollectorHooks",
    "RunPlan",
    "Shield",
    "Toolchain",
]
