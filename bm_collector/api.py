"""Public API surface for bm_collector."""

from bm_collector.collector import BatchReport, Collector
from bm_collector.config import CollectorConfig, load_config
from bm_collector.hooks import CollectorHooks
from bm_collector.models import Benchmark, RunPlan, Shield
from bm_collector.plans import load_plan_file, parse_plan_document
from bm_collector.results import PRIMARY_METRIC, criterion_dir, merge_estimates, read_estimates
from bm_collector.toolchain import Toolchain, ToolchainGuard

__all__ = [
    "BatchReport",
    "Benchmark",
    "Collector",
    "CollectorConfig",
    "CollectorHooks",
    "PRIMARY_METRIC",
    "RunPlan",
    "Shield",
    "Toolchain",
    "ToolchainGuard",
    "criterion_dir",
    "load_config",
    "load_plan_file",
    "merge_estimates",
    "parse_plan_document",
    "read_estimates",
]
