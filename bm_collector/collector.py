"""Memoized benchmark collection shared across toolchains."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple

import structlog

from bm_collector.config import CollectorConfig
from bm_collector.hooks import CollectorHooks
from bm_collector.models import RunPlan
from bm_collector.results import process_plan
from bm_collector.toolchain import DEFAULT_TARGET_ROOT, Toolchain
from bm_common.errors import (
    BuildError,
    PostProcessError,
    RunError,
    StageError,
    StorageError,
    error_to_payload,
)
from bm_storage.entry import Entry, ExistingEntry, NewEntry
from bm_storage.keys import IndexKey, MeasurementKey
from bm_storage.records import DEFAULT_MAX_RETRIES, AttemptError, Estimates, Outcome

logger = logging.getLogger(__name__)


@dataclass
class BatchReport:
    """What happened to each plan handed to the collector."""

    completed: List[RunPlan] = field(default_factory=list)
    failed: Dict[RunPlan, StageError] = field(default_factory=dict)
    skipped: List[RunPlan] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.failed

    def merge(self, other: "BatchReport") -> None:
        self.completed.extend(other.completed)
        self.failed.update(other.failed)
        self.skipped.extend(other.skipped)

    def to_dict(self) -> dict[str, Any]:
        return {
            "completed": [str(rp) for rp in self.completed],
            "failed": {str(rp): error_to_payload(exc) for rp, exc in self.failed.items()},
            "skipped": [str(rp) for rp in self.skipped],
        }


class Collector:
    """Runs benchmarks, memoizes their results, and shares results across
    toolchains when the binaries they produce are identical.

    Binary hashes are keyed by run plan; measurements are keyed by
    (binary hash, runner, shield). Both live under ``data_dir``.
    """

    def __init__(
        self,
        data_dir: Path | str,
        *,
        target_root: Path = DEFAULT_TARGET_ROOT,
        max_retries: int = DEFAULT_MAX_RETRIES,
        uninstall_toolchains: bool = False,
        hooks: Optional[CollectorHooks] = None,
    ) -> None:
        self.data_dir = Path(data_dir)
        try:
            self.data_dir.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise StorageError(
                f"Cannot create data directory {self.data_dir}", cause=exc
            ) from exc
        self.target_root = Path(target_root)
        self.max_retries = max_retries
        self.uninstall_toolchains = uninstall_toolchains
        self.hooks = hooks or CollectorHooks()

    @classmethod
    def from_config(
        cls, config: CollectorConfig, hooks: Optional[CollectorHooks] = None
    ) -> "Collector":
        return cls(
            config.data_dir,
            target_root=config.target_root,
            max_retries=config.max_retries,
            uninstall_toolchains=config.uninstall_toolchains,
            hooks=hooks,
        )

    def run_all(self, plans: Mapping[Toolchain, Iterable[RunPlan]]) -> BatchReport:
        """Run every plan that still needs work, one toolchain batch at a time."""
        report = BatchReport()
        needed = self.compute_builds_needed(plans)
        pending = {rp for rps in needed.values() for rp in rps}
        for toolchain in sorted(plans):
            for rp in sorted(set(plans[toolchain])):
                if rp not in pending:
                    report.skipped.append(rp)
        if report.skipped:
            logger.info("%d plan(s) already collected, skipping", len(report.skipped))
        for toolchain, run_plans in needed.items():
            report.merge(self.run_benches_with_toolchain(toolchain, run_plans))
        return report

    def run_benches_with_toolchain(
        self, toolchain: Toolchain, run_plans: Iterable[RunPlan]
    ) -> BatchReport:
        """Run plans while holding a lease on ``toolchain``.

        Run and post-process failures are recorded per plan, including those
        raised by hooks. Any other exception aborts the batch.
        """
        report = BatchReport()
        lease = toolchain.ensure_installed(uninstall_on_release=self.uninstall_toolchains)
        with structlog.contextvars.bound_contextvars(toolchain=str(toolchain)), lease:
            for rp in run_plans:
                try:
                    self.run(rp)
                except (RunError, PostProcessError) as exc:
                    logger.error("benchmark failed for %s: %s", rp, exc)
                    report.failed[rp] = exc
                else:
                    report.completed.append(rp)
        return report

    def compute_builds_needed(
        self, plans: Mapping[Toolchain, Iterable[RunPlan]]
    ) -> Dict[Toolchain, List[RunPlan]]:
        """Group the plans that cannot be skipped by toolchain, in sorted order."""
        needed: Dict[Toolchain, List[RunPlan]] = {}
        for toolchain in sorted(plans):
            for rp in sorted(set(plans[toolchain])):
                if not self.plan_can_be_skipped(rp):
                    needed.setdefault(toolchain, []).append(rp)
        return needed

    def plan_can_be_skipped(self, rp: RunPlan) -> bool:
        """True when a binary hash and a successful measurement are stored."""
        _, binary_hash = self.existing_binary_hash(rp)
        if binary_hash is None:
            return False
        _, estimates = self.existing_estimates(rp, binary_hash)
        return estimates is not None and estimates.ok

    def existing_binary_hash(self, rp: RunPlan) -> Tuple[IndexKey, Optional[bytes]]:
        key = IndexKey.from_plan(rp)
        found = key.get(self.data_dir)
        if found is None:
            return key, None
        _, outcome = found
        if not outcome.ok:
            logger.debug("previous build of %s failed: %s", rp, outcome.error.message)
            return key, None
        return key, outcome.value

    def compute_binary_hash(self, rp: RunPlan) -> Entry[bytes]:
        key, existing = self.existing_binary_hash(rp)
        if existing is not None:
            return ExistingEntry(existing)
        try:
            outcome: Outcome[bytes] = Outcome.success(rp.build(self.target_root))
        except BuildError as exc:
            outcome = Outcome.failure(
                AttemptError.from_exception(exc, max_retries=self.max_retries)
            )
        return NewEntry(key, outcome, self.data_dir)

    def existing_estimates(
        self, rp: RunPlan, binary_hash: bytes
    ) -> Tuple[MeasurementKey, Optional[Outcome[Estimates]]]:
        key = MeasurementKey(
            binary_hash=binary_hash,
            runner=rp.benchmark.runner,
            shield=rp.shield_id,
        )
        found = key.get(self.data_dir)
        return key, (found[1] if found is not None else None)

    def compute_estimates(self, rp: RunPlan, binary_hash: bytes) -> Entry[Estimates]:
        key, existing = self.existing_estimates(rp, binary_hash)
        if existing is not None and existing.ok:
            return ExistingEntry(existing.value)
        if existing is not None:
            logger.info(
                "previous measurement of %s failed (%s), running again",
                rp,
                existing.error.message,
            )
        return NewEntry(key, self._measure(rp), self.data_dir)

    def _measure(self, rp: RunPlan) -> Outcome[Estimates]:
        num_retries = 0
        while True:
            try:
                rp.exec(self.target_root)
                return Outcome.success(self.process(rp))
            except (RunError, PostProcessError) as exc:
                error = AttemptError.from_exception(
                    exc, num_retries=num_retries, max_retries=self.max_retries
                )
            if not error.can_retry():
                return Outcome.failure(error)
            num_retries += 1
            logger.warning(
                "retrying %s (%d/%d) after: %s",
                rp,
                num_retries,
                self.max_retries,
                error.message,
            )

    def run(self, rp: RunPlan) -> None:
        """Run a planned benchmark from before it has been built through to
        storing its results in the data directory.

        Skips the build or the execution when the data directory already holds
        their outputs. Assumes the plan's toolchain is installed. Log records
        emitted meanwhile carry the plan under the ``plan`` context key.
        """
        with structlog.contextvars.bound_contextvars(plan=str(rp)):
            self.hooks.before_run(rp)

            binary_hash = self.compute_binary_hash(rp)
            binary_hash.ensure_persisted()
            estimates = self.compute_estimates(rp, binary_hash.value)
            estimates.ensure_persisted()

            self.hooks.after_run(rp)
            logger.info("all done with %s", rp)

    def process(self, rp: RunPlan) -> Estimates:
        """Parse the results of an already executed benchmark."""
        return process_plan(rp, self.target_root)
