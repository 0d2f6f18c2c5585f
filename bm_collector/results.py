"""Helpers for reading criterion output into estimates."""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Optional

from bm_collector.models import Benchmark, RunPlan
from bm_collector.toolchain import DEFAULT_TARGET_ROOT
from bm_common.errors import PostProcessError
from bm_storage.records import Estimates, Statistic

logger = logging.getLogger(__name__)

PRIMARY_METRIC = "nanoseconds"
ESTIMATES_FILENAME = "estimates.json"
METRICS_ESTIMATES_FILENAME = "metrics-estimates.json"


def criterion_dir(output_dir: Path, benchmark: Benchmark) -> Path:
    """Directory criterion writes the latest estimates of ``benchmark`` to."""
    return (
        Path(output_dir)
        / "criterion"
        / f"{benchmark.crate_name}::{benchmark.name}"
        / "new"
    )


def _parse_json_object(path: Path, text: str) -> dict[str, Any]:
    try:
        data = json.loads(text)
    except json.JSONDecodeError as exc:
        raise PostProcessError(
            f"Malformed JSON in {path.name}",
            context={"path": path},
            cause=exc,
        ) from exc
    if not isinstance(data, dict):
        raise PostProcessError(f"{path.name} is not a JSON object", context={"path": path})
    return data


def read_primary_statistic(directory: Path) -> Statistic:
    """Read the mandatory runtime estimates."""
    path = Path(directory) / ESTIMATES_FILENAME
    logger.debug("reading runtime estimates from disk @ %s", path)
    try:
        text = path.read_text(encoding="utf-8")
    except OSError as exc:
        raise PostProcessError(
            f"Could not read runtime estimates: {path}",
            context={"path": path},
            cause=exc,
        ) from exc
    return _parse_json_object(path, text)


def read_metrics_estimates(directory: Path) -> Optional[Estimates]:
    """Read the optional extra metrics; None when the file is absent."""
    path = Path(directory) / METRICS_ESTIMATES_FILENAME
    logger.debug("reading metrics estimates from disk @ %s", path)
    try:
        text = path.read_text(encoding="utf-8")
    except OSError:
        return None
    data = _parse_json_object(path, text)
    for name, stat in data.items():
        if not isinstance(stat, dict):
            raise PostProcessError(
                f"Metric '{name}' in {path.name} is not an object",
                context={"path": path},
            )
    return data


def merge_estimates(primary: Statistic, extra: Optional[Estimates]) -> Estimates:
    """Combine the runtime statistic with extra metrics.

    Extra metrics never replace the runtime entry.
    """
    estimates: Estimates = {PRIMARY_METRIC: primary}
    for name, stat in (extra or {}).items():
        if name == PRIMARY_METRIC:
            logger.warning("ignoring extra metric that shadows '%s'", PRIMARY_METRIC)
            continue
        estimates[name] = stat
    return estimates


def read_estimates(directory: Path, *, label: str = "") -> Estimates:
    primary = read_primary_statistic(directory)
    extra = read_metrics_estimates(directory)
    if extra is None:
        logger.warning("couldn't read %s for %s", METRICS_ESTIMATES_FILENAME, label or directory)
    return merge_estimates(primary, extra)


def process_plan(rp: RunPlan, target_root: Path = DEFAULT_TARGET_ROOT) -> Estimates:
    """Parse the results of an already executed run plan."""
    logger.info("post-processing %s", rp)
    directory = criterion_dir(rp.output_dir(target_root), rp.benchmark)
    return read_estimates(directory, label=str(rp))
