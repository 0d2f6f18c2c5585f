"""Plan files: which benchmarks to collect under which toolchains."""

from __future__ import annotations

from pathlib import Path
from typing import Any, Dict, List, Optional, Set

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from bm_collector.models import Benchmark, RunPlan, Shield
from bm_collector.toolchain import Toolchain
from bm_common.errors import ConfigurationError


class BenchmarkSpec(BaseModel):
    """One benchmark entry of a plan file."""

    model_config = ConfigDict(extra="forbid")

    crate: str = Field(min_length=1, description="Cargo package containing the benchmark")
    name: str = Field(min_length=1, description="Benchmark binary name")
    runner: Optional[str] = Field(default=None, description="Execution environment identity")


class ShieldSpec(BaseModel):
    model_config = ConfigDict(extra="forbid")

    cpus: str = Field(min_length=1, description="CPU list reserved for the shield")


class PlanFile(BaseModel):
    """Toolchains crossed with benchmarks."""

    model_config = ConfigDict(extra="forbid")

    toolchains: List[str] = Field(min_length=1, description="rustup toolchain specs")
    benchmarks: List[BenchmarkSpec] = Field(min_length=1, description="Benchmarks to run under every toolchain")
    shield: Optional[ShieldSpec] = Field(default=None, description="Optional CPU shield")
    source_dir: str = Field(default=".", description="Directory cargo is invoked from")

    @field_validator("toolchains")
    @classmethod
    def _no_blank_toolchains(cls, value: List[str]) -> List[str]:
        if any(not spec.strip() for spec in value):
            raise ValueError("toolchain specs must be non-empty")
        return value

    def expand(self) -> Dict[Toolchain, Set[RunPlan]]:
        shield = Shield(self.shield.cpus) if self.shield else None
        plans: Dict[Toolchain, Set[RunPlan]] = {}
        for spec in self.toolchains:
            toolchain = Toolchain(spec)
            bucket = plans.setdefault(toolchain, set())
            for bench in self.benchmarks:
                bucket.add(
                    RunPlan(
                        benchmark=Benchmark(bench.crate, bench.name, bench.runner),
                        shield=shield,
                        toolchain=toolchain,
                        source_dir=self.source_dir,
                    )
                )
        return plans


def parse_plan_document(raw: Any) -> Dict[Toolchain, Set[RunPlan]]:
    if not isinstance(raw, dict):
        raise ConfigurationError("Plan document must be a mapping")
    try:
        return PlanFile.model_validate(raw).expand()
    except ValidationError as exc:
        raise ConfigurationError(f"Invalid plan document: {exc}", cause=exc) from exc


def load_plan_file(path: Path) -> Dict[Toolchain, Set[RunPlan]]:
    """Load a YAML plan file into run plans grouped by toolchain."""
    try:
        raw = yaml.safe_load(Path(path).read_text(encoding="utf-8"))
    except OSError as exc:
        raise ConfigurationError(f"Cannot read plan file {path}", cause=exc) from exc
    except yaml.YAMLError as exc:
        raise ConfigurationError(f"Invalid YAML in plan file {path}", cause=exc) from exc
    return parse_plan_document(raw)
