"""Collector configuration (pydantic models, YAML files, env overrides)."""

from __future__ import annotations

from pathlib import Path
from typing import Any, Optional

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from bm_collector.toolchain import DEFAULT_TARGET_ROOT
from bm_common.config.env import env_overrides
from bm_common.errors import ConfigurationError
from bm_storage.records import DEFAULT_MAX_RETRIES

DEFAULT_DATA_DIR = Path("data")


class CollectorConfig(BaseModel):
    """Settings for a collector instance."""

    model_config = ConfigDict(extra="forbid")

    data_dir: Path = Field(default=DEFAULT_DATA_DIR, description="Directory holding persisted hashes and measurements")
    target_root: Path = Field(default=DEFAULT_TARGET_ROOT, description="Cargo target root, relative to each plan's source dir")
    max_retries: int = Field(default=DEFAULT_MAX_RETRIES, ge=0, description="Retries for retryable benchmark failures")
    uninstall_toolchains: bool = Field(default=False, description="Uninstall toolchains installed for a batch once it finishes")


def _read_yaml(path: Path) -> dict[str, Any]:
    try:
        raw = yaml.safe_load(path.read_text(encoding="utf-8"))
    except OSError as exc:
        raise ConfigurationError(f"Cannot read config file {path}", cause=exc) from exc
    except yaml.YAMLError as exc:
        raise ConfigurationError(f"Invalid YAML in {path}", cause=exc) from exc
    if raw is None:
        return {}
    if not isinstance(raw, dict):
        raise ConfigurationError(f"Config file {path} must contain a mapping")
    return raw


def load_config(path: Optional[Path] = None, **overrides: Any) -> CollectorConfig:
    """Resolve config: explicit overrides > environment > file > defaults."""
    data: dict[str, Any] = _read_yaml(Path(path)) if path is not None else {}
    data.update(env_overrides())
    data.update({key: value for key, value in overrides.items() if value is not None})
    try:
        return CollectorConfig.model_validate(data)
    except ValidationError as exc:
        raise ConfigurationError(f"Invalid collector configuration: {exc}", cause=exc) from exc
