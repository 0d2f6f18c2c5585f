"""Environment variable parsing utilities."""

from __future__ import annotations

import os
from pathlib import Path


def parse_bool_env(value: str | None) -> bool | None:
    """Parse a boolean from an environment variable string.

    Returns True for "1", "true", "yes", "on" (case-insensitive).
    Returns None if value is None.
    """
    if value is None:
        return None
    return value.strip().lower() in {"1", "true", "yes", "on"}


def parse_int_env(value: str | None) -> int | None:
    """Parse an integer from an environment variable string.

    Returns None if value is None or cannot be parsed.
    """
    if value is None:
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def parse_path_env(value: str | None) -> Path | None:
    """Parse a filesystem path, expanding ``~``. Empty strings count as unset."""
    if not value or not value.strip():
        return None
    return Path(value.strip()).expanduser()


def env_overrides(prefix: str = "BM_") -> dict[str, object]:
    """Collect collector settings overridden through the environment."""
    overrides: dict[str, object] = {}
    data_dir = parse_path_env(os.environ.get(f"{prefix}DATA_DIR"))
    if data_dir is not None:
        overrides["data_dir"] = data_dir
    max_retries = parse_int_env(os.environ.get(f"{prefix}MAX_RETRIES"))
    if max_retries is not None:
        overrides["max_retries"] = max_retries
    uninstall = parse_bool_env(os.environ.get(f"{prefix}UNINSTALL_TOOLCHAINS"))
    if uninstall is not None:
        overrides["uninstall_toolchains"] = uninstall
    return overrides
