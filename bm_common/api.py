"""Public API surface for bm_common."""

from bm_common.errors import (
    BMError,
    BuildError,
    ConfigurationError,
    PostProcessError,
    RunError,
    StageError,
    StorageError,
    ToolchainError,
    error_to_payload,
)
from bm_common.logging import configure_logging

__all__ = [
    "BMError",
    "BuildError",
    "ConfigurationError",
    "PostProcessError",
    "RunError",
    "StageError",
    "StorageError",
    "ToolchainError",
    "configure_logging",
    "error_to_payload",
]
