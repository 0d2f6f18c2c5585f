"""Shared helpers for benchmemo."""

from bm_common.api import BMError, configure_logging

__all__ = ["BMError", "configure_logging"]
