"""Tests for structlog-backed logging setup."""

from __future__ import annotations

import json
import logging

import pytest
import structlog

from bm_common.logging import configure_logging


pytestmark = pytest.mark.unit_common


@pytest.fixture
def restore_root_logger():
    root = logging.getLogger()
    handlers = list(root.handlers)
    level = root.level
    yield root
    root.handlers[:] = handlers
    root.setLevel(level)


def test_force_replaces_handlers_and_sets_level(restore_root_logger, monkeypatch) -> None:
    monkeypatch.delenv("BM_LOG_LEVEL", raising=False)
    monkeypatch.delenv("BM_LOG_FILE", raising=False)
    configure_logging(level="warning", force=True)
    root = restore_root_logger
    assert root.level == logging.WARNING
    assert len(root.handlers) == 1


def test_debug_flag_wins_over_env_level(restore_root_logger, monkeypatch) -> None:
    monkeypatch.setenv("BM_LOG_LEVEL", "ERROR")
    monkeypatch.delenv("BM_LOG_FILE", raising=False)
    configure_logging(debug=True, force=True)
    assert restore_root_logger.level == logging.DEBUG


def test_log_file_from_env_adds_file_handler(restore_root_logger, monkeypatch, tmp_path) -> None:
    log_path = tmp_path / "collector.log"
    monkeypatch.setenv("BM_LOG_FILE", str(log_path))
    monkeypatch.setenv("BM_LOG_JSON", "1")
    configure_logging(force=True)
    file_handlers = [
        h for h in restore_root_logger.handlers if isinstance(h, logging.FileHandler)
    ]
    assert len(file_handlers) == 1
    logging.getLogger("bm_collector.test").warning("stored measurement")
    file_handlers[0].flush()
    file_handlers[0].close()
    assert "stored measurement" in log_path.read_text()


def test_bound_plan_context_reaches_json_records(restore_root_logger, monkeypatch, tmp_path) -> None:
    log_path = tmp_path / "collector.log"
    monkeypatch.delenv("BM_LOG_LEVEL", raising=False)
    configure_logging(json=True, log_file=str(log_path), force=True)

    with structlog.contextvars.bound_contextvars(plan="demo::fib", toolchain="nightly"):
        logging.getLogger("bm_collector.collector").info("all done with demo::fib")

    for handler in restore_root_logger.handlers:
        handler.flush()
        if isinstance(handler, logging.FileHandler):
            handler.close()
    record = json.loads(log_path.read_text().strip().splitlines()[-1])
    assert record["plan"] == "demo::fib"
    assert record["toolchain"] == "nightly"
    assert record["level"] == "info"
