"""Tests for collector configuration loading."""

from __future__ import annotations

from pathlib import Path

import pytest

from bm_collector.collector import Collector
from bm_collector.config import CollectorConfig, load_config
from bm_common.errors import ConfigurationError


pytestmark = pytest.mark.unit_collector


@pytest.fixture(autouse=True)
def clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in ("BM_DATA_DIR", "BM_MAX_RETRIES", "BM_UNINSTALL_TOOLCHAINS"):
        monkeypatch.delenv(name, raising=False)


def test_defaults() -> None:
    cfg = load_config()
    assert cfg == CollectorConfig()
    assert cfg.max_retries == 2
    assert cfg.target_root == Path("target")


def test_precedence_explicit_over_env_over_file(tmp_path: Path, monkeypatch) -> None:
    path = tmp_path / "collector.yaml"
    path.write_text("data_dir: /from/file\nmax_retries: 1\nuninstall_toolchains: true\n")
    monkeypatch.setenv("BM_MAX_RETRIES", "4")

    cfg = load_config(path, data_dir=tmp_path / "explicit")

    assert cfg.data_dir == tmp_path / "explicit"
    assert cfg.max_retries == 4
    assert cfg.uninstall_toolchains is True


@pytest.mark.parametrize("text", ["max_retries: -1\n", "unknown_key: 1\n", "- a list\n"])
def test_invalid_config_raises_configuration_error(tmp_path: Path, text: str) -> None:
    path = tmp_path / "collector.yaml"
    path.write_text(text)
    with pytest.raises(ConfigurationError):
        load_config(path)


def test_collector_from_config_creates_data_dir(tmp_path: Path) -> None:
    cfg = CollectorConfig(data_dir=tmp_path / "data", max_retries=0)
    collector = Collector.from_config(cfg)
    assert collector.data_dir.is_dir()
    assert collector.max_retries == 0
