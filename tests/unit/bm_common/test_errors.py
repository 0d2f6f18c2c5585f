"""Tests for shared error helpers."""

from __future__ import annotations

from pathlib import Path

import pytest

from bm_common.errors import BuildError, StageError, StorageError, error_to_payload, wrap_error


pytestmark = pytest.mark.unit_common


def test_error_to_payload_normalizes_context() -> None:
    err = StorageError(
        "boom",
        context={
            "path": Path("/tmp/test"),
            "count": 3,
            "nested": {"value": Path("nested")},
            "items": [Path("a"), "b"],
            "hash": b"\xab\xcd",
        },
    )
    payload = error_to_payload(err)
    assert payload["error_type"] == "StorageError"
    assert payload["error"] == "boom"
    assert payload["error_context"]["path"].endswith("test")
    assert payload["error_context"]["count"] == 3
    assert payload["error_context"]["nested"]["value"] == "nested"
    assert payload["error_context"]["items"][0] == "a"
    assert payload["error_context"]["hash"] == "abcd"


def test_wrap_error_keeps_cause() -> None:
    cause = OSError("disk gone")
    err = wrap_error(StorageError, "write failed", cause=cause)
    assert err.__cause__ is cause
    assert err.to_dict()["type"] == "StorageError"


def test_stage_errors_carry_attempt() -> None:
    err = BuildError("cargo failed", attempt="recorded")
    assert isinstance(err, StageError)
    assert err.attempt == "recorded"
