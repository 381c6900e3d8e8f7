from __future__ import annotations

import logging

import pytest

from recordsync.config import (
    ConfigurationError,
    optional_bool_env,
    optional_int_env,
    resolve_log_level,
)


def test_optional_int_env(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("EXAMPLE_INT", raising=False)
    assert optional_int_env("EXAMPLE_INT", 7) == 7

    monkeypatch.setenv("EXAMPLE_INT", "12")
    assert optional_int_env("EXAMPLE_INT", 7) == 12

    monkeypatch.setenv("EXAMPLE_INT", "twelve")
    with pytest.raises(ConfigurationError, match="EXAMPLE_INT") as excinfo:
        optional_int_env("EXAMPLE_INT", 7)
    assert excinfo.value.variable == "EXAMPLE_INT"


@pytest.mark.parametrize(
    ("raw", "expected"),
    [("1", True), ("Yes", True), (" on ", True), ("0", False), ("false", False), ("", True)],
)
def test_optional_bool_env(monkeypatch: pytest.MonkeyPatch, raw: str, expected: bool) -> None:
    monkeypatch.setenv("EXAMPLE_FLAG", raw)

    assert optional_bool_env("EXAMPLE_FLAG", default=True) is expected


def test_optional_bool_env_rejects_unknown_words(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("EXAMPLE_FLAG", "maybe")

    with pytest.raises(ConfigurationError, match="EXAMPLE_FLAG"):
        optional_bool_env("EXAMPLE_FLAG", default=False)


def test_resolve_log_level(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("RECORDSYNC_LOG_LEVEL", raising=False)
    assert resolve_log_level() == logging.INFO

    monkeypatch.setenv("RECORDSYNC_LOG_LEVEL", "debug")
    assert resolve_log_level() == logging.DEBUG

    monkeypatch.setenv("RECORDSYNC_LOG_LEVEL", "chatty")
    with pytest.raises(ConfigurationError, match="RECORDSYNC_LOG_LEVEL") as excinfo:
        resolve_log_level()
    assert excinfo.value.variable == "RECORDSYNC_LOG_LEVEL"
