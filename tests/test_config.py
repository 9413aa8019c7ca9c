"""Tests for AccessControlConfig environment handling."""

from __future__ import annotations

from datetime import timedelta

import pytest

from access_control.config import (
    DEFAULT_CACHE_TTL_MS,
    DEFAULT_SWEEP_INTERVAL_MS,
    AccessControlConfig,
)

ENV_VARS = (
    "PERMISSION_CACHE_TTL_MS",
    "PERMISSION_CACHE_SWEEP_INTERVAL_MS",
    "PERMISSION_CACHE_SWEEPER_ENABLED",
    "JWT_SECRET",
    "JWT_ALGORITHM",
)


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)


def test_defaults():
    config = AccessControlConfig()

    assert config.cache_ttl_ms == DEFAULT_CACHE_TTL_MS == 300000
    assert config.sweep_interval_ms == DEFAULT_SWEEP_INTERVAL_MS == 600000
    assert config.cache_ttl == timedelta(minutes=5)
    assert config.sweep_interval == timedelta(minutes=10)
    assert config.sweeper_enabled is True
    assert config.jwt_algorithm == "HS256"


def test_reads_environment(monkeypatch):
    monkeypatch.setenv("PERMISSION_CACHE_TTL_MS", "1000")
    monkeypatch.setenv("PERMISSION_CACHE_SWEEP_INTERVAL_MS", "2000")
    monkeypatch.setenv("PERMISSION_CACHE_SWEEPER_ENABLED", "false")

    config = AccessControlConfig()

    assert config.cache_ttl_ms == 1000
    assert config.sweep_interval_ms == 2000
    assert config.sweeper_enabled is False


def test_explicit_arguments_override_environment(monkeypatch):
    monkeypatch.setenv("PERMISSION_CACHE_TTL_MS", "1000")
    assert AccessControlConfig(cache_ttl_ms=5000).cache_ttl_ms == 5000


@pytest.mark.parametrize("kwargs", [
    {"cache_ttl_ms": 0},
    {"sweep_interval_ms": 0},
    {"cache_ttl_ms": -1},
])
def test_explicit_non_positive_duration_rejected(monkeypatch, kwargs):
    monkeypatch.setenv("PERMISSION_CACHE_TTL_MS", "1000")
    monkeypatch.setenv("PERMISSION_CACHE_SWEEP_INTERVAL_MS", "2000")
    with pytest.raises(ValueError):
        AccessControlConfig(**kwargs)


@pytest.mark.parametrize("value", ["0", "-5", "soon"])
def test_invalid_environment_duration_rejected(monkeypatch, value):
    monkeypatch.setenv("PERMISSION_CACHE_TTL_MS", value)
    with pytest.raises(ValueError):
        AccessControlConfig()
