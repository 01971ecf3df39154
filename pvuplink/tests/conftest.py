"""
Shared test fixtures for uplink daemon tests.

Provides environment variable fixtures for UplinkSettings configuration tests
and small builders for samples and states. All uplink env vars are cleaned
before each test to ensure isolation.

CHANGELOG:
- 2026-10-12: Initial creation (STORY-001)

TODO:
- None
"""

from __future__ import annotations

import pytest

# All UplinkSettings environment variable names, used for cleanup.
_ALL_UPLINK_ENV_VARS = (
    "REFRESH_MINUTES",
    "PVOUTPUT_ENABLED",
    "PVOUTPUT_BASE_URL",
    "PVOUTPUT_API_KEY",
    "PVOUTPUT_SYSTEM_ID",
    "REQUEST_TIMEOUT_S",
    "METRICS_URL",
    "HEALTH_PATH",
)


@pytest.fixture(autouse=True)
def _clean_uplink_env(monkeypatch: pytest.MonkeyPatch, tmp_path: str) -> None:
    """Remove all uplink env vars and isolate from .env files before each test.

    Changes working directory to tmp_path so no .env file is accidentally
    loaded by Pydantic BaseSettings.
    """
    for var in _ALL_UPLINK_ENV_VARS:
        monkeypatch.delenv(var, raising=False)
    monkeypatch.chdir(tmp_path)


@pytest.fixture()
def env_vars_full(monkeypatch: pytest.MonkeyPatch) -> dict[str, str]:
    """Set every UplinkSettings environment variable.

    Returns the dict of env var names to values for assertion convenience.
    """
    env = {
        "REFRESH_MINUTES": "5",
        "PVOUTPUT_ENABLED": "true",
        "PVOUTPUT_BASE_URL": "https://pvoutput.example.com",
        "PVOUTPUT_API_KEY": "test-api-key",
        "PVOUTPUT_SYSTEM_ID": "4242",
        "REQUEST_TIMEOUT_S": "7.5",
        "METRICS_URL": "http://envoy.local/metrics",
        "HEALTH_PATH": "/tmp/test-health.json",
    }
    for key, value in env.items():
        monkeypatch.setenv(key, value)
    return env


@pytest.fixture()
def env_vars_required_only(monkeypatch: pytest.MonkeyPatch) -> dict[str, str]:
    """Set only the required environment variables (no optional ones)."""
    env = {"METRICS_URL": "http://10.0.0.50/metrics"}
    for key, value in env.items():
        monkeypatch.setenv(key, value)
    return env
