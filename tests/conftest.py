"""Root test configuration for botgate.

Isolates every test from the host environment (BOTGATE_* variables and any
real ``~/.botgate/config.yaml``) and exposes the ``fake_providers`` fixture.
"""

from __future__ import annotations

import pytest

from tests.fakes import FakeProviders


@pytest.fixture
def fake_providers() -> FakeProviders:
    return FakeProviders()


@pytest.fixture(autouse=True)
def isolate_config_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """Strip BOTGATE_* overrides and the default config search paths."""
    for name in (
        "BOTGATE_CONFIG",
        "BOTGATE_PORT",
        "BOTGATE_ALLOW_URL",
        "BOTGATE_BLOCK_URL",
        "BOTGATE_FALLBACK_IP",
    ):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setattr("botgate.config.DEFAULT_CONFIG_PATHS", [])
