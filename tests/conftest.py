import os

import pytest
from aioresponses import aioresponses

from envgod import reset_state

API_URL = "http://api.envgod.test"


@pytest.fixture(autouse=True)
def clean_state():
    """Reset the default context and restore os.environ after each test."""
    reset_state()
    saved = dict(os.environ)
    yield
    reset_state()
    os.environ.clear()
    os.environ.update(saved)


@pytest.fixture
def envgod_env(monkeypatch):
    monkeypatch.setenv("ENVGOD_API_URL", API_URL)
    monkeypatch.setenv("ENVGOD_API_KEY", "test-api-key")
    monkeypatch.setenv("ENVGOD_PROJECT", "test-proj")
    monkeypatch.setenv("ENVGOD_ENV", "dev")
    monkeypatch.setenv("ENVGOD_SERVICE", "api")
    for var in ("ENVGOD_ORG", "ENVGOD_TIMEOUT"):
        monkeypatch.delenv(var, raising=False)


@pytest.fixture
def defaults():
    """Ambient defaults for an isolated EnvContext."""
    return {
        "ENVGOD_API_URL": API_URL,
        "ENVGOD_API_KEY": "test-api-key",
        "ENVGOD_PROJECT": "test-proj",
        "ENVGOD_ENV": "dev",
        "ENVGOD_SERVICE": "api",
    }


@pytest.fixture
def mock_api():
    with aioresponses() as m:
        yield m
