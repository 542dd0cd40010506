"""Shared pytest fixtures."""

import pytest

from paybridge.common.config import settings
from tests.fakes import standard_proxy


@pytest.fixture(autouse=True)
def fast_backoff(monkeypatch):
    """Keep retry backoff out of test wall time."""

    monkeypatch.setattr(settings, "http_backoff_seconds", 0.0)
    monkeypatch.setattr(settings, "http_max_retries", 3)


@pytest.fixture
def proxy():
    return standard_proxy()
