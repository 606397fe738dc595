"""Root-level pytest fixtures for all tests."""

import os

import pytest


def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line(
        "markers", "integration: marks tests requiring a live backend"
    )


@pytest.fixture(autouse=True)
def _isolate_orderup_env(monkeypatch):
    """Keep ORDERUP_* overrides from the developer's shell out of tests."""
    for key in [k for k in os.environ if k.startswith("ORDERUP_")]:
        monkeypatch.delenv(key)
