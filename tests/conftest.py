"""
Pytest configuration and fixtures.

This file provides pytest-specific configuration and fixtures.
For database factories, see tests/fixtures/factories.py
"""

import pytest


def pytest_configure(config):
    """Configure pytest markers."""
    config.addinivalue_line(
        "markers", "db: marks tests as requiring database (deselect with '-m \"not db\"')"
    )


@pytest.fixture(autouse=True)
def notification_dry_run(monkeypatch):
    """Keep email and webhook channels from reaching the network during tests."""
    monkeypatch.setenv("NOTIFICATION_DRY_RUN", "true")

