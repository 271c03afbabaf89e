"""Shared test fixtures."""

import logging

import pytest


@pytest.fixture(autouse=True)
def _quiet_sqlalchemy_logs(caplog: pytest.LogCaptureFixture) -> None:
    """Keep SQL echo out of captured logs; service logs stay at INFO."""
    caplog.set_level(logging.WARNING, logger="sqlalchemy.engine")
    caplog.set_level(logging.INFO, logger="src")
