"""Pytest fixtures for Metals client tests."""

import pytest

from helpers.logging import LoggerStub


@pytest.fixture
def logger() -> LoggerStub:
    """Provide a recording logger for tests.

    Returns:
        A LoggerStub that keeps every message instead of printing it.
    """
    return LoggerStub()
