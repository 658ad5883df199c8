from __future__ import annotations

import os

import pytest

from tradesim.logging_utils import setup_test_logging

os.environ.setdefault("ENV", "test")


@pytest.fixture(scope="session", autouse=True)
def configure_logging():
    setup_test_logging("tradesim-logs/")
    yield


@pytest.fixture
def anyio_backend():
    """Force anyio-powered async tests to run under asyncio backend only."""
    return "asyncio"
