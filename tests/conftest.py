"""Shared fixtures."""

import pytest
import structlog


@pytest.fixture(autouse=True)
def reset_structlog():
    """CLI commands bind structlog to the runner's stderr; undo that after each test."""
    yield
    structlog.reset_defaults()
