# tests/conftest.py

"""Shared pytest fixtures for listing_watch tests."""

from collections.abc import Generator
from unittest.mock import patch

import pytest


@pytest.fixture(autouse=True)
def mock_sleep() -> Generator[None, None, None]:
    """Patch time.sleep globally so retry and pagination delays are instant."""
    with patch("time.sleep"):
        yield
