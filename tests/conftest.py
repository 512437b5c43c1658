"""Test configuration."""

from pathlib import Path
from typing import List

import pytest

from listing_location.core.logging import configure_logging

fixture = pytest.fixture


@fixture(scope="session")
def project_root() -> Path:
    """Get the project root directory."""
    return Path(__file__).parent.parent


@fixture(scope="session", autouse=True)
def configure_test_logging() -> None:
    """Use console rendering for log output during tests."""
    configure_logging(testing=True)


pytest_plugins: List[str] = [
    "tests.fixtures.hierarchy",
    "tests.fixtures.geolocation",
]
