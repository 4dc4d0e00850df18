"""
Test configuration: puts the repo root on sys.path and provides shared fixtures.
"""

import sys
from pathlib import Path

import pytest

# Add repo root to sys.path so tests can import allocation_models and pressure_scheduler
REPO_ROOT = Path(__file__).parent.parent
if str(REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(REPO_ROOT))

from tests.builders import make_config  # noqa: E402


@pytest.fixture
def config():
    """One day horizon starting Monday 2024-01-01 00:00 UTC."""
    return make_config(days=1)


@pytest.fixture
def small_config():
    """Unit horizon [0, 100] for arithmetic-level tests."""
    return make_config(start=0, end=100)
