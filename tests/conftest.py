"""
Global pytest configuration and fixtures for subledger tests.
"""

import os
import sys

import pytest

# Keep tests on in-memory state and readable logs unless explicitly overridden.
os.environ.setdefault("LEDGER__STORAGE_BACKEND", "memory")
os.environ.setdefault("DATABASE__URL", "sqlite:///./pytest_ledger.db")
os.environ.setdefault("OBSERVABILITY__LOG_FORMAT", "text")
os.environ.setdefault("ENVIRONMENT", "test")

# Add src to path for imports
sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", "src"))

from subledger.db import reset_engine  # noqa: E402
from subledger.ledger.dependencies import set_ledger_gateway  # noqa: E402
from subledger.settings import reset_settings  # noqa: E402


@pytest.fixture(autouse=True)
def _reset_globals():
    """Drop cached settings, engine and gateway between tests."""
    yield
    set_ledger_gateway(None)
    reset_engine()
    reset_settings()
