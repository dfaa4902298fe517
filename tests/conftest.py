"""
Root conftest.py - Global fixtures and configuration for all test layers.

Test Layers:
    - api/        : HTTP contract tests (FastAPI TestClient, in-memory stores)
    - component/  : Component tests (in-memory repositories and gateway)
    - unit/       : Unit tests (pure functions, no I/O)
"""
import os
import sys

import pytest

# Set testing environment BEFORE any imports that read configuration
os.environ.setdefault("ENV", "testing")
os.environ.setdefault("NATS_ENABLED", "false")

# Add project root to path
PROJECT_ROOT = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
sys.path.insert(0, PROJECT_ROOT)

from tests.fixtures import make_user_id  # noqa: E402


# =============================================================================
# Pytest Configuration
# =============================================================================

def pytest_configure(config):
    """Register custom markers"""
    config.addinivalue_line("markers", "unit: pure function tests, no I/O")
    config.addinivalue_line("markers", "component: service tests with mocked dependencies")
    config.addinivalue_line("markers", "api: HTTP contract tests")


# =============================================================================
# Shared Fixtures
# =============================================================================

@pytest.fixture
def admin_id() -> str:
    return make_user_id()


