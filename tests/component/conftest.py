"""
Component Test Layer Configuration

Structure:
    tests/component/
    ├── donation/    Donation service, reconciler, repositories, gateway client
    └── mocks/       Mock implementations

Usage:
    pytest tests/component -v
    pytest tests/component/donation -v
"""
import os
import sys

import pytest

# Set testing environment BEFORE any imports
os.environ["ENV"] = "testing"
os.environ["NATS_ENABLED"] = "false"

# Add project root
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.dirname(os.path.abspath(__file__)))))

from tests.component.mocks import MockEventBus  # noqa: E402


@pytest.fixture
def mock_event_bus():
    """Recording event bus"""
    return MockEventBus()
