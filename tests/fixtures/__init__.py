"""
Shared Test Fixtures

Centralized factories used across all test layers.

Structure:
    - common.py: Base ID generators
    - donation_fixtures.py: Campaign and donation factories
"""

# Common utilities
from .common import (
    make_user_id,
)

# Donation service fixtures
from .donation_fixtures import (
    TEST_KEY_ID,
    TEST_KEY_SECRET,
    make_campaign_id,
    make_order_id,
    make_payment_id,
    make_campaign,
    make_campaign_create_request,
    make_create_order_request,
    make_offline_request,
    make_confirm_request,
)

__all__ = [
    "make_user_id",
    "TEST_KEY_ID",
    "TEST_KEY_SECRET",
    "make_campaign_id",
    "make_order_id",
    "make_payment_id",
    "make_campaign",
    "make_campaign_create_request",
    "make_create_order_request",
    "make_offline_request",
    "make_confirm_request",
]
