"""
Donation Service Component Fixtures

Wires DonationService and LedgerReconciler to in-memory stores that share
one rollback-capable transaction manager.
"""
from datetime import timedelta

import pytest

from microservices.donation_service.donation_service import DonationService
from microservices.donation_service.reconciliation import LedgerReconciler
from tests.component.mocks import (
    MockCampaignRepository,
    MockDonationRepository,
    MockGatewayClient,
    MockTransactionManager,
)
from tests.fixtures import TEST_KEY_ID, TEST_KEY_SECRET, make_campaign


@pytest.fixture
def donation_repository():
    return MockDonationRepository()


@pytest.fixture
def campaign_repository(donation_repository):
    return MockCampaignRepository(donation_repository)


@pytest.fixture
def transactions(campaign_repository, donation_repository):
    return MockTransactionManager(campaign_repository, donation_repository)


@pytest.fixture
def gateway():
    return MockGatewayClient(TEST_KEY_ID, TEST_KEY_SECRET)


@pytest.fixture
def donation_service(campaign_repository, donation_repository, gateway, transactions, mock_event_bus):
    return DonationService(
        campaign_repository=campaign_repository,
        donation_repository=donation_repository,
        gateway_client=gateway,
        transactions=transactions,
        event_bus=mock_event_bus,
    )


@pytest.fixture
def reconciler(campaign_repository, donation_repository, transactions, mock_event_bus):
    return LedgerReconciler(
        campaign_repository=campaign_repository,
        donation_repository=donation_repository,
        transactions=transactions,
        event_bus=mock_event_bus,
        pending_expiry=timedelta(hours=24),
    )


@pytest.fixture
def campaign(campaign_repository):
    """Active, public, gateway-enabled campaign with nothing collected"""
    return campaign_repository.add_campaign(make_campaign())


@pytest.fixture
def ledger(campaign_repository, donation_repository):
    """Check collected_amount against the completed donations of a campaign"""

    async def assert_consistent(campaign_id: str):
        expected = await donation_repository.sum_completed_for_campaign(campaign_id)
        assert campaign_repository.collected(campaign_id) == expected

    return assert_consistent
