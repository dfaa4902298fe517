"""
Component Test Mocks

Shared mock implementations for component testing.
These mocks replace real I/O dependencies (database, NATS, payment gateway).
"""

from .db_mock import MockAsyncPostgresClient, MockTransactionManager
from .nats_mock import MockEventBus
from .ledger_mock import MockCampaignRepository, MockDonationRepository, MockGatewayClient

__all__ = [
    'MockAsyncPostgresClient',
    'MockTransactionManager',
    'MockEventBus',
    'MockCampaignRepository',
    'MockDonationRepository',
    'MockGatewayClient',
]
