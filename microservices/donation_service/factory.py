"""
Donation Service Factory

Factory for creating donation service instances with proper dependency injection.
Both stores share one PostgreSQL client so that a workflow can span them in a
single transaction.
"""

import logging
from datetime import timedelta
from typing import Optional

from core.config import LedgerConfig, get_settings
from core.config_manager import ConfigManager
from core.nats_client import NATSEventBus
from core.postgres_client import AsyncPostgresClient

from .campaign_repository import CampaignRepository
from .clients.razorpay_client import RazorpayClient
from .donation_repository import DonationRepository
from .donation_service import DonationService
from .reconciliation import LedgerReconciler

logger = logging.getLogger(__name__)


class DonationServiceFactory:
    """Factory for creating donation service components"""

    def __init__(self, config: Optional[ConfigManager] = None, settings: Optional[LedgerConfig] = None):
        self.config = config or ConfigManager("donation_service")
        self.settings = settings or get_settings()
        self._db: Optional[AsyncPostgresClient] = None
        self._campaign_repository: Optional[CampaignRepository] = None
        self._donation_repository: Optional[DonationRepository] = None
        self._gateway_client: Optional[RazorpayClient] = None
        self._nats_client: Optional[NATSEventBus] = None
        self._service: Optional[DonationService] = None
        self._reconciler: Optional[LedgerReconciler] = None

    async def initialize(self) -> None:
        """Initialize all components"""
        logger.info("Initializing Donation Service components...")

        infra = self.settings.infra
        self._db = AsyncPostgresClient(
            service_name="donation_service",
            host=infra.postgres_host,
            port=infra.postgres_port,
            database=infra.postgres_db,
            username=infra.postgres_user,
            password=infra.postgres_password,
            min_size=infra.postgres_pool_min,
            max_size=infra.postgres_pool_max,
            command_timeout=infra.postgres_command_timeout,
        )
        await self._db.connect()

        self._campaign_repository = CampaignRepository(db=self._db, config=self.config)
        self._donation_repository = DonationRepository(db=self._db, config=self.config)

        # Initialize NATS client
        if infra.nats_enabled:
            try:
                self._nats_client = NATSEventBus(
                    service_name="donation_service",
                    config=self.config,
                )
                await self._nats_client.connect()
                logger.info("NATS client connected")
            except Exception as e:
                logger.warning(f"NATS client initialization failed: {e}")
                self._nats_client = None

        self._gateway_client = RazorpayClient(self.settings.gateway)

        # Initialize main service
        self._service = DonationService(
            campaign_repository=self._campaign_repository,
            donation_repository=self._donation_repository,
            gateway_client=self._gateway_client,
            transactions=self._db,
            event_bus=self._nats_client,
            default_currency=self.settings.gateway.default_currency,
        )

        expiry_minutes = self.settings.reconcile.pending_expiry_minutes
        self._reconciler = LedgerReconciler(
            campaign_repository=self._campaign_repository,
            donation_repository=self._donation_repository,
            transactions=self._db,
            event_bus=self._nats_client,
            pending_expiry=timedelta(minutes=expiry_minutes) if expiry_minutes > 0 else None,
        )

        logger.info("Donation Service components initialized")

    async def close(self) -> None:
        """Close all components"""
        logger.info("Closing Donation Service components...")

        if self._gateway_client:
            await self._gateway_client.close()

        if self._nats_client:
            await self._nats_client.close()

        if self._db:
            await self._db.close()

        logger.info("Donation Service components closed")

    @property
    def db(self) -> AsyncPostgresClient:
        """Get shared PostgreSQL client"""
        if not self._db:
            raise RuntimeError("Factory not initialized. Call initialize() first.")
        return self._db

    @property
    def service(self) -> DonationService:
        """Get donation service"""
        if not self._service:
            raise RuntimeError("Factory not initialized. Call initialize() first.")
        return self._service

    @property
    def reconciler(self) -> LedgerReconciler:
        """Get ledger reconciler"""
        if not self._reconciler:
            raise RuntimeError("Factory not initialized. Call initialize() first.")
        return self._reconciler

    @property
    def nats_client(self) -> Optional[NATSEventBus]:
        """Get NATS client"""
        return self._nats_client


__all__ = [
    "DonationServiceFactory",
]
