"""
Donation Event Publishers

Publishes donation and ledger events to NATS JetStream.
Publishing never fails the calling request.
"""

import logging
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Dict, Optional

from core.nats_client import Event, EventType, ServiceSource

from ..models import Campaign, DeletedDonation, Donation
from .models import (
    CampaignEventData,
    CollectedAdjustedEventData,
    DonationCompletedEventData,
    DonationCreatedEventData,
    DonationDeletedEventData,
    DonationEventType,
    DonationFailedEventData,
    LedgerDriftCorrectedEventData,
    LedgerInconsistencyEventData,
)

logger = logging.getLogger(__name__)


def _now() -> datetime:
    return datetime.now(timezone.utc)


class DonationEventPublisher:
    """Publisher for donation service events"""

    def __init__(self, event_bus=None):
        self.event_bus = event_bus
        self.source = ServiceSource.DONATION_SERVICE

    async def publish(
        self,
        event_type: DonationEventType,
        data: Dict[str, Any],
    ) -> bool:
        """
        Publish an event to NATS.

        Args:
            event_type: The event type enum
            data: Event data payload

        Returns:
            True if published successfully, False otherwise
        """
        if not self.event_bus:
            logger.debug(f"Event bus not configured, skipping publish: {event_type.value}")
            return False

        try:
            event = Event(
                event_type=EventType(event_type.value),
                source=self.source,
                data=data,
            )
            published = await self.event_bus.publish_event(event)
            if published:
                logger.debug(f"Published event: {event_type.value}")
            return bool(published)

        except Exception as e:
            logger.error(f"Failed to publish event {event_type.value}: {e}")
            return False

    # ====================
    # Donation Lifecycle Events
    # ====================

    async def publish_donation_created(self, donation: Donation) -> bool:
        """Publish donation.created event"""
        data = DonationCreatedEventData(
            donation_id=donation.donation_id,
            campaign_id=donation.campaign_id,
            channel=donation.channel.value,
            status=donation.status.value,
            amount=donation.amount,
            currency=donation.currency,
            created_by=donation.created_by,
            timestamp=_now(),
        )
        return await self.publish(DonationEventType.DONATION_CREATED, data.model_dump(mode="json"))

    async def publish_donation_completed(self, donation: Donation) -> bool:
        """Publish donation.completed event"""
        data = DonationCompletedEventData(
            donation_id=donation.donation_id,
            campaign_id=donation.campaign_id,
            channel=donation.channel.value,
            amount=donation.amount,
            currency=donation.currency,
            receipt_number=donation.receipt_number or "",
            timestamp=_now(),
        )
        return await self.publish(DonationEventType.DONATION_COMPLETED, data.model_dump(mode="json"))

    async def publish_donation_failed(self, donation: Donation, reason: str) -> bool:
        """Publish donation.failed event"""
        data = DonationFailedEventData(
            donation_id=donation.donation_id,
            campaign_id=donation.campaign_id,
            reason=reason,
            timestamp=_now(),
        )
        return await self.publish(DonationEventType.DONATION_FAILED, data.model_dump(mode="json"))

    async def publish_donation_deleted(
        self, deleted: DeletedDonation, reversed_credit: bool, deleted_by: Optional[str]
    ) -> bool:
        """Publish donation.deleted event"""
        data = DonationDeletedEventData(
            donation_id=deleted.donation_id,
            campaign_id=deleted.campaign_id,
            prior_status=deleted.prior_status.value,
            amount=deleted.amount,
            reversed=reversed_credit,
            deleted_by=deleted_by,
            timestamp=_now(),
        )
        return await self.publish(DonationEventType.DONATION_DELETED, data.model_dump(mode="json"))

    # ====================
    # Campaign Events
    # ====================

    async def publish_campaign_event(
        self, event_type: DonationEventType, campaign: Campaign, actor_id: Optional[str]
    ) -> bool:
        """Publish campaign.created / campaign.updated / campaign.deleted"""
        data = CampaignEventData(
            campaign_id=campaign.campaign_id,
            campaign_code=campaign.campaign_code,
            name=campaign.name,
            status=campaign.status.value,
            actor_id=actor_id,
            timestamp=_now(),
        )
        return await self.publish(event_type, data.model_dump(mode="json"))

    async def publish_collected_adjusted(
        self, campaign_id: str, delta: Decimal, collected_amount: Decimal, donation_id: Optional[str] = None
    ) -> bool:
        """Publish campaign.collected_adjusted event"""
        data = CollectedAdjustedEventData(
            campaign_id=campaign_id,
            delta=delta,
            collected_amount=collected_amount,
            donation_id=donation_id,
            timestamp=_now(),
        )
        return await self.publish(DonationEventType.COLLECTED_ADJUSTED, data.model_dump(mode="json"))

    # ====================
    # Ledger Integrity Events
    # ====================

    async def publish_ledger_inconsistency(
        self,
        operation: str,
        detail: str,
        campaign_id: Optional[str] = None,
        donation_id: Optional[str] = None,
    ) -> bool:
        """Publish ledger.inconsistency event"""
        data = LedgerInconsistencyEventData(
            campaign_id=campaign_id,
            donation_id=donation_id,
            operation=operation,
            detail=detail,
            timestamp=_now(),
        )
        return await self.publish(DonationEventType.LEDGER_INCONSISTENCY, data.model_dump(mode="json"))

    async def publish_drift_corrected(
        self, campaign_id: str, recorded_amount: Decimal, computed_amount: Decimal
    ) -> bool:
        """Publish ledger.drift_corrected event"""
        data = LedgerDriftCorrectedEventData(
            campaign_id=campaign_id,
            recorded_amount=recorded_amount,
            computed_amount=computed_amount,
            timestamp=_now(),
        )
        return await self.publish(DonationEventType.LEDGER_DRIFT_CORRECTED, data.model_dump(mode="json"))
