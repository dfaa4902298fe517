"""
Ledger Reconciler

Restores the collected-amount invariant from the donation records and
expires gateway donations whose checkout was abandoned.
"""

import logging
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from typing import Optional

from .events.publishers import DonationEventPublisher
from .models import CampaignDrift, ReconciliationReport, TransitionResult
from .protocols import (
    CampaignRepositoryProtocol,
    DonationRepositoryProtocol,
    EventBusProtocol,
    TransactionManagerProtocol,
)

logger = logging.getLogger(__name__)

PAYMENT_WINDOW_EXPIRED = "Payment window expired"


class LedgerReconciler:
    """Periodic ledger maintenance"""

    def __init__(
        self,
        campaign_repository: CampaignRepositoryProtocol,
        donation_repository: DonationRepositoryProtocol,
        transactions: TransactionManagerProtocol,
        event_bus: Optional[EventBusProtocol] = None,
        pending_expiry: Optional[timedelta] = None,
    ):
        self.campaign_repository = campaign_repository
        self.donation_repository = donation_repository
        self.transactions = transactions
        self.event_publisher = DonationEventPublisher(event_bus)
        self.pending_expiry = pending_expiry

    async def reconcile_collected_amounts(self, report: Optional[ReconciliationReport] = None) -> ReconciliationReport:
        """
        Compare every campaign's collected amount with the sum of its completed
        donations and overwrite the ones that drifted.

        Candidates found by the bulk comparison are re-checked under the
        campaign row lock so that in-flight confirmations are not undone.
        """
        report = report or ReconciliationReport(started_at=datetime.now(timezone.utc))

        recorded = await self.campaign_repository.get_collected_amounts()
        computed = await self.donation_repository.sum_completed_by_campaign()
        report.campaigns_checked = len(recorded)

        for campaign_id, recorded_amount in recorded.items():
            if recorded_amount == computed.get(campaign_id, Decimal("0")):
                continue

            async with self.transactions.transaction():
                locked_amount = await self.campaign_repository.lock_collected(campaign_id)
                if locked_amount is None:
                    continue
                actual = await self.donation_repository.sum_completed_for_campaign(campaign_id)
                if locked_amount == actual:
                    continue
                await self.campaign_repository.set_collected(campaign_id, actual)

            drift = CampaignDrift(campaign_id=campaign_id, recorded_amount=locked_amount, computed_amount=actual)
            report.corrections.append(drift)
            logger.warning(
                f"Collected amount drift corrected for campaign {campaign_id}: "
                f"{locked_amount} -> {actual} (delta {drift.delta})"
            )
            await self.event_publisher.publish_drift_corrected(campaign_id, locked_amount, actual)

        return report

    async def expire_stale_pending(self, max_age: timedelta) -> int:
        """Fail Pending gateway donations older than max_age. Returns how many were expired."""
        cutoff = datetime.now(timezone.utc) - max_age
        stale = await self.donation_repository.find_stale_pending(cutoff)

        expired = 0
        for donation in stale:
            result = await self.donation_repository.transition_to_failed(donation.donation_id, PAYMENT_WINDOW_EXPIRED)
            if result == TransitionResult.SUCCESS:
                expired += 1
                await self.event_publisher.publish_donation_failed(donation, PAYMENT_WINDOW_EXPIRED)

        if expired:
            logger.info(f"Expired {expired} pending donation(s) older than {max_age}")
        return expired

    async def run_once(self) -> ReconciliationReport:
        """One full maintenance pass"""
        report = ReconciliationReport(started_at=datetime.now(timezone.utc))
        if self.pending_expiry:
            report.expired_pending = await self.expire_stale_pending(self.pending_expiry)
        await self.reconcile_collected_amounts(report)
        report.finished_at = datetime.now(timezone.utc)
        logger.info(
            f"Reconciliation finished: {report.campaigns_checked} campaign(s) checked, "
            f"{len(report.corrections)} corrected, {report.expired_pending} pending expired"
        )
        return report
