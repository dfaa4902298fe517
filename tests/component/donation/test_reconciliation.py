"""
Ledger Reconciler Component Tests
"""
from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest

from microservices.donation_service.models import (
    Donation,
    DonationChannel,
    DonationStatus,
    PaymentMode,
)
from microservices.donation_service.reconciliation import PAYMENT_WINDOW_EXPIRED
from tests.fixtures import make_campaign, make_create_order_request, make_offline_request

pytestmark = [pytest.mark.component]


def _pending_gateway_donation(campaign_id: str, age: timedelta) -> Donation:
    created = datetime.now(timezone.utc) - age
    return Donation(
        donation_id=f"don_stale{int(age.total_seconds())}",
        campaign_id=campaign_id,
        donor_name="Abandoned Checkout",
        channel=DonationChannel.GATEWAY,
        payment_mode=PaymentMode.ONLINE,
        amount=Decimal("300.00"),
        status=DonationStatus.PENDING,
        gateway_order_id=f"order_stale{int(age.total_seconds())}",
        donation_date=created,
        created_at=created,
        updated_at=created,
    )


class TestCollectedAmountReconciliation:

    async def test_consistent_ledger_is_untouched(
        self, reconciler, donation_service, campaign, campaign_repository, admin_id, mock_event_bus
    ):
        await donation_service.record_offline_donation(make_offline_request(campaign.campaign_id), admin_id)

        report = await reconciler.reconcile_collected_amounts()

        assert report.campaigns_checked == 1
        assert report.corrections == []
        campaign_repository.assert_not_called("set_collected")
        mock_event_bus.assert_no_events_published("ledger.drift_corrected")

    async def test_drift_is_corrected(
        self, reconciler, donation_service, campaign, campaign_repository, admin_id, ledger, mock_event_bus
    ):
        await donation_service.record_offline_donation(
            make_offline_request(campaign.campaign_id, amount="2000"), admin_id
        )
        # Simulate a lost update
        await campaign_repository.set_collected(campaign.campaign_id, Decimal("1500.00"))

        report = await reconciler.reconcile_collected_amounts()

        assert len(report.corrections) == 1
        drift = report.corrections[0]
        assert drift.recorded_amount == Decimal("1500.00")
        assert drift.computed_amount == Decimal("2000.00")
        assert drift.delta == Decimal("500.00")
        await ledger(campaign.campaign_id)
        mock_event_bus.assert_event_published("ledger.drift_corrected", {"campaign_id": campaign.campaign_id})

    async def test_campaign_without_donations_is_reset_to_zero(
        self, reconciler, campaign_repository, ledger
    ):
        stray = campaign_repository.add_campaign(make_campaign(collected_amount=Decimal("42.00")))

        report = await reconciler.reconcile_collected_amounts()

        assert [d.campaign_id for d in report.corrections] == [stray.campaign_id]
        await ledger(stray.campaign_id)

    async def test_candidate_rechecked_under_lock(self, reconciler, campaign, campaign_repository):
        # Bulk totals disagree but the locked re-read agrees
        async def stale_totals():
            return {campaign.campaign_id: Decimal("999.00")}

        reconciler.donation_repository.sum_completed_by_campaign = stale_totals

        report = await reconciler.reconcile_collected_amounts()

        assert report.corrections == []
        campaign_repository.assert_called("lock_collected")
        campaign_repository.assert_not_called("set_collected")


class TestPendingExpiry:

    async def test_stale_pending_is_failed(
        self, reconciler, campaign, donation_repository, campaign_repository, mock_event_bus
    ):
        stale = donation_repository.add_donation(_pending_gateway_donation(campaign.campaign_id, timedelta(days=3)))
        fresh = donation_repository.add_donation(_pending_gateway_donation(campaign.campaign_id, timedelta(minutes=5)))

        expired = await reconciler.expire_stale_pending(timedelta(hours=24))

        assert expired == 1
        assert donation_repository.donations[stale.donation_id].status == DonationStatus.FAILED
        assert donation_repository.donations[stale.donation_id].failure_reason == PAYMENT_WINDOW_EXPIRED
        assert donation_repository.donations[fresh.donation_id].status == DonationStatus.PENDING
        assert campaign_repository.collected(campaign.campaign_id) == Decimal("0.00")
        mock_event_bus.assert_event_published("donation.failed", {"reason": PAYMENT_WINDOW_EXPIRED})

    async def test_new_orders_are_not_expired(self, reconciler, donation_service, campaign):
        await donation_service.initiate_online_donation(make_create_order_request(campaign.campaign_id))

        assert await reconciler.expire_stale_pending(timedelta(hours=1)) == 0


class TestRunOnce:

    async def test_full_pass(self, reconciler, campaign, campaign_repository, donation_repository):
        donation_repository.add_donation(_pending_gateway_donation(campaign.campaign_id, timedelta(days=2)))
        await campaign_repository.set_collected(campaign.campaign_id, Decimal("10.00"))

        report = await reconciler.run_once()

        assert report.expired_pending == 1
        assert len(report.corrections) == 1
        assert report.finished_at is not None
        assert report.finished_at >= report.started_at
        assert campaign_repository.collected(campaign.campaign_id) == Decimal("0.00")

    async def test_expiry_disabled(self, reconciler, campaign, donation_repository):
        reconciler.pending_expiry = None
        donation_repository.add_donation(_pending_gateway_donation(campaign.campaign_id, timedelta(days=30)))

        report = await reconciler.run_once()

        assert report.expired_pending == 0
        donation_repository.assert_not_called("find_stale_pending")
