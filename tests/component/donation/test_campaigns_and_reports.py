"""
Campaign management and reporting component tests
"""
from datetime import date, datetime, timedelta, timezone
from decimal import Decimal

import pytest

from microservices.donation_service.models import (
    CampaignStatus,
    CampaignUpdateRequest,
    DonationChannel,
    DonationFilter,
    DonationStatus,
    DonationUpdateRequest,
)
from microservices.donation_service.protocols import (
    CampaignNotFoundError,
    DonationNotFoundError,
    DonationStateConflictError,
    DonationValidationError,
)
from tests.fixtures import (
    make_campaign,
    make_campaign_create_request,
    make_confirm_request,
    make_create_order_request,
    make_offline_request,
)

pytestmark = [pytest.mark.component]


class TestCampaignManagement:

    async def test_create_campaign_starts_at_zero(self, donation_service, admin_id, mock_event_bus):
        campaign = await donation_service.create_campaign(
            make_campaign_create_request(target_amount=Decimal("100000")), admin_id
        )

        assert campaign.collected_amount == Decimal("0")
        assert campaign.campaign_code.startswith("CAMP-")
        assert campaign.created_by == admin_id
        mock_event_bus.assert_event_published("campaign.created", {"campaign_id": campaign.campaign_id})

    async def test_duplicate_code_rejected(self, donation_service, admin_id):
        await donation_service.create_campaign(make_campaign_create_request(campaign_code="WATER-24"), admin_id)

        with pytest.raises(DonationValidationError) as exc:
            await donation_service.create_campaign(make_campaign_create_request(campaign_code="WATER-24"), admin_id)
        assert exc.value.field == "campaign_code"

    async def test_end_before_start_rejected(self, donation_service, admin_id):
        with pytest.raises(DonationValidationError):
            await donation_service.create_campaign(
                make_campaign_create_request(start_date=date(2024, 5, 1), end_date=date(2024, 4, 1)),
                admin_id,
            )

    async def test_update_checks_dates_against_stored_values(self, donation_service, campaign_repository, admin_id):
        campaign = campaign_repository.add_campaign(make_campaign(start_date=date(2024, 5, 1)))

        with pytest.raises(DonationValidationError):
            await donation_service.update_campaign(
                campaign.campaign_id, CampaignUpdateRequest(end_date=date(2024, 4, 30)), admin_id
            )

    async def test_update_pauses_campaign(self, donation_service, campaign, admin_id, mock_event_bus):
        updated = await donation_service.update_campaign(
            campaign.campaign_id, CampaignUpdateRequest(status=CampaignStatus.PAUSED), admin_id
        )

        assert updated.status == CampaignStatus.PAUSED
        assert updated.accepts_gateway_donations is False
        mock_event_bus.assert_event_published("campaign.updated", {"status": "Paused"})

    def test_update_cannot_touch_collected_amount(self):
        assert "collected_amount" not in CampaignUpdateRequest.model_fields

    async def test_delete_campaign_hides_it(self, donation_service, campaign, admin_id):
        assert await donation_service.delete_campaign(campaign.campaign_id, admin_id) is True

        with pytest.raises(CampaignNotFoundError):
            await donation_service.get_campaign(campaign.campaign_id)

    async def test_delete_refused_while_donations_remain(
        self, donation_service, campaign, campaign_repository, admin_id, mock_event_bus
    ):
        cash = await donation_service.record_offline_donation(
            make_offline_request(campaign.campaign_id, amount="300"), admin_id
        )

        with pytest.raises(DonationStateConflictError):
            await donation_service.delete_campaign(campaign.campaign_id, admin_id)
        assert campaign_repository.campaigns[campaign.campaign_id].is_deleted is False

        # Once the donation is removed the campaign can go
        await donation_service.delete_donation(cash.donation_id, admin_id)
        assert await donation_service.delete_campaign(campaign.campaign_id, admin_id) is True
        assert campaign_repository.collected(campaign.campaign_id) == Decimal("0.00")
        mock_event_bus.assert_no_events_published("ledger.inconsistency")

    async def test_delete_refused_while_order_pending(self, donation_service, campaign, admin_id):
        await donation_service.initiate_online_donation(make_create_order_request(campaign.campaign_id))

        with pytest.raises(DonationStateConflictError):
            await donation_service.delete_campaign(campaign.campaign_id, admin_id)

    async def test_get_campaign_with_stats(self, donation_service, campaign, admin_id):
        await donation_service.record_offline_donation(
            make_offline_request(campaign.campaign_id, amount="25000"), admin_id
        )
        order = await donation_service.initiate_online_donation(
            make_create_order_request(campaign.campaign_id, amount="5000")
        )
        await donation_service.confirm_online_payment(make_confirm_request(order.order_id))

        detail = await donation_service.get_campaign(campaign.campaign_id)

        assert detail.campaign.collected_amount == Decimal("30000.00")
        assert detail.stats.total_donations == 2
        assert detail.stats.online_amount == Decimal("5000.00")
        assert detail.stats.offline_amount == Decimal("25000.00")
        assert detail.progress_percentage == 30.0

    async def test_code_lookup_hides_private_campaigns(self, donation_service, campaign_repository):
        private = campaign_repository.add_campaign(make_campaign(is_public=False, campaign_code="CAMP-PRIV"))

        with pytest.raises(CampaignNotFoundError):
            await donation_service.get_campaign_by_code(private.campaign_code)

    async def test_public_listing_only_active_public(self, donation_service, campaign_repository):
        visible = campaign_repository.add_campaign(make_campaign())
        campaign_repository.add_campaign(make_campaign(status=CampaignStatus.PAUSED))
        campaign_repository.add_campaign(make_campaign(is_public=False))

        campaigns = await donation_service.list_public_campaigns()

        assert [c.campaign_id for c in campaigns] == [visible.campaign_id]


class TestCampaignSummary:

    async def test_per_channel_totals(self, donation_service, campaign, admin_id):
        for amount, channel in (("1000", "CASH"), ("500", "UPI"), ("250", "CHEQUE"), ("2000", "BANK")):
            await donation_service.record_offline_donation(
                make_offline_request(campaign.campaign_id, amount=amount, channel=channel), admin_id
            )
        order = await donation_service.initiate_online_donation(
            make_create_order_request(campaign.campaign_id, amount="5000")
        )
        await donation_service.confirm_online_payment(make_confirm_request(order.order_id))
        await donation_service.initiate_online_donation(make_create_order_request(campaign.campaign_id, amount="75"))

        summary = await donation_service.get_campaign_summary(campaign.campaign_id)

        assert summary.total_donations == 5
        assert summary.total_amount == Decimal("8750.00")
        assert summary.online_amount == Decimal("5000.00")
        assert summary.cash_amount == Decimal("1000.00")
        assert summary.upi_amount == Decimal("500.00")
        assert summary.cheque_amount == Decimal("250.00")
        assert summary.bank_amount == Decimal("2000.00")
        assert summary.pending_amount == Decimal("75.00")

    async def test_unique_donors_counted_by_name(self, donation_service, campaign, admin_id):
        for name in ("Ravi Kumar", "Ravi Kumar", "Leela Das"):
            await donation_service.record_offline_donation(
                make_offline_request(campaign.campaign_id, donor_name=name), admin_id
            )

        summary = await donation_service.get_campaign_summary(campaign.campaign_id)

        assert summary.total_donations == 3
        assert summary.unique_donors == 2

    async def test_summary_matches_collected_amount(self, donation_service, campaign, campaign_repository, admin_id):
        cash = await donation_service.record_offline_donation(
            make_offline_request(campaign.campaign_id, amount="900"), admin_id
        )
        await donation_service.record_offline_donation(make_offline_request(campaign.campaign_id, amount="100"), admin_id)
        await donation_service.delete_donation(cash.donation_id, admin_id)

        summary = await donation_service.get_campaign_summary(campaign.campaign_id)

        assert summary.total_amount == campaign_repository.collected(campaign.campaign_id) == Decimal("100.00")

    async def test_unknown_campaign(self, donation_service):
        with pytest.raises(CampaignNotFoundError):
            await donation_service.get_campaign_summary("cmp_missing")


class TestRecentPublicDonations:

    async def test_names_are_masked_and_pending_hidden(self, donation_service, campaign, admin_id):
        await donation_service.record_offline_donation(
            make_offline_request(campaign.campaign_id, donor_name="Jonathan Mehta", amount="300"), admin_id
        )
        await donation_service.initiate_online_donation(
            make_create_order_request(campaign.campaign_id, donor_name="Pending Person")
        )

        feed = await donation_service.get_recent_public_donations(campaign.campaign_id)

        assert len(feed) == 1
        assert feed[0].donor_name == "Jon***"
        assert feed[0].amount == Decimal("300.00")
        assert feed[0].channel == DonationChannel.CASH

    async def test_newest_first_and_limited(self, donation_service, campaign, admin_id):
        base = datetime(2024, 3, 1, tzinfo=timezone.utc)
        for day in range(5):
            await donation_service.record_offline_donation(
                make_offline_request(
                    campaign.campaign_id,
                    amount=str(100 + day),
                    donation_date=base + timedelta(days=day),
                ),
                admin_id,
            )

        feed = await donation_service.get_recent_public_donations(campaign.campaign_id, limit=3)

        assert [d.amount for d in feed] == [Decimal("104.00"), Decimal("103.00"), Decimal("102.00")]

    async def test_limit_is_clamped(self, donation_service, campaign, donation_repository):
        await donation_service.get_recent_public_donations(campaign.campaign_id, limit=10_000)
        _, call = [c for c in donation_repository.calls if c[0] == "get_recent_donations"][-1]
        assert call["limit"] == donation_service.RECENT_FEED_MAX

    async def test_private_campaign_feed_is_hidden(self, donation_service, campaign_repository):
        private = campaign_repository.add_campaign(make_campaign(is_public=False))

        with pytest.raises(CampaignNotFoundError):
            await donation_service.get_recent_public_donations(private.campaign_id)


class TestDonationReadsAndUpdates:

    async def test_update_donor_details(self, donation_service, campaign, admin_id):
        cash = await donation_service.record_offline_donation(make_offline_request(campaign.campaign_id), admin_id)

        updated = await donation_service.update_donation(
            cash.donation_id, DonationUpdateRequest(tax_id="ABCDE1234F", remarks="Receipt reissued"), admin_id
        )

        assert updated.tax_exempt_applicable is True
        assert updated.remarks == "Receipt reissued"
        assert updated.amount == cash.amount
        assert updated.status == DonationStatus.COMPLETED

    def test_update_cannot_touch_ledger_fields(self):
        for field in ("amount", "status", "channel", "campaign_id", "receipt_number"):
            assert field not in DonationUpdateRequest.model_fields

    async def test_update_unknown_donation(self, donation_service, admin_id):
        with pytest.raises(DonationNotFoundError):
            await donation_service.update_donation("don_missing", DonationUpdateRequest(remarks="x"), admin_id)

    async def test_list_filters_by_status(self, donation_service, campaign, admin_id):
        await donation_service.record_offline_donation(make_offline_request(campaign.campaign_id), admin_id)
        await donation_service.initiate_online_donation(make_create_order_request(campaign.campaign_id))

        pending = await donation_service.list_donations(
            DonationFilter(campaign_id=campaign.campaign_id, status=DonationStatus.PENDING)
        )

        assert len(pending) == 1
        assert pending[0].status == DonationStatus.PENDING
