"""
Donation Service Business Logic

Online donations (gateway order, then signature-verified confirmation),
offline donations recorded by staff, deletion with credit reversal and
the campaign reporting reads.

Every operation that touches a campaign's collected amount runs the donation
write and the campaign adjustment in one database transaction.
"""

import logging
from decimal import Decimal, InvalidOperation
from typing import List, Optional

from .clients.razorpay_client import to_subunits
from .events.models import DonationEventType
from .events.publishers import DonationEventPublisher
from .identifiers import new_gateway_reference
from .models import (
    Campaign,
    CampaignCreateRequest,
    CampaignDetailResponse,
    CampaignDonationSummary,
    CampaignStatus,
    CampaignType,
    CampaignUpdateRequest,
    ConfirmPaymentRequest,
    ConfirmPaymentResponse,
    CreateOrderRequest,
    CreateOrderResponse,
    Donation,
    DonationChannel,
    DonationDraft,
    DonationFilter,
    DonationStatus,
    DonationUpdateRequest,
    DonorPrefill,
    OfflineDonationRequest,
    PublicDonation,
    TransitionResult,
)
from .protocols import (
    CampaignNotAcceptingFundsError,
    CampaignNotFoundError,
    CampaignRepositoryProtocol,
    DonationNotFoundError,
    DonationRepositoryProtocol,
    DonationServiceError,
    DonationStateConflictError,
    DonationValidationError,
    EventBusProtocol,
    InvalidChannelError,
    LedgerConsistencyError,
    PaymentGatewayProtocol,
    PaymentVerificationError,
    TransactionManagerProtocol,
)

logger = logging.getLogger(__name__)

SIGNATURE_FAILURE_REASON = "Payment signature verification failed"


def mask_donor_name(name: Optional[str]) -> str:
    """Public feed form of a donor name: first three characters then ***"""
    name = (name or "").strip()
    if len(name) > 3:
        return f"{name[:3]}***"
    return f"{name}***"


def validate_amount(amount) -> Decimal:
    """Positive amount with at most two decimal places"""
    try:
        value = Decimal(str(amount))
    except (InvalidOperation, TypeError, ValueError):
        raise DonationValidationError("Amount must be a number", field="amount")
    if not value.is_finite() or value <= 0:
        raise DonationValidationError("Amount must be greater than zero", field="amount")
    if value != value.quantize(Decimal("0.01")):
        raise DonationValidationError("Amount cannot have more than two decimal places", field="amount")
    return value.quantize(Decimal("0.01"))


def validate_donor_name(name: Optional[str]) -> str:
    cleaned = (name or "").strip()
    if not cleaned:
        raise DonationValidationError("Donor name is required", field="donor_name")
    return cleaned


class DonationService:
    """Donation workflow and reporting layer"""

    RECENT_FEED_MAX = 50

    def __init__(
        self,
        campaign_repository: CampaignRepositoryProtocol,
        donation_repository: DonationRepositoryProtocol,
        gateway_client: PaymentGatewayProtocol,
        transactions: TransactionManagerProtocol,
        event_bus: Optional[EventBusProtocol] = None,
        default_currency: str = "INR",
    ):
        self.campaign_repository = campaign_repository
        self.donation_repository = donation_repository
        self.gateway_client = gateway_client
        self.transactions = transactions
        self.event_publisher = DonationEventPublisher(event_bus)
        self.default_currency = default_currency

    # ====================
    # Online donations
    # ====================

    async def initiate_online_donation(self, request: CreateOrderRequest) -> CreateOrderResponse:
        """
        Open a gateway order and record a Pending donation for it.

        No donation row exists if the gateway call fails.
        """
        amount = validate_amount(request.amount)
        donor_name = validate_donor_name(request.donor_name)

        campaign = await self._require_campaign(request.campaign_id)
        if not campaign.accepts_gateway_donations:
            raise CampaignNotAcceptingFundsError(
                f"Campaign {campaign.campaign_id} is not accepting online donations",
                status=campaign.status,
            )

        currency = request.currency or self.default_currency
        purpose = request.purpose or campaign.name
        order = await self.gateway_client.create_order(
            amount=amount,
            currency=currency,
            reference_id=new_gateway_reference(),
            metadata={
                "campaign_id": campaign.campaign_id,
                "donor_name": donor_name,
                "purpose": purpose,
            },
        )

        donation = await self.donation_repository.create_donation(
            DonationDraft(
                campaign_id=campaign.campaign_id,
                project_id=campaign.project_id,
                donor_type=request.donor_type,
                donor_name=donor_name,
                phone_number=request.phone_number,
                email=request.email,
                tax_id=request.tax_id,
                address=request.address,
                channel=DonationChannel.GATEWAY,
                amount=amount,
                currency=currency,
                status=DonationStatus.PENDING,
                gateway_order_id=order.order_id,
                purpose=purpose,
                remarks=request.remarks,
            )
        )
        logger.info(f"Online donation {donation.donation_id} pending on order {order.order_id}")
        await self.event_publisher.publish_donation_created(donation)

        return CreateOrderResponse(
            order_id=order.order_id,
            donation_id=donation.donation_id,
            amount=amount,
            amount_subunits=to_subunits(amount),
            currency=currency,
            public_key_id=self.gateway_client.get_public_key_id(),
            prefill=DonorPrefill(name=donor_name, email=request.email, contact=request.phone_number),
            campaign_name=campaign.name,
        )

    async def confirm_online_payment(self, request: ConfirmPaymentRequest) -> ConfirmPaymentResponse:
        """
        Verify the gateway signature and complete the donation.

        Idempotent: confirming an already completed donation returns it
        without crediting the campaign again.
        """
        donation = await self.donation_repository.find_by_gateway_order_id(request.order_id)
        if donation is None:
            raise DonationNotFoundError(f"No donation for order {request.order_id}")

        # Verify against the stored order id, never a caller-supplied one
        if not self.gateway_client.verify_signature(
            donation.gateway_order_id, request.payment_id, request.signature
        ):
            logger.warning(
                f"Signature verification failed for donation {donation.donation_id} "
                f"(order {donation.gateway_order_id}, payment {request.payment_id})"
            )
            result = await self.donation_repository.transition_to_failed(
                donation.donation_id, SIGNATURE_FAILURE_REASON
            )
            if result == TransitionResult.SUCCESS:
                await self.event_publisher.publish_donation_failed(donation, SIGNATURE_FAILURE_REASON)
            raise PaymentVerificationError(SIGNATURE_FAILURE_REASON)

        new_total: Optional[Decimal] = None
        try:
            async with self.transactions.transaction():
                result = await self.donation_repository.transition_to_completed(
                    donation.donation_id, request.payment_id, request.signature
                )
                if result == TransitionResult.NOT_FOUND:
                    raise DonationNotFoundError(f"Donation {donation.donation_id} not found")
                if result == TransitionResult.NOT_PENDING:
                    raise DonationStateConflictError(
                        f"Donation {donation.donation_id} is no longer pending and cannot be completed"
                    )
                if result == TransitionResult.SUCCESS:
                    new_total = await self._adjust_collected(
                        donation.campaign_id, donation.amount, donation.donation_id
                    )
                completed = await self.donation_repository.get_donation(donation.donation_id)
        except LedgerConsistencyError as e:
            await self._report_inconsistency("confirm_online_payment", e)
            raise

        if completed is None or completed.receipt_number is None:
            raise DonationNotFoundError(f"Donation {donation.donation_id} not found")

        already_completed = result == TransitionResult.ALREADY_COMPLETED
        if already_completed:
            logger.info(f"Donation {donation.donation_id} already completed; confirmation ignored")
        else:
            logger.info(
                f"Donation {completed.donation_id} completed: {completed.amount} {completed.currency} "
                f"receipt {completed.receipt_number}"
            )
            await self.event_publisher.publish_donation_completed(completed)
            await self.event_publisher.publish_collected_adjusted(
                completed.campaign_id, completed.amount, new_total, completed.donation_id
            )

        return ConfirmPaymentResponse(
            donation_id=completed.donation_id,
            amount=completed.amount,
            receipt_number=completed.receipt_number,
            donor_name=completed.donor_name,
            already_completed=already_completed,
        )

    # ====================
    # Offline donations
    # ====================

    async def record_offline_donation(self, request: OfflineDonationRequest, actor_id: str) -> Donation:
        """Record a staff-entered donation as Completed and credit its campaign"""
        amount = validate_amount(request.amount)
        donor_name = validate_donor_name(request.donor_name)
        campaign = await self._require_campaign(request.campaign_id)

        channel = self._parse_offline_channel(request.channel)

        draft = DonationDraft(
            campaign_id=campaign.campaign_id,
            project_id=campaign.project_id,
            donor_type=request.donor_type,
            donor_name=donor_name,
            phone_number=request.phone_number,
            email=request.email,
            tax_id=request.tax_id,
            address=request.address,
            channel=channel,
            amount=amount,
            currency=request.currency or self.default_currency,
            status=DonationStatus.COMPLETED,
            transaction_reference=request.transaction_reference,
            cheque_number=request.cheque_number,
            cheque_date=request.cheque_date,
            bank_name=request.bank_name,
            branch_name=request.branch_name,
            purpose=request.purpose or campaign.name,
            remarks=request.remarks,
            donation_date=request.donation_date,
            created_by=actor_id,
        )

        try:
            async with self.transactions.transaction():
                donation = await self.donation_repository.create_donation(draft)
                new_total = await self._adjust_collected(campaign.campaign_id, amount, donation.donation_id)
        except LedgerConsistencyError as e:
            await self._report_inconsistency("record_offline_donation", e)
            raise

        logger.info(
            f"Offline donation {donation.donation_id} recorded by {actor_id}: "
            f"{amount} via {channel.value}, receipt {donation.receipt_number}"
        )
        await self.event_publisher.publish_donation_created(donation)
        await self.event_publisher.publish_donation_completed(donation)
        await self.event_publisher.publish_collected_adjusted(
            campaign.campaign_id, amount, new_total, donation.donation_id
        )
        return donation

    # ====================
    # Delete / Update
    # ====================

    async def delete_donation(self, donation_id: str, actor_id: str) -> bool:
        """Soft delete a donation, reversing its credit when it was Completed"""
        new_total: Optional[Decimal] = None
        try:
            async with self.transactions.transaction():
                deleted = await self.donation_repository.soft_delete(donation_id, actor_id)
                if deleted is None:
                    raise DonationNotFoundError(f"Donation {donation_id} not found")
                reverse = deleted.prior_status == DonationStatus.COMPLETED
                if reverse:
                    new_total = await self._adjust_collected(deleted.campaign_id, -deleted.amount, donation_id)
        except LedgerConsistencyError as e:
            await self._report_inconsistency("delete_donation", e)
            raise

        logger.info(
            f"Donation {donation_id} deleted by {actor_id} "
            f"(was {deleted.prior_status.value}{', credit reversed' if reverse else ''})"
        )
        await self.event_publisher.publish_donation_deleted(deleted, reverse, actor_id)
        if reverse:
            await self.event_publisher.publish_collected_adjusted(
                deleted.campaign_id, -deleted.amount, new_total, donation_id
            )
        return True

    async def update_donation(
        self, donation_id: str, request: DonationUpdateRequest, actor_id: str
    ) -> Donation:
        updated = await self.donation_repository.update_donation(donation_id, request, actor_id)
        if updated is None:
            raise DonationNotFoundError(f"Donation {donation_id} not found")
        return updated

    # ====================
    # Donation reads
    # ====================

    async def get_donation(self, donation_id: str) -> Donation:
        donation = await self.donation_repository.get_donation(donation_id)
        if donation is None:
            raise DonationNotFoundError(f"Donation {donation_id} not found")
        return donation

    async def list_donations(self, filters: DonationFilter) -> List[Donation]:
        return await self.donation_repository.list_donations(filters)

    async def get_campaign_summary(self, campaign_id: str) -> CampaignDonationSummary:
        await self._require_campaign(campaign_id)
        return await self.donation_repository.get_campaign_summary(campaign_id)

    async def get_recent_public_donations(self, campaign_id: str, limit: int = 10) -> List[PublicDonation]:
        """Newest completed donations of a public campaign with masked donor names"""
        campaign = await self._require_campaign(campaign_id)
        if not campaign.is_public:
            raise CampaignNotFoundError(f"Campaign {campaign_id} not found")

        limit = max(1, min(limit, self.RECENT_FEED_MAX))
        donations = await self.donation_repository.get_recent_donations(campaign_id, limit)
        return [
            PublicDonation(
                donor_name=mask_donor_name(d.donor_name),
                amount=d.amount,
                channel=d.channel,
                currency=d.currency,
                donation_date=d.donation_date,
                purpose=d.purpose,
            )
            for d in donations
        ]

    # ====================
    # Campaigns
    # ====================

    async def create_campaign(self, request: CampaignCreateRequest, actor_id: str) -> Campaign:
        self._validate_dates(request.start_date, request.end_date)
        if request.campaign_code:
            existing = await self.campaign_repository.get_campaign_by_code(request.campaign_code)
            if existing is not None:
                raise DonationValidationError(
                    f"Campaign code {request.campaign_code} is already in use", field="campaign_code"
                )
        campaign = await self.campaign_repository.create_campaign(request, actor_id)
        await self.event_publisher.publish_campaign_event(DonationEventType.CAMPAIGN_CREATED, campaign, actor_id)
        return campaign

    async def update_campaign(self, campaign_id: str, request: CampaignUpdateRequest, actor_id: str) -> Campaign:
        current = await self._require_campaign(campaign_id)
        self._validate_dates(
            request.start_date if "start_date" in request.model_fields_set else current.start_date,
            request.end_date if "end_date" in request.model_fields_set else current.end_date,
        )
        campaign = await self.campaign_repository.update_campaign(campaign_id, request, actor_id)
        if campaign is None:
            raise CampaignNotFoundError(f"Campaign {campaign_id} not found")
        await self.event_publisher.publish_campaign_event(DonationEventType.CAMPAIGN_UPDATED, campaign, actor_id)
        return campaign

    async def delete_campaign(self, campaign_id: str, actor_id: str) -> bool:
        """Soft delete a campaign that holds no completed or pending donations"""
        campaign = await self._require_campaign(campaign_id)
        async with self.transactions.transaction():
            # Row lock holds off credits until the check and the delete are done
            await self.campaign_repository.lock_collected(campaign_id)
            summary = await self.donation_repository.get_campaign_summary(campaign_id)
            if summary.total_donations or summary.pending_amount > 0:
                raise DonationStateConflictError(
                    f"Campaign {campaign_id} still has completed or pending donations"
                )
            if not await self.campaign_repository.delete_campaign(campaign_id, actor_id):
                raise CampaignNotFoundError(f"Campaign {campaign_id} not found")
        await self.event_publisher.publish_campaign_event(DonationEventType.CAMPAIGN_DELETED, campaign, actor_id)
        return True

    async def get_campaign(self, campaign_id: str) -> CampaignDetailResponse:
        campaign = await self._require_campaign(campaign_id)
        stats = await self.campaign_repository.get_campaign_stats(campaign_id)
        return CampaignDetailResponse(
            campaign=campaign,
            stats=stats,
            progress_percentage=campaign.progress_percentage,
        )

    async def get_campaign_by_code(self, campaign_code: str) -> Campaign:
        campaign = await self.campaign_repository.get_campaign_by_code(campaign_code)
        if campaign is None or not campaign.is_public:
            raise CampaignNotFoundError(f"Campaign {campaign_code} not found")
        return campaign

    async def list_campaigns(
        self,
        project_id: Optional[str] = None,
        status: Optional[CampaignStatus] = None,
        campaign_type: Optional[CampaignType] = None,
        search: Optional[str] = None,
        limit: int = 50,
        offset: int = 0,
    ) -> List[Campaign]:
        return await self.campaign_repository.list_campaigns(
            project_id=project_id,
            status=status,
            campaign_type=campaign_type,
            search=search,
            limit=limit,
            offset=offset,
        )

    async def list_public_campaigns(self, limit: int = 50, offset: int = 0) -> List[Campaign]:
        return await self.campaign_repository.list_campaigns(
            status=CampaignStatus.ACTIVE,
            is_public=True,
            limit=limit,
            offset=offset,
        )

    # ====================
    # Helpers
    # ====================

    async def _require_campaign(self, campaign_id: str) -> Campaign:
        campaign = await self.campaign_repository.get_campaign(campaign_id)
        if campaign is None:
            raise CampaignNotFoundError(f"Campaign {campaign_id} not found")
        return campaign

    @staticmethod
    def _parse_offline_channel(value: str) -> DonationChannel:
        try:
            channel = DonationChannel((value or "").strip().upper())
        except ValueError:
            raise InvalidChannelError(value)
        if not channel.is_offline:
            raise InvalidChannelError(value)
        return channel

    @staticmethod
    def _validate_dates(start_date, end_date) -> None:
        if start_date and end_date and end_date < start_date:
            raise DonationValidationError("end_date must not be before start_date", field="end_date")

    async def _adjust_collected(self, campaign_id: str, delta: Decimal, donation_id: str) -> Decimal:
        """Apply delta to the campaign total; any failure aborts the enclosing transaction"""
        try:
            new_total = await self.campaign_repository.adjust_collected(campaign_id, delta)
        except DonationServiceError:
            raise
        except Exception as e:
            raise LedgerConsistencyError(
                f"Adjusting campaign {campaign_id} by {delta} failed: {e}",
                campaign_id=campaign_id,
                donation_id=donation_id,
            ) from e
        if new_total is None:
            raise LedgerConsistencyError(
                f"Campaign {campaign_id} missing while adjusting by {delta}",
                campaign_id=campaign_id,
                donation_id=donation_id,
            )
        return new_total

    async def _report_inconsistency(self, operation: str, error: LedgerConsistencyError) -> None:
        logger.critical(
            f"Ledger consistency failure in {operation}: {error} "
            f"(campaign={error.campaign_id}, donation={error.donation_id}); transaction rolled back"
        )
        await self.event_publisher.publish_ledger_inconsistency(
            operation=operation,
            detail=str(error),
            campaign_id=error.campaign_id,
            donation_id=error.donation_id,
        )
