"""
Donation Service Protocols

Defines interfaces for dependency injection and testing.
NO import-time I/O dependencies.
"""

from datetime import datetime
from decimal import Decimal
from typing import Any, AsyncContextManager, Dict, List, Optional, Protocol, runtime_checkable

from .models import (
    Campaign,
    CampaignCreateRequest,
    CampaignDonationSummary,
    CampaignStats,
    CampaignStatus,
    CampaignType,
    CampaignUpdateRequest,
    DeletedDonation,
    Donation,
    DonationDraft,
    DonationFilter,
    DonationUpdateRequest,
    GatewayOrder,
    TransitionResult,
)


# ====================
# Custom Exceptions
# ====================


class DonationServiceError(Exception):
    """Base exception for donation service errors"""
    pass


class DonationValidationError(DonationServiceError):
    """Raised when donation input is invalid"""

    def __init__(self, message: str, field: Optional[str] = None):
        super().__init__(message)
        self.field = field


class InvalidChannelError(DonationValidationError):
    """Raised when an offline donation names an unsupported channel"""

    def __init__(self, channel: str):
        super().__init__(f"Unsupported offline channel: {channel}", field="channel")
        self.channel = channel


class CampaignNotFoundError(DonationServiceError):
    """Raised when campaign is not found"""
    pass


class DonationNotFoundError(DonationServiceError):
    """Raised when donation is not found"""
    pass


class CampaignNotAcceptingFundsError(DonationServiceError):
    """Raised when a campaign cannot take gateway donations"""

    def __init__(self, message: str, status: Optional[CampaignStatus] = None):
        super().__init__(message)
        self.status = status


class DonationStateConflictError(DonationServiceError):
    """Raised when a donation is in a state that forbids the operation"""
    pass


class PaymentVerificationError(DonationServiceError):
    """Raised when a gateway payment signature does not verify"""
    pass


class GatewayError(DonationServiceError):
    """Raised when the payment gateway cannot be reached or answers badly"""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class LedgerConsistencyError(DonationServiceError):
    """Raised when a campaign total could not be updated together with its donation"""

    def __init__(self, message: str, campaign_id: Optional[str] = None, donation_id: Optional[str] = None):
        super().__init__(message)
        self.campaign_id = campaign_id
        self.donation_id = donation_id


# ====================
# Repository Protocols
# ====================


@runtime_checkable
class CampaignRepositoryProtocol(Protocol):
    """Interface for the campaign store"""

    async def get_campaign(self, campaign_id: str) -> Optional[Campaign]:
        ...

    async def get_campaign_by_code(self, campaign_code: str) -> Optional[Campaign]:
        ...

    async def list_campaigns(
        self,
        project_id: Optional[str] = None,
        status: Optional[CampaignStatus] = None,
        campaign_type: Optional[CampaignType] = None,
        is_public: Optional[bool] = None,
        search: Optional[str] = None,
        limit: int = 50,
        offset: int = 0,
    ) -> List[Campaign]:
        ...

    async def create_campaign(self, request: CampaignCreateRequest, created_by: Optional[str] = None) -> Campaign:
        ...

    async def update_campaign(
        self, campaign_id: str, request: CampaignUpdateRequest, updated_by: Optional[str] = None
    ) -> Optional[Campaign]:
        ...

    async def delete_campaign(self, campaign_id: str, deleted_by: Optional[str] = None) -> bool:
        ...

    async def adjust_collected(self, campaign_id: str, delta: Decimal) -> Optional[Decimal]:
        """Add delta to collected_amount atomically. None when the campaign is missing."""
        ...

    async def set_collected(self, campaign_id: str, amount: Decimal) -> bool:
        ...

    async def get_collected_amounts(self) -> Dict[str, Decimal]:
        ...

    async def lock_collected(self, campaign_id: str) -> Optional[Decimal]:
        ...

    async def get_campaign_stats(self, campaign_id: str) -> CampaignStats:
        ...


@runtime_checkable
class DonationRepositoryProtocol(Protocol):
    """Interface for the donation store"""

    async def create_donation(self, draft: DonationDraft) -> Donation:
        ...

    async def get_donation(self, donation_id: str) -> Optional[Donation]:
        ...

    async def find_by_gateway_order_id(self, order_id: str) -> Optional[Donation]:
        ...

    async def transition_to_completed(
        self, donation_id: str, payment_id: str, signature: str
    ) -> TransitionResult:
        ...

    async def transition_to_failed(self, donation_id: str, reason: str) -> TransitionResult:
        ...

    async def soft_delete(self, donation_id: str, deleted_by: Optional[str] = None) -> Optional[DeletedDonation]:
        ...

    async def update_donation(
        self, donation_id: str, request: DonationUpdateRequest, updated_by: Optional[str] = None
    ) -> Optional[Donation]:
        ...

    async def list_donations(self, filters: DonationFilter) -> List[Donation]:
        ...

    async def get_campaign_summary(self, campaign_id: str) -> CampaignDonationSummary:
        ...

    async def get_recent_donations(self, campaign_id: str, limit: int = 10) -> List[Donation]:
        ...

    async def sum_completed_by_campaign(self) -> Dict[str, Decimal]:
        ...

    async def sum_completed_for_campaign(self, campaign_id: str) -> Decimal:
        ...

    async def find_stale_pending(self, older_than: datetime) -> List[Donation]:
        ...


@runtime_checkable
class TransactionManagerProtocol(Protocol):
    """Groups store calls into one atomic unit"""

    def transaction(self) -> AsyncContextManager[Any]:
        ...


# ====================
# Client Protocols
# ====================


@runtime_checkable
class PaymentGatewayProtocol(Protocol):
    """Interface for the payment gateway adapter"""

    async def create_order(
        self,
        amount: Decimal,
        currency: str,
        reference_id: str,
        metadata: Optional[Dict[str, str]] = None,
    ) -> GatewayOrder:
        ...

    def verify_signature(self, order_id: str, payment_id: str, signature: str) -> bool:
        ...

    def get_public_key_id(self) -> str:
        ...


@runtime_checkable
class EventBusProtocol(Protocol):
    """Interface for event publishing"""

    async def publish_event(self, event: Any) -> bool:
        ...


__all__ = [
    # Exceptions
    "DonationServiceError",
    "DonationValidationError",
    "InvalidChannelError",
    "CampaignNotFoundError",
    "DonationNotFoundError",
    "CampaignNotAcceptingFundsError",
    "DonationStateConflictError",
    "PaymentVerificationError",
    "GatewayError",
    "LedgerConsistencyError",
    # Protocols
    "CampaignRepositoryProtocol",
    "DonationRepositoryProtocol",
    "TransactionManagerProtocol",
    "PaymentGatewayProtocol",
    "EventBusProtocol",
]
