"""
Donation Service Models

Data models for campaigns, donations and the campaign funding ledger.
Money is carried as Decimal with two places throughout.
"""

from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field


# ====================
# Enums
# ====================


class CampaignStatus(str, Enum):
    """Campaign lifecycle status"""
    DRAFT = "Draft"
    ACTIVE = "Active"
    PAUSED = "Paused"
    COMPLETED = "Completed"
    CANCELLED = "Cancelled"


class CampaignType(str, Enum):
    """Campaign purpose"""
    FUNDRAISING = "FUNDRAISING"
    AWARENESS = "AWARENESS"
    EVENT = "EVENT"


class DonationChannel(str, Enum):
    """How the money arrived"""
    GATEWAY = "GATEWAY"
    CASH = "CASH"
    BANK = "BANK"
    UPI = "UPI"
    CHEQUE = "CHEQUE"
    IN_KIND = "IN_KIND"

    @classmethod
    def offline_channels(cls) -> List["DonationChannel"]:
        return [c for c in cls if c is not cls.GATEWAY]

    @property
    def is_offline(self) -> bool:
        return self is not DonationChannel.GATEWAY


class PaymentMode(str, Enum):
    ONLINE = "Online"
    OFFLINE = "Offline"


class DonationStatus(str, Enum):
    """Donation lifecycle status"""
    PENDING = "Pending"
    COMPLETED = "Completed"
    FAILED = "Failed"


class DonorType(str, Enum):
    INDIVIDUAL = "INDIVIDUAL"
    ORGANIZATION = "ORGANIZATION"


class TransitionResult(str, Enum):
    """Outcome of a conditional donation status transition"""
    SUCCESS = "success"
    ALREADY_COMPLETED = "already_completed"
    NOT_FOUND = "not_found"
    NOT_PENDING = "not_pending"


# ====================
# Core Models
# ====================


class Campaign(BaseModel):
    """Fundraising campaign with its running collected total"""
    model_config = ConfigDict(from_attributes=True)

    campaign_id: str
    campaign_code: str
    project_id: Optional[str] = None
    name: str
    campaign_type: CampaignType = CampaignType.FUNDRAISING
    description: Optional[str] = None
    image_urls: List[str] = Field(default_factory=list)
    video_urls: List[str] = Field(default_factory=list)
    start_date: Optional[date] = None
    end_date: Optional[date] = None

    target_amount: Decimal = Field(default=Decimal("0.00"), ge=0, decimal_places=2)
    collected_amount: Decimal = Field(default=Decimal("0.00"), ge=0, decimal_places=2)
    status: CampaignStatus = CampaignStatus.DRAFT
    is_public: bool = True
    gateway_enabled: bool = True
    is_deleted: bool = False

    created_by: Optional[str] = None
    updated_by: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @property
    def accepts_gateway_donations(self) -> bool:
        return self.status == CampaignStatus.ACTIVE and self.gateway_enabled

    @property
    def progress_percentage(self) -> float:
        if self.target_amount <= 0:
            return 0.0
        return round(float(self.collected_amount / self.target_amount * 100), 2)


class Donation(BaseModel):
    """Single contribution to a campaign"""
    model_config = ConfigDict(from_attributes=True)

    donation_id: str
    campaign_id: str
    project_id: Optional[str] = None

    # Donor
    donor_type: DonorType = DonorType.INDIVIDUAL
    donor_name: str
    phone_number: Optional[str] = None
    email: Optional[str] = None
    tax_id: Optional[str] = None
    address: Optional[str] = None

    # Money
    channel: DonationChannel
    payment_mode: PaymentMode
    amount: Decimal = Field(gt=0, decimal_places=2)
    currency: str = "INR"
    status: DonationStatus
    receipt_number: Optional[str] = None

    # Gateway
    gateway_order_id: Optional[str] = None
    gateway_payment_id: Optional[str] = None
    gateway_signature: Optional[str] = None
    failure_reason: Optional[str] = None

    # Offline details
    transaction_reference: Optional[str] = None
    cheque_number: Optional[str] = None
    cheque_date: Optional[date] = None
    bank_name: Optional[str] = None
    branch_name: Optional[str] = None

    purpose: Optional[str] = None
    tax_exempt_applicable: bool = False
    remarks: Optional[str] = None
    donation_date: Optional[datetime] = None
    completed_at: Optional[datetime] = None

    is_deleted: bool = False
    created_by: Optional[str] = None
    updated_by: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class DonationDraft(BaseModel):
    """Donation ready to be persisted (identifiers assigned by the store)"""
    campaign_id: str
    project_id: Optional[str] = None
    donor_type: DonorType = DonorType.INDIVIDUAL
    donor_name: str
    phone_number: Optional[str] = None
    email: Optional[str] = None
    tax_id: Optional[str] = None
    address: Optional[str] = None
    channel: DonationChannel
    amount: Decimal
    currency: str = "INR"
    status: DonationStatus
    gateway_order_id: Optional[str] = None
    transaction_reference: Optional[str] = None
    cheque_number: Optional[str] = None
    cheque_date: Optional[date] = None
    bank_name: Optional[str] = None
    branch_name: Optional[str] = None
    purpose: Optional[str] = None
    remarks: Optional[str] = None
    donation_date: Optional[datetime] = None
    created_by: Optional[str] = None

    @property
    def payment_mode(self) -> PaymentMode:
        return PaymentMode.ONLINE if self.channel == DonationChannel.GATEWAY else PaymentMode.OFFLINE

    @property
    def tax_exempt_applicable(self) -> bool:
        return bool(self.tax_id)


class DeletedDonation(BaseModel):
    """What a soft delete removed from the ledger"""
    donation_id: str
    campaign_id: str
    prior_status: DonationStatus
    amount: Decimal


class GatewayOrder(BaseModel):
    """Order created at the payment gateway"""
    order_id: str
    amount_subunits: int
    currency: str
    receipt: Optional[str] = None
    status: Optional[str] = None


# ====================
# Request Models
# ====================


class CampaignCreateRequest(BaseModel):
    """Create campaign request"""
    name: str = Field(..., min_length=1, max_length=255)
    campaign_code: Optional[str] = Field(None, max_length=50)
    project_id: Optional[str] = None
    campaign_type: CampaignType = CampaignType.FUNDRAISING
    description: Optional[str] = None
    image_urls: List[str] = Field(default_factory=list)
    video_urls: List[str] = Field(default_factory=list)
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    target_amount: Decimal = Field(default=Decimal("0"), ge=0)
    status: CampaignStatus = CampaignStatus.DRAFT
    is_public: bool = True
    gateway_enabled: bool = True


class CampaignUpdateRequest(BaseModel):
    """Patch of the editable campaign fields. collected_amount is not editable."""
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    project_id: Optional[str] = None
    campaign_type: Optional[CampaignType] = None
    description: Optional[str] = None
    image_urls: Optional[List[str]] = None
    video_urls: Optional[List[str]] = None
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    target_amount: Optional[Decimal] = Field(None, ge=0)
    status: Optional[CampaignStatus] = None
    is_public: Optional[bool] = None
    gateway_enabled: Optional[bool] = None


class CreateOrderRequest(BaseModel):
    """Start an online donation"""
    campaign_id: str
    amount: Decimal
    currency: Optional[str] = None
    donor_type: DonorType = DonorType.INDIVIDUAL
    donor_name: Optional[str] = None
    phone_number: Optional[str] = None
    email: Optional[EmailStr] = None
    tax_id: Optional[str] = None
    address: Optional[str] = None
    purpose: Optional[str] = None
    remarks: Optional[str] = None


class ConfirmPaymentRequest(BaseModel):
    """Gateway callback data echoed by the donor client"""
    order_id: str = Field(..., min_length=1)
    payment_id: str = Field(..., min_length=1)
    signature: str = Field(..., min_length=1)


class OfflineDonationRequest(BaseModel):
    """Staff-entered donation"""
    campaign_id: str
    amount: Decimal
    channel: str
    currency: Optional[str] = None
    donor_type: DonorType = DonorType.INDIVIDUAL
    donor_name: Optional[str] = None
    phone_number: Optional[str] = None
    email: Optional[EmailStr] = None
    tax_id: Optional[str] = None
    address: Optional[str] = None
    transaction_reference: Optional[str] = None
    cheque_number: Optional[str] = None
    cheque_date: Optional[date] = None
    bank_name: Optional[str] = None
    branch_name: Optional[str] = None
    purpose: Optional[str] = None
    remarks: Optional[str] = None
    donation_date: Optional[datetime] = None


class DonationUpdateRequest(BaseModel):
    """Patch of non-ledger donation fields"""
    donor_type: Optional[DonorType] = None
    donor_name: Optional[str] = Field(None, min_length=1)
    phone_number: Optional[str] = None
    email: Optional[EmailStr] = None
    tax_id: Optional[str] = None
    address: Optional[str] = None
    transaction_reference: Optional[str] = None
    cheque_number: Optional[str] = None
    cheque_date: Optional[date] = None
    bank_name: Optional[str] = None
    branch_name: Optional[str] = None
    purpose: Optional[str] = None
    remarks: Optional[str] = None


class DonationFilter(BaseModel):
    """Donation listing filters"""
    campaign_id: Optional[str] = None
    project_id: Optional[str] = None
    status: Optional[DonationStatus] = None
    channel: Optional[DonationChannel] = None
    payment_mode: Optional[PaymentMode] = None
    search: Optional[str] = None
    date_from: Optional[datetime] = None
    date_to: Optional[datetime] = None
    limit: int = Field(default=50, ge=1, le=500)
    offset: int = Field(default=0, ge=0)


# ====================
# Response Models
# ====================


class DonorPrefill(BaseModel):
    name: str
    email: Optional[str] = None
    contact: Optional[str] = None


class CreateOrderResponse(BaseModel):
    """What the donor client needs to open the gateway checkout"""
    order_id: str
    donation_id: str
    amount: Decimal
    amount_subunits: int
    currency: str
    public_key_id: str
    prefill: DonorPrefill
    campaign_name: str


class ConfirmPaymentResponse(BaseModel):
    donation_id: str
    amount: Decimal
    receipt_number: str
    donor_name: str
    already_completed: bool = False


class CampaignDonationSummary(BaseModel):
    """Completed-donation totals per channel for one campaign"""
    campaign_id: str
    total_donations: int = 0
    total_amount: Decimal = Decimal("0.00")
    online_amount: Decimal = Decimal("0.00")
    cash_amount: Decimal = Decimal("0.00")
    cheque_amount: Decimal = Decimal("0.00")
    bank_amount: Decimal = Decimal("0.00")
    upi_amount: Decimal = Decimal("0.00")
    in_kind_amount: Decimal = Decimal("0.00")
    pending_amount: Decimal = Decimal("0.00")
    unique_donors: int = 0


class CampaignStats(BaseModel):
    total_donations: int = 0
    total_collected: Decimal = Decimal("0.00")
    online_amount: Decimal = Decimal("0.00")
    offline_amount: Decimal = Decimal("0.00")
    unique_donors: int = 0


class CampaignDetailResponse(BaseModel):
    campaign: Campaign
    stats: CampaignStats
    progress_percentage: float


class PublicDonation(BaseModel):
    """Donation as shown on the public feed"""
    donor_name: str
    amount: Decimal
    channel: DonationChannel
    currency: str
    donation_date: Optional[datetime] = None
    purpose: Optional[str] = None


class DonationListResponse(BaseModel):
    donations: List[Donation]
    count: int
    limit: int
    offset: int


class CampaignListResponse(BaseModel):
    campaigns: List[Campaign]
    count: int
    limit: int
    offset: int


class CampaignDrift(BaseModel):
    campaign_id: str
    recorded_amount: Decimal
    computed_amount: Decimal

    @property
    def delta(self) -> Decimal:
        return self.computed_amount - self.recorded_amount


class ReconciliationReport(BaseModel):
    """Result of one reconciler pass"""
    campaigns_checked: int = 0
    corrections: List[CampaignDrift] = Field(default_factory=list)
    expired_pending: int = 0
    started_at: datetime
    finished_at: Optional[datetime] = None


# ====================
# Service Models
# ====================


class HealthResponse(BaseModel):
    """Health check response"""
    status: str
    service: str
    port: int
    version: str
    dependencies: Dict[str, str] = Field(default_factory=dict)


class ReadinessResponse(BaseModel):
    """Readiness check response"""
    ready: bool
    checks: Dict[str, bool] = Field(default_factory=dict)
    details: Dict[str, str] = Field(default_factory=dict)


class LivenessResponse(BaseModel):
    """Liveness check response"""
    alive: bool
    uptime_seconds: float


class PublicDonationFeed(BaseModel):
    campaign_id: str
    donations: List[PublicDonation]


__all__ = [
    # Enums
    "CampaignStatus",
    "CampaignType",
    "DonationChannel",
    "PaymentMode",
    "DonationStatus",
    "DonorType",
    "TransitionResult",
    # Core
    "Campaign",
    "Donation",
    "DonationDraft",
    "DeletedDonation",
    "GatewayOrder",
    # Requests
    "CampaignCreateRequest",
    "CampaignUpdateRequest",
    "CreateOrderRequest",
    "ConfirmPaymentRequest",
    "OfflineDonationRequest",
    "DonationUpdateRequest",
    "DonationFilter",
    # Responses
    "DonorPrefill",
    "CreateOrderResponse",
    "ConfirmPaymentResponse",
    "CampaignDonationSummary",
    "CampaignStats",
    "CampaignDetailResponse",
    "PublicDonation",
    "DonationListResponse",
    "CampaignListResponse",
    "CampaignDrift",
    "ReconciliationReport",
    "HealthResponse",
    "ReadinessResponse",
    "LivenessResponse",
    "PublicDonationFeed",
]
