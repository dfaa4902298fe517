"""
Donation Event Data Models

Event type definitions and data structures for donation service events.
"""

from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Optional

from pydantic import BaseModel


# =============================================================================
# Event Type Definitions
# =============================================================================


class DonationEventType(str, Enum):
    """
    Events published by donation_service.

    Other services should reference these when subscribing.
    """
    # Donation lifecycle
    DONATION_CREATED = "donation.created"
    DONATION_COMPLETED = "donation.completed"
    DONATION_FAILED = "donation.failed"
    DONATION_DELETED = "donation.deleted"

    # Campaign ledger
    CAMPAIGN_CREATED = "campaign.created"
    CAMPAIGN_UPDATED = "campaign.updated"
    CAMPAIGN_DELETED = "campaign.deleted"
    COLLECTED_ADJUSTED = "campaign.collected_adjusted"

    # Ledger integrity
    LEDGER_INCONSISTENCY = "ledger.inconsistency"
    LEDGER_DRIFT_CORRECTED = "ledger.drift_corrected"


# =============================================================================
# Event Data Models
# =============================================================================


class DonationCreatedEventData(BaseModel):
    donation_id: str
    campaign_id: str
    channel: str
    status: str
    amount: Decimal
    currency: str
    created_by: Optional[str] = None
    timestamp: datetime


class DonationCompletedEventData(BaseModel):
    donation_id: str
    campaign_id: str
    channel: str
    amount: Decimal
    currency: str
    receipt_number: str
    timestamp: datetime


class DonationFailedEventData(BaseModel):
    donation_id: str
    campaign_id: str
    reason: str
    timestamp: datetime


class DonationDeletedEventData(BaseModel):
    donation_id: str
    campaign_id: str
    prior_status: str
    amount: Decimal
    reversed: bool
    deleted_by: Optional[str] = None
    timestamp: datetime


class CampaignEventData(BaseModel):
    campaign_id: str
    campaign_code: Optional[str] = None
    name: Optional[str] = None
    status: Optional[str] = None
    actor_id: Optional[str] = None
    timestamp: datetime


class CollectedAdjustedEventData(BaseModel):
    campaign_id: str
    delta: Decimal
    collected_amount: Decimal
    donation_id: Optional[str] = None
    timestamp: datetime


class LedgerInconsistencyEventData(BaseModel):
    campaign_id: Optional[str] = None
    donation_id: Optional[str] = None
    operation: str
    detail: str
    timestamp: datetime


class LedgerDriftCorrectedEventData(BaseModel):
    campaign_id: str
    recorded_amount: Decimal
    computed_amount: Decimal
    timestamp: datetime
