"""
Donation Service Events

Event types, payload models and the NATS publisher.
"""

from .models import DonationEventType
from .publishers import DonationEventPublisher

__all__ = ["DonationEventType", "DonationEventPublisher"]
