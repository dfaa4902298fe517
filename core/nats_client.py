"""
NATS JetStream Client for Python Microservices

Provides event-driven communication for the donation ledger on top of
nats-py. Every event is published to JetStream on a subject equal to its
type (e.g. ``donation.completed``) inside a stream derived from the type
prefix (``donation-stream``).
"""

import json
import logging
import os
import uuid
from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, List, Optional, TYPE_CHECKING

import nats
from nats.aio.client import Client as NATS
from nats.js import JetStreamContext
from nats.js.errors import BadRequestError

if TYPE_CHECKING:
    from core.config_manager import ConfigManager


class DecimalEncoder(json.JSONEncoder):
    """Custom JSON encoder that handles Decimal types"""
    def default(self, obj):
        if isinstance(obj, Decimal):
            return str(obj)
        if isinstance(obj, datetime):
            return obj.isoformat()
        return super().default(obj)


logger = logging.getLogger(__name__)


class EventType(Enum):
    """Event types published by ledger services"""

    # Donation Events
    DONATION_CREATED = "donation.created"
    DONATION_COMPLETED = "donation.completed"
    DONATION_FAILED = "donation.failed"
    DONATION_DELETED = "donation.deleted"

    # Campaign Events
    CAMPAIGN_CREATED = "campaign.created"
    CAMPAIGN_UPDATED = "campaign.updated"
    CAMPAIGN_DELETED = "campaign.deleted"
    CAMPAIGN_COLLECTED_ADJUSTED = "campaign.collected_adjusted"

    # Ledger Integrity Events
    LEDGER_INCONSISTENCY = "ledger.inconsistency"
    LEDGER_DRIFT_CORRECTED = "ledger.drift_corrected"


class ServiceSource(Enum):
    """Event sources"""

    DONATION_SERVICE = "donation_service"


class Event:
    """Event model"""

    def __init__(
        self,
        event_type: EventType,
        source: ServiceSource,
        data: Dict[str, Any],
        subject: Optional[str] = None,
        metadata: Optional[Dict[str, str]] = None,
    ):
        self.id = str(uuid.uuid4())
        self.type = event_type.value
        self.source = source.value
        self.data = data
        self.subject = subject
        self.timestamp = datetime.now(timezone.utc).isoformat()
        self.metadata = metadata or {}
        self.version = "1.0.0"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "type": self.type,
            "source": self.source,
            "subject": self.subject,
            "timestamp": self.timestamp,
            "data": self.data,
            "metadata": self.metadata,
            "version": self.version,
        }


class NATSEventBus:
    """
    NATS JetStream event bus using nats-py.
    """

    def __init__(
        self,
        service_name: str,
        config: Optional["ConfigManager"] = None,
    ):
        """
        Initialize NATS Event Bus.

        Args:
            service_name: Name of the service (used as the connection name)
            config: Optional ConfigManager instance for service discovery
        """
        from core.config_manager import ConfigManager

        self.service_name = service_name

        # Priority: environment variables → default fallback
        if config is None:
            config = ConfigManager(service_name)

        self.host, self.port = config.discover_service(
            service_name='nats',
            default_host='localhost',
            default_port=4222,
            env_host_key='NATS_HOST',
            env_port_key='NATS_PORT'
        )
        self.url = os.getenv("NATS_URL") or f"nats://{self.host}:{self.port}"

        self._nc: Optional[NATS] = None
        self._js: Optional[JetStreamContext] = None
        self._streams: Dict[str, bool] = {}
        self._is_connected = False

        logger.info(f"NATS EventBus initialized: {self.url}")

    async def connect(self):
        """Connect to NATS and open a JetStream context"""
        try:
            self._nc = await nats.connect(self.url, name=self.service_name)
            self._js = self._nc.jetstream()
            self._is_connected = True
            logger.info(f"Connected to NATS as {self.service_name}")
        except Exception as e:
            logger.error(f"Failed to connect to NATS: {e}")
            raise

    @property
    def is_connected(self) -> bool:
        return self._is_connected and self._nc is not None and self._nc.is_connected

    async def _ensure_stream(self, stream_name: str, subject_prefix: str) -> None:
        if self._streams.get(stream_name):
            return
        try:
            await self._js.add_stream(
                name=stream_name,
                subjects=[f"{subject_prefix}.>"],
                max_msgs=100000,
            )
        except BadRequestError as e:
            # Stream already exists with a compatible config
            logger.debug(f"Stream creation note: {e}")
        self._streams[stream_name] = True

    async def publish_event(self, event: Event) -> bool:
        """
        Publish an event to NATS JetStream.

        The stream is determined by the event type prefix:
        - donation.* -> donation-stream
        - campaign.* -> campaign-stream
        - ledger.* -> ledger-stream
        """
        if not self.is_connected or not self._js:
            logger.error("Not connected to NATS")
            return False

        try:
            subject = event.type
            data = json.dumps(event.to_dict(), cls=DecimalEncoder).encode()

            subject_prefix = event.type.split('.')[0]
            stream_name = self._get_stream_name_for_event(event.type)
            await self._ensure_stream(stream_name, subject_prefix)

            ack = await self._js.publish(subject, data, stream=stream_name)
            logger.info(f"Published event {event.type} [{event.id}] to stream {stream_name}, seq={ack.seq}")
            return True

        except Exception as e:
            logger.error(f"Error publishing event {event.id}: {e}")
            return False

    def _get_stream_name_for_event(self, event_type: str) -> str:
        """Determine the JetStream stream name based on event type."""
        prefix = event_type.split('.')[0]
        return f"{prefix}-stream"

    async def close(self):
        """Drain and close the NATS connection"""
        if self._nc is not None:
            try:
                await self._nc.drain()
            except Exception as e:
                logger.warning(f"Error draining NATS connection: {e}")
            self._nc = None
            self._js = None
        self._is_connected = False
        logger.info("NATS EventBus closed")


__all__: List[str] = [
    "DecimalEncoder",
    "EventType",
    "ServiceSource",
    "Event",
    "NATSEventBus",
]
