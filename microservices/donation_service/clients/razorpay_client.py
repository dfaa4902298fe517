"""
Razorpay Payment Gateway Client

Creates gateway orders and verifies checkout signatures.
https://razorpay.com/docs/api/orders/

Stateless apart from a pooled HTTP client. Order creation is never retried:
a repeated POST could open a second order for the same donation.
"""

import hashlib
import hmac
import logging
from decimal import ROUND_HALF_UP, Decimal
from typing import Dict, Optional

import httpx

from core.config.ledger_config import GatewayConfig

from ..models import GatewayOrder
from ..protocols import GatewayError

logger = logging.getLogger(__name__)


def to_subunits(amount: Decimal) -> int:
    """Major currency units to the smallest unit (rupees to paise)"""
    return int((Decimal(amount) * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def compute_signature(secret: str, order_id: str, payment_id: str) -> str:
    """Hex HMAC-SHA256 of 'order_id|payment_id' keyed with the gateway secret"""
    payload = f"{order_id}|{payment_id}".encode()
    return hmac.new(secret.encode(), payload, hashlib.sha256).hexdigest()


class RazorpayClient:
    """
    Razorpay Orders API client.

    Usage:
        client = RazorpayClient(GatewayConfig.from_env())
        order = await client.create_order(Decimal("500.00"), "INR", "don_ab12")
        ok = client.verify_signature(order_id, payment_id, signature)
    """

    def __init__(self, config: Optional[GatewayConfig] = None):
        self.config = config or GatewayConfig.from_env()
        if not self.config.is_configured:
            logger.warning("Razorpay key id/secret not configured")
        self._client: Optional[httpx.AsyncClient] = None

    @property
    def client(self) -> httpx.AsyncClient:
        """Lazy HTTP client initialization"""
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                base_url=self.config.base_url,
                auth=(self.config.key_id, self.config.key_secret),
                headers={
                    "Content-Type": "application/json",
                    "Accept": "application/json",
                },
                timeout=self.config.timeout_seconds,
            )
        return self._client

    async def close(self):
        """Close HTTP client"""
        if self._client and not self._client.is_closed:
            await self._client.aclose()
            self._client = None

    async def create_order(
        self,
        amount: Decimal,
        currency: str,
        reference_id: str,
        metadata: Optional[Dict[str, str]] = None,
    ) -> GatewayOrder:
        """
        Create a Razorpay order with automatic capture.

        Raises:
            GatewayError: timeout, transport failure, non-2xx or malformed response
        """
        amount_subunits = to_subunits(amount)
        order_data = {
            "amount": amount_subunits,
            "currency": currency,
            "receipt": reference_id,
            "payment_capture": 1,
            "notes": {k: str(v) for k, v in (metadata or {}).items() if v is not None},
        }

        try:
            response = await self.client.post("/v1/orders", json=order_data)
        except httpx.TimeoutException as e:
            logger.error(f"Razorpay order creation timed out for {reference_id}: {e}")
            raise GatewayError("Payment gateway timed out") from e
        except httpx.HTTPError as e:
            logger.error(f"Razorpay transport error for {reference_id}: {e}")
            raise GatewayError("Payment gateway unreachable") from e

        if response.status_code >= 300:
            logger.error(
                f"Razorpay rejected order for {reference_id}: "
                f"{response.status_code} {response.text[:200]}"
            )
            raise GatewayError(
                f"Payment gateway rejected the order ({response.status_code})",
                status_code=response.status_code,
            )

        try:
            payload = response.json()
            order = GatewayOrder(
                order_id=payload["id"],
                amount_subunits=int(payload.get("amount", amount_subunits)),
                currency=payload.get("currency", currency),
                receipt=payload.get("receipt"),
                status=payload.get("status"),
            )
        except (ValueError, KeyError, TypeError) as e:
            logger.error(f"Malformed Razorpay order response for {reference_id}: {e}")
            raise GatewayError("Malformed payment gateway response") from e

        logger.info(f"Created Razorpay order {order.order_id} for {reference_id} ({amount_subunits} {currency})")
        return order

    def verify_signature(self, order_id: str, payment_id: str, signature: str) -> bool:
        """
        Check a checkout signature in constant time.

        Never raises: malformed input is simply an invalid signature.
        """
        try:
            if not (order_id and payment_id and signature and self.config.key_secret):
                return False
            expected = compute_signature(self.config.key_secret, order_id, payment_id)
            return hmac.compare_digest(expected, signature)
        except (TypeError, ValueError, AttributeError):
            return False

    def get_public_key_id(self) -> str:
        return self.config.key_id
