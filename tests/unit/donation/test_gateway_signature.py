"""
Gateway Signature Unit Tests

Checkout signatures are HMAC-SHA256 over "order_id|payment_id" and are
compared in constant time. Verification never raises.
"""
import hashlib
import hmac

import pytest

from core.config.ledger_config import GatewayConfig
from microservices.donation_service.clients.razorpay_client import (
    RazorpayClient,
    compute_signature,
)

pytestmark = [pytest.mark.unit]

SECRET = "unit_test_secret"


@pytest.fixture
def client():
    return RazorpayClient(GatewayConfig(key_id="rzp_test_unit", key_secret=SECRET))


def _flip_last_bit(signature: str) -> str:
    last = int(signature[-1], 16) ^ 0x1
    return signature[:-1] + format(last, "x")


class TestComputeSignature:

    def test_matches_reference_hmac(self):
        expected = hmac.new(SECRET.encode(), b"order_A|pay_B", hashlib.sha256).hexdigest()
        assert compute_signature(SECRET, "order_A", "pay_B") == expected

    def test_is_deterministic(self):
        assert compute_signature(SECRET, "order_A", "pay_B") == compute_signature(SECRET, "order_A", "pay_B")

    def test_depends_on_every_input(self):
        base = compute_signature(SECRET, "order_A", "pay_B")
        assert compute_signature(SECRET, "order_X", "pay_B") != base
        assert compute_signature(SECRET, "order_A", "pay_X") != base
        assert compute_signature("other_secret", "order_A", "pay_B") != base

    def test_separator_is_part_of_payload(self):
        # "ab|c" and "a|bc" must not collide
        assert compute_signature(SECRET, "ab", "c") != compute_signature(SECRET, "a", "bc")

    def test_lowercase_hex(self):
        signature = compute_signature(SECRET, "order_A", "pay_B")
        assert len(signature) == 64
        assert signature == signature.lower()


class TestVerifySignature:

    def test_accepts_valid_signature(self, client):
        signature = compute_signature(SECRET, "order_1", "pay_1")
        assert client.verify_signature("order_1", "pay_1", signature) is True

    def test_rejects_single_bit_flip(self, client):
        signature = compute_signature(SECRET, "order_1", "pay_1")
        assert client.verify_signature("order_1", "pay_1", _flip_last_bit(signature)) is False

    def test_rejects_signature_for_other_payment(self, client):
        signature = compute_signature(SECRET, "order_1", "pay_1")
        assert client.verify_signature("order_1", "pay_2", signature) is False

    def test_rejects_signature_made_with_other_secret(self, client):
        signature = compute_signature("not_the_secret", "order_1", "pay_1")
        assert client.verify_signature("order_1", "pay_1", signature) is False

    @pytest.mark.parametrize(
        "order_id,payment_id,signature",
        [
            ("", "pay_1", "abc"),
            ("order_1", "", "abc"),
            ("order_1", "pay_1", ""),
            (None, "pay_1", "abc"),
            ("order_1", None, "abc"),
            ("order_1", "pay_1", None),
            ("order_1", "pay_1", 12345),
            ("order_1", "pay_1", "zz-not-hex"),
            ("order_1", "pay_1", "é" * 64),
        ],
    )
    def test_malformed_input_is_invalid_not_an_error(self, client, order_id, payment_id, signature):
        assert client.verify_signature(order_id, payment_id, signature) is False

    def test_missing_secret_never_verifies(self):
        unconfigured = RazorpayClient(GatewayConfig(key_id="", key_secret=""))
        signature = compute_signature("", "order_1", "pay_1")
        assert unconfigured.verify_signature("order_1", "pay_1", signature) is False

    def test_public_key_id(self, client):
        assert client.get_public_key_id() == "rzp_test_unit"
