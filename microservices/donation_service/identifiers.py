"""
Identifier and receipt number generation
"""

import secrets
import time
import uuid
from datetime import datetime, timezone
from typing import Optional

_BASE36 = "0123456789ABCDEFGHIJKLMNOPQRSTUVWXYZ"


def to_base36(value: int) -> str:
    if value < 0:
        raise ValueError("base36 encoding requires a non-negative integer")
    if value == 0:
        return "0"
    digits = []
    while value:
        value, rem = divmod(value, 36)
        digits.append(_BASE36[rem])
    return "".join(reversed(digits))


def new_campaign_id() -> str:
    return f"cmp_{uuid.uuid4().hex[:16]}"


def new_donation_id() -> str:
    return f"don_{uuid.uuid4().hex[:16]}"


def new_campaign_code(now_ms: Optional[int] = None) -> str:
    """Human shareable code, e.g. CAMP-LZ3K9Q2A-7C1F"""
    if now_ms is None:
        now_ms = int(time.time() * 1000)
    return f"CAMP-{to_base36(now_ms)}-{secrets.token_hex(2).upper()}"


def new_receipt_number(now: Optional[datetime] = None) -> str:
    """Receipt number issued when a donation completes, e.g. RCP-20240105-3FA94C01B2"""
    now = now or datetime.now(timezone.utc)
    return f"RCP-{now:%Y%m%d}-{secrets.token_hex(5).upper()}"


def new_gateway_reference(now_ms: Optional[int] = None) -> str:
    """Merchant receipt attached to a gateway order, e.g. DON-LZ3K9Q2A-1F2E"""
    if now_ms is None:
        now_ms = int(time.time() * 1000)
    return f"DON-{to_base36(now_ms)}-{secrets.token_hex(2).upper()}"
