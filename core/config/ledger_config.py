#!/usr/bin/env python3
"""Donation ledger configuration

Payment gateway credentials and the ledger maintenance policy
(reconciliation cadence and the expiry window for abandoned gateway orders).
"""
import os
from dataclasses import dataclass, field
from typing import List

from .infra_config import InfraConfig
from .logging_config import LoggingConfig


def _int(val: str, default: int) -> int:
    try:
        return int(val) if val else default
    except ValueError:
        return default

def _float(val: str, default: float) -> float:
    try:
        return float(val) if val else default
    except ValueError:
        return default


@dataclass
class GatewayConfig:
    """Razorpay credentials and transport settings"""
    key_id: str = ""
    key_secret: str = ""
    base_url: str = "https://api.razorpay.com"
    timeout_seconds: float = 15.0
    default_currency: str = "INR"

    @property
    def is_configured(self) -> bool:
        return bool(self.key_id and self.key_secret)

    @classmethod
    def from_env(cls) -> 'GatewayConfig':
        return cls(
            key_id=os.getenv("RAZORPAY_KEY_ID", ""),
            key_secret=os.getenv("RAZORPAY_KEY_SECRET", ""),
            base_url=os.getenv("RAZORPAY_BASE_URL", "https://api.razorpay.com"),
            timeout_seconds=_float(os.getenv("RAZORPAY_TIMEOUT_SECONDS", "15"), 15.0),
            default_currency=os.getenv("DONATION_CURRENCY", "INR"),
        )


@dataclass
class ReconcileConfig:
    """Ledger maintenance policy. Zero disables the corresponding job."""
    interval_seconds: int = 0
    pending_expiry_minutes: int = 0

    @classmethod
    def from_env(cls) -> 'ReconcileConfig':
        return cls(
            interval_seconds=_int(os.getenv("RECONCILE_INTERVAL_SECONDS", "0"), 0),
            pending_expiry_minutes=_int(os.getenv("PENDING_EXPIRY_MINUTES", "0"), 0),
        )


@dataclass
class LedgerConfig:
    """Main configuration for the donation ledger"""
    infra: InfraConfig = field(default_factory=InfraConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)
    gateway: GatewayConfig = field(default_factory=GatewayConfig)
    reconcile: ReconcileConfig = field(default_factory=ReconcileConfig)
    admin_roles: List[str] = field(default_factory=lambda: ["admin", "super_admin"])

    @classmethod
    def from_env(cls) -> 'LedgerConfig':
        roles = os.getenv("LEDGER_ADMIN_ROLES", "admin,super_admin")
        return cls(
            infra=InfraConfig.from_env(),
            logging=LoggingConfig.from_env(),
            gateway=GatewayConfig.from_env(),
            reconcile=ReconcileConfig.from_env(),
            admin_roles=[r.strip() for r in roles.split(",") if r.strip()],
        )
