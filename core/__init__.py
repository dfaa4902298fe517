#!/usr/bin/env python3
"""
Core Module for Microservices Architecture

Shared infrastructure components used by the ledger services.

COMPONENTS:
    - config/: Dataclass configuration loaded from the environment
    - config_manager.py: Per-service configuration and dependency discovery
    - logger.py: Process-wide logging setup
    - postgres_client.py: asyncpg pool with task-scoped transactions
    - nats_client.py: NATS JetStream event bus

USAGE:
    from core.config_manager import ConfigManager

    # Initialize configuration for a service
    config = ConfigManager("donation_service")
"""

from .config_manager import ConfigManager, Environment, create_config
from .config.service_config import ServiceConfig

# Export public API
__all__ = [
    "ConfigManager",
    "Environment",
    "ServiceConfig",
    "create_config",
]

__version__ = "2.0.0"
