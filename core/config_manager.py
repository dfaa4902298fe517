#!/usr/bin/env python3
"""
Centralized configuration manager for microservices

Resolves a service's runtime settings from the environment (after the
``core.config`` package has loaded the matching ``.env`` file) and locates
infrastructure dependencies with a fixed priority:

    1. Explicit environment variables (e.g. POSTGRES_HOST / POSTGRES_PORT)
    2. Defaults supplied by the caller
"""

import logging
import os
from enum import Enum
from typing import Optional, Tuple

from core.config import get_settings
from core.config.service_config import ServiceConfig

logger = logging.getLogger(__name__)


class Environment(Enum):
    """Deployment environments"""
    DEVELOPMENT = "development"
    TESTING = "testing"
    STAGING = "staging"
    PRODUCTION = "production"

    @classmethod
    def current(cls) -> "Environment":
        value = (os.getenv("ENV") or os.getenv("ENVIRONMENT", "development")).lower()
        aliases = {"dev": "development", "test": "testing", "prod": "production"}
        value = aliases.get(value, value)
        try:
            return cls(value)
        except ValueError:
            return cls.DEVELOPMENT



class ConfigManager:
    """Configuration access for a single service"""

    def __init__(self, service_name: str):
        self.service_name = service_name
        self.environment = Environment.current()
        self._service_config: Optional[ServiceConfig] = None

    def get_service_config(self) -> ServiceConfig:
        """Get (and cache) the service's runtime configuration"""
        if self._service_config is None:
            self._service_config = ServiceConfig.from_env(self.service_name)
        return self._service_config

    def discover_service(
        self,
        service_name: str,
        default_host: str,
        default_port: int,
        env_host_key: Optional[str] = None,
        env_port_key: Optional[str] = None,
    ) -> Tuple[str, int]:
        """
        Locate a dependency.

        Args:
            service_name: Logical name of the dependency (for logging)
            default_host: Host used when no override is set
            default_port: Port used when no override is set
            env_host_key: Environment variable holding the host
            env_port_key: Environment variable holding the port

        Returns:
            (host, port)
        """
        host = os.getenv(env_host_key) if env_host_key else None
        port_value = os.getenv(env_port_key) if env_port_key else None

        try:
            port = int(port_value) if port_value else default_port
        except ValueError:
            logger.warning(f"Invalid port for {service_name}: {port_value!r}, using {default_port}")
            port = default_port

        resolved = (host or default_host, port)
        logger.debug(f"Resolved {service_name} at {resolved[0]}:{resolved[1]}")
        return resolved

    def print_config_summary(self, show_secrets: bool = False) -> None:
        """Log the effective configuration, masking secrets by default"""
        config = self.get_service_config()
        settings = get_settings()
        key_secret = settings.gateway.key_secret
        if not show_secrets:
            key_secret = "***" if key_secret else "(unset)"

        logger.info(f"=== {self.service_name} configuration ({self.environment.value}) ===")
        logger.info(f"  bind: {config.service_host}:{config.service_port}")
        logger.info(f"  debug: {config.debug}  log_level: {config.log_level}")
        logger.info(f"  postgres: {settings.infra.postgres_host}:{settings.infra.postgres_port}/{settings.infra.postgres_db}")
        logger.info(f"  nats: {settings.infra.resolved_nats_url} (enabled={settings.infra.nats_enabled})")
        logger.info(f"  gateway: {settings.gateway.base_url} key_id={settings.gateway.key_id or '(unset)'} secret={key_secret}")
        logger.info(
            f"  reconcile: every {settings.reconcile.interval_seconds}s, "
            f"pending expiry {settings.reconcile.pending_expiry_minutes}min"
        )


def create_config(service_name: str) -> ConfigManager:
    """Create a ConfigManager for a service"""
    return ConfigManager(service_name)
