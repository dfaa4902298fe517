#!/usr/bin/env python3
"""Runtime configuration for a single microservice process

Identity, bind address and debug switches. Each service resolves its own
values with a ``<SERVICE_NAME>_`` prefixed variable first, then the generic one.
"""
import os
from dataclasses import dataclass

def _bool(val: str) -> bool:
    return val.lower() == "true"

def _int(val: str, default: int) -> int:
    try:
        return int(val) if val else default
    except ValueError:
        return default


@dataclass
class ServiceConfig:
    """Per-process service settings"""

    service_name: str = "donation_service"
    service_host: str = "0.0.0.0"
    service_port: int = 8260
    environment: str = "development"
    debug: bool = False
    log_level: str = "INFO"

    @classmethod
    def from_env(cls, service_name: str) -> 'ServiceConfig':
        """Load service configuration from environment variables"""
        prefix = service_name.upper()

        def _get(key: str, default: str) -> str:
            return os.getenv(f"{prefix}_{key}") or os.getenv(key, default)

        env = os.getenv("ENV") or os.getenv("ENVIRONMENT", "development")
        return cls(
            service_name=service_name,
            service_host=_get("SERVICE_HOST", "0.0.0.0"),
            service_port=_int(_get("SERVICE_PORT", "8260"), 8260),
            environment=env,
            debug=_bool(_get("DEBUG", "false")),
            log_level=_get("LOG_LEVEL", "DEBUG" if env == "development" else "INFO"),
        )
