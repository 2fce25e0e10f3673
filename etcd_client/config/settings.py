"""
etcd-client Configuration Settings

This module contains all configuration defaults for the etcd client.
Every value can be overridden through the environment.
"""

import os
from dataclasses import dataclass


@dataclass
class Settings:
    """Client configuration settings."""

    # Cluster settings
    SEED_URI: str = os.environ.get("ETCD_URI", "http://127.0.0.1:4001")
    PROTOCOL_VERSION: str = os.environ.get("ETCD_PROTOCOL_VERSION", "v1")

    # 0 means "as many redirects as there are known members"
    MAX_REDIRECTS: int = int(os.environ.get("ETCD_MAX_REDIRECTS", "0"))

    # HTTP settings
    CONNECT_TIMEOUT: float = float(os.environ.get("ETCD_CONNECT_TIMEOUT", "5.0"))
    READ_TIMEOUT: float = float(os.environ.get("ETCD_READ_TIMEOUT", "10.0"))

    # Logging settings
    DEBUG: bool = os.environ.get("ETCD_DEBUG", "false").lower() == "true"
    LOG_LEVEL: str = os.environ.get("ETCD_LOG_LEVEL", "INFO")


# Global settings instance
settings = Settings()
