"""Configuration module for etcd-client."""

from .settings import Settings, settings

__all__ = ["Settings", "settings"]
