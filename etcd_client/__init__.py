"""
etcd-client: Cluster-Aware Client for etcd

A synchronous HTTP client for the etcd key-value coordination service.
Requests follow the cluster leader across redirects and fail over to the
remaining members when a node stops responding. Prefixes can be watched
continuously without losing changes between two polls.
"""

__version__ = "1.0.0"

from .client import Client
from .errors import (
    AllNodesDownError,
    ConnectionError,
    EtcdError,
    RedirectLoopError,
    ResponseDecodeError,
    UnreachableError,
)
from .protocol.info import Action, KeyInfo
from .watch.observer import Observer

__all__ = [
    "Client",
    "Observer",
    "KeyInfo",
    "Action",
    "EtcdError",
    "ConnectionError",
    "AllNodesDownError",
    "UnreachableError",
    "RedirectLoopError",
    "ResponseDecodeError",
]
