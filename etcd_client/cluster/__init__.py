"""
Cluster module for etcd-client.

This module provides cluster awareness:
- Membership cache of known members, leader first
- Request routing to the leader with redirect and failover handling
"""

from .membership import MembershipCache
from .router import RequestRouter, RouterState

__all__ = ['MembershipCache', 'RequestRouter', 'RouterState']
