"""
Cluster Membership Module

Keeps the last known list of cluster members. The service returns the
members leader first, so the first cached entry is the presumed leader.

The cache never talks to the network itself: refresh() calls the fetch
function handed in by the router, and any failure of that call propagates
unchanged. Retrying is the router's job.
"""

import logging
import threading
from typing import Callable, Iterable, Iterator, List, Optional

from ..errors import AllNodesDownError

logger = logging.getLogger(__name__)


class MembershipCache:
    """
    Ordered list of member endpoints, leader first.

    Endpoints are plain base addresses such as "http://127.0.0.1:4001".

    Attributes:
        fetch: Callable returning the current member list
    """

    def __init__(self, fetch: Callable[[], List[str]]):
        """
        Initialize an empty cache.

        Args:
            fetch: Callable that queries the cluster for its members
        """
        self.fetch = fetch
        self._endpoints: List[str] = []
        self._lock = threading.Lock()

    def refresh(self) -> List[str]:
        """
        Query the cluster and replace the cached members wholesale.

        Returns:
            The new member list
        """
        endpoints = self.fetch()
        self.replace(endpoints)
        logger.debug(f"Cluster members: {endpoints}")
        return self.endpoints

    def replace(self, endpoints: Iterable[str]) -> None:
        """Replace the cached members."""
        with self._lock:
            self._endpoints = [e.rstrip("/") for e in endpoints if e]

    def first(self) -> Optional[str]:
        """Get the presumed leader, or None if the cache is empty."""
        with self._lock:
            return self._endpoints[0] if self._endpoints else None

    def next_candidate(self, failed: str) -> str:
        """
        Drop the failed member and pop the next one to try.

        Every cached endpoint contained in `failed` is discarded, so passing
        the full base URI of the failed member ("http://a:4001/v1") removes
        "http://a:4001".

        Args:
            failed: Base URI (or endpoint) of the member that just failed

        Returns:
            The next endpoint to target

        Raises:
            AllNodesDownError: If no other member is left
        """
        with self._lock:
            self._endpoints = [e for e in self._endpoints if e not in failed]
            if not self._endpoints:
                raise AllNodesDownError()
            return self._endpoints.pop(0)

    @property
    def endpoints(self) -> List[str]:
        """Snapshot of the cached members."""
        with self._lock:
            return list(self._endpoints)

    def __len__(self) -> int:
        with self._lock:
            return len(self._endpoints)

    def __iter__(self) -> Iterator[str]:
        return iter(self.endpoints)

    def __contains__(self, endpoint: str) -> bool:
        with self._lock:
            return endpoint.rstrip("/") in self._endpoints

    def __repr__(self) -> str:
        return f"MembershipCache(endpoints={self.endpoints})"
