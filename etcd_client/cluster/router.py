"""
Cluster Router Module

Sends every request to the member currently believed to be the leader and
handles the two ways a cluster tells the client it is talking to the wrong
node:

- Redirect: a follower answers with a Location pointing at the leader. The
  router re-targets that endpoint, refreshes the member list and re-issues
  the request.
- Timeout / refused connection: the member is presumed dead. The router
  drops it from the membership cache, moves on to the next member and
  retries, until no member is left.

The active endpoint is kept as an immutable RouterState snapshot. Readers
take the snapshot without locking; changes swap in a new snapshot with a
bumped version under the router lock, so a failover is only applied once
when an observer thread and a foreground call hit the same dead node.
"""

import logging
import re
import threading
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from ..config.settings import settings
from ..errors import AllNodesDownError, EtcdError, RedirectLoopError, ResponseDecodeError, UnreachableError
from ..network.http_transport import DEFAULT_TIMEOUT, HttpTransport, Timeout, TransportResponse
from ..protocol.info import S_LEADER, S_MACHINES, endpoint_from_location
from .membership import MembershipCache

logger = logging.getLogger(__name__)

MACHINES_SEPARATOR_RE = re.compile(r",\s*")


@dataclass(frozen=True)
class RouterState:
    """
    Snapshot of the endpoint the router is targeting.

    Attributes:
        endpoint: Base address of the member (scheme://host:port)
        base_uri: endpoint + "/" + protocol version
        leader_uri: URI of the leader query
        machines_uri: URI of the membership query
        version: Incremented on every endpoint change
    """
    endpoint: str
    base_uri: str
    leader_uri: str
    machines_uri: str
    version: int = 0

    @classmethod
    def for_endpoint(cls, endpoint: str, protocol_version: str, version: int = 0) -> "RouterState":
        """Derive all URIs for an endpoint."""
        endpoint = endpoint.rstrip("/")
        base_uri = f"{endpoint}/{protocol_version}"
        return cls(
            endpoint=endpoint,
            base_uri=base_uri,
            leader_uri=f"{base_uri}/{S_LEADER}",
            machines_uri=f"{base_uri}/{S_MACHINES}",
            version=version,
        )

    def uri(self, path: str) -> str:
        """Build the absolute URI for an operation path like "/keys/foo"."""
        return f"{self.base_uri}{path}"


class RequestRouter:
    """
    Routes requests to the cluster leader with redirect and failover handling.

    Usage:
        router = RequestRouter(HttpTransport())
        router.change_endpoint("http://127.0.0.1:4001")
        router.membership.refresh()
        response = router.perform("GET", "/keys/foo")

    Attributes:
        transport: Object with a request(method, uri, body, query, timeout) method
        protocol_version: Path segment appended to every endpoint
        max_redirects: Redirects allowed per request (0 = number of members)
        membership: The shared MembershipCache
    """

    def __init__(
            self,
            transport: HttpTransport = None,
            protocol_version: str = None,
            max_redirects: int = None,
    ):
        """
        Initialize the router without an active endpoint.

        Args:
            transport: Transport to use (creates an HttpTransport if not provided)
            protocol_version: Protocol version (default from settings)
            max_redirects: Redirect cap (default from settings)
        """
        self.transport = transport if transport is not None else HttpTransport()
        self.protocol_version = (
            protocol_version if protocol_version is not None else settings.PROTOCOL_VERSION
        )
        self.max_redirects = (
            max_redirects if max_redirects is not None else settings.MAX_REDIRECTS
        )
        self.membership = MembershipCache(self.machines)

        self._state: Optional[RouterState] = None
        self._lock = threading.RLock()

    @property
    def state(self) -> RouterState:
        """The current snapshot."""
        state = self._state
        if state is None:
            raise EtcdError("no active endpoint, call connect() first")
        return state

    @property
    def endpoint(self) -> Optional[str]:
        """The active endpoint, or None before the first change."""
        state = self._state
        return state.endpoint if state is not None else None

    def change_endpoint(self, endpoint: str) -> RouterState:
        """
        Target a new endpoint.

        This is the only place the router state changes.

        Args:
            endpoint: Base address such as "http://127.0.0.1:4001"

        Returns:
            The new snapshot
        """
        with self._lock:
            version = self._state.version + 1 if self._state is not None else 0
            self._state = RouterState.for_endpoint(endpoint, self.protocol_version, version)
            logger.info(f"Active endpoint is now {self._state.endpoint}")
            return self._state

    def machines(self, redirects: int = 0) -> List[str]:
        """
        Ask the active endpoint for the cluster members.

        Args:
            redirects: Redirects already spent by the request that triggered this query

        Returns:
            Member base URIs, leader first
        """
        response = self.perform("GET", f"/{S_MACHINES}", redirects=redirects)
        if not response.ok:
            raise ResponseDecodeError(f"unexpected status {response.status} listing machines")
        return [m.strip() for m in MACHINES_SEPARATOR_RE.split(response.body.strip()) if m.strip()]

    def perform(
            self,
            method: str,
            path: str,
            body: Optional[Dict[str, Any]] = None,
            query: Optional[Dict[str, Any]] = None,
            timeout: Timeout = DEFAULT_TIMEOUT,
            redirects: int = 0,
    ) -> TransportResponse:
        """
        Perform one logical operation against the cluster.

        Following a redirect refreshes the member list, which is itself a
        request. That request continues from the redirect count of the
        one that triggered it, so the cap holds across the nested calls.

        Args:
            method: HTTP method
            path: Operation path relative to the base URI, e.g. "/keys/foo"
            body: Form fields, if any
            query: Query parameters, if any
            timeout: Passed through to the transport
            redirects: Redirects already spent on this operation

        Returns:
            The first response that is not a redirect

        Raises:
            AllNodesDownError: If every known member failed
            RedirectLoopError: If the request bounced between members too often
        """
        max_attempts = len(self.membership) + self._redirect_limit() + 2

        for attempt in range(max_attempts):
            state = self.state
            uri = state.uri(path)
            logger.debug(f"Attempt {attempt + 1}: {method} {uri}")

            try:
                response = self.transport.request(
                    method, uri, body=body, query=query, timeout=timeout
                )
            except UnreachableError as e:
                logger.warning(f"{state.endpoint} is unreachable ({e.reason}), failing over")
                self._handle_leader_down(state)
                continue

            if response.is_redirect:
                redirects += 1
                if redirects > self._redirect_limit():
                    raise RedirectLoopError(
                        f"{method} {path} redirected more than {self._redirect_limit()} times"
                    )
                self._handle_redirected(response, redirects)
                continue

            return response

        logger.error(f"Giving up on {method} {path} after {max_attempts} attempts")
        raise AllNodesDownError()

    def _redirect_limit(self) -> int:
        if self.max_redirects > 0:
            return self.max_redirects
        return max(len(self.membership), 1)

    def _handle_redirected(self, response: TransportResponse, redirects: int) -> None:
        """Follow the leader named in a redirect and refresh the members."""
        endpoint = endpoint_from_location(response.header("location"))
        logger.info(f"Redirected to leader at {endpoint}")
        self.change_endpoint(endpoint)
        members = self.machines(redirects=redirects)
        self.membership.replace(members)
        logger.debug(f"Cluster members: {members}")

    def _handle_leader_down(self, failed: RouterState) -> None:
        """
        Move to the next member after `failed` stopped responding.

        If another thread already moved away from the failed endpoint, the
        newer endpoint is kept and nothing is dropped.
        """
        with self._lock:
            current = self._state
            if current is not None and current.version != failed.version:
                logger.debug(f"Endpoint already moved to {current.endpoint}, retrying")
                return

            try:
                candidate = self.membership.next_candidate(failed.base_uri)
            except AllNodesDownError:
                logger.error("All known nodes are down")
                raise

            self.change_endpoint(candidate)

    def __repr__(self) -> str:
        return (f"RequestRouter(endpoint={self.endpoint}, "
                f"members={self.membership.endpoints})")
