"""
HTTP Transport Module

Thin wrapper around a requests.Session that performs exactly one HTTP
round trip per call. Redirects are never followed here: the router needs
to see the Location header to learn where the leader went.

Timeouts and refused connections are reported as UnreachableError so the
router can tell a dead member apart from an HTTP error status.
"""

import json
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Mapping, Optional, Tuple, Union

import requests
from requests.structures import CaseInsensitiveDict

from .. import __version__
from ..config.settings import settings
from ..errors import ResponseDecodeError, UnreachableError

logger = logging.getLogger(__name__)

REDIRECT_STATUSES = (301, 302, 303, 307, 308)

# Sentinels: "use the configured timeouts" and "connect timeout only" (long polls)
DEFAULT_TIMEOUT = object()
NO_READ_TIMEOUT = object()

Timeout = Union[None, float, Tuple[float, Optional[float]], object]


@dataclass
class TransportResponse:
    """
    Raw result of one HTTP round trip.

    Attributes:
        status: HTTP status code
        headers: Response headers (case-insensitive)
        body: Decoded response text
    """
    status: int
    headers: Mapping[str, str] = field(default_factory=CaseInsensitiveDict)
    body: str = ""

    def __post_init__(self):
        """Make header lookups case-insensitive."""
        if not isinstance(self.headers, CaseInsensitiveDict):
            self.headers = CaseInsensitiveDict(self.headers)

    @property
    def is_redirect(self) -> bool:
        """True if this is a redirect carrying a Location header."""
        return self.status in REDIRECT_STATUSES and bool(self.header("location"))

    @property
    def ok(self) -> bool:
        """True for HTTP 200."""
        return self.status == 200

    def header(self, name: str) -> Optional[str]:
        """Get a header value by name, or None."""
        return self.headers.get(name)

    def json(self) -> Any:
        """
        Decode the body as JSON.

        Raises:
            ResponseDecodeError: If the body is not valid JSON
        """
        try:
            return json.loads(self.body)
        except ValueError as e:
            raise ResponseDecodeError(f"invalid JSON body: {self.body[:200]!r}") from e


class HttpTransport:
    """
    Blocking HTTP transport backed by requests.

    Usage:
        transport = HttpTransport()
        response = transport.request("GET", "http://127.0.0.1:4001/v1/machines")

    Attributes:
        connect_timeout: Seconds to wait for a TCP connection
        read_timeout: Seconds to wait for a response
    """

    def __init__(
            self,
            connect_timeout: float = None,
            read_timeout: Optional[float] = None,
            session: requests.Session = None,
    ):
        """
        Initialize the transport.

        Args:
            connect_timeout: Connect timeout (default from settings)
            read_timeout: Read timeout (default from settings)
            session: Session to use (creates a new one if not provided)
        """
        self.connect_timeout = (
            connect_timeout if connect_timeout is not None else settings.CONNECT_TIMEOUT
        )
        self.read_timeout = (
            read_timeout if read_timeout is not None else settings.READ_TIMEOUT
        )
        self.session = session if session is not None else requests.Session()
        self.session.headers["User-Agent"] = f"etcd-client/{__version__}"

    def request(
            self,
            method: str,
            uri: str,
            body: Optional[Dict[str, Any]] = None,
            query: Optional[Dict[str, Any]] = None,
            timeout: Timeout = DEFAULT_TIMEOUT,
    ) -> TransportResponse:
        """
        Perform one HTTP request without following redirects.

        Args:
            method: HTTP method (GET, POST, DELETE...)
            uri: Absolute request URI
            body: Form fields to send, if any
            query: Query string parameters, if any
            timeout: Seconds, a (connect, read) tuple, None for no limit, or
                NO_READ_TIMEOUT to wait forever once connected

        Returns:
            The raw TransportResponse

        Raises:
            UnreachableError: On timeout or connection failure
        """
        if timeout is DEFAULT_TIMEOUT:
            timeout = (self.connect_timeout, self.read_timeout)
        elif timeout is NO_READ_TIMEOUT:
            timeout = (self.connect_timeout, None)

        logger.debug(f"{method} {uri} query={query} body={body}")

        try:
            response = self.session.request(
                method,
                uri,
                data=body,
                params=query,
                timeout=timeout,
                allow_redirects=False,
            )
        except requests.exceptions.Timeout as e:
            raise UnreachableError(uri, "timed out") from e
        except requests.exceptions.ConnectionError as e:
            raise UnreachableError(uri, str(e)) from e

        return TransportResponse(
            status=response.status_code,
            headers=response.headers,
            body=response.text,
        )

    def close(self) -> None:
        """Close the underlying session."""
        self.session.close()
