"""
Exception Hierarchy

Every error raised by the client derives from EtcdError. A missing key or a
rejected compare-and-swap is not an error: those operations return None or
False instead.
"""

from typing import Optional


class EtcdError(Exception):
    """Base class for all client errors."""


class ConnectionError(EtcdError):
    """
    Raised by Client.connect() when no working leader could be found.

    The underlying cause is chained as __cause__.
    """


class AllNodesDownError(EtcdError):
    """Raised when every known cluster member has failed for an operation."""

    def __init__(self, message: str = "All known nodes are down"):
        super().__init__(message)


class UnreachableError(EtcdError):
    """
    A single member did not answer in time or refused the connection.

    The router catches this and fails over to the next member; callers only
    see it when talking to a transport directly.

    Attributes:
        uri: The URI that could not be reached
    """

    def __init__(self, uri: str, reason: Optional[str] = None):
        self.uri = uri
        self.reason = reason
        message = f"{uri} is unreachable"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message)


class RedirectLoopError(EtcdError):
    """Raised when a request was redirected more times than allowed."""


class ResponseDecodeError(EtcdError):
    """Raised when a response body does not have the expected JSON shape."""
