"""Network module for etcd-client."""

from .http_transport import DEFAULT_TIMEOUT, NO_READ_TIMEOUT, HttpTransport, TransportResponse

__all__ = ["DEFAULT_TIMEOUT", "NO_READ_TIMEOUT", "HttpTransport", "TransportResponse"]
