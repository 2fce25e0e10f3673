"""Protocol module for etcd-client."""

from .info import (
    Action,
    KeyInfo,
    endpoint_from_location,
    extract_info,
    key_path,
    normalize_key,
)

__all__ = [
    "Action",
    "KeyInfo",
    "extract_info",
    "key_path",
    "normalize_key",
    "endpoint_from_location",
]
