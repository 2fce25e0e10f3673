"""
Key Info and URI Helpers

This module defines the decoded form of an etcd response entry and the
helpers used to build operation paths.

Response entries look like:

    {"action": "SET", "key": "/foo", "value": "bar", "index": 7,
     "ttl": 4, "expiration": "2013-09-14T12:00:00.000000000Z",
     "newKey": true, "prevValue": "baz"}

Only key, value and index are always present.
"""

from dataclasses import dataclass, replace
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional
from urllib.parse import urlsplit

from dateutil import parser as date_parser

from ..errors import ResponseDecodeError

S_KEY = "key"
S_VALUE = "value"
S_INDEX = "index"
S_EXPIRATION = "expiration"
S_TTL = "ttl"
S_NEW_KEY = "newKey"
S_DIR = "dir"
S_PREV_VALUE = "prevValue"
S_ACTION = "action"

S_KEYS = "keys"
S_WATCH = "watch"
S_LEADER = "leader"
S_MACHINES = "machines"

DEFAULT_PORTS = {"http": 80, "https": 443}


class Action(Enum):
    """The kind of mutation that produced a watch notification."""
    GET = "get"
    SET = "set"
    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"
    EXPIRE = "expire"
    TESTANDSET = "testandset"
    COMPAREANDSWAP = "compareandswap"
    COMPAREANDDELETE = "compareanddelete"


@dataclass(frozen=True)
class KeyInfo:
    """
    Decoded information about a single key.

    Attributes:
        key: The full key, always starting with a slash
        value: The value (None for directories)
        index: The change-index assigned by the service
        ttl: Remaining seconds to live, if the key expires
        expiration: Absolute expiration time (UTC), if the key expires
        dir: True when the key is a directory without direct value
        new_key: True when the change created the key
        previous_value: The value before this change, if any
        action: The mutation kind (only set for watch notifications)
    """
    key: str
    value: Optional[str] = None
    index: Optional[int] = None
    ttl: Optional[int] = None
    expiration: Optional[datetime] = None
    dir: Optional[bool] = None
    new_key: Optional[bool] = None
    previous_value: Optional[str] = None
    action: Optional[Action] = None

    def without_action(self) -> "KeyInfo":
        """Return a copy with the action removed."""
        return replace(self, action=None)


def extract_info(data: Dict[str, Any]) -> KeyInfo:
    """
    Build a KeyInfo from a decoded response object.

    Args:
        data: One JSON object from the service

    Returns:
        The decoded KeyInfo

    Raises:
        ResponseDecodeError: If the object is malformed
    """
    if not isinstance(data, dict) or S_KEY not in data:
        raise ResponseDecodeError(f"unexpected response entry: {data!r}")

    fields: Dict[str, Any] = {
        "key": data[S_KEY],
        "value": data.get(S_VALUE),
        "index": data.get(S_INDEX),
    }

    expiration_s = data.get(S_EXPIRATION)
    if expiration_s:
        try:
            fields["expiration"] = date_parser.isoparse(expiration_s)
        except ValueError as e:
            raise ResponseDecodeError(f"invalid expiration {expiration_s!r}") from e

    if data.get(S_TTL) is not None:
        fields["ttl"] = data[S_TTL]
    if S_NEW_KEY in data:
        fields["new_key"] = data[S_NEW_KEY]
    if S_DIR in data:
        fields["dir"] = data[S_DIR]
    if data.get(S_PREV_VALUE) is not None:
        fields["previous_value"] = data[S_PREV_VALUE]

    action_s = data.get(S_ACTION)
    if action_s:
        try:
            fields["action"] = Action(str(action_s).lower())
        except ValueError as e:
            raise ResponseDecodeError(f"unknown action {action_s!r}") from e

    return KeyInfo(**fields)


def normalize_key(key: str) -> str:
    """Prepend a slash to the key if it does not start with one."""
    if not key.startswith("/"):
        return f"/{key}"
    return key


def key_path(key: str, action: str = S_KEYS) -> str:
    """
    Build the operation path for a key.

    Example:
        key_path("foo/bar") == "/keys/foo/bar"
        key_path("/foo", S_WATCH) == "/watch/foo"
    """
    return f"/{action}{normalize_key(key)}"


def endpoint_from_location(location: str) -> str:
    """
    Extract the scheme://host:port part of a redirect Location.

    Raises:
        ResponseDecodeError: If the location is not an absolute URI
    """
    parts = urlsplit(location)
    if not parts.scheme or not parts.hostname:
        raise ResponseDecodeError(f"invalid redirect location: {location!r}")
    port = parts.port or DEFAULT_PORTS.get(parts.scheme)
    return f"{parts.scheme}://{parts.hostname}:{port}"
