"""
etcd Client Module

The public entry point. Implements the key operations (get, set, update,
delete, exists, info), single-shot and continuous watches, and membership
queries on top of the RequestRouter.

All methods that take a key or prefix prepend a slash when the key does not
start with one.

Usage:
    client = Client.connect_to(uri="http://127.0.0.1:4001")
    client.set("/foo/bar", "baz")
    client.get("/foo/bar")        # 'baz'
    client.set("/foo/qux", "fizz")
    client.get("/foo")            # {'/foo/bar': 'baz', '/foo/qux': 'fizz'}
    client.update("/foo/bar", "new", "baz")   # True
    client.delete("/foo/bar")     # 'new'

    observer = client.observe("/foo", lambda value, key, info: print(key, value))
    ...
    observer.cancel().join()
"""

import logging
from typing import Any, Dict, List, Optional, Union

from .cluster.router import RequestRouter
from .config.settings import Settings, settings as default_settings
from .errors import ConnectionError, EtcdError, ResponseDecodeError
from .network.http_transport import NO_READ_TIMEOUT, HttpTransport, TransportResponse
from .protocol.info import (
    S_LEADER,
    S_PREV_VALUE,
    S_VALUE,
    S_WATCH,
    KeyInfo,
    extract_info,
    key_path,
)
from .watch.observer import Handler, Observer

logger = logging.getLogger(__name__)


class Client:
    """
    A client for an etcd cluster.

    Create it with Client(...).connect() or Client.connect_to(...). The two
    steps are separate so that constructing a client never touches the
    network.

    The seed URI is only used to discover the cluster. Once connected the
    client talks to the leader, so reads see the most recent values.

    Attributes:
        seed_uri: The node asked for the member list on connect
        router: The RequestRouter shared by all operations and observers
    """

    def __init__(
            self,
            uri: str = None,
            transport: Any = None,
            settings: Settings = None,
    ):
        """
        Initialize the client.

        Args:
            uri: Seed node, e.g. "http://127.0.0.1:4001" (default from settings)
            transport: Transport to use (creates an HttpTransport if not provided)
            settings: Settings instance (default: module settings)
        """
        self.settings = settings if settings is not None else default_settings
        self.seed_uri = uri if uri is not None else self.settings.SEED_URI
        if transport is None:
            transport = HttpTransport(
                connect_timeout=self.settings.CONNECT_TIMEOUT,
                read_timeout=self.settings.READ_TIMEOUT,
            )
        self.transport = transport
        self.router = RequestRouter(
            transport,
            protocol_version=self.settings.PROTOCOL_VERSION,
            max_redirects=self.settings.MAX_REDIRECTS,
        )

    @classmethod
    def connect_to(cls, **kwargs) -> "Client":
        """Create a client and connect it. Same as Client(**kwargs).connect()."""
        return cls(**kwargs).connect()

    def connect(self) -> "Client":
        """
        Discover the cluster through the seed node and target the leader.

        Returns:
            self, so calls can be chained

        Raises:
            ConnectionError: If no member list could be obtained
        """
        logger.info(f"Connecting to cluster via {self.seed_uri}")
        try:
            self.router.change_endpoint(self.seed_uri)
            self.router.membership.refresh()
            leader = self.router.membership.first()
            if leader is None:
                raise EtcdError(f"{self.seed_uri} reported no cluster members")
            self.router.change_endpoint(leader)
        except EtcdError as e:
            raise ConnectionError(f"could not connect via {self.seed_uri}: {e}") from e

        logger.info(f"Connected, leader is {leader}")
        return self

    @property
    def endpoint(self) -> Optional[str]:
        """The member requests are currently sent to."""
        return self.router.endpoint

    def set(self, key: str, value: str, ttl: int = None) -> Optional[str]:
        """
        Set the value of a key.

        Args:
            key: The key to set
            value: The value to store
            ttl: Seconds until the key is deleted automatically (optional)

        Returns:
            The previous value, if any
        """
        body = {S_VALUE: value}
        if ttl is not None:
            body["ttl"] = ttl
        response = self.router.perform("POST", key_path(key), body=body)
        data = self._decode_object(response)
        return data.get(S_PREV_VALUE)

    def update(self, key: str, value: str, expected_value: str, ttl: int = None) -> bool:
        """
        Atomically set a key if its current value equals expected_value.

        A rejected compare is a normal outcome of concurrent updates and is
        reported as False, not raised.

        Args:
            key: The key to set
            value: The new value
            expected_value: The value the key must currently have
            ttl: Seconds until the key is deleted automatically (optional)

        Returns:
            True if the value was swapped
        """
        body = {S_VALUE: value, S_PREV_VALUE: expected_value}
        if ttl is not None:
            body["ttl"] = ttl
        response = self.router.perform("POST", key_path(key), body=body)
        return response.ok

    def get(self, key: str) -> Union[str, Dict[str, str], None]:
        """
        Get the value of a key, or the values below a directory.

        For a directory with direct children (e.g. "/foo" for "/foo/bar") a
        dict of child keys to values is returned.

        Args:
            key: The key or prefix to read

        Returns:
            The value, a dict of values, or None if the key does not exist
        """
        response = self.router.perform("GET", key_path(key))
        if not response.ok:
            return None

        data = self._decode(response)
        if isinstance(data, list):
            infos = [extract_info(entry) for entry in data]
            return {info.key: info.value for info in infos}
        return data.get(S_VALUE)

    def info(self, key: str) -> Union[KeyInfo, Dict[str, KeyInfo], None]:
        """
        Get index, TTL, expiration and other details for a key.

        For keys that are directories without direct children, `dir` is
        True. For directories with direct children a dict of child keys to
        KeyInfo is returned.

        Args:
            key: The key or prefix to inspect

        Returns:
            A KeyInfo, a dict of KeyInfo, or None if the key does not exist
        """
        response = self.router.perform("GET", key_path(key))
        if not response.ok:
            return None

        data = self._decode(response)
        if isinstance(data, list):
            infos = [extract_info(entry).without_action() for entry in data]
            return {info.key: info for info in infos}
        return extract_info(data).without_action()

    def delete(self, key: str) -> Optional[str]:
        """
        Remove a key.

        Args:
            key: The key to remove

        Returns:
            The previous value, or None if the key did not exist
        """
        response = self.router.perform("DELETE", key_path(key))
        if not response.ok:
            return None
        return self._decode_object(response).get(S_PREV_VALUE)

    def exists(self, key: str) -> bool:
        """Check whether a key has a value. Same as get(key) is not None."""
        return self.get(key) is not None

    def watch(self, prefix: str, index: int = None, handler: Handler = None) -> Any:
        """
        Block until a key at or below `prefix` changes.

        There is no timeout and no way to cancel this call. Use observe()
        for a cancellable, continuous watch.

        With an index, the service answers with the change at that index if
        it has one, otherwise with the next change after it.

        Args:
            prefix: The key or prefix to watch
            index: The change-index to start watching from (optional)
            handler: Called as handler(value, key, info) (optional)

        Returns:
            The handler's return value, or the KeyInfo when no handler is given

        Raises:
            ResponseDecodeError: If the notification carries no index
        """
        query = {"index": index} if index is not None else None
        response = self.router.perform(
            "GET",
            key_path(prefix, S_WATCH),
            query=query,
            timeout=NO_READ_TIMEOUT,
        )
        info = extract_info(self._decode_object(response))
        if info.index is None:
            raise ResponseDecodeError(f"watch notification for {info.key} has no index")
        logger.debug(f"Change on {info.key} at index {info.index} ({info.action})")
        if handler is None:
            return info
        return handler(info.value, info.key, info)

    def observe(self, prefix: str, handler: Handler, index: int = None) -> Observer:
        """
        Continuously watch a key or prefix on a background thread.

        After each change the prefix is watched again from the index of that
        change, so nothing is lost while the handler runs. The handler runs
        on the observer's thread.

        Args:
            prefix: The key or prefix to watch
            handler: Called as handler(value, key, info) for every change
            index: The change-index to start from (optional)

        Returns:
            The running Observer; call cancel() and join() on it to stop
        """
        return Observer(self, prefix, handler, index=index).run()

    def machines(self) -> List[str]:
        """Get the base URIs of the cluster members, leader first."""
        return self.router.machines()

    def leader(self) -> str:
        """Get the base URI of the current leader."""
        response = self.router.perform("GET", f"/{S_LEADER}")
        if not response.ok:
            raise ResponseDecodeError(f"unexpected status {response.status} asking for leader")
        return response.body.strip()

    def close(self) -> None:
        """Release the transport's connections."""
        close = getattr(self.transport, "close", None)
        if close is not None:
            close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()

    def __repr__(self) -> str:
        return f"Client(seed_uri={self.seed_uri!r}, endpoint={self.endpoint!r})"

    def _decode(self, response: TransportResponse) -> Union[Dict[str, Any], List[Dict[str, Any]]]:
        """Decode a body that must be an object or a list of objects."""
        data = response.json()
        if isinstance(data, dict):
            return data
        if isinstance(data, list) and all(isinstance(entry, dict) for entry in data):
            return data
        raise ResponseDecodeError(f"unexpected response shape: {type(data).__name__}")

    def _decode_object(self, response: TransportResponse) -> Dict[str, Any]:
        data = self._decode(response)
        if not isinstance(data, dict):
            raise ResponseDecodeError("expected a single entry, got a list")
        return data
