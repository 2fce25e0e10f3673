"""
Pytest Configuration and Fixtures

This module provides shared fixtures and configuration for all tests.

No test talks to a real etcd: FakeCluster stands in for the transport and
answers requests the way a small v1 cluster would, including redirects
from followers, members that time out, and blocking watches.
"""

import json
import threading
from typing import Any, Dict, List, Optional, Set, Tuple
from urllib.parse import urlsplit

import pytest

from etcd_client.client import Client
from etcd_client.config.settings import Settings
from etcd_client.errors import UnreachableError
from etcd_client.network.http_transport import TransportResponse

NODE_A = "http://10.0.0.1:4001"
NODE_B = "http://10.0.0.2:4001"
NODE_C = "http://10.0.0.3:4001"


class FakeCluster:
    """
    In-memory etcd v1 cluster with the HttpTransport request() signature.

    Attributes:
        members: Member endpoints
        leader: Endpoint of the current leader
        down: Endpoints that time out
        redirect_followers: Followers redirect key and watch requests
        watching: Number of watches that reached the leader so far
        requests: Every (method, uri, body, query) received
    """

    def __init__(self, members=(NODE_A, NODE_B, NODE_C), leader: str = None,
                 watch_timeout: float = 5.0):
        self.members: List[str] = list(members)
        self.leader = leader if leader is not None else self.members[0]
        self.down: Set[str] = set()
        self.redirect_followers = False
        self.watch_timeout = watch_timeout
        self.requests: List[Tuple[str, str, Any, Any]] = []
        self.watching = 0

        self.index = 0
        self.data: Dict[str, Dict[str, Any]] = {}
        self.events: List[Dict[str, Any]] = []
        self._cond = threading.Condition()

    # ------------------------------------------------------------------
    # Direct manipulation (bypasses the transport)
    # ------------------------------------------------------------------

    def put(self, key: str, value: str, ttl: int = None) -> Dict[str, Any]:
        """Store a value and record a SET event."""
        with self._cond:
            self.index += 1
            previous = self.data.get(key)
            entry = {"key": key, "value": value, "index": self.index}
            if ttl is not None:
                entry["ttl"] = ttl
                entry["expiration"] = "2013-09-14T12:00:00.123456789Z"
            self.data[key] = entry

            event = dict(entry, action="SET")
            if previous is None:
                event["newKey"] = True
            else:
                event["prevValue"] = previous["value"]
            self.events.append(event)
            self._cond.notify_all()
            return event

    def remove(self, key: str) -> Optional[Dict[str, Any]]:
        """Delete a value and record a DELETE event."""
        with self._cond:
            previous = self.data.pop(key, None)
            if previous is None:
                return None
            self.index += 1
            event = {"action": "DELETE", "key": key, "prevValue": previous["value"],
                     "index": self.index}
            self.events.append(event)
            self._cond.notify_all()
            return event

    def machines_body(self) -> str:
        others = [m for m in self.members if m != self.leader]
        return ", ".join([self.leader] + others)

    # ------------------------------------------------------------------
    # Transport interface
    # ------------------------------------------------------------------

    def request(self, method, uri, body=None, query=None, timeout=None) -> TransportResponse:
        self.requests.append((method, uri, body, query))

        parts = urlsplit(uri)
        endpoint = f"{parts.scheme}://{parts.netloc}"
        if endpoint in self.down or endpoint not in self.members:
            raise UnreachableError(uri, "timed out")

        assert parts.path.startswith("/v1/"), uri
        path = parts.path[len("/v1"):]

        if path == "/machines":
            return TransportResponse(200, {}, self.machines_body())

        if self.redirect_followers and endpoint != self.leader:
            return TransportResponse(307, {"Location": f"{self.leader}{parts.path}"}, "")

        if path == "/leader":
            return TransportResponse(200, {}, self.leader)
        if path.startswith("/keys/"):
            return self._keys(method, path[len("/keys"):], body or {})
        if path.startswith("/watch/"):
            return self._watch(path[len("/watch"):], query or {})
        return self._reply(404, {"errorCode": 404, "message": "not found"})

    def close(self) -> None:
        pass

    def _reply(self, status: int, data: Any) -> TransportResponse:
        return TransportResponse(status, {"Content-Type": "application/json"}, json.dumps(data))

    def _keys(self, method: str, key: str, body: Dict[str, Any]) -> TransportResponse:
        if method == "GET":
            if key in self.data:
                return self._reply(200, self.data[key])
            children = self._children(key)
            if children:
                return self._reply(200, children)
            return self._reply(404, {"errorCode": 100, "message": "Key Not Found"})

        if method == "POST":
            if "prevValue" in body:
                current = self.data.get(key)
                if current is None or current["value"] != body["prevValue"]:
                    return self._reply(400, {"errorCode": 101, "message": "Test Failed"})
            ttl = int(body["ttl"]) if "ttl" in body else None
            event = self.put(key, body["value"], ttl=ttl)
            return self._reply(200, event)

        if method == "DELETE":
            event = self.remove(key)
            if event is None:
                return self._reply(404, {"errorCode": 100, "message": "Key Not Found"})
            return self._reply(200, event)

        return self._reply(405, {"message": "method not allowed"})

    def _children(self, prefix: str) -> List[Dict[str, Any]]:
        prefix = prefix.rstrip("/") + "/"
        children: Dict[str, Dict[str, Any]] = {}
        for key, entry in self.data.items():
            if not key.startswith(prefix):
                continue
            rest = key[len(prefix):]
            if "/" in rest:
                sub = prefix + rest.split("/", 1)[0]
                children[sub] = {"key": sub, "dir": True, "index": entry["index"]}
            else:
                children[key] = entry
        return [children[k] for k in sorted(children)]

    def _watch(self, prefix: str, query: Dict[str, Any]) -> TransportResponse:
        # index is inclusive: the change at that index, or the next one
        with self._cond:
            since = int(query["index"]) if "index" in query else self.index + 1
            self.watching += 1

            def pending():
                for event in self.events:
                    under = event["key"] == prefix or event["key"].startswith(prefix.rstrip("/") + "/")
                    if under and event["index"] >= since:
                        return event
                return None

            event = self._cond.wait_for(pending, timeout=self.watch_timeout)
        if event is None:
            return TransportResponse(500, {}, "{}")
        return self._reply(200, event)


@pytest.fixture
def cluster() -> FakeCluster:
    """Create a three member cluster led by NODE_A."""
    return FakeCluster()


@pytest.fixture
def test_settings() -> Settings:
    """Settings independent of the environment."""
    return Settings(
        SEED_URI=NODE_A,
        PROTOCOL_VERSION="v1",
        MAX_REDIRECTS=0,
        CONNECT_TIMEOUT=1.0,
        READ_TIMEOUT=1.0,
        DEBUG=False,
        LOG_LEVEL="INFO",
    )


@pytest.fixture
def client(cluster: FakeCluster, test_settings: Settings) -> Client:
    """Create a client connected to the fake cluster."""
    return Client(uri=NODE_A, transport=cluster, settings=test_settings).connect()


# ============================================================================
# Pytest Configuration
# ============================================================================

def pytest_configure(config):
    """Configure custom pytest markers."""
    config.addinivalue_line(
        "markers", "slow: marks tests as slow (deselect with '-m \"not slow\"')"
    )
    config.addinivalue_line(
        "markers", "integration: marks tests as integration tests"
    )
