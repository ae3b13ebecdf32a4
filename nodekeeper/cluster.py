from __future__ import annotations

import enum
from typing import Any

import httpx

from .errors import DecodeError, TransportError

NODES_PATH = "/_cat/nodes?h=name&format=json"
HEALTH_PATH = "/_cluster/health"
SETTINGS_PATH = "/_cluster/settings"


class ClusterHealth(str, enum.Enum):
    GREEN = "green"
    YELLOW = "yellow"
    RED = "red"
    UNKNOWN = "unknown"

    @classmethod
    def parse(cls, raw: str) -> "ClusterHealth":
        try:
            return cls(raw.strip().lower())
        except ValueError:
            return cls.UNKNOWN


class ClusterClient:
    """Read-only queries against the cluster HTTP API.

    Every call is a single GET with no retry; the caller's tick cadence is the
    retry policy. Failures raise :class:`TransportError` (no usable response)
    or :class:`DecodeError` (response body of the wrong shape).
    """

    def __init__(self, base_url: str, timeout_s: float = 10.0, transport: httpx.BaseTransport | None = None):
        self.base_url = base_url.rstrip("/")
        self.timeout_s = timeout_s
        self._transport = transport

    def _get_json(self, path: str) -> Any:
        url = f"{self.base_url}{path}"
        try:
            # A fresh client per request: no connection reuse between ticks.
            with httpx.Client(timeout=self.timeout_s, follow_redirects=False, transport=self._transport) as client:
                resp = client.get(url, headers={"Connection": "close"})
        except httpx.HTTPError as e:
            raise TransportError(f"GET {url} failed: {type(e).__name__}: {e}") from e
        if not resp.is_success:
            raise TransportError(f"GET {url}: HTTP {resp.status_code}")
        try:
            return resp.json()
        except ValueError as e:
            raise DecodeError(f"GET {url}: invalid JSON") from e

    def fetch_active_instances(self) -> frozenset[str]:
        data = self._get_json(NODES_PATH)
        if not isinstance(data, list):
            raise DecodeError(f"node list: expected array, got {type(data).__name__}")
        names: set[str] = set()
        for item in data:
            name = item.get("name") if isinstance(item, dict) else None
            if not isinstance(name, str):
                raise DecodeError(f"node list: entry without a name: {item!r}")
            names.add(name)
        return frozenset(names)

    def fetch_cluster_health(self) -> ClusterHealth:
        data = self._get_json(HEALTH_PATH)
        status = data.get("status") if isinstance(data, dict) else None
        if not isinstance(status, str):
            raise DecodeError(f"cluster health: missing status in {data!r}")
        return ClusterHealth.parse(status)

    def fetch_allocation_policy(self) -> str:
        """Return transient ``cluster.routing.allocation.enable``.

        An absent setting is a normal cluster state and yields ``""``.
        """
        data = self._get_json(SETTINGS_PATH)
        if not isinstance(data, dict):
            raise DecodeError(f"cluster settings: expected object, got {type(data).__name__}")
        node: Any = data
        for key in ("transient", "cluster", "routing", "allocation", "enable"):
            if not isinstance(node, dict):
                raise DecodeError(f"cluster settings: {key!r} parent is not an object")
            node = node.get(key)
            if node is None:
                return ""
        if not isinstance(node, str):
            raise DecodeError(f"cluster settings: allocation.enable is not a string: {node!r}")
        return node
