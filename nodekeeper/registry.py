from __future__ import annotations

from dataclasses import dataclass, replace
from threading import Lock
from typing import Iterable

import yaml
from pydantic import BaseModel, Field, ValidationError

from . import db
from .errors import ConfigError

FATAL = "fatal"
EMPTY = "empty"
CONFIG_ERROR_POLICIES = (FATAL, EMPTY)


class NodeDeclaration(BaseModel):
    instance: str = Field(..., min_length=1, description="Node name as reported by the cluster")
    service: str = Field(..., min_length=1, description="Local systemd unit running that node")


class LocalNodesConfig(BaseModel):
    nodes: list[NodeDeclaration] = Field(default_factory=list)


@dataclass
class ServiceEntry:
    service_name: str
    instance_name: str
    last_restart: int = 0  # epoch seconds; 0 = never seen restarting


class Registry:
    """Local services and the cluster node each one should show up as.

    The reconciliation loop is the only writer. The lock is there for readers
    on other threads (status API).
    """

    def __init__(self, entries: Iterable[ServiceEntry] = ()):
        self._lock = Lock()
        self._entries: dict[str, ServiceEntry] = {}
        for e in entries:
            self._entries[e.service_name] = e

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def __contains__(self, service_name: object) -> bool:
        with self._lock:
            return service_name in self._entries

    def get(self, service_name: str) -> ServiceEntry | None:
        with self._lock:
            e = self._entries.get(service_name)
            return replace(e) if e else None

    def snapshot(self) -> list[ServiceEntry]:
        with self._lock:
            return [replace(e) for e in sorted(self._entries.values(), key=lambda x: x.service_name)]

    def invalid_services(self, active: Iterable[str]) -> list[ServiceEntry]:
        """Entries whose expected instance is not among the active cluster nodes."""
        active = set(active)
        return [e for e in self.snapshot() if e.instance_name not in active]

    def mark_restarted(self, service_name: str, epoch: int) -> bool:
        """Record a restart time. Never moves the timestamp backwards.

        Returns True if the stored value changed.
        """
        with self._lock:
            e = self._entries.get(service_name)
            if e is None:
                raise KeyError(service_name)
            epoch = int(epoch)
            if epoch <= e.last_restart:
                return False
            e.last_restart = epoch
            return True


def parse_config(text: str) -> LocalNodesConfig:
    try:
        raw = yaml.safe_load(text)
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML: {e}") from e
    if raw is None:
        raw = {}
    try:
        return LocalNodesConfig.model_validate(raw)
    except ValidationError as e:
        raise ConfigError(f"Invalid node declarations: {e}") from e


def registry_from_config(cfg: LocalNodesConfig) -> Registry:
    # Later declarations of the same service win.
    return Registry(ServiceEntry(service_name=n.service, instance_name=n.instance) for n in cfg.nodes)


def load_registry(path: str, on_error: str = FATAL) -> Registry:
    """Build the registry from the YAML node file at ``path``.

    ``on_error`` decides what a missing or malformed file means:
    ``fatal`` raises :class:`ConfigError`, ``empty`` logs a warning and
    returns an empty registry.
    """
    if on_error not in CONFIG_ERROR_POLICIES:
        raise ValueError(f"on_error must be one of {CONFIG_ERROR_POLICIES}, got {on_error!r}")
    try:
        try:
            with open(path, encoding="utf-8") as fh:
                text = fh.read()
        except OSError as e:
            raise ConfigError(f"Cannot read {path}: {e}") from e
        return registry_from_config(parse_config(text))
    except ConfigError as e:
        if on_error == FATAL:
            raise
        db.log_event("WARN", f"Cannot get local nodes from config file, using empty config: {e}")
        return Registry()
