from __future__ import annotations

import enum
import time
from dataclasses import dataclass, field
from typing import Callable

from . import db
from .cluster import ClusterClient, ClusterHealth
from .errors import ClusterError, ExecutionError, QueryError
from .registry import Registry, ServiceEntry
from .systemd import SystemdController

Notifier = Callable[[str, str, str, str], object]


class Outcome(str, enum.Enum):
    SUPPRESSED = "suppressed"  # inside the exclusion period
    CHECK_FAILED = "check_failed"  # health or allocation could not be read
    ALLOCATION_UNSET = "allocation_unset"
    BLOCKED = "blocked"  # cluster red or allocation not "all"
    RESTARTED = "restarted"
    DRY_RUN = "dry_run"
    FAILED = "failed"  # restart command failed


RESTART_ATTEMPTS = {Outcome.RESTARTED, Outcome.FAILED, Outcome.DRY_RUN}

_AUDIT_LEVELS = {
    Outcome.SUPPRESSED: "DEBUG",
    Outcome.BLOCKED: "DEBUG",
    Outcome.CHECK_FAILED: "WARN",
    Outcome.ALLOCATION_UNSET: "WARN",
    Outcome.FAILED: "ERROR",
}


@dataclass(frozen=True)
class ServiceDecision:
    service: str
    instance: str
    outcome: Outcome
    detail: str
    at: int  # epoch seconds the decision was taken


@dataclass
class TickReport:
    started_at: int
    aborted: bool = False
    error: str | None = None
    active: frozenset[str] = frozenset()
    decisions: list[ServiceDecision] = field(default_factory=list)

    def restarted(self) -> list[str]:
        return [d.service for d in self.decisions if d.outcome == Outcome.RESTARTED]


def restart_permitted(health: ClusterHealth, allocation: str) -> bool:
    """Safe to restart: cluster not red and shard allocation fully enabled."""
    return health != ClusterHealth.RED and allocation.lower() == "all"


class Reconciler:
    """Brings declared local nodes back into the cluster by restarting their units.

    One call to :meth:`tick` is one full pass. A service is restarted only if
    its node is missing from the cluster, it has not been restarted within
    ``exclusion_period_s``, and the cluster is in a state where losing and
    re-adding a node is safe (see :func:`restart_permitted`).

    Passing ``now`` to :meth:`tick` pins the clock for the whole pass.
    """

    def __init__(
        self,
        registry: Registry,
        cluster: ClusterClient,
        controller: SystemdController,
        exclusion_period_s: int = 600,
        dry_run: bool = False,
        clock: Callable[[], float] = time.time,
        notify: Notifier | None = None,
    ):
        self.registry = registry
        self.cluster = cluster
        self.controller = controller
        self.exclusion_period_s = int(exclusion_period_s)
        self.dry_run = dry_run
        self.clock = clock
        self.notify = notify
        self.last_report: TickReport | None = None
        # service -> last outcome sent to the notifier
        self._notified: dict[str, Outcome] = {}

    def _now(self, pinned: int | None) -> int:
        return int(self.clock()) if pinned is None else int(pinned)

    def tick(self, now: int | None = None) -> TickReport:
        report = TickReport(started_at=self._now(now))

        try:
            active = self.cluster.fetch_active_instances()
        except ClusterError as e:
            report.aborted = True
            report.error = str(e)
            db.log_event("WARN", f"Cannot get active nodes from cluster: {e}")
            self.last_report = report
            return report
        report.active = active

        invalid = self.registry.invalid_services(active)
        missing = {e.service_name for e in invalid}
        for service in [s for s in self._notified if s not in missing]:
            del self._notified[service]
        if not invalid:
            db.log_event("DEBUG", "All local nodes are active members of the cluster")
        for entry in invalid:
            decision = self._reconcile_service(entry, now)
            report.decisions.append(decision)
            self._audit(decision)

        self.last_report = report
        return report

    def _refresh_last_restart(self, entry: ServiceEntry) -> int:
        """Ask systemd when the unit last became active; fall back to memory."""
        try:
            activated = self.controller.last_activation(entry.service_name)
        except QueryError as e:
            db.log_event(
                "WARN",
                f"Cannot get systemd service running time ({e.kind}): {e}",
                service_name=entry.service_name,
            )
            return entry.last_restart
        self.registry.mark_restarted(entry.service_name, activated)
        return max(entry.last_restart, int(activated))

    def _reconcile_service(self, entry: ServiceEntry, now: int | None) -> ServiceDecision:
        service, instance = entry.service_name, entry.instance_name
        last_restart = self._refresh_last_restart(entry)
        ts = self._now(now)

        def decide(outcome: Outcome, detail: str) -> ServiceDecision:
            return ServiceDecision(service, instance, outcome, detail, ts)

        elapsed = ts - last_restart
        if elapsed <= self.exclusion_period_s:
            return decide(
                Outcome.SUPPRESSED,
                f"Minimum time between restarts not met: last restart {elapsed}s ago, "
                f"exclusion period {self.exclusion_period_s}s",
            )

        try:
            health = self.cluster.fetch_cluster_health()
        except ClusterError as e:
            return decide(Outcome.CHECK_FAILED, f"Cannot get cluster status: {e}")
        try:
            allocation = self.cluster.fetch_allocation_policy()
        except ClusterError as e:
            return decide(Outcome.CHECK_FAILED, f"Cannot get cluster routing allocation: {e}")

        if allocation == "":
            return decide(Outcome.ALLOCATION_UNSET, "Cluster routing allocation is empty")

        if not restart_permitted(health, allocation):
            return decide(
                Outcome.BLOCKED,
                f"Cannot restart due to cluster conditions: status={health.value}, routing allocation={allocation}",
            )

        db.log_event(
            "INFO",
            "Local node is not an active member of the cluster, restarting service",
            service_name=service,
            instance=instance,
        )
        if self.dry_run:
            return decide(Outcome.DRY_RUN, "Dry run, skipping")

        try:
            self.controller.restart(service)
        except ExecutionError as e:
            return decide(Outcome.FAILED, f"Cannot restart service: {e}")

        self.registry.mark_restarted(service, ts)
        return decide(Outcome.RESTARTED, "Service restarted")

    def _audit(self, d: ServiceDecision) -> None:
        level = _AUDIT_LEVELS.get(d.outcome, "INFO")
        db.log_event(level, f"{d.outcome.value}: {d.detail}", service_name=d.service, instance=d.instance)

        if d.outcome not in RESTART_ATTEMPTS:
            return
        try:
            db.record_restart(d.service, d.instance, d.at, d.outcome.value, d.detail)
        except Exception as e:
            db.log_event("WARN", f"Cannot record restart: {type(e).__name__}: {e}", service_name=d.service)
        if self.notify is None:
            return
        # Repeated failures or dry runs are only announced once.
        if d.outcome != Outcome.RESTARTED and self._notified.get(d.service) == d.outcome:
            return
        self._notified[d.service] = d.outcome
        try:
            self.notify(d.service, d.instance, d.outcome.value, d.detail)
        except Exception as e:
            db.log_event("WARN", f"Notification failed: {type(e).__name__}: {e}", service_name=d.service)
