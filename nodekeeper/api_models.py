from __future__ import annotations

from pydantic import BaseModel, Field


class ServiceOut(BaseModel):
    service: str = Field(..., description="Local systemd unit")
    instance: str = Field(..., description="Node name expected in the cluster")
    last_restart: int = Field(..., description="Epoch seconds of the last known restart, 0 if never")


class DecisionOut(BaseModel):
    service: str
    instance: str
    outcome: str = Field(..., description="suppressed|check_failed|allocation_unset|blocked|restarted|dry_run|failed")
    detail: str
    at: int


class TickOut(BaseModel):
    started_at: int
    aborted: bool
    error: str | None = None
    active: list[str]
    decisions: list[DecisionOut]


class RestartOut(BaseModel):
    ts: str
    epoch: int
    service: str
    instance: str
    outcome: str
    detail: str | None = None


class StatusOut(BaseModel):
    status: str = "ok"
    version: str
    dry_run: bool
    exclusion_period_s: int
    services: int
    last_tick: int | None = None


class EventOut(BaseModel):
    id: int
    ts: str
    level: str
    service_name: str | None = None
    instance: str | None = None
    message: str
