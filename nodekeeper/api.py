from __future__ import annotations

from fastapi import FastAPI, HTTPException, Query

from . import __version__, db
from .api_models import DecisionOut, EventOut, RestartOut, ServiceOut, StatusOut, TickOut
from .reconciler import Reconciler


def create_app(reconciler: Reconciler) -> FastAPI:
    """Read-only view over the running node keeper."""
    app = FastAPI(title="es-node-keeper", version=__version__)
    registry = reconciler.registry

    @app.get("/health", response_model=StatusOut)
    def health() -> StatusOut:
        last = reconciler.last_report
        return StatusOut(
            version=__version__,
            dry_run=reconciler.dry_run,
            exclusion_period_s=reconciler.exclusion_period_s,
            services=len(registry),
            last_tick=last.started_at if last else None,
        )

    @app.get("/services", response_model=list[ServiceOut])
    def services() -> list[ServiceOut]:
        return [
            ServiceOut(service=e.service_name, instance=e.instance_name, last_restart=e.last_restart)
            for e in registry.snapshot()
        ]

    @app.get("/ticks/last", response_model=TickOut)
    def last_tick() -> TickOut:
        r = reconciler.last_report
        if r is None:
            raise HTTPException(status_code=404, detail="No tick has run yet.")
        return TickOut(
            started_at=r.started_at,
            aborted=r.aborted,
            error=r.error,
            active=sorted(r.active),
            decisions=[
                DecisionOut(service=d.service, instance=d.instance, outcome=d.outcome.value, detail=d.detail, at=d.at)
                for d in r.decisions
            ],
        )

    @app.get("/events", response_model=list[EventOut])
    def events(limit: int = Query(100, ge=1, le=1000)) -> list[EventOut]:
        return [EventOut(**e) for e in db.latest_events(limit)]

    @app.get("/restarts", response_model=list[RestartOut])
    def restarts(service: str | None = None, limit: int = Query(100, ge=1, le=1000)) -> list[RestartOut]:
        return [
            RestartOut(
                ts=r.ts, epoch=r.epoch, service=r.service_name, instance=r.instance, outcome=r.outcome, detail=r.detail
            )
            for r in db.list_restarts(service, limit)
        ]

    return app
