from __future__ import annotations

import argparse
import json
import signal
import sys
from dataclasses import replace
from threading import Thread

import requests

from . import __version__, alerts, db
from .cluster import ClusterClient
from .errors import ConfigError
from .logging_setup import setup_logging
from .reconciler import Reconciler
from .registry import CONFIG_ERROR_POLICIES, load_registry
from .scheduler import Scheduler
from .settings import Settings, settings as env_settings
from .systemd import SystemdController


def _print(obj) -> None:
    print(json.dumps(obj, indent=2, ensure_ascii=False))


def build_parser(defaults: Settings = env_settings) -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(prog="es-node-keeper", description="Restart local Elasticsearch nodes that left the cluster")
    p.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    sub = p.add_subparsers(dest="cmd", required=True)

    s_run = sub.add_parser("run", help="Run the watchdog loop")
    s_run.add_argument("-u", "--url", default=defaults.es_url, help="Elasticsearch URL")
    s_run.add_argument("-t", "--timeout", type=int, default=defaults.http_timeout_s, help="Timeout for HTTP requests in seconds")
    s_run.add_argument("-c", "--config", default=defaults.config_path, help="Config file path")
    s_run.add_argument(
        "--restart-exclusion-period",
        type=int,
        default=defaults.restart_exclusion_period_s,
        help="Minimal time in seconds between service restarts",
    )
    s_run.add_argument("--interval", type=int, default=defaults.interval_s, help="Seconds between checks")
    s_run.add_argument("-n", "--dry-run", action="store_true", default=defaults.dry_run, help="Dry run")
    s_run.add_argument("-v", "--verbose", action="store_true", default=defaults.verbose, help="Verbose mode")
    s_run.add_argument(
        "--on-config-error",
        choices=CONFIG_ERROR_POLICIES,
        default=defaults.on_config_error,
        help="Exit (fatal) or continue with no local nodes (empty) when the config cannot be loaded",
    )
    s_run.add_argument("--db-path", default=defaults.db_path, help="SQLite file for the audit trail")
    s_run.add_argument("--api-host", default=defaults.api_host)
    s_run.add_argument("--api-port", type=int, default=defaults.api_port, help="Status API port, 0 disables it")

    s_status = sub.add_parser("status", help="Show the state of a running node keeper")
    s_status.add_argument("--api", default="http://127.0.0.1:8080", help="Status API base URL")

    s_ev = sub.add_parser("events", help="Show recent events")
    s_ev.add_argument("--api", default="http://127.0.0.1:8080", help="Status API base URL")
    s_ev.add_argument("--limit", type=int, default=20)
    return p


def settings_from_args(args: argparse.Namespace, base: Settings = env_settings) -> Settings:
    return replace(
        base,
        es_url=args.url,
        http_timeout_s=args.timeout,
        config_path=args.config,
        restart_exclusion_period_s=args.restart_exclusion_period,
        interval_s=args.interval,
        dry_run=args.dry_run,
        verbose=args.verbose,
        on_config_error=args.on_config_error,
        db_path=args.db_path,
        api_host=args.api_host,
        api_port=args.api_port,
    )


def build_reconciler(cfg: Settings) -> Reconciler:
    """Load local nodes and wire the reconciler. Raises ConfigError (fatal policy)."""
    registry = load_registry(cfg.config_path, on_error=cfg.on_config_error)

    def notify(service: str, instance: str, outcome: str, detail: str) -> bool:
        return alerts.notify_restart(service, instance, outcome, detail, settings=cfg)

    return Reconciler(
        registry=registry,
        cluster=ClusterClient(cfg.es_url, timeout_s=cfg.http_timeout_s),
        controller=SystemdController(dry_run=cfg.dry_run),
        exclusion_period_s=cfg.restart_exclusion_period_s,
        dry_run=cfg.dry_run,
        notify=notify if cfg.enable_email else None,
    )


def _start_api(reconciler: Reconciler, host: str, port: int) -> Thread:
    import uvicorn

    from .api import create_app

    app = create_app(reconciler)
    thr = Thread(
        target=uvicorn.run,
        args=(app,),
        kwargs={"host": host, "port": port, "log_level": "warning"},
        name="nodekeeper-api",
        daemon=True,
    )
    thr.start()
    return thr


def run(cfg: Settings) -> int:
    setup_logging(cfg.verbose)
    db.configure(cfg.db_path)
    db.log_event("INFO", f"Starting es-node-keeper {__version__}")
    if cfg.dry_run:
        db.log_event("INFO", "Running in dry run mode")

    policy = cfg.on_config_error.strip().lower()
    if policy not in CONFIG_ERROR_POLICIES:
        choices = ", ".join(CONFIG_ERROR_POLICIES)
        db.log_event("ERROR", f"Invalid config error policy {cfg.on_config_error!r}, expected one of: {choices}")
        return 1
    cfg = replace(cfg, on_config_error=policy)

    try:
        reconciler = build_reconciler(cfg)
    except ConfigError as e:
        db.log_event("ERROR", f"Cannot get local nodes from config {cfg.config_path}: {e}")
        return 1

    nodes = {e.service_name: e.instance_name for e in reconciler.registry.snapshot()}
    db.log_event("INFO", f"Loaded config: {nodes}")
    db.log_event("INFO", f"Elasticsearch URL: {cfg.es_url}")

    if cfg.api_port:
        _start_api(reconciler, cfg.api_host, cfg.api_port)
        db.log_event("INFO", f"Status API listening on {cfg.api_host}:{cfg.api_port}")

    scheduler = Scheduler(reconciler.tick, interval_s=cfg.interval_s)
    signal.signal(signal.SIGTERM, lambda *_: scheduler.stop())
    try:
        scheduler.run_forever()
    except KeyboardInterrupt:
        scheduler.stop()
    return 0


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)

    if args.cmd == "run":
        return run(settings_from_args(args))

    base = args.api.rstrip("/")

    if args.cmd == "status":
        r = requests.get(f"{base}/health", timeout=10)
        out = {"health": r.json()}
        if r.ok:
            out["services"] = requests.get(f"{base}/services", timeout=10).json()
            last = requests.get(f"{base}/ticks/last", timeout=10)
            out["last_tick"] = last.json() if last.ok else None
        _print(out)
        return 0 if r.ok else 1

    if args.cmd == "events":
        r = requests.get(f"{base}/events", params={"limit": args.limit}, timeout=10)
        _print(r.json())
        return 0 if r.ok else 1

    return 2


if __name__ == "__main__":
    raise SystemExit(main(sys.argv[1:]))
