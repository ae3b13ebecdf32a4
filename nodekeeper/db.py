from __future__ import annotations

import logging
import os
import sqlite3
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Iterable

from .settings import settings

log = logging.getLogger("nodekeeper")

_db_path: str = settings.db_path

_LEVELS = {
    "DEBUG": logging.DEBUG,
    "INFO": logging.INFO,
    "WARN": logging.WARNING,
    "WARNING": logging.WARNING,
    "ERROR": logging.ERROR,
}


def utc_now() -> str:
    return datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


def configure(path: str) -> None:
    """Point the audit trail at another database file and create its tables."""
    global _db_path
    _db_path = path
    init_db()


def _resolve_db_path() -> str:
    """Return a file path usable by sqlite.

    If the configured path is a directory (e.g. /var/lib/es-node-keeper),
    the DB file is placed inside it.
    """
    p = os.path.abspath(_db_path)

    if os.path.isdir(p):
        p = os.path.join(p, "nodekeeper.db")

    parent = os.path.dirname(p)
    if parent and not os.path.exists(parent):
        os.makedirs(parent, exist_ok=True)

    return p


def connect() -> sqlite3.Connection:
    conn = sqlite3.connect(_resolve_db_path(), check_same_thread=False)
    conn.row_factory = sqlite3.Row
    return conn


def init_db() -> None:
    """Create tables if they do not exist."""
    with connect() as conn:
        conn.executescript(
            """
            CREATE TABLE IF NOT EXISTS events (
              id INTEGER PRIMARY KEY AUTOINCREMENT,
              ts TEXT NOT NULL,
              level TEXT NOT NULL,
              service_name TEXT,
              instance TEXT,
              message TEXT NOT NULL
            );

            CREATE TABLE IF NOT EXISTS restarts (
              id INTEGER PRIMARY KEY AUTOINCREMENT,
              ts TEXT NOT NULL,
              epoch INTEGER NOT NULL,
              service_name TEXT NOT NULL,
              instance TEXT NOT NULL,
              outcome TEXT NOT NULL, -- restarted|failed|dry_run
              detail TEXT
            );

            CREATE INDEX IF NOT EXISTS idx_events_ts ON events(ts);
            CREATE INDEX IF NOT EXISTS idx_restarts_service ON restarts(service_name);
            """
        )


def log_event(level: str, message: str, service_name: str | None = None, instance: str | None = None) -> None:
    """Log an event and, unless it is DEBUG noise, persist it to the events table."""
    level = level.upper()
    extra = {k: v for k, v in (("service", service_name), ("instance", instance)) if v is not None}
    log.log(_LEVELS.get(level, logging.INFO), message, extra=extra)
    if level == "DEBUG":
        return
    try:
        with connect() as conn:
            conn.execute(
                "INSERT INTO events (ts, level, service_name, instance, message) VALUES (?, ?, ?, ?, ?)",
                (utc_now(), level, service_name, instance, message),
            )
    except sqlite3.Error as e:
        log.warning("Cannot persist event: %s", e)


@dataclass(frozen=True)
class RestartRow:
    id: int
    ts: str
    epoch: int
    service_name: str
    instance: str
    outcome: str
    detail: str | None


def _rows_to_dataclass(rows: Iterable[sqlite3.Row], cls: Any) -> list[Any]:
    out: list[Any] = []
    for r in rows:
        out.append(cls(**dict(r)))
    return out


def record_restart(service_name: str, instance: str, epoch: int, outcome: str, detail: str | None = None) -> None:
    with connect() as conn:
        conn.execute(
            """
            INSERT INTO restarts (ts, epoch, service_name, instance, outcome, detail)
            VALUES (?, ?, ?, ?, ?, ?)
            """,
            (utc_now(), int(epoch), service_name, instance, outcome, detail),
        )


def list_restarts(service_name: str | None = None, limit: int = 100) -> list[RestartRow]:
    with connect() as conn:
        if service_name:
            cur = conn.execute(
                "SELECT * FROM restarts WHERE service_name=? ORDER BY id DESC LIMIT ?",
                (service_name, limit),
            )
        else:
            cur = conn.execute("SELECT * FROM restarts ORDER BY id DESC LIMIT ?", (limit,))
        return _rows_to_dataclass(cur.fetchall(), RestartRow)


def latest_events(limit: int = 100) -> list[dict[str, Any]]:
    with connect() as conn:
        rows = conn.execute("SELECT * FROM events ORDER BY id DESC LIMIT ?", (limit,)).fetchall()
        return [dict(r) for r in rows]
