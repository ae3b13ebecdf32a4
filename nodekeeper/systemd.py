from __future__ import annotations

import calendar
import re
import subprocess
import time
from typing import Callable, Sequence

from . import db
from .errors import ExecutionError, QueryError

SYSTEMCTL = "systemctl"

# "Mon 2024-01-15 10:20:30 UTC"; the weekday and zone are optional.
ACTIVE_ENTER_RE = re.compile(r"^ActiveEnterTimestamp=(.*)$", re.MULTILINE)
SYSTEMD_DATE_RE = re.compile(
    r"^(?:[A-Za-z]{3}\s+)?(?P<date>\d{4}-\d{2}-\d{2})\s+(?P<time>\d{2}:\d{2}:\d{2})(?:\s+(?P<tz>[A-Za-z0-9+\-/_]+))?$"
)
UTC_ZONES = {"UTC", "GMT", "Z", "+0000", "+00"}

Runner = Callable[..., subprocess.CompletedProcess]


def unit_name(service: str) -> str:
    """Map a configured service name to a systemd unit name."""
    return service if re.search(r"\.(service|target|socket|scope)$", service) else f"{service}.service"


def parse_active_enter_timestamp(value: str) -> int:
    """Convert systemd's ActiveEnterTimestamp value to epoch seconds.

    Accepts the default text form and the ``@<epoch>`` form printed with
    ``--timestamp=unix``. Zones other than UTC are read as local time.
    """
    value = value.strip()
    if not value or value == "n/a":
        raise QueryError("unit was never active", kind=QueryError.NOT_FOUND)
    if value.startswith("@"):
        try:
            return int(float(value[1:]))
        except ValueError as e:
            raise QueryError(f"Parse date failed: {value!r}", kind=QueryError.PARSE_FAILED) from e

    m = SYSTEMD_DATE_RE.match(value)
    if not m:
        raise QueryError(f"Parse date failed: {value!r}", kind=QueryError.PARSE_FAILED)
    try:
        parsed = time.strptime(f"{m.group('date')} {m.group('time')}", "%Y-%m-%d %H:%M:%S")
    except ValueError as e:
        raise QueryError(f"Parse date failed: {value!r}", kind=QueryError.PARSE_FAILED) from e
    tz = (m.group("tz") or "").upper()
    if tz in UTC_ZONES:
        return calendar.timegm(parsed)
    return int(time.mktime(parsed))


class SystemdController:
    """Restarts local units and reports when they last became active."""

    def __init__(self, dry_run: bool = False, runner: Runner = subprocess.run):
        self.dry_run = dry_run
        self._run = runner

    def _execute(self, args: Sequence[str]) -> str:
        cmd = [SYSTEMCTL, *args]
        db.log_event("DEBUG", f"Executing {' '.join(cmd)}")
        try:
            proc = self._run(cmd, capture_output=True, text=True, errors="replace")
        except OSError as e:
            raise ExecutionError(f"Command execution fail: {e}", diagnostic=str(e)) from e
        if proc.returncode != 0:
            stderr = (proc.stderr or "").strip()
            raise ExecutionError(f"Command execution fail: exit status {proc.returncode}: {stderr}", diagnostic=stderr)
        return proc.stdout or ""

    def restart(self, service: str) -> None:
        unit = unit_name(service)
        if self.dry_run:
            db.log_event("INFO", f"Dry run, would restart {unit}", service_name=service)
            return
        self._execute(["restart", unit])

    def last_activation(self, service: str) -> int:
        unit = unit_name(service)
        try:
            out = self._execute(["--no-pager", "--property=ActiveEnterTimestamp", "show", unit])
        except ExecutionError as e:
            raise QueryError(str(e), kind=QueryError.NOT_FOUND) from e
        m = ACTIVE_ENTER_RE.search(out)
        if not m:
            raise QueryError("Cannot find timestamp string in command output", kind=QueryError.NOT_FOUND)
        return parse_active_enter_timestamp(m.group(1))
