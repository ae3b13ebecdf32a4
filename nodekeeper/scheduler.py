from __future__ import annotations

from threading import Event, Thread
from typing import Callable

from . import db


class Scheduler:
    """Runs ``tick`` every ``interval_s`` seconds until stopped.

    Ticks never overlap: the wait starts when a tick returns. A tick that
    raises is logged and the loop carries on.
    """

    def __init__(self, tick: Callable[[], object], interval_s: float = 30):
        self.tick = tick
        self.interval_s = max(0.0, float(interval_s))
        self.ticks = 0
        self._stop = Event()
        self._thr: Thread | None = None

    @property
    def running(self) -> bool:
        return bool(self._thr and self._thr.is_alive())

    def start(self) -> None:
        if self.running:
            return
        self._stop.clear()
        self._thr = Thread(target=self.run_forever, name="nodekeeper-scheduler", daemon=True)
        self._thr.start()

    def stop(self) -> None:
        self._stop.set()

    def join(self, timeout: float | None = None) -> None:
        if self._thr:
            self._thr.join(timeout)

    def run_forever(self) -> None:
        db.log_event("INFO", "Node keeper loop started")
        while not self._stop.is_set():
            try:
                self.tick()
            except Exception as e:
                db.log_event("ERROR", f"Tick failed: {type(e).__name__}: {e}")
            self.ticks += 1
            self._stop.wait(self.interval_s)
        db.log_event("INFO", "Node keeper loop stopped")
