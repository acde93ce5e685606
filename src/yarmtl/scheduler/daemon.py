"""
Reminder daemon: fires once per day at a fixed local time.

The daemon runs a background thread that:
1. Computes the next fire time (today or tomorrow at ``fire_at``)
2. Sleeps on a stop event in short slices, re-checking the wall clock after
   each slice so suspend/resume cannot make it miss a day. Only the wall
   clock decides when to fire, and the next fire time always moves forward
   from the previous one, so setting the clock back never repeats a day
3. On each tick: reloads tasks.md, builds the reminder list, hands it to the
   notifier and retries any queued git push

A failing tick is logged and the loop carries on; only stop() (or process
termination) ends it.
"""

import logging
import threading
from datetime import date, datetime, timedelta
from datetime import time as dt_time
from pathlib import Path
from typing import Callable, List, Optional, Protocol, Sequence

from yarmtl.scheduler.queries import Reminder, compose_reminders
from yarmtl.store.task_store import TaskStore
from yarmtl.versioning.git import Versioning

log = logging.getLogger(__name__)

# Longest single sleep; bounds how late a tick can be after a clock jump
_MAX_SLEEP = 60.0


class Notifier(Protocol):
    def send(self, reminders: Sequence[Reminder]) -> int:
        ...


def next_fire_time(now: datetime, fire_at: dt_time) -> datetime:
    """The first datetime at ``fire_at`` that is strictly after ``now``."""
    candidate = datetime.combine(now.date(), fire_at)
    if candidate <= now:
        candidate += timedelta(days=1)
    return candidate


class ReminderDaemon:
    """
    Daily reminder scheduler.

    Usage:
        daemon = ReminderDaemon(tasks_file, notifier, fire_at=time(5, 0))
        daemon.start()
        ...
        daemon.stop()
    """

    def __init__(
        self,
        tasks_file: Path,
        notifier: Notifier,
        *,
        fire_at: dt_time = dt_time(5, 0),
        versioning: Optional[Versioning] = None,
        clock: Callable[[], datetime] = datetime.now,
        max_sleep: Optional[float] = None,
    ) -> None:
        self._tasks_file = tasks_file
        self._notifier = notifier
        self._fire_at = fire_at
        self._versioning = versioning
        self._clock = clock
        self._max_sleep = max_sleep or _MAX_SLEEP
        self._stop_event = threading.Event()
        self._thread: Optional[threading.Thread] = None
        self.ticks = 0

    def start(self) -> None:
        """Start the scheduler thread (daemon)."""
        log.info("Starting reminder daemon (daily at %s)", self._fire_at.strftime("%H:%M"))
        self._stop_event.clear()
        self._thread = threading.Thread(target=self._run_loop, daemon=True, name="yarmtl-daemon")
        self._thread.start()

    def stop(self) -> None:
        """Signal the scheduler thread to stop and wait for it."""
        log.info("Stopping reminder daemon")
        self._stop_event.set()
        if self._thread:
            self._thread.join(timeout=self._max_sleep + 2)

    def run_forever(self) -> None:
        """Run the scheduler loop in the calling thread until stop() is called."""
        log.info("Reminder daemon running in foreground (daily at %s)", self._fire_at.strftime("%H:%M"))
        self._run_loop()

    # ------------------------------------------------------------------
    # Work
    # ------------------------------------------------------------------

    def run_once(self, today: Optional[date] = None) -> List[Reminder]:
        """
        Reload the tasks, notify about due/overdue tasks and today's reminders.

        Exceptions propagate; the loop wraps this in tick().
        """
        today = today or self._clock().date()
        store = TaskStore.load(self._tasks_file, versioning=self._versioning, today=today)
        reminders = compose_reminders(store.list(include_done=False), today)
        self._notifier.send(reminders)

        if self._versioning is not None:
            self._versioning.retry_push()

        return reminders

    def tick(self) -> None:
        """One scheduled run. Never raises."""
        self.ticks += 1
        log.info("Running daily reminder check")
        try:
            reminders = self.run_once()
            log.info("Reminder check complete: %d reminder(s)", len(reminders))
        except Exception:
            log.exception("Reminder check failed")

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    def _run_loop(self) -> None:
        """Main scheduling loop, runs until stop_event is set."""
        next_run = next_fire_time(self._clock(), self._fire_at)
        log.info("Next reminder check at %s", next_run.isoformat(sep=" ", timespec="minutes"))

        while not self._stop_event.is_set():
            now = self._clock()
            if now < next_run:
                remaining = (next_run - now).total_seconds()
                self._stop_event.wait(min(remaining, self._max_sleep))
                continue

            self.tick()
            next_run = next_fire_time(max(self._clock(), next_run), self._fire_at)
            log.info("Next reminder check at %s", next_run.isoformat(sep=" ", timespec="minutes"))
