# Overview: Scheduled background jobs; daily timer thread plus an on-demand entry point.

"""
Job registry and daily scheduler.

WHY: the due-date sweep has to run even when nobody touches an invoice,
and operators need to re-run it by hand after an outage.

DESIGN:
- JOBS maps a stable job name to the callable that does the work.
- run_job() is the single entry point for both the timer thread and manual
  triggers (HTTP, CLI). A re-entrant lock serialises runs, so a manual run
  that overlaps the scheduled one waits instead of double-applying.
- DailyJobScheduler is one daemon thread per app. It sleeps on an Event
  until the next HH:MM (UTC), then runs every registered job inside an app
  context. A failing job is logged and the loop keeps going.
"""

from __future__ import annotations

import os
import threading
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Callable

from flask import Flask, current_app

from .services.invoice_status_service import mark_overdue_invoices
from .time_utils import to_utc_z, utcnow
from .validation import NotFoundError


JOB_INVOICE_STATUS_UPDATES = "invoice-status-updates"


@dataclass(frozen=True)
class Job:
    name: str
    description: str
    func: Callable[[], dict]


JOBS = {
    JOB_INVOICE_STATUS_UPDATES: Job(
        name=JOB_INVOICE_STATUS_UPDATES,
        description="Mark unpaid customer and vendor invoices past their due date as overdue",
        func=mark_overdue_invoices,
    ),
}

_run_lock = threading.RLock()
_last_runs: dict[str, dict] = {}


class UnknownJobError(NotFoundError):
    """Raised when a job name is not registered."""


def run_job(name: str) -> dict:
    """Run one registered job now and return its result."""
    job = JOBS.get(name)
    if job is None:
        raise UnknownJobError(f"Unknown job: {name}. Available: {', '.join(JOBS)}")

    with _run_lock:
        current_app.logger.info("Running job %s", name)
        result = job.func()
        _last_runs[name] = {"finished_at": to_utc_z(utcnow()), "result": result}
    return result


def list_jobs() -> list[dict]:
    hour = current_app.config.get("INVOICE_STATUS_JOB_HOUR", 0)
    minute = current_app.config.get("INVOICE_STATUS_JOB_MINUTE", 0)
    scheduler = current_app.extensions.get("job_scheduler")
    return [
        {
            "name": job.name,
            "description": job.description,
            "schedule": f"daily at {hour:02d}:{minute:02d} UTC",
            "scheduled": scheduler is not None and scheduler.is_running,
            "next_run_at": to_utc_z(scheduler.next_run_at(utcnow())) if scheduler else None,
            "last_run": _last_runs.get(job.name),
        }
        for job in JOBS.values()
    ]


class DailyJobScheduler:
    """Runs every registered job once a day at a fixed UTC wall-clock time."""

    def __init__(self, app: Flask, *, hour: int = 0, minute: int = 0, job_names=None):
        if not (0 <= hour <= 23 and 0 <= minute <= 59):
            raise ValueError("Scheduled time must be a valid HH:MM")
        self.app = app
        self.hour = hour
        self.minute = minute
        self.job_names = list(job_names) if job_names is not None else list(JOBS)
        self._stop = threading.Event()
        self._thread: threading.Thread | None = None

    @property
    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def next_run_at(self, now: datetime) -> datetime:
        candidate = now.replace(hour=self.hour, minute=self.minute, second=0, microsecond=0)
        if candidate <= now:
            candidate += timedelta(days=1)
        return candidate

    def start(self) -> None:
        if self.is_running:
            return
        self._stop.clear()
        self._thread = threading.Thread(target=self._loop, name="daily-job-scheduler", daemon=True)
        self._thread.start()
        self.app.logger.info(
            "Job scheduler started; %s scheduled daily at %02d:%02d UTC",
            ", ".join(self.job_names), self.hour, self.minute,
        )

    def stop(self, timeout: float | None = 5.0) -> None:
        self._stop.set()
        if self._thread is not None:
            self._thread.join(timeout)
        self._thread = None

    def run_pending(self) -> dict:
        """Run every job once inside an app context; failures are logged per job."""
        results = {}
        with self.app.app_context():
            for name in self.job_names:
                try:
                    results[name] = run_job(name)
                except Exception:
                    self.app.logger.exception("Scheduled job %s failed", name)
        return results

    def _loop(self) -> None:
        while not self._stop.is_set():
            now = utcnow()
            delay = (self.next_run_at(now) - now).total_seconds()
            if self._stop.wait(timeout=max(delay, 0)):
                break
            self.run_pending()


def init_scheduler(app: Flask) -> DailyJobScheduler | None:
    """Start the daily scheduler unless disabled (tests, CLI, reloader parent)."""
    if not app.config.get("SCHEDULER_ENABLED", True) or app.testing:
        return None
    # Under the debug reloader only the child process serves requests.
    if app.debug and os.environ.get("WERKZEUG_RUN_MAIN") != "true":
        return None

    scheduler = DailyJobScheduler(
        app,
        hour=int(app.config.get("INVOICE_STATUS_JOB_HOUR", 0)),
        minute=int(app.config.get("INVOICE_STATUS_JOB_MINUTE", 0)),
    )
    scheduler.start()
    app.extensions["job_scheduler"] = scheduler
    return scheduler
