"""
Background job runner.

Jobs register themselves with ``@register_job(name)`` when
``docflow.services.scheduled_jobs`` is imported. ``SchedulerService`` keeps
one ``ScheduledJob`` row per job and runs due jobs from a daemon thread
that wakes every ``SCHEDULER_TICK_SECONDS``. A job is due when it is
enabled and its ``next_run_at`` has passed; each run pushes the following
one ``interval_seconds`` out.

The thread only starts when SCHEDULER_ENABLED is set. Tests, the
``flask run-job`` command and ``POST /api/v1/jobs/<name>/run`` call
``run_job`` directly.
"""

from __future__ import annotations

import logging
import threading
import time
from typing import Callable

from flask import Flask

from docflow.models import db
from docflow.models.scheduling import RUN_FAILED, RUN_SUCCESS, ScheduledJob

logger = logging.getLogger(__name__)

DEFAULT_TICK_SECONDS = 30

_jobs: dict[str, Callable] = {}


def register_job(name: str):
    """Add ``fn(app) -> dict`` to the job table under ``name``."""
    def decorator(fn: Callable) -> Callable:
        if name in _jobs and _jobs[name] is not fn:
            raise ValueError(f"Job '{name}' is already registered")
        _jobs[name] = fn
        return fn
    return decorator


def get_registered_jobs() -> dict[str, Callable]:
    return dict(_jobs)


def _describe(fn: Callable, name: str) -> str:
    doc = (fn.__doc__ or "").strip()
    return doc.splitlines()[0] if doc else f"Scheduled job: {name}"


class SchedulerService:
    _app: Flask | None = None
    _stop: threading.Event | None = None
    _thread: threading.Thread | None = None

    @classmethod
    def init_app(cls, app: Flask) -> None:
        cls._app = app
        app.extensions["scheduler"] = cls
        logger.info("Scheduler bound to app, %d job(s) registered", len(_jobs))

    @classmethod
    def _require_app(cls) -> Flask:
        if cls._app is None:
            raise RuntimeError("SchedulerService.init_app() must be called first")
        return cls._app

    @classmethod
    def _job_row(cls, name: str) -> ScheduledJob:
        """Fetch the job's row, creating it on first sight. Caller commits."""
        row = ScheduledJob.query.filter_by(job_name=name).first()
        if row is None:
            row = ScheduledJob(
                job_name=name,
                description=_describe(_jobs[name], name),
                interval_seconds=cls._require_app().config.get("AUTO_LOCK_INTERVAL_SECONDS", 900),
                is_enabled=True,
            )
            db.session.add(row)
        return row

    @classmethod
    def ensure_jobs_registered(cls) -> list[str]:
        """Create rows for registered jobs that have none yet; returns their names."""
        app = cls._require_app()
        with app.app_context():
            known = {name for (name,) in db.session.query(ScheduledJob.job_name).all()}
            missing = [name for name in _jobs if name not in known]
            for name in missing:
                cls._job_row(name)
            if missing:
                db.session.commit()
                logger.info("Created job rows: %s", ", ".join(missing))
        return missing

    @classmethod
    def run_job(cls, job_name: str) -> dict:
        """
        Run one job now, whether or not it is due or enabled.

        The job body and the bookkeeping use separate app contexts so a job
        that leaves its session in a failed state still gets its run recorded.
        """
        fn = _jobs.get(job_name)
        if fn is None:
            raise KeyError(job_name)
        app = cls._require_app()

        started = time.monotonic()
        result, error, status = None, None, RUN_SUCCESS
        try:
            with app.app_context():
                result = fn(app)
        except Exception as exc:
            status, error = RUN_FAILED, str(exc)
            logger.exception("Job %s failed", job_name)
        duration_ms = int((time.monotonic() - started) * 1000)

        with app.app_context():
            row = cls._job_row(job_name)
            row.record_run(
                status=status,
                duration_ms=duration_ms,
                result=result if isinstance(result, dict) else {"output": result},
                error=error,
            )
            db.session.commit()

        logger.info("Job %s finished: %s in %d ms", job_name, status, duration_ms,
                    extra={"job": job_name, "duration_ms": duration_ms})
        return {
            "job_name": job_name,
            "status": status,
            "duration_ms": duration_ms,
            "result": result,
            "error": error,
        }

    @classmethod
    def list_jobs(cls) -> list[dict]:
        rows = {r.job_name: r for r in ScheduledJob.query.filter(ScheduledJob.job_name.in_(list(_jobs))).all()}
        return [
            {"job_name": name, "description": _describe(fn, name),
             "state": rows[name].to_dict() if name in rows else None}
            for name, fn in _jobs.items()
        ]

    @classmethod
    def toggle_job(cls, job_name: str, enabled: bool) -> dict | None:
        if job_name not in _jobs:
            return None
        row = cls._job_row(job_name)
        row.is_enabled = enabled
        if enabled:
            row.next_run_at = None
        db.session.commit()
        logger.info("Job %s %s", job_name, "enabled" if enabled else "disabled")
        return row.to_dict()

    # ── Background thread ────────────────────────────────────────────────

    @classmethod
    def due_jobs(cls) -> list[str]:
        app = cls._require_app()
        with app.app_context():
            rows = ScheduledJob.query.filter(ScheduledJob.job_name.in_(list(_jobs))).all()
            return [r.job_name for r in rows if r.is_due()]

    @classmethod
    def _tick(cls) -> None:
        try:
            cls.ensure_jobs_registered()
            names = cls.due_jobs()
        except Exception:
            logger.exception("Scheduler tick skipped; job table unavailable")
            return
        for name in names:
            cls.run_job(name)

    @classmethod
    def _loop(cls, tick: float) -> None:
        cls._tick()
        while not cls._stop.wait(tick):
            cls._tick()

    @classmethod
    def start(cls, tick: float | None = None) -> bool:
        """Start the daemon thread; False if it is already running."""
        app = cls._require_app()
        if cls._thread and cls._thread.is_alive():
            return False
        tick = tick or app.config.get("SCHEDULER_TICK_SECONDS", DEFAULT_TICK_SECONDS)
        cls._stop = threading.Event()
        cls._thread = threading.Thread(
            target=cls._loop, args=(tick,), name="docflow-scheduler", daemon=True,
        )
        cls._thread.start()
        logger.info("Scheduler thread started (tick=%ss)", tick)
        return True

    @classmethod
    def stop(cls) -> None:
        if cls._stop is not None:
            cls._stop.set()
        if cls._thread is not None:
            cls._thread.join(timeout=5)
        cls._thread = None
