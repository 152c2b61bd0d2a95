"""
Background job bookkeeping.

One ``ScheduledJob`` row per registered job (today only ``auto_lock_sweep``).
The row is the job's switch (``is_enabled``), its cadence
(``interval_seconds``) and the outcome of its most recent run, so operators
can see from ``GET /api/v1/jobs`` when the sweep last locked anything.
"""

from datetime import timedelta

from docflow.models import db
from docflow.models.ledger import as_utc, iso, utcnow

RUN_SUCCESS = "success"
RUN_FAILED = "failed"
RUN_OUTCOMES = (RUN_SUCCESS, RUN_FAILED)


class ScheduledJob(db.Model):
    __tablename__ = "scheduled_jobs"

    id = db.Column(db.Integer, primary_key=True)
    job_name = db.Column(db.String(100), unique=True, nullable=False)
    description = db.Column(db.String(500), default="")
    interval_seconds = db.Column(db.Integer, nullable=False, default=900)
    is_enabled = db.Column(db.Boolean, nullable=False, default=True)

    last_run_at = db.Column(db.DateTime(timezone=True), nullable=True)
    next_run_at = db.Column(db.DateTime(timezone=True), nullable=True)
    last_run_status = db.Column(db.String(20), nullable=True, comment="success | failed")
    last_run_duration_ms = db.Column(db.Integer, nullable=True)
    last_run_result = db.Column(db.JSON, nullable=True)
    run_count = db.Column(db.Integer, nullable=False, default=0)
    failure_count = db.Column(db.Integer, nullable=False, default=0)
    consecutive_failures = db.Column(db.Integer, nullable=False, default=0)
    last_error = db.Column(db.Text, nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), default=utcnow)
    updated_at = db.Column(db.DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    def is_due(self, now=None) -> bool:
        if not self.is_enabled:
            return False
        if self.next_run_at is None:
            return True
        return as_utc(self.next_run_at) <= (now or utcnow())

    def record_run(self, *, status=RUN_SUCCESS, duration_ms=0, result=None, error=None):
        """Store one execution and schedule the next one."""
        if status not in RUN_OUTCOMES:
            raise ValueError(f"Unknown run status: {status}")
        now = utcnow()
        self.last_run_at = now
        self.next_run_at = now + timedelta(seconds=self.interval_seconds or 0)
        self.last_run_status = status
        self.last_run_duration_ms = duration_ms
        self.last_run_result = result
        self.run_count = (self.run_count or 0) + 1
        if status == RUN_FAILED:
            self.failure_count = (self.failure_count or 0) + 1
            self.consecutive_failures = (self.consecutive_failures or 0) + 1
            self.last_error = str(error) if error else None
        else:
            self.consecutive_failures = 0

    def to_dict(self):
        return {
            "id": self.id,
            "job_name": self.job_name,
            "description": self.description,
            "interval_seconds": self.interval_seconds,
            "is_enabled": self.is_enabled,
            "last_run_at": iso(self.last_run_at),
            "next_run_at": iso(self.next_run_at),
            "last_run_status": self.last_run_status,
            "last_run_duration_ms": self.last_run_duration_ms,
            "last_run_result": self.last_run_result,
            "run_count": self.run_count,
            "failure_count": self.failure_count,
            "consecutive_failures": self.consecutive_failures,
            "last_error": self.last_error,
        }

    def __repr__(self):
        state = "on" if self.is_enabled else "off"
        return f"<ScheduledJob {self.job_name} every {self.interval_seconds}s [{state}]>"
