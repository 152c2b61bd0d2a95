"""
Locking models.

Models:
    - Task: project work item with a due date; the time-based auto-lock target.
    - UnlockRequest: pending → approved | rejected decision on lifting a lock.

Lockables are Task and ChecklistFile. UnlockRequest points at either one via
the polymorphic (lockable_type, lockable_id) pair, the same way AuditLog rows
identify their entity.
"""

from docflow.models import db
from docflow.models.ledger import iso, utcnow

# ── Constants ────────────────────────────────────────────────────────────────

LOCKABLE_TYPES = {"task", "checklist_file"}
TASK_STATUSES = {"to_do", "doing", "blocked", "done"}
UNLOCK_REQUEST_STATUSES = {"pending", "approved", "rejected"}
UNLOCK_DECISIONS = {"approve", "reject"}

UNLOCK_TRANSITIONS = {
    "approve": {"from": ["pending"], "to": "approved"},
    "reject":  {"from": ["pending"], "to": "rejected", "remarks": True},
}


class Task(db.Model):
    """
    Project task.

    Business rules:
    - Overdue tasks that are not done are auto-locked by the scheduler.
    - A locked task rejects updates unless the actor may manage locks.
    - ``blocked_reason`` is required while status = blocked.
    """

    __tablename__ = "project_tasks"

    id = db.Column(db.Integer, primary_key=True)
    project_id = db.Column(db.Integer, nullable=True, index=True,
                           comment="External project reference")
    title = db.Column(db.String(255), nullable=False)
    description = db.Column(db.Text, nullable=True)
    assignee_id = db.Column(db.String(150), nullable=True, index=True)
    status = db.Column(db.String(20), nullable=False, default="to_do",
                       comment="to_do | doing | blocked | done")
    blocked_reason = db.Column(db.Text, nullable=True)
    due_date = db.Column(db.DateTime(timezone=True), nullable=True, index=True)

    is_locked = db.Column(db.Boolean, nullable=False, default=False, index=True)
    locked_at = db.Column(db.DateTime(timezone=True), nullable=True)

    created_by = db.Column(db.String(150), nullable=False)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False,
                           default=utcnow, onupdate=utcnow)

    row_version = db.Column(db.Integer, nullable=False, default=1)

    __mapper_args__ = {"version_id_col": row_version}

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "project_id": self.project_id,
            "title": self.title,
            "description": self.description,
            "assignee_id": self.assignee_id,
            "status": self.status,
            "blocked_reason": self.blocked_reason,
            "due_date": iso(self.due_date),
            "is_locked": self.is_locked,
            "locked_at": iso(self.locked_at),
            "created_by": self.created_by,
            "created_at": iso(self.created_at),
            "updated_at": iso(self.updated_at),
        }

    def __repr__(self):
        return f"<Task #{self.id} [{self.status}{' locked' if self.is_locked else ''}]>"


class UnlockRequest(db.Model):
    """
    Request to lift a lock, decided by an administrator.

    At most one pending request per lockable (partial unique index), so two
    racing requests resolve to exactly one winner at commit time.
    """

    __tablename__ = "unlock_requests"

    id = db.Column(db.Integer, primary_key=True)
    lockable_type = db.Column(db.String(30), nullable=False,
                              comment="task | checklist_file")
    lockable_id = db.Column(db.Integer, nullable=False)
    reason = db.Column(db.Text, nullable=False)
    requested_by = db.Column(db.String(150), nullable=False, index=True)
    status = db.Column(db.String(20), nullable=False, default="pending", index=True)
    reviewed_by = db.Column(db.String(150), nullable=True)
    reviewed_at = db.Column(db.DateTime(timezone=True), nullable=True)
    review_note = db.Column(db.Text, nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)

    row_version = db.Column(db.Integer, nullable=False, default=1)

    __table_args__ = (
        db.Index("ix_unlock_lockable", "lockable_type", "lockable_id"),
        db.Index(
            "uq_unlock_one_pending",
            "lockable_type", "lockable_id",
            unique=True,
            sqlite_where=db.text("status = 'pending'"),
            postgresql_where=db.text("status = 'pending'"),
        ),
    )
    __mapper_args__ = {"version_id_col": row_version}

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "lockable_type": self.lockable_type,
            "lockable_id": self.lockable_id,
            "reason": self.reason,
            "requested_by": self.requested_by,
            "status": self.status,
            "reviewed_by": self.reviewed_by,
            "reviewed_at": iso(self.reviewed_at),
            "review_note": self.review_note,
            "created_at": iso(self.created_at),
        }

    def __repr__(self):
        return f"<UnlockRequest #{self.id} {self.lockable_type}/{self.lockable_id} [{self.status}]>"
