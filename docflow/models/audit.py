"""
Audit trail.

Every accepted transition appends one ``AuditLog`` row through
``workflow_engine.audit_event``. Rows are never updated or deleted. The
entity is referenced polymorphically by ``(entity_type, entity_id)`` and
``diff`` holds ``{field: {"old": ..., "new": ...}}`` for what changed,
plus free-form context such as remarks or the uploaded version number.
"""

import json

from flask import g, has_request_context

from docflow.models import db
from docflow.models.ledger import iso, utcnow

AUDIT_ENTITY_TYPES = frozenset({
    "template_file",
    "assignment",
    "submission",
    "checklist",
    "checklist_item",
    "checklist_file",
    "task",
    "unlock_request",
})


class AuditLog(db.Model):
    __tablename__ = "audit_logs"
    __table_args__ = (
        db.Index("idx_audit_entity", "entity_type", "entity_id"),
        db.Index("idx_audit_project", "project_id"),
        db.Index("idx_audit_action", "action"),
        db.Index("idx_audit_created", "created_at"),
    )

    id = db.Column(db.Integer, primary_key=True)
    project_id = db.Column(db.Integer, nullable=True)
    entity_type = db.Column(db.String(30), nullable=False)
    entity_id = db.Column(db.String(36), nullable=False)
    action = db.Column(db.String(60), nullable=False,
                       comment="<area>.<operation>, e.g. submission.reject")
    actor = db.Column(db.String(150), nullable=False)
    request_id = db.Column(db.String(64), nullable=True,
                           comment="X-Request-ID of the HTTP call, null for jobs")
    diff = db.Column(db.JSON, nullable=False, default=dict)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "project_id": self.project_id,
            "entity_type": self.entity_type,
            "entity_id": self.entity_id,
            "action": self.action,
            "actor": self.actor,
            "request_id": self.request_id,
            "diff": self.diff or {},
            "created_at": iso(self.created_at),
        }

    def __repr__(self):
        return f"<AuditLog {self.action} {self.entity_type}/{self.entity_id} by {self.actor}>"


def _plain(diff):
    """Dates, Decimals and the like become strings so the JSON column accepts them."""
    return json.loads(json.dumps(diff or {}, default=str))


def _current_request_id():
    return getattr(g, "request_id", None) if has_request_context() else None


def write_audit(
    *,
    entity_type: str,
    entity_id,
    action: str,
    actor: str,
    project_id: int | None = None,
    diff: dict | None = None,
) -> AuditLog:
    """Add one row to the session; the caller's commit inserts it."""
    if entity_type not in AUDIT_ENTITY_TYPES:
        raise ValueError(f"Unknown audit entity type: {entity_type}")
    row = AuditLog(
        project_id=int(project_id) if project_id not in (None, "") else None,
        entity_type=entity_type,
        entity_id=str(entity_id),
        action=action,
        actor=actor or "system",
        request_id=_current_request_id(),
        diff=_plain(diff),
    )
    db.session.add(row)
    return row


def list_audit(entity_type: str | None = None, entity_id=None, limit: int = 200) -> list[dict]:
    """Newest first, optionally narrowed to one entity type or one entity."""
    query = AuditLog.query
    if entity_type:
        query = query.filter_by(entity_type=entity_type)
    if entity_id is not None:
        query = query.filter_by(entity_id=str(entity_id))
    return [row.to_dict() for row in query.order_by(AuditLog.id.desc()).limit(limit)]
