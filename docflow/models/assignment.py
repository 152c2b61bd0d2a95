"""
Template assignment models.

Models:
    - Assignment: binding of one TemplateFile to one project (optionally one
      assignee), carrying the submission/review status.
    - Submission: one versioned upload under an Assignment (append-only).

Lifecycle:
    assigned → submitted → verified                  (terminal success)
    submitted → incomplete → submitted               (rejection loop)
"""

from docflow.models import db
from docflow.models.ledger import VersionRecordMixin, iso, latest_only_index, utcnow

# ── Constants ────────────────────────────────────────────────────────────────

ASSIGNMENT_STATUSES = {"assigned", "submitted", "incomplete", "verified"}
SUBMISSION_STATUSES = {"submitted", "rejected", "approved"}
SUBMISSION_SOURCES = {"client", "admin_on_behalf"}
REVIEW_DECISIONS = {"approve", "reject"}

# action → allowed source states, target state, whether remarks are mandatory
ASSIGNMENT_TRANSITIONS = {
    "upload":  {"from": ["assigned", "incomplete"], "to": "submitted"},
    "approve": {"from": ["submitted"], "to": "verified"},
    "reject":  {"from": ["submitted"], "to": "incomplete", "remarks": True},
}


class Assignment(db.Model):
    """
    One project ↔ template pairing.

    Business rules:
    - ``current_remarks`` is non-null only while status = incomplete.
    - ``verified_by`` / ``verified_at`` are set only once verified.
    - verified is terminal: no further upload, no artifact download.
    """

    __tablename__ = "template_assignments"

    id = db.Column(db.Integer, primary_key=True)
    template_file_id = db.Column(
        db.Integer,
        db.ForeignKey("template_files.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )
    project_id = db.Column(db.Integer, nullable=False, index=True,
                           comment="External project reference")
    assignee_id = db.Column(db.String(150), nullable=True, index=True)

    status = db.Column(db.String(20), nullable=False, default="assigned",
                       comment="assigned | submitted | incomplete | verified")
    assigned_by = db.Column(db.String(150), nullable=False)
    assigned_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)
    verified_by = db.Column(db.String(150), nullable=True)
    verified_at = db.Column(db.DateTime(timezone=True), nullable=True)
    current_remarks = db.Column(db.Text, nullable=True)

    row_version = db.Column(db.Integer, nullable=False, default=1)

    template_file = db.relationship("TemplateFile")
    submissions = db.relationship(
        "Submission",
        back_populates="assignment",
        order_by="Submission.version.desc()",
        lazy="dynamic",
    )

    __table_args__ = (
        db.UniqueConstraint("project_id", "template_file_id", name="uq_assignment_project_template"),
    )
    __mapper_args__ = {"version_id_col": row_version}

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "template_file_id": self.template_file_id,
            "template_title": self.template_file.title if self.template_file else None,
            "project_id": self.project_id,
            "assignee_id": self.assignee_id,
            "status": self.status,
            "assigned_by": self.assigned_by,
            "assigned_at": iso(self.assigned_at),
            "verified_by": self.verified_by,
            "verified_at": iso(self.verified_at),
            "current_remarks": self.current_remarks,
        }

    def __repr__(self):
        return f"<Assignment #{self.id} project={self.project_id} [{self.status}]>"


class Submission(VersionRecordMixin, db.Model):
    """
    Versioned client (or admin-on-behalf) upload.

    ``version`` is gapless from 1 within an Assignment; exactly one row per
    Assignment has ``is_latest`` set.
    """

    __tablename__ = "client_submissions"

    id = db.Column(db.Integer, primary_key=True)
    assignment_id = db.Column(
        db.Integer,
        db.ForeignKey("template_assignments.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    status = db.Column(db.String(20), nullable=False, default="submitted",
                       comment="submitted | rejected | approved")
    submission_source = db.Column(db.String(20), nullable=False, default="client")

    reviewed_by = db.Column(db.String(150), nullable=True)
    reviewed_at = db.Column(db.DateTime(timezone=True), nullable=True)
    review_remarks = db.Column(db.Text, nullable=True)

    assignment = db.relationship("Assignment", back_populates="submissions")

    __table_args__ = (
        db.UniqueConstraint("assignment_id", "version", name="uq_submission_assignment_version"),
        latest_only_index("uq_submission_latest", "assignment_id"),
    )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "assignment_id": self.assignment_id,
            "status": self.status,
            "submission_source": self.submission_source,
            "client_comment": self.comment,
            "reviewed_by": self.reviewed_by,
            "reviewed_at": iso(self.reviewed_at),
            "review_remarks": self.review_remarks,
            **self.version_dict(),
        }

    def __repr__(self):
        return f"<Submission #{self.id} v{self.version} [{self.status}]>"
