"""
Template catalogue models.

Models:
    - TemplateFile: immutable document template published by an administrator.
    - TemplateAttachment: ordered blob references belonging to a template.

A TemplateFile is never edited in place once published. Revising it means
creating a new template and pointing ``superseded_by_id`` of the old row at
it; existing assignments keep referencing the version they were given.
"""

from docflow.models import db
from docflow.models.ledger import ArtifactMixin, iso, utcnow


class TemplateFile(db.Model):
    """
    Published document template.

    Business rules:
    - Never mutated after publication; ``supersede`` creates a new row.
    - A superseded template cannot receive new assignments.
    """

    __tablename__ = "template_files"

    id = db.Column(db.Integer, primary_key=True)
    title = db.Column(db.String(255), nullable=False)
    category = db.Column(db.String(100), nullable=True, index=True)
    description = db.Column(db.Text, nullable=True)

    created_by = db.Column(db.String(150), nullable=False)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)
    published_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)
    superseded_by_id = db.Column(
        db.Integer,
        db.ForeignKey("template_files.id", ondelete="SET NULL"),
        nullable=True,
    )

    attachments = db.relationship(
        "TemplateAttachment",
        back_populates="template_file",
        order_by="TemplateAttachment.sort_order",
        cascade="all, delete-orphan",
    )

    @property
    def is_superseded(self) -> bool:
        return self.superseded_by_id is not None

    def to_dict(self, include_attachments: bool = True) -> dict:
        d = {
            "id": self.id,
            "title": self.title,
            "category": self.category,
            "description": self.description,
            "created_by": self.created_by,
            "created_at": iso(self.created_at),
            "published_at": iso(self.published_at),
            "superseded_by_id": self.superseded_by_id,
            "is_superseded": self.is_superseded,
        }
        if include_attachments:
            d["attachments"] = [a.to_dict() for a in self.attachments]
        return d

    def __repr__(self):
        return f"<TemplateFile #{self.id} {self.title!r}>"


class TemplateAttachment(ArtifactMixin, db.Model):
    """One blob of a template, kept in publication order."""

    __tablename__ = "template_attachments"

    id = db.Column(db.Integer, primary_key=True)
    template_file_id = db.Column(
        db.Integer,
        db.ForeignKey("template_files.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    sort_order = db.Column(db.Integer, nullable=False, default=0)

    template_file = db.relationship("TemplateFile", back_populates="attachments")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "template_file_id": self.template_file_id,
            "sort_order": self.sort_order,
            **self.artifact_dict(),
        }
