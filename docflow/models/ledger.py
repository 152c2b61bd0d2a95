"""
Shared column sets for versioned, reviewable artifacts.

    - ArtifactMixin: reference to an externally stored file.
    - VersionRecordMixin: one append-only row of a version ledger
      (Submission per Assignment, ChecklistFileVersion per ChecklistFile).

Ledger rows are never deleted. Once ``is_latest`` flips to False the row is
history and its fields are not written again.
"""

from datetime import datetime, timezone

from docflow.models import db


def utcnow():
    return datetime.now(timezone.utc)


def iso(value):
    return value.isoformat() if value else None


def as_utc(value):
    """SQLite hands back naive datetimes; everything is stored as UTC."""
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class ArtifactMixin:
    """Reference to an externally stored file. The engine never reads content."""

    file_path = db.Column(db.String(500), nullable=False)
    original_name = db.Column(db.String(255), nullable=False)
    file_size = db.Column(db.BigInteger, nullable=True)
    mime_type = db.Column(db.String(120), nullable=True)

    def artifact_dict(self) -> dict:
        return {
            "file_path": self.file_path,
            "original_name": self.original_name,
            "file_size": self.file_size,
            "mime_type": self.mime_type,
        }


class VersionRecordMixin(ArtifactMixin):
    """Columns every ledger row carries."""

    version = db.Column(db.Integer, nullable=False)
    is_latest = db.Column(db.Boolean, nullable=False, default=True)
    uploaded_by = db.Column(db.String(150), nullable=False)
    uploaded_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)
    comment = db.Column(db.Text, nullable=True)

    def version_dict(self) -> dict:
        return {
            "version": self.version,
            "is_latest": self.is_latest,
            "uploaded_by": self.uploaded_by,
            "uploaded_at": iso(self.uploaded_at),
            "comment": self.comment,
            **self.artifact_dict(),
        }


def latest_only_index(name: str, table_column: str):
    """Partial unique index: at most one ``is_latest`` row per parent."""
    return db.Index(
        name,
        table_column,
        unique=True,
        sqlite_where=db.text("is_latest = 1"),
        postgresql_where=db.text("is_latest = true"),
    )
