"""
Version Ledger — append-only, gapless version history per parent artifact.

Two ledgers share the same rules:
    SUBMISSION_LEDGER: Submission rows under an Assignment
    FILE_LEDGER:       ChecklistFileVersion rows under a ChecklistFile

record_version() computes ``max(version) + 1`` and flips the previous latest
row to ``is_latest = False`` in the caller's transaction. The flip is flushed
before the insert so the partial unique "one latest per parent" index never
sees two latest rows. A concurrent recorder that read the same max loses on
the (parent, version) unique constraint and surfaces as
ConcurrentModificationError; nothing here retries.

Usage:
    from docflow.services.version_ledger import SUBMISSION_LEDGER, record_version

    sub = record_version(SUBMISSION_LEDGER, assignment.id, artifact, actor.id)
"""

import logging
from dataclasses import dataclass

from sqlalchemy import func, select, update

from docflow.core.exceptions import NotFoundError, ValidationFailedError
from docflow.models import db
from docflow.models.assignment import Assignment, Submission
from docflow.models.checklist import ChecklistFile, ChecklistFileVersion
from docflow.utils.helpers import flush_or_raise

logger = logging.getLogger(__name__)

ARTIFACT_FIELDS = ("file_path", "original_name", "file_size", "mime_type")


@dataclass(frozen=True)
class Ledger:
    name: str
    model: type
    parent_model: type
    parent_fk: str

    @property
    def parent_label(self) -> str:
        return self.parent_model.__name__

    def parent_column(self):
        return getattr(self.model, self.parent_fk)


SUBMISSION_LEDGER = Ledger("submission", Submission, Assignment, "assignment_id")
FILE_LEDGER = Ledger("checklist_file", ChecklistFileVersion, ChecklistFile, "checklist_file_id")


def clean_artifact(artifact: dict | None) -> dict:
    """
    Validate an artifact reference.

    ``file_path`` and ``original_name`` are required; ``file_size`` must be a
    non-negative integer when present.
    """
    if not isinstance(artifact, dict):
        raise ValidationFailedError("artifact must be an object",
                                    details={"field": "artifact"})
    missing = [f for f in ("file_path", "original_name")
               if not str(artifact.get(f) or "").strip()]
    if missing:
        raise ValidationFailedError(
            f"artifact is missing: {', '.join(missing)}",
            details={"missing_fields": missing},
        )
    size = artifact.get("file_size")
    if size is not None:
        try:
            size = int(size)
        except (TypeError, ValueError):
            size = -1
        if size < 0:
            raise ValidationFailedError("file_size must be a non-negative integer",
                                        details={"field": "file_size"})
    return {
        "file_path": str(artifact["file_path"]).strip(),
        "original_name": str(artifact["original_name"]).strip(),
        "file_size": size,
        "mime_type": artifact.get("mime_type") or None,
    }


def _require_parent(ledger: Ledger, parent_id: int):
    parent = db.session.get(ledger.parent_model, parent_id)
    if parent is None:
        raise NotFoundError(ledger.parent_label, parent_id)
    return parent


def current_max_version(ledger: Ledger, parent_id: int) -> int:
    stmt = select(func.max(ledger.model.version)).where(ledger.parent_column() == parent_id)
    return db.session.execute(stmt).scalar() or 0


def record_version(
    ledger: Ledger,
    parent_id: int,
    artifact: dict,
    actor_id: str,
    comment: str | None = None,
    **extra,
):
    """
    Append the next version under ``parent_id`` and make it the latest.

    Flushes but does not commit; the calling service owns the transaction.

    Raises:
        NotFoundError: parent does not exist.
        ValidationFailedError: malformed artifact reference.
        ConcurrentModificationError: another recorder won the race.
    """
    _require_parent(ledger, parent_id)
    fields = clean_artifact(artifact)
    version = current_max_version(ledger, parent_id) + 1

    db.session.execute(
        update(ledger.model)
        .where(ledger.parent_column() == parent_id, ledger.model.is_latest.is_(True))
        .values(is_latest=False)
        .execution_options(synchronize_session="fetch")
    )
    flush_or_raise()

    row = ledger.model(
        version=version,
        is_latest=True,
        uploaded_by=actor_id,
        comment=comment,
        **{ledger.parent_fk: parent_id},
        **fields,
        **extra,
    )
    db.session.add(row)
    flush_or_raise()

    logger.info(
        "Recorded %s v%d", ledger.name, version,
        extra={"ledger": ledger.name, "parent_id": parent_id, "version": version, "actor": actor_id},
    )
    return row


def get_history(ledger: Ledger, parent_id: int) -> list:
    """All versions under ``parent_id``, newest first."""
    _require_parent(ledger, parent_id)
    stmt = (
        select(ledger.model)
        .where(ledger.parent_column() == parent_id)
        .order_by(ledger.model.version.desc())
    )
    return list(db.session.execute(stmt).scalars())


def get_latest(ledger: Ledger, parent_id: int):
    stmt = select(ledger.model).where(
        ledger.parent_column() == parent_id, ledger.model.is_latest.is_(True),
    )
    return db.session.execute(stmt).scalar_one_or_none()
