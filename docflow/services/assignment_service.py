"""
Assignment State Machine — template submission and review lifecycle.

    assigned ──upload──▶ submitted ──approve──▶ verified   (terminal)
                            │  ▲
                       reject  upload
                            ▼  │
                         incomplete

Every upload appends a Submission to the version ledger; only the latest
Submission may be reviewed. Check order on review is fixed:
exists → latest → assignment submitted → remarks.

Usage:
    from docflow.services import assignment_service

    result = assignment_service.upload(assignment_id, artifact, actor)
    assignment_service.review(result["submission"]["id"], "approve", reviewer)
"""

from __future__ import annotations

import logging

from sqlalchemy import select

from docflow.core.exceptions import (
    InvalidStateError,
    NotFoundError,
    StaleSubmissionError,
    ValidationFailedError,
)
from docflow.models import db
from docflow.models.assignment import (
    ASSIGNMENT_TRANSITIONS,
    REVIEW_DECISIONS,
    SUBMISSION_SOURCES,
    Assignment,
    Submission,
)
from docflow.models.ledger import utcnow
from docflow.models.template import TemplateFile
from docflow.services import version_ledger
from docflow.services.authorization import check_transition
from docflow.services.template_service import get_template_or_404
from docflow.services.version_ledger import SUBMISSION_LEDGER
from docflow.services.workflow_engine import apply_transition, audit_event
from docflow.utils.helpers import commit_or_raise, require_int_field

logger = logging.getLogger(__name__)


# ── Lookups ──────────────────────────────────────────────────────────────────


def _get_assignment_or_404(assignment_id: int) -> Assignment:
    assignment = db.session.get(Assignment, assignment_id)
    if assignment is None:
        raise NotFoundError("Assignment", assignment_id)
    return assignment


def _get_submission_or_404(submission_id: int) -> Submission:
    submission = db.session.get(Submission, submission_id)
    if submission is None:
        raise NotFoundError("Submission", submission_id)
    return submission


def get_assignment(assignment_id: int) -> dict:
    assignment = _get_assignment_or_404(assignment_id)
    d = assignment.to_dict()
    latest = version_ledger.get_latest(SUBMISSION_LEDGER, assignment.id)
    d["latest_submission"] = latest.to_dict() if latest else None
    return d


# ── Assign ───────────────────────────────────────────────────────────────────


def assign_template(template_file_id: int, project_id: int, actor, assignee_id: str | None = None) -> dict:
    """
    Bind a published template to a project.

    Raises:
        NotFoundError: unknown template.
        InvalidStateError: template superseded, or already assigned to the project.
    """
    check_transition(actor, "assignment.assign")
    project_id = require_int_field(project_id, "project_id")
    template_file_id = require_int_field(template_file_id, "template_file_id")

    template = get_template_or_404(template_file_id)
    if template.is_superseded:
        raise InvalidStateError(
            f"TemplateFile #{template.id} is superseded by #{template.superseded_by_id}",
            current=template.to_dict(include_attachments=False),
        )

    existing = db.session.execute(
        select(Assignment).where(
            Assignment.project_id == project_id,
            Assignment.template_file_id == template.id,
        )
    ).scalar_one_or_none()
    if existing is not None:
        raise InvalidStateError(
            f"TemplateFile #{template.id} is already assigned to project {project_id}",
            current=existing.to_dict(),
        )

    assignment = Assignment(
        template_file_id=template.id,
        project_id=project_id,
        assignee_id=assignee_id,
        status="assigned",
        assigned_by=actor.id,
    )
    db.session.add(assignment)
    db.session.flush()

    audit_event(entity_type="assignment", entity_id=assignment.id,
                action="assignment.assign", actor=actor.id, project_id=project_id,
                diff={"template_file_id": template.id, "assignee_id": assignee_id})
    commit_or_raise()

    logger.info("Template assigned",
                extra={"assignment_id": assignment.id, "project_id": project_id, "actor": actor.id})
    return assignment.to_dict()


# ── Ledger wrappers ──────────────────────────────────────────────────────────


def record_version(assignment_id: int, artifact: dict, actor, comment: str | None = None,
                   source: str = "client") -> Submission:
    """Append a Submission under the assignment; the caller commits."""
    return version_ledger.record_version(
        SUBMISSION_LEDGER, assignment_id, artifact, actor.id, comment,
        status="submitted", submission_source=source,
    )


def get_history(assignment_id: int) -> list[dict]:
    """Submissions of one assignment, newest first."""
    return [s.to_dict() for s in version_ledger.get_history(SUBMISSION_LEDGER, assignment_id)]


# ── Transitions ──────────────────────────────────────────────────────────────


def upload(assignment_id: int, artifact: dict, actor, comment: str | None = None,
           source: str = "client") -> dict:
    """
    Upload a new version and move the assignment to ``submitted``.

    Allowed from ``assigned`` or ``incomplete``. Clears ``current_remarks``.

    Returns:
        {"assignment", "submission", "side_effects"}
    """
    check_transition(actor, "assignment.upload")
    if source not in SUBMISSION_SOURCES:
        raise ValidationFailedError(
            f"Invalid submission_source: {source}",
            details={"allowed": sorted(SUBMISSION_SOURCES)},
        )
    if source == "admin_on_behalf":
        check_transition(actor, "assignment.upload_on_behalf")

    version_ledger.clean_artifact(artifact)

    assignment = _get_assignment_or_404(assignment_id)
    previous, _ = apply_transition(assignment, ASSIGNMENT_TRANSITIONS, "upload")
    previous_remarks = assignment.current_remarks
    assignment.current_remarks = None

    submission = record_version(assignment.id, artifact, actor, comment, source)

    audit_event(entity_type="assignment", entity_id=assignment.id,
                action="assignment.upload", actor=actor.id, project_id=assignment.project_id,
                diff={"status": {"old": previous, "new": assignment.status},
                      "version": submission.version,
                      "current_remarks": {"old": previous_remarks, "new": None},
                      "submission_source": source})
    commit_or_raise(current=assignment.to_dict())

    logger.info(
        "Submission uploaded",
        extra={"assignment_id": assignment.id, "version": submission.version,
               "source": source, "actor": actor.id},
    )
    return {
        "assignment": assignment.to_dict(),
        "submission": submission.to_dict(),
        "side_effects": ["submission_awaiting_review"],
    }


def review(submission_id: int, decision: str, actor, remarks: str | None = None) -> dict:
    """
    Approve or reject the latest submission of an assignment.

    Raises:
        ForbiddenError: actor lacks ``submissions:review``.
        NotFoundError: unknown submission.
        StaleSubmissionError: a newer upload superseded this submission.
        InvalidStateError: assignment is not ``submitted`` (e.g. already decided).
        ValidationFailedError: reject without remarks, or unknown decision.
    """
    check_transition(actor, "submission.review")
    if decision not in REVIEW_DECISIONS:
        raise ValidationFailedError(
            f"Invalid decision: {decision}",
            details={"allowed": sorted(REVIEW_DECISIONS)},
        )

    submission = _get_submission_or_404(submission_id)
    assignment = submission.assignment
    if not submission.is_latest:
        latest = version_ledger.get_latest(SUBMISSION_LEDGER, assignment.id)
        raise StaleSubmissionError(
            f"Submission v{submission.version} has been superseded"
            + (f" by v{latest.version}" if latest else ""),
            current=assignment.to_dict(),
            details={"submission": submission.to_dict(),
                     "latest_submission_id": latest.id if latest else None},
        )

    previous, _ = apply_transition(assignment, ASSIGNMENT_TRANSITIONS, decision, remarks=remarks)

    now = utcnow()
    remarks = (remarks or "").strip() or None
    submission.reviewed_by = actor.id
    submission.reviewed_at = now
    submission.review_remarks = remarks
    if decision == "approve":
        submission.status = "approved"
        assignment.verified_by = actor.id
        assignment.verified_at = now
        assignment.current_remarks = None
        side_effects = ["assignment_verified", "download_disabled"]
    else:
        submission.status = "rejected"
        assignment.current_remarks = remarks
        side_effects = ["resubmission_required"]

    audit_event(entity_type="submission", entity_id=submission.id,
                action=f"submission.{decision}", actor=actor.id, project_id=assignment.project_id,
                diff={"assignment_status": {"old": previous, "new": assignment.status},
                      "version": submission.version, "remarks": remarks})
    commit_or_raise(current=assignment.to_dict())

    logger.info(
        "Submission reviewed",
        extra={"assignment_id": assignment.id, "submission_id": submission.id,
               "decision": decision, "actor": actor.id},
    )
    return {
        "assignment": assignment.to_dict(),
        "submission": submission.to_dict(),
        "side_effects": side_effects,
    }


def get_download(submission_id: int, actor) -> dict:
    """
    Artifact reference of a submission.

    Verified assignments are read-only and their artifacts are not handed out.
    """
    submission = _get_submission_or_404(submission_id)
    assignment = submission.assignment
    if assignment.status == "verified":
        raise InvalidStateError(
            "Download is disabled once the assignment is verified",
            current=assignment.to_dict(),
        )
    logger.info("Submission download",
                extra={"submission_id": submission.id, "actor": getattr(actor, "id", None)})
    return {"submission_id": submission.id, "version": submission.version,
            **submission.artifact_dict()}


# ── Project views ────────────────────────────────────────────────────────────


def list_project_assignments(project_id: int) -> list[dict]:
    stmt = (
        select(Assignment)
        .where(Assignment.project_id == project_id)
        .order_by(Assignment.assigned_at.desc(), Assignment.id.desc())
    )
    return [a.to_dict() for a in db.session.execute(stmt).scalars()]


def get_project_history(project_id: int) -> list[dict]:
    """Every submission across the project's assignments, newest upload first."""
    stmt = (
        select(Submission, Assignment, TemplateFile)
        .join(Assignment, Submission.assignment_id == Assignment.id)
        .join(TemplateFile, Assignment.template_file_id == TemplateFile.id)
        .where(Assignment.project_id == project_id)
        .order_by(Submission.uploaded_at.desc(), Submission.id.desc())
    )
    history = []
    for submission, assignment, template in db.session.execute(stmt):
        d = submission.to_dict()
        d["assignment_status"] = assignment.status
        d["template"] = {"id": template.id, "title": template.title, "category": template.category}
        history.append(d)
    return history
