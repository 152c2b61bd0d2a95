"""
Project task service — the Task side of the lock manager.

Rules:
    - A locked task rejects edits unless the actor holds ``tasks:manage-locks``.
    - ``blocked_reason`` is required when moving to ``blocked`` (an existing
      reason is kept) and cleared when leaving it.
    - A done task only changes by moving its status away from ``done``.
"""

from __future__ import annotations

import logging

from sqlalchemy import select

from docflow.core.exceptions import InvalidStateError, NotFoundError, ValidationFailedError
from docflow.models import db
from docflow.models.locking import TASK_STATUSES, Task
from docflow.services.authorization import check_transition
from docflow.services.workflow_engine import audit_event
from docflow.utils.helpers import commit_or_raise, parse_datetime, require_int_field

logger = logging.getLogger(__name__)

EDITABLE_FIELDS = ("title", "description", "assignee_id", "due_date")


def get_task_or_404(task_id: int) -> Task:
    task = db.session.get(Task, task_id)
    if task is None:
        raise NotFoundError("Task", task_id)
    return task


def get_task(task_id: int) -> dict:
    return get_task_or_404(task_id).to_dict()


def list_project_tasks(project_id: int, assignee_id: str | None = None) -> list[dict]:
    """A project's tasks with their lock state, soonest due first, undated last."""
    stmt = select(Task).where(Task.project_id == project_id)
    if assignee_id:
        stmt = stmt.where(Task.assignee_id == assignee_id)
    stmt = stmt.order_by(Task.due_date.is_(None), Task.due_date, Task.id)
    return [t.to_dict() for t in db.session.execute(stmt).scalars()]


def _parse_due_date(value):
    try:
        return parse_datetime(value)
    except ValueError as exc:
        raise ValidationFailedError(str(exc), details={"field": "due_date"}) from exc


def create_task(data: dict, actor) -> dict:
    check_transition(actor, "task.create")
    title = (data.get("title") or "").strip()
    if not title:
        raise ValidationFailedError("title is required", details={"field": "title"})
    project_id = data.get("project_id")
    if project_id not in (None, ""):
        project_id = require_int_field(project_id, "project_id")
    else:
        project_id = None

    task = Task(
        project_id=project_id,
        title=title,
        description=data.get("description"),
        assignee_id=data.get("assignee_id"),
        status="to_do",
        due_date=_parse_due_date(data.get("due_date")),
        created_by=actor.id,
    )
    db.session.add(task)
    db.session.flush()
    audit_event(entity_type="task", entity_id=task.id, action="task.create",
                actor=actor.id, project_id=task.project_id, diff={"title": title})
    commit_or_raise()

    logger.info("Task created", extra={"task_id": task.id, "actor": actor.id})
    return task.to_dict()


def _require_unlocked(task: Task, actor) -> None:
    if task.is_locked and not actor.has("tasks:manage-locks"):
        raise InvalidStateError(
            f"Task #{task.id} is locked because it passed its due date; request an unlock to modify it",
            current=task.to_dict(),
            details={"is_locked": True},
        )


def update_task(task_id: int, data: dict, actor) -> dict:
    """Edit descriptive fields (title, description, assignee, due date)."""
    check_transition(actor, "task.update_status")
    task = get_task_or_404(task_id)
    _require_unlocked(task, actor)
    if task.status == "done":
        raise InvalidStateError("Completed tasks cannot be edited", current=task.to_dict())

    changes = {}
    for field in EDITABLE_FIELDS:
        if field not in data:
            continue
        value = _parse_due_date(data[field]) if field == "due_date" else data[field]
        if field == "title" and not (value or "").strip():
            raise ValidationFailedError("title cannot be empty", details={"field": "title"})
        old = getattr(task, field)
        if old != value:
            changes[field] = {"old": old, "new": value}
            setattr(task, field, value)

    if changes:
        audit_event(entity_type="task", entity_id=task.id, action="task.update",
                    actor=actor.id, project_id=task.project_id, diff=changes)
        commit_or_raise(current=task.to_dict())
    return task.to_dict()


def update_status(task_id: int, status: str, actor, blocked_reason: str | None = None) -> dict:
    check_transition(actor, "task.update_status")
    if status not in TASK_STATUSES:
        raise ValidationFailedError(f"Invalid status: {status}", details={"allowed": sorted(TASK_STATUSES)})
    task = get_task_or_404(task_id)
    _require_unlocked(task, actor)

    blocked_reason = (blocked_reason or "").strip() or None
    if status == "blocked" and not (blocked_reason or task.blocked_reason):
        raise ValidationFailedError(
            "Blocked reason is required when setting status to blocked",
            current=task.to_dict(),
            details={"field": "blocked_reason"},
        )

    previous = task.status
    task.status = status
    if status == "blocked":
        task.blocked_reason = blocked_reason or task.blocked_reason
    else:
        task.blocked_reason = None

    audit_event(entity_type="task", entity_id=task.id, action="task.update_status",
                actor=actor.id, project_id=task.project_id,
                diff={"status": {"old": previous, "new": status}})
    commit_or_raise(current=task.to_dict())

    logger.info("Task status changed",
                extra={"task_id": task.id, "from_status": previous, "to_status": status})
    return task.to_dict()
