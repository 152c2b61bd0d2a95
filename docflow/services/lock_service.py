"""
Lock Manager — time-based and manual locks with an unlock request loop.

Generic over every lockable type in LOCKABLES (Task, ChecklistFile). A lock is
set by the scheduler when a task's due date has passed (auto_lock /
sweep_overdue_tasks) or by an administrator (manual_lock), and is lifted only
by an approved UnlockRequest or a direct_unlock. Clearing the lock and
resolving the request always happen in the same commit.

At most one pending UnlockRequest exists per lockable. The service checks
first, and the partial unique index decides races between concurrent
requesters (the loser gets DuplicatePendingError).

Usage:
    from docflow.services import lock_service

    lock_service.request_unlock("task", task_id, staff, reason="Need one more day")
    lock_service.review_unlock_request(request_id, "approve", admin)
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable

from sqlalchemy import select

from docflow.core.exceptions import (
    DuplicatePendingError,
    InvalidStateError,
    NotFoundError,
    ValidationFailedError,
)
from docflow.models import db
from docflow.models.checklist import ChecklistFile
from docflow.models.ledger import utcnow
from docflow.models.locking import UNLOCK_DECISIONS, UNLOCK_TRANSITIONS, Task, UnlockRequest
from docflow.services.authorization import SYSTEM_ACTOR, check_transition
from docflow.services.workflow_engine import apply_transition, audit_event
from docflow.utils.helpers import commit_or_raise, flush_or_raise

logger = logging.getLogger(__name__)

DIRECT_UNLOCK_NOTE = "Directly unlocked by admin"
FINALIZED_UNLOCK_NOTE = "Checklist finalized; its files stay locked"


# ═════════════════════════════════════════════════════════════════════════════
# Lockable registry
# ═════════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True)
class LockableKind:
    """How the lock manager reads one lockable type."""

    model: type
    label: str
    is_done: Callable
    project_of: Callable
    unlock_blocker: Callable = lambda obj: None


def _file_unlock_blocker(cfile: ChecklistFile) -> str | None:
    if cfile.checklist.status == "finalized":
        return f"ChecklistFile #{cfile.id} belongs to a finalized checklist"
    return None


LOCKABLES: dict[str, LockableKind] = {
    "task": LockableKind(
        model=Task,
        label="Task",
        is_done=lambda t: t.status == "done",
        project_of=lambda t: t.project_id,
    ),
    "checklist_file": LockableKind(
        model=ChecklistFile,
        label="ChecklistFile",
        is_done=lambda f: f.status in ("verified", "closed"),
        project_of=lambda f: f.checklist.project_id,
        unlock_blocker=_file_unlock_blocker,
    ),
}


def _kind(lockable_type: str) -> LockableKind:
    kind = LOCKABLES.get(lockable_type)
    if kind is None:
        raise ValidationFailedError(
            f"Unknown lockable type: {lockable_type}",
            details={"allowed": sorted(LOCKABLES)},
        )
    return kind


def get_lockable_or_404(lockable_type: str, lockable_id: int):
    kind = _kind(lockable_type)
    obj = db.session.get(kind.model, lockable_id)
    if obj is None:
        raise NotFoundError(kind.label, lockable_id)
    return obj


def _get_request_or_404(request_id: int) -> UnlockRequest:
    req = db.session.get(UnlockRequest, request_id)
    if req is None:
        raise NotFoundError("UnlockRequest", request_id)
    return req


def _pending_request(lockable_type: str, lockable_id: int) -> UnlockRequest | None:
    stmt = select(UnlockRequest).where(
        UnlockRequest.lockable_type == lockable_type,
        UnlockRequest.lockable_id == lockable_id,
        UnlockRequest.status == "pending",
    )
    return db.session.execute(stmt).scalar_one_or_none()


def _set_lock(obj, locked: bool, now: datetime | None = None) -> None:
    obj.is_locked = locked
    obj.locked_at = (now or utcnow()) if locked else None


def _ensure_unlockable(kind: LockableKind, obj) -> None:
    reason = kind.unlock_blocker(obj)
    if reason:
        raise InvalidStateError(reason, current=obj.to_dict())


# ═════════════════════════════════════════════════════════════════════════════
# Locking
# ═════════════════════════════════════════════════════════════════════════════


def auto_lock(lockable_type: str, lockable_id: int, actor=None, now: datetime | None = None) -> dict:
    """
    Scheduler lock. Already locked or done → no-op with ``changed=False``.
    """
    actor = actor or SYSTEM_ACTOR
    check_transition(actor, "lock.auto_lock")
    kind = _kind(lockable_type)
    obj = get_lockable_or_404(lockable_type, lockable_id)

    if obj.is_locked or kind.is_done(obj):
        return {"changed": False, "lockable": obj.to_dict()}

    _set_lock(obj, True, now)
    audit_event(entity_type=lockable_type, entity_id=obj.id, action="lock.auto_lock",
                actor=actor.id, project_id=kind.project_of(obj),
                diff={"is_locked": {"old": False, "new": True}})
    commit_or_raise(current=obj.to_dict())

    logger.info("Auto-locked %s #%s", kind.label, obj.id,
                extra={"lockable_type": lockable_type, "lockable_id": obj.id})
    return {"changed": True, "lockable": obj.to_dict()}


def overdue_cutoff(now: datetime | None = None) -> datetime:
    """Start of the current UTC day; a task due before it is overdue."""
    now = (now or utcnow()).astimezone(timezone.utc)
    return now.replace(hour=0, minute=0, second=0, microsecond=0)


def sweep_overdue_tasks(now: datetime | None = None, actor=None) -> dict:
    """
    Lock every unlocked, not-done task whose due date has passed.

    Idempotent: a second run finds nothing left to lock.

    Returns:
        {"total_checked", "newly_locked", "locked_task_ids"}
    """
    actor = actor or SYSTEM_ACTOR
    check_transition(actor, "lock.auto_lock")
    now = now or utcnow()
    cutoff = overdue_cutoff(now)

    stmt = (
        select(Task)
        .where(
            Task.is_locked.is_(False),
            Task.status != "done",
            Task.due_date.is_not(None),
            Task.due_date < cutoff,
        )
        .order_by(Task.id)
    )
    overdue = list(db.session.execute(stmt).scalars())

    locked_ids = []
    for task in overdue:
        _set_lock(task, True, now)
        locked_ids.append(task.id)
        audit_event(entity_type="task", entity_id=task.id, action="lock.auto_lock",
                    actor=actor.id, project_id=task.project_id,
                    diff={"is_locked": {"old": False, "new": True}, "due_date": task.due_date})
    if locked_ids:
        commit_or_raise()

    logger.info("Auto-locked %d overdue tasks", len(locked_ids),
                extra={"locked_task_ids": locked_ids})
    return {
        "total_checked": len(overdue),
        "newly_locked": len(locked_ids),
        "locked_task_ids": locked_ids,
    }


def manual_lock(lockable_type: str, lockable_id: int, actor) -> dict:
    """Administrator lock; refused when already locked or already done."""
    check_transition(actor, "lock.manual_lock")
    kind = _kind(lockable_type)
    obj = get_lockable_or_404(lockable_type, lockable_id)

    if obj.is_locked:
        raise InvalidStateError(f"{kind.label} #{obj.id} is already locked", current=obj.to_dict())
    if kind.is_done(obj):
        raise InvalidStateError(
            f"Cannot lock a completed {kind.label} (status '{obj.status}')",
            current=obj.to_dict(),
        )

    _set_lock(obj, True)
    audit_event(entity_type=lockable_type, entity_id=obj.id, action="lock.manual_lock",
                actor=actor.id, project_id=kind.project_of(obj),
                diff={"is_locked": {"old": False, "new": True}})
    commit_or_raise(current=obj.to_dict())

    logger.info("%s manually locked", kind.label,
                extra={"lockable_type": lockable_type, "lockable_id": obj.id, "actor": actor.id})
    return {"lockable": obj.to_dict(), "side_effects": ["locked"]}


# ═════════════════════════════════════════════════════════════════════════════
# Unlocking
# ═════════════════════════════════════════════════════════════════════════════


def request_unlock(lockable_type: str, lockable_id: int, actor, reason: str | None) -> dict:
    """
    Open a pending unlock request.

    Raises:
        InvalidStateError: not locked.
        ValidationFailedError: empty reason.
        DuplicatePendingError: a request is already pending.
    """
    check_transition(actor, "lock.request_unlock")
    kind = _kind(lockable_type)
    obj = get_lockable_or_404(lockable_type, lockable_id)

    if not obj.is_locked:
        raise InvalidStateError(f"{kind.label} #{obj.id} is not locked", current=obj.to_dict())
    _ensure_unlockable(kind, obj)
    reason = (reason or "").strip()
    if not reason:
        raise ValidationFailedError("Reason is required for an unlock request",
                                    current=obj.to_dict(), details={"field": "reason"})

    existing = _pending_request(lockable_type, obj.id)
    if existing is not None:
        raise DuplicatePendingError(
            f"An unlock request is already pending for {kind.label} #{obj.id}",
            current=existing.to_dict(),
        )

    req = UnlockRequest(
        lockable_type=lockable_type,
        lockable_id=obj.id,
        reason=reason,
        requested_by=actor.id,
        status="pending",
    )
    duplicate = DuplicatePendingError(
        f"An unlock request is already pending for {kind.label} #{obj.id}",
    )
    db.session.add(req)
    flush_or_raise(on_integrity_error=duplicate)

    audit_event(entity_type="unlock_request", entity_id=req.id, action="lock.request_unlock",
                actor=actor.id, project_id=kind.project_of(obj),
                diff={"lockable_type": lockable_type, "lockable_id": obj.id, "reason": reason})
    commit_or_raise(on_integrity_error=duplicate)

    logger.info("Unlock requested",
                extra={"lockable_type": lockable_type, "lockable_id": obj.id,
                       "unlock_request_id": req.id, "actor": actor.id})
    return {"unlock_request": req.to_dict(), "side_effects": ["unlock_request_pending"]}


def review_unlock_request(request_id: int, decision: str, actor, review_note: str | None = None) -> dict:
    """
    Approve (lock cleared) or reject (note required, lock kept) a pending request.
    """
    check_transition(actor, "lock.review_unlock")
    if decision not in UNLOCK_DECISIONS:
        raise ValidationFailedError(f"Invalid decision: {decision}",
                                    details={"allowed": sorted(UNLOCK_DECISIONS)})
    req = _get_request_or_404(request_id)
    kind = _kind(req.lockable_type)
    obj = get_lockable_or_404(req.lockable_type, req.lockable_id)

    if decision == "approve" and req.status == "pending":
        _ensure_unlockable(kind, obj)
    previous, _ = apply_transition(req, UNLOCK_TRANSITIONS, decision,
                                   remarks=review_note, label="UnlockRequest")

    req.reviewed_by = actor.id
    req.reviewed_at = utcnow()
    req.review_note = (review_note or "").strip() or None
    was_locked = obj.is_locked
    if decision == "approve":
        _set_lock(obj, False)

    audit_event(entity_type="unlock_request", entity_id=req.id, action=f"lock.unlock_{decision}",
                actor=actor.id, project_id=kind.project_of(obj),
                diff={"status": {"old": previous, "new": req.status},
                      "is_locked": {"old": was_locked, "new": obj.is_locked}})
    commit_or_raise(current=req.to_dict())

    logger.info("Unlock request reviewed",
                extra={"unlock_request_id": req.id, "decision": decision, "actor": actor.id})
    return {
        "unlock_request": req.to_dict(),
        "lockable": obj.to_dict(),
        "side_effects": ["unlocked"] if decision == "approve" else [],
    }


def review_pending_for_lockable(lockable_type: str, lockable_id: int, decision: str, actor,
                                review_note: str | None = None) -> dict:
    """Review whichever request is pending for the lockable."""
    check_transition(actor, "lock.review_unlock")
    kind = _kind(lockable_type)
    obj = get_lockable_or_404(lockable_type, lockable_id)
    req = _pending_request(lockable_type, obj.id)
    if req is None:
        raise NotFoundError(f"Pending UnlockRequest for {kind.label}", obj.id)
    return review_unlock_request(req.id, decision, actor, review_note)


def direct_unlock(lockable_type: str, lockable_id: int, actor) -> dict:
    """Administrator unlock; any pending request is resolved as approved."""
    check_transition(actor, "lock.direct_unlock")
    kind = _kind(lockable_type)
    obj = get_lockable_or_404(lockable_type, lockable_id)

    if not obj.is_locked:
        raise InvalidStateError(f"{kind.label} #{obj.id} is not locked", current=obj.to_dict())
    _ensure_unlockable(kind, obj)

    _set_lock(obj, False)
    resolved = _pending_request(lockable_type, obj.id)
    if resolved is not None:
        resolved.status = "approved"
        resolved.reviewed_by = actor.id
        resolved.reviewed_at = utcnow()
        resolved.review_note = DIRECT_UNLOCK_NOTE

    audit_event(entity_type=lockable_type, entity_id=obj.id, action="lock.direct_unlock",
                actor=actor.id, project_id=kind.project_of(obj),
                diff={"is_locked": {"old": True, "new": False},
                      "resolved_request_id": resolved.id if resolved else None})
    commit_or_raise(current=obj.to_dict())

    logger.info("%s directly unlocked", kind.label,
                extra={"lockable_type": lockable_type, "lockable_id": obj.id, "actor": actor.id})
    return {
        "lockable": obj.to_dict(),
        "resolved_request": resolved.to_dict() if resolved else None,
        "side_effects": ["unlocked"],
    }


def reject_pending_requests(lockable_type: str, lockable_ids: list[int], actor, review_note: str) -> list[int]:
    """
    Resolve every pending request on the given lockables as rejected.

    Runs inside the caller's transaction and leaves the commit to it.
    Returns the ids of the rejected requests.
    """
    kind = _kind(lockable_type)
    if not lockable_ids:
        return []
    stmt = (
        select(UnlockRequest)
        .where(UnlockRequest.lockable_type == lockable_type,
               UnlockRequest.lockable_id.in_(lockable_ids),
               UnlockRequest.status == "pending")
        .order_by(UnlockRequest.id)
    )
    rejected = []
    now = utcnow()
    for req in list(db.session.execute(stmt).scalars()):
        obj = db.session.get(kind.model, req.lockable_id)
        previous, _ = apply_transition(req, UNLOCK_TRANSITIONS, "reject",
                                       remarks=review_note, label="UnlockRequest")
        req.reviewed_by = actor.id
        req.reviewed_at = now
        req.review_note = review_note
        audit_event(entity_type="unlock_request", entity_id=req.id, action="lock.unlock_reject",
                    actor=actor.id, project_id=kind.project_of(obj),
                    diff={"status": {"old": previous, "new": req.status}, "remarks": review_note})
        rejected.append(req.id)
    return rejected


# ═════════════════════════════════════════════════════════════════════════════
# Queries
# ═════════════════════════════════════════════════════════════════════════════


def list_unlock_requests(lockable_type: str, lockable_id: int) -> list[dict]:
    get_lockable_or_404(lockable_type, lockable_id)
    stmt = (
        select(UnlockRequest)
        .where(UnlockRequest.lockable_type == lockable_type,
               UnlockRequest.lockable_id == lockable_id)
        .order_by(UnlockRequest.created_at.desc(), UnlockRequest.id.desc())
    )
    return [r.to_dict() for r in db.session.execute(stmt).scalars()]


def list_pending_unlock_requests() -> list[dict]:
    stmt = (
        select(UnlockRequest)
        .where(UnlockRequest.status == "pending")
        .order_by(UnlockRequest.created_at, UnlockRequest.id)
    )
    return [r.to_dict() for r in db.session.execute(stmt).scalars()]
