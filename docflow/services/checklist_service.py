"""
Item/Field Checklist State Machine.

Two nested machines share the transition engine:

    ChecklistInstance (CHECKLIST_TRANSITIONS)
        draft → in_progress → ready_for_verification
              → verified_passed | verified_failed
        verified_passed → finalized        (locks and closes every file)
        verified_* | finalized → superseded (a new draft version is cloned)

    ChecklistFile (CHECKLIST_FILE_TRANSITIONS)
        uploaded → submitted → under_review → verified
                               under_review → responded → resubmitted → submitted

Completeness is recomputed and stored on every item write:
    completeness_percent = round(filled_mandatory / total_mandatory × 100, 2)
    (100 when the template has no mandatory items)

Usage:
    from docflow.services import checklist_service

    checklist = checklist_service.create_checklist(project_id, template_id, admin)
    checklist_service.update_item(checklist["id"], item_id, "ACME Ltd", staff)
    checklist_service.submit_for_review(checklist["id"], staff)
"""

from __future__ import annotations

import logging
from datetime import date

from sqlalchemy import select

from docflow.core.exceptions import InvalidStateError, NotFoundError, ValidationFailedError
from docflow.models import db
from docflow.models.checklist import (
    CHECKLIST_FILE_TRANSITIONS,
    CHECKLIST_TRANSITIONS,
    EDITABLE_CHECKLIST_STATUSES,
    ITEM_TYPES,
    TEXT_ITEM_TYPES,
    ChecklistFile,
    ChecklistInstance,
    ChecklistItem,
    ChecklistTemplate,
    ChecklistTemplateItem,
)
from docflow.models.ledger import utcnow
from docflow.services import lock_service, version_ledger
from docflow.services.authorization import check_transition
from docflow.services.version_ledger import FILE_LEDGER
from docflow.services.workflow_engine import (
    apply_transition,
    audit_event,
    check_expected_version,
    validate_transition,
)
from docflow.utils.helpers import (
    commit_or_raise,
    flush_or_raise,
    parse_date_input,
    parse_int_input,
    require_int_field,
)

logger = logging.getLogger(__name__)

ITEM_MARKS = {"accepted", "needs_clarification"}
_INACTIVE_STATUSES = {"finalized", "superseded"}


# ═════════════════════════════════════════════════════════════════════════════
# Lookups
# ═════════════════════════════════════════════════════════════════════════════


def _get_template_or_404(template_id: int) -> ChecklistTemplate:
    template = db.session.get(ChecklistTemplate, template_id)
    if template is None:
        raise NotFoundError("ChecklistTemplate", template_id)
    return template


def _get_checklist_or_404(checklist_id: int) -> ChecklistInstance:
    checklist = db.session.get(ChecklistInstance, checklist_id)
    if checklist is None:
        raise NotFoundError("ChecklistInstance", checklist_id)
    return checklist


def _get_item_or_404(checklist: ChecklistInstance, item_id: int) -> ChecklistItem:
    item = db.session.get(ChecklistItem, item_id)
    if item is None or item.checklist_id != checklist.id:
        raise NotFoundError("ChecklistItem", item_id)
    return item


def _get_file_or_404(file_id: int) -> ChecklistFile:
    cfile = db.session.get(ChecklistFile, file_id)
    if cfile is None:
        raise NotFoundError("ChecklistFile", file_id)
    return cfile


def get_checklist(checklist_id: int) -> dict:
    return _get_checklist_or_404(checklist_id).to_dict(include_items=True)


def get_file(file_id: int) -> dict:
    return _get_file_or_404(file_id).to_dict()


# ═════════════════════════════════════════════════════════════════════════════
# Templates
# ═════════════════════════════════════════════════════════════════════════════


def _clean_template_item(raw: dict, position: int) -> dict:
    if not isinstance(raw, dict):
        raise ValidationFailedError(f"items[{position}] must be an object")
    code = str(raw.get("item_code") or "").strip()
    label = str(raw.get("label") or "").strip()
    if not code or not label:
        raise ValidationFailedError(
            f"items[{position}] requires item_code and label",
            details={"position": position},
        )
    item_type = raw.get("item_type") or "text"
    if item_type not in ITEM_TYPES:
        raise ValidationFailedError(
            f"items[{position}] has invalid item_type '{item_type}'",
            details={"allowed": sorted(ITEM_TYPES)},
        )
    options = raw.get("dropdown_options")
    if item_type == "dropdown" and options is not None:
        if not isinstance(options, list) or not all(isinstance(o, str) for o in options):
            raise ValidationFailedError(f"items[{position}].dropdown_options must be a list of strings")
    try:
        sort_order = parse_int_input(raw.get("sort_order", position), minimum=0)
    except ValueError as exc:
        raise ValidationFailedError(
            f"items[{position}].sort_order: {exc}",
            details={"position": position, "field": "sort_order"},
        ) from exc
    return {
        "item_code": code,
        "label": label,
        "item_type": item_type,
        "help_text": raw.get("help_text"),
        "is_mandatory": bool(raw.get("is_mandatory", False)),
        "section_group": raw.get("section_group"),
        "sort_order": sort_order,
        "dropdown_options": options if item_type == "dropdown" else None,
    }


def create_template(data: dict, actor) -> dict:
    """Define a checklist template with its ordered item definitions."""
    check_transition(actor, "checklist_template.create")

    name = (data.get("name") or "").strip()
    if not name:
        raise ValidationFailedError("name is required", details={"field": "name"})
    raw_items = data.get("items") or []
    if not isinstance(raw_items, list):
        raise ValidationFailedError("items must be a list", details={"field": "items"})

    cleaned = [_clean_template_item(raw, i) for i, raw in enumerate(raw_items)]
    codes = [c["item_code"] for c in cleaned]
    duplicates = sorted({c for c in codes if codes.count(c) > 1})
    if duplicates:
        raise ValidationFailedError("item_code must be unique", details={"duplicates": duplicates})

    template = ChecklistTemplate(
        name=name,
        category=data.get("category"),
        expected_tat_days=data.get("expected_tat_days"),
        created_by=actor.id,
    )
    template.items = [ChecklistTemplateItem(**c) for c in cleaned]
    db.session.add(template)
    commit_or_raise()

    logger.info("Checklist template created",
                extra={"checklist_template_id": template.id, "items": len(cleaned)})
    return template.to_dict()


def get_template(template_id: int) -> dict:
    return _get_template_or_404(template_id).to_dict()


# ═════════════════════════════════════════════════════════════════════════════
# Completeness
# ═════════════════════════════════════════════════════════════════════════════


def compute_completeness(checklist: ChecklistInstance) -> dict:
    """Pure recomputation from item state; no writes."""
    items = checklist.ordered_items()
    mandatory = [i for i in items if i.template_item.is_mandatory]
    filled = [i for i in mandatory if i.is_filled()]
    missing = [
        {"item_id": i.id, "item_code": i.template_item.item_code, "label": i.template_item.label}
        for i in mandatory if not i.is_filled()
    ]
    percent = round(len(filled) / len(mandatory) * 100, 2) if mandatory else 100.0
    return {
        "checklist_id": checklist.id,
        "total_items": len(items),
        "mandatory_items": len(mandatory),
        "filled_mandatory": len(filled),
        "completeness_percent": percent,
        "missing_mandatory_items": missing,
    }


def _refresh_completeness(checklist: ChecklistInstance) -> dict:
    result = compute_completeness(checklist)
    checklist.completeness_percent = result["completeness_percent"]
    return result


def completeness(checklist_id: int) -> dict:
    return compute_completeness(_get_checklist_or_404(checklist_id))


def _completion_side_effects(result: dict) -> list[str]:
    if result["completeness_percent"] >= 100:
        return ["checklist_eligible_for_verification"]
    return []


# ═════════════════════════════════════════════════════════════════════════════
# Instances
# ═════════════════════════════════════════════════════════════════════════════


def _active_instance(project_id: int, template_id: int) -> ChecklistInstance | None:
    stmt = select(ChecklistInstance).where(
        ChecklistInstance.project_id == project_id,
        ChecklistInstance.template_id == template_id,
        ChecklistInstance.status != "superseded",
    )
    return db.session.execute(stmt).scalar_one_or_none()


def create_checklist(project_id: int, template_id: int, actor) -> dict:
    """
    Instantiate a template for a project, one empty item per definition.

    Raises:
        NotFoundError: unknown template.
        InvalidStateError: the project already has an active instance of it.
    """
    check_transition(actor, "checklist.create")
    project_id = require_int_field(project_id, "project_id")
    template_id = require_int_field(template_id, "template_id")
    template = _get_template_or_404(template_id)

    existing = _active_instance(project_id, template.id)
    if existing is not None:
        raise InvalidStateError(
            f"Project {project_id} already has checklist #{existing.id} for this template",
            current=existing.to_dict(),
        )

    checklist = ChecklistInstance(
        project_id=project_id,
        template_id=template.id,
        version=1,
        status="draft",
        created_by=actor.id,
    )
    checklist.items = [ChecklistItem(template_item=ti) for ti in template.items]
    db.session.add(checklist)
    db.session.flush()
    _refresh_completeness(checklist)

    audit_event(entity_type="checklist", entity_id=checklist.id,
                action="checklist.create", actor=actor.id, project_id=project_id,
                diff={"template_id": template.id, "version": 1})
    commit_or_raise()

    logger.info("Checklist created",
                extra={"checklist_id": checklist.id, "project_id": project_id, "actor": actor.id})
    return checklist.to_dict(include_items=True)


def _require_transition(checklist: ChecklistInstance, action: str) -> None:
    check = validate_transition(CHECKLIST_TRANSITIONS, checklist.status, action)
    if not check["valid"]:
        raise InvalidStateError(check["reason"], current=checklist.to_dict())


def _require_editable(checklist: ChecklistInstance) -> None:
    if checklist.status not in EDITABLE_CHECKLIST_STATUSES:
        raise InvalidStateError(
            f"Checklist #{checklist.id} cannot be edited in status '{checklist.status}'",
            current=checklist.to_dict(),
            details={"editable_statuses": sorted(EDITABLE_CHECKLIST_STATUSES)},
        )


def _mark_in_progress(checklist: ChecklistInstance) -> str | None:
    """Implicit draft → in_progress and verified_failed → in_progress on edit."""
    if checklist.status == "draft":
        return apply_transition(checklist, CHECKLIST_TRANSITIONS, "start", label="Checklist")[0]
    if checklist.status == "verified_failed":
        return apply_transition(checklist, CHECKLIST_TRANSITIONS, "reopen", label="Checklist")[0]
    return None


def _clear_mark(item: ChecklistItem) -> str:
    """A rewritten item goes back to ``pending`` until the next verify marks it."""
    previous = item.verified_status
    item.verified_status = "pending"
    return previous


def _coerce_value(item: ChecklistItem, value) -> dict:
    """Map a raw value onto the typed column of the item's type."""
    ti = item.template_item
    columns = {"value_text": None, "value_number": None, "value_date": None, "value_boolean": None}
    if value is None or value == "":
        return columns

    if ti.item_type in TEXT_ITEM_TYPES:
        if not isinstance(value, str):
            raise ValidationFailedError(f"'{ti.label}' expects text", details={"item_code": ti.item_code})
        if ti.item_type == "dropdown" and ti.dropdown_options and value not in ti.dropdown_options:
            raise ValidationFailedError(
                f"'{value}' is not an option of '{ti.label}'",
                details={"item_code": ti.item_code, "allowed": ti.dropdown_options},
            )
        columns["value_text"] = value
    elif ti.item_type == "number":
        if isinstance(value, bool):
            raise ValidationFailedError(f"'{ti.label}' expects a number", details={"item_code": ti.item_code})
        try:
            columns["value_number"] = float(value)
        except (TypeError, ValueError) as exc:
            raise ValidationFailedError(
                f"'{ti.label}' expects a number", details={"item_code": ti.item_code},
            ) from exc
    elif ti.item_type == "date":
        try:
            columns["value_date"] = parse_date_input(value)
        except ValueError as exc:
            raise ValidationFailedError(str(exc), details={"item_code": ti.item_code}) from exc
    elif ti.item_type == "boolean":
        if not isinstance(value, bool):
            raise ValidationFailedError(f"'{ti.label}' expects true or false", details={"item_code": ti.item_code})
        columns["value_boolean"] = value
    return columns


def _item_value(item: ChecklistItem):
    for attr in ("value_text", "value_number", "value_date", "value_boolean"):
        v = getattr(item, attr)
        if v is not None:
            return v.isoformat() if isinstance(v, date) else v
    return None


def update_item(checklist_id: int, item_id: int, value, actor) -> dict:
    """
    Write one typed field value and recompute completeness.

    Returns:
        {"item", "completeness", "checklist", "side_effects"}
    """
    check_transition(actor, "checklist.update_item")
    checklist = _get_checklist_or_404(checklist_id)
    item = _get_item_or_404(checklist, item_id)
    _require_editable(checklist)
    if item.is_file_item:
        raise ValidationFailedError(
            f"'{item.template_item.label}' is a file item; upload a file instead",
            details={"item_code": item.template_item.item_code},
        )

    columns = _coerce_value(item, value)
    old_value = _item_value(item)
    previous_status = _mark_in_progress(checklist)
    for attr, v in columns.items():
        setattr(item, attr, v)
    previous_mark = _clear_mark(item)
    item.filled_by = actor.id
    item.filled_at = utcnow()
    result = _refresh_completeness(checklist)

    audit_event(entity_type="checklist_item", entity_id=item.id,
                action="checklist.update_item", actor=actor.id, project_id=checklist.project_id,
                diff={"value": {"old": old_value, "new": _item_value(item)},
                      "verified_status": {"old": previous_mark, "new": item.verified_status},
                      "checklist_status": {"old": previous_status or checklist.status,
                                           "new": checklist.status}})
    commit_or_raise(current=checklist.to_dict())

    logger.info("Checklist item updated",
                extra={"checklist_id": checklist.id, "item_id": item.id,
                       "completeness": result["completeness_percent"]})
    return {
        "item": item.to_dict(),
        "completeness": result,
        "checklist": checklist.to_dict(),
        "side_effects": _completion_side_effects(result),
    }


def upload_file(checklist_id: int, item_id: int, artifact: dict, actor, comment: str | None = None) -> dict:
    """
    Attach a new file (version 1, status ``uploaded``) to a file item.

    A single-``file`` item holds one file; later versions go through
    ``resubmit_file``.
    """
    check_transition(actor, "checklist.upload_file")
    checklist = _get_checklist_or_404(checklist_id)
    item = _get_item_or_404(checklist, item_id)
    _require_editable(checklist)
    if not item.is_file_item:
        raise ValidationFailedError(
            f"'{item.template_item.label}' does not accept files",
            details={"item_code": item.template_item.item_code},
        )
    if item.template_item.item_type == "file" and item.files:
        raise InvalidStateError(
            f"'{item.template_item.label}' already has a file; resubmit it instead",
            current=item.files[0].to_dict(),
        )
    version_ledger.clean_artifact(artifact)

    _mark_in_progress(checklist)
    cfile = ChecklistFile(status="uploaded", version=1)
    item.files.append(cfile)
    flush_or_raise()
    version_ledger.record_version(FILE_LEDGER, cfile.id, artifact, actor.id, comment)
    _clear_mark(item)
    item.filled_by = actor.id
    item.filled_at = utcnow()
    result = _refresh_completeness(checklist)

    audit_event(entity_type="checklist_file", entity_id=cfile.id,
                action="checklist_file.upload", actor=actor.id, project_id=checklist.project_id,
                diff={"item_id": item.id, "version": 1})
    commit_or_raise(current=checklist.to_dict())

    logger.info("Checklist file uploaded",
                extra={"checklist_id": checklist.id, "checklist_file_id": cfile.id, "actor": actor.id})
    return {
        "file": cfile.to_dict(),
        "item": item.to_dict(),
        "completeness": result,
        "side_effects": _completion_side_effects(result),
    }


# ═════════════════════════════════════════════════════════════════════════════
# File transitions
# ═════════════════════════════════════════════════════════════════════════════

_FILE_OPERATIONS = {
    "submit": "file.submit",
    "start_review": "file.start_review",
    "send_back": "file.send_back",
    "resubmit": "file.resubmit",
    "verify": "file.verify",
}


def _transition_file(
    file_id: int,
    action: str,
    actor,
    *,
    remarks: str | None = None,
    expected_version=None,
    artifact: dict | None = None,
    comment: str | None = None,
) -> dict:
    check_transition(actor, _FILE_OPERATIONS[action])
    cfile = _get_file_or_404(file_id)
    checklist = cfile.checklist

    if cfile.is_locked:
        raise InvalidStateError(
            f"ChecklistFile #{cfile.id} is locked",
            current=cfile.to_dict(),
            details={"is_locked": True},
        )
    if checklist.status in _INACTIVE_STATUSES:
        raise InvalidStateError(
            f"Checklist #{checklist.id} is {checklist.status}; its files are read-only",
            current=cfile.to_dict(),
        )
    check_expected_version(cfile, expected_version, label="ChecklistFile")
    if artifact is not None:
        version_ledger.clean_artifact(artifact)

    previous, _ = apply_transition(cfile, CHECKLIST_FILE_TRANSITIONS, action,
                                   remarks=remarks, label="ChecklistFile")
    now = utcnow()
    if action == "submit":
        cfile.submitted_by, cfile.submitted_at = actor.id, now
    elif action == "start_review":
        cfile.reviewed_by, cfile.reviewed_at = actor.id, now
    elif action == "send_back":
        cfile.reviewed_by, cfile.reviewed_at = actor.id, now
        cfile.review_remarks = remarks.strip()
    elif action == "resubmit":
        row = version_ledger.record_version(FILE_LEDGER, cfile.id, artifact, actor.id, comment)
        cfile.version = row.version
        cfile.review_remarks = None
        _clear_mark(cfile.item)
    elif action == "verify":
        cfile.verified_by, cfile.verified_at = actor.id, now
        cfile.review_remarks = None

    audit_event(entity_type="checklist_file", entity_id=cfile.id,
                action=f"checklist_file.{action}", actor=actor.id, project_id=checklist.project_id,
                diff={"status": {"old": previous, "new": cfile.status},
                      "version": cfile.version, "remarks": remarks})
    commit_or_raise(current=cfile.to_dict())

    logger.info("Checklist file transition",
                extra={"checklist_file_id": cfile.id, "action": action,
                       "from_status": previous, "to_status": cfile.status, "actor": actor.id})
    side_effects = ["file_awaiting_review"] if cfile.status == "submitted" else []
    return {"file": cfile.to_dict(), "side_effects": side_effects}


def submit_file(file_id: int, actor, version=None) -> dict:
    return _transition_file(file_id, "submit", actor, expected_version=version)


def start_file_review(file_id: int, actor, version=None) -> dict:
    return _transition_file(file_id, "start_review", actor, expected_version=version)


def send_back_file(file_id: int, actor, remarks: str | None, version=None) -> dict:
    """Return a file under review to its uploader; remarks are mandatory."""
    return _transition_file(file_id, "send_back", actor, remarks=remarks, expected_version=version)


def resubmit_file(file_id: int, artifact: dict, actor, comment: str | None = None) -> dict:
    """Answer a send-back with a new version of the file."""
    if artifact is None:
        raise ValidationFailedError("artifact is required", details={"field": "artifact"})
    return _transition_file(file_id, "resubmit", actor, artifact=artifact, comment=comment)


def verify_file(file_id: int, actor, version=None) -> dict:
    return _transition_file(file_id, "verify", actor, expected_version=version)


def get_file_history(file_id: int) -> list[dict]:
    return [v.to_dict() for v in version_ledger.get_history(FILE_LEDGER, file_id)]


# ═════════════════════════════════════════════════════════════════════════════
# Instance transitions
# ═════════════════════════════════════════════════════════════════════════════


def submit_for_review(checklist_id: int, actor) -> dict:
    """
    Move a fully filled checklist to ``ready_for_verification``.

    Raises:
        ValidationFailedError: mandatory items missing (listed in details).
    """
    check_transition(actor, "checklist.submit_for_review")
    checklist = _get_checklist_or_404(checklist_id)
    _require_transition(checklist, "submit_for_review")

    result = _refresh_completeness(checklist)
    if result["completeness_percent"] < 100:
        raise ValidationFailedError(
            f"Checklist #{checklist.id} is {result['completeness_percent']}% complete",
            current=checklist.to_dict(),
            details={"missing_mandatory_items": result["missing_mandatory_items"],
                     "completeness_percent": result["completeness_percent"]},
        )

    previous, _ = apply_transition(checklist, CHECKLIST_TRANSITIONS, "submit_for_review", label="Checklist")
    checklist.submitted_by = actor.id
    checklist.submitted_at = utcnow()

    audit_event(entity_type="checklist", entity_id=checklist.id,
                action="checklist.submit_for_review", actor=actor.id, project_id=checklist.project_id,
                diff={"status": {"old": previous, "new": checklist.status}})
    commit_or_raise(current=checklist.to_dict())

    logger.info("Checklist submitted for review", extra={"checklist_id": checklist.id, "actor": actor.id})
    return {"checklist": checklist.to_dict(), "side_effects": ["checklist_awaiting_verification"]}


def verify(checklist_id: int, actor, items: list | None = None, comments: str | None = None) -> dict:
    """
    Record the reviewer's per-item marks and decide the outcome.

    ``items`` is a list of ``{"item_id", "verified_status", "comment"?}``.
    Any ``needs_clarification`` mark makes the outcome ``verified_failed``;
    otherwise ``verified_passed``.
    """
    check_transition(actor, "checklist.verify")
    checklist = _get_checklist_or_404(checklist_id)
    _require_transition(checklist, "verify")

    items = items or []
    if not isinstance(items, list):
        raise ValidationFailedError("items must be a list", details={"field": "items"})
    by_id = {i.id: i for i in checklist.items}
    marks = []
    for position, mark in enumerate(items):
        item_id = mark.get("item_id") if isinstance(mark, dict) else None
        try:
            item = by_id.get(parse_int_input(item_id))
        except ValueError:
            item = None
        if item is None:
            raise ValidationFailedError(
                f"items[{position}] does not belong to checklist #{checklist.id}",
                details={"item_id": item_id},
            )
        status = mark.get("verified_status")
        if status not in ITEM_MARKS:
            raise ValidationFailedError(
                f"items[{position}].verified_status must be one of {sorted(ITEM_MARKS)}",
                details={"item_id": item_id},
            )
        marks.append((item, status, mark.get("comment")))

    for item, status, comment in marks:
        item.verified_status = status
        item.verifier_comment = comment

    failed = any(i.verified_status == "needs_clarification" for i in checklist.items)
    outcome = "verified_failed" if failed else "verified_passed"
    previous, _ = apply_transition(checklist, CHECKLIST_TRANSITIONS, "verify",
                                   target=outcome, label="Checklist")
    checklist.verified_by = actor.id
    checklist.verified_at = utcnow()
    checklist.verification_comments = comments

    audit_event(entity_type="checklist", entity_id=checklist.id,
                action="checklist.verify", actor=actor.id, project_id=checklist.project_id,
                diff={"status": {"old": previous, "new": outcome},
                      "needs_clarification": [i.id for i in checklist.items
                                              if i.verified_status == "needs_clarification"]})
    commit_or_raise(current=checklist.to_dict())

    logger.info("Checklist verified",
                extra={"checklist_id": checklist.id, "outcome": outcome, "actor": actor.id})
    side_effects = ["clarification_requested"] if failed else ["checklist_eligible_for_finalize"]
    return {"checklist": checklist.to_dict(include_items=True), "side_effects": side_effects}


def finalize(checklist_id: int, actor) -> dict:
    """
    Close a passed checklist: lock every attached file and set it ``closed``.
    Unlock requests still pending on those files are rejected in the same commit.

    Repeating it on a finalized checklist changes nothing.
    """
    check_transition(actor, "checklist.finalize")
    checklist = _get_checklist_or_404(checklist_id)
    if checklist.status == "finalized":
        return {"checklist": checklist.to_dict(include_items=True), "side_effects": []}

    previous, _ = apply_transition(checklist, CHECKLIST_TRANSITIONS, "finalize", label="Checklist")
    now = utcnow()
    checklist.finalized_by = actor.id
    checklist.finalized_at = now
    locked = 0
    file_ids = []
    for cfile in checklist.iter_files():
        file_ids.append(cfile.id)
        cfile.status = "closed"
        if not cfile.is_locked:
            cfile.is_locked = True
            cfile.locked_at = now
            locked += 1

    audit_event(entity_type="checklist", entity_id=checklist.id,
                action="checklist.finalize", actor=actor.id, project_id=checklist.project_id,
                diff={"status": {"old": previous, "new": checklist.status}, "files_locked": locked})
    rejected = lock_service.reject_pending_requests(
        "checklist_file", file_ids, actor, lock_service.FINALIZED_UNLOCK_NOTE,
    )
    commit_or_raise(current=checklist.to_dict())

    logger.info("Checklist finalized",
                extra={"checklist_id": checklist.id, "files_locked": locked,
                       "unlock_requests_rejected": rejected, "actor": actor.id})
    side_effects = ["files_locked"] + (["unlock_requests_rejected"] if rejected else [])
    return {"checklist": checklist.to_dict(include_items=True), "side_effects": side_effects}


def revise(checklist_id: int, actor) -> dict:
    """
    Supersede a decided checklist with a fresh draft (version + 1).

    Item values are copied; files and verification marks are not.
    """
    check_transition(actor, "checklist.revise")
    old = _get_checklist_or_404(checklist_id)
    previous, _ = apply_transition(old, CHECKLIST_TRANSITIONS, "revise", label="Checklist")
    flush_or_raise(current=old.to_dict())

    new = ChecklistInstance(
        project_id=old.project_id,
        template_id=old.template_id,
        version=old.version + 1,
        status="draft",
        created_by=actor.id,
    )
    for item in old.items:
        new.items.append(ChecklistItem(
            template_item=item.template_item,
            value_text=item.value_text,
            value_number=item.value_number,
            value_date=item.value_date,
            value_boolean=item.value_boolean,
            filled_by=item.filled_by,
            filled_at=item.filled_at,
        ))
    db.session.add(new)
    flush_or_raise()
    _refresh_completeness(new)
    old.superseded_by_id = new.id

    audit_event(entity_type="checklist", entity_id=old.id,
                action="checklist.revise", actor=actor.id, project_id=old.project_id,
                diff={"status": {"old": previous, "new": old.status}, "superseded_by_id": new.id})
    commit_or_raise()

    logger.info("Checklist revised",
                extra={"checklist_id": old.id, "new_checklist_id": new.id, "version": new.version})
    return {
        "checklist": new.to_dict(include_items=True),
        "superseded": old.to_dict(),
        "side_effects": ["checklist_superseded"],
    }
