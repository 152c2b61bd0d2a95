"""
Template catalogue service.

Templates are published once and never edited. ``supersede_template`` is the
only way to revise one: it publishes a new template (copying the old
attachments unless replacements are supplied) and points the old row's
``superseded_by_id`` at it.
"""

from __future__ import annotations

import logging

from sqlalchemy import select

from docflow.core.exceptions import InvalidStateError, NotFoundError, ValidationFailedError
from docflow.models import db
from docflow.models.template import TemplateAttachment, TemplateFile
from docflow.services.authorization import check_transition
from docflow.services.version_ledger import clean_artifact
from docflow.services.workflow_engine import audit_event
from docflow.utils.helpers import commit_or_raise

logger = logging.getLogger(__name__)


def _build_attachments(template: TemplateFile, attachments) -> None:
    if attachments is None:
        attachments = []
    if not isinstance(attachments, list):
        raise ValidationFailedError("attachments must be a list", details={"field": "attachments"})
    for order, raw in enumerate(attachments):
        fields = clean_artifact(raw)
        template.attachments.append(TemplateAttachment(sort_order=order, **fields))


def get_template_or_404(template_id: int) -> TemplateFile:
    template = db.session.get(TemplateFile, template_id)
    if template is None:
        raise NotFoundError("TemplateFile", template_id)
    return template


def create_template(data: dict, actor) -> dict:
    """Publish a new template with its ordered attachments."""
    check_transition(actor, "template.create")

    title = (data.get("title") or "").strip()
    if not title:
        raise ValidationFailedError("title is required", details={"field": "title"})

    template = TemplateFile(
        title=title,
        category=data.get("category"),
        description=data.get("description"),
        created_by=actor.id,
    )
    _build_attachments(template, data.get("attachments"))
    db.session.add(template)
    db.session.flush()

    audit_event(entity_type="template_file", entity_id=template.id,
                action="template.create", actor=actor.id,
                diff={"title": title, "attachments": len(template.attachments)})
    commit_or_raise()

    logger.info("Template published", extra={"template_id": template.id, "actor": actor.id})
    return template.to_dict()


def supersede_template(template_id: int, data: dict, actor) -> dict:
    """
    Publish a replacement for ``template_id``.

    Fields not given in ``data`` are carried over. Attachments are copied in
    order unless ``data["attachments"]`` supplies a new set.

    Raises:
        NotFoundError, InvalidStateError (already superseded), ValidationFailedError
    """
    check_transition(actor, "template.supersede")
    old = get_template_or_404(template_id)
    if old.is_superseded:
        raise InvalidStateError(
            f"TemplateFile #{old.id} is already superseded by #{old.superseded_by_id}",
            current=old.to_dict(),
        )

    new = TemplateFile(
        title=(data.get("title") or old.title).strip(),
        category=data.get("category", old.category),
        description=data.get("description", old.description),
        created_by=actor.id,
    )
    if "attachments" in data:
        _build_attachments(new, data["attachments"])
    else:
        for a in old.attachments:
            new.attachments.append(TemplateAttachment(sort_order=a.sort_order, **a.artifact_dict()))
    db.session.add(new)
    db.session.flush()

    old.superseded_by_id = new.id
    audit_event(entity_type="template_file", entity_id=old.id,
                action="template.supersede", actor=actor.id,
                diff={"superseded_by_id": {"old": None, "new": new.id}})
    commit_or_raise(current=old.to_dict())

    logger.info("Template superseded", extra={"template_id": old.id, "new_template_id": new.id})
    return {"template": new.to_dict(), "superseded": old.to_dict(include_attachments=False)}


def list_templates(*, include_superseded: bool = False, category: str | None = None) -> list[dict]:
    stmt = select(TemplateFile).order_by(TemplateFile.id)
    if not include_superseded:
        stmt = stmt.where(TemplateFile.superseded_by_id.is_(None))
    if category:
        stmt = stmt.where(TemplateFile.category == category)
    return [t.to_dict(include_attachments=False) for t in db.session.execute(stmt).scalars()]


def get_template(template_id: int) -> dict:
    return get_template_or_404(template_id).to_dict()
