"""
Item/field checklist models.

Models:
    - ChecklistTemplate / ChecklistTemplateItem: multi-field template definition.
    - ChecklistInstance: one filled-out copy of a template for a project.
    - ChecklistItem: one field value of an instance.
    - ChecklistFile: a file attached to an item, reviewed on its own.
    - ChecklistFileVersion: append-only upload ledger of a ChecklistFile.

Two nested lifecycles:

    Instance:  draft → in_progress → ready_for_verification
               → verified_passed | verified_failed
               verified_passed → finalized (locks every file)
               verified_* | finalized → superseded (revision cloned)

    File:      uploaded → submitted → under_review → verified
               under_review → responded → resubmitted → submitted
               any → closed (only via instance finalize)
"""

from docflow.models import db
from docflow.models.ledger import VersionRecordMixin, iso, latest_only_index, utcnow

# ── Constants ────────────────────────────────────────────────────────────────

CHECKLIST_STATUSES = {
    "draft", "in_progress", "ready_for_verification",
    "verified_passed", "verified_failed", "finalized", "superseded",
}
EDITABLE_CHECKLIST_STATUSES = {"draft", "in_progress", "verified_failed"}

ITEM_TYPES = {
    "text", "textarea", "number", "dropdown", "date",
    "boolean", "file", "multi_file", "reference",
}
FILE_ITEM_TYPES = {"file", "multi_file"}
TEXT_ITEM_TYPES = {"text", "textarea", "dropdown", "reference"}

ITEM_VERIFICATION_STATUSES = {"pending", "accepted", "needs_clarification"}

FILE_STATUSES = {
    "uploaded", "submitted", "under_review",
    "responded", "resubmitted", "verified", "closed",
}

CHECKLIST_TRANSITIONS = {
    "start":             {"from": ["draft"], "to": "in_progress"},
    "reopen":            {"from": ["verified_failed"], "to": "in_progress"},
    "submit_for_review": {"from": ["draft", "in_progress"], "to": "ready_for_verification"},
    "verify":            {"from": ["ready_for_verification"], "to": ["verified_passed", "verified_failed"]},
    "finalize":          {"from": ["verified_passed"], "to": "finalized"},
    "revise":            {"from": ["verified_passed", "verified_failed", "finalized"], "to": "superseded"},
}

CHECKLIST_FILE_TRANSITIONS = {
    "submit":       {"from": ["uploaded", "resubmitted"], "to": "submitted"},
    "start_review": {"from": ["submitted"], "to": "under_review"},
    "send_back":    {"from": ["under_review"], "to": "responded", "remarks": True},
    "resubmit":     {"from": ["responded"], "to": "resubmitted"},
    "verify":       {"from": ["under_review"], "to": "verified"},
}


class ChecklistTemplate(db.Model):
    """Multi-field checklist definition."""

    __tablename__ = "checklist_templates"

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(255), nullable=False)
    category = db.Column(db.String(100), nullable=True)
    expected_tat_days = db.Column(db.Integer, nullable=True,
                                  comment="Expected turnaround time in days")
    created_by = db.Column(db.String(150), nullable=False)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)

    items = db.relationship(
        "ChecklistTemplateItem",
        back_populates="template",
        order_by="ChecklistTemplateItem.sort_order",
        cascade="all, delete-orphan",
    )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "category": self.category,
            "expected_tat_days": self.expected_tat_days,
            "created_by": self.created_by,
            "created_at": iso(self.created_at),
            "items": [i.to_dict() for i in self.items],
        }


class ChecklistTemplateItem(db.Model):
    """One field definition of a checklist template."""

    __tablename__ = "checklist_template_items"

    id = db.Column(db.Integer, primary_key=True)
    template_id = db.Column(
        db.Integer,
        db.ForeignKey("checklist_templates.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    item_code = db.Column(db.String(50), nullable=False)
    label = db.Column(db.String(255), nullable=False)
    item_type = db.Column(db.String(20), nullable=False, default="text")
    help_text = db.Column(db.Text, nullable=True)
    is_mandatory = db.Column(db.Boolean, nullable=False, default=False)
    section_group = db.Column(db.String(100), nullable=True)
    sort_order = db.Column(db.Integer, nullable=False, default=0)
    dropdown_options = db.Column(db.JSON, nullable=True)

    template = db.relationship("ChecklistTemplate", back_populates="items")

    __table_args__ = (
        db.UniqueConstraint("template_id", "item_code", name="uq_template_item_code"),
    )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "template_id": self.template_id,
            "item_code": self.item_code,
            "label": self.label,
            "item_type": self.item_type,
            "help_text": self.help_text,
            "is_mandatory": self.is_mandatory,
            "section_group": self.section_group,
            "sort_order": self.sort_order,
            "dropdown_options": self.dropdown_options,
        }


class ChecklistInstance(db.Model):
    """
    A project's filled-out copy of a checklist template.

    Business rules:
    - ``completeness_percent`` is recomputed on every item write.
    - At most one non-superseded instance per (project, template).
    - finalized locks every attached file; it is never undone.
    """

    __tablename__ = "project_checklists"

    id = db.Column(db.Integer, primary_key=True)
    project_id = db.Column(db.Integer, nullable=False, index=True,
                           comment="External project reference")
    template_id = db.Column(
        db.Integer,
        db.ForeignKey("checklist_templates.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )
    version = db.Column(db.Integer, nullable=False, default=1)
    status = db.Column(db.String(30), nullable=False, default="draft")
    completeness_percent = db.Column(db.Float, nullable=False, default=0.0)

    created_by = db.Column(db.String(150), nullable=False)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)
    submitted_by = db.Column(db.String(150), nullable=True)
    submitted_at = db.Column(db.DateTime(timezone=True), nullable=True)
    verified_by = db.Column(db.String(150), nullable=True)
    verified_at = db.Column(db.DateTime(timezone=True), nullable=True)
    verification_comments = db.Column(db.Text, nullable=True)
    finalized_by = db.Column(db.String(150), nullable=True)
    finalized_at = db.Column(db.DateTime(timezone=True), nullable=True)
    superseded_by_id = db.Column(
        db.Integer,
        db.ForeignKey("project_checklists.id", ondelete="SET NULL"),
        nullable=True,
    )

    row_version = db.Column(db.Integer, nullable=False, default=1)

    template = db.relationship("ChecklistTemplate")
    items = db.relationship(
        "ChecklistItem",
        back_populates="checklist",
        cascade="all, delete-orphan",
    )

    __table_args__ = (
        db.Index(
            "uq_checklist_active_per_project_template",
            "project_id", "template_id",
            unique=True,
            sqlite_where=db.text("status != 'superseded'"),
            postgresql_where=db.text("status != 'superseded'"),
        ),
    )
    __mapper_args__ = {"version_id_col": row_version}

    def ordered_items(self) -> list["ChecklistItem"]:
        return sorted(self.items, key=lambda i: (i.template_item.sort_order, i.template_item.id))

    def iter_files(self):
        for item in self.items:
            yield from item.files

    def to_dict(self, include_items: bool = False) -> dict:
        d = {
            "id": self.id,
            "project_id": self.project_id,
            "template_id": self.template_id,
            "template_name": self.template.name if self.template else None,
            "version": self.version,
            "status": self.status,
            "completeness_percent": self.completeness_percent,
            "created_by": self.created_by,
            "created_at": iso(self.created_at),
            "submitted_by": self.submitted_by,
            "submitted_at": iso(self.submitted_at),
            "verified_by": self.verified_by,
            "verified_at": iso(self.verified_at),
            "verification_comments": self.verification_comments,
            "finalized_by": self.finalized_by,
            "finalized_at": iso(self.finalized_at),
            "superseded_by_id": self.superseded_by_id,
        }
        if include_items:
            d["items"] = [i.to_dict() for i in self.ordered_items()]
        return d

    def __repr__(self):
        return f"<ChecklistInstance #{self.id} v{self.version} [{self.status}]>"


class ChecklistItem(db.Model):
    """One field value of a checklist instance."""

    __tablename__ = "project_checklist_items"

    id = db.Column(db.Integer, primary_key=True)
    checklist_id = db.Column(
        db.Integer,
        db.ForeignKey("project_checklists.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    template_item_id = db.Column(
        db.Integer,
        db.ForeignKey("checklist_template_items.id", ondelete="RESTRICT"),
        nullable=False,
    )
    value_text = db.Column(db.Text, nullable=True)
    value_number = db.Column(db.Float, nullable=True)
    value_date = db.Column(db.Date, nullable=True)
    value_boolean = db.Column(db.Boolean, nullable=True)

    verified_status = db.Column(db.String(30), nullable=False, default="pending")
    verifier_comment = db.Column(db.Text, nullable=True)
    filled_by = db.Column(db.String(150), nullable=True)
    filled_at = db.Column(db.DateTime(timezone=True), nullable=True)

    checklist = db.relationship("ChecklistInstance", back_populates="items")
    template_item = db.relationship("ChecklistTemplateItem")
    files = db.relationship(
        "ChecklistFile",
        back_populates="item",
        order_by="ChecklistFile.id",
        cascade="all, delete-orphan",
    )

    @property
    def is_file_item(self) -> bool:
        return self.template_item.item_type in FILE_ITEM_TYPES

    def is_filled(self) -> bool:
        """A file item is filled by any attached file; others by a typed value."""
        if self.is_file_item:
            return bool(self.files)
        if self.value_text is not None and self.value_text.strip():
            return True
        return any(v is not None for v in (self.value_number, self.value_date, self.value_boolean))

    def to_dict(self) -> dict:
        ti = self.template_item
        return {
            "id": self.id,
            "checklist_id": self.checklist_id,
            "template_item_id": self.template_item_id,
            "item_code": ti.item_code if ti else None,
            "label": ti.label if ti else None,
            "item_type": ti.item_type if ti else None,
            "is_mandatory": ti.is_mandatory if ti else None,
            "value_text": self.value_text,
            "value_number": self.value_number,
            "value_date": iso(self.value_date),
            "value_boolean": self.value_boolean,
            "verified_status": self.verified_status,
            "verifier_comment": self.verifier_comment,
            "filled_by": self.filled_by,
            "filled_at": iso(self.filled_at),
            "files": [f.to_dict() for f in self.files],
        }


class ChecklistFile(db.Model):
    """
    A file slot attached to a checklist item, reviewed independently.

    Business rules:
    - Once ``is_locked`` is set no transition or re-upload succeeds until an
      administrative unlock.
    - ``version`` mirrors the latest ChecklistFileVersion.
    """

    __tablename__ = "checklist_item_files"

    id = db.Column(db.Integer, primary_key=True)
    item_id = db.Column(
        db.Integer,
        db.ForeignKey("project_checklist_items.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    status = db.Column(db.String(20), nullable=False, default="uploaded", index=True)
    version = db.Column(db.Integer, nullable=False, default=1)

    is_locked = db.Column(db.Boolean, nullable=False, default=False, index=True)
    locked_at = db.Column(db.DateTime(timezone=True), nullable=True)

    review_remarks = db.Column(db.Text, nullable=True)
    submitted_by = db.Column(db.String(150), nullable=True)
    submitted_at = db.Column(db.DateTime(timezone=True), nullable=True)
    reviewed_by = db.Column(db.String(150), nullable=True)
    reviewed_at = db.Column(db.DateTime(timezone=True), nullable=True)
    verified_by = db.Column(db.String(150), nullable=True)
    verified_at = db.Column(db.DateTime(timezone=True), nullable=True)

    row_version = db.Column(db.Integer, nullable=False, default=1)

    item = db.relationship("ChecklistItem", back_populates="files")
    versions = db.relationship(
        "ChecklistFileVersion",
        back_populates="checklist_file",
        order_by="ChecklistFileVersion.version.desc()",
        lazy="dynamic",
    )

    __mapper_args__ = {"version_id_col": row_version}

    @property
    def checklist(self) -> ChecklistInstance:
        return self.item.checklist

    def latest_version(self) -> "ChecklistFileVersion | None":
        return self.versions.filter_by(is_latest=True).first()

    def to_dict(self) -> dict:
        latest = self.latest_version()
        return {
            "id": self.id,
            "item_id": self.item_id,
            "status": self.status,
            "version": self.version,
            "is_locked": self.is_locked,
            "locked_at": iso(self.locked_at),
            "review_remarks": self.review_remarks,
            "submitted_by": self.submitted_by,
            "submitted_at": iso(self.submitted_at),
            "reviewed_by": self.reviewed_by,
            "reviewed_at": iso(self.reviewed_at),
            "verified_by": self.verified_by,
            "verified_at": iso(self.verified_at),
            "latest": latest.to_dict() if latest else None,
        }

    def __repr__(self):
        return f"<ChecklistFile #{self.id} v{self.version} [{self.status}]>"


class ChecklistFileVersion(VersionRecordMixin, db.Model):
    """Append-only upload history of one ChecklistFile."""

    __tablename__ = "checklist_file_versions"

    id = db.Column(db.Integer, primary_key=True)
    checklist_file_id = db.Column(
        db.Integer,
        db.ForeignKey("checklist_item_files.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    checklist_file = db.relationship("ChecklistFile", back_populates="versions")

    __table_args__ = (
        db.UniqueConstraint("checklist_file_id", "version", name="uq_file_version"),
        latest_only_index("uq_file_version_latest", "checklist_file_id"),
    )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "checklist_file_id": self.checklist_file_id,
            **self.version_dict(),
        }
