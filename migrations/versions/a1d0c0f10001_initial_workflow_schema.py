"""initial_workflow_schema

Template catalogue, assignments with their submission ledger, item/field
checklists with per-file review, tasks, unlock requests, audit log and the
scheduled-job registry.

Revision ID: a1d0c0f10001
Revises:
Create Date: 2026-10-19 09:00:00.000000
"""

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = "a1d0c0f10001"
down_revision = None
branch_labels = None
depends_on = None


def _artifact_columns():
    return [
        sa.Column("file_path", sa.String(length=500), nullable=False),
        sa.Column("original_name", sa.String(length=255), nullable=False),
        sa.Column("file_size", sa.BigInteger(), nullable=True),
        sa.Column("mime_type", sa.String(length=120), nullable=True),
    ]


def _ledger_columns():
    return _artifact_columns() + [
        sa.Column("version", sa.Integer(), nullable=False),
        sa.Column("is_latest", sa.Boolean(), nullable=False),
        sa.Column("uploaded_by", sa.String(length=150), nullable=False),
        sa.Column("uploaded_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("comment", sa.Text(), nullable=True),
    ]


def upgrade():
    # ── Template catalogue ───────────────────────────────────────────────
    op.create_table(
        "template_files",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("title", sa.String(length=255), nullable=False),
        sa.Column("category", sa.String(length=100), nullable=True),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("created_by", sa.String(length=150), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("published_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("superseded_by_id", sa.Integer(), nullable=True),
        sa.ForeignKeyConstraint(["superseded_by_id"], ["template_files.id"], ondelete="SET NULL"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_template_files_category", "template_files", ["category"])

    op.create_table(
        "template_attachments",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("template_file_id", sa.Integer(), nullable=False),
        sa.Column("sort_order", sa.Integer(), nullable=False),
        *_artifact_columns(),
        sa.ForeignKeyConstraint(["template_file_id"], ["template_files.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_template_attachments_template_file_id", "template_attachments", ["template_file_id"])

    # ── Assignments + submission ledger ──────────────────────────────────
    op.create_table(
        "template_assignments",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("template_file_id", sa.Integer(), nullable=False),
        sa.Column("project_id", sa.Integer(), nullable=False, comment="External project reference"),
        sa.Column("assignee_id", sa.String(length=150), nullable=True),
        sa.Column("status", sa.String(length=20), nullable=False,
                  comment="assigned | submitted | incomplete | verified"),
        sa.Column("assigned_by", sa.String(length=150), nullable=False),
        sa.Column("assigned_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("verified_by", sa.String(length=150), nullable=True),
        sa.Column("verified_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("current_remarks", sa.Text(), nullable=True),
        sa.Column("row_version", sa.Integer(), nullable=False),
        sa.ForeignKeyConstraint(["template_file_id"], ["template_files.id"], ondelete="RESTRICT"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("project_id", "template_file_id", name="uq_assignment_project_template"),
    )
    op.create_index("ix_template_assignments_template_file_id", "template_assignments", ["template_file_id"])
    op.create_index("ix_template_assignments_project_id", "template_assignments", ["project_id"])
    op.create_index("ix_template_assignments_assignee_id", "template_assignments", ["assignee_id"])

    op.create_table(
        "client_submissions",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("assignment_id", sa.Integer(), nullable=False),
        sa.Column("status", sa.String(length=20), nullable=False,
                  comment="submitted | rejected | approved"),
        sa.Column("submission_source", sa.String(length=20), nullable=False),
        sa.Column("reviewed_by", sa.String(length=150), nullable=True),
        sa.Column("reviewed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("review_remarks", sa.Text(), nullable=True),
        *_ledger_columns(),
        sa.ForeignKeyConstraint(["assignment_id"], ["template_assignments.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("assignment_id", "version", name="uq_submission_assignment_version"),
    )
    op.create_index("ix_client_submissions_assignment_id", "client_submissions", ["assignment_id"])
    op.create_index(
        "uq_submission_latest",
        "client_submissions",
        ["assignment_id"],
        unique=True,
        postgresql_where=sa.text("is_latest = true"),
        sqlite_where=sa.text("is_latest = 1"),
    )

    # ── Checklist templates ──────────────────────────────────────────────
    op.create_table(
        "checklist_templates",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("category", sa.String(length=100), nullable=True),
        sa.Column("expected_tat_days", sa.Integer(), nullable=True,
                  comment="Expected turnaround time in days"),
        sa.Column("created_by", sa.String(length=150), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )

    op.create_table(
        "checklist_template_items",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("template_id", sa.Integer(), nullable=False),
        sa.Column("item_code", sa.String(length=50), nullable=False),
        sa.Column("label", sa.String(length=255), nullable=False),
        sa.Column("item_type", sa.String(length=20), nullable=False),
        sa.Column("help_text", sa.Text(), nullable=True),
        sa.Column("is_mandatory", sa.Boolean(), nullable=False),
        sa.Column("section_group", sa.String(length=100), nullable=True),
        sa.Column("sort_order", sa.Integer(), nullable=False),
        sa.Column("dropdown_options", sa.JSON(), nullable=True),
        sa.ForeignKeyConstraint(["template_id"], ["checklist_templates.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("template_id", "item_code", name="uq_template_item_code"),
    )
    op.create_index("ix_checklist_template_items_template_id", "checklist_template_items", ["template_id"])

    # ── Checklist instances ──────────────────────────────────────────────
    op.create_table(
        "project_checklists",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("project_id", sa.Integer(), nullable=False, comment="External project reference"),
        sa.Column("template_id", sa.Integer(), nullable=False),
        sa.Column("version", sa.Integer(), nullable=False),
        sa.Column("status", sa.String(length=30), nullable=False),
        sa.Column("completeness_percent", sa.Float(), nullable=False),
        sa.Column("created_by", sa.String(length=150), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("submitted_by", sa.String(length=150), nullable=True),
        sa.Column("submitted_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("verified_by", sa.String(length=150), nullable=True),
        sa.Column("verified_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("verification_comments", sa.Text(), nullable=True),
        sa.Column("finalized_by", sa.String(length=150), nullable=True),
        sa.Column("finalized_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("superseded_by_id", sa.Integer(), nullable=True),
        sa.Column("row_version", sa.Integer(), nullable=False),
        sa.ForeignKeyConstraint(["template_id"], ["checklist_templates.id"], ondelete="RESTRICT"),
        sa.ForeignKeyConstraint(["superseded_by_id"], ["project_checklists.id"], ondelete="SET NULL"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_project_checklists_project_id", "project_checklists", ["project_id"])
    op.create_index("ix_project_checklists_template_id", "project_checklists", ["template_id"])
    op.create_index(
        "uq_checklist_active_per_project_template",
        "project_checklists",
        ["project_id", "template_id"],
        unique=True,
        postgresql_where=sa.text("status != 'superseded'"),
        sqlite_where=sa.text("status != 'superseded'"),
    )

    op.create_table(
        "project_checklist_items",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("checklist_id", sa.Integer(), nullable=False),
        sa.Column("template_item_id", sa.Integer(), nullable=False),
        sa.Column("value_text", sa.Text(), nullable=True),
        sa.Column("value_number", sa.Float(), nullable=True),
        sa.Column("value_date", sa.Date(), nullable=True),
        sa.Column("value_boolean", sa.Boolean(), nullable=True),
        sa.Column("verified_status", sa.String(length=30), nullable=False),
        sa.Column("verifier_comment", sa.Text(), nullable=True),
        sa.Column("filled_by", sa.String(length=150), nullable=True),
        sa.Column("filled_at", sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(["checklist_id"], ["project_checklists.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["template_item_id"], ["checklist_template_items.id"], ondelete="RESTRICT"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_project_checklist_items_checklist_id", "project_checklist_items", ["checklist_id"])

    op.create_table(
        "checklist_item_files",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("item_id", sa.Integer(), nullable=False),
        sa.Column("status", sa.String(length=20), nullable=False),
        sa.Column("version", sa.Integer(), nullable=False),
        sa.Column("is_locked", sa.Boolean(), nullable=False),
        sa.Column("locked_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("review_remarks", sa.Text(), nullable=True),
        sa.Column("submitted_by", sa.String(length=150), nullable=True),
        sa.Column("submitted_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("reviewed_by", sa.String(length=150), nullable=True),
        sa.Column("reviewed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("verified_by", sa.String(length=150), nullable=True),
        sa.Column("verified_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("row_version", sa.Integer(), nullable=False),
        sa.ForeignKeyConstraint(["item_id"], ["project_checklist_items.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_checklist_item_files_item_id", "checklist_item_files", ["item_id"])
    op.create_index("ix_checklist_item_files_status", "checklist_item_files", ["status"])
    op.create_index("ix_checklist_item_files_is_locked", "checklist_item_files", ["is_locked"])

    op.create_table(
        "checklist_file_versions",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("checklist_file_id", sa.Integer(), nullable=False),
        *_ledger_columns(),
        sa.ForeignKeyConstraint(["checklist_file_id"], ["checklist_item_files.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("checklist_file_id", "version", name="uq_file_version"),
    )
    op.create_index("ix_checklist_file_versions_checklist_file_id", "checklist_file_versions", ["checklist_file_id"])
    op.create_index(
        "uq_file_version_latest",
        "checklist_file_versions",
        ["checklist_file_id"],
        unique=True,
        postgresql_where=sa.text("is_latest = true"),
        sqlite_where=sa.text("is_latest = 1"),
    )

    # ── Tasks + unlock requests ──────────────────────────────────────────
    op.create_table(
        "project_tasks",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("project_id", sa.Integer(), nullable=True, comment="External project reference"),
        sa.Column("title", sa.String(length=255), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("assignee_id", sa.String(length=150), nullable=True),
        sa.Column("status", sa.String(length=20), nullable=False, comment="to_do | doing | blocked | done"),
        sa.Column("blocked_reason", sa.Text(), nullable=True),
        sa.Column("due_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("is_locked", sa.Boolean(), nullable=False),
        sa.Column("locked_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_by", sa.String(length=150), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("row_version", sa.Integer(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_project_tasks_project_id", "project_tasks", ["project_id"])
    op.create_index("ix_project_tasks_assignee_id", "project_tasks", ["assignee_id"])
    op.create_index("ix_project_tasks_due_date", "project_tasks", ["due_date"])
    op.create_index("ix_project_tasks_is_locked", "project_tasks", ["is_locked"])

    op.create_table(
        "unlock_requests",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("lockable_type", sa.String(length=30), nullable=False, comment="task | checklist_file"),
        sa.Column("lockable_id", sa.Integer(), nullable=False),
        sa.Column("reason", sa.Text(), nullable=False),
        sa.Column("requested_by", sa.String(length=150), nullable=False),
        sa.Column("status", sa.String(length=20), nullable=False),
        sa.Column("reviewed_by", sa.String(length=150), nullable=True),
        sa.Column("reviewed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("review_note", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("row_version", sa.Integer(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_unlock_requests_requested_by", "unlock_requests", ["requested_by"])
    op.create_index("ix_unlock_requests_status", "unlock_requests", ["status"])
    op.create_index("ix_unlock_lockable", "unlock_requests", ["lockable_type", "lockable_id"])
    op.create_index(
        "uq_unlock_one_pending",
        "unlock_requests",
        ["lockable_type", "lockable_id"],
        unique=True,
        postgresql_where=sa.text("status = 'pending'"),
        sqlite_where=sa.text("status = 'pending'"),
    )

    # ── Audit + scheduler ────────────────────────────────────────────────
    op.create_table(
        "audit_logs",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("project_id", sa.Integer(), nullable=True),
        sa.Column("entity_type", sa.String(length=30), nullable=False),
        sa.Column("entity_id", sa.String(length=36), nullable=False),
        sa.Column("action", sa.String(length=60), nullable=False),
        sa.Column("actor", sa.String(length=150), nullable=False),
        sa.Column("request_id", sa.String(length=64), nullable=True),
        sa.Column("diff", sa.JSON(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("idx_audit_entity", "audit_logs", ["entity_type", "entity_id"])
    op.create_index("idx_audit_project", "audit_logs", ["project_id"])
    op.create_index("idx_audit_action", "audit_logs", ["action"])
    op.create_index("idx_audit_created", "audit_logs", ["created_at"])

    op.create_table(
        "scheduled_jobs",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("job_name", sa.String(length=100), nullable=False),
        sa.Column("description", sa.String(length=500), nullable=True),
        sa.Column("interval_seconds", sa.Integer(), nullable=False),
        sa.Column("is_enabled", sa.Boolean(), nullable=False),
        sa.Column("last_run_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("next_run_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("last_run_status", sa.String(length=20), nullable=True),
        sa.Column("last_run_duration_ms", sa.Integer(), nullable=True),
        sa.Column("last_run_result", sa.JSON(), nullable=True),
        sa.Column("run_count", sa.Integer(), nullable=False),
        sa.Column("failure_count", sa.Integer(), nullable=False),
        sa.Column("consecutive_failures", sa.Integer(), nullable=False),
        sa.Column("last_error", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("job_name"),
    )


def downgrade():
    for table in (
        "scheduled_jobs",
        "audit_logs",
        "unlock_requests",
        "project_tasks",
        "checklist_file_versions",
        "checklist_item_files",
        "project_checklist_items",
        "project_checklists",
        "checklist_template_items",
        "checklist_templates",
        "client_submissions",
        "template_assignments",
        "template_attachments",
        "template_files",
    ):
        op.drop_table(table)
