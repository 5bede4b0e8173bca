"""create content pipeline schema

Revision ID: 3a7e5c1d9b20
Revises:
Create Date: 2026-10-18 10:00:00

Purpose:
- create the tables behind projects, assets, templates, assignments and render jobs
- status columns are text guarded by check constraints
- metadata payloads are jsonb with gin indexes for the approved-asset lookups

Operational notes:
- requires pgcrypto for gen_random_uuid()
- video_assignments.video_id is not a foreign key; finished videos live outside this schema
"""

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

revision = "3a7e5c1d9b20"
down_revision = None
branch_labels = None
depends_on = None


def _uuid_pk() -> sa.Column:
    return sa.Column(
        "id",
        postgresql.UUID(as_uuid=True),
        server_default=sa.text("gen_random_uuid()"),
        nullable=False,
    )


def _created_at() -> sa.Column:
    return sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()"))


def _updated_at() -> sa.Column:
    return sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()"))


def upgrade() -> None:
    op.execute("create extension if not exists pgcrypto;")

    op.create_table(
        "user_account",
        _uuid_pk(),
        sa.Column("email", sa.Text(), nullable=False),
        sa.Column("role", sa.Text(), nullable=False, server_default=sa.text("'content_manager'")),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        _created_at(),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("email", name="uq_user_account_email"),
        sa.CheckConstraint(
            "role in ('content_manager', 'asset_creator', 'video_ops', 'parent')",
            name="ck_user_account_role",
        ),
    )

    op.create_table(
        "children",
        _uuid_pk(),
        sa.Column("parent_id", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("name", sa.Text(), nullable=False),
        sa.Column("age", sa.Integer(), nullable=True),
        sa.Column("primary_interest", sa.Text(), nullable=True),
        _created_at(),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["parent_id"], ["user_account.id"], ondelete="SET NULL"),
    )

    op.create_table(
        "content_projects",
        _uuid_pk(),
        sa.Column("title", sa.Text(), nullable=False),
        sa.Column("theme", sa.Text(), nullable=False),
        sa.Column("target_age", sa.Text(), nullable=False),
        sa.Column("duration", sa.Integer(), nullable=False, server_default=sa.text("60")),
        sa.Column("status", sa.Text(), nullable=False, server_default=sa.text("'planning'")),
        sa.Column("metadata", postgresql.JSONB(), nullable=True),
        sa.Column("created_by", postgresql.UUID(as_uuid=True), nullable=True),
        _created_at(),
        _updated_at(),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["created_by"], ["user_account.id"], ondelete="SET NULL"),
        sa.CheckConstraint(
            "status in ('planning', 'generating', 'reviewing', 'approved', 'video_ready')",
            name="ck_content_projects_status",
        ),
    )

    op.create_table(
        "assets",
        _uuid_pk(),
        sa.Column("project_id", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("type", sa.Text(), nullable=False),
        sa.Column("theme", sa.Text(), nullable=True),
        sa.Column("prompt", sa.Text(), nullable=True),
        sa.Column("file_url", sa.Text(), nullable=True),
        sa.Column("status", sa.Text(), nullable=False, server_default=sa.text("'pending'")),
        sa.Column("metadata", postgresql.JSONB(), nullable=True),
        sa.Column("tags", postgresql.JSONB(), nullable=True),
        sa.Column("approved_by", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("approved_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("approval_notes", sa.Text(), nullable=True),
        sa.Column("rejection_reason", sa.Text(), nullable=True),
        _created_at(),
        _updated_at(),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["project_id"], ["content_projects.id"], ondelete="SET NULL"),
        sa.ForeignKeyConstraint(["approved_by"], ["user_account.id"], ondelete="SET NULL"),
        sa.CheckConstraint("type in ('image', 'audio', 'video', 'prompt')", name="ck_assets_type"),
        sa.CheckConstraint(
            "status in ('pending', 'generating', 'completed', 'approved', 'rejected')",
            name="ck_assets_status",
        ),
    )

    op.create_table(
        "video_templates",
        _uuid_pk(),
        sa.Column("name", sa.Text(), nullable=False),
        sa.Column("template_type", sa.Text(), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("global_elements", postgresql.JSONB(), nullable=True),
        sa.Column("parts", postgresql.JSONB(), nullable=True),
        _created_at(),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("name", "template_type", name="uq_video_templates_name_type"),
    )

    op.create_table(
        "video_assignments",
        _uuid_pk(),
        sa.Column("video_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("child_id", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("theme", sa.Text(), nullable=True),
        sa.Column("assignment_type", sa.Text(), nullable=False),
        sa.Column("publish_date", sa.Date(), nullable=False),
        sa.Column("status", sa.Text(), nullable=False, server_default=sa.text("'pending'")),
        sa.Column("published_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("assigned_by", postgresql.UUID(as_uuid=True), nullable=True),
        _created_at(),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["child_id"], ["children.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["assigned_by"], ["user_account.id"], ondelete="SET NULL"),
        sa.CheckConstraint(
            "assignment_type in ('individual', 'theme', 'general')",
            name="ck_video_assignments_type",
        ),
        sa.CheckConstraint(
            "status in ('pending', 'published', 'archived')",
            name="ck_video_assignments_status",
        ),
        sa.CheckConstraint(
            "(assignment_type = 'individual' and child_id is not null and theme is null)"
            " or (assignment_type = 'theme' and theme is not null and child_id is null)"
            " or (assignment_type = 'general' and child_id is null and theme is null)",
            name="ck_video_assignments_target",
        ),
    )

    op.create_table(
        "video_generation_jobs",
        _uuid_pk(),
        sa.Column("child_id", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("template_id", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("status", sa.Text(), nullable=False, server_default=sa.text("'pending'")),
        sa.Column("segments", postgresql.JSONB(), nullable=True),
        sa.Column("output_url", sa.Text(), nullable=True),
        sa.Column("error_message", sa.Text(), nullable=True),
        sa.Column("submitted_by", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("started_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
        _created_at(),
        _updated_at(),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["child_id"], ["children.id"], ondelete="SET NULL"),
        sa.ForeignKeyConstraint(["template_id"], ["video_templates.id"], ondelete="SET NULL"),
        sa.ForeignKeyConstraint(["submitted_by"], ["user_account.id"], ondelete="SET NULL"),
        sa.CheckConstraint(
            "status in ('pending', 'in_progress', 'completed', 'failed')",
            name="ck_video_generation_jobs_status",
        ),
        sa.CheckConstraint(
            "(status = 'failed') = (error_message is not null)",
            name="ck_video_generation_jobs_error_message",
        ),
    )

    op.create_table(
        "audit_event",
        _uuid_pk(),
        sa.Column("event_type", sa.Text(), nullable=False),
        sa.Column("source", sa.Text(), nullable=False),
        sa.Column("actor_user_id", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("occurred_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
        sa.Column("payload", postgresql.JSONB(), nullable=True),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["actor_user_id"], ["user_account.id"], ondelete="SET NULL"),
        sa.CheckConstraint("source in ('ui', 'system', 'worker')", name="ck_audit_event_source"),
    )

    # btree indexes
    op.create_index("ix_content_projects_status_created_at", "content_projects", ["status", "created_at"])
    op.create_index("ix_assets_project_id_status", "assets", ["project_id", "status"])
    op.create_index("ix_assets_status_type_created_at", "assets", ["status", "type", "created_at"])
    op.create_index("ix_video_assignments_status_publish_date", "video_assignments", ["status", "publish_date"])
    op.create_index("ix_video_assignments_video_id", "video_assignments", ["video_id"])
    op.create_index("ix_video_generation_jobs_status_updated_at", "video_generation_jobs", ["status", "updated_at"])
    op.create_index("ix_audit_event_type_occurred_at", "audit_event", ["event_type", "occurred_at"])

    # gin indexes
    op.create_index("ix_assets_metadata_gin", "assets", ["metadata"], postgresql_using="gin")
    op.create_index("ix_assets_tags_gin", "assets", ["tags"], postgresql_using="gin")


def downgrade() -> None:
    op.drop_index("ix_assets_tags_gin", table_name="assets")
    op.drop_index("ix_assets_metadata_gin", table_name="assets")
    op.drop_index("ix_audit_event_type_occurred_at", table_name="audit_event")
    op.drop_index("ix_video_generation_jobs_status_updated_at", table_name="video_generation_jobs")
    op.drop_index("ix_video_assignments_video_id", table_name="video_assignments")
    op.drop_index("ix_video_assignments_status_publish_date", table_name="video_assignments")
    op.drop_index("ix_assets_status_type_created_at", table_name="assets")
    op.drop_index("ix_assets_project_id_status", table_name="assets")
    op.drop_index("ix_content_projects_status_created_at", table_name="content_projects")

    op.drop_table("audit_event")
    op.drop_table("video_generation_jobs")
    op.drop_table("video_assignments")
    op.drop_table("video_templates")
    op.drop_table("assets")
    op.drop_table("content_projects")
    op.drop_table("children")
    op.drop_table("user_account")
