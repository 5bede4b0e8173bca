from __future__ import annotations

from datetime import UTC, date, datetime
from uuid import UUID, uuid4

from sqlalchemy import (
    JSON,
    Boolean,
    CheckConstraint,
    Date,
    DateTime,
    ForeignKey,
    Integer,
    Text,
    UniqueConstraint,
    Uuid,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .base import Base


def _utcnow() -> datetime:
    return datetime.now(UTC)


JSONType = JSON().with_variant(JSONB(), "postgresql")

PROJECT_STATUSES = ("planning", "generating", "reviewing", "approved", "video_ready")
ASSET_TYPES = ("image", "audio", "video", "prompt")
ASSET_STATUSES = ("pending", "generating", "completed", "approved", "rejected")
ASSIGNMENT_TYPES = ("individual", "theme", "general")
ASSIGNMENT_STATUSES = ("pending", "published", "archived")
JOB_STATUSES = ("pending", "in_progress", "completed", "failed")


def _in(column: str, values: tuple[str, ...]) -> str:
    quoted = ", ".join(f"'{value}'" for value in values)
    return f"{column} in ({quoted})"


class UserAccount(Base):
    __tablename__ = "user_account"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    email: Mapped[str] = mapped_column(Text, unique=True)
    role: Mapped[str] = mapped_column(Text, default="content_manager")
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow)

    __table_args__ = (
        CheckConstraint(
            "role in ('content_manager', 'asset_creator', 'video_ops', 'parent')",
            name="ck_user_account_role",
        ),
    )


class Child(Base):
    __tablename__ = "children"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    parent_id: Mapped[UUID | None] = mapped_column(
        Uuid,
        ForeignKey("user_account.id", ondelete="SET NULL"),
        nullable=True,
    )
    name: Mapped[str] = mapped_column(Text)
    age: Mapped[int | None] = mapped_column(Integer, nullable=True)
    primary_interest: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow)


class ContentProject(Base):
    __tablename__ = "content_projects"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    title: Mapped[str] = mapped_column(Text)
    theme: Mapped[str] = mapped_column(Text)
    target_age: Mapped[str] = mapped_column(Text)
    duration: Mapped[int] = mapped_column(Integer, default=60)
    status: Mapped[str] = mapped_column(Text, default="planning")
    project_metadata: Mapped[dict | None] = mapped_column("metadata", JSONType, nullable=True)
    created_by: Mapped[UUID | None] = mapped_column(
        Uuid,
        ForeignKey("user_account.id", ondelete="SET NULL"),
        nullable=True,
    )
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow, onupdate=_utcnow
    )

    assets: Mapped[list["Asset"]] = relationship(back_populates="project")

    __table_args__ = (
        CheckConstraint(_in("status", PROJECT_STATUSES), name="ck_content_projects_status"),
    )


class Asset(Base):
    __tablename__ = "assets"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    project_id: Mapped[UUID | None] = mapped_column(
        Uuid,
        ForeignKey("content_projects.id", ondelete="SET NULL"),
        nullable=True,
    )
    type: Mapped[str] = mapped_column(Text)
    theme: Mapped[str | None] = mapped_column(Text, nullable=True)
    prompt: Mapped[str | None] = mapped_column(Text, nullable=True)
    file_url: Mapped[str | None] = mapped_column(Text, nullable=True)
    status: Mapped[str] = mapped_column(Text, default="pending")
    asset_metadata: Mapped[dict | None] = mapped_column("metadata", JSONType, nullable=True)
    tags: Mapped[list | None] = mapped_column(JSONType, nullable=True)
    approved_by: Mapped[UUID | None] = mapped_column(
        Uuid,
        ForeignKey("user_account.id", ondelete="SET NULL"),
        nullable=True,
    )
    approved_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    approval_notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    rejection_reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow, onupdate=_utcnow
    )

    project: Mapped["ContentProject | None"] = relationship(back_populates="assets")

    __table_args__ = (
        CheckConstraint(_in("type", ASSET_TYPES), name="ck_assets_type"),
        CheckConstraint(_in("status", ASSET_STATUSES), name="ck_assets_status"),
    )


class VideoTemplate(Base):
    __tablename__ = "video_templates"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    name: Mapped[str] = mapped_column(Text)
    template_type: Mapped[str] = mapped_column(Text)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    global_elements: Mapped[list | None] = mapped_column(JSONType, nullable=True)
    parts: Mapped[list | None] = mapped_column(JSONType, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow)

    __table_args__ = (
        UniqueConstraint("name", "template_type", name="uq_video_templates_name_type"),
    )


class VideoAssignment(Base):
    __tablename__ = "video_assignments"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    video_id: Mapped[UUID] = mapped_column(Uuid)
    child_id: Mapped[UUID | None] = mapped_column(
        Uuid,
        ForeignKey("children.id", ondelete="CASCADE"),
        nullable=True,
    )
    theme: Mapped[str | None] = mapped_column(Text, nullable=True)
    assignment_type: Mapped[str] = mapped_column(Text)
    publish_date: Mapped[date] = mapped_column(Date)
    status: Mapped[str] = mapped_column(Text, default="pending")
    published_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    assigned_by: Mapped[UUID | None] = mapped_column(
        Uuid,
        ForeignKey("user_account.id", ondelete="SET NULL"),
        nullable=True,
    )
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow)

    __table_args__ = (
        CheckConstraint(_in("assignment_type", ASSIGNMENT_TYPES), name="ck_video_assignments_type"),
        CheckConstraint(_in("status", ASSIGNMENT_STATUSES), name="ck_video_assignments_status"),
        CheckConstraint(
            "(assignment_type = 'individual' and child_id is not null and theme is null)"
            " or (assignment_type = 'theme' and theme is not null and child_id is null)"
            " or (assignment_type = 'general' and child_id is null and theme is null)",
            name="ck_video_assignments_target",
        ),
    )


class VideoGenerationJob(Base):
    __tablename__ = "video_generation_jobs"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    child_id: Mapped[UUID | None] = mapped_column(
        Uuid,
        ForeignKey("children.id", ondelete="SET NULL"),
        nullable=True,
    )
    template_id: Mapped[UUID | None] = mapped_column(
        Uuid,
        ForeignKey("video_templates.id", ondelete="SET NULL"),
        nullable=True,
    )
    status: Mapped[str] = mapped_column(Text, default="pending")
    segments: Mapped[list | None] = mapped_column(JSONType, nullable=True)
    output_url: Mapped[str | None] = mapped_column(Text, nullable=True)
    error_message: Mapped[str | None] = mapped_column(Text, nullable=True)
    submitted_by: Mapped[UUID | None] = mapped_column(
        Uuid,
        ForeignKey("user_account.id", ondelete="SET NULL"),
        nullable=True,
    )
    started_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    completed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow, onupdate=_utcnow
    )

    __table_args__ = (
        CheckConstraint(_in("status", JOB_STATUSES), name="ck_video_generation_jobs_status"),
        CheckConstraint(
            "(status = 'failed') = (error_message is not null)",
            name="ck_video_generation_jobs_error_message",
        ),
    )


class AuditEvent(Base):
    __tablename__ = "audit_event"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    event_type: Mapped[str] = mapped_column(Text)
    source: Mapped[str] = mapped_column(Text)
    actor_user_id: Mapped[UUID | None] = mapped_column(
        Uuid,
        ForeignKey("user_account.id", ondelete="SET NULL"),
        nullable=True,
    )
    occurred_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow)
    payload: Mapped[dict | None] = mapped_column(JSONType, nullable=True)

    __table_args__ = (
        CheckConstraint("source in ('ui', 'system', 'worker')", name="ck_audit_event_source"),
    )
