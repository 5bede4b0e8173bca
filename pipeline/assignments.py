from __future__ import annotations

from dataclasses import dataclass
from datetime import UTC, date, datetime
import logging
from typing import Sequence
from uuid import UUID

from sqlalchemy import desc, select

from db.models import ASSIGNMENT_TYPES, VideoAssignment
from pipeline.audit import record_event
from pipeline.errors import RecordNotFound, ValidationError
from pipeline.states import ASSIGNMENT_MACHINE
from pipeline.store import SessionStore

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AssignmentDraft:
    video_id: UUID
    assignment_type: str
    publish_date: date
    child_id: UUID | None = None
    theme: str | None = None
    status: str = "pending"

    def key(self) -> tuple:
        return (self.video_id, self.child_id or self.theme, self.assignment_type)


def _coerce_uuid(value: object, field: str) -> UUID:
    if isinstance(value, UUID):
        return value
    try:
        return UUID(str(value))
    except ValueError as exc:
        raise ValidationError(f"{field} must be a UUID: {value}") from exc


def preview_assignments(
    video_ids: Sequence[UUID | str],
    assignment_type: str,
    target: UUID | str | None = None,
    publish_date: date | None = None,
) -> list[AssignmentDraft]:
    """Build the assignment rows a publish would write, without touching storage."""
    if not video_ids:
        raise ValidationError("select at least one video")
    if assignment_type not in ASSIGNMENT_TYPES:
        raise ValidationError(f"unknown assignment type: {assignment_type}")
    publish_date = publish_date or date.today()

    child_id: UUID | None = None
    theme: str | None = None
    if assignment_type == "individual":
        if not target:
            raise ValidationError("individual assignments need a child")
        child_id = _coerce_uuid(target, "child_id")
    elif assignment_type == "theme":
        theme = str(target or "").strip()
        if not theme:
            raise ValidationError("theme assignments need a theme")

    seen: set[UUID] = set()
    drafts: list[AssignmentDraft] = []
    for raw in video_ids:
        video_id = _coerce_uuid(raw, "video_id")
        if video_id in seen:
            continue
        seen.add(video_id)
        drafts.append(
            AssignmentDraft(
                video_id=video_id,
                assignment_type=assignment_type,
                publish_date=publish_date,
                child_id=child_id,
                theme=theme,
            )
        )
    return drafts


class AssignmentStore(SessionStore):
    def publish(
        self,
        drafts: Sequence[AssignmentDraft],
        assigned_by: UUID | None = None,
    ) -> list[VideoAssignment]:
        if not drafts:
            raise ValidationError("nothing to publish")
        with self._session() as session:
            rows = [
                VideoAssignment(
                    video_id=draft.video_id,
                    child_id=draft.child_id,
                    theme=draft.theme,
                    assignment_type=draft.assignment_type,
                    publish_date=draft.publish_date,
                    status="pending",
                    assigned_by=assigned_by,
                )
                for draft in drafts
            ]
            session.add_all(rows)
            session.flush()
            record_event(
                session,
                "assignments_published",
                {
                    "count": len(rows),
                    "video_ids": sorted({str(row.video_id) for row in rows}),
                    "assignment_type": rows[0].assignment_type,
                },
                actor_user_id=assigned_by,
            )
            session.commit()
            for row in rows:
                session.refresh(row)
            logger.info("published %d assignment(s)", len(rows))
            return rows

    def list_assignments(
        self,
        video_id: UUID | None = None,
        status: str | None = None,
        limit: int = 50,
        offset: int = 0,
    ) -> list[VideoAssignment]:
        with self._session() as session:
            stmt = select(VideoAssignment)
            if video_id:
                stmt = stmt.where(VideoAssignment.video_id == video_id)
            if status:
                stmt = stmt.where(VideoAssignment.status == status)
            stmt = stmt.order_by(desc(VideoAssignment.publish_date)).limit(limit).offset(offset)
            return list(session.execute(stmt).scalars().all())

    def release_due(self, today: date | None = None) -> list[VideoAssignment]:
        today = today or date.today()
        with self._session() as session:
            stmt = select(VideoAssignment).where(
                VideoAssignment.status == "pending",
                VideoAssignment.publish_date <= today,
            )
            rows = list(session.execute(stmt).scalars().all())
            if not rows:
                return []
            now = datetime.now(UTC)
            for row in rows:
                ASSIGNMENT_MACHINE.check(row.status, "published")
                row.status = "published"
                row.published_at = now
            record_event(
                session,
                "assignments_released",
                {"count": len(rows), "publish_date_lte": today.isoformat()},
                source="system",
            )
            session.commit()
            return rows

    def archive(self, assignment_id: UUID, actor: UUID | None = None) -> VideoAssignment:
        with self._session() as session:
            row = session.get(VideoAssignment, assignment_id)
            if row is None:
                raise RecordNotFound("assignment", assignment_id)
            if not ASSIGNMENT_MACHINE.check(row.status, "archived"):
                return row
            row.status = "archived"
            record_event(
                session,
                "assignment_archived",
                {"assignment_id": row.id},
                actor_user_id=actor,
            )
            session.commit()
            session.refresh(row)
            return row
