from __future__ import annotations

import logging
import os
from uuid import UUID

from sqlalchemy import desc, select

from db.models import ContentProject
from pipeline.audit import record_event
from pipeline.errors import RecordNotFound, ValidationError
from pipeline.states import PROJECT_MACHINE
from pipeline.store import SessionStore

logger = logging.getLogger(__name__)


def _default_duration() -> int:
    return int(os.getenv("DEFAULT_PROJECT_DURATION_S", "60"))


class ProjectStore(SessionStore):
    def create_project(
        self,
        title: str,
        theme: str,
        target_age: str,
        created_by: UUID | None = None,
    ) -> ContentProject:
        title = (title or "").strip()
        theme = (theme or "").strip()
        if not title:
            raise ValidationError("title is required")
        if not theme:
            raise ValidationError("theme is required")

        with self._session() as session:
            project = ContentProject(
                title=title,
                theme=theme,
                target_age=target_age,
                duration=_default_duration(),
                status="planning",
                created_by=created_by,
            )
            session.add(project)
            session.commit()
            session.refresh(project)
            logger.info("project created id=%s theme=%s", project.id, project.theme)
            return project

    def get_project(self, project_id: UUID) -> ContentProject:
        with self._session() as session:
            project = session.get(ContentProject, project_id)
            if project is None:
                raise RecordNotFound("project", project_id)
            return project

    def advance_status(
        self,
        project_id: UUID,
        next_status: str,
        actor: UUID | None = None,
    ) -> ContentProject:
        with self._session() as session:
            project = session.get(ContentProject, project_id)
            if project is None:
                raise RecordNotFound("project", project_id)
            previous = project.status
            if not PROJECT_MACHINE.check(previous, next_status):
                return project
            project.status = next_status
            record_event(
                session,
                "project_status",
                {"project_id": project.id, "from": previous, "to": next_status},
                actor_user_id=actor,
            )
            session.commit()
            session.refresh(project)
            logger.info("project %s status %s -> %s", project.id, previous, next_status)
            return project

    def list_projects(
        self,
        status: str | None = None,
        limit: int = 50,
        offset: int = 0,
    ) -> list[ContentProject]:
        with self._session() as session:
            stmt = select(ContentProject)
            if status:
                stmt = stmt.where(ContentProject.status == status)
            stmt = stmt.order_by(desc(ContentProject.created_at)).limit(limit).offset(offset)
            return list(session.execute(stmt).scalars().all())
