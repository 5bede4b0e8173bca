from __future__ import annotations

from datetime import UTC, datetime, timedelta
import logging
from uuid import UUID

from sqlalchemy import desc, func, select

from db.models import VideoGenerationJob
from pipeline.audit import record_event
from pipeline.errors import RecordNotFound
from pipeline.states import JOB_MACHINE
from pipeline.store import SessionStore

logger = logging.getLogger(__name__)

CANCELLED_MESSAGE = "Cancelled by admin"


def _utc_now() -> datetime:
    return datetime.now(UTC)


class JobMonitor(SessionStore):
    def create_job(
        self,
        segments: list[dict],
        *,
        template_id: UUID | None = None,
        child_id: UUID | None = None,
        submitted_by: UUID | None = None,
    ) -> VideoGenerationJob:
        with self._session() as session:
            job = VideoGenerationJob(
                status="pending",
                segments=segments,
                template_id=template_id,
                child_id=child_id,
                submitted_by=submitted_by,
            )
            session.add(job)
            session.commit()
            session.refresh(job)
            return job

    def get_job(self, job_id: UUID) -> VideoGenerationJob:
        with self._session() as session:
            job = session.get(VideoGenerationJob, job_id)
            if job is None:
                raise RecordNotFound("job", job_id)
            return job

    def list_jobs(
        self,
        status: str | None = None,
        child_id: UUID | None = None,
        limit: int = 50,
        offset: int = 0,
    ) -> list[VideoGenerationJob]:
        with self._session() as session:
            stmt = select(VideoGenerationJob)
            if status:
                stmt = stmt.where(VideoGenerationJob.status == status)
            if child_id:
                stmt = stmt.where(VideoGenerationJob.child_id == child_id)
            stmt = stmt.order_by(desc(VideoGenerationJob.created_at)).limit(limit).offset(offset)
            return list(session.execute(stmt).scalars().all())

    def status_counts(self) -> dict[str, int]:
        with self._session() as session:
            rows = session.execute(
                select(VideoGenerationJob.status, func.count()).group_by(VideoGenerationJob.status)
            ).all()
            return {str(status): int(count) for status, count in rows}

    def start(self, job_id: UUID) -> VideoGenerationJob:
        return self._apply(job_id, "in_progress", source="worker", started_at=_utc_now())

    def complete(self, job_id: UUID, output_url: str | None = None) -> VideoGenerationJob:
        return self._apply(
            job_id,
            "completed",
            source="worker",
            output_url=output_url,
            completed_at=_utc_now(),
        )

    def fail(self, job_id: UUID, message: str, source: str = "worker") -> VideoGenerationJob:
        return self._apply(
            job_id,
            "failed",
            source=source,
            error_message=message or "render failed",
            completed_at=_utc_now(),
        )

    def retry(self, job_id: UUID, actor: UUID | None = None) -> VideoGenerationJob:
        return self._apply(
            job_id,
            "pending",
            actor=actor,
            error_message=None,
            started_at=None,
            completed_at=None,
        )

    def cancel(self, job_id: UUID, actor: UUID | None = None) -> VideoGenerationJob:
        return self._apply(
            job_id,
            "failed",
            actor=actor,
            error_message=CANCELLED_MESSAGE,
            completed_at=_utc_now(),
        )

    def mark_stale(self, older_min: int) -> list[VideoGenerationJob]:
        cutoff = _utc_now() - timedelta(minutes=older_min)
        with self._session() as session:
            stmt = select(VideoGenerationJob).where(
                VideoGenerationJob.status == "in_progress",
                VideoGenerationJob.updated_at < cutoff,
            )
            jobs = list(session.execute(stmt).scalars().all())
            for job in jobs:
                job.status = "failed"
                job.error_message = f"auto-cleanup: in progress > {older_min} min"
                job.completed_at = _utc_now()
            if jobs:
                record_event(
                    session,
                    "jobs_marked_stale",
                    {"count": len(jobs), "older_min": older_min},
                    source="system",
                )
            session.commit()
            return jobs

    def _apply(
        self,
        job_id: UUID,
        target: str,
        *,
        actor: UUID | None = None,
        source: str = "ui",
        **fields,
    ) -> VideoGenerationJob:
        with self._session() as session:
            job = session.get(VideoGenerationJob, job_id)
            if job is None:
                raise RecordNotFound("job", job_id)
            previous = job.status
            if not JOB_MACHINE.check(previous, target):
                return job
            job.status = target
            for name, value in fields.items():
                setattr(job, name, value)
            record_event(
                session,
                f"job_{target}",
                {"job_id": job.id, "from": previous, "to": target},
                actor_user_id=actor,
                source=source,
            )
            session.commit()
            session.refresh(job)
            logger.info("job %s %s -> %s", job.id, previous, target)
            return job
