from __future__ import annotations

from datetime import UTC, datetime, timedelta
from uuid import uuid4

import pytest
from sqlalchemy import select, update

from db.models import AuditEvent, VideoGenerationJob
from pipeline.errors import InvalidTransition, RecordNotFound, ValidationError
from pipeline.monitor import CANCELLED_MESSAGE
from pipeline.states import ASSET_MACHINE, JOB_MACHINE, PROJECT_MACHINE


def _job(monitor):
    return monitor.create_job([{"asset_id": str(uuid4()), "purpose": "intro", "type": "audio"}])


def test_state_machine_check() -> None:
    assert JOB_MACHINE.check("pending", "in_progress") is True
    assert JOB_MACHINE.check("failed", "failed") is False
    assert PROJECT_MACHINE.check("video_ready", "planning") is True
    with pytest.raises(InvalidTransition):
        JOB_MACHINE.check("completed", "pending")
    with pytest.raises(InvalidTransition):
        ASSET_MACHINE.check("rejected", "approved")
    with pytest.raises(ValidationError):
        JOB_MACHINE.check("pending", "queued")


def test_job_runs_to_completion(monitor) -> None:
    job = _job(monitor)
    assert job.status == "pending"

    started = monitor.start(job.id)
    done = monitor.complete(job.id, "https://cdn.example/video.mp4")

    assert started.started_at is not None
    assert done.status == "completed"
    assert done.output_url == "https://cdn.example/video.mp4"
    assert done.completed_at is not None
    assert done.error_message is None


def test_retry_clears_failure_fields(monitor) -> None:
    job = _job(monitor)
    monitor.start(job.id)
    failed = monitor.fail(job.id, "X")
    assert failed.status == "failed"
    assert failed.error_message == "X"

    retried = monitor.retry(job.id)

    assert retried.status == "pending"
    assert retried.error_message is None
    assert retried.started_at is None
    assert retried.completed_at is None


def test_cancel_pending_job(monitor) -> None:
    job = _job(monitor)

    cancelled = monitor.cancel(job.id)

    assert cancelled.status == "failed"
    assert cancelled.error_message == CANCELLED_MESSAGE
    assert cancelled.completed_at is not None


def test_completed_job_cannot_be_retried_or_cancelled(monitor) -> None:
    job = _job(monitor)
    monitor.start(job.id)
    monitor.complete(job.id)

    with pytest.raises(InvalidTransition):
        monitor.retry(job.id)
    with pytest.raises(InvalidTransition):
        monitor.cancel(job.id)


def test_pending_job_cannot_complete(monitor) -> None:
    job = _job(monitor)

    with pytest.raises(InvalidTransition):
        monitor.complete(job.id)


def test_transitions_are_audited(monitor, session_factory) -> None:
    job = _job(monitor)
    actor = uuid4()
    monitor.cancel(job.id, actor)
    monitor.retry(job.id, actor)

    with session_factory() as session:
        events = session.execute(select(AuditEvent)).scalars().all()
    assert sorted(event.event_type for event in events) == ["job_failed", "job_pending"]
    assert all(event.actor_user_id == actor for event in events)


def test_failed_again_is_noop(monitor) -> None:
    job = _job(monitor)
    monitor.fail(job.id, "first")

    again = monitor.fail(job.id, "second")

    assert again.error_message == "first"


def test_unknown_job(monitor) -> None:
    with pytest.raises(RecordNotFound):
        monitor.retry(uuid4())


def test_list_and_status_counts(monitor) -> None:
    first, second, third = _job(monitor), _job(monitor), _job(monitor)
    monitor.start(first.id)
    monitor.cancel(second.id)

    assert monitor.status_counts() == {"in_progress": 1, "failed": 1, "pending": 1}
    assert [job.id for job in monitor.list_jobs(status="pending")] == [third.id]


def test_mark_stale_fails_old_in_progress_jobs(monitor, session_factory) -> None:
    stale, fresh = _job(monitor), _job(monitor)
    monitor.start(stale.id)
    monitor.start(fresh.id)
    with session_factory() as session:
        session.execute(
            update(VideoGenerationJob)
            .where(VideoGenerationJob.id == stale.id)
            .values(updated_at=datetime.now(UTC) - timedelta(hours=2))
        )
        session.commit()

    marked = monitor.mark_stale(30)

    assert [job.id for job in marked] == [stale.id]
    assert monitor.get_job(stale.id).status == "failed"
    assert monitor.get_job(stale.id).error_message.startswith("auto-cleanup")
    assert monitor.get_job(fresh.id).status == "in_progress"
