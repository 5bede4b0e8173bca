from __future__ import annotations

import logging
from uuid import UUID

from rq.job import Job as RQJob

from generator.client import MediaClient, RenderClient
from pipeline.assets import AssetStore
from pipeline.errors import GenerationError, PipelineError
from pipeline.monitor import JobMonitor
from pipeline.projects import ProjectStore

logger = logging.getLogger(__name__)


def rq_on_failure(job: RQJob, connection, exc_type, exc_value, traceback) -> None:  # type: ignore[no-untyped-def]
    if job.func_name != f"{__name__}.render_video_job":
        logger.error("rq job %s failed: %s", job.id, exc_value)
        return
    job_id = job.args[0] if job.args else None
    if job_id is None:
        return
    try:
        JobMonitor().fail(UUID(str(job_id)), str(exc_value) or exc_type.__name__)
    except PipelineError as exc:
        logger.error("could not mark job %s failed: %s", job_id, exc)


def _fallback_prompt(asset) -> str:  # type: ignore[no-untyped-def]
    return f"Create a child-friendly {asset.type} for theme: {asset.theme}"


def generate_project_assets_job(
    project_id: str,
    *,
    assets: AssetStore | None = None,
    projects: ProjectStore | None = None,
    media: MediaClient | None = None,
) -> dict:
    assets = assets or AssetStore()
    projects = projects or ProjectStore()
    media = media or MediaClient()

    project_uuid = UUID(str(project_id))
    pending = assets.pending_for_project(project_uuid)
    generated = 0
    failed: list[str] = []
    for asset in pending:
        assets.mark_generating(asset.id)
        try:
            file_url = media.generate_asset(
                str(asset.id),
                asset.type,
                asset.prompt or _fallback_prompt(asset),
                asset.asset_metadata or {},
            )
        except GenerationError as exc:
            logger.warning("asset %s generation failed: %s", asset.id, exc)
            assets.mark_generation_failed(asset.id, str(exc))
            failed.append(str(asset.id))
            continue
        assets.mark_completed(asset.id, file_url)
        generated += 1

    if pending and not failed:
        projects.advance_status(project_uuid, "reviewing")

    return {"project_id": str(project_uuid), "generated": generated, "failed": failed}


def render_video_job(
    job_id: str,
    *,
    monitor: JobMonitor | None = None,
    renderer: RenderClient | None = None,
) -> dict:
    monitor = monitor or JobMonitor()
    renderer = renderer or RenderClient()

    job = monitor.start(UUID(str(job_id)))
    try:
        render_id = renderer.submit(
            str(job.id),
            str(job.template_id) if job.template_id else None,
            list(job.segments or []),
        )
    except GenerationError as exc:
        monitor.fail(job.id, str(exc))
        raise
    logger.info("job %s submitted to renderer render_id=%s", job.id, render_id)
    return {"job_id": str(job.id), "render_id": render_id}
