"""Multi-step pipeline actions with compensation on partial failure.

Generating assets touches three independent systems (asset rows, the project
status and the generation queue). Each completed step registers an undo
action; when a later step fails the undo actions run in reverse order and the
original error is re-raised.
"""

from __future__ import annotations

from dataclasses import dataclass, field
import logging
from typing import Callable, Sequence
from uuid import UUID

from db.models import Asset, ContentProject, VideoGenerationJob, VideoTemplate
from generator.client import PromptClient
from generator.prompts import PromptSource, build_request, generate_prompt_groups
from pipeline.assets import AssetStore
from pipeline.errors import GenerationError, PipelineError
from pipeline.gate import ApprovalGate, RequirementCheck
from pipeline.monitor import JobMonitor
from pipeline.projects import ProjectStore
from pipeline.queue import enqueue_asset_generation, enqueue_render
from pipeline.templates import TemplateStore

logger = logging.getLogger(__name__)


@dataclass
class GenerationRun:
    project: ContentProject
    assets: list[Asset]
    queue_id: str | None = None
    compensations: list[Callable[[], object]] = field(default_factory=list, repr=False)


class ContentWorkflow:
    def __init__(
        self,
        *,
        projects: ProjectStore | None = None,
        assets: AssetStore | None = None,
        templates: TemplateStore | None = None,
        monitor: JobMonitor | None = None,
        prompts: PromptSource | None = None,
        trigger_generation: Callable[[str], str] | None = None,
        trigger_render: Callable[[str], str] | None = None,
    ) -> None:
        self.projects = projects or ProjectStore()
        self.assets = assets or AssetStore()
        self.templates = templates or TemplateStore()
        self.monitor = monitor or JobMonitor()
        self.gate = ApprovalGate(self.assets)
        self.prompts = prompts or PromptClient()
        self.trigger_generation = trigger_generation or enqueue_asset_generation
        self.trigger_render = trigger_render or enqueue_render

    def generate_project_assets(
        self,
        project_id: UUID,
        *,
        template: str = "name-video",
        safe_zones: Sequence[str] = ("center_safe",),
        prompt_count: int = 1,
        aspect_ratio: str = "16:9",
        additional_context: str | None = None,
        actor: UUID | None = None,
    ) -> GenerationRun:
        project = self.projects.get_project(project_id)
        request = build_request(
            theme=project.theme,
            age_range=project.target_age,
            template=template,
            safe_zones=tuple(safe_zones),
            prompt_count=prompt_count,
            aspect_ratio=aspect_ratio,
            additional_context=additional_context,
            project_id=str(project.id),
        )
        groups = generate_prompt_groups(self.prompts, request)

        already_pending = self.assets.pending_for_project(project.id)
        if already_pending:
            logger.warning(
                "project %s already has %d pending asset(s); adding a new batch",
                project.id,
                len(already_pending),
            )

        created = self.assets.generate_assets_for_project(project.id, groups, template)
        run = GenerationRun(project=project, assets=created)
        created_ids = [asset.id for asset in created]
        run.compensations.append(lambda: self.assets.delete_assets(created_ids))

        previous_status = project.status
        try:
            run.project = self.projects.advance_status(project.id, "generating", actor)
            run.compensations.append(
                lambda: self.projects.advance_status(project.id, previous_status, actor)
            )
            run.queue_id = self.trigger_generation(str(project.id))
        except PipelineError:
            self._compensate(run)
            raise
        logger.info(
            "asset generation started project=%s assets=%d queue_id=%s",
            project.id,
            len(created),
            run.queue_id,
        )
        return run

    def _compensate(self, run: GenerationRun) -> None:
        for undo in reversed(run.compensations):
            try:
                undo()
            except PipelineError:
                logger.exception("compensation step failed for project %s", run.project.id)
        run.compensations.clear()

    def template_readiness(self, template_id: UUID) -> tuple[VideoTemplate, list[RequirementCheck]]:
        template = self.templates.get_template(template_id)
        return template, self.gate.validate(template)

    def submit_template_video(
        self,
        template_id: UUID,
        *,
        submitted_by: UUID | None = None,
        child_id: UUID | None = None,
        project_id: UUID | None = None,
    ) -> VideoGenerationJob:
        template = self.templates.get_template(template_id)
        checks = self.gate.ensure_ready(template)
        segments = [
            {
                "asset_id": str(check.asset.id),
                "purpose": check.label,
                "type": check.asset.type,
                "file_url": check.asset.file_url,
            }
            for check in checks
            if check.asset is not None
        ]
        job = self.monitor.create_job(
            segments,
            template_id=template.id,
            child_id=child_id,
            submitted_by=submitted_by,
        )
        try:
            self.trigger_render(str(job.id))
        except GenerationError as exc:
            self.monitor.fail(job.id, str(exc), source="system")
            raise
        if project_id is not None:
            self.projects.advance_status(project_id, "video_ready", submitted_by)
        return job

    def retry_job(self, job_id: UUID, actor: UUID | None = None) -> VideoGenerationJob:
        """Reset a failed render job to pending and queue it again.

        Retrying a job that is already pending is a no-op and does not queue a
        second render.
        """
        previous = self.monitor.get_job(job_id).status
        job = self.monitor.retry(job_id, actor)
        if previous == job.status:
            return job
        try:
            self.trigger_render(str(job.id))
        except GenerationError as exc:
            self.monitor.fail(job.id, str(exc), source="system")
            raise
        logger.info("job %s re-queued for render", job.id)
        return job

