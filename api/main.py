from __future__ import annotations

from datetime import date, datetime, timezone
import logging
from os import getenv
from typing import Any, Dict, List, Literal, Optional
from uuid import UUID

from fastapi import Depends, FastAPI, Header, HTTPException, Query
from fastapi.encoders import jsonable_encoder
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel, Field

from db.models import Asset, ContentProject, VideoAssignment, VideoGenerationJob
from pipeline.assets import AssetStore
from pipeline.assignments import AssignmentDraft, AssignmentStore, preview_assignments
from pipeline.errors import (
    GenerationError,
    InvalidTransition,
    NotReadyError,
    PersistenceError,
    PipelineError,
    RecordNotFound,
    ValidationError,
)
from pipeline.gate import is_ready, missing_labels
from pipeline.monitor import JobMonitor
from pipeline.projects import ProjectStore
from pipeline.queue import ASSET_WORKLOAD, RENDER_WORKLOAD, job_timeout, queue_name
from pipeline.workflow import ContentWorkflow

logging.basicConfig(
    level=getenv("LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s %(levelname)s %(name)s %(message)s",
)
logger = logging.getLogger(__name__)

app = FastAPI(title="Content Pipeline API", version="0.1.0")

app.add_middleware(
    CORSMiddleware,
    allow_origins=["http://localhost:3000", "http://127.0.0.1:3000"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def _projects() -> ProjectStore:
    return ProjectStore()


def _assets() -> AssetStore:
    return AssetStore()


def _assignments() -> AssignmentStore:
    return AssignmentStore()


def _monitor() -> JobMonitor:
    return JobMonitor()


def _workflow() -> ContentWorkflow:
    return ContentWorkflow()


def _paginate(limit: int, offset: int) -> tuple[int, int]:
    limit = max(1, min(limit, 200))
    offset = max(0, offset)
    return limit, offset


def _require_operator(x_operator_token: str | None = Header(default=None)) -> None:
    expected = getenv("OPERATOR_TOKEN", "")
    if not expected:
        if getenv("ALLOW_OPS_WITHOUT_TOKEN", "0") == "1":
            return
        raise HTTPException(status_code=503, detail="operator_token_missing")
    if x_operator_token != expected:
        raise HTTPException(status_code=401, detail="operator_token_required")


def _actor(x_actor_id: UUID | None = Header(default=None)) -> UUID | None:
    return x_actor_id


def _http_error(exc: PipelineError) -> HTTPException:
    if isinstance(exc, NotReadyError):
        return HTTPException(status_code=409, detail={"error": "not_ready", "missing": exc.missing})
    if isinstance(exc, InvalidTransition):
        return HTTPException(status_code=409, detail=str(exc))
    if isinstance(exc, ValidationError):
        return HTTPException(status_code=400, detail=str(exc))
    if isinstance(exc, RecordNotFound):
        return HTTPException(status_code=404, detail=f"{exc.entity}_not_found")
    if isinstance(exc, GenerationError):
        return HTTPException(status_code=502, detail=str(exc))
    if isinstance(exc, PersistenceError):
        logger.error("persistence failure: %s", exc)
        return HTTPException(status_code=503, detail="persistence_failed")
    return HTTPException(status_code=500, detail=str(exc))


def _project_row(project: ContentProject) -> dict:
    return jsonable_encoder(
        {
            "id": project.id,
            "title": project.title,
            "theme": project.theme,
            "target_age": project.target_age,
            "duration": project.duration,
            "status": project.status,
            "created_at": project.created_at,
        }
    )


def _asset_row(asset: Asset) -> dict:
    return jsonable_encoder(
        {
            "id": asset.id,
            "project_id": asset.project_id,
            "type": asset.type,
            "theme": asset.theme,
            "prompt": asset.prompt,
            "file_url": asset.file_url,
            "status": asset.status,
            "metadata": asset.asset_metadata or {},
            "approved_at": asset.approved_at,
            "rejection_reason": asset.rejection_reason,
            "created_at": asset.created_at,
        }
    )


def _assignment_row(row: VideoAssignment | AssignmentDraft) -> dict:
    return jsonable_encoder(
        {
            "id": getattr(row, "id", None),
            "video_id": row.video_id,
            "child_id": row.child_id,
            "theme": row.theme,
            "assignment_type": row.assignment_type,
            "publish_date": row.publish_date,
            "status": row.status,
        }
    )


def _job_row(job: VideoGenerationJob) -> dict:
    return jsonable_encoder(
        {
            "id": job.id,
            "child_id": job.child_id,
            "template_id": job.template_id,
            "status": job.status,
            "segments": job.segments or [],
            "output_url": job.output_url,
            "error_message": job.error_message,
            "started_at": job.started_at,
            "completed_at": job.completed_at,
            "created_at": job.created_at,
        }
    )


class ProjectCreateRequest(BaseModel):
    title: str
    theme: str
    target_age: str = Field(default="2-4")


class ProjectStatusRequest(BaseModel):
    status: Literal["planning", "generating", "reviewing", "approved", "video_ready"]


class GenerateAssetsRequest(BaseModel):
    template: Literal["lullaby", "name-video"] = Field(default="name-video")
    safe_zones: List[str] = Field(default_factory=lambda: ["center_safe"])
    prompt_count: int = Field(default=1, ge=1, le=10)
    aspect_ratio: Literal["16:9", "9:16"] = Field(default="16:9")
    additional_context: str | None = None


class AssetReviewRequest(BaseModel):
    notes: str | None = None


class AssetMetadataRequest(BaseModel):
    metadata: Dict[str, Any] = Field(default_factory=dict)
    tags: List[str] | None = None


class TemplateSubmitRequest(BaseModel):
    child_id: UUID | None = None
    project_id: UUID | None = None


class AssignmentPreviewRequest(BaseModel):
    video_ids: List[UUID]
    assignment_type: Literal["individual", "theme", "general"]
    target: str | None = None
    publish_date: date | None = None


class ReleaseRequest(BaseModel):
    today: date | None = None


class RendererCallbackRequest(BaseModel):
    status: Literal["in_progress", "completed", "failed"]
    output_url: str | None = None
    error_message: str | None = None


class CleanupRequest(BaseModel):
    older_min: int = Field(default=30, ge=1, le=1440)


@app.get("/health")
def health() -> dict:
    return {"status": "ok"}


@app.get("/settings")
def get_settings() -> dict:
    def flag(name: str, default: str = "") -> str:
        return getenv(name, default)

    return {
        "database_url": flag("DATABASE_URL", ""),
        "redis_url": flag("REDIS_URL", ""),
        "rq_asset_queue": queue_name(ASSET_WORKLOAD),
        "rq_asset_timeout": job_timeout(ASSET_WORKLOAD),
        "rq_render_queue": queue_name(RENDER_WORKLOAD),
        "rq_render_timeout": job_timeout(RENDER_WORKLOAD),
        "generation_api_base_url": flag("GENERATION_API_BASE_URL", ""),
        "generation_api_key_present": flag("GENERATION_API_KEY", "") != "",
        "generation_api_timeout_s": flag("GENERATION_API_TIMEOUT_S", "60"),
        "default_project_duration_s": flag("DEFAULT_PROJECT_DURATION_S", "60"),
        "operator_guard": flag("OPERATOR_TOKEN", "") != "",
        "log_level": flag("LOG_LEVEL", "INFO"),
    }


@app.post("/projects")
def create_project(
    request: ProjectCreateRequest,
    actor: UUID | None = Depends(_actor),
    _guard: None = Depends(_require_operator),
) -> dict:
    try:
        project = _projects().create_project(request.title, request.theme, request.target_age, actor)
    except PipelineError as exc:
        raise _http_error(exc) from exc
    return _project_row(project)


@app.get("/projects")
def list_projects(
    status: Optional[str] = None,
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
) -> List[dict]:
    limit, offset = _paginate(limit, offset)
    try:
        rows = _projects().list_projects(status=status, limit=limit, offset=offset)
    except PipelineError as exc:
        raise _http_error(exc) from exc
    return [_project_row(row) for row in rows]


@app.post("/projects/{project_id}/status")
def update_project_status(
    project_id: UUID,
    request: ProjectStatusRequest,
    actor: UUID | None = Depends(_actor),
    _guard: None = Depends(_require_operator),
) -> dict:
    try:
        project = _projects().advance_status(project_id, request.status, actor)
    except PipelineError as exc:
        raise _http_error(exc) from exc
    return _project_row(project)


@app.post("/projects/{project_id}/generate-assets")
def generate_project_assets(
    project_id: UUID,
    request: GenerateAssetsRequest,
    actor: UUID | None = Depends(_actor),
    _guard: None = Depends(_require_operator),
) -> dict:
    try:
        run = _workflow().generate_project_assets(
            project_id,
            template=request.template,
            safe_zones=request.safe_zones,
            prompt_count=request.prompt_count,
            aspect_ratio=request.aspect_ratio,
            additional_context=request.additional_context,
            actor=actor,
        )
    except PipelineError as exc:
        raise _http_error(exc) from exc
    return {
        "project": _project_row(run.project),
        "assets": [_asset_row(asset) for asset in run.assets],
        "queue_id": run.queue_id,
    }


@app.get("/assets")
def list_assets(
    project_id: Optional[UUID] = None,
    status: Optional[str] = None,
    asset_type: Optional[str] = None,
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
) -> List[dict]:
    limit, offset = _paginate(limit, offset)
    try:
        rows = _assets().list_assets(
            project_id=project_id,
            status=status,
            asset_type=asset_type,
            limit=limit,
            offset=offset,
        )
    except PipelineError as exc:
        raise _http_error(exc) from exc
    return [_asset_row(row) for row in rows]


@app.get("/assets/theme-match")
def theme_match(theme: str, safe_zone: str) -> dict:
    try:
        asset = _assets().find_approved_by_theme_and_safe_zone(theme, safe_zone)
    except PipelineError as exc:
        raise _http_error(exc) from exc
    return {"theme": theme, "safe_zone": safe_zone, "asset": _asset_row(asset) if asset else None}


@app.get("/assets/by-class/{asset_class}")
def asset_by_class(asset_class: str, asset_type: str = "audio") -> dict:
    try:
        asset = _assets().find_approved_by_class(asset_class, asset_type)
    except PipelineError as exc:
        raise _http_error(exc) from exc
    return {"asset_class": asset_class, "asset": _asset_row(asset) if asset else None}


@app.post("/assets/{asset_id}/approve")
def approve_asset(
    asset_id: UUID,
    request: AssetReviewRequest,
    actor: UUID | None = Depends(_actor),
    _guard: None = Depends(_require_operator),
) -> dict:
    try:
        asset = _assets().approve(asset_id, reviewer=actor, notes=request.notes)
    except PipelineError as exc:
        raise _http_error(exc) from exc
    return _asset_row(asset)


@app.post("/assets/{asset_id}/reject")
def reject_asset(
    asset_id: UUID,
    request: AssetReviewRequest,
    actor: UUID | None = Depends(_actor),
    _guard: None = Depends(_require_operator),
) -> dict:
    try:
        asset = _assets().reject(asset_id, reviewer=actor, reason=request.notes)
    except PipelineError as exc:
        raise _http_error(exc) from exc
    return _asset_row(asset)


@app.post("/assets/{asset_id}/metadata")
def update_asset_metadata(
    asset_id: UUID,
    request: AssetMetadataRequest,
    actor: UUID | None = Depends(_actor),
    _guard: None = Depends(_require_operator),
) -> dict:
    try:
        asset = _assets().update_metadata(asset_id, request.metadata, tags=request.tags, actor=actor)
    except PipelineError as exc:
        raise _http_error(exc) from exc
    return _asset_row(asset)


@app.get("/templates/{template_id}/readiness")
def template_readiness(template_id: UUID) -> dict:
    try:
        template, checks = _workflow().template_readiness(template_id)
    except PipelineError as exc:
        raise _http_error(exc) from exc
    return jsonable_encoder(
        {
            "template_id": template.id,
            "name": template.name,
            "ready": is_ready(checks),
            "missing": missing_labels(checks),
            "requirements": [
                {
                    "required": check.label,
                    "asset_id": check.asset.id if check.asset else None,
                    "missing": check.missing,
                }
                for check in checks
            ],
        }
    )


@app.post("/templates/{template_id}/submit")
def submit_template(
    template_id: UUID,
    request: TemplateSubmitRequest,
    actor: UUID | None = Depends(_actor),
    _guard: None = Depends(_require_operator),
) -> dict:
    try:
        job = _workflow().submit_template_video(
            template_id,
            submitted_by=actor,
            child_id=request.child_id,
            project_id=request.project_id,
        )
    except PipelineError as exc:
        raise _http_error(exc) from exc
    return _job_row(job)


@app.post("/assignments/preview")
def assignments_preview(request: AssignmentPreviewRequest) -> List[dict]:
    try:
        drafts = preview_assignments(
            request.video_ids,
            request.assignment_type,
            request.target,
            request.publish_date,
        )
    except PipelineError as exc:
        raise _http_error(exc) from exc
    return [_assignment_row(draft) for draft in drafts]


@app.post("/assignments/publish")
def assignments_publish(
    request: AssignmentPreviewRequest,
    actor: UUID | None = Depends(_actor),
    _guard: None = Depends(_require_operator),
) -> List[dict]:
    try:
        drafts = preview_assignments(
            request.video_ids,
            request.assignment_type,
            request.target,
            request.publish_date,
        )
        rows = _assignments().publish(drafts, assigned_by=actor)
    except PipelineError as exc:
        raise _http_error(exc) from exc
    return [_assignment_row(row) for row in rows]


@app.post("/assignments/release-due")
def assignments_release_due(request: ReleaseRequest, _guard: None = Depends(_require_operator)) -> dict:
    try:
        rows = _assignments().release_due(request.today)
    except PipelineError as exc:
        raise _http_error(exc) from exc
    return {"published": len(rows)}


@app.post("/assignments/{assignment_id}/archive")
def assignment_archive(
    assignment_id: UUID,
    actor: UUID | None = Depends(_actor),
    _guard: None = Depends(_require_operator),
) -> dict:
    try:
        row = _assignments().archive(assignment_id, actor)
    except PipelineError as exc:
        raise _http_error(exc) from exc
    return _assignment_row(row)


@app.get("/jobs")
def list_jobs(
    status: Optional[str] = None,
    child_id: Optional[UUID] = None,
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
) -> List[dict]:
    limit, offset = _paginate(limit, offset)
    try:
        rows = _monitor().list_jobs(status=status, child_id=child_id, limit=limit, offset=offset)
    except PipelineError as exc:
        raise _http_error(exc) from exc
    return [_job_row(row) for row in rows]


@app.get("/jobs/summary")
def jobs_summary() -> dict:
    try:
        counts = _monitor().status_counts()
    except PipelineError as exc:
        raise _http_error(exc) from exc
    return {"by_status": counts, "updated_at": datetime.now(timezone.utc).isoformat()}


@app.post("/jobs/{job_id}/retry")
def retry_job(
    job_id: UUID,
    actor: UUID | None = Depends(_actor),
    _guard: None = Depends(_require_operator),
) -> dict:
    try:
        job = _workflow().retry_job(job_id, actor)
    except PipelineError as exc:
        raise _http_error(exc) from exc
    return _job_row(job)


@app.post("/jobs/{job_id}/cancel")
def cancel_job(
    job_id: UUID,
    actor: UUID | None = Depends(_actor),
    _guard: None = Depends(_require_operator),
) -> dict:
    try:
        job = _monitor().cancel(job_id, actor)
    except PipelineError as exc:
        raise _http_error(exc) from exc
    return _job_row(job)


@app.post("/jobs/{job_id}/callback")
def renderer_callback(
    job_id: UUID,
    request: RendererCallbackRequest,
    _guard: None = Depends(_require_operator),
) -> dict:
    monitor = _monitor()
    try:
        if request.status == "in_progress":
            job = monitor.start(job_id)
        elif request.status == "completed":
            job = monitor.complete(job_id, request.output_url)
        else:
            job = monitor.fail(job_id, request.error_message or "render failed")
    except PipelineError as exc:
        raise _http_error(exc) from exc
    return _job_row(job)


@app.post("/ops/cleanup-jobs")
def ops_cleanup_jobs(request: CleanupRequest, _guard: None = Depends(_require_operator)) -> dict:
    try:
        jobs = _monitor().mark_stale(request.older_min)
    except PipelineError as exc:
        raise _http_error(exc) from exc
    return {"marked_failed": len(jobs)}
