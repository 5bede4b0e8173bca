from __future__ import annotations

from types import SimpleNamespace

import pytest

import pipeline.jobs as jobs_module
from generator.types import PromptGroup
from pipeline.errors import GenerationError
from pipeline.jobs import generate_project_assets_job, render_video_job, rq_on_failure


class _FakeMedia:
    def __init__(self, fail_prompts: set[str] | None = None) -> None:
        self.fail_prompts = fail_prompts or set()
        self.calls = []

    def generate_asset(self, asset_id, asset_type, prompt, metadata):
        self.calls.append((asset_id, asset_type, prompt))
        if prompt in self.fail_prompts:
            raise GenerationError("media backend timeout")
        return f"https://cdn.example/{asset_id}"


class _FakeRenderer:
    def __init__(self, error: Exception | None = None) -> None:
        self.error = error
        self.submitted = []

    def submit(self, job_id, template_id, segments):
        self.submitted.append((job_id, template_id, segments))
        if self.error is not None:
            raise self.error
        return "render-1"


def _project_with_assets(projects, assets):
    project = projects.create_project("Space", "space", "3-5")
    projects.advance_status(project.id, "generating")
    created = assets.generate_assets_for_project(
        project.id,
        [PromptGroup("center_safe", "16:9", backgrounds=["stars"], music="twinkle")],
    )
    return project, created


def test_generate_project_assets_job_completes_all(projects, assets) -> None:
    project, created = _project_with_assets(projects, assets)
    media = _FakeMedia()

    result = generate_project_assets_job(str(project.id), assets=assets, projects=projects, media=media)

    assert result == {"project_id": str(project.id), "generated": 2, "failed": []}
    assert {asset.status for asset in assets.list_assets(project_id=project.id)} == {"completed"}
    assert projects.get_project(project.id).status == "reviewing"


def test_generate_project_assets_job_returns_failed_assets_to_pending(projects, assets) -> None:
    project, created = _project_with_assets(projects, assets)

    result = generate_project_assets_job(
        str(project.id),
        assets=assets,
        projects=projects,
        media=_FakeMedia(fail_prompts={"twinkle"}),
    )

    music = next(asset for asset in created if asset.type == "audio")
    assert result["generated"] == 1
    assert result["failed"] == [str(music.id)]
    refreshed = assets.get_asset(music.id)
    assert refreshed.status == "pending"
    assert refreshed.asset_metadata["generation_error"] == "media backend timeout"
    assert projects.get_project(project.id).status == "generating"


def test_render_video_job_starts_and_submits(monitor) -> None:
    job = monitor.create_job([{"asset_id": "a1"}])
    renderer = _FakeRenderer()

    result = render_video_job(str(job.id), monitor=monitor, renderer=renderer)

    assert result == {"job_id": str(job.id), "render_id": "render-1"}
    assert renderer.submitted == [(str(job.id), None, [{"asset_id": "a1"}])]
    assert monitor.get_job(job.id).status == "in_progress"


def test_render_video_job_marks_failure(monitor) -> None:
    job = monitor.create_job([])

    with pytest.raises(GenerationError):
        render_video_job(str(job.id), monitor=monitor, renderer=_FakeRenderer(GenerationError("renderer 503")))

    failed = monitor.get_job(job.id)
    assert failed.status == "failed"
    assert failed.error_message == "renderer 503"


def test_rq_on_failure_marks_render_job_failed(monkeypatch, monitor) -> None:
    job = monitor.create_job([])
    monitor.start(job.id)
    monkeypatch.setattr(jobs_module, "JobMonitor", lambda: monitor)
    rq_job = SimpleNamespace(id="rq-1", func_name="pipeline.jobs.render_video_job", args=(str(job.id),))

    rq_on_failure(rq_job, None, TimeoutError, TimeoutError("job exceeded timeout"), None)

    failed = monitor.get_job(job.id)
    assert failed.status == "failed"
    assert failed.error_message == "job exceeded timeout"


def test_rq_on_failure_ignores_other_jobs(monkeypatch) -> None:
    def _unexpected():
        raise AssertionError("monitor should not be used")

    monkeypatch.setattr(jobs_module, "JobMonitor", _unexpected)
    rq_job = SimpleNamespace(id="rq-2", func_name="pipeline.jobs.generate_project_assets_job", args=("p1",))

    rq_on_failure(rq_job, None, RuntimeError, RuntimeError("boom"), None)
