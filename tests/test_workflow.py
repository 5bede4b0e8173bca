from __future__ import annotations

from uuid import uuid4

import pytest

from db.models import Asset
from generator.types import PromptGroup
from pipeline.errors import GenerationError, NotReadyError, ValidationError
from pipeline.gate import is_ready
from pipeline.templates import load_template_file
from pipeline.workflow import ContentWorkflow


class _FakePrompts:
    def __init__(self, fail: bool = False) -> None:
        self.fail = fail
        self.requests = []

    def generate_prompts(self, request):
        self.requests.append(request)
        if self.fail:
            raise GenerationError("prompt service down")
        return [
            PromptGroup(
                safe_zone=zone,
                aspect_ratio=request.aspect_ratio,
                backgrounds=[f"{request.theme} sky"],
                music=f"{request.theme} music",
            )
            for zone in request.safe_zones
        ]


class _Trigger:
    def __init__(self, error: Exception | None = None) -> None:
        self.error = error
        self.calls: list[str] = []

    def __call__(self, key: str) -> str:
        self.calls.append(key)
        if self.error is not None:
            raise self.error
        return f"rq-{len(self.calls)}"


def _workflow(projects, assets, templates, monitor, **overrides) -> ContentWorkflow:
    options = {
        "prompts": _FakePrompts(),
        "trigger_generation": _Trigger(),
        "trigger_render": _Trigger(),
        **overrides,
    }
    return ContentWorkflow(projects=projects, assets=assets, templates=templates, monitor=monitor, **options)


def test_generate_project_assets_inserts_and_queues(projects, assets, templates, monitor) -> None:
    trigger = _Trigger()
    workflow = _workflow(projects, assets, templates, monitor, trigger_generation=trigger)
    project = projects.create_project("Space", "space", "3-5")

    run = workflow.generate_project_assets(project.id, safe_zones=["center_safe", "left_safe"])

    assert run.queue_id == "rq-1"
    assert trigger.calls == [str(project.id)]
    assert run.project.status == "generating"
    assert len(run.assets) == 4
    assert {asset.type for asset in run.assets} == {"image", "audio"}
    assert workflow.prompts.requests[0].age_range == "3-5"


def test_generate_project_assets_falls_back_to_templated_prompts(projects, assets, templates, monitor) -> None:
    workflow = _workflow(projects, assets, templates, monitor, prompts=_FakePrompts(fail=True))
    project = projects.create_project("Space", "space", "3-5")

    run = workflow.generate_project_assets(project.id)

    assert len(run.assets) == 5
    assert all("space" in asset.prompt for asset in run.assets)


def test_generate_project_assets_compensates_when_queue_fails(projects, assets, templates, monitor) -> None:
    trigger = _Trigger(GenerationError("redis down"))
    workflow = _workflow(projects, assets, templates, monitor, trigger_generation=trigger)
    project = projects.create_project("Space", "space", "3-5")

    with pytest.raises(GenerationError):
        workflow.generate_project_assets(project.id)

    assert assets.list_assets(project_id=project.id) == []
    assert projects.get_project(project.id).status == "planning"


def test_submit_blocked_until_assets_approved(projects, assets, templates, monitor) -> None:
    render = _Trigger()
    workflow = _workflow(projects, assets, templates, monitor, trigger_render=render)
    project = projects.create_project("Space", "space", "3-5")
    run = workflow.generate_project_assets(project.id)
    music = next(asset for asset in run.assets if asset.type == "audio")
    assets.update_metadata(music.id, {"audio_class": "background_music"})
    template = templates.save_template(
        {
            "name": "Space lullaby",
            "template_type": "lullaby",
            "global_elements": [{"asset_type": "class", "asset_class": "background_music"}],
            "parts": [
                {
                    "name": "intro",
                    "required_assets": [
                        {"asset_type": "specific", "specific_asset_id": str(run.assets[0].id)},
                    ],
                }
            ],
        }
    )

    _, checks = workflow.template_readiness(template.id)
    assert is_ready(checks) is False
    with pytest.raises(NotReadyError) as exc_info:
        workflow.submit_template_video(template.id)
    assert len(exc_info.value.missing) == 2
    assert render.calls == []

    for asset in run.assets:
        assets.approve(asset.id)
    job = workflow.submit_template_video(template.id, project_id=project.id)

    assert job.status == "pending"
    assert render.calls == [str(job.id)]
    assert {segment["asset_id"] for segment in job.segments} == {str(music.id), str(run.assets[0].id)}
    assert projects.get_project(project.id).status == "video_ready"


def test_submit_marks_job_failed_when_render_queue_fails(session_factory, projects, assets, templates, monitor) -> None:
    with session_factory() as session:
        asset = Asset(type="audio", status="approved", asset_metadata={"audio_class": "background_music"})
        session.add(asset)
        session.commit()
    workflow = _workflow(
        projects,
        assets,
        templates,
        monitor,
        trigger_render=_Trigger(GenerationError("redis down")),
    )
    template = templates.save_template(
        {
            "name": "Music only",
            "template_type": "lullaby",
            "global_elements": [{"asset_type": "class", "asset_class": "background_music"}],
        }
    )

    with pytest.raises(GenerationError):
        workflow.submit_template_video(template.id, child_id=uuid4())

    jobs = monitor.list_jobs()
    assert len(jobs) == 1
    assert jobs[0].status == "failed"
    assert jobs[0].error_message == "redis down"


def _failed_job(monitor):
    job = monitor.create_job([])
    monitor.start(job.id)
    return monitor.fail(job.id, "encoder crashed")


def test_retry_job_requeues_failed_render(projects, assets, templates, monitor) -> None:
    trigger = _Trigger()
    workflow = _workflow(projects, assets, templates, monitor, trigger_render=trigger)
    job = _failed_job(monitor)

    retried = workflow.retry_job(job.id)
    again = workflow.retry_job(job.id)

    assert retried.status == again.status == "pending"
    assert retried.error_message is None
    assert trigger.calls == [str(job.id)]


def test_retry_job_marks_failed_when_render_queue_fails(projects, assets, templates, monitor) -> None:
    workflow = _workflow(
        projects,
        assets,
        templates,
        monitor,
        trigger_render=_Trigger(GenerationError("redis down")),
    )
    job = _failed_job(monitor)

    with pytest.raises(GenerationError):
        workflow.retry_job(job.id)

    stored = monitor.get_job(job.id)
    assert stored.status == "failed"
    assert stored.error_message == "redis down"


def test_save_template_upserts_by_name_and_type(templates) -> None:
    first = templates.save_template({"name": "Intro", "template_type": "name-video", "parts": []})
    second = templates.save_template(
        {"name": "Intro", "template_type": "name-video", "description": "v2", "parts": [{"name": "a"}]}
    )

    assert first.id == second.id
    assert second.description == "v2"
    assert len(templates.list_templates()) == 1


def test_load_template_file_reads_yaml(tmp_path) -> None:
    path = tmp_path / "lullaby.yaml"
    path.write_text(
        "name: Moon lullaby\n"
        "template_type: lullaby\n"
        "global_elements:\n"
        "  - asset_type: class\n"
        "    asset_class: background_music\n"
        "parts:\n"
        "  - name: intro\n"
        "    required_assets: []\n"
    )

    data = load_template_file(path)

    assert data["name"] == "Moon lullaby"
    assert data["global_elements"][0]["asset_class"] == "background_music"


def test_load_template_file_rejects_other_formats(tmp_path) -> None:
    path = tmp_path / "template.txt"
    path.write_text("name: x")

    with pytest.raises(ValidationError):
        load_template_file(path)


def test_save_template_requires_name(templates) -> None:
    with pytest.raises(ValidationError):
        templates.save_template({"template_type": "lullaby"})
