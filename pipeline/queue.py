import os

from redis import Redis
from redis.exceptions import RedisError
from rq import Queue

from pipeline.errors import GenerationError
from pipeline.jobs import (
    generate_project_assets_job,
    render_video_job,
    rq_on_failure,
)

ASSET_WORKLOAD = "assets"
RENDER_WORKLOAD = "render"

# workload -> (queue env, default queue, timeout env, default timeout seconds)
# An asset batch calls the media service once per pending asset; a render job
# only hands segments to the renderer, which reports back via the callback.
WORKLOADS = {
    ASSET_WORKLOAD: ("RQ_ASSET_QUEUE", "content-assets", "RQ_ASSET_TIMEOUT", 1800),
    RENDER_WORKLOAD: ("RQ_RENDER_QUEUE", "content-render", "RQ_RENDER_TIMEOUT", 120),
}


def _redis_url() -> str:
    return os.getenv("REDIS_URL", "redis://localhost:6379/0")


def queue_name(workload: str) -> str:
    env, default, _, _ = WORKLOADS[workload]
    return os.getenv(env, default)


def job_timeout(workload: str) -> int:
    _, _, env, default = WORKLOADS[workload]
    return int(os.getenv(env, str(default)))


def worker_queue_names() -> list[str]:
    return [queue_name(workload) for workload in WORKLOADS]


def get_redis() -> Redis:
    return Redis.from_url(_redis_url())


def get_queue(name: str) -> Queue:
    return Queue(name, connection=get_redis())


def enqueue_asset_generation(project_id: str) -> str:
    try:
        rq_job = get_queue(queue_name(ASSET_WORKLOAD)).enqueue(
            generate_project_assets_job,
            str(project_id),
            job_timeout=job_timeout(ASSET_WORKLOAD),
            description=f"generate assets project={project_id}",
            on_failure=rq_on_failure,
        )
    except RedisError as exc:
        raise GenerationError(f"could not queue asset generation: {exc}") from exc
    return rq_job.id


def enqueue_render(job_id: str) -> str:
    try:
        rq_job = get_queue(queue_name(RENDER_WORKLOAD)).enqueue(
            render_video_job,
            str(job_id),
            job_timeout=job_timeout(RENDER_WORKLOAD),
            description=f"submit render job={job_id}",
            on_failure=rq_on_failure,
        )
    except RedisError as exc:
        raise GenerationError(f"could not queue render: {exc}") from exc
    return rq_job.id
