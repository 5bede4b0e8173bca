#!/usr/bin/env python3
from __future__ import annotations

from argparse import ArgumentParser
from uuid import UUID

from pipeline.errors import PipelineError
from pipeline.monitor import JobMonitor
from pipeline.workflow import ContentWorkflow


def main() -> None:
    parser = ArgumentParser(description="Reset a failed video generation job and queue it again")
    parser.add_argument("--job-id", type=UUID, required=True)
    parser.add_argument("--no-enqueue", action="store_true", help="Only reset the job status")
    args = parser.parse_args()

    try:
        if args.no_enqueue:
            job = JobMonitor().retry(args.job_id)
        else:
            job = ContentWorkflow().retry_job(args.job_id)
    except PipelineError as exc:
        raise SystemExit(f"[retry] error={exc}") from exc
    print(f"[retry] job_id={job.id} status={job.status}")


if __name__ == "__main__":
    main()
