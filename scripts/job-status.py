#!/usr/bin/env python3
from __future__ import annotations

from argparse import ArgumentParser

from pipeline.errors import PipelineError
from pipeline.monitor import JobMonitor


def main() -> None:
    parser = ArgumentParser(description="Show recent video generation job statuses")
    parser.add_argument("--limit", type=int, default=10)
    parser.add_argument("--summary", action="store_true")
    parser.add_argument("--failed", action="store_true", help="Show failed jobs with their error message")
    args = parser.parse_args()

    monitor = JobMonitor()
    try:
        if args.summary:
            for status, count in sorted(monitor.status_counts().items()):
                print(f"[summary] {status}: {count}")
            return
        jobs = monitor.list_jobs(status="failed" if args.failed else None, limit=args.limit)
    except PipelineError as exc:
        raise SystemExit(f"[job] error={exc}") from exc

    for job in jobs:
        print(
            f"[job] id={job.id} status={job.status} template_id={job.template_id} "
            f"segments={len(job.segments or [])} output_url={job.output_url}"
        )
        if args.failed and job.error_message:
            print(f"[job] error={job.error_message}")


if __name__ == "__main__":
    main()
