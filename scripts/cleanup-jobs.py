#!/usr/bin/env python3
from __future__ import annotations

from argparse import ArgumentParser

from pipeline.errors import PipelineError
from pipeline.monitor import JobMonitor


def main() -> None:
    parser = ArgumentParser(description="Mark stale in-progress video jobs as failed")
    parser.add_argument("--older-min", type=int, default=30)
    args = parser.parse_args()

    try:
        jobs = JobMonitor().mark_stale(args.older_min)
    except PipelineError as exc:
        raise SystemExit(f"[cleanup] error={exc}") from exc
    print(f"[cleanup] marked {len(jobs)} job(s) as failed")


if __name__ == "__main__":
    main()
