#!/usr/bin/env python3
from __future__ import annotations

from argparse import ArgumentParser
from datetime import date

from pipeline.assignments import AssignmentStore
from pipeline.errors import PipelineError


def main() -> None:
    parser = ArgumentParser(description="Publish pending assignments whose publish date has arrived")
    parser.add_argument("--today", type=date.fromisoformat, default=None, help="Override today (YYYY-MM-DD)")
    args = parser.parse_args()

    try:
        rows = AssignmentStore().release_due(args.today)
    except PipelineError as exc:
        raise SystemExit(f"[release] error={exc}") from exc
    for row in rows:
        print(f"[release] assignment_id={row.id} video_id={row.video_id} type={row.assignment_type}")
    print(f"[release] published {len(rows)} assignment(s)")


if __name__ == "__main__":
    main()
