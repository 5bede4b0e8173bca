#!/usr/bin/env python3
from __future__ import annotations

from argparse import ArgumentParser
import logging
import os

from rq import SimpleWorker, Worker

from db.session import engine
from pipeline.queue import get_queue, get_redis, worker_queue_names


def main() -> None:
    parser = ArgumentParser(description="Start RQ worker for asset generation and render jobs")
    parser.add_argument(
        "--queue",
        action="append",
        dest="queues",
        help="Queue to listen on (repeatable); defaults to the asset and render queues",
    )
    parser.add_argument("--burst", action="store_true", help="Process queued jobs and exit")
    args = parser.parse_args()

    logging.basicConfig(
        level=os.getenv("LOG_LEVEL", "INFO").upper(),
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
    )

    # forked work-horses must not reuse the parent's pooled connections
    if hasattr(os, "register_at_fork"):
        os.register_at_fork(after_in_child=lambda: engine.dispose())

    names = args.queues or worker_queue_names()
    simple = os.getenv("RQ_SIMPLE_WORKER", "1") == "1"
    worker_cls = SimpleWorker if simple else Worker
    print(f"[worker] queues={','.join(names)} simple={simple} burst={args.burst}")
    worker = worker_cls([get_queue(name) for name in names], connection=get_redis())
    worker.work(with_scheduler=False, burst=args.burst)


if __name__ == "__main__":
    main()
