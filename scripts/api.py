#!/usr/bin/env python3
from __future__ import annotations

from argparse import ArgumentParser
import os

import uvicorn


def main() -> None:
    parser = ArgumentParser(description="Start the content pipeline admin API")
    parser.add_argument("--host", default=os.getenv("API_HOST", "127.0.0.1"))
    parser.add_argument("--port", type=int, default=int(os.getenv("API_PORT", "8000")))
    parser.add_argument("--reload", action="store_true", help="Reload on code changes (dev mode)")
    args = parser.parse_args()

    print(f"[api] host={args.host} port={args.port} reload={args.reload}")
    uvicorn.run(
        "api.main:app",
        host=args.host,
        port=args.port,
        reload=args.reload,
        log_level=os.getenv("LOG_LEVEL", "INFO").lower(),
    )


if __name__ == "__main__":
    main()
