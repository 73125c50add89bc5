"""
CLI for launching the session memory API server.

Usage:
    python scripts/memory_serve.py
    python scripts/memory_serve.py --port 8080 --host 127.0.0.1 --db data/memory/memory.db
"""

import argparse
import logging
import os
import sys

import uvicorn

from session_memory.config import configure_logging

logger = logging.getLogger(__name__)


def main():
    parser = argparse.ArgumentParser(
        description="Launch the session memory FastAPI server"
    )

    parser.add_argument(
        "--host",
        type=str,
        default="0.0.0.0",
        help="Host to bind to",
    )
    parser.add_argument(
        "--port",
        type=int,
        default=8000,
        help="Port to bind to",
    )
    parser.add_argument(
        "--db",
        type=str,
        default=None,
        help="SQLite database path (overrides SESSION_MEMORY_DB)",
    )
    parser.add_argument(
        "--log-level",
        type=str,
        default="INFO",
        help="Logging level",
    )
    parser.add_argument(
        "--reload",
        action="store_true",
        help="Enable auto-reload for development",
    )

    args = parser.parse_args()

    configure_logging(args.log_level)

    if args.db:
        os.environ["SESSION_MEMORY_DB"] = args.db

    logger.info(f"Starting session memory API on {args.host}:{args.port}")
    logger.info(f"API documentation available at: http://localhost:{args.port}/docs")

    uvicorn.run(
        "session_memory.api.main:app",
        host=args.host,
        port=args.port,
        reload=args.reload,
        log_level=args.log_level.lower(),
    )

    return 0


if __name__ == "__main__":
    sys.exit(main())
