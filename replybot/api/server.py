"""
Run the ReplyBot API with uvicorn.

The job queue and rate-limit buckets live in the server process, so the
API always runs as a single uvicorn worker; the post-reply worker and the
maintenance scheduler start with the app.
"""

from __future__ import annotations

import argparse
import logging

import uvicorn

from replybot.config.logging_config import setup_logging
from replybot.config.settings import get_settings

APP_FACTORY = "replybot.api.app:create_app"


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Serve the ReplyBot indexing, drafting and job API.")
    parser.add_argument("--host", default="127.0.0.1", help="Bind address.")
    parser.add_argument("--port", type=int, default=8000, help="Bind port.")
    parser.add_argument(
        "--log-level",
        default="INFO",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Log level for replybot and uvicorn.",
    )
    return parser


def main() -> int:
    args = build_parser().parse_args()

    settings = get_settings()
    setup_logging(log_dir=settings.logs_dir, level=args.log_level)
    logger = logging.getLogger(__name__)

    logger.info(
        "Starting ReplyBot API on %s:%d (db=%s)", args.host, args.port, settings.db_path
    )
    uvicorn.run(
        APP_FACTORY,
        factory=True,
        host=args.host,
        port=args.port,
        workers=1,
        log_level=args.log_level.lower(),
    )
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
