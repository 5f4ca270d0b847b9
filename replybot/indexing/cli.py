"""CLI for indexing video transcripts."""

from __future__ import annotations

import argparse
import json
import logging

from replybot.config.logging_config import setup_logging
from replybot.config.settings import get_settings
from replybot.service import build_service


def build_parser() -> argparse.ArgumentParser:
    """Build CLI argument parser."""
    parser = argparse.ArgumentParser(description="Fetch, chunk and embed video transcripts.")
    sub = parser.add_subparsers(dest="command", required=True)

    ensure = sub.add_parser("ensure", help="Index one video (no-op if already indexed).")
    ensure.add_argument("video_id", help="YouTube video id.")
    ensure.add_argument("--force", action="store_true", help="Reindex even if already INDEXED.")

    sub.add_parser("ensure-missing", help="Index every known video that has no usable index.")

    status = sub.add_parser("status", help="Show the index record for a video.")
    status.add_argument("video_id", help="YouTube video id.")
    return parser


def main() -> int:
    """Run the requested indexing command and print its JSON result."""
    args = build_parser().parse_args()

    settings = get_settings()
    setup_logging(log_dir=settings.logs_dir)
    logger = logging.getLogger(__name__)

    service = build_service(settings)
    try:
        if args.command == "ensure":
            result = service.ensure_video_index(args.video_id, force_reindex=args.force)
        elif args.command == "ensure-missing":
            result = service.ensure_missing()
        else:
            result = service.get_video_index(args.video_id)
            if result is None:
                print(f"No index record for {args.video_id}")
                return 1
    except Exception as exc:
        logger.exception("Indexing command failed: %s", exc)
        return 1

    print(json.dumps(result, indent=2, ensure_ascii=False))
    if args.command == "ensure":
        return 0 if not result["error"] else 2
    if args.command == "ensure-missing":
        return 0 if not result["failed"] else 2
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
