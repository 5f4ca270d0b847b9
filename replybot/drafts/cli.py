"""CLI for generating, approving and posting reply drafts."""

from __future__ import annotations

import argparse
import json
import logging

from replybot.config.logging_config import setup_logging
from replybot.config.settings import get_settings
from replybot.service import build_service


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Draft, approve and post comment replies.")
    sub = parser.add_subparsers(dest="command", required=True)

    generate = sub.add_parser("generate", help="Draft replies for comments that have none.")
    generate.add_argument("--limit", type=int, default=None, help="Process at most N comments.")

    approve = sub.add_parser("approve", help="Approve a draft and queue it for posting.")
    approve.add_argument("draft_id")
    approve.add_argument("--user", required=True, help="Id of the approving user.")
    approve.add_argument(
        "--post-now",
        action="store_true",
        help="Run the queued post-reply job immediately in this process.",
    )
    return parser


def main() -> int:
    args = build_parser().parse_args()

    settings = get_settings()
    setup_logging(log_dir=settings.logs_dir)
    logger = logging.getLogger(__name__)

    service = build_service(settings)
    try:
        if args.command == "generate":
            result = service.generate_drafts_for_pending_comments(limit=args.limit)
        else:
            result = service.approve_draft(args.draft_id, args.user)
            if result["approved"] and args.post_now:
                result["run"] = service.run_pending_jobs()
    except Exception as exc:
        logger.exception("Draft command failed: %s", exc)
        return 1

    print(json.dumps(result, indent=2, ensure_ascii=False))
    if args.command == "approve" and not result["approved"]:
        return 2
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
