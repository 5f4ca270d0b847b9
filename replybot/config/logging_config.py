"""
Logging for the reply bot.

Everything logs under the ``replybot`` logger: a console handler always,
plus a rotating file in the data directory when one is given. Chatty
client libraries (HTTP transports, the OpenAI SDK, model loading) are held
at WARNING so quota and retry messages from our own clients stay readable.

Modules get their logger with ``logging.getLogger(__name__)``.
"""

from __future__ import annotations

import logging
import logging.handlers
import sys
from pathlib import Path

LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"

NOISY_LOGGERS = (
    "httpx",
    "httpcore",
    "urllib3",
    "openai",
    "sentence_transformers",
    "faiss",
)


def setup_logging(
    log_dir: Path | None = None,
    level: int | str = logging.INFO,
    log_file: str = "replybot.log",
) -> None:
    """
    Attach handlers to the ``replybot`` logger.

    *level* may be a number or a name such as ``"DEBUG"``. Calling this
    again only updates the level; handlers are added once.
    """
    if isinstance(level, str):
        level = logging.getLevelName(level.upper())
        if not isinstance(level, int):
            raise ValueError(f"Unknown log level: {level}")

    app_logger = logging.getLogger("replybot")
    app_logger.setLevel(level)
    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    if app_logger.handlers:
        for handler in app_logger.handlers:
            handler.setLevel(level)
        return

    formatter = logging.Formatter(fmt=LOG_FORMAT, datefmt="%Y-%m-%d %H:%M:%S")

    console = logging.StreamHandler(sys.stdout)
    console.setLevel(level)
    console.setFormatter(formatter)
    app_logger.addHandler(console)

    if log_dir is None:
        return
    try:
        log_dir.mkdir(parents=True, exist_ok=True)
        file_handler = logging.handlers.RotatingFileHandler(
            filename=log_dir / log_file,
            maxBytes=10 * 1024 * 1024,  # 10 MB
            backupCount=5,
            encoding="utf-8",
        )
    except OSError as e:
        app_logger.warning("Could not set up file logging in %s: %s", log_dir, e)
        return
    file_handler.setLevel(level)
    file_handler.setFormatter(formatter)
    app_logger.addHandler(file_handler)
