"""
SQLite connection factory.

One connection per database path, shared across threads
(check_same_thread=False). Transaction state belongs to the connection, so
writes go through ``transaction()``, which serializes writers per path.
Rows come back as sqlite3.Row for dict-like access.
"""

from __future__ import annotations

import logging
import sqlite3
import threading
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, Optional

from replybot.config.settings import get_settings

logger = logging.getLogger(__name__)

_lock = threading.Lock()

_connections: dict[str, sqlite3.Connection] = {}

_write_locks: dict[str, threading.RLock] = {}


def get_connection(db_path: Optional[Path] = None) -> sqlite3.Connection:
    """
    Get the shared SQLite connection for *db_path* (default from settings).

    The first call for a path opens it with WAL journaling and foreign keys on.
    """
    settings = get_settings()
    if db_path is None:
        db_path = settings.db_path

    db_key = str(db_path)

    with _lock:
        if db_key in _connections:
            return _connections[db_key]

        db_path.parent.mkdir(parents=True, exist_ok=True)
        logger.info("Opening SQLite database: %s", db_path)

        conn = sqlite3.connect(
            str(db_path),
            check_same_thread=False,
            timeout=10.0,
        )
        conn.execute(f"PRAGMA journal_mode={settings.storage.journal_mode}")
        conn.execute(f"PRAGMA busy_timeout={settings.storage.busy_timeout_ms}")
        conn.execute("PRAGMA foreign_keys=ON")
        conn.execute("PRAGMA synchronous=NORMAL")
        conn.row_factory = sqlite3.Row

        _connections[db_key] = conn
        return conn


def close_connection(db_path: Optional[Path] = None) -> None:
    """Close the connection for a given db_path (or the default). Used in tests and shutdown."""
    if db_path is None:
        db_path = get_settings().db_path

    with _lock:
        conn = _connections.pop(str(db_path), None)
        if conn is not None:
            conn.close()
            logger.info("Database connection closed: %s", db_path)


def close_all_connections() -> None:
    with _lock:
        for key, conn in list(_connections.items()):
            conn.close()
            logger.info("Database connection closed: %s", key)
        _connections.clear()


@contextmanager
def transaction(db_path: Optional[Path] = None) -> Iterator[sqlite3.Connection]:
    """
    Run a write transaction on the shared connection for *db_path*.

    Commits on success and rolls back on error. Writers on the same path
    wait for each other, so one thread's commit or rollback never ends a
    transaction another thread has open.
    """
    conn = get_connection(db_path)
    db_key = str(db_path if db_path is not None else get_settings().db_path)
    with _lock:
        write_lock = _write_locks.setdefault(db_key, threading.RLock())
    with write_lock:
        with conn:
            yield conn
