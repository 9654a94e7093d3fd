"""
SQLite database setup and connection management.
"""

import sqlite3
import os
import logging
from contextlib import contextmanager

logger = logging.getLogger(__name__)

DB_PATH = os.getenv("DB_PATH", "content_enhancer.db")


def get_connection() -> sqlite3.Connection:
    conn = sqlite3.connect(DB_PATH)
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA journal_mode=WAL")
    return conn


@contextmanager
def db_conn():
    conn = get_connection()
    try:
        yield conn
        conn.commit()
    except Exception:
        conn.rollback()
        raise
    finally:
        conn.close()


def init_db() -> None:
    """Create all tables if they don't exist."""
    with db_conn() as conn:
        conn.executescript("""
            CREATE TABLE IF NOT EXISTS runs (
                id               INTEGER PRIMARY KEY AUTOINCREMENT,
                started_at       TEXT    NOT NULL DEFAULT (datetime('now')),
                finished_at      TEXT,
                status           TEXT    NOT NULL DEFAULT 'running'
                                 CHECK(status IN ('running', 'completed', 'aborted')),
                trigger          TEXT    NOT NULL DEFAULT 'manual',
                succeeded        INTEGER NOT NULL DEFAULT 0,
                failed           INTEGER NOT NULL DEFAULT 0,
                skipped          INTEGER NOT NULL DEFAULT 0,
                total            INTEGER NOT NULL DEFAULT 0,
                already_enhanced INTEGER NOT NULL DEFAULT 0,
                summary          TEXT    -- JSON RunSummary.to_dict() or {"error": ...}
            );

            CREATE INDEX IF NOT EXISTS idx_runs_status ON runs(status, started_at DESC);
        """)
    logger.info("Database initialised at %s", DB_PATH)
