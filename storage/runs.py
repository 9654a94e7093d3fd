"""
Run log: one row per batch run. Also serves as the guard against starting a
second run while one is still in progress.
"""

import json
import logging
from typing import Optional

from models import RunSummary
from storage.db import db_conn

logger = logging.getLogger(__name__)


def start_run(trigger: str = "manual") -> int:
    with db_conn() as conn:
        cur = conn.execute("INSERT INTO runs (trigger) VALUES (?)", (trigger,))
        run_id = cur.lastrowid
    logger.debug("Started run %d (%s)", run_id, trigger)
    return run_id


def finish_run(run_id: int, summary: RunSummary) -> None:
    with db_conn() as conn:
        conn.execute(
            """
            UPDATE runs SET
                finished_at      = datetime('now'),
                status           = 'completed',
                succeeded        = ?,
                failed           = ?,
                skipped          = ?,
                total            = ?,
                already_enhanced = ?,
                summary          = ?
            WHERE id = ?
            """,
            (
                summary.succeeded,
                summary.failed,
                summary.skipped,
                summary.total,
                summary.already_enhanced,
                json.dumps(summary.to_dict()),
                run_id,
            ),
        )


def abort_run(run_id: int, reason: str) -> None:
    with db_conn() as conn:
        conn.execute(
            """
            UPDATE runs SET
                finished_at = datetime('now'),
                status      = 'aborted',
                summary     = ?
            WHERE id = ?
            """,
            (json.dumps({"error": reason}), run_id),
        )
    logger.warning("Run %d aborted: %s", run_id, reason)


def get_active_run(stale_after_minutes: int = 180) -> Optional[dict]:
    """
    The most recent run still marked running, unless it started more than
    `stale_after_minutes` ago (a crashed process never finishes its row).
    """
    with db_conn() as conn:
        row = conn.execute(
            """
            SELECT * FROM runs
            WHERE status = 'running'
              AND started_at >= datetime('now', ?)
            ORDER BY started_at DESC, id DESC
            LIMIT 1
            """,
            (f"-{int(stale_after_minutes)} minutes",),
        ).fetchone()
        return dict(row) if row else None


def get_recent_runs(n: int = 10) -> list[dict]:
    """Return the N most recent runs, newest first."""
    with db_conn() as conn:
        rows = conn.execute(
            "SELECT * FROM runs ORDER BY started_at DESC, id DESC LIMIT ?",
            (n,),
        ).fetchall()
        results = []
        for r in rows:
            d = dict(r)
            d["summary"] = json.loads(d["summary"]) if d["summary"] else None
            results.append(d)
        return results
