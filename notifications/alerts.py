"""
Notifications: Slack webhook run summary + local JSON report writer.
"""

import json
import logging
import os
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

import requests

from models import RunSummary

logger = logging.getLogger(__name__)

REPORTS_DIR = Path("reports")
MAX_LISTED_FAILURES = 10


# ── Slack ─────────────────────────────────────────────────────────────────────

def _slack_webhook_url() -> Optional[str]:
    return os.getenv("SLACK_WEBHOOK_URL")


def build_slack_message(summary: RunSummary) -> dict:
    emoji = "✅" if summary.failed == 0 else "⚠️"
    headline = f"{emoji} *Content Enhancement Run* — {summary.succeeded}/{summary.total} enhanced"

    fields = [
        {"type": "mrkdwn", "text": f"*Succeeded:*\n{summary.succeeded}"},
        {"type": "mrkdwn", "text": f"*Failed:*\n{summary.failed}"},
        {"type": "mrkdwn", "text": f"*Skipped:*\n{summary.skipped}"},
        {"type": "mrkdwn", "text": f"*Already enhanced:*\n{summary.already_enhanced}"},
    ]
    blocks = [
        {"type": "section", "text": {"type": "mrkdwn", "text": headline}},
        {"type": "section", "fields": fields},
    ]

    if summary.failures:
        lines = [f"• *{title}* — {reason}" for title, reason in summary.failures[:MAX_LISTED_FAILURES]]
        if len(summary.failures) > MAX_LISTED_FAILURES:
            lines.append(f"…and {len(summary.failures) - MAX_LISTED_FAILURES} more")
        blocks.append({
            "type": "section",
            "text": {"type": "mrkdwn", "text": "*Failures:*\n" + "\n".join(lines)},
        })

    note = " | success cap reached" if summary.cap_reached else ""
    blocks.append({
        "type": "context",
        "elements": [
            {
                "type": "mrkdwn",
                "text": f"Finished at {datetime.now(timezone.utc).strftime('%Y-%m-%d %H:%M UTC')}{note} | Content Enhancer",
            }
        ],
    })
    return {"text": headline, "blocks": blocks}


def send_run_summary_slack(summary: RunSummary) -> bool:
    """
    Post the end-of-run summary to Slack.
    Returns True on success, False when not configured or on failure.
    """
    webhook_url = _slack_webhook_url()
    if not webhook_url:
        logger.warning("SLACK_WEBHOOK_URL not set — skipping Slack run summary")
        return False

    try:
        resp = requests.post(webhook_url, json=build_slack_message(summary), timeout=10)
        if resp.status_code == 200:
            logger.info("Slack run summary sent")
            return True
        else:
            logger.error("Slack webhook returned %d: %s", resp.status_code, resp.text)
            return False
    except Exception as exc:
        logger.error("Failed to send Slack run summary: %s", exc)
        return False


# ── JSON report ───────────────────────────────────────────────────────────────

def write_json_report(
    summary: RunSummary,
    reports_dir: Path = REPORTS_DIR,
    finished_at: Optional[datetime] = None,
) -> Path:
    """
    Write a structured JSON report to reports/YYYY-MM-DD-HHMMSS.json.
    Returns the path of the written file.
    """
    reports_dir = Path(reports_dir)
    reports_dir.mkdir(parents=True, exist_ok=True)
    finished_at = finished_at or datetime.now(timezone.utc)
    filepath = reports_dir / f"{finished_at.strftime('%Y-%m-%d-%H%M%S')}.json"

    payload = {
        "generated_at": finished_at.isoformat(),
        **summary.to_dict(),
    }

    with open(filepath, "w", encoding="utf-8") as f:
        json.dump(payload, f, indent=2, ensure_ascii=False)

    logger.info("JSON report written to %s", filepath)
    return filepath
