"""
main.py — CLI entry point for the content enhancer.

Usage:
  python main.py --run-now        Enhance every pending source article now
  python main.py --article ID     Enhance a single article by id
  python main.py --latest         Enhance the latest original article
  python main.py --schedule       Start the daily scheduler (blocks)
  python main.py --init-db        Initialise the run-log database only
  python main.py --history        Show recent runs
"""

import argparse
import copy
import logging
import os
import sys
from pathlib import Path

import yaml
from dotenv import load_dotenv

load_dotenv()

# ── Logging setup ─────────────────────────────────────────────────────────────
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s — %(message)s",
    handlers=[
        logging.StreamHandler(sys.stdout),
        logging.FileHandler("enhancer.log", encoding="utf-8"),
    ],
)
logger = logging.getLogger("main")


# ── Config loader ─────────────────────────────────────────────────────────────

DEFAULT_CONFIG = {
    "settings": {
        "competitor_count":       2,
        "delay_seconds":          20,
        "success_cap":            10,
        "schedule_hour":          6,
        "run_lock_stale_minutes": 180,
        "reports_dir":            "reports",
    },
    "article_api": {
        "base_url":        "http://127.0.0.1:8000/api",
        "timeout_seconds": 30,
    },
    "search": {
        "exclude_domain":  "beyondchats.com",
        "query_suffix":    "blog article guide",
        "timeout_seconds": 15,
    },
    "scraper": {
        "timeout_seconds":  15,
        "max_text_chars":   10000,
        "browser_fallback": False,
        "extract_workers":  1,
    },
    "llm": {
        "model":                "claude-sonnet-4-6",
        "analysis_temperature": 0.3,
        "analysis_max_tokens":  2000,
        "enhance_temperature":  0.7,
        "enhance_max_tokens":   16000,
        "verify_preservation":  True,
        "max_enhance_attempts": 2,
    },
}


def _merge(base: dict, override: dict) -> dict:
    merged = copy.deepcopy(base)
    for key, value in (override or {}).items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _merge(merged[key], value)
        else:
            merged[key] = value
    return merged


def load_config(path: str = "config.yaml") -> dict:
    """config.yaml merged over DEFAULT_CONFIG; ARTICLE_API_URL overrides the base URL."""
    file_config = {}
    if Path(path).exists():
        with open(path, "r", encoding="utf-8") as f:
            file_config = yaml.safe_load(f) or {}
    else:
        logger.warning("%s not found — using built-in defaults", path)

    config = _merge(DEFAULT_CONFIG, file_config)
    if os.getenv("ARTICLE_API_URL"):
        config["article_api"]["base_url"] = os.getenv("ARTICLE_API_URL")
    return config


# ── Wiring ────────────────────────────────────────────────────────────────────

def build_orchestrator(config: dict, generator=None):
    """Construct every client once and hand them to the orchestrator."""
    from analysis.gap_analysis import GapAnalyzer
    from analysis.llm import ClaudeGenerator
    from discovery.providers import DuckDuckGoProvider, SerpApiProvider
    from discovery.search import CompetitorDiscovery
    from enhancement.enhancer import ContentEnhancer
    from pipeline.batch import BatchOrchestrator
    from scraper.extractor import ArticleExtractor
    from scraper.fetcher import PageFetcher
    from storage.article_api import ArticleApiClient

    settings = config["settings"]
    search   = config["search"]
    scraper  = config["scraper"]
    llm      = config["llm"]
    api      = config["article_api"]

    generator = generator or ClaudeGenerator(model=llm["model"])

    serpapi = SerpApiProvider(os.getenv("SERP_API_KEY"), timeout=search["timeout_seconds"])
    if not serpapi.configured:
        logger.warning("SERP_API_KEY not set — competitor search will use DuckDuckGo only")

    discovery = CompetitorDiscovery(
        primary=serpapi,
        fallback=DuckDuckGoProvider(timeout=search["timeout_seconds"]),
        exclude_domain=search.get("exclude_domain"),
        query_suffix=search["query_suffix"],
    )
    extractor = ArticleExtractor(
        PageFetcher(timeout=scraper["timeout_seconds"], browser_fallback=scraper["browser_fallback"]),
        max_text_chars=scraper["max_text_chars"],
        workers=scraper["extract_workers"],
    )
    analyzer = GapAnalyzer(
        generator,
        temperature=llm["analysis_temperature"],
        max_tokens=llm["analysis_max_tokens"],
    )
    enhancer = ContentEnhancer(
        generator,
        temperature=llm["enhance_temperature"],
        max_tokens=llm["enhance_max_tokens"],
        verify=llm["verify_preservation"],
        max_attempts=llm["max_enhance_attempts"],
    )

    return BatchOrchestrator(
        store=ArticleApiClient(api["base_url"], timeout=api["timeout_seconds"]),
        discovery=discovery,
        extractor=extractor,
        analyzer=analyzer,
        enhancer=enhancer,
        competitor_count=settings["competitor_count"],
        delay_seconds=settings["delay_seconds"],
        success_cap=settings["success_cap"],
    )


# ── Runs ──────────────────────────────────────────────────────────────────────

def execute(job, config: dict, trigger: str = "manual") -> int:
    """
    Run `job(orchestrator)` under the run log. Returns the process exit code:
    1 when another run is active, credentials are missing, or the run aborts.
    """
    from analysis.llm import ClaudeGenerator
    from errors import ArticleApiError, ConfigurationError
    from notifications.alerts import send_run_summary_slack, write_json_report
    from storage.db import init_db
    from storage.runs import abort_run, finish_run, get_active_run, start_run

    settings = config["settings"]
    init_db()

    active = get_active_run(settings["run_lock_stale_minutes"])
    if active:
        logger.error("Run %d has been in progress since %s — not starting another", active["id"], active["started_at"])
        return 1

    generator = ClaudeGenerator(model=config["llm"]["model"])
    try:
        generator.check_credentials()
    except ConfigurationError as exc:
        logger.error("Configuration error: %s", exc)
        return 1

    orchestrator = build_orchestrator(config, generator)
    run_id = start_run(trigger)
    try:
        summary = job(orchestrator)
    except (ConfigurationError, ArticleApiError) as exc:
        abort_run(run_id, str(exc))
        logger.error("Run aborted: %s", exc)
        return 1
    except BaseException as exc:
        abort_run(run_id, f"{type(exc).__name__}: {exc}")
        raise

    finish_run(run_id, summary)
    write_json_report(summary, settings["reports_dir"])
    send_run_summary_slack(summary)
    return 0


def run_batch(trigger: str = "manual") -> int:
    """Entry point called by the scheduler and --run-now."""
    return execute(lambda orchestrator: orchestrator.run(), load_config(), trigger)


def print_history(n: int = 10) -> None:
    from storage.db import init_db
    from storage.runs import get_recent_runs

    init_db()
    runs = get_recent_runs(n)
    if not runs:
        print("No runs recorded yet.")
        return
    for r in runs:
        print(
            f"#{r['id']:<4} {r['started_at']}  {r['status']:<9} {r['trigger']:<8} "
            f"ok={r['succeeded']} failed={r['failed']} skipped={r['skipped']} "
            f"total={r['total']} already={r['already_enhanced']}"
        )
        if r["status"] == "aborted" and r["summary"]:
            print(f"      error: {r['summary'].get('error', '')}")


# ── CLI ───────────────────────────────────────────────────────────────────────

def main() -> int:
    parser = argparse.ArgumentParser(
        description="Content Enhancer — improve blog articles using top-ranking competitor content"
    )
    group = parser.add_mutually_exclusive_group(required=True)
    group.add_argument(
        "--run-now",
        action="store_true",
        help="Enhance all pending source articles now (discover → extract → analyze → enhance → publish)",
    )
    group.add_argument(
        "--article",
        type=int,
        metavar="ID",
        help="Enhance a single source article by id",
    )
    group.add_argument(
        "--latest",
        action="store_true",
        help="Enhance the latest original article",
    )
    group.add_argument(
        "--schedule",
        action="store_true",
        help="Start the daily scheduler (blocks until interrupted)",
    )
    group.add_argument(
        "--init-db",
        action="store_true",
        help="Initialise the run-log database only",
    )
    group.add_argument(
        "--history",
        action="store_true",
        help="Show the most recent runs",
    )
    parser.add_argument(
        "--force",
        action="store_true",
        help="With --article or --latest, enhance even if an enhanced version already exists",
    )

    args = parser.parse_args()

    if args.run_now:
        return run_batch()

    elif args.article is not None:
        article_id, force = args.article, args.force
        return execute(lambda orchestrator: orchestrator.process_single(article_id, force=force), load_config())

    elif args.latest:
        return execute(lambda orchestrator: orchestrator.process_latest(force=args.force), load_config())

    elif args.schedule:
        config = load_config()
        hour   = config["settings"]["schedule_hour"]
        from scheduler import start_scheduler
        start_scheduler(lambda: run_batch(trigger="schedule"), schedule_hour=hour)

    elif args.init_db:
        from storage.db import init_db
        init_db()
        logger.info("Database initialised.")

    elif args.history:
        print_history()

    return 0


if __name__ == "__main__":
    sys.exit(main())
