"""Entry point for the job review pipeline.

Usage:
    python -m jobsieve.main --input postings.json              # analyze a scraped batch
    python -m jobsieve.main --input postings.json --platform linkedin
    python -m jobsieve.main --stats                            # print store statistics
    python -m jobsieve.main --prune-days 30                    # drop stale analyses only
    python -m jobsieve.main --check-backend                    # is the model server up?
    python -m jobsieve.main --dry-run --input postings.json    # show which postings are new

The input file is a JSON list of raw postings as written by the scraper:
``[{"title", "company", "location", "posted_date", "description", ...}]``.
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path

from jobsieve.analyzer import JobAnalyzer
from jobsieve.config import load_config
from jobsieve.llm import OllamaClient
from jobsieve.models import JobPosting, Platform
from jobsieve.pipeline import JobPipeline
from jobsieve.scorer import ResumeAnalyzer
from jobsieve.storage import JobDatabase


def setup_logging(level: str = "INFO") -> None:
    """Configure logging for the pipeline."""
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Job review pipeline — deduplicate, analyze and score "
        "scraped job postings, and write a ranked list for daily review."
    )
    parser.add_argument(
        "--config",
        type=str,
        default=None,
        help="Path to config.yaml (default: config.yaml in project root)",
    )
    parser.add_argument(
        "--input",
        type=str,
        default=None,
        help="JSON file with the raw postings from the scraper",
    )
    parser.add_argument(
        "--platform",
        choices=[p.value for p in Platform],
        default=Platform.XING.value,
        help="Platform the postings came from (selects the store file)",
    )
    parser.add_argument(
        "--data-dir",
        type=str,
        default=None,
        help="Override data directory for the store and exports (default: from config)",
    )
    parser.add_argument(
        "--prune-days",
        type=int,
        default=None,
        help="Remove analyses older than this many days (default: retention_days from config)",
    )
    parser.add_argument(
        "--stats",
        action="store_true",
        help="Print store statistics and exit",
    )
    parser.add_argument(
        "--check-backend",
        action="store_true",
        help="Check that the language model backend is reachable and exit",
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="List which input postings are new without analyzing them",
    )
    parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Enable debug-level logging",
    )
    return parser.parse_args(argv)


def load_postings(path: str | Path) -> list[JobPosting]:
    """Read the scraper's JSON list of raw postings."""
    with open(path, "r", encoding="utf-8") as f:
        raw = json.load(f)
    if isinstance(raw, dict):
        raw = raw.get("jobs", [])
    return [JobPosting.from_dict(item) for item in raw if isinstance(item, dict)]


def main(argv: list[str] | None = None) -> int:
    args = parse_args(argv)

    config = load_config(args.config)
    log_level = "DEBUG" if args.verbose else config.log_level
    setup_logging(log_level)

    logger = logging.getLogger(__name__)

    if args.data_dir:
        config.data_dir = args.data_dir
    platform = Platform(args.platform)

    client = OllamaClient(config.llm)
    if args.check_backend:
        return 0 if client.check_status() else 1

    database = JobDatabase(
        config.store_path(platform),
        platform=platform,
        key_skills=config.key_skills,
    )

    if args.stats:
        stats = database.get_stats(config.qualification.min_score)
        for key, value in stats.items():
            logger.info("%s: %d", key, value)
        return 0

    if not args.input and args.prune_days is None:
        logger.error("Nothing to do — pass --input, --stats, --prune-days or --check-backend")
        return 1

    days = args.prune_days if args.prune_days is not None else config.retention_days
    if not args.dry_run:
        database.clear_old_jobs(days)
    if not args.input:
        return 0

    postings = load_postings(args.input)
    logger.info("Loaded %d postings from %s", len(postings), args.input)

    if args.dry_run:
        logger.info("=== Dry Run ===")
        for posting in postings:
            seen = database.is_job_analyzed(
                posting.title, posting.company, posting.location, posting.posted_date
            )
            logger.info("  [%s] %s at %s (%s)", "CACHED" if seen else "NEW",
                        posting.title, posting.company, posting.location)
        logger.info("Dry run complete — nothing analyzed.")
        return 0

    if not client.check_status():
        logger.warning("Language model backend is down — analyses will fall back to defaults")

    analyzer = JobAnalyzer(
        client,
        config.analysis,
        model=config.llm.model,
        translation_model=config.llm.translation_model or None,
    )
    resume = ResumeAnalyzer(config.resume)
    pipeline = JobPipeline(config, database, analyzer, resume, platform=platform)
    result = pipeline.run(postings)

    if result.review_path:
        logger.info("Done! %d qualified jobs saved to %s", len(result.qualified), result.review_path)
    else:
        logger.info("Done! No qualified jobs in this batch.")
    return 0


if __name__ == "__main__":
    sys.exit(main())
