#!/usr/bin/env python3
"""Briefing pipeline CLI: scrape -> summarize -> rate -> categorize -> brief."""

from __future__ import annotations

import argparse
import json
import logging
import os
import sys
import time
import traceback
from dataclasses import asdict, dataclass, field
from datetime import date

from config import get_enabled_feeds, load_settings, validate_config
from newsbrief.models import BriefResult, FeedProfile

logger = logging.getLogger(__name__)

COMMANDS = (
    "run",
    "scrape",
    "process",
    "rate",
    "categorize",
    "brief",
    "process-article",
    "check",
    "stats",
)


class JsonFormatter(logging.Formatter):
    """One JSON object per log line, for machine-readable run logs."""

    def format(self, record: logging.LogRecord) -> str:
        payload = {
            "timestamp": self.formatTime(record, self.datefmt),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        if hasattr(record, "event"):
            payload["event"] = getattr(record, "event")
        if hasattr(record, "stage"):
            payload["stage"] = getattr(record, "stage")
        return json.dumps(payload, ensure_ascii=False)


@dataclass
class StageFailure:
    stage: str          # e.g. "config", "brief", "process-article"
    error_type: str     # e.g. "CONFIG", "BRIEF", "JOB"
    message: str


@dataclass
class CommandResult:
    """Outcome of one CLI invocation, written to run-summary-<date>.json."""
    run_id: str
    date: str
    command: str
    feed_profile: str
    success: bool = False
    exit_reason: str = ""
    duration_seconds: float = 0.0
    details: dict = field(default_factory=dict)
    markdown_path: str = ""
    failures: list[StageFailure] = field(default_factory=list)


def configure_logging(log_format: str) -> None:
    handler = logging.StreamHandler()
    if log_format == "json":
        handler.setFormatter(JsonFormatter(datefmt="%Y-%m-%dT%H:%M:%S"))
    else:
        handler.setFormatter(
            logging.Formatter(
                "%(asctime)s [%(levelname)s] %(message)s",
                datefmt="%H:%M:%S",
            )
        )
    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(logging.INFO)


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    common = argparse.ArgumentParser(add_help=False)
    common.add_argument(
        "--profile",
        choices=[p.value for p in FeedProfile],
        default=None,
        help="Feed profile to work on (default: FEED_PROFILE env or 'technology')",
    )
    common.add_argument(
        "--output-dir",
        default="output",
        help="Directory for run summaries and exported briefings (default: output)",
    )
    common.add_argument(
        "--log-format",
        choices=["text", "json"],
        default="text",
        help="Log format (text|json)",
    )

    parser = argparse.ArgumentParser(description="Daily news briefing pipeline")
    sub = parser.add_subparsers(dest="command", required=True)

    run = sub.add_parser("run", parents=[common], help="Scrape, process and brief one profile")
    _add_brief_options(run)

    sub.add_parser("scrape", parents=[common], help="Ingest the profile's enabled RSS feeds")

    for name, text in (
        ("process", "Summarize and embed unprocessed articles"),
        ("rate", "Rate processed articles 1-10"),
        ("categorize", "Tag processed articles with categories"),
    ):
        stage = sub.add_parser(name, parents=[common], help=text)
        stage.add_argument("--limit", type=int, default=1000, help="Max articles (default: 1000)")

    brief = sub.add_parser("brief", parents=[common], help="Generate a briefing from stored articles")
    _add_brief_options(brief)
    brief.add_argument(
        "--simple",
        action="store_true",
        help="Skip clustering and brief the top-rated articles directly",
    )
    brief.add_argument(
        "--max-articles",
        type=int,
        default=None,
        help="Articles in a simple brief (default: SIMPLE_BRIEF_MAX_ARTICLES)",
    )

    job = sub.add_parser(
        "process-article", parents=[common], help="Summarize, rate and categorize one article"
    )
    job.add_argument("--article-id", type=int, required=True)

    sub.add_parser("check", parents=[common], help="Probe the chat and embedding endpoints")
    sub.add_parser("stats", parents=[common], help="Show processing counts for the profile")

    return parser.parse_args(argv)


def _add_brief_options(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--lookback-hours", type=int, default=None)
    parser.add_argument("--min-articles", type=int, default=None)
    parser.add_argument("--clusters", type=int, default=None, help="Requested cluster count")


def _append_failure(result: CommandResult, stage: str, error_type: str, message: str) -> None:
    result.failures.append(StageFailure(stage=stage, error_type=error_type, message=message))


def _write_json(path: str, data: dict) -> None:
    with open(path, "w", encoding="utf-8") as handle:
        json.dump(data, handle, ensure_ascii=False, indent=2, default=str)


def _emit_summary(result: CommandResult, output_dir: str) -> None:
    summary_path = os.path.join(output_dir, f"run-summary-{result.date}.json")
    _write_json(summary_path, asdict(result))
    logger.info("[SUMMARY] Wrote run summary: %s", summary_path)

    if not result.success:
        error_path = os.path.join(output_dir, f"error-{result.date}.json")
        _write_json(
            error_path,
            {
                "run_id": result.run_id,
                "date": result.date,
                "command": result.command,
                "exit_reason": result.exit_reason,
                "failures": [asdict(item) for item in result.failures],
            },
        )
        logger.info("[SUMMARY] Wrote error report: %s", error_path)


def save_briefing_markdown(brief: BriefResult, feed_profile: FeedProfile, today: str,
                           output_dir: str) -> str:
    path = os.path.join(output_dir, f"briefing-{feed_profile.value}-{today}.md")
    with open(path, "w", encoding="utf-8") as handle:
        handle.write(brief.content or "")
    logger.info("[BRIEF] Markdown briefing saved: %s", path)
    return path


def _record_brief(result: CommandResult, brief: BriefResult, feed_profile: FeedProfile,
                  output_dir: str) -> None:
    result.details["brief"] = asdict(brief)
    if brief.success:
        result.markdown_path = save_briefing_markdown(brief, feed_profile, result.date, output_dir)
    else:
        _append_failure(result, "brief", "BRIEF", brief.error or "brief generation failed")


def run_command(args: argparse.Namespace) -> CommandResult:
    """Validate config, wire the services and dispatch the requested command."""
    from newsbrief.pipeline import build_services, run_briefing
    from newsbrief.processing.article_job import ArticleJobError, process_article_job
    from newsbrief.scrapers.rss_scraper import ingest_feeds

    os.makedirs(args.output_dir, exist_ok=True)
    today = date.today().strftime("%Y-%m-%d")
    started = time.perf_counter()

    settings = load_settings()
    feed_profile = FeedProfile(args.profile) if args.profile else settings.default_feed_profile
    result = CommandResult(
        run_id=f"{today}-{int(time.time())}",
        date=today,
        command=args.command,
        feed_profile=feed_profile.value,
    )
    logger.info("=" * 60)
    logger.info(
        "newsbrief | command=%s profile=%s provider=%s run_id=%s",
        args.command,
        feed_profile.value,
        settings.api_provider,
        result.run_id,
    )

    valid, config_errors = validate_config(mode=args.command, settings=settings)
    if not valid:
        for item in config_errors:
            _append_failure(result, "config", "CONFIG", item)
        result.exit_reason = "configuration validation failed"
        result.duration_seconds = round(time.perf_counter() - started, 3)
        return result

    services = build_services(settings)
    command = args.command

    if command == "run":
        run = run_briefing(
            services,
            feed_profile,
            lookback_hours=args.lookback_hours,
            min_articles=args.min_articles,
            clusters_qtd=args.clusters,
        )
        result.details = {
            "scraping": asdict(run.scraping),
            "processing": asdict(run.processing),
            "rating": asdict(run.rating),
            "categorization": asdict(run.categorization),
            "pipeline_seconds": run.duration_seconds,
        }
        _record_brief(result, run.brief, feed_profile, args.output_dir)
        result.success = run.success

    elif command == "scrape":
        feeds = get_enabled_feeds(settings, feed_profile)
        stats = ingest_feeds(
            services.store, feeds, feed_profile, max_items=settings.max_articles_per_feed
        )
        result.details = asdict(stats)
        result.success = True

    elif command in ("process", "rate", "categorize"):
        stage_methods = {
            "process": services.runner.process_articles,
            "rate": services.runner.rate_articles,
            "categorize": services.runner.categorize_articles,
        }
        stats = stage_methods[command](feed_profile, args.limit)
        result.details = asdict(stats)
        result.success = True

    elif command == "brief":
        if args.simple:
            brief = services.orchestrator.generate_simple_brief(
                feed_profile,
                max_articles=args.max_articles or settings.simple_brief_max_articles,
                lookback_hours=args.lookback_hours,
            )
        else:
            brief = services.orchestrator.generate_brief(
                feed_profile,
                lookback_hours=args.lookback_hours,
                min_articles=args.min_articles,
                clusters_qtd=args.clusters,
            )
        _record_brief(result, brief, feed_profile, args.output_dir)
        result.success = brief.success

    elif command == "process-article":
        try:
            result.details = process_article_job(services.runner, args.article_id, feed_profile)
            result.success = True
        except ArticleJobError as exc:
            _append_failure(result, "process-article", "JOB", str(exc))

    elif command == "check":
        connectivity = services.gateway.test_connectivity()
        result.details = connectivity
        for item in connectivity["errors"]:
            _append_failure(result, "check", "CONNECTIVITY", item)
        result.success = connectivity["chat"] and connectivity["embedding"]

    elif command == "stats":
        result.details = services.store.processing_stats(feed_profile)
        result.details["briefings"] = len(services.briefings.list_briefings(feed_profile))
        result.success = True

    result.exit_reason = "completed" if result.success else f"{command} failed"
    result.duration_seconds = round(time.perf_counter() - started, 3)
    return result


def main(argv: list[str] | None = None) -> int:
    args = parse_args(argv)
    configure_logging(args.log_format)

    try:
        result = run_command(args)
    except Exception as exc:
        logger.critical("Command failed unexpectedly: %s", exc)
        traceback.print_exc()
        os.makedirs(args.output_dir, exist_ok=True)
        today = date.today().strftime("%Y-%m-%d")
        crash_result = CommandResult(
            run_id=f"{today}-{int(time.time())}",
            date=today,
            command=args.command,
            feed_profile=args.profile or "",
            success=False,
            exit_reason="unhandled exception",
        )
        _append_failure(crash_result, "runtime", "RUNTIME", str(exc))
        _emit_summary(crash_result, args.output_dir)
        return 1

    _emit_summary(result, args.output_dir)
    if result.success:
        logger.info(
            "Command complete | command=%s profile=%s duration=%.2fs",
            result.command,
            result.feed_profile,
            result.duration_seconds,
        )
        return 0

    logger.error(
        "Command ended with issues | reason=%s failures=%s",
        result.exit_reason,
        len(result.failures),
    )
    return 1


if __name__ == "__main__":
    sys.exit(main())
