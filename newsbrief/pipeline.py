"""
Full briefing run for one feed profile:
scrape -> summarize/embed -> rate -> categorize -> brief
"""

import logging
import time
from dataclasses import dataclass
from datetime import datetime

from config import Settings, get_enabled_feeds
from newsbrief.ai.gateway import AIGateway
from newsbrief.ai.rate_limiter import RateLimiter
from newsbrief.briefing.analyzer import ClusterAnalyzer
from newsbrief.briefing.orchestrator import BriefingOrchestrator
from newsbrief.briefing.synthesizer import BriefSynthesizer
from newsbrief.models import FeedProfile, RunBriefingResult
from newsbrief.prompts import PromptProvider
from newsbrief.processing.stage_runner import StageRunner
from newsbrief.scrapers.rss_scraper import ingest_feeds
from newsbrief.store.article_store import ArticleStore, BriefingStore, create_db_engine

logger = logging.getLogger(__name__)


@dataclass
class Services:
    """Wired components for one process."""
    settings: Settings
    store: ArticleStore
    briefings: BriefingStore
    gateway: AIGateway
    prompts: PromptProvider
    runner: StageRunner
    orchestrator: BriefingOrchestrator


def build_services(
    settings: Settings,
    gateway: AIGateway | None = None,
    limiter: RateLimiter | None = None,
) -> Services:
    engine = create_db_engine(settings.database_url)
    store = ArticleStore(engine)
    briefings = BriefingStore(engine)
    gateway = gateway or AIGateway(settings)
    limiter = limiter or RateLimiter(settings.api_call_delay_seconds)
    prompts = PromptProvider(settings)

    runner = StageRunner(store, gateway, prompts, limiter)
    orchestrator = BriefingOrchestrator(
        store,
        gateway,
        prompts,
        ClusterAnalyzer(gateway, prompts),
        BriefSynthesizer(gateway, prompts, briefings),
        limiter,
    )
    return Services(settings, store, briefings, gateway, prompts, runner, orchestrator)


def run_briefing(
    services: Services,
    feed_profile: FeedProfile,
    lookback_hours: int | None = None,
    min_articles: int | None = None,
    clusters_qtd: int | None = None,
    now: datetime | None = None,
) -> RunBriefingResult:
    """
    Run every stage for one profile and aggregate their stats.

    Raises ValueError when the profile has no enabled feeds. Stage-level
    failures are reported in the result; only store errors propagate.
    """
    feeds = get_enabled_feeds(services.settings, feed_profile)
    if not feeds:
        raise ValueError(f"No enabled feeds configured for profile '{feed_profile.value}'")

    started = time.perf_counter()
    logger.info(f"=== Briefing run [{feed_profile.value}] with {len(feeds)} feeds ===")

    scraping = ingest_feeds(
        services.store, feeds, feed_profile, max_items=services.settings.max_articles_per_feed
    )
    processing = services.runner.process_articles(feed_profile)
    rating = services.runner.rate_articles(feed_profile)
    categorization = services.runner.categorize_articles(feed_profile)
    brief = services.orchestrator.generate_brief(
        feed_profile,
        lookback_hours=lookback_hours,
        min_articles=min_articles,
        clusters_qtd=clusters_qtd,
        now=now,
    )

    duration = round(time.perf_counter() - started, 3)
    logger.info(
        "=== Briefing run [%s] finished in %.2fs | new=%s processed=%s rated=%s "
        "categorized=%s brief=%s ===",
        feed_profile.value,
        duration,
        scraping.new_articles,
        processing.articles_processed,
        rating.articles_rated,
        categorization.articles_categorized,
        "ok" if brief.success else brief.error,
    )
    return RunBriefingResult(
        success=brief.success,
        duration_seconds=duration,
        scraping=scraping,
        processing=processing,
        rating=rating,
        categorization=categorization,
        brief=brief,
    )
