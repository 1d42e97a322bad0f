"""
RSS Feed Scraper
Fetches RSS/Atom feeds for a profile and inserts new entries as raw articles.
"""

import logging
import re
from datetime import datetime, timezone
from typing import Optional

import feedparser

from config import RSSFeed
from newsbrief.models import Article, FeedProfile, ScrapeStats
from newsbrief.store.article_store import ArticleStore, StoreError

logger = logging.getLogger(__name__)

# Summaries only read the first few thousand characters; keep some headroom.
MAX_RAW_CONTENT_CHARS = 20000


class FeedError(RuntimeError):
    """The feed could not be fetched or parsed at all."""


def parse_date(entry: dict) -> Optional[datetime]:
    """Publication date from 'published_parsed', else 'updated_parsed' (UTC, naive)."""
    for key in ("published_parsed", "updated_parsed"):
        parsed = entry.get(key)
        if parsed:
            try:
                return datetime(*parsed[:6])
            except (TypeError, ValueError):
                continue
    return None


def get_content_snippet(entry: dict, max_len: int = MAX_RAW_CONTENT_CHARS) -> str:
    """
    Plain text of an entry, tags stripped and whitespace collapsed.
    Priority: content > summary > description
    """
    if entry.get("content"):
        text = entry["content"][0].get("value", "")
    elif "summary" in entry:
        text = entry.get("summary", "")
    elif "description" in entry:
        text = entry.get("description", "")
    else:
        text = ""

    text = re.sub(r"<[^>]+>", " ", text)
    text = re.sub(r"\s+", " ", text).strip()
    return text[:max_len]


def get_image_url(entry: dict) -> Optional[str]:
    for key in ("media_thumbnail", "media_content"):
        media = entry.get(key)
        if media and media[0].get("url"):
            return media[0]["url"]
    for link in entry.get("links", []):
        if link.get("rel") == "enclosure" and str(link.get("type", "")).startswith("image/"):
            return link.get("href")
    return None


def scrape_rss(feed: RSSFeed, feed_profile: FeedProfile, max_items: int = 50) -> list[Article]:
    """
    Fetch and parse one feed into unsaved Article objects.

    Entries without a title or link are skipped. Entries without a date are
    stamped with the fetch time. Raises FeedError when the feed is unusable.
    """
    logger.info(f"[RSS] Fetching: {feed.name} ({feed.url})")
    parsed = feedparser.parse(feed.url)

    if parsed.bozo and not parsed.entries:
        raise FeedError(f"Feed error for {feed.name}: {parsed.bozo_exception}")

    fetched_at = datetime.now(tz=timezone.utc).replace(tzinfo=None)
    articles: list[Article] = []
    for entry in parsed.entries[:max_items]:
        title = entry.get("title", "").strip()
        link = entry.get("link", "").strip()
        if not title or not link:
            continue

        articles.append(
            Article(
                url=link,
                title=title,
                raw_content=get_content_snippet(entry) or title,
                feed_profile=feed_profile,
                published_date=parse_date(entry) or fetched_at,
                feed_source=feed.name,
                image_url=get_image_url(entry),
            )
        )

    logger.info(f"[RSS] Got {len(articles)} entries from {feed.name}")
    return articles


def ingest_feeds(
    store: ArticleStore,
    feeds: list[RSSFeed],
    feed_profile: FeedProfile,
    max_items: int = 50,
) -> ScrapeStats:
    """Scrape every feed and insert unseen URLs. A failing feed counts one error."""
    stats = ScrapeStats()
    for feed in feeds:
        try:
            articles = scrape_rss(feed, feed_profile, max_items=max_items)
        except Exception as e:
            stats.errors += 1
            logger.error(f"[RSS] Failed to scrape {feed.name}: {e}")
            continue

        new_for_feed = 0
        for article in articles:
            try:
                if store.insert_article(article) is not None:
                    new_for_feed += 1
            except StoreError as e:
                stats.errors += 1
                logger.error(f"[RSS] Could not store '{article.title[:60]}': {e}")
        stats.new_articles += new_for_feed
        logger.info(f"[RSS] {feed.name}: {new_for_feed} new articles")

    logger.info(
        f"[RSS] Ingestion finished [{feed_profile.value}]: "
        f"{stats.new_articles} new, {stats.errors} errors"
    )
    return stats
