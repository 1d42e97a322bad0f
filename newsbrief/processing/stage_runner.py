"""
Processing Stage Runner
Advances articles through one pipeline stage at a time:
summarize (+embed) -> rate -> categorize.

Articles are handled strictly one after another with a fixed delay between
upstream calls. A failure on one article is counted and the batch goes on;
only a failing candidate query aborts the run.
"""

import json
import logging
import re
from datetime import datetime

from newsbrief.ai.gateway import AIGateway
from newsbrief.ai.rate_limiter import RateLimiter
from newsbrief.models import Article, ArticleCategory, FeedProfile, ProcessingStats, Stage
from newsbrief.prompts import PromptProvider
from newsbrief.store.article_store import ArticleStore

logger = logging.getLogger(__name__)

DEFAULT_BATCH_LIMIT = 1000
SUMMARY_INPUT_CHARS = 4000
CATEGORY_INPUT_CHARS = 2000

_RE_FIRST_INT = re.compile(r"\d+")
_RE_CODE_FENCE = re.compile(r"```(?:json)?\s*\n?(.*?)\n?```", re.DOTALL)
_VALID_CATEGORIES = {c.value for c in ArticleCategory}


def is_valid_impact_rating(value: int) -> bool:
    return isinstance(value, int) and 1 <= value <= 10


def extract_first_int(response: str) -> int | None:
    """Leading integer substring of a model reply ("3.9" -> 3, "Rating: 11" -> 11)."""
    match = _RE_FIRST_INT.search((response or "").strip())
    if not match:
        return None
    return int(match.group(0))


def parse_rating(response: str) -> int | None:
    """Impact rating from a model reply, or None if absent or outside 1-10."""
    score = extract_first_int(response)
    if score is None or not is_valid_impact_rating(score):
        return None
    return score


def parse_categories(response: str | None) -> list[ArticleCategory]:
    """
    Parse a JSON array of category names and keep only known categories.
    Anything unusable (no reply, not JSON, not a list, nothing valid) becomes ["other"],
    so every processed article leaves the categorization queue.
    """
    if not response:
        return [ArticleCategory.OTHER]

    raw = response.strip()
    fenced = _RE_CODE_FENCE.search(raw)
    if fenced:
        raw = fenced.group(1).strip()

    try:
        parsed = json.loads(raw)
    except json.JSONDecodeError:
        return [ArticleCategory.OTHER]

    if not isinstance(parsed, list) or not parsed:
        return [ArticleCategory.OTHER]

    valid: list[ArticleCategory] = []
    for item in parsed:
        if isinstance(item, str) and item in _VALID_CATEGORIES:
            category = ArticleCategory(item)
            if category not in valid:
                valid.append(category)
    return valid or [ArticleCategory.OTHER]


def build_source_citation(article: Article) -> str:
    return f"Source: [{article.title}]({article.url})"


class StageRunner:
    def __init__(
        self,
        store: ArticleStore,
        gateway: AIGateway,
        prompts: PromptProvider,
        limiter: RateLimiter,
    ):
        self.store = store
        self.gateway = gateway
        self.prompts = prompts
        self.limiter = limiter

    def run_stage(
        self,
        stage: Stage | str,
        feed_profile: FeedProfile,
        limit: int = DEFAULT_BATCH_LIMIT,
        article_id: int | None = None,
    ) -> ProcessingStats:
        """Run one stage over the profile's pending articles (or a single article)."""
        stage = Stage(stage)
        handlers = {
            Stage.SUMMARIZE: self._summarize_one,
            Stage.RATE: self._rate_one,
            Stage.CATEGORIZE: self._categorize_one,
        }
        tag = f"[{stage.value.upper()}]"
        logger.info(f"{tag} --- Starting stage '{stage.value}' [{feed_profile.value}] ---")

        stats = ProcessingStats(feed_profile=feed_profile, start_time=datetime.now())
        candidates = self._load_candidates(stage, feed_profile, limit, article_id)

        if not candidates:
            logger.info(f"{tag} No articles pending.")
            stats.end_time = datetime.now()
            return stats

        logger.info(f"{tag} Found {len(candidates)} articles.")
        handle = handlers[stage]
        for article in candidates:
            try:
                handle(article, feed_profile, stats)
            except Exception as e:
                logger.error(f"{tag} Error on article {article.id}: {e}")
                stats.errors += 1

        stats.end_time = datetime.now()
        logger.info(
            "%s --- Finished: processed=%s rated=%s categorized=%s errors=%s ---",
            tag,
            stats.articles_processed,
            stats.articles_rated,
            stats.articles_categorized,
            stats.errors,
        )
        return stats

    def process_articles(self, feed_profile: FeedProfile, limit: int = DEFAULT_BATCH_LIMIT,
                         article_id: int | None = None) -> ProcessingStats:
        return self.run_stage(Stage.SUMMARIZE, feed_profile, limit, article_id)

    def rate_articles(self, feed_profile: FeedProfile, limit: int = DEFAULT_BATCH_LIMIT,
                      article_id: int | None = None) -> ProcessingStats:
        return self.run_stage(Stage.RATE, feed_profile, limit, article_id)

    def categorize_articles(self, feed_profile: FeedProfile, limit: int = DEFAULT_BATCH_LIMIT,
                            article_id: int | None = None) -> ProcessingStats:
        return self.run_stage(Stage.CATEGORIZE, feed_profile, limit, article_id)

    def _load_candidates(self, stage: Stage, feed_profile: FeedProfile, limit: int,
                         article_id: int | None) -> list[Article]:
        # Store errors propagate: a stage that cannot query is fatal.
        if article_id is not None:
            article = self.store.get_article(article_id)
            return [article] if article else []
        if stage is Stage.SUMMARIZE:
            return self.store.get_unprocessed(feed_profile, limit)
        if stage is Stage.RATE:
            return self.store.get_unrated(feed_profile, limit)
        return self.store.get_uncategorized(feed_profile, limit)

    def _chat(self, prompt: str) -> str | None:
        self.limiter.wait()
        return self.gateway.chat_complete(prompt)

    def _summarize_one(self, article: Article, feed_profile: FeedProfile,
                       stats: ProcessingStats) -> None:
        logger.info(f"[SUMMARIZE] Article {article.id} - {article.url[:50]}...")
        template = self.prompts.resolve("article_summary", feed_profile)
        prompt = self.prompts.format_prompt(
            template, {"article_content": (article.raw_content or "")[:SUMMARY_INPUT_CHARS]}
        )

        summary = self._chat(prompt)
        if not summary:
            logger.warning(f"[SUMMARIZE] Skipping article {article.id}: summarization failed")
            stats.errors += 1
            return

        final_summary = f"{summary}\n\n{build_source_citation(article)}"
        embedding = self.gateway.embed(final_summary)
        if not embedding:
            logger.warning(f"[SUMMARIZE] Skipping article {article.id}: embedding failed")
            stats.errors += 1
            return

        self.store.update_processing(article.id, final_summary, embedding)
        stats.articles_processed += 1
        logger.info(f"[SUMMARIZE] Processed article {article.id}: {summary[:80]}...")

    def _rate_one(self, article: Article, feed_profile: FeedProfile,
                  stats: ProcessingStats) -> None:
        if not article.processed_content:
            logger.info(f"[RATE] Skipping article {article.id}: no summary yet")
            return

        template = self.prompts.resolve("impact_rating", feed_profile)
        prompt = self.prompts.format_prompt(template, {"summary": article.processed_content})

        response = self._chat(prompt)
        if not response:
            logger.warning(f"[RATE] No rating response for article {article.id}")
            stats.errors += 1
            return

        score = extract_first_int(response)
        if score is None:
            logger.warning(
                f"[RATE] Could not extract a number from '{response[:60]}' for article {article.id}"
            )
            stats.errors += 1
            return
        if not is_valid_impact_rating(score):
            logger.warning(f"[RATE] Rating {score} for article {article.id} is out of range (1-10)")
            stats.errors += 1
            return

        self.store.update_rating(article.id, score)
        stats.articles_rated += 1
        logger.info(f"[RATE] Article {article.id} rated {score}")

    def _categorize_one(self, article: Article, feed_profile: FeedProfile,
                        stats: ProcessingStats) -> None:
        if not article.processed_content:
            logger.info(f"[CATEGORIZE] Skipping article {article.id}: no summary yet")
            return

        template = self.prompts.resolve("category_classification", feed_profile)
        prompt = self.prompts.format_prompt(
            template,
            {
                "title": article.title,
                "content": article.processed_content[:CATEGORY_INPUT_CHARS],
            },
        )

        response = self._chat(prompt)
        if not response:
            logger.warning(f"[CATEGORIZE] No response for article {article.id}, using fallback")
        categories = parse_categories(response)

        self.store.update_categories(article.id, categories)
        stats.articles_categorized += 1
        logger.info(
            f"[CATEGORIZE] Article {article.id}: {', '.join(c.value for c in categories)}"
        )
