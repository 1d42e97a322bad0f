"""Single-article job: summarize -> rate -> categorize for one article, back to back."""

import logging

from newsbrief.models import FeedProfile
from newsbrief.processing.stage_runner import StageRunner

logger = logging.getLogger(__name__)


class ArticleJobError(RuntimeError):
    """A stage failed for the article; retry policy belongs to the caller (queue)."""


def process_article_job(runner: StageRunner, article_id: int, feed_profile: FeedProfile) -> dict:
    """
    Run all three stages for one article. Raises ArticleJobError as soon as a
    stage reports an error or does nothing.
    """
    logger.info(f"[JOB] >>> Processing article {article_id} [{feed_profile.value}] <<<")

    steps = (
        ("process", runner.process_articles, "articles_processed"),
        ("rate", runner.rate_articles, "articles_rated"),
        ("categorize", runner.categorize_articles, "articles_categorized"),
    )
    for name, run, counter in steps:
        logger.info(f"[JOB] Step '{name}' for article {article_id}")
        stats = run(feed_profile, 1, article_id)
        if stats.errors > 0 or getattr(stats, counter) == 0:
            raise ArticleJobError(f"Failed to {name} article {article_id}")

    logger.info(f"[JOB] Article {article_id} processed, rated and categorized")
    return {
        "success": True,
        "message": f"Article {article_id} processed, rated, and categorized successfully",
    }
