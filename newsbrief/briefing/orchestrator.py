"""
Briefing Orchestrator
ELIGIBILITY_CHECK -> CLUSTER -> ANALYZE -> SYNTHESIZE -> PERSIST, failing out of
any stage with a structured BriefResult instead of an exception.
"""

import logging
from datetime import datetime

from newsbrief.ai.gateway import AIGateway
from newsbrief.ai.rate_limiter import RateLimiter
from newsbrief.briefing.analyzer import ClusterAnalyzer
from newsbrief.briefing.clustering import cluster_embeddings, effective_cluster_count
from newsbrief.briefing.synthesizer import BriefSynthesizer
from newsbrief.models import Article, BriefResult, BriefStats, ClusterAnalysis, FeedProfile
from newsbrief.prompts import PromptProvider
from newsbrief.store.article_store import ArticleStore

logger = logging.getLogger(__name__)

DEFAULT_SIMPLE_BRIEF_ARTICLES = 10


def group_by_label(articles: list[Article], labels: list[int], k: int) -> list[list[Article]]:
    """Bucket articles by cluster label; labels outside [0, k) are dropped."""
    groups: list[list[Article]] = [[] for _ in range(k)]
    for article, label in zip(articles, labels):
        if 0 <= label < k:
            groups[label].append(article)
    return groups


class BriefingOrchestrator:
    def __init__(
        self,
        store: ArticleStore,
        gateway: AIGateway,
        prompts: PromptProvider,
        analyzer: ClusterAnalyzer,
        synthesizer: BriefSynthesizer,
        limiter: RateLimiter,
    ):
        self.store = store
        self.gateway = gateway
        self.prompts = prompts
        self.analyzer = analyzer
        self.synthesizer = synthesizer
        self.limiter = limiter

    def generate_brief(
        self,
        feed_profile: FeedProfile,
        lookback_hours: int | None = None,
        min_articles: int | None = None,
        clusters_qtd: int | None = None,
        custom_prompts: dict[str, str] | None = None,
        now: datetime | None = None,
    ) -> BriefResult:
        logger.info(f"[BRIEF] --- Starting Brief Generation [{feed_profile.value}] ---")
        config = self.prompts.get_briefing_config(
            feed_profile,
            lookback_hours=lookback_hours,
            min_articles=min_articles,
            clusters_qtd=clusters_qtd,
            custom_prompts=custom_prompts,
        )

        # ELIGIBILITY_CHECK
        articles = self.store.get_for_briefing(config.lookback_hours, feed_profile, now=now)
        if len(articles) < config.min_articles:
            return self._fail(
                f"Not enough recent articles ({len(articles)}) for profile "
                f"'{feed_profile.value}'. Min required: {config.min_articles}."
            )

        with_embeddings = [a for a in articles if a.embedding]
        if len(with_embeddings) != len(articles):
            logger.warning(
                f"[BRIEF] {len(articles) - len(with_embeddings)} articles are missing embeddings. "
                "Proceeding with available ones."
            )
        if len(with_embeddings) < config.min_articles:
            return self._fail(
                f"Not enough articles ({len(with_embeddings)}) with embeddings to cluster. "
                f"Min required: {config.min_articles}."
            )

        # CLUSTER
        k = effective_cluster_count(len(with_embeddings), config.clusters_qtd)
        if k < 2:
            return self._fail("Not enough articles to form meaningful clusters")

        logger.info(f"[BRIEF] Clustering {len(with_embeddings)} articles into {k} clusters...")
        labels = cluster_embeddings([a.embedding for a in with_embeddings], k)
        groups = group_by_label(with_embeddings, labels, k)

        # ANALYZE
        analyses: list[ClusterAnalysis] = []
        for index, group in enumerate(groups):
            if not group:
                continue
            self.limiter.wait()
            analysis = self.analyzer.analyze_cluster(
                group, feed_profile, index, config.custom_prompts.get("cluster_analysis")
            )
            if analysis:
                analyses.append(analysis)

        if not analyses:
            return self._fail("No meaningful clusters found or analyzed.")

        # SYNTHESIZE + PERSIST
        self.limiter.wait()
        result = self.synthesizer.synthesize(
            analyses,
            feed_profile,
            [a.id for a in with_embeddings],
            config.custom_prompts.get("brief_synthesis"),
        )
        if not result.success:
            return result

        result.stats = BriefStats(
            articles_analyzed=len(with_embeddings),
            clusters_generated=k,
            clusters_used=len(analyses),
        )
        logger.info(
            f"[BRIEF] --- Brief Generation Finished [{feed_profile.value}] "
            f"briefing_id={result.briefing_id} clusters_used={len(analyses)}/{k} ---"
        )
        return result

    def generate_simple_brief(
        self,
        feed_profile: FeedProfile,
        max_articles: int = DEFAULT_SIMPLE_BRIEF_ARTICLES,
        lookback_hours: int | None = None,
        now: datetime | None = None,
    ) -> BriefResult:
        """Skip clustering: brief the top-rated articles of the lookback window directly."""
        logger.info(f"[BRIEF] --- Generating Simple Brief [{feed_profile.value}] ---")
        config = self.prompts.get_briefing_config(feed_profile, lookback_hours=lookback_hours)

        articles = self.store.get_for_briefing(config.lookback_hours, feed_profile, now=now)
        if not articles:
            return self._fail("No articles found for briefing")

        selected = sorted(articles, key=lambda a: a.impact_rating or 0, reverse=True)[:max_articles]
        summaries_text = "\n".join(
            f"{index + 1}. **{article.title}** (Impact: {article.impact_rating or 'N/A'})\n"
            f"   {article.processed_content}\n"
            for index, article in enumerate(selected)
        )
        template = self.prompts.resolve("simple_brief", feed_profile)
        prompt = self.prompts.format_prompt(
            template, {"feed_profile": feed_profile.value, "summaries_text": summaries_text}
        )

        self.limiter.wait()
        content = self.gateway.chat_complete(prompt)
        if not content:
            return self._fail("Failed to generate brief content")

        return self.synthesizer.persist(content, [a.id for a in selected], feed_profile)

    @staticmethod
    def _fail(error: str) -> BriefResult:
        logger.warning(f"[BRIEF] {error}")
        return BriefResult(success=False, error=error)
