"""Cluster Analyzer: one LLM analysis per article cluster, or rejection as noise."""

import logging

from newsbrief.ai.gateway import AIGateway
from newsbrief.models import Article, ClusterAnalysis, FeedProfile
from newsbrief.prompts import PromptProvider

logger = logging.getLogger(__name__)

MAX_SUMMARIES_PER_CLUSTER = 10
# Small clusters the model itself calls "unrelated" are dropped.
NOISE_MARKER = "unrelated"
NOISE_MAX_SIZE = 2


def is_noise_cluster(analysis: str, size: int) -> bool:
    return NOISE_MARKER in analysis.lower() and size <= NOISE_MAX_SIZE


class ClusterAnalyzer:
    def __init__(self, gateway: AIGateway, prompts: PromptProvider):
        self.gateway = gateway
        self.prompts = prompts

    def analyze_cluster(
        self,
        articles: list[Article],
        feed_profile: FeedProfile,
        cluster_index: int,
        custom_prompt: str | None = None,
    ) -> ClusterAnalysis | None:
        if not articles:
            return None

        logger.info(f"[ANALYZE] Cluster {cluster_index} ({len(articles)} articles)")
        selected = articles[:MAX_SUMMARIES_PER_CLUSTER]
        summaries_text = "\n\n".join(f"- {a.processed_content}" for a in selected)

        template = self.prompts.resolve("cluster_analysis", feed_profile, custom_prompt)
        prompt = self.prompts.format_prompt(
            template,
            {"feed_profile": feed_profile.value, "cluster_summaries_text": summaries_text},
        )

        analysis = self.gateway.chat_complete(prompt)
        if not analysis:
            logger.warning(f"[ANALYZE] Cluster {cluster_index}: no analysis returned")
            return None

        if is_noise_cluster(analysis, len(articles)):
            logger.info(f"[ANALYZE] Cluster {cluster_index}: rejected as unrelated")
            return None

        return ClusterAnalysis(
            label=cluster_index,
            topic=f"Cluster {cluster_index + 1}",
            analysis=analysis,
            size=len(articles),
            articles=list(articles),
        )
