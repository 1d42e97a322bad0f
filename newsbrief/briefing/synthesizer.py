"""Brief Synthesizer: rank cluster analyses by size and write the final Markdown briefing."""

import logging

from newsbrief.ai.gateway import AIGateway
from newsbrief.models import BriefResult, ClusterAnalysis, FeedProfile
from newsbrief.prompts import PromptProvider
from newsbrief.store.article_store import BriefingStore

logger = logging.getLogger(__name__)

MAX_CLUSTERS_IN_BRIEF = 5


def rank_clusters(analyses: list[ClusterAnalysis],
                  limit: int = MAX_CLUSTERS_IN_BRIEF) -> list[ClusterAnalysis]:
    """Largest clusters first (stable for ties), capped at `limit`."""
    return sorted(analyses, key=lambda a: a.size, reverse=True)[:limit]


def render_cluster_blocks(analyses: list[ClusterAnalysis]) -> str:
    return "\n".join(
        f"--- Cluster {index + 1} ({cluster.size} articles) ---\nAnalysis: {cluster.analysis}\n"
        for index, cluster in enumerate(analyses)
    )


class BriefSynthesizer:
    def __init__(self, gateway: AIGateway, prompts: PromptProvider, briefings: BriefingStore):
        self.gateway = gateway
        self.prompts = prompts
        self.briefings = briefings

    def synthesize(
        self,
        analyses: list[ClusterAnalysis],
        feed_profile: FeedProfile,
        article_ids: list[int],
        custom_prompt: str | None = None,
    ) -> BriefResult:
        """
        One synthesis call over the top clusters, then persist.

        article_ids is the full eligible set that went into clustering, kept in
        order for provenance. A missing reply fails the whole brief; nothing is
        saved in that case.
        """
        top = rank_clusters(analyses)
        template = self.prompts.resolve("brief_synthesis", feed_profile, custom_prompt)
        prompt = self.prompts.format_prompt(
            template,
            {"feed_profile": feed_profile.value, "cluster_analyses_text": render_cluster_blocks(top)},
        )

        markdown = self.gateway.chat_complete(prompt)
        if not markdown:
            error = "Could not synthesize final brief."
            logger.error(f"[BRIEF] Generation failed [{feed_profile.value}]: {error}")
            return BriefResult(success=False, error=error)

        return self.persist(markdown, article_ids, feed_profile)

    def persist(self, markdown: str, article_ids: list[int], feed_profile: FeedProfile) -> BriefResult:
        try:
            briefing_id = self.briefings.save(markdown, article_ids, feed_profile)
        except Exception as e:
            logger.error(f"[BRIEF] Failed to save brief [{feed_profile.value}]: {e}")
            return BriefResult(success=False, error=str(e) or "Failed to save brief")
        return BriefResult(success=True, briefing_id=briefing_id, content=markdown)
