"""
Prompt templates and briefing configuration lookup.
Profile-specific prompts override the global defaults; custom prompts passed
per call override both.
"""

import re
from dataclasses import dataclass, field

from config import Settings
from newsbrief.models import FeedProfile


_PLACEHOLDER = re.compile(r"\{(\w+)\}")

ARTICLE_SUMMARY_PROMPT = """
Summarize the key points of this news article objectively in 2-4 sentences.
Identify the main topics covered.

Article:
{article_content}
"""

IMPACT_RATING_PROMPT = """
Analyze the following news summary and estimate its overall impact. Consider factors like \
geographic scope (local vs global), number of people affected, severity, and potential \
long-term consequences.

Rate the impact on a scale of 1 to 10, where:
1-2: Minor, niche, or local interest.
3-4: Notable event for a specific region or community.
5-6: Significant event with broader regional or moderate international implications.
7-8: Major event with significant international importance or wide-reaching effects.
9-10: Critical global event with severe, widespread, or potentially historic implications.

Summary:
"{summary}"

Output ONLY the integer number representing your rating (1-10).
"""

CATEGORY_CLASSIFICATION_PROMPT = """
Analyze the following article title and content to classify it into appropriate categories.

Available categories:
- news: General news articles
- blog: Blog posts or opinion pieces
- research: Research papers or technical studies
- nodejs: Node.js related content
- typescript: TypeScript related content
- tutorial: Tutorials or how-to guides
- other: Content that doesn't fit other categories

Article Title: "{title}"
Article Content: "{content}"

Analyze the content and return ONLY a JSON array of relevant categories. For example:
["news", "nodejs"] or ["tutorial", "typescript"] or ["research"]

Choose 1-3 most relevant categories. Return only the JSON array, no other text.
"""

CLUSTER_ANALYSIS_PROMPT = """
These are summaries of potentially related news articles from a '{feed_profile}' context:

{cluster_summaries_text}

What is the core event or topic discussed? Summarize the key developments and significance \
in 3-5 sentences based *only* on the provided text. If the articles seem unrelated, state \
that clearly.
"""

BRIEF_SYNTHESIS_PROMPT = """
You are an AI assistant writing a Presidential-style daily intelligence briefing using \
Markdown, specifically for the '{feed_profile}' category.
Synthesize the following analyzed news clusters into a coherent, high-level executive summary.
Start with the 2-3 most critical overarching themes globally or within this category based \
*only* on these inputs.
Then, provide concise bullet points summarizing key developments within the most significant \
clusters (roughly 3-5 clusters).
Maintain an objective, analytical tone relevant to the '{feed_profile}' context. Avoid speculation.

Analyzed News Clusters (Most significant first):
{cluster_analyses_text}
"""

SIMPLE_BRIEF_PROMPT = """Create a concise briefing for the '{feed_profile}' profile based on \
these recent articles:

{summaries_text}

Format as a professional briefing with:
1. Executive Summary (2-3 key themes)
2. Key Developments (bullet points)
3. Analysis and Implications

Use Markdown formatting."""

DEFAULT_PROMPTS: dict[str, str] = {
    "article_summary": ARTICLE_SUMMARY_PROMPT,
    "impact_rating": IMPACT_RATING_PROMPT,
    "category_classification": CATEGORY_CLASSIFICATION_PROMPT,
    "cluster_analysis": CLUSTER_ANALYSIS_PROMPT,
    "brief_synthesis": BRIEF_SYNTHESIS_PROMPT,
    "simple_brief": SIMPLE_BRIEF_PROMPT,
}


@dataclass
class BriefingConfig:
    feed_profile: FeedProfile
    lookback_hours: int
    min_articles: int
    clusters_qtd: int
    custom_prompts: dict[str, str] = field(default_factory=dict)


def format_prompt(template: str, variables: dict[str, object]) -> str:
    """
    Replace every {key} placeholder in the template.
    Missing or None variables render as an empty string.
    """
    def _substitute(match: re.Match) -> str:
        value = variables.get(match.group(1))
        return "" if value is None else str(value)

    return _PLACEHOLDER.sub(_substitute, template)


class PromptProvider:
    """Pure lookup over the default templates, profile overrides and numeric thresholds."""

    def __init__(self, settings: Settings):
        self.settings = settings

    def get_prompt(self, kind: str) -> str:
        if kind not in DEFAULT_PROMPTS:
            raise KeyError(f"Unknown prompt kind: {kind}")
        return DEFAULT_PROMPTS[kind]

    def get_prompts_for_profile(self, profile: FeedProfile) -> dict[str, str]:
        """Partial override map for a profile (empty when the profile has none)."""
        feed_config = self.settings.feed_profiles.get(profile)
        if feed_config is None:
            return {}
        return dict(feed_config.prompts)

    def resolve(self, kind: str, profile: FeedProfile, custom_prompt: str | None = None) -> str:
        """Pick the template for a call: custom > profile override > global default."""
        if custom_prompt:
            return custom_prompt
        profile_prompt = self.get_prompts_for_profile(profile).get(kind)
        if profile_prompt:
            return profile_prompt
        return self.get_prompt(kind)

    def format_prompt(self, template: str, variables: dict[str, object]) -> str:
        return format_prompt(template, variables)

    def get_briefing_config(
        self,
        profile: FeedProfile,
        lookback_hours: int | None = None,
        min_articles: int | None = None,
        clusters_qtd: int | None = None,
        custom_prompts: dict[str, str] | None = None,
    ) -> BriefingConfig:
        """Merge per-call overrides with the configured defaults (falsy overrides are ignored)."""
        return BriefingConfig(
            feed_profile=profile or self.settings.default_feed_profile,
            lookback_hours=lookback_hours or self.settings.lookback_hours,
            min_articles=min_articles or self.settings.min_articles,
            clusters_qtd=clusters_qtd or self.settings.clusters_qtd,
            custom_prompts=dict(custom_prompts or {}),
        )
