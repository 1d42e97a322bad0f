"""Data models shared across the briefing pipeline."""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum


class FeedProfile(str, Enum):
    """Named content tracks, each with its own feeds, prompts and briefings."""
    DEFAULT = "default"
    TECHNOLOGY = "technology"
    POLITICS = "politics"
    BUSINESS = "business"
    HEALTH = "health"
    SCIENCE = "science"
    BRASIL = "brasil"
    TECLAS = "teclas"


class ArticleCategory(str, Enum):
    NEWS = "news"
    BLOG = "blog"
    RESEARCH = "research"
    NODEJS = "nodejs"
    TYPESCRIPT = "typescript"
    TUTORIAL = "tutorial"
    OTHER = "other"


class Stage(str, Enum):
    SUMMARIZE = "summarize"
    RATE = "rate"
    CATEGORIZE = "categorize"


@dataclass
class Article:
    """
    One ingested document (RSS entry, web page or transcript).
    Created with raw_content only; the stage runner fills processed_content +
    embedding, then impact_rating, then categories.
    """
    url: str                     # unique source URL
    title: str
    raw_content: str
    feed_profile: FeedProfile
    published_date: datetime
    feed_source: str = ""
    id: int | None = None        # assigned by the store
    processed_content: str | None = None
    embedding: list[float] | None = None
    impact_rating: int | None = None
    categories: list[ArticleCategory] | None = None
    image_url: str | None = None
    created_at: datetime | None = None


@dataclass
class ClusterAnalysis:
    """Ephemeral per-cluster LLM analysis; size is the ranking key."""
    label: int
    topic: str
    analysis: str
    size: int
    articles: list[Article] = field(default_factory=list)


@dataclass
class Briefing:
    id: int
    content: str
    article_ids: list[int]
    feed_profile: FeedProfile
    created_at: datetime | None = None


@dataclass
class ProcessingStats:
    """Per-run counters returned by each stage; never persisted."""
    feed_profile: FeedProfile
    articles_processed: int = 0
    articles_rated: int = 0
    articles_categorized: int = 0
    errors: int = 0
    start_time: datetime = field(default_factory=datetime.now)
    end_time: datetime | None = None


@dataclass
class BriefStats:
    articles_analyzed: int = 0
    clusters_generated: int = 0
    clusters_used: int = 0


@dataclass
class BriefResult:
    """Outcome of a brief generation: either fully succeeded or fully failed."""
    success: bool
    briefing_id: int | None = None
    content: str | None = None
    error: str | None = None
    stats: BriefStats | None = None


@dataclass
class ScrapeStats:
    new_articles: int = 0
    errors: int = 0


@dataclass
class RunBriefingResult:
    success: bool
    duration_seconds: float
    scraping: ScrapeStats
    processing: ProcessingStats
    rating: ProcessingStats
    categorization: ProcessingStats
    brief: BriefResult
