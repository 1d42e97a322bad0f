"""Central configuration for the newsbrief briefing pipeline."""

import os
from dataclasses import dataclass, field

from dotenv import load_dotenv

from newsbrief.models import FeedProfile

load_dotenv()


# --- API Config ---
# Priority: USE_LOCAL_OLLAMA > remote providers (chat + embedding keys)
USE_LOCAL_OLLAMA = os.getenv("USE_LOCAL_OLLAMA", "false").lower() == "true"

if USE_LOCAL_OLLAMA:
    CHAT_API_KEY = "ollama"  # Ollama doesn't require a real key
    CHAT_BASE_URL = "http://localhost:11434/v1"
    CHAT_MODEL = os.getenv("OLLAMA_MODEL", "llama3.1")
    EMBEDDING_API_KEY = "ollama"
    EMBEDDING_BASE_URL = CHAT_BASE_URL
    EMBEDDING_MODEL = os.getenv("OLLAMA_EMBEDDING_MODEL", "nomic-embed-text")
    API_PROVIDER = "Local_Ollama"
else:
    CHAT_API_KEY = os.getenv("CHAT_API_KEY", "") or os.getenv("DEEPSEEK_API_KEY", "")
    CHAT_BASE_URL = os.getenv("CHAT_BASE_URL", "https://api.deepseek.com/v1")
    CHAT_MODEL = os.getenv("CHAT_MODEL", "deepseek-chat")
    EMBEDDING_API_KEY = os.getenv("EMBEDDING_API_KEY", "")
    EMBEDDING_BASE_URL = os.getenv("EMBEDDING_BASE_URL", "https://api.together.xyz/v1")
    EMBEDDING_MODEL = os.getenv(
        "EMBEDDING_MODEL", "togethercomputer/m2-bert-80M-32k-retrieval"
    )
    API_PROVIDER = "Remote"

LLM_TIMEOUT_SECONDS = float(os.getenv("LLM_TIMEOUT_SECONDS", "60"))
LLM_MAX_TOKENS = int(os.getenv("LLM_MAX_TOKENS", "2048"))
LLM_TEMPERATURE = float(os.getenv("LLM_TEMPERATURE", "0.7"))
LLM_RATE_LIMIT_MAX_RETRIES = int(os.getenv("LLM_RATE_LIMIT_MAX_RETRIES", "2"))
LLM_RATE_LIMIT_BACKOFF_SECONDS = float(os.getenv("LLM_RATE_LIMIT_BACKOFF_SECONDS", "10"))

# --- Storage Config ---
DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///newsbrief.db")

# --- Pipeline Config ---
API_CALL_DELAY_SECONDS = float(os.getenv("API_CALL_DELAY_SECONDS", "1.0"))
EMBEDDING_BATCH_DELAY_SECONDS = float(os.getenv("EMBEDDING_BATCH_DELAY_SECONDS", "0.5"))

_lookback = os.getenv("BRIEFING_LOOKBACK_HOURS")
BRIEFING_LOOKBACK_HOURS = int(_lookback) if _lookback else 24

_min_articles = os.getenv("MIN_ARTICLES_FOR_BRIEFING")
MIN_ARTICLES_FOR_BRIEFING = int(_min_articles) if _min_articles else 5

_clusters_qtd = os.getenv("CLUSTERS_QTD")
CLUSTERS_QTD = int(_clusters_qtd) if _clusters_qtd else 10

SIMPLE_BRIEF_MAX_ARTICLES = int(os.getenv("SIMPLE_BRIEF_MAX_ARTICLES", "10"))
MAX_ARTICLES_PER_FEED = int(os.getenv("MAX_ARTICLES_PER_FEED", "50"))

DEFAULT_FEED_PROFILE = FeedProfile(os.getenv("FEED_PROFILE", "technology"))


# --- Feed Profile Definitions ---
@dataclass
class RSSFeed:
    name: str
    url: str
    category: str = ""
    description: str = ""
    enabled: bool = True


@dataclass
class FeedConfig:
    """
    A named content track: its RSS feeds plus optional prompt overrides.
    Prompt keys: article_summary, impact_rating, cluster_analysis, brief_synthesis.
    """
    profile: FeedProfile
    rss_feeds: list[RSSFeed] = field(default_factory=list)
    prompts: dict[str, str] = field(default_factory=dict)
    priority: int = 1
    enabled: bool = True


TECLAS_CLUSTER_ANALYSIS_PROMPT = """
Estes são resumos de artigos possivelmente relacionados sobre teclados mecânicos, \
periféricos e setups ('{feed_profile}'):

{cluster_summaries_text}

Qual é o tema central? Resuma os principais lançamentos, tendências e opiniões em 3-5 \
frases, usando *apenas* o texto acima. Se os artigos parecerem unrelated (sem relação), \
diga isso claramente.
"""

TECLAS_BRIEF_SYNTHESIS_PROMPT = """
Você é um editor escrevendo um boletim diário em Markdown para a comunidade '{feed_profile}'.
Sintetize os grupos de notícias analisados abaixo em um resumo coeso.
Comece com os 2-3 temas mais relevantes e depois liste em tópicos os destaques de cada grupo.
Mantenha um tom objetivo e evite especulação.

Grupos analisados (mais relevantes primeiro):
{cluster_analyses_text}
"""

BRASIL_ARTICLE_SUMMARY_PROMPT = """
Resuma objetivamente os pontos principais desta notícia em 2-4 frases, em português.
Identifique os principais temas abordados.

Artigo:
{article_content}
"""

FEED_PROFILES: dict[FeedProfile, FeedConfig] = {
    FeedProfile.TECHNOLOGY: FeedConfig(
        profile=FeedProfile.TECHNOLOGY,
        rss_feeds=[
            RSSFeed(
                name="NodeJs Blog",
                url="https://nodejs.org/en/feed/blog.xml",
                category="technical",
                description="Official Node.js project blog",
            ),
            RSSFeed(
                name="TechCrunch",
                url="https://techcrunch.com/feed/",
                category="startup",
                description="Technology startup news and venture capital",
            ),
            RSSFeed(
                name="TabNews",
                url="https://www.tabnews.com.br/recentes/rss",
                category="technical",
                description="Brazilian technology community",
            ),
            RSSFeed(
                name="LeadDev",
                url="https://leaddev.com/feed",
                category="technical",
                description="Engineering leadership articles",
            ),
            RSSFeed(
                name="The Verge",
                url="https://www.theverge.com/rss/index.xml",
                category="consumer-tech",
                enabled=False,
            ),
            RSSFeed(
                name="Ars Technica",
                url="https://arstechnica.com/feed/",
                category="technical",
                enabled=False,
            ),
        ],
    ),
    FeedProfile.BRASIL: FeedConfig(
        profile=FeedProfile.BRASIL,
        rss_feeds=[
            RSSFeed(
                name="G1",
                url="https://g1.globo.com/rss/g1/",
                category="news",
            ),
            RSSFeed(
                name="Agência Brasil",
                url="https://agenciabrasil.ebc.com.br/rss/ultimasnoticias/feed.xml",
                category="news",
            ),
        ],
        prompts={"article_summary": BRASIL_ARTICLE_SUMMARY_PROMPT},
    ),
    FeedProfile.TECLAS: FeedConfig(
        profile=FeedProfile.TECLAS,
        rss_feeds=[
            RSSFeed(
                name="r/MechanicalKeyboards",
                url="https://www.reddit.com/r/MechanicalKeyboards/.rss",
                category="community",
            ),
            RSSFeed(
                name="Keyboard Builders' Digest",
                url="https://kbd.news/rss2.php",
                category="news",
            ),
        ],
        prompts={
            "cluster_analysis": TECLAS_CLUSTER_ANALYSIS_PROMPT,
            "brief_synthesis": TECLAS_BRIEF_SYNTHESIS_PROMPT,
        },
        priority=2,
    ),
}


@dataclass
class Settings:
    """
    Process-wide configuration, built once by load_settings() and handed to
    every component constructor.
    """
    chat_api_key: str = ""
    chat_base_url: str = ""
    chat_model: str = "deepseek-chat"
    embedding_api_key: str = ""
    embedding_base_url: str = ""
    embedding_model: str = ""
    api_provider: str = "Remote"
    llm_timeout_seconds: float = 60.0
    llm_max_tokens: int = 2048
    llm_temperature: float = 0.7
    rate_limit_max_retries: int = 2
    rate_limit_backoff_seconds: float = 10.0
    database_url: str = "sqlite:///newsbrief.db"
    api_call_delay_seconds: float = 1.0
    embedding_batch_delay_seconds: float = 0.5
    lookback_hours: int = 24
    min_articles: int = 5
    clusters_qtd: int = 10
    simple_brief_max_articles: int = 10
    max_articles_per_feed: int = 50
    default_feed_profile: FeedProfile = FeedProfile.TECHNOLOGY
    feed_profiles: dict[FeedProfile, FeedConfig] = field(default_factory=dict)


def load_settings(**overrides) -> Settings:
    """Build Settings from the module-level (environment-derived) values."""
    settings = Settings(
        chat_api_key=CHAT_API_KEY,
        chat_base_url=CHAT_BASE_URL,
        chat_model=CHAT_MODEL,
        embedding_api_key=EMBEDDING_API_KEY,
        embedding_base_url=EMBEDDING_BASE_URL,
        embedding_model=EMBEDDING_MODEL,
        api_provider=API_PROVIDER,
        llm_timeout_seconds=LLM_TIMEOUT_SECONDS,
        llm_max_tokens=LLM_MAX_TOKENS,
        llm_temperature=LLM_TEMPERATURE,
        rate_limit_max_retries=LLM_RATE_LIMIT_MAX_RETRIES,
        rate_limit_backoff_seconds=LLM_RATE_LIMIT_BACKOFF_SECONDS,
        database_url=DATABASE_URL,
        api_call_delay_seconds=API_CALL_DELAY_SECONDS,
        embedding_batch_delay_seconds=EMBEDDING_BATCH_DELAY_SECONDS,
        lookback_hours=BRIEFING_LOOKBACK_HOURS,
        min_articles=MIN_ARTICLES_FOR_BRIEFING,
        clusters_qtd=CLUSTERS_QTD,
        simple_brief_max_articles=SIMPLE_BRIEF_MAX_ARTICLES,
        max_articles_per_feed=MAX_ARTICLES_PER_FEED,
        default_feed_profile=DEFAULT_FEED_PROFILE,
        feed_profiles=dict(FEED_PROFILES),
    )
    for key, value in overrides.items():
        if not hasattr(settings, key):
            raise AttributeError(f"Unknown setting: {key}")
        setattr(settings, key, value)
    return settings


def get_enabled_feeds(settings: Settings, profile: FeedProfile) -> list[RSSFeed]:
    """Return the enabled RSS feeds registered for a profile."""
    feed_config = settings.feed_profiles.get(profile)
    if feed_config is None:
        return []
    return [feed for feed in feed_config.rss_feeds if feed.enabled]


def validate_config(mode: str = "run", settings: Settings | None = None) -> tuple[bool, list[str]]:
    """
    Validate configuration for the requested command.
    Modes that only talk to the chat model ("rate", "categorize", "brief") don't
    need the embedding key; "scrape" and "stats" need no keys at all.
    """
    settings = settings or load_settings()
    errors: list[str] = []

    if mode in ("scrape", "stats"):
        return True, errors

    if not settings.chat_api_key:
        errors.append("CHAT_API_KEY (or DEEPSEEK_API_KEY) is not set")

    needs_embedding = mode in ("run", "process", "process-article", "check")
    if needs_embedding and not settings.embedding_api_key:
        errors.append("EMBEDDING_API_KEY is not set")

    if settings.min_articles < 1:
        errors.append("MIN_ARTICLES_FOR_BRIEFING must be >= 1")
    if settings.clusters_qtd < 1:
        errors.append("CLUSTERS_QTD must be >= 1")
    if settings.lookback_hours < 1:
        errors.append("BRIEFING_LOOKBACK_HOURS must be >= 1")

    return not errors, errors
