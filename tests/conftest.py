from __future__ import annotations

from datetime import datetime, timedelta
from typing import Callable

import pytest

from config import load_settings
from newsbrief.ai.rate_limiter import NoopRateLimiter
from newsbrief.models import Article, FeedProfile
from newsbrief.prompts import PromptProvider
from newsbrief.store.article_store import ArticleStore, BriefingStore, create_db_engine

NOW = datetime(2024, 5, 10, 12, 0, 0)


class FakeGateway:
    """
    Scripted stand-in for AIGateway.

    chat replies are consumed in order (a callable receives the prompt instead);
    embeddings come from `embedder(text)`.
    """

    def __init__(self, chat_replies=None, embedder: Callable[[str], list[float] | None] | None = None):
        self.chat_replies = chat_replies if chat_replies is not None else []
        self.embedder = embedder or (lambda text: [0.1, 0.2, 0.3])
        self.chat_prompts: list[str] = []
        self.embed_inputs: list[str] = []

    def chat_complete(self, prompt, system_prompt=None, model=None):
        self.chat_prompts.append(prompt)
        if callable(self.chat_replies):
            return self.chat_replies(prompt)
        if not self.chat_replies:
            return None
        return self.chat_replies.pop(0)

    def embed(self, text, model=None):
        self.embed_inputs.append(text)
        return self.embedder(text)

    def embed_batch(self, texts, model=None):
        return [self.embed(t) for t in texts]

    def test_connectivity(self):
        return {"chat": True, "embedding": True, "errors": []}


@pytest.fixture
def settings(tmp_path):
    return load_settings(
        chat_api_key="test-chat-key",
        embedding_api_key="test-embedding-key",
        database_url=f"sqlite:///{tmp_path / 'newsbrief.db'}",
        api_call_delay_seconds=0.0,
        embedding_batch_delay_seconds=0.0,
        rate_limit_backoff_seconds=0.0,
        lookback_hours=24,
        min_articles=5,
        clusters_qtd=10,
    )


@pytest.fixture
def engine(settings):
    return create_db_engine(settings.database_url)


@pytest.fixture
def store(engine):
    return ArticleStore(engine)


@pytest.fixture
def briefings(engine):
    return BriefingStore(engine)


@pytest.fixture
def prompts(settings):
    return PromptProvider(settings)


@pytest.fixture
def limiter():
    return NoopRateLimiter()


@pytest.fixture
def gateway():
    return FakeGateway()


@pytest.fixture
def add_article(store):
    """Insert an article and apply optional stage fields; returns the stored Article."""
    counter = {"n": 0}

    def _add(
        profile: FeedProfile = FeedProfile.TECHNOLOGY,
        title: str | None = None,
        processed: str | None = None,
        embedding: list[float] | None = None,
        rating: int | None = None,
        categories=None,
        hours_ago: float = 1,
        raw_content: str = "Raw article body about software.",
    ) -> Article:
        counter["n"] += 1
        n = counter["n"]
        article_id = store.insert_article(
            Article(
                url=f"https://example.com/articles/{n}",
                title=title or f"Article {n}",
                raw_content=raw_content,
                feed_profile=profile,
                published_date=NOW - timedelta(hours=hours_ago),
                feed_source="Example Feed",
            )
        )
        if processed is not None:
            store.update_processing(article_id, processed, embedding or [0.1, 0.2, 0.3])
        if rating is not None:
            store.update_rating(article_id, rating)
        if categories:
            store.update_categories(article_id, categories)
        return store.get_article(article_id)

    return _add
