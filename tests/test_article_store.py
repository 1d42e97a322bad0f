from datetime import datetime, timedelta

import pytest

from conftest import NOW
from newsbrief.models import Article, ArticleCategory, FeedProfile
from newsbrief.store.article_store import StoreError, create_db_engine

TECH = FeedProfile.TECHNOLOGY


def test_insert_and_get(store):
    article_id = store.insert_article(
        Article(
            url="https://example.com/x",
            title="X",
            raw_content="body",
            feed_profile=TECH,
            published_date=datetime(2024, 5, 1, 8, 30),
            feed_source="Feed",
            image_url="https://example.com/x.png",
        )
    )
    saved = store.get_article(article_id)
    assert saved.url == "https://example.com/x"
    assert saved.published_date == datetime(2024, 5, 1, 8, 30)
    assert saved.image_url == "https://example.com/x.png"
    assert saved.processed_content is None
    assert saved.created_at is not None


def test_duplicate_url_returns_none(store, add_article):
    article = add_article()
    duplicate = Article(
        url=article.url,
        title="again",
        raw_content="body",
        feed_profile=TECH,
        published_date=NOW,
    )
    assert store.insert_article(duplicate) is None


def test_get_missing_article(store):
    assert store.get_article(999) is None


def test_stage_queries(store, add_article):
    raw = add_article()
    processed = add_article(processed="summary")
    rated = add_article(processed="summary", rating=6)
    done = add_article(processed="summary", rating=6, categories=[ArticleCategory.NEWS])

    assert [a.id for a in store.get_unprocessed(TECH)] == [raw.id]
    assert {a.id for a in store.get_unrated(TECH)} == {processed.id}
    assert {a.id for a in store.get_uncategorized(TECH)} == {processed.id, rated.id}
    assert store.get_article(done.id).categories == [ArticleCategory.NEWS]


def test_update_processing_requires_both_fields(store, add_article):
    article = add_article()
    with pytest.raises(ValueError):
        store.update_processing(article.id, "summary", [])
    with pytest.raises(ValueError):
        store.update_processing(article.id, "", [0.1])
    assert store.get_article(article.id).processed_content is None


def test_update_categories_rejects_empty(store, add_article):
    article = add_article(processed="summary")
    with pytest.raises(ValueError):
        store.update_categories(article.id, [])


def test_get_for_briefing_window_and_order(store, add_article):
    low_new = add_article(processed="s", rating=3, hours_ago=1)
    high_old = add_article(processed="s", rating=9, hours_ago=20)
    high_new = add_article(processed="s", rating=9, hours_ago=2)
    add_article(processed="s", rating=10, hours_ago=30)        # outside window
    add_article(rating=None, hours_ago=1)                       # not processed
    add_article(profile=FeedProfile.BRASIL, processed="s", hours_ago=1)

    found = store.get_for_briefing(24, TECH, now=NOW)
    assert [a.id for a in found] == [high_new.id, high_old.id, low_new.id]
    assert all(a.embedding for a in found)


def test_processing_stats(store, add_article):
    add_article()
    add_article(processed="s", rating=4)
    add_article(processed="s", rating=8)
    add_article(processed="s")

    stats = store.processing_stats(TECH)
    assert stats == {
        "total": 4,
        "processed": 3,
        "rated": 2,
        "unprocessed": 1,
        "unrated": 1,
        "average_rating": 6.0,
    }
    assert store.processing_stats(FeedProfile.BRASIL)["total"] == 0


def test_briefing_save_and_list(briefings):
    first = briefings.save("# Brief 1", [1, 2, 3], TECH)
    second = briefings.save("# Brief 2", [4], FeedProfile.BRASIL)

    saved = briefings.get_briefing(first)
    assert saved.content == "# Brief 1"
    assert saved.article_ids == [1, 2, 3]
    assert saved.feed_profile == TECH
    assert [b.id for b in briefings.list_briefings()] == [second, first]
    assert [b.id for b in briefings.list_briefings(TECH)] == [first]
    assert briefings.get_briefing(12345) is None


def test_bad_database_url_raises_store_error(tmp_path):
    with pytest.raises(StoreError):
        create_db_engine(f"sqlite:///{tmp_path / 'missing-dir' / 'db.sqlite'}")
