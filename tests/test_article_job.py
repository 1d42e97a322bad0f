import pytest

from conftest import FakeGateway
from newsbrief.models import ArticleCategory, FeedProfile
from newsbrief.processing.article_job import ArticleJobError, process_article_job
from newsbrief.processing.stage_runner import StageRunner

TECH = FeedProfile.TECHNOLOGY


def test_runs_all_three_stages(store, prompts, limiter, add_article):
    article = add_article()
    gateway = FakeGateway(["A summary.", "8", '["news"]'])
    result = process_article_job(StageRunner(store, gateway, prompts, limiter), article.id, TECH)

    assert result["success"] is True
    saved = store.get_article(article.id)
    assert saved.processed_content.startswith("A summary.")
    assert saved.impact_rating == 8
    assert saved.categories == [ArticleCategory.NEWS]


def test_only_the_given_article_is_touched(store, prompts, limiter, add_article):
    target = add_article(hours_ago=5)
    other = add_article(hours_ago=1)
    gateway = FakeGateway(["A summary.", "8", '["news"]'])
    process_article_job(StageRunner(store, gateway, prompts, limiter), target.id, TECH)

    assert store.get_article(other.id).processed_content is None


def test_failed_summary_raises(store, prompts, limiter, add_article):
    article = add_article()
    runner = StageRunner(store, FakeGateway([None]), prompts, limiter)
    with pytest.raises(ArticleJobError, match="process"):
        process_article_job(runner, article.id, TECH)


def test_bad_rating_raises(store, prompts, limiter, add_article):
    article = add_article()
    runner = StageRunner(store, FakeGateway(["A summary.", "eleven"]), prompts, limiter)
    with pytest.raises(ArticleJobError, match="rate"):
        process_article_job(runner, article.id, TECH)
    # the summary step already committed
    assert store.get_article(article.id).processed_content is not None


def test_unknown_article_raises(store, prompts, limiter):
    runner = StageRunner(store, FakeGateway(), prompts, limiter)
    with pytest.raises(ArticleJobError):
        process_article_job(runner, 404, TECH)
