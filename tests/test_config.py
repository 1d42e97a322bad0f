import pytest

from config import FEED_PROFILES, get_enabled_feeds, load_settings, validate_config
from newsbrief.models import FeedProfile


def test_load_settings_overrides():
    settings = load_settings(clusters_qtd=3)
    assert settings.clusters_qtd == 3
    assert set(settings.feed_profiles) == set(FEED_PROFILES)


def test_load_settings_unknown_key():
    with pytest.raises(AttributeError):
        load_settings(not_a_setting=1)


def test_enabled_feeds_only():
    settings = load_settings()
    feeds = get_enabled_feeds(settings, FeedProfile.TECHNOLOGY)
    assert feeds
    assert all(feed.enabled for feed in feeds)
    assert "The Verge" not in [feed.name for feed in feeds]


def test_profile_without_registry_entry_has_no_feeds():
    assert get_enabled_feeds(load_settings(), FeedProfile.POLITICS) == []


@pytest.mark.parametrize("mode", ["scrape", "stats"])
def test_keyless_modes(mode):
    ok, errors = validate_config(mode, load_settings(chat_api_key="", embedding_api_key=""))
    assert ok
    assert errors == []


def test_brief_needs_only_chat_key():
    ok, _ = validate_config("brief", load_settings(chat_api_key="k", embedding_api_key=""))
    assert ok


def test_process_needs_embedding_key():
    ok, errors = validate_config("process", load_settings(chat_api_key="k", embedding_api_key=""))
    assert not ok
    assert any("EMBEDDING_API_KEY" in e for e in errors)


def test_numeric_sanity():
    ok, errors = validate_config(
        "rate", load_settings(chat_api_key="k", clusters_qtd=0, min_articles=0)
    )
    assert not ok
    assert len(errors) == 2
