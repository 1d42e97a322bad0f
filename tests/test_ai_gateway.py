from types import SimpleNamespace
from unittest.mock import MagicMock

import pytest

from newsbrief.ai.gateway import AIGateway


def _chat_response(content, finish_reason="stop"):
    return SimpleNamespace(
        choices=[SimpleNamespace(message=SimpleNamespace(content=content), finish_reason=finish_reason)]
    )


def _embedding_response(*vectors):
    return SimpleNamespace(data=[SimpleNamespace(embedding=v) for v in vectors])


@pytest.fixture
def sleeps():
    return []


@pytest.fixture
def make_gateway(settings, sleeps):
    def _make(chat=None, embedding=None):
        return AIGateway(
            settings,
            chat_client=chat or MagicMock(),
            embedding_client=embedding or MagicMock(),
            sleep=sleeps.append,
        )
    return _make


class TestChatComplete:
    def test_returns_stripped_text(self, make_gateway, settings):
        chat = MagicMock()
        chat.chat.completions.create.return_value = _chat_response("  Hello  ")
        assert make_gateway(chat=chat).chat_complete("hi", system_prompt="sys") == "Hello"

        kwargs = chat.chat.completions.create.call_args.kwargs
        assert kwargs["model"] == settings.chat_model
        assert kwargs["messages"] == [
            {"role": "system", "content": "sys"},
            {"role": "user", "content": "hi"},
        ]

    def test_empty_content_is_none(self, make_gateway):
        chat = MagicMock()
        chat.chat.completions.create.return_value = _chat_response("   ", finish_reason="length")
        assert make_gateway(chat=chat).chat_complete("hi") is None

    def test_no_choices_is_none(self, make_gateway):
        chat = MagicMock()
        chat.chat.completions.create.return_value = SimpleNamespace(choices=[])
        assert make_gateway(chat=chat).chat_complete("hi") is None

    def test_error_is_none(self, make_gateway):
        chat = MagicMock()
        chat.chat.completions.create.side_effect = RuntimeError("timeout")
        assert make_gateway(chat=chat).chat_complete("hi") is None
        assert chat.chat.completions.create.call_count == 1

    def test_rate_limit_retried_with_backoff(self, settings, sleeps, make_gateway):
        settings.rate_limit_max_retries = 2
        settings.rate_limit_backoff_seconds = 1.5
        chat = MagicMock()
        chat.chat.completions.create.side_effect = [
            RuntimeError("Error code: 429 - Too Many Requests"),
            RuntimeError("429"),
            _chat_response("finally"),
        ]
        assert make_gateway(chat=chat).chat_complete("hi") == "finally"
        assert sleeps == [1.5, 3.0]

    def test_rate_limit_gives_up(self, settings, sleeps, make_gateway):
        settings.rate_limit_max_retries = 1
        chat = MagicMock()
        chat.chat.completions.create.side_effect = RuntimeError("rate limit exceeded")
        assert make_gateway(chat=chat).chat_complete("hi") is None
        assert chat.chat.completions.create.call_count == 2

    def test_missing_key_is_none(self, settings):
        settings.chat_api_key = ""
        assert AIGateway(settings).chat_complete("hi") is None


class TestEmbeddings:
    def test_embed(self, make_gateway, settings):
        embedding = MagicMock()
        embedding.embeddings.create.return_value = _embedding_response([0.1, 0.2])
        assert make_gateway(embedding=embedding).embed("text") == [0.1, 0.2]
        kwargs = embedding.embeddings.create.call_args.kwargs
        assert kwargs["input"] == ["text"]
        assert kwargs["model"] == settings.embedding_model

    def test_embed_failure_is_none(self, make_gateway):
        embedding = MagicMock()
        embedding.embeddings.create.side_effect = RuntimeError("bad gateway")
        assert make_gateway(embedding=embedding).embed("text") is None

    def test_embed_empty_data_is_none(self, make_gateway):
        embedding = MagicMock()
        embedding.embeddings.create.return_value = SimpleNamespace(data=[])
        assert make_gateway(embedding=embedding).embed("text") is None

    def test_batches_of_ten_stay_aligned(self, make_gateway):
        embedding = MagicMock()

        def create(model, input, timeout):
            if "fail" in input[0]:
                raise RuntimeError("boom")
            return _embedding_response(*[[float(len(t))] for t in input])

        embedding.embeddings.create.side_effect = create
        texts = [f"t{i}" for i in range(10)] + ["fail-0"] + [f"u{i}" for i in range(4)]
        results = make_gateway(embedding=embedding).embed_batch(texts)

        assert len(results) == 15
        assert embedding.embeddings.create.call_count == 2
        assert results[0] == [2.0]
        assert results[10:] == [None] * 5

    def test_batch_empty_input(self, make_gateway):
        assert make_gateway().embed_batch([]) == []


def test_connectivity(make_gateway):
    chat = MagicMock()
    chat.chat.completions.create.return_value = _chat_response("OK")
    embedding = MagicMock()
    embedding.embeddings.create.side_effect = RuntimeError("401")

    report = make_gateway(chat=chat, embedding=embedding).test_connectivity()
    assert report["chat"] is True
    assert report["embedding"] is False
    assert len(report["errors"]) == 1
