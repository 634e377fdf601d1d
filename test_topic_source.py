"""
Tests for the language-model and pool-file topic sources.
"""

import asyncio
import random

import pytest

from conftest import FakeTextProvider
from improv_deck.core.exceptions import NoTopicAvailableError, OutlineRequestError, ProviderError
from improv_deck.core.outline_client import OutlineClient
from improv_deck.core.providers import ContentBlock
from improv_deck.core.topic_source import LLMTopicSource, TopicPoolSource


def test_llm_topic_is_stripped():
    provider = FakeTextProvider('  "The Habits of Wealthy Chimpanzees"\n')

    topic = asyncio.run(LLMTopicSource(OutlineClient(provider)).next_topic())

    assert topic == "The Habits of Wealthy Chimpanzees"
    assert "improvisational" in provider.calls[0]["prompt"]


def test_llm_non_text_answer_means_no_topic():
    provider = FakeTextProvider([ContentBlock(kind="inline_data")])

    with pytest.raises(NoTopicAvailableError):
        asyncio.run(LLMTopicSource(OutlineClient(provider)).next_topic())


def test_llm_blank_answer_means_no_topic():
    with pytest.raises(NoTopicAvailableError):
        asyncio.run(LLMTopicSource(OutlineClient(FakeTextProvider("   "))).next_topic())


def test_llm_provider_failure_stays_a_request_error():
    provider = FakeTextProvider(ProviderError("boom", provider="fake"))

    with pytest.raises(OutlineRequestError) as exc_info:
        asyncio.run(LLMTopicSource(OutlineClient(provider)).next_topic())

    assert exc_info.value.stage == "topic"


def test_pool_draw_removes_the_topic(tmp_path):
    pool = tmp_path / "topics.txt"
    pool.write_text("Space Lettuce\n\nCompetitive Napping\nTax Law for Ghosts\n", encoding="utf-8")
    source = TopicPoolSource(str(pool), rng=random.Random(1))

    drawn = [asyncio.run(source.next_topic()) for _ in range(3)]

    assert sorted(drawn) == ["Competitive Napping", "Space Lettuce", "Tax Law for Ghosts"]
    assert source.remaining() == 0
    with pytest.raises(NoTopicAvailableError):
        source.draw()


def test_pool_file_keeps_undrawn_topics(tmp_path):
    pool = tmp_path / "topics.txt"
    pool.write_text("A\nB\nC\n", encoding="utf-8")
    source = TopicPoolSource(str(pool), rng=random.Random(0))

    topic = source.draw()

    remaining = pool.read_text(encoding="utf-8").splitlines()
    assert topic not in remaining
    assert sorted(remaining + [topic]) == ["A", "B", "C"]


def test_missing_pool_file_means_no_topic(tmp_path):
    with pytest.raises(NoTopicAvailableError):
        TopicPoolSource(str(tmp_path / "nope.txt")).draw()


def test_undecodable_pool_file_means_no_topic(tmp_path):
    pool = tmp_path / "topics.txt"
    pool.write_bytes(b"Caf\xe9 Chimps\nTax Law for Ghosts\n")

    with pytest.raises(NoTopicAvailableError) as exc_info:
        TopicPoolSource(str(pool)).draw()

    assert "unreadable" in str(exc_info.value)
    assert pool.read_bytes() == b"Caf\xe9 Chimps\nTax Law for Ghosts\n"


def test_failed_pool_rewrite_means_no_topic(tmp_path, monkeypatch):
    pool = tmp_path / "topics.txt"
    pool.write_text("A\nB\n", encoding="utf-8")
    source = TopicPoolSource(str(pool))

    def read_only(topics):
        raise PermissionError(13, "Permission denied")

    monkeypatch.setattr(source, "_write_topics", read_only)

    with pytest.raises(NoTopicAvailableError):
        source.draw()
