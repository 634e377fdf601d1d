"""
Topic sources: ask the language model, or draw from a pre-seeded pool file.
"""

import asyncio
import logging
import os
import random
import tempfile
import threading
from pathlib import Path
from typing import Optional, Protocol

from config import GenerationConfig, TOPICS_FILE
from improv_deck.core.exceptions import NoTopicAvailableError, OutlineRequestError, OutlineRequestKind
from improv_deck.core.outline_client import OutlineClient, PromptConfiguration
from improv_deck.core.prompts import TOPIC_PROMPT

logger = logging.getLogger(__name__)


class TopicSource(Protocol):
    async def next_topic(self) -> str:
        ...


class LLMTopicSource:
    """Asks the text model to invent a topic."""

    def __init__(self, outline_client: OutlineClient, config: Optional[GenerationConfig] = None):
        self.outline_client = outline_client
        self.config = config or GenerationConfig()

    async def next_topic(self) -> str:
        prompt_config = PromptConfiguration(
            prompt=TOPIC_PROMPT,
            temperature=self.config.temperature,
            max_output_tokens=self.config.max_output_tokens,
        )
        try:
            text = await self.outline_client.request_text(prompt_config, stage="topic")
        except OutlineRequestError as e:
            if e.kind is OutlineRequestKind.UNEXPECTED_CONTENT_KIND:
                raise NoTopicAvailableError(f"No topic: {e.message}") from e
            raise

        topic = text.strip().strip('"').strip()
        if not topic:
            raise NoTopicAvailableError("No topic: model returned an empty answer")
        return topic


class TopicPoolSource:
    """
    Draws a random topic from a text file, one topic per line.

    The drawn line is removed from the file so each topic is used once.
    """

    def __init__(self, path: str = TOPICS_FILE, rng: Optional[random.Random] = None):
        self.path = Path(path)
        self.rng = rng or random.Random()
        self._lock = threading.Lock()

    def remaining(self) -> int:
        with self._lock:
            return len(self._read_topics())

    def _read_topics(self) -> list:
        if not self.path.exists():
            return []
        with open(self.path, "r", encoding="utf-8") as f:
            return [line.strip() for line in f if line.strip()]

    def _write_topics(self, topics: list) -> None:
        fd, tmp_name = tempfile.mkstemp(prefix=f".{self.path.name}.", dir=str(self.path.parent))
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write("\n".join(topics))
            os.replace(tmp_name, self.path)
        except BaseException:
            if os.path.exists(tmp_name):
                os.unlink(tmp_name)
            raise

    def draw(self) -> str:
        """Remove and return one random topic."""
        with self._lock:
            try:
                topics = self._read_topics()
            except (OSError, UnicodeDecodeError) as e:
                logger.error(f"Cannot read topic pool {self.path}: {e}")
                raise NoTopicAvailableError(f"Topic pool {self.path} is unreadable: {e}") from e
            if not topics:
                raise NoTopicAvailableError(f"No topic available in {self.path}")
            topic = topics.pop(self.rng.randrange(len(topics)))
            try:
                self._write_topics(topics)
            except OSError as e:
                logger.error(f"Cannot rewrite topic pool {self.path}: {e}")
                raise NoTopicAvailableError(f"Topic pool {self.path} could not be updated: {e}") from e
        logger.info(f"Drew topic from pool ({len(topics)} left): {topic}")
        return topic

    async def next_topic(self) -> str:
        return await asyncio.to_thread(self.draw)
