"""
Shared fakes for the test suite. Nothing here touches the network.
"""

import asyncio
import io
import json
from datetime import datetime, timezone

import pytest
from PIL import Image

from config import GenerationConfig
from improv_deck.core.artifact_store import ArtifactStore
from improv_deck.core.exceptions import RateLimitedError
from improv_deck.core.image_client import ImageClient
from improv_deck.core.models import ImageResult
from improv_deck.core.outline_client import OutlineClient
from improv_deck.core.pipeline_orchestrator import PipelineOrchestrator
from improv_deck.core.providers import ContentBlock
from improv_deck.core.retry_handler import RateLimitRetryHandler

TOPIC = "The Habits of Wealthy Chimpanzees"
FIXED_NOW = datetime(2024, 1, 2, 10, 20, 30, 123000, tzinfo=timezone.utc)


def make_image_bytes(color=(200, 30, 30), fmt="PNG") -> bytes:
    buffer = io.BytesIO()
    Image.new("RGB", (4, 4), color).save(buffer, format=fmt)
    return buffer.getvalue()


def outline_document(image_count: int = 3, title_slides: int = 0) -> dict:
    """Outline with title slides first and image slides described as 'picture 1'..'picture N'."""
    slides = [
        {
            "title": {"content": f"Welcome {n}"},
            "presenter": {"name": "Dr. Banana", "title": "Chief Chimp Officer"},
        }
        for n in range(title_slides)
    ]
    slides += [{"image": {"description": f"picture {n}"}} for n in range(1, image_count + 1)]
    return {"slides": slides}


def outline_json(image_count: int = 3, title_slides: int = 0) -> str:
    return json.dumps(outline_document(image_count, title_slides))


class FakeTextProvider:
    """Returns queued responses: a str becomes one text block, an Exception is raised."""

    name = "fake-text"

    def __init__(self, *responses):
        self.responses = list(responses)
        self.calls = []

    async def generate(self, prompt, temperature, max_output_tokens, headers=None, json_output=False):
        self.calls.append({
            "prompt": prompt,
            "temperature": temperature,
            "max_output_tokens": max_output_tokens,
            "headers": headers,
            "json_output": json_output,
        })
        response = self.responses.pop(0)
        if isinstance(response, Exception):
            raise response
        if isinstance(response, str):
            return [ContentBlock(kind="text", text=response)]
        return response


class FakeImageProvider:
    """
    Image provider keyed by description.

    Args:
        delays: description -> seconds to wait before answering
        failures: description -> exception to raise
        rate_limits: description -> reset hints; each call pops one and raises RateLimitedError
    """

    name = "fake-image"

    def __init__(self, delays=None, failures=None, rate_limits=None):
        self.delays = delays or {}
        self.failures = failures or {}
        self.rate_limits = {key: list(hints) for key, hints in (rate_limits or {}).items()}
        self.calls = []
        self.results = {}
        self.in_flight = 0
        self.max_in_flight = 0

    async def generate(self, description):
        self.calls.append(description)
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            await asyncio.sleep(self.delays.get(description, 0))
            hints = self.rate_limits.get(description)
            if hints:
                raise RateLimitedError("Rate limited", retry_after=hints.pop(0), provider=self.name)
            if description in self.failures:
                raise self.failures[description]
            data = make_image_bytes(color=(len(self.calls) * 37 % 256, 60, 90))
            self.results[description] = data
            return ImageResult(data=data, mime_type="image/png")
        finally:
            self.in_flight -= 1


class FakeSleep:
    """Records requested delays instead of waiting."""

    def __init__(self):
        self.delays = []

    async def __call__(self, delay):
        self.delays.append(delay)
        await asyncio.sleep(0)


class FixedTopicSource:
    def __init__(self, topic=TOPIC, error=None):
        self.topic = topic
        self.error = error
        self.calls = 0

    async def next_topic(self):
        self.calls += 1
        if self.error is not None:
            raise self.error
        return self.topic


def build_orchestrator(
    root_dir,
    text_provider=None,
    image_provider=None,
    topic_source=None,
    config=None,
    sleep=None,
    clock=None,
):
    """Wire an orchestrator from fakes. Returns (orchestrator, store)."""
    store = ArtifactStore(root_dir=str(root_dir), clock=clock or (lambda: FIXED_NOW))
    orchestrator = PipelineOrchestrator(
        topic_source=topic_source or FixedTopicSource(),
        outline_client=OutlineClient(text_provider or FakeTextProvider(outline_json())),
        image_client=ImageClient(
            image_provider or FakeImageProvider(),
            retry_handler=RateLimitRetryHandler(default_reset=5.0, jitter=1.0, sleep=sleep or FakeSleep()),
        ),
        artifact_store=store,
        config=config or GenerationConfig(),
    )
    return orchestrator, store


@pytest.fixture
def fake_sleep():
    return FakeSleep()


@pytest.fixture
def generations_dir(tmp_path):
    return tmp_path / "logs"
