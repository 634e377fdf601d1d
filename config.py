"""
Configuration file for the improv deck generation pipeline.
Contains model settings, deck shape, rate-limit policy and storage layout.
"""

import json
import os


def _env_int(name: str, default: int) -> int:
    value = os.getenv(name)
    return int(value) if value else default


def _env_float(name: str, default: float) -> float:
    value = os.getenv(name)
    return float(value) if value else default


def _env_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if not value:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


# ============================================================================
# Provider Configuration
# ============================================================================

# Model configuration
TEXT_MODEL = os.getenv("TEXT_MODEL", "gemini-2.5-flash")
IMAGE_MODEL = os.getenv("IMAGE_MODEL", "imagen-4.0-generate-001")
OPENAI_IMAGE_MODEL = os.getenv("OPENAI_IMAGE_MODEL", "dall-e-3")
OPENAI_IMAGE_SIZE = os.getenv("OPENAI_IMAGE_SIZE", "1024x1024")
OPENAI_IMAGES_URL = "https://api.openai.com/v1/images/generations"

# "imagen" (inline bytes via google-genai) or "openai" (ephemeral URLs)
IMAGE_PROVIDER = os.getenv("IMAGE_PROVIDER", "imagen")

# "llm" asks the text model for a topic, "pool" draws from TOPICS_FILE
TOPIC_STRATEGY = os.getenv("TOPIC_STRATEGY", "llm")

# Sampling
TEMPERATURE = _env_float("TEMPERATURE", 0.8)
MAX_OUTPUT_TOKENS = _env_int("MAX_OUTPUT_TOKENS", 8000)

# Extra provider headers for the outline request (e.g. an extended-output opt-in)
EXTENDED_OUTPUT_HEADERS = json.loads(os.getenv("EXTENDED_OUTPUT_HEADERS", "{}"))

# ============================================================================
# Deck Shape
# ============================================================================

TOTAL_SLIDES = _env_int("TOTAL_SLIDES", 10)
TOTAL_TEXT_SLIDES = _env_int("TOTAL_TEXT_SLIDES", 3)
MAX_TITLE_SLIDES = _env_int("MAX_TITLE_SLIDES", 3)
INCLUDE_OPENING_SLIDE = _env_bool("INCLUDE_OPENING_SLIDE", False)
AVOID_SUBJECTS = ["cats", "ducks", "penguins", "pineapple", "pizza"]

# ============================================================================
# Concurrency & Resilience
# ============================================================================

# Maximum image requests in flight for a single outline
IMAGE_CONCURRENCY = _env_int("IMAGE_CONCURRENCY", 4)

# Used when a 429 carries no reset hint
DEFAULT_RATE_LIMIT_RESET_SECONDS = 60.0
RATE_LIMIT_JITTER_SECONDS = 1.0

# None retries rate limits forever; each retry re-reads the live reset hint
MAX_RATE_LIMIT_RETRIES = None

# Overall deadline for one generate request
PIPELINE_TIMEOUT_SECONDS = _env_float("PIPELINE_TIMEOUT_SECONDS", 900.0)
IMAGE_DOWNLOAD_TIMEOUT_SECONDS = 60

# ============================================================================
# Storage
# ============================================================================

OUTPUT_DIR = os.getenv("OUTPUT_DIR", "output")
GENERATIONS_DIR = os.getenv("GENERATIONS_DIR", "public/logs")
GENERATIONS_URL_PREFIX = os.getenv("GENERATIONS_URL_PREFIX", "/logs")
TOPICS_FILE = os.getenv("TOPICS_FILE", "topics.txt")

# Generation File Names
TOPIC_FILE = "topic.txt"
MANIFEST_FILE = "slides.json"
IMAGES_SUBDIR = "images"

# Log File Names
LOGGER_LOG_FILE = "logger.log"
OBSERVABILITY_LOG_FILE = "observability.log"
TRACE_HISTORY_FILE = "trace_history.json"


class GenerationConfig:
    """
    Per-run configuration for the generation pipeline.

    Attributes:
        temperature: Sampling temperature for text requests
        max_output_tokens: Output token budget for text requests
        extra_headers: Provider-specific headers for the outline request
        total_slides: Number of slides to ask for
        total_text_slides: Upper bound on slides carrying text
        max_title_slides: Upper bound on title/presenter slides accepted
        include_opening_slide: Ask for a title slide with a made-up presenter
        avoid_subjects: Subjects the outline prompt asks the model to avoid
        image_concurrency: Admission limit for concurrent image requests
        pipeline_timeout: Overall deadline in seconds (None disables it)
    """
    def __init__(
        self,
        temperature: float = TEMPERATURE,
        max_output_tokens: int = MAX_OUTPUT_TOKENS,
        extra_headers: dict = None,
        total_slides: int = TOTAL_SLIDES,
        total_text_slides: int = TOTAL_TEXT_SLIDES,
        max_title_slides: int = MAX_TITLE_SLIDES,
        include_opening_slide: bool = INCLUDE_OPENING_SLIDE,
        avoid_subjects: list = None,
        image_concurrency: int = IMAGE_CONCURRENCY,
        pipeline_timeout: float = PIPELINE_TIMEOUT_SECONDS,
    ):
        if image_concurrency < 1:
            raise ValueError("image_concurrency must be at least 1")
        self.temperature = temperature
        self.max_output_tokens = max_output_tokens
        self.extra_headers = dict(EXTENDED_OUTPUT_HEADERS if extra_headers is None else extra_headers)
        self.total_slides = total_slides
        self.total_text_slides = total_text_slides
        self.max_title_slides = max_title_slides
        self.include_opening_slide = include_opening_slide
        self.avoid_subjects = list(AVOID_SUBJECTS if avoid_subjects is None else avoid_subjects)
        self.image_concurrency = image_concurrency
        self.pipeline_timeout = pipeline_timeout

    def to_dict(self):
        """Convert to dictionary for logging and traces."""
        return {
            "temperature": self.temperature,
            "max_output_tokens": self.max_output_tokens,
            "extra_headers": self.extra_headers,
            "total_slides": self.total_slides,
            "total_text_slides": self.total_text_slides,
            "max_title_slides": self.max_title_slides,
            "include_opening_slide": self.include_opening_slide,
            "avoid_subjects": self.avoid_subjects,
            "image_concurrency": self.image_concurrency,
            "pipeline_timeout": self.pipeline_timeout,
        }
