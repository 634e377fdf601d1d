"""
Custom exceptions for consistent error handling across the pipeline.
"""

from enum import Enum


class FailureReason(Enum):
    """Machine-readable reason attached to a failed pipeline run."""
    NO_TOPIC_AVAILABLE = "no_topic_available"
    OUTLINE_REQUEST_FAILED = "outline_request_failed"
    OUTLINE_PARSE_FAILED = "outline_parse_failed"
    IMAGE_GENERATION_FAILED = "image_generation_failed"
    PERSISTENCE_FAILED = "persistence_failed"
    PIPELINE_TIMEOUT = "pipeline_timeout"


class OutlineRequestKind(Enum):
    UNEXPECTED_CONTENT_KIND = "unexpected_content_kind"
    PROVIDER_ERROR = "provider_error"


class ParseFailureKind(Enum):
    MALFORMED_JSON = "malformed_json"
    SCHEMA_VIOLATION = "schema_violation"


class ProviderError(Exception):
    """Raised when a language-model or image provider call fails for a reason other than rate limiting."""

    def __init__(self, message: str, provider: str = None, status_code: int = None):
        self.provider = provider
        self.status_code = status_code
        full_message = f"[{provider}] {message}" if provider else message
        super().__init__(full_message)


class RateLimitedError(ProviderError):
    """
    Raised by a provider adapter when the service answers with a 429-class response.

    Never reported as a pipeline failure: the rate-limit retry loop absorbs it.
    """

    def __init__(self, message: str, retry_after: str = None, provider: str = None):
        """
        Initialize rate-limit signal.

        Args:
            message: Error message
            retry_after: Raw reset hint from the provider (e.g. "60", "1m30s"), if any
            provider: Provider name (optional)
        """
        self.retry_after = retry_after
        super().__init__(message, provider=provider, status_code=429)


class PipelineError(Exception):
    """Base exception for failures that end a pipeline run."""

    reason = None

    def __init__(self, message: str, stage: str = None):
        self.stage = stage
        self.message = message
        full_message = f"[{stage}] {message}" if stage else message
        super().__init__(full_message)


class NoTopicAvailableError(PipelineError):
    """Raised when the topic source is exhausted or the model declined to name a topic."""

    reason = FailureReason.NO_TOPIC_AVAILABLE

    def __init__(self, message: str = "No topic available"):
        super().__init__(message, stage="topic")


class OutlineRequestError(PipelineError):
    """Raised when a text request fails or returns a non-text content block first."""

    reason = FailureReason.OUTLINE_REQUEST_FAILED

    def __init__(self, message: str, kind: OutlineRequestKind, stage: str = "outline", content_kind: str = None):
        self.kind = kind
        self.content_kind = content_kind
        super().__init__(message, stage=stage)


class OutlineParseError(PipelineError):
    """Raised when the model's outline cannot be decoded or does not match the deck schema."""

    reason = FailureReason.OUTLINE_PARSE_FAILED

    def __init__(self, message: str, kind: ParseFailureKind, details: list = None, raw_output: str = None):
        """
        Initialize outline parse error.

        Args:
            message: Error message
            kind: Whether decoding or schema validation failed
            details: Individual schema violations (optional)
            raw_output: Raw model text that failed to parse (optional, for debugging)
        """
        self.kind = kind
        self.details = details or []
        self.raw_output = raw_output
        super().__init__(message, stage="outline")


class ImageGenerationError(PipelineError):
    """Raised when any image request of the fan-out fails permanently."""

    reason = FailureReason.IMAGE_GENERATION_FAILED

    def __init__(self, message: str, slide_index: int = None, description: str = None):
        self.slide_index = slide_index
        self.description = description
        if slide_index is not None:
            message = f"Slide {slide_index}: {message}"
        super().__init__(message, stage="images")


class PersistenceError(PipelineError):
    """Raised when writing a generation to disk fails. The deck itself was generated."""

    reason = FailureReason.PERSISTENCE_FAILED

    def __init__(self, message: str, path: str = None):
        self.path = path
        super().__init__(message, stage="persist")


class PipelineTimeoutError(PipelineError):
    """Raised when a run exceeds its overall deadline."""

    reason = FailureReason.PIPELINE_TIMEOUT

    def __init__(self, timeout: float, stage: str = None):
        self.timeout = timeout
        super().__init__(f"Pipeline exceeded its {timeout:g}s deadline", stage=stage)


class UnexpectedStageError(PipelineError):
    """Wraps an exception a stage did not map itself, tagged with the reason for that stage."""

    def __init__(self, message: str, reason: FailureReason, stage: str = None):
        self.reason = reason
        super().__init__(message, stage=stage)
