"""
Core pipeline components: clients, parser, storage and orchestration.
"""

from .exceptions import (
    FailureReason,
    PipelineError,
    ProviderError,
    RateLimitedError,
)
from .models import SlideDeckOutline, PipelineResult, PipelineState, PresentationEntry
from .outline_client import OutlineClient, PromptConfiguration
from .outline_parser import parse_outline
from .image_client import ImageClient
from .retry_handler import RateLimitRetryHandler, parse_reset_hint
from .artifact_store import ArtifactStore
from .serialization_service import SerializationService
from .provider_registry import ProviderRegistry, create_default_provider_registry
from .pipeline_orchestrator import PipelineOrchestrator, create_pipeline_orchestrator

__all__ = [
    "FailureReason",
    "PipelineError",
    "ProviderError",
    "RateLimitedError",
    "SlideDeckOutline",
    "PipelineResult",
    "PipelineState",
    "PresentationEntry",
    "OutlineClient",
    "PromptConfiguration",
    "parse_outline",
    "ImageClient",
    "RateLimitRetryHandler",
    "parse_reset_hint",
    "ArtifactStore",
    "SerializationService",
    "ProviderRegistry",
    "create_default_provider_registry",
    "PipelineOrchestrator",
    "create_pipeline_orchestrator",
]
