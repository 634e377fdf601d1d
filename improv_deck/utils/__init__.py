"""
Utilities package for the improv deck pipeline.
"""

from .observability import ObservabilityLogger, StageStatus, configure_observability_logging

__all__ = [
    "ObservabilityLogger",
    "StageStatus",
    "configure_observability_logging",
]
