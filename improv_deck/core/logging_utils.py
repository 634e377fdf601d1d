"""
Standardized logging utilities for consistent error and info logging across the pipeline.
Provides structured logging with consistent message formats.
"""

import logging
from typing import Optional, Dict, Any


def _format_message(
    message: str,
    component: Optional[str] = None,
    stage: Optional[str] = None,
    error: Optional[Exception] = None,
    context: Optional[Dict[str, Any]] = None
) -> str:
    parts = []

    if component:
        parts.append(f"[{component}]")

    parts.append(message)

    if stage:
        parts.append(f"(stage: '{stage}')")

    if error:
        parts.append(f"Error: {type(error).__name__}: {str(error)}")

    log_message = " ".join(parts)

    if context:
        context_str = ", ".join(f"{k}={v}" for k, v in context.items())
        log_message += f" | Context: {context_str}"

    return log_message


def log_stage_error(
    logger: logging.Logger,
    message: str,
    component: Optional[str] = None,
    stage: Optional[str] = None,
    error: Optional[Exception] = None,
    context: Optional[Dict[str, Any]] = None
) -> None:
    """
    Log a pipeline stage error with standardized format.

    Args:
        logger: Logger instance
        message: Error message
        component: Name of the component reporting (optional)
        stage: Pipeline stage that failed (optional)
        error: Exception object (optional)
        context: Additional context dictionary (optional)
    """
    logger.error(_format_message(message, component, stage, error, context))


def log_stage_warning(
    logger: logging.Logger,
    message: str,
    component: Optional[str] = None,
    stage: Optional[str] = None,
    context: Optional[Dict[str, Any]] = None
) -> None:
    """Log a pipeline stage warning with standardized format."""
    logger.warning(_format_message(message, component, stage, context=context))


def log_stage_info(
    logger: logging.Logger,
    message: str,
    component: Optional[str] = None,
    stage: Optional[str] = None,
    context: Optional[Dict[str, Any]] = None
) -> None:
    """Log a pipeline stage info message with standardized format."""
    logger.info(_format_message(message, component, stage, context=context))


def log_component_error(
    logger: logging.Logger,
    message: str,
    component: Optional[str] = None,
    error: Optional[Exception] = None,
    context: Optional[Dict[str, Any]] = None
) -> None:
    """
    Log a component error with standardized format.

    Args:
        logger: Logger instance
        message: Error message
        component: Component name (optional)
        error: Exception object (optional)
        context: Additional context dictionary (optional)
    """
    logger.error(_format_message(message, component, error=error, context=context))


def log_json_parse_error(
    logger: logging.Logger,
    message: str,
    component: Optional[str] = None,
    raw_output_preview: Optional[str] = None,
    error: Optional[Exception] = None
) -> None:
    """
    Log a JSON parsing error with standardized format.

    Args:
        logger: Logger instance
        message: Error message
        component: Name of the component (optional)
        raw_output_preview: Raw output that failed to parse (optional)
        error: Exception object (optional)
    """
    log_message = _format_message(f"JSON Parse Error: {message}", component, error=error)

    if raw_output_preview:
        preview = raw_output_preview[:500] if len(raw_output_preview) > 500 else raw_output_preview
        log_message += f" | Raw output preview: {preview}"

    logger.error(log_message)
