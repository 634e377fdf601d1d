"""
Outline parsing: decode the model's raw text and validate it against the deck schema.

The model is asked for JSON only, so no prose stripping or repair happens
here: text that does not decode as JSON is a hard failure.
"""

import json
import logging
from typing import List, Optional

from pydantic import ValidationError

from config import MAX_TITLE_SLIDES
from improv_deck.core.exceptions import OutlineParseError, ParseFailureKind
from improv_deck.core.logging_utils import log_json_parse_error
from improv_deck.core.models import ImageSlide, SlideDeckOutline

logger = logging.getLogger(__name__)


def _format_validation_errors(error: ValidationError) -> List[str]:
    details = []
    for item in error.errors():
        location = ".".join(str(part) for part in item.get("loc", ())) or "<root>"
        details.append(f"{location}: {item.get('msg')}")
    return details


def parse_outline(
    raw_text: str,
    topic: Optional[str] = None,
    max_title_slides: int = MAX_TITLE_SLIDES,
) -> SlideDeckOutline:
    """
    Decode and validate an outline.

    Args:
        raw_text: Text returned by the model
        topic: Topic to record on the outline (optional)
        max_title_slides: Upper bound on title/presenter slides

    Returns:
        Validated SlideDeckOutline

    Raises:
        OutlineParseError: MALFORMED_JSON if the text is not JSON,
            SCHEMA_VIOLATION if the decoded document has the wrong shape
    """
    try:
        decoded = json.loads(raw_text)
    except (ValueError, TypeError, RecursionError) as e:
        log_json_parse_error(logger, "Outline is not valid JSON", "OutlineParser", raw_text, e)
        raise OutlineParseError(
            f"Expected JSON response: {e}",
            ParseFailureKind.MALFORMED_JSON,
            raw_output=raw_text,
        ) from e

    if not isinstance(decoded, dict):
        raise _schema_violation(
            raw_text, [f"<root>: expected an object, got {type(decoded).__name__}"]
        )

    if topic is not None:
        decoded = {**decoded, "topic": topic}

    try:
        outline = SlideDeckOutline.model_validate(decoded)
    except ValidationError as e:
        raise _schema_violation(raw_text, _format_validation_errors(e)) from e

    details = []
    title_slides = outline.title_slide_count()
    if title_slides > max_title_slides:
        details.append(f"slides: {title_slides} title slides, at most {max_title_slides} allowed")
    if not isinstance(outline.closing_slide, ImageSlide):
        details.append("slides: the closing slide must be an image slide")
    if details:
        raise _schema_violation(raw_text, details)

    logger.info(
        f"Parsed outline: {len(outline.slides)} slides, "
        f"{len(outline.image_slides())} image slides, {title_slides} title slides"
    )
    return outline


def _schema_violation(raw_text: str, details: List[str]) -> OutlineParseError:
    log_json_parse_error(logger, f"Outline does not match schema: {'; '.join(details)}", "OutlineParser", raw_text)
    return OutlineParseError(
        "Outline does not match the slide deck schema",
        ParseFailureKind.SCHEMA_VIOLATION,
        details=details,
        raw_output=raw_text,
    )
