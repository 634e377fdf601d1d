"""
Outline client: a single text request, returning the first text block.
"""

import logging
from dataclasses import dataclass, field
from typing import Dict

from improv_deck.core.exceptions import OutlineRequestError, OutlineRequestKind, ProviderError
from improv_deck.core.providers import TextProvider

logger = logging.getLogger(__name__)


@dataclass
class PromptConfiguration:
    """Everything a single text request needs."""
    prompt: str
    temperature: float
    max_output_tokens: int
    headers: Dict[str, str] = field(default_factory=dict)
    # Ask the provider for a bare JSON document (no prose, no code fences)
    json_output: bool = False


class OutlineClient:
    """
    Thin wrapper over a TextProvider.

    No retries happen here; failures are raised as OutlineRequestError.
    """

    def __init__(self, provider: TextProvider):
        self.provider = provider

    async def request_text(self, prompt_config: PromptConfiguration, stage: str = "outline") -> str:
        """
        Send one prompt and return the first content block's text.

        Args:
            prompt_config: Prompt, sampling temperature, token budget and extra headers
            stage: Pipeline stage the request belongs to (for error reporting)

        Returns:
            Raw text of the first content block

        Raises:
            OutlineRequestError: PROVIDER_ERROR when the call itself fails,
                UNEXPECTED_CONTENT_KIND when the first block is not text
        """
        try:
            blocks = await self.provider.generate(
                prompt_config.prompt,
                temperature=prompt_config.temperature,
                max_output_tokens=prompt_config.max_output_tokens,
                headers=prompt_config.headers or None,
                json_output=prompt_config.json_output,
            )
        except ProviderError as e:
            raise OutlineRequestError(str(e), OutlineRequestKind.PROVIDER_ERROR, stage=stage) from e
        except Exception as e:
            raise OutlineRequestError(
                f"{type(e).__name__}: {e}", OutlineRequestKind.PROVIDER_ERROR, stage=stage
            ) from e

        if not blocks:
            raise OutlineRequestError(
                "Expected text response, got no content",
                OutlineRequestKind.UNEXPECTED_CONTENT_KIND,
                stage=stage,
            )

        first = blocks[0]
        if first.kind != "text" or first.text is None:
            logger.error(f"Expected text response, got content kinds: {[block.kind for block in blocks]}")
            raise OutlineRequestError(
                f"Expected text response, got '{first.kind}'",
                OutlineRequestKind.UNEXPECTED_CONTENT_KIND,
                stage=stage,
                content_kind=first.kind,
            )
        return first.text
