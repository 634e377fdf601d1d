"""
Provider adapters for text and image generation.

Adapters translate each vendor's SDK or REST responses into the small shapes
the pipeline understands (ContentBlock lists and ImageResult) and map
vendor errors onto ProviderError / RateLimitedError.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Dict, List, Optional, Protocol

import requests
from google import genai
from google.genai import errors, types

from config import (
    TEXT_MODEL,
    IMAGE_MODEL,
    OPENAI_IMAGE_MODEL,
    OPENAI_IMAGE_SIZE,
    OPENAI_IMAGES_URL,
    IMAGE_DOWNLOAD_TIMEOUT_SECONDS,
)
from improv_deck.core.exceptions import ProviderError, RateLimitedError
from improv_deck.core.models import ImageResult

logger = logging.getLogger(__name__)


@dataclass
class ContentBlock:
    """One block of a text provider response."""
    kind: str
    text: Optional[str] = None


class TextProvider(Protocol):
    name: str

    async def generate(
        self,
        prompt: str,
        temperature: float,
        max_output_tokens: int,
        headers: Optional[Dict[str, str]] = None,
        json_output: bool = False,
    ) -> List[ContentBlock]:
        ...


class ImageProvider(Protocol):
    name: str

    async def generate(self, description: str) -> ImageResult:
        ...


# Non-text part fields in the order they are checked
_PART_KINDS = (
    "inline_data",
    "file_data",
    "function_call",
    "function_response",
    "executable_code",
    "code_execution_result",
)


def _part_to_block(part) -> ContentBlock:
    if getattr(part, "text", None) is not None and not getattr(part, "thought", False):
        return ContentBlock(kind="text", text=part.text)
    if getattr(part, "thought", False):
        return ContentBlock(kind="thought", text=part.text)
    for kind in _PART_KINDS:
        if getattr(part, kind, None) is not None:
            return ContentBlock(kind=kind)
    return ContentBlock(kind="unknown")


def _response_header(response, name: str) -> Optional[str]:
    headers = getattr(response, "headers", None)
    if not headers:
        return None
    return headers.get(name)


class GeminiTextProvider:
    """Text generation through google-genai."""

    name = "gemini"

    def __init__(self, api_key: Optional[str] = None, model: str = TEXT_MODEL, client: Optional[genai.Client] = None):
        self.model = model
        self.client = client or genai.Client(api_key=api_key)

    async def generate(
        self,
        prompt: str,
        temperature: float,
        max_output_tokens: int,
        headers: Optional[Dict[str, str]] = None,
        json_output: bool = False,
    ) -> List[ContentBlock]:
        config = types.GenerateContentConfig(
            temperature=temperature,
            max_output_tokens=max_output_tokens,
            http_options=types.HttpOptions(headers=headers) if headers else None,
            response_mime_type="application/json" if json_output else None,
        )
        try:
            response = await self.client.aio.models.generate_content(
                model=self.model,
                contents=prompt,
                config=config,
            )
        except errors.APIError as e:
            raise ProviderError(str(e), provider=self.name, status_code=e.code) from e

        if not response.candidates:
            return []
        content = response.candidates[0].content
        if content is None or not content.parts:
            return []
        return [_part_to_block(part) for part in content.parts]


class ImagenImageProvider:
    """Image generation through google-genai. Returns inline bytes."""

    name = "imagen"
    # Google reports its quota window through the standard header
    reset_header = "retry-after"

    def __init__(
        self,
        api_key: Optional[str] = None,
        model: str = IMAGE_MODEL,
        aspect_ratio: str = "1:1",
        client: Optional[genai.Client] = None,
    ):
        self.model = model
        self.aspect_ratio = aspect_ratio
        self.client = client or genai.Client(api_key=api_key)

    async def generate(self, description: str) -> ImageResult:
        try:
            response = await self.client.aio.models.generate_images(
                model=self.model,
                prompt=description,
                config=types.GenerateImagesConfig(
                    number_of_images=1,
                    aspect_ratio=self.aspect_ratio,
                ),
            )
        except errors.APIError as e:
            if e.code == 429:
                raise RateLimitedError(
                    str(e),
                    retry_after=_response_header(e.response, self.reset_header),
                    provider=self.name,
                ) from e
            raise ProviderError(str(e), provider=self.name, status_code=e.code) from e

        generated = response.generated_images or []
        if not generated or generated[0].image is None or not generated[0].image.image_bytes:
            reason = generated[0].rai_filtered_reason if generated else None
            message = "Failed to generate image: no image data returned"
            if reason:
                message += f" ({reason})"
            raise ProviderError(message, provider=self.name)

        image = generated[0].image
        return ImageResult(data=image.image_bytes, mime_type=image.mime_type)


class OpenAIImageProvider:
    """
    Image generation through the OpenAI Images REST endpoint.

    Returns a short-lived URL; the caller must download it promptly.
    """

    name = "openai"
    reset_header = "x-ratelimit-reset-images"

    def __init__(
        self,
        api_key: str,
        model: str = OPENAI_IMAGE_MODEL,
        size: str = OPENAI_IMAGE_SIZE,
        endpoint: str = OPENAI_IMAGES_URL,
        timeout: int = 120,
        session: Optional[requests.Session] = None,
    ):
        self.api_key = api_key
        self.model = model
        self.size = size
        self.endpoint = endpoint
        self.timeout = timeout
        self.session = session or requests.Session()

    def _post(self, description: str) -> requests.Response:
        return self.session.post(
            self.endpoint,
            headers={"Authorization": f"Bearer {self.api_key}"},
            json={"model": self.model, "prompt": description, "n": 1, "size": self.size},
            timeout=self.timeout,
        )

    async def generate(self, description: str) -> ImageResult:
        try:
            response = await asyncio.to_thread(self._post, description)
        except requests.RequestException as e:
            raise ProviderError(f"Request failed: {e}", provider=self.name) from e

        if response.status_code == 429:
            raise RateLimitedError(
                "Rate limited",
                retry_after=response.headers.get(self.reset_header),
                provider=self.name,
            )
        if not response.ok:
            raise ProviderError(
                f"HTTP error! status: {response.status_code}",
                provider=self.name,
                status_code=response.status_code,
            )

        try:
            data = response.json().get("data") or []
        except ValueError as e:
            raise ProviderError("Response body is not JSON", provider=self.name) from e
        url = data[0].get("url") if data else None
        if not url:
            raise ProviderError("Failed to generate image: No URL returned", provider=self.name)
        return ImageResult(url=url)


def download_image(url: str, timeout: int = IMAGE_DOWNLOAD_TIMEOUT_SECONDS) -> ImageResult:
    """
    Fetch an image URL into memory.

    Args:
        url: Image URL returned by a provider
        timeout: Request timeout in seconds

    Returns:
        ImageResult carrying the bytes and the served content type
    """
    try:
        response = requests.get(url, timeout=timeout)
        response.raise_for_status()
    except requests.RequestException as e:
        raise ProviderError(f"Failed to download image: {e}", provider="download") from e
    content_type = response.headers.get("content-type")
    mime_type = content_type.split(";")[0].strip() if content_type else None
    return ImageResult(data=response.content, url=url, mime_type=mime_type)
