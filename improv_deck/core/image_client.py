"""
Image client: one image per description, with rate-limit backoff.
"""

import asyncio
import logging
from typing import Callable, Optional

from improv_deck.core.exceptions import ProviderError, RateLimitedError
from improv_deck.core.models import GeneratedImage, ImageResult
from improv_deck.core.providers import ImageProvider, download_image
from improv_deck.core.retry_handler import RateLimitRetryHandler

logger = logging.getLogger(__name__)


class ImageClient:
    """
    Wraps an ImageProvider with the rate-limit retry loop.

    URL results are downloaded straight away because provider URLs expire.
    """

    def __init__(
        self,
        provider: ImageProvider,
        retry_handler: Optional[RateLimitRetryHandler] = None,
        downloader: Callable[[str], ImageResult] = download_image,
    ):
        self.provider = provider
        self.retry_handler = retry_handler or RateLimitRetryHandler()
        self.downloader = downloader

    async def request_image(
        self,
        description: str,
        on_retry: Optional[Callable[[int, float, RateLimitedError], None]] = None,
    ) -> ImageResult:
        """
        Ask the provider for one image, waiting out any rate limits.

        Args:
            description: Natural-language image description
            on_retry: Called with (attempt, delay, error) before each backoff (optional)

        Returns:
            Provider result: inline bytes or an ephemeral URL

        Raises:
            ProviderError: On any failure other than a rate limit
        """
        return await self.retry_handler.execute_with_retry(
            lambda: self.provider.generate(description),
            label=f"{self.provider.name} image",
            retry_callback=on_retry,
        )

    async def generate(
        self,
        slide_index: int,
        description: str,
        on_retry: Optional[Callable[[int, float, RateLimitedError], None]] = None,
    ) -> GeneratedImage:
        """
        Produce the image bytes for one slide.

        Args:
            slide_index: Index of the originating slide in the outline
            description: Image description from that slide
            on_retry: Forwarded to request_image

        Returns:
            GeneratedImage keyed by slide_index
        """
        logger.info(f"Generating image for slide {slide_index} from prompt: {description}")
        result = await self.request_image(description, on_retry=on_retry)

        if result.data is None:
            logger.debug(f"Downloading image for slide {slide_index} from {result.url}")
            downloaded = await asyncio.to_thread(self.downloader, result.url)
            if downloaded.data is None:
                raise ProviderError(f"Download of {result.url} returned no data", provider=self.provider.name)
            result = ImageResult(data=downloaded.data, url=result.url, mime_type=downloaded.mime_type or result.mime_type)

        logger.info(f"Generated image for slide {slide_index} ({len(result.data)} bytes)")
        return GeneratedImage(
            slide_index=slide_index,
            data=result.data,
            mime_type=result.mime_type,
            source_url=result.url,
        )
