"""
Rate-limit retry handling for provider calls.

Backoff computation lives in plain functions so it can be tested without a
provider; RateLimitRetryHandler wraps a call in the wait-and-retry loop.
"""

import asyncio
import logging
import random
import re
from typing import Awaitable, Callable, Optional, TypeVar

from config import (
    DEFAULT_RATE_LIMIT_RESET_SECONDS,
    RATE_LIMIT_JITTER_SECONDS,
    MAX_RATE_LIMIT_RETRIES,
)
from improv_deck.core.exceptions import ProviderError, RateLimitedError

logger = logging.getLogger(__name__)

T = TypeVar("T")

_DURATION_PART = re.compile(r"(\d+(?:\.\d+)?)(ms|h|m|s)")
_DURATION_UNITS = {"ms": 0.001, "s": 1.0, "m": 60.0, "h": 3600.0}


def parse_reset_hint(hint: Optional[str], default: float = DEFAULT_RATE_LIMIT_RESET_SECONDS) -> float:
    """
    Convert a provider reset hint into seconds.

    Accepts plain numbers ("60", "1.5") and duration strings ("1m30s", "250ms").
    Missing or unreadable hints fall back to default.
    """
    if hint is None:
        return default
    text = str(hint).strip().lower()
    if not text:
        return default

    try:
        return max(0.0, float(text))
    except ValueError:
        pass

    parts = _DURATION_PART.findall(text)
    if not parts or "".join(value + unit for value, unit in parts) != text:
        logger.warning(f"Unreadable rate-limit reset hint {hint!r}, using {default}s")
        return default
    return sum(float(value) * _DURATION_UNITS[unit] for value, unit in parts)


def compute_backoff(
    hint: Optional[str],
    default: float = DEFAULT_RATE_LIMIT_RESET_SECONDS,
    jitter: float = RATE_LIMIT_JITTER_SECONDS,
    rng: Optional[random.Random] = None,
) -> float:
    """
    Seconds to wait before retrying a throttled request.

    Args:
        hint: Raw reset hint from the provider
        default: Wait used when no hint is available
        jitter: Upper bound of the random delay added on top
        rng: Random source (optional)

    Returns:
        Reset window plus a jitter in [0, jitter]
    """
    rng = rng or random
    return parse_reset_hint(hint, default) + rng.uniform(0, jitter)


class RateLimitRetryHandler:
    """
    Retries a call for as long as it raises RateLimitedError.

    Each retry recomputes the wait from the latest error's hint. Any other
    exception propagates on the first occurrence.
    """

    def __init__(
        self,
        default_reset: float = DEFAULT_RATE_LIMIT_RESET_SECONDS,
        jitter: float = RATE_LIMIT_JITTER_SECONDS,
        max_retries: Optional[int] = MAX_RATE_LIMIT_RETRIES,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        rng: Optional[random.Random] = None,
        retry_callback: Optional[Callable[[int, float, RateLimitedError], None]] = None,
    ):
        """
        Initialize retry handler.

        Args:
            default_reset: Seconds to wait when a 429 carries no hint
            jitter: Upper bound of the random extra delay in seconds
            max_retries: Give up after this many retries (None retries forever)
            sleep: Awaitable sleep, replaced in tests
            rng: Random source for jitter (optional)
            retry_callback: Called with (attempt, delay, error) before each wait
        """
        self.default_reset = default_reset
        self.jitter = jitter
        self.max_retries = max_retries
        self.sleep = sleep
        self.rng = rng or random.Random()
        self.retry_callback = retry_callback

    async def execute_with_retry(
        self,
        execute_fn: Callable[[], Awaitable[T]],
        label: str = "request",
        retry_callback: Optional[Callable[[int, float, RateLimitedError], None]] = None,
    ) -> T:
        """
        Run execute_fn, sleeping through rate limits.

        Args:
            execute_fn: Zero-argument coroutine function performing one attempt
            label: Short description used in log lines
            retry_callback: Overrides the handler-level callback for this call

        Returns:
            Result of the first attempt that is not rate limited
        """
        retries = 0
        while True:
            try:
                return await execute_fn()
            except RateLimitedError as e:
                if self.max_retries is not None and retries >= self.max_retries:
                    raise ProviderError(
                        f"Still rate limited after {retries} retries",
                        provider=e.provider,
                        status_code=429,
                    ) from e

                delay = compute_backoff(e.retry_after, self.default_reset, self.jitter, self.rng)
                retries += 1
                logger.warning(
                    f"Rate limited on {label}, waiting {delay:.2f}s "
                    f"(reset hint: {e.retry_after!r}, retry {retries})"
                )
                callback = retry_callback or self.retry_callback
                if callback:
                    callback(retries, delay, e)
                await self.sleep(delay)
