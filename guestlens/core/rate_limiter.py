"""Fixed-window rate limits backed by the shared cache."""
import logging
from typing import Optional, Tuple, Union

from guestlens.core.cache import (
    CACHE_PREFIX_RATE_LIMIT,
    build_cache_key,
    get_cache_ttl,
    increment_counter,
    set_cache_ttl,
)
from guestlens.core.exceptions import RateLimitedError

logger = logging.getLogger(__name__)


def _rate_key(operation: str, subject: Union[str, int], client: str) -> str:
    return build_cache_key(CACHE_PREFIX_RATE_LIMIT, operation, subject, client)


async def hit_rate_limit(
    operation: str,
    subject: Union[str, int],
    client: str,
    max_calls: int,
    period: int,
) -> Tuple[bool, Optional[int]]:
    """
    Count one attempt for ``client`` against ``operation`` on ``subject``.

    Returns (allowed, retry_after_seconds_or_None).
    """
    key = _rate_key(operation, subject, client)

    # increment counter atomically
    current = await increment_counter(key)
    if current == 1:
        # first increment, set expiry for the window
        await set_cache_ttl(key, period)

    if current > max_calls:
        ttl = await get_cache_ttl(key)
        if ttl is None or ttl < 0:
            # counter lost its expiry; start a fresh window so it cannot stick forever
            await set_cache_ttl(key, period)
            ttl = period
        return False, max(1, min(ttl, period))
    return True, None


async def enforce_rate_limit(
    operation: str,
    subject: Union[str, int],
    client: str,
    max_calls: int,
    period: int,
) -> None:
    """Raise RateLimitedError once the window's ceiling is exceeded."""
    allowed, retry_after = await hit_rate_limit(operation, subject, client, max_calls, period)
    if not allowed:
        logger.warning(f"Rate limit exceeded: {operation}:{subject} by {client}")
        raise RateLimitedError(
            "Rate limit exceeded. Please try again later.",
            retry_after=retry_after,
        )
