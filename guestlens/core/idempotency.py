"""Short-lived creation guard over an atomic set-if-absent flag."""
import logging
import re
from contextlib import asynccontextmanager
from datetime import date, datetime
from typing import AsyncIterator, Union

from guestlens.core.cache import (
    CACHE_PREFIX_IDEMPOTENCY,
    build_cache_key,
    delete_cache,
    set_cache_if_absent,
)

logger = logging.getLogger(__name__)


def normalize_name(name: str) -> str:
    """Lowercase and collapse whitespace so retried submissions map to one key."""
    return re.sub(r"\s+", " ", (name or "").strip().lower())


def event_creation_key(account_id: int, name: str, event_date: Union[date, datetime]) -> str:
    """Guard key for one host creating one named event on one day."""
    day = event_date.date() if isinstance(event_date, datetime) else event_date
    return build_cache_key(
        CACHE_PREFIX_IDEMPOTENCY,
        "event-create",
        account_id,
        normalize_name(name),
        day.isoformat(),
    )


async def acquire(key: str, ttl: int) -> bool:
    """True if this caller now holds the guard."""
    return await set_cache_if_absent(key, "1", ttl)


async def release(key: str) -> None:
    await delete_cache(key)


@asynccontextmanager
async def creation_guard(key: str, ttl: int) -> AsyncIterator[bool]:
    """
    Hold the guard for the duration of the block.

    Yields whether the guard was acquired; it is released on exit only when
    this caller acquired it.
    """
    acquired = await acquire(key, ttl)
    if not acquired:
        logger.info(f"Creation guard busy: {key}")
    try:
        yield acquired
    finally:
        if acquired:
            await release(key)
