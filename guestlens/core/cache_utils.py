"""
Version-Tagged Cache
====================

List-style reads are cached under keys that embed the current version of
their scope:

    <scope>:v<version>:<operation>:<params>

The version itself lives at ``<scope>:version`` with no expiry and only ever
increases. Invalidating a scope is a single atomic INCR; entries written
under the old version are never looked up again and expire through their TTL.

Every write that changes a cached collection must call the matching bump.
"""

import logging
from typing import Any, Awaitable, Callable, Optional, Union

from guestlens.core.cache import (
    build_cache_key,
    build_event_scope,
    build_user_events_scope,
    get_cache,
    increment_counter,
    set_cache,
)

logger = logging.getLogger(__name__)


def _version_key(scope: str) -> str:
    return build_cache_key(scope, "version")


def build_versioned_key(scope: str, version: int, operation: str, params: Union[str, int] = "") -> str:
    """Build ``<scope>:v<version>:<operation>:<params>``."""
    return build_cache_key(scope, f"v{version}", operation, params)


async def get_scope_version(scope: str) -> int:
    """Current version of a scope (0 before the first bump)."""
    value = await get_cache(_version_key(scope))
    try:
        return int(value) if value is not None else 0
    except (TypeError, ValueError):
        logger.warning(f"Non-integer version stored for scope {scope}: {value!r}")
        return 0


async def bump_scope_version(scope: str) -> int:
    """Invalidate every cached read of a scope by advancing its version."""
    version = await increment_counter(_version_key(scope))
    logger.debug(f"Bumped cache scope {scope} to v{version}")
    return version


async def get_or_compute(
    scope: str,
    operation: str,
    params: Union[str, int],
    ttl: int,
    compute: Callable[[], Awaitable[Any]],
) -> Any:
    """
    Read-through cache keyed by the scope's current version.

    Args:
        scope: Cache scope (e.g. ``event:42``)
        operation: Name of the cached read
        params: Read parameters, already normalized to a string
        ttl: Entry lifetime in seconds
        compute: Coroutine factory producing a JSON-serializable value

    Returns:
        Cached or freshly computed value
    """
    version = await get_scope_version(scope)
    key = build_versioned_key(scope, version, operation, params)

    cached = await get_cache(key)
    if cached is not None:
        logger.debug(f"Cache hit: {key}")
        return cached

    value = await compute()
    if value is not None:
        await set_cache(key, value, ttl)
    return value


# ============================================================================
# Scope helpers
# ============================================================================


async def bump_event_version(event_id: int) -> int:
    """Gallery pages and stats of an event changed."""
    return await bump_scope_version(build_event_scope(event_id))


async def bump_user_events_version(user_id: Optional[int]) -> Optional[int]:
    """The host's event list changed."""
    if user_id is None:
        return None
    return await bump_scope_version(build_user_events_scope(user_id))
