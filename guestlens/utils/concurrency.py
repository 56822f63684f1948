"""
Bounded fan-out helpers.

A fixed number of worker tasks pull items from one shared cursor until it is
exhausted. Per-item failures are captured in the result instead of cancelling
the batch.
"""
import asyncio
import logging
from dataclasses import dataclass
from functools import partial
from typing import Any, AsyncIterator, Awaitable, Callable, Dict, Iterable, List, Optional, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass
class ItemResult:
    """Outcome of one item: ``value`` on success, ``error`` otherwise."""
    index: int
    item: Any
    value: Any = None
    error: Optional[BaseException] = None

    @property
    def ok(self) -> bool:
        return self.error is None


async def run_blocking(fn: Callable[..., T], *args, **kwargs) -> T:
    """Run a blocking function in the default threadpool so the event loop isn't blocked."""
    loop = asyncio.get_running_loop()
    return await loop.run_in_executor(None, partial(fn, *args, **kwargs))


async def _call(index: int, item: Any, worker: Callable[[Any], Awaitable[Any]]) -> ItemResult:
    try:
        return ItemResult(index, item, value=await worker(item))
    except asyncio.CancelledError:
        raise
    except Exception as e:
        logger.debug(f"Worker failed on item {index}: {e}")
        return ItemResult(index, item, error=e)


async def run_bounded(
    items: Iterable[Any],
    worker: Callable[[Any], Awaitable[Any]],
    limit: int,
) -> List[ItemResult]:
    """
    Apply ``worker`` to every item with at most ``limit`` in flight.

    Returns one ItemResult per item, in input order.
    """
    items = list(items)
    if not items:
        return []

    cursor = iter(enumerate(items))
    results: Dict[int, ItemResult] = {}

    async def pull():
        for index, item in cursor:
            results[index] = await _call(index, item, worker)

    await asyncio.gather(*(pull() for _ in range(max(1, min(limit, len(items))))))
    return [results[i] for i in range(len(items))]


async def iter_bounded(
    items: Iterable[Any],
    worker: Callable[[Any], Awaitable[Any]],
    limit: int,
    window: Optional[int] = None,
    weigh: Optional[Callable[[Any], int]] = None,
    budget: Optional[int] = None,
) -> AsyncIterator[ItemResult]:
    """
    Like ``run_bounded`` but yields results in input order as they complete.

    At most ``window`` items (default ``2 * limit``) are fetched ahead of the
    consumer, so a slow consumer bounds memory. With ``weigh`` and ``budget``
    the look-ahead is also capped by total weight: an item starts only while
    the unconsumed weight plus its own fits in ``budget``. An item heavier
    than the budget still starts once nothing else is held.
    """
    items = list(items)
    if not items:
        return

    limit = max(1, min(limit, len(items)))
    window = window or 2 * limit
    weights = [weigh(item) if weigh else 0 for item in items]
    loop = asyncio.get_running_loop()
    slots = [loop.create_future() for _ in items]
    cursor = iter(enumerate(items))

    # items started but not yet consumed
    held = {"count": 0, "weight": 0}
    capacity = asyncio.Condition()
    turn = asyncio.Lock()

    def admits(weight: int) -> bool:
        if held["count"] == 0:
            return True
        if held["count"] >= window:
            return False
        return budget is None or held["weight"] + weight <= budget

    async def pull():
        while True:
            # one worker at a time claims the next item, so items start in input order
            async with turn:
                try:
                    index, item = next(cursor)
                except StopIteration:
                    return
                async with capacity:
                    await capacity.wait_for(lambda: admits(weights[index]))
                    held["count"] += 1
                    held["weight"] += weights[index]
            slots[index].set_result(await _call(index, item, worker))

    tasks = [asyncio.create_task(pull()) for _ in range(limit)]
    try:
        for index, slot in enumerate(slots):
            result = await slot
            async with capacity:
                held["count"] -= 1
                held["weight"] -= weights[index]
                capacity.notify_all()
            yield result
    finally:
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
