"""Async helpers for driving the synchronous hub client from command coroutines."""

import asyncio
import logging
from typing import Any, Awaitable, Callable, Coroutine, Sequence, TypeVar

T = TypeVar("T")
ItemT = TypeVar("ItemT")
logger = logging.getLogger(__name__)

# Module-level semaphore, initialized once per command invocation
_semaphore: asyncio.Semaphore | None = None


def init_semaphore(max_parallel: int = 5) -> None:
    """Initialize the request semaphore. Call once before issuing remote calls."""
    global _semaphore
    _semaphore = asyncio.Semaphore(max_parallel)
    logger.debug(
        "Hub request semaphore initialized: max_parallel=%d",
        max_parallel,
    )


async def run_sync(
    func: Callable[..., T], *args: Any, **kwargs: Any
) -> T:
    """Run a synchronous function in a thread pool without blocking the event loop.

    Does NOT acquire the semaphore; used for local file I/O.

    Args:
        func: Synchronous function to call
        *args: Positional arguments for func
        **kwargs: Keyword arguments for func

    Returns:
        Result of func(*args, **kwargs)
    """
    return await asyncio.to_thread(func, *args, **kwargs)


async def run_sync_limited(
    func: Callable[..., T], *args: Any, **kwargs: Any
) -> T:
    """Run a synchronous hub call in a thread pool, bounded by the request semaphore.

    Falls back to unbounded if the semaphore is not initialized.

    Args:
        func: Synchronous function to call
        *args: Positional arguments for func
        **kwargs: Keyword arguments for func

    Returns:
        Result of func(*args, **kwargs)
    """
    if _semaphore is None:
        return await asyncio.to_thread(func, *args, **kwargs)
    async with _semaphore:
        return await asyncio.to_thread(func, *args, **kwargs)


async def gather_limited(
    coros: Sequence[Coroutine[Any, Any, T]],
) -> list[T]:
    """Run coroutines concurrently and return their results in order.

    Each coroutine should use run_sync_limited internally so the number
    of outstanding hub requests stays bounded.  Exceptions propagate
    from the first failure.

    Args:
        coros: Sequence of coroutines to run concurrently.

    Returns:
        List of results in the same order as input coroutines.
    """
    return list(await asyncio.gather(*coros))


async def gather_in_groups(
    items: Sequence[ItemT],
    func: Callable[[ItemT], Awaitable[T]],
    group_size: int,
) -> list[T]:
    """Apply an async *func* to *items* in concurrent groups of *group_size*.

    Each group is awaited jointly before the next one starts.

    Returns:
        Results in input order.
    """
    if group_size < 1:
        raise ValueError(f"group_size must be at least 1, got {group_size}")
    results: list[T] = []
    for start in range(0, len(items), group_size):
        group = items[start : start + group_size]
        results.extend(await gather_limited([func(item) for item in group]))
    return results
