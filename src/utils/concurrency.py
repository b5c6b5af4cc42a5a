"""Bounded fan-out helpers for backend calls.

The ingestion pipeline embeds chunk batches concurrently, but the embedding
backend has per-key rate limits, so the number of in-flight requests must
stay small.  :func:`throttled_gather` is a drop-in replacement for
``asyncio.gather`` that wraps each awaitable in a semaphore acquire/release
and returns results in input order, which is what lets callers re-associate
each result with the item that produced it.
"""

from __future__ import annotations

import asyncio
from typing import Awaitable, TypeVar

_T = TypeVar("_T")


async def throttled_gather(
    coros: list[Awaitable[_T]],
    semaphore: asyncio.Semaphore,
    return_exceptions: bool = True,
) -> list[_T | BaseException]:
    """Run awaitables concurrently, at most ``semaphore`` slots at a time.

    Parameters
    ----------
    coros:
        Awaitable objects to execute concurrently.
    semaphore:
        Semaphore bounding how many awaitables run simultaneously.
    return_exceptions:
        If ``True``, exceptions are returned in the results list rather
        than being raised.  Mirrors ``asyncio.gather`` semantics.

    Returns
    -------
    list[_T | BaseException]
        Results in the same order as the input coroutines.
    """

    async def _wrapped(coro: Awaitable[_T]) -> _T:
        async with semaphore:
            return await coro

    tasks = [_wrapped(c) for c in coros]
    return await asyncio.gather(*tasks, return_exceptions=return_exceptions)


def first_exception(results: list[_T | BaseException]) -> BaseException | None:
    """Return the first exception in a :func:`throttled_gather` result list."""
    for result in results:
        if isinstance(result, BaseException):
            return result
    return None
