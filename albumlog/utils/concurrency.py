"""Fan-out / fan-in helpers with per-item failure isolation.

Used by the MusicBrainz client to resolve cover art for many releases at
once: every item runs as its own concurrent task on the event loop, and a
failure in one item is logged and mapped to a fallback value instead of
failing the whole batch.

Two helpers are exposed:

1. **throttled_gather** -- ``asyncio.gather`` with an optional semaphore
   bounding how many awaitables are in flight at once.
2. **gather_mapping** -- fan out ``fn(key)`` for each key and collect the
   results into a ``{key: result}`` dict, substituting ``default`` for keys
   whose call raised.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable, Hashable, Iterable
from typing import TypeVar

import structlog

from albumlog.utils.logging import get_logger

_T = TypeVar("_T")
_K = TypeVar("_K", bound=Hashable)

_logger: structlog.BoundLogger = get_logger(__name__)


async def throttled_gather(
    coros: list[Awaitable[_T]],
    semaphore: asyncio.Semaphore | None = None,
    return_exceptions: bool = True,
) -> list[_T | BaseException]:
    """Run awaitables concurrently, optionally bounded by *semaphore*.

    Parameters
    ----------
    coros:
        Awaitable objects to execute concurrently.
    semaphore:
        Optional semaphore for concurrency control.  ``None`` means no bound.
    return_exceptions:
        If ``True``, exceptions are returned in the results list rather
        than being raised.  Mirrors ``asyncio.gather`` semantics.

    Returns
    -------
    list[_T | BaseException]
        Results in the same order as the input awaitables.
    """
    if semaphore is None:
        return await asyncio.gather(*coros, return_exceptions=return_exceptions)

    async def _wrapped(coro: Awaitable[_T]) -> _T:
        async with semaphore:
            return await coro

    tasks = [_wrapped(c) for c in coros]
    return await asyncio.gather(*tasks, return_exceptions=return_exceptions)


async def gather_mapping(
    fn: Callable[[_K], Awaitable[_T]],
    keys: Iterable[_K],
    default: _T,
    semaphore: asyncio.Semaphore | None = None,
    logger: structlog.BoundLogger | None = None,
    error_msg: str = "fan_out_item_failed",
) -> dict[_K, _T]:
    """Call ``fn(key)`` concurrently for every key and map keys to results.

    A key whose call raised is logged and mapped to *default*; every input
    key is present in the returned mapping.  Duplicate keys are resolved
    once.
    """
    if logger is None:
        logger = _logger

    unique_keys = list(dict.fromkeys(keys))
    raw_results = await throttled_gather(
        [fn(key) for key in unique_keys],
        semaphore=semaphore,
        return_exceptions=True,
    )

    results: dict[_K, _T] = {}
    for key, result in zip(unique_keys, raw_results):
        if isinstance(result, Exception):
            logger.warning(error_msg, key=key, error=str(result))
            results[key] = default
        elif isinstance(result, BaseException):
            # CancelledError / KeyboardInterrupt are not item failures.
            raise result
        else:
            results[key] = result
    return results
